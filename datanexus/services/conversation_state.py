"""Per-conversation state for multi-turn AI interactions"""
import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import settings
from ..providers.response_parser import AIResponse
from .repositories import ConversationMessage, MessageRepository, get_message_repository

logger = logging.getLogger(__name__)


@dataclass
class ConversationState:
    """Conversation state container"""
    conversation_id: str
    conversation_history: List[ConversationMessage] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)
    last_ai_response: Optional[AIResponse] = None
    last_updated: datetime = field(default_factory=datetime.utcnow)

    def touch(self):
        self.last_updated = datetime.utcnow()


class ConversationStateStore(ABC):
    """Abstract base class for conversation state storage"""

    @abstractmethod
    def get_or_create(
        self,
        conversation_id: str,
        factory: Callable[[str], ConversationState]
    ) -> ConversationState:
        """
        Return the state for an id, creating it with factory on first access.

        At most one state is ever created per id, even under concurrent calls.
        """
        pass

    @abstractmethod
    def get(self, conversation_id: str) -> Optional[ConversationState]:
        pass

    @abstractmethod
    def remove(self, conversation_id: str) -> Optional[ConversationState]:
        pass

    @abstractmethod
    def items(self) -> List[Tuple[str, ConversationState]]:
        """Snapshot of the stored states"""
        pass

    @abstractmethod
    def lock(self, conversation_id: str) -> asyncio.Lock:
        """Lock serializing turns of one conversation"""
        pass


class InMemoryConversationStateStore(ConversationStateStore):
    """Process-wide dictionary store with one asyncio lock per conversation"""

    def __init__(self):
        self._states: Dict[str, ConversationState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._mutex = threading.Lock()

    def get_or_create(
        self,
        conversation_id: str,
        factory: Callable[[str], ConversationState]
    ) -> ConversationState:
        with self._mutex:
            state = self._states.get(conversation_id)
            if state is None:
                state = factory(conversation_id)
                self._states[conversation_id] = state
            return state

    def get(self, conversation_id: str) -> Optional[ConversationState]:
        with self._mutex:
            return self._states.get(conversation_id)

    def remove(self, conversation_id: str) -> Optional[ConversationState]:
        with self._mutex:
            self._locks.pop(conversation_id, None)
            return self._states.pop(conversation_id, None)

    def items(self) -> List[Tuple[str, ConversationState]]:
        with self._mutex:
            return list(self._states.items())

    def lock(self, conversation_id: str) -> asyncio.Lock:
        with self._mutex:
            lock = self._locks.get(conversation_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[conversation_id] = lock
            return lock


class ConversationStateManager:
    """
    Caches AI and turn context per conversation.

    History is loaded from the message repository once, when the state is
    first created. Idle states are swept by cleanup_stale.
    """

    def __init__(
        self,
        message_repository: Optional[MessageRepository] = None,
        store: Optional[ConversationStateStore] = None,
        ttl_seconds: Optional[int] = None
    ):
        self.message_repository = message_repository or get_message_repository()
        self.store = store or InMemoryConversationStateStore()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.CONVERSATION_TTL_SECONDS

    def get_or_create(self, conversation_id: str) -> ConversationState:
        return self.store.get_or_create(conversation_id, self._new_state)

    def _new_state(self, conversation_id: str) -> ConversationState:
        return ConversationState(
            conversation_id=conversation_id,
            conversation_history=self._load_history(conversation_id),
        )

    def _load_history(self, conversation_id: str) -> List[ConversationMessage]:
        try:
            return list(self.message_repository.find_by_conversation(conversation_id))
        except Exception as e:
            logger.warning(f"Failed to load conversation history for {conversation_id}: {e}")
            return []

    def update_state(self, conversation_id: str, ai_response: AIResponse):
        """Record the latest AI response and derived context"""
        state = self.get_or_create(conversation_id)
        state.last_ai_response = ai_response
        state.context["lastIntent"] = ai_response.intent
        state.context["lastResponseType"] = ai_response.type
        state.touch()

    def add_user_message(self, conversation_id: str, message: str):
        state = self.get_or_create(conversation_id)
        state.conversation_history.append(ConversationMessage(role="user", content=message))
        state.touch()

    def add_assistant_message(self, conversation_id: str, message: str):
        state = self.get_or_create(conversation_id)
        state.conversation_history.append(ConversationMessage(role="assistant", content=message))
        state.touch()

    def lock(self, conversation_id: str) -> asyncio.Lock:
        return self.store.lock(conversation_id)

    def cleanup(self, conversation_id: str):
        self.store.remove(conversation_id)
        logger.info(f"Cleaned up conversation state for conversation {conversation_id}")

    def cleanup_stale(self) -> int:
        """
        Remove states idle for longer than the TTL.

        Returns:
            Number of removed states
        """
        threshold = datetime.utcnow() - timedelta(seconds=self.ttl_seconds)
        stale = [cid for cid, state in self.store.items() if state.last_updated < threshold]
        for conversation_id in stale:
            self.store.remove(conversation_id)
        if stale:
            logger.info(f"Removed {len(stale)} stale conversation states")
        return len(stale)


_manager: Optional[ConversationStateManager] = None


def get_conversation_manager() -> ConversationStateManager:
    """Get or create the global conversation state manager"""
    global _manager
    if _manager is None:
        _manager = ConversationStateManager()
    return _manager
