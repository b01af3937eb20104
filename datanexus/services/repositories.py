"""
Abstract interfaces for connection and message storage
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ..models import ConnectionRecord


@dataclass(frozen=True)
class ConversationMessage:
    """One stored message of a conversation"""
    role: str
    content: str
    created_at: datetime = field(default_factory=datetime.utcnow)


class ConnectionRepository(ABC):
    """Abstract base class for connection record storage"""

    @abstractmethod
    def find_by_id(self, connection_id: str) -> Optional[ConnectionRecord]:
        """
        Look up a connection by id

        Args:
            connection_id: Connection id

        Returns:
            Connection record if found, None otherwise
        """
        pass

    @abstractmethod
    def find_by_ids(self, connection_ids: List[str]) -> List[ConnectionRecord]:
        """
        Look up several connections, preserving the order of the ids

        Args:
            connection_ids: Connection ids

        Returns:
            The records that exist
        """
        pass


class MessageRepository(ABC):
    """Abstract base class for conversation message storage"""

    @abstractmethod
    def find_by_conversation(self, conversation_id: str) -> List[ConversationMessage]:
        """
        Load the stored history of a conversation, oldest first

        Args:
            conversation_id: Conversation id

        Returns:
            Messages of the conversation
        """
        pass


class InMemoryConnectionRepository(ConnectionRepository):
    """Dictionary-backed connection storage"""

    def __init__(self, connections: Optional[List[ConnectionRecord]] = None):
        self._connections: Dict[str, ConnectionRecord] = {}
        self._lock = threading.Lock()
        for connection in connections or []:
            self.save(connection)

    def save(self, connection: ConnectionRecord):
        with self._lock:
            self._connections[connection.id] = connection

    def delete(self, connection_id: str):
        with self._lock:
            self._connections.pop(connection_id, None)

    def find_by_id(self, connection_id: str) -> Optional[ConnectionRecord]:
        with self._lock:
            return self._connections.get(connection_id)

    def find_by_ids(self, connection_ids: List[str]) -> List[ConnectionRecord]:
        with self._lock:
            return [self._connections[cid] for cid in connection_ids if cid in self._connections]


class InMemoryMessageRepository(MessageRepository):
    """Dictionary-backed message storage"""

    def __init__(self):
        self._messages: Dict[str, List[ConversationMessage]] = {}
        self._lock = threading.Lock()

    def append(self, conversation_id: str, message: ConversationMessage):
        with self._lock:
            self._messages.setdefault(conversation_id, []).append(message)

    def find_by_conversation(self, conversation_id: str) -> List[ConversationMessage]:
        with self._lock:
            return list(self._messages.get(conversation_id, []))


_connection_repository: Optional[InMemoryConnectionRepository] = None
_message_repository: Optional[InMemoryMessageRepository] = None


def get_connection_repository() -> InMemoryConnectionRepository:
    """Get or create the process-wide connection repository"""
    global _connection_repository
    if _connection_repository is None:
        _connection_repository = InMemoryConnectionRepository()
    return _connection_repository


def get_message_repository() -> InMemoryMessageRepository:
    """Get or create the process-wide message repository"""
    global _message_repository
    if _message_repository is None:
        _message_repository = InMemoryMessageRepository()
    return _message_repository
