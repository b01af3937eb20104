"""
Abstract interface for AI providers
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Literal, Optional

import httpx

from ..config import settings
from ..models import SourceSchema
from ..prompts.analyst import create_analyst_prompt
from ..services.repositories import ConversationMessage
from .response_parser import AIResponse, parse_or_error

logger = logging.getLogger(__name__)


@dataclass
class AIRequest:
    """Input of one AI call"""
    user_message: str
    available_schemas: List[SourceSchema] = field(default_factory=list)
    conversation_history: List[ConversationMessage] = field(default_factory=list)
    preferences: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    first_message: bool = False
    # When set, prompt is sent as-is instead of the schema-grounded prompt
    raw_prompt: bool = False
    prompt: Optional[str] = None


@dataclass(frozen=True)
class StreamEvent:
    """
    One item of a provider stream.

    A stream yields any number of ``chunk`` events followed by exactly one
    terminal event, ``completed`` or ``error``.
    """
    kind: Literal["chunk", "completed", "error"]
    text: str = ""
    response: Optional[AIResponse] = None
    error: Optional[str] = None

    @classmethod
    def chunk(cls, text: str) -> "StreamEvent":
        return cls(kind="chunk", text=text)

    @classmethod
    def completed(cls, response: AIResponse) -> "StreamEvent":
        return cls(kind="completed", response=response)

    @classmethod
    def failed(cls, error: str) -> "StreamEvent":
        return cls(kind="error", error=error)

    @property
    def is_terminal(self) -> bool:
        return self.kind != "chunk"


ChunkHandler = Callable[[str], Any]


class AIProvider(ABC):
    """Abstract base class for AI text providers"""

    name: str = ""
    include_history: bool = True

    @abstractmethod
    def is_configured(self) -> bool:
        """
        Check if provider is configured and ready

        Returns:
            True if the provider has the credentials/endpoint it needs
        """
        pass

    def supports_clarification(self) -> bool:
        return True

    def build_prompt(self, request: AIRequest) -> str:
        """Prompt text for a request"""
        if request.raw_prompt and request.prompt:
            return request.prompt
        return create_analyst_prompt(
            user_message=request.user_message,
            schemas=request.available_schemas,
            history=request.conversation_history if self.include_history else None,
            supports_clarification=self.supports_clarification(),
        )

    @abstractmethod
    async def complete(self, prompt: str, request: AIRequest) -> str:
        """
        Run one non-streaming completion

        Args:
            prompt: Prompt text
            request: Originating request

        Returns:
            Raw AI text
        """
        pass

    @abstractmethod
    def stream_text(self, prompt: str, request: AIRequest) -> AsyncIterator[str]:
        """
        Stream text fragments of one completion

        Args:
            prompt: Prompt text
            request: Originating request

        Returns:
            Async iterator of text deltas
        """
        pass

    def parse(self, text: str) -> AIResponse:
        return parse_or_error(text, self.name)

    async def chat(self, request: AIRequest) -> AIResponse:
        """
        Non-streaming chat. Never raises; failures become DIRECT_ANSWER errors.
        """
        if not self.is_configured():
            return AIResponse.failure(f"{self.name} provider is not configured")
        try:
            text = await self.complete(self.build_prompt(request), request)
        except Exception as e:
            logger.error(f"Failed to call {self.name} API: {e}")
            return AIResponse.failure(str(e))
        return self.parse(text)

    async def stream(
        self,
        request: AIRequest,
        cancel_event: Optional[asyncio.Event] = None
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream a chat as events.

        Args:
            request: AI request
            cancel_event: Set by the caller when the client goes away; the
                stream then stops with an error event

        Yields:
            Chunk events, then one completed or error event
        """
        if not self.is_configured():
            yield StreamEvent.failed(f"{self.name} provider is not configured")
            return

        prompt = self.build_prompt(request)
        parts: List[str] = []
        try:
            async with aclosing(self.stream_text(prompt, request)) as fragments:
                async for text in fragments:
                    if cancel_event is not None and cancel_event.is_set():
                        logger.info(f"{self.name} stream cancelled after {len(parts)} chunks")
                        yield StreamEvent.failed("Request cancelled")
                        return
                    if text:
                        parts.append(text)
                        yield StreamEvent.chunk(text)
        except Exception as e:
            logger.error(f"{self.name} stream failed: {e}")
            yield StreamEvent.failed(str(e))
            return

        yield StreamEvent.completed(self.parse("".join(parts)))

    async def stream_chat(
        self,
        request: AIRequest,
        on_chunk: Optional[ChunkHandler] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> AIResponse:
        """
        Drain the stream, handing each chunk to on_chunk.

        Args:
            request: AI request
            on_chunk: Sync or async callable receiving each text fragment
            cancel_event: Cancellation token

        Returns:
            Parsed response; stream errors become DIRECT_ANSWER errors
        """
        async for event in self.stream(request, cancel_event):
            if event.kind == "chunk":
                if on_chunk is not None:
                    result = on_chunk(event.text)
                    if inspect.isawaitable(result):
                        await result
            elif event.kind == "completed":
                return event.response
            else:
                return AIResponse.failure(event.error or "Unknown error")
        return AIResponse.failure("Stream ended without a response")


class HttpAIProvider(AIProvider):
    """Provider talking to an HTTP API through httpx"""

    def __init__(
        self,
        connect_timeout: Optional[float] = None,
        request_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.connect_timeout = connect_timeout if connect_timeout is not None else settings.AI_CONNECT_TIMEOUT_SECONDS
        self.request_timeout = request_timeout if request_timeout is not None else settings.AI_REQUEST_TIMEOUT_SECONDS
        self.transport = transport

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.request_timeout, connect=self.connect_timeout),
            transport=self.transport,
        )

    async def check_response(self, response: httpx.Response):
        """Raise with the provider's name, status and body on a non-200 response"""
        if response.status_code != 200:
            body = (await response.aread()).decode("utf-8", errors="replace")
            raise RuntimeError(f"{self.name} API error: {response.status_code} - {body[:500]}")
