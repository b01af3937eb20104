"""Eren local chat service provider"""
import json
import logging
from typing import AsyncIterator, Optional

import httpx

from ..config import settings
from .base import AIRequest, HttpAIProvider
from .response_parser import AIResponse, parse_or_error

logger = logging.getLogger(__name__)


class ErenProvider(HttpAIProvider):
    """
    Chat service that keeps conversation history itself.

    The answer JSON arrives in the ``reply`` field of the response body.
    Streaming is not supported by the service, so a stream is one chunk.
    """

    name = "eren"
    include_history = False

    def __init__(
        self,
        base_url: Optional[str] = None,
        enabled: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(transport=transport)
        self.base_url = (base_url or settings.EREN_BASE_URL).rstrip("/")
        self.enabled = enabled if enabled is not None else settings.EREN_ENABLED

    def is_configured(self) -> bool:
        return self.enabled

    def supports_clarification(self) -> bool:
        return False

    async def complete(self, prompt: str, request: AIRequest) -> str:
        payload = {
            "userId": request.user_id,
            "conversationId": request.conversation_id,
            "message": request.user_message,
            "prompt": prompt,
            "firstMessage": request.first_message,
        }
        logger.debug(f"Sending to Eren API: conversation={request.conversation_id}")
        async with self.client() as client:
            response = await client.post(f"{self.base_url}/api/chat", json=payload)
            await self.check_response(response)
            return response.text

    async def stream_text(self, prompt: str, request: AIRequest) -> AsyncIterator[str]:
        yield await self.complete(prompt, request)

    def parse(self, text: str) -> AIResponse:
        try:
            reply = json.loads(text).get("reply")
        except (ValueError, AttributeError):
            reply = None
        # Fall back to the whole body for services answering without the envelope
        if isinstance(reply, str) and reply.strip():
            return parse_or_error(reply, self.name)
        return parse_or_error(text, self.name)
