"""Anthropic Claude provider"""
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..config import settings
from .base import AIRequest, HttpAIProvider
from .sse import iter_sse_data

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeProvider(HttpAIProvider):
    """Claude Messages API"""

    name = "claude"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(transport=transport)
        self.api_key = api_key if api_key is not None else settings.CLAUDE_API_KEY
        self.model = model or settings.CLAUDE_MODEL
        self.max_tokens = max_tokens or settings.CLAUDE_MAX_TOKENS
        self.base_url = (base_url or settings.CLAUDE_BASE_URL).rstrip("/")
        self.temperature = temperature if temperature is not None else settings.AI_TEMPERATURE

    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def _payload(self, prompt: str, stream: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if stream:
            payload["stream"] = True
        return payload

    async def complete(self, prompt: str, request: AIRequest) -> str:
        async with self.client() as client:
            response = await client.post(
                f"{self.base_url}/messages", headers=self.headers, json=self._payload(prompt)
            )
            await self.check_response(response)
            blocks = response.json().get("content") or []
            return "".join(block.get("text", "") for block in blocks if block.get("type") == "text")

    async def stream_text(self, prompt: str, request: AIRequest) -> AsyncIterator[str]:
        async with self.client() as client:
            async with client.stream(
                "POST", f"{self.base_url}/messages", headers=self.headers, json=self._payload(prompt, stream=True)
            ) as response:
                await self.check_response(response)
                async for data in iter_sse_data(response):
                    try:
                        event = json.loads(data)
                    except ValueError:
                        logger.warning(f"Skipping malformed Claude stream event: {data[:200]}")
                        continue
                    if event.get("type") == "content_block_delta":
                        yield event.get("delta", {}).get("text", "")
                    elif event.get("type") == "error":
                        raise RuntimeError(f"claude stream error: {event.get('error', {}).get('message')}")
