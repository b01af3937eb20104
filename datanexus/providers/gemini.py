"""Google Gemini provider"""
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..config import settings
from .base import AIRequest, HttpAIProvider
from .sse import iter_sse_data

logger = logging.getLogger(__name__)


def candidate_text(payload: Dict[str, Any]) -> str:
    """Concatenated text parts of the first candidate"""
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts = candidates[0].get("content", {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


class GeminiProvider(HttpAIProvider):
    """Gemini generateContent / streamGenerateContent"""

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(transport=transport)
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.temperature = temperature if temperature is not None else settings.AI_TEMPERATURE

    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "responseMimeType": "application/json",
            },
        }

    async def complete(self, prompt: str, request: AIRequest) -> str:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        async with self.client() as client:
            response = await client.post(url, params={"key": self.api_key}, json=self._payload(prompt))
            await self.check_response(response)
            return candidate_text(response.json())

    async def stream_text(self, prompt: str, request: AIRequest) -> AsyncIterator[str]:
        url = f"{self.base_url}/models/{self.model}:streamGenerateContent"
        async with self.client() as client:
            async with client.stream(
                "POST", url, params={"alt": "sse", "key": self.api_key}, json=self._payload(prompt)
            ) as response:
                await self.check_response(response)
                async for data in iter_sse_data(response):
                    try:
                        yield candidate_text(json.loads(data))
                    except ValueError:
                        logger.warning(f"Skipping malformed Gemini stream event: {data[:200]}")
