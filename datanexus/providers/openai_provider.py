"""OpenAI chat completions provider"""
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..config import settings
from .base import AIRequest, HttpAIProvider
from .sse import iter_sse_data

logger = logging.getLogger(__name__)

STREAM_DONE = "[DONE]"


class OpenAIProvider(HttpAIProvider):
    """OpenAI /chat/completions in JSON mode"""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(transport=transport)
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.temperature = temperature if temperature is not None else settings.AI_TEMPERATURE

    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, prompt: str, stream: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
            "messages": [{"role": "user", "content": prompt}],
        }
        if stream:
            payload["stream"] = True
        return payload

    async def complete(self, prompt: str, request: AIRequest) -> str:
        async with self.client() as client:
            response = await client.post(
                f"{self.base_url}/chat/completions", headers=self.headers, json=self._payload(prompt)
            )
            await self.check_response(response)
            choices = response.json().get("choices") or []
            if not choices:
                return ""
            return choices[0].get("message", {}).get("content") or ""

    async def stream_text(self, prompt: str, request: AIRequest) -> AsyncIterator[str]:
        async with self.client() as client:
            async with client.stream(
                "POST", f"{self.base_url}/chat/completions", headers=self.headers,
                json=self._payload(prompt, stream=True)
            ) as response:
                await self.check_response(response)
                async for data in iter_sse_data(response):
                    if data == STREAM_DONE:
                        break
                    try:
                        choices = json.loads(data).get("choices") or []
                    except ValueError:
                        logger.warning(f"Skipping malformed OpenAI stream event: {data[:200]}")
                        continue
                    if choices:
                        yield choices[0].get("delta", {}).get("content") or ""
