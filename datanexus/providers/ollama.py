"""Ollama provider through LangChain"""
import logging
from typing import AsyncIterator, Callable, Optional
from langchain_community.chat_models import ChatOllama

from ..config import settings
from .base import AIProvider, AIRequest

logger = logging.getLogger(__name__)


class OllamaProvider(AIProvider):
    """Local models served by Ollama"""

    name = "ollama"

    def __init__(
        self,
        host: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        llm_factory: Optional[Callable[..., ChatOllama]] = None
    ):
        self.host = host if host is not None else settings.OLLAMA_HOST
        self.model = model or settings.OLLAMA_MODEL
        self.temperature = temperature if temperature is not None else settings.AI_TEMPERATURE
        self.timeout = settings.AI_REQUEST_TIMEOUT_SECONDS
        self.llm_factory = llm_factory or ChatOllama

    def is_configured(self) -> bool:
        return bool(self.host)

    def get_llm(self) -> ChatOllama:
        """
        Get Ollama LLM instance in JSON mode.

        Returns:
            ChatOllama instance
        """
        return self.llm_factory(
            base_url=self.host,
            model=self.model,
            temperature=self.temperature,
            timeout=self.timeout,
            format="json",
        )

    async def complete(self, prompt: str, request: AIRequest) -> str:
        message = await self.get_llm().ainvoke(prompt)
        return message.content

    async def stream_text(self, prompt: str, request: AIRequest) -> AsyncIterator[str]:
        async for chunk in self.get_llm().astream(prompt):
            yield chunk.content
