"""Provider lookup and default selection"""
import logging
from typing import AsyncIterator, Dict, List, Optional

from ..config import settings
from .base import AIProvider, AIRequest
from .claude import ClaudeProvider
from .eren import ErenProvider
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

DEFAULT_ORDER = ("gemini", "claude", "openai", "ollama", "eren")


class UnconfiguredProvider(AIProvider):
    """Stand-in when no provider is configured; every answer is an error"""

    name = "none"

    def is_configured(self) -> bool:
        return False

    async def complete(self, prompt: str, request: AIRequest) -> str:
        raise RuntimeError("No AI providers are configured")

    def stream_text(self, prompt: str, request: AIRequest) -> AsyncIterator[str]:
        raise RuntimeError("No AI providers are configured")


class AIProviderFactory:
    """Resolves providers by name"""

    def __init__(self, providers: Optional[List[AIProvider]] = None, default_name: Optional[str] = None):
        if providers is None:
            providers = [GeminiProvider(), ClaudeProvider(), OpenAIProvider(), OllamaProvider(), ErenProvider()]
        self.providers: Dict[str, AIProvider] = {provider.name: provider for provider in providers}
        self.default_name = default_name

    def get_provider(self, name: Optional[str] = None) -> AIProvider:
        """
        Provider by name; unknown or unconfigured names fall back to the default.
        """
        if name:
            provider = self.providers.get(name.lower())
            if provider is not None and provider.is_configured():
                return provider
            logger.warning(f"Provider '{name}' is unknown or not configured, using default")
        return self.get_default_provider()

    def get_default_provider(self) -> AIProvider:
        """First configured provider, preferring the configured default name"""
        order = list(DEFAULT_ORDER)
        if self.default_name in self.providers:
            order = [self.default_name] + [name for name in order if name != self.default_name]
        for name in order:
            provider = self.providers.get(name)
            if provider is not None and provider.is_configured():
                return provider
        logger.error("No AI providers configured!")
        return UnconfiguredProvider()

    def available_providers(self) -> List[str]:
        return [name for name in DEFAULT_ORDER if name in self.providers and self.providers[name].is_configured()]

    def has_configured_provider(self) -> bool:
        return bool(self.available_providers())


_factory: Optional[AIProviderFactory] = None


def get_provider_factory() -> AIProviderFactory:
    """Get or create the global provider factory"""
    global _factory
    if _factory is None:
        _factory = AIProviderFactory(default_name=settings.DEFAULT_AI_PROVIDER)
    return _factory
