"""Provider factory keyed on the provider tag."""

import logging
from typing import Any

from tunebot.config.models import LLMView
from tunebot.errors import InitializationFault
from tunebot.llm.protocol import LLMProvider
from tunebot.llm.providers import GoogleProvider, OllamaProvider, OpenAIProvider

logger = logging.getLogger(__name__)


class ProviderFactory:
    """Adding a provider means registering one more LLMProvider."""

    def __init__(self) -> None:
        self._providers: dict[str, LLMProvider] = {}

    def register(self, provider: LLMProvider) -> None:
        self._providers[provider.provider_type] = provider

    def get(self, provider_type: str) -> LLMProvider | None:
        return self._providers.get(provider_type)

    @property
    def provider_types(self) -> list[str]:
        return list(self._providers)

    def create(self, view: LLMView) -> Any:
        """Build a Model for view. All failures surface as InitializationFault."""
        provider = self._providers.get(view.provider)
        if provider is None:
            raise InitializationFault(f"Unsupported provider: {view.provider}")
        try:
            return provider.build(view)
        except InitializationFault:
            raise
        except Exception as e:
            raise InitializationFault(f"{view.provider}: {e}") from e


def default_factory() -> ProviderFactory:
    factory = ProviderFactory()
    for provider in (OpenAIProvider(), GoogleProvider(), OllamaProvider()):
        factory.register(provider)
    return factory
