"""LLM provider contract. One implementation per provider tag."""

from typing import Any, Protocol, runtime_checkable

from tunebot.config.models import LLMView


@runtime_checkable
class LLMProvider(Protocol):
    """Builds an Agents-SDK compatible Model from the LLM projection."""

    provider_type: str  # matches LLMView.provider
    requires_api_key: bool

    def build(self, view: LLMView) -> Any:
        """Return a Model instance. Raise InitializationFault if view is unusable."""
        ...
