"""AI-provider manager and provider variants."""

from tunebot.llm.factory import ProviderFactory, default_factory
from tunebot.llm.manager import LLMManager
from tunebot.llm.protocol import LLMProvider

__all__ = ["LLMManager", "LLMProvider", "ProviderFactory", "default_factory"]
