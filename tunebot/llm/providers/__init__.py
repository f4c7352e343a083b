"""Built-in LLM providers."""

from tunebot.llm.providers.google import GoogleProvider
from tunebot.llm.providers.ollama import OllamaProvider
from tunebot.llm.providers.openai import OpenAIProvider

__all__ = ["GoogleProvider", "OllamaProvider", "OpenAIProvider"]
