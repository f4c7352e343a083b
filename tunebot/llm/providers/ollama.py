"""Local Ollama server. No credential; talks to Ollama's /v1 compatibility API."""

from agents import OpenAIChatCompletionsModel
from openai import AsyncOpenAI

from tunebot.config.models import LLMView

OLLAMA_DEFAULT_BASE_URL = "http://localhost:11434"


def openai_base_url(base_url: str | None) -> str:
    """Ollama host URL -> its OpenAI-compatible endpoint."""
    root = (base_url or OLLAMA_DEFAULT_BASE_URL).rstrip("/")
    return root if root.endswith("/v1") else f"{root}/v1"


class OllamaProvider:
    provider_type = "ollama"
    requires_api_key = False

    def build(self, view: LLMView) -> OpenAIChatCompletionsModel:
        client = AsyncOpenAI(
            base_url=openai_base_url(view.base_url),
            api_key="ollama",  # ignored by the server, required by the client
            timeout=120.0,
        )
        return OpenAIChatCompletionsModel(model=view.model, openai_client=client)
