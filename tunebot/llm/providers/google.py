"""Google Gemini through its OpenAI-compatible Chat Completions endpoint."""

from agents import OpenAIChatCompletionsModel
from openai import AsyncOpenAI

from tunebot.config.models import LLMView
from tunebot.errors import InitializationFault

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


class GoogleProvider:
    provider_type = "google"
    requires_api_key = True

    def build(self, view: LLMView) -> OpenAIChatCompletionsModel:
        if not view.api_key:
            raise InitializationFault("Google API key is required")
        client = AsyncOpenAI(
            base_url=view.base_url or GEMINI_OPENAI_BASE_URL,
            api_key=view.api_key,
            timeout=60.0,
        )
        return OpenAIChatCompletionsModel(model=view.model, openai_client=client)
