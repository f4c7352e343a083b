"""OpenAI provider. Uses the Responses API."""

from agents import OpenAIResponsesModel
from openai import AsyncOpenAI

from tunebot.config.models import LLMView
from tunebot.errors import InitializationFault


class OpenAIProvider:
    provider_type = "openai"
    requires_api_key = True

    def build(self, view: LLMView) -> OpenAIResponsesModel:
        if not view.api_key:
            raise InitializationFault("OpenAI API key is required")
        client = AsyncOpenAI(base_url=view.base_url, api_key=view.api_key, timeout=60.0)
        return OpenAIResponsesModel(model=view.model, openai_client=client)
