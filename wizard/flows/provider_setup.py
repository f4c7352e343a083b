"""provider_setup wizard: pick the AI provider, then an API key or an Ollama model."""

import logging
from typing import Any, Callable, Mapping, Protocol

from tunebot.config.models import LLM_KEYS, LLMView
from wizard import validators
from wizard.graph import (
    Choice,
    Reply,
    StepDefinition,
    StepGraph,
    StepResult,
    advance,
    jump_to,
    terminate,
)

logger = logging.getLogger(__name__)

PROVIDER_SETUP = "provider_setup"

PROVIDERS = (
    Choice("🤖 OpenAI", "openai"),
    Choice("🔍 Google", "google"),
    Choice("🦙 Ollama", "ollama"),
)

# Remote providers need a key and come with a sensible model.
REMOTE_DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "google": "gemini-2.0-flash",
}

SETUP_COMPLETE = "🎉 Setup complete! Use /tune to configure the browser."


class Installer(Protocol):
    async def install(self, model: str) -> str: ...


def _label(provider: str) -> str:
    return next((c.label for c in PROVIDERS if c.value == provider), provider)


def build_provider_setup(
    installer: Installer, current: Callable[[], LLMView] | None = None
) -> StepGraph:
    """current returns the stored LLM settings; re-picking the stored provider keeps its model."""

    async def on_provider(provider: str, acc: Mapping[str, Any]) -> StepResult:
        reply = f"✅ You selected: *{_label(provider)}*"
        if provider in REMOTE_DEFAULT_MODELS:
            if current is not None and current().provider == provider:
                return StepResult(jump_to("api_key"), reply, {"provider": provider})
            return StepResult(
                jump_to("api_key"),
                reply,
                {
                    "provider": provider,
                    "model": REMOTE_DEFAULT_MODELS[provider],
                    "baseUrl": None,
                },
            )
        return StepResult(jump_to("model"), reply, {"provider": provider})

    async def on_api_key(api_key: str, acc: Mapping[str, Any]) -> StepResult:
        return StepResult(
            terminate(commit=True),
            f"✅ API key saved successfully.\n\n{SETUP_COMPLETE}",
            {"apiKey": api_key},
        )

    async def on_model(model: str, acc: Mapping[str, Any]) -> StepResult:
        return StepResult(advance(), f"✅ Model *{model}* selected.", {"model": model})

    async def on_install(_: Any, acc: Mapping[str, Any]) -> StepResult:
        model = acc["model"]
        outcome = await installer.install(model)
        logger.info("Ollama model %s: %s", model, outcome)
        return StepResult(
            terminate(commit=True),
            f"🎉 Model *{model}* {outcome}\n\n{SETUP_COMPLETE}",
        )

    steps = [
        StepDefinition(
            id="provider",
            prompt=Reply(
                "👋 *Welcome* to the AI-powered browser management system!\n\n"
                "Please choose your AI provider:",
                PROVIDERS,
            ),
            validator=validators.choice_of(*(c.value for c in PROVIDERS)),
            handler=on_provider,
            branches=frozenset({"api_key", "model"}),
        ),
        StepDefinition(
            id="api_key",
            prompt=Reply("🔑 Please enter your *API key* for this provider:"),
            validator=validators.text(message="⚠️ The API key cannot be empty. Try again."),
            handler=on_api_key,
        ),
        StepDefinition(
            id="model",
            prompt=Reply("🔑 Please enter your *Ollama model* (e.g., qwen3:0.6b):"),
            validator=validators.text(message="⚠️ The model name cannot be empty. Try again."),
            handler=on_model,
            next="install",
        ),
        StepDefinition(
            id="install",
            prompt=lambda acc: Reply(f"⬇️ Installing Ollama model *{acc['model']}*..."),
            handler=on_install,
            auto=True,
        ),
    ]
    return StepGraph(
        PROVIDER_SETUP,
        entry="provider",
        steps=steps,
        owns=LLM_KEYS,
    )
