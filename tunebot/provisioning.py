"""Install-if-absent for local Ollama models via the Ollama HTTP API."""

import logging
from typing import Any

import httpx

from tunebot.config.store import ConfigStore
from tunebot.errors import ProvisioningFault
from tunebot.llm.providers.ollama import OLLAMA_DEFAULT_BASE_URL

logger = logging.getLogger(__name__)


def _same_model(wanted: str, installed: str) -> bool:
    if wanted == installed:
        return True
    # "qwen3" and "qwen3:latest" name the same model
    return ":" not in wanted and installed == f"{wanted}:latest"


class OllamaInstaller:
    """Provisioning collaborator: install(model) -> outcome message, or ProvisioningFault."""

    def __init__(
        self,
        store: ConfigStore | None = None,
        default_base_url: str = OLLAMA_DEFAULT_BASE_URL,
        pull_timeout: float = 1800.0,
        check_timeout: float = 10.0,
    ) -> None:
        self._store = store
        self._default_base_url = default_base_url
        self._pull_timeout = pull_timeout
        self._check_timeout = check_timeout

    def base_url(self) -> str:
        """Ollama host from the current document, else the configured default."""
        url = self._store.get().base_url if self._store else None
        return (url or self._default_base_url).rstrip("/")

    async def list_models(self) -> list[str]:
        url = self.base_url() + "/api/tags"
        async with httpx.AsyncClient(timeout=self._check_timeout) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            data = resp.json()
        models = data.get("models", []) if isinstance(data, dict) else []
        return [str(m.get("name", "")) for m in models if isinstance(m, dict)]

    async def install(self, model: str) -> str:
        """Pull model unless present. Returns a short outcome for the operator."""
        try:
            installed = await self.list_models()
            if any(_same_model(model, name) for name in installed):
                logger.info("Ollama model %s already installed", model)
                return "is already installed"

            logger.info("Pulling Ollama model %s from %s", model, self.base_url())
            async with httpx.AsyncClient(timeout=self._pull_timeout) as client:
                resp = await client.post(
                    self.base_url() + "/api/pull",
                    json={"model": model, "stream": False},
                )
            data: Any = resp.json() if resp.content else {}
            if resp.status_code >= 400:
                error = data.get("error") if isinstance(data, dict) else None
                raise ProvisioningFault(error or f"HTTP {resp.status_code}")
            if isinstance(data, dict) and data.get("error"):
                raise ProvisioningFault(str(data["error"]))
        except httpx.TimeoutException as e:
            raise ProvisioningFault("Connection to Ollama timed out") from e
        except httpx.HTTPError as e:
            raise ProvisioningFault(f"Ollama is not reachable: {e}") from e
        except ValueError as e:
            raise ProvisioningFault(f"Unexpected response from Ollama: {e}") from e
        logger.info("Ollama model %s installed", model)
        return "installed successfully!"
