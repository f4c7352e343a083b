"""LLMManager: keeps a Model in sync with the LLM projection."""

import logging
from typing import Any

from tunebot.config.bus import ConfigBus, Subscription
from tunebot.config.models import LLMView
from tunebot.config.store import ConfigStore
from tunebot.errors import InitializationFault
from tunebot.llm.factory import ProviderFactory, default_factory

logger = logging.getLogger(__name__)


class LLMManager:
    """Rebuilds the model on every delivered LLM projection.

    If a projection cannot be applied the previous model stays in service;
    the manager never swaps in an unconfigured client.
    """

    def __init__(
        self,
        store: ConfigStore,
        bus: ConfigBus,
        factory: ProviderFactory | None = None,
    ) -> None:
        self._store = store
        self._bus = bus
        self._factory = factory or default_factory()
        self._model: Any = None
        self._view: LLMView | None = None
        self._subscription: Subscription | None = None
        self.last_fault: InitializationFault | None = None

    @property
    def view(self) -> LLMView | None:
        """Projection the current model was built from."""
        return self._view

    @property
    def model(self) -> Any:
        if self._model is None:
            raise InitializationFault("Model not initialized")
        return self._model

    async def start(self) -> None:
        await self._store.wait_until_ready()
        self.apply(self._store.get_llm_view())
        self._subscription = self._bus.subscribe_llm(self._on_change, "llm_manager")

    async def stop(self) -> None:
        if self._subscription:
            self._subscription.unsubscribe()
            self._subscription = None

    def apply(self, view: LLMView) -> bool:
        """Build a model for view. Returns False (and keeps the old model) on failure."""
        try:
            model = self._factory.create(view)
        except InitializationFault as e:
            self.last_fault = e
            logger.error("Failed to initialize model: %s", e)
            return False
        self._model = model
        self._view = view
        self.last_fault = None
        logger.info(
            "Model initialized with provider: %s, model: %s", view.provider, view.model
        )
        return True

    async def _on_change(self, view: LLMView) -> None:
        logger.info("LLM configuration changed, reinitializing model...")
        self.apply(view)
