"""Latest-value publish/subscribe for configuration Snapshots.

No history and no replay: a subscriber only sees Snapshots published after it
subscribed, and a Snapshot not yet delivered is superseded by a newer one.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from tunebot.config.models import BrowserView, ConfigDocument, LLMView

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[None]]
Projection = Callable[[ConfigDocument], Any]


class _Subscriber:
    """One delivery slot plus the task draining it."""

    def __init__(self, subscriber_id: str, handler: Handler, project: Projection | None) -> None:
        self.subscriber_id = subscriber_id
        self.handler = handler
        self.project = project
        self.pending: ConfigDocument | None = None
        self.wake = asyncio.Event()
        self.idle = asyncio.Event()
        self.idle.set()
        self.task: asyncio.Task[None] | None = None


class Subscription:
    """Handle returned by ConfigBus.subscribe()."""

    def __init__(self, bus: "ConfigBus", subscriber: _Subscriber) -> None:
        self._bus = bus
        self._subscriber = subscriber

    @property
    def subscriber_id(self) -> str:
        return self._subscriber.subscriber_id

    def unsubscribe(self) -> None:
        self._bus._remove(self._subscriber)


class ConfigBus:
    """In-process fan-out of Snapshots. Each subscriber gets its own delivery task,
    so a slow or failing handler never holds back another subscriber."""

    def __init__(self) -> None:
        self._subscribers: list[_Subscriber] = []

    def subscribe(
        self,
        handler: Handler,
        subscriber_id: str,
        project: Projection | None = None,
    ) -> Subscription:
        """Register handler. Must be called with a running event loop.

        project maps each Snapshot to the value passed to handler (default: the Snapshot).
        """
        sub = _Subscriber(subscriber_id, handler, project)
        sub.task = asyncio.create_task(
            self._deliver_loop(sub), name=f"config_bus:{subscriber_id}"
        )
        self._subscribers.append(sub)
        logger.debug("ConfigBus: %s subscribed", subscriber_id)
        return Subscription(self, sub)

    def subscribe_llm(
        self, handler: Callable[[LLMView], Awaitable[None]], subscriber_id: str
    ) -> Subscription:
        return self.subscribe(handler, subscriber_id, ConfigDocument.llm_view)

    def subscribe_browser(
        self, handler: Callable[[BrowserView], Awaitable[None]], subscriber_id: str
    ) -> Subscription:
        return self.subscribe(handler, subscriber_id, ConfigDocument.browser_view)

    def publish(self, snapshot: ConfigDocument) -> None:
        """Hand snapshot to every subscriber's slot. Never blocks."""
        for sub in list(self._subscribers):
            if sub.pending is not None:
                logger.debug("ConfigBus: %s superseded an undelivered snapshot", sub.subscriber_id)
            sub.pending = snapshot
            sub.idle.clear()
            sub.wake.set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def flush(self) -> None:
        """Wait until every subscriber has delivered its pending Snapshot."""
        await asyncio.gather(*(sub.idle.wait() for sub in list(self._subscribers)))

    async def close(self) -> None:
        """Cancel all delivery tasks."""
        for sub in list(self._subscribers):
            await self._stop(sub)
        self._subscribers.clear()

    def _remove(self, sub: _Subscriber) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)
        if sub.task:
            sub.task.cancel()
        sub.idle.set()
        logger.debug("ConfigBus: %s unsubscribed", sub.subscriber_id)

    async def _stop(self, sub: _Subscriber) -> None:
        if sub.task:
            sub.task.cancel()
            try:
                await sub.task
            except asyncio.CancelledError:
                pass
            sub.task = None
        sub.idle.set()

    async def _deliver_loop(self, sub: _Subscriber) -> None:
        while True:
            await sub.wake.wait()
            sub.wake.clear()
            snapshot, sub.pending = sub.pending, None
            if snapshot is not None:
                try:
                    value = sub.project(snapshot) if sub.project else snapshot
                    await sub.handler(value)
                except Exception as e:
                    logger.exception(
                        "ConfigBus handler %s failed: %s", sub.subscriber_id, e
                    )
            if sub.pending is None:
                sub.idle.set()
