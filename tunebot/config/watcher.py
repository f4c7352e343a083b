"""ChangeWatcher: polls the backing document and reloads the store on every change."""

import asyncio
import hashlib
import logging
import os
from pathlib import Path

from tunebot.config.store import ConfigStore

logger = logging.getLogger(__name__)

# (mtime_ns, size, content digest); None while the file does not exist
Signature = tuple[int, int, str] | None


def _signature(path: Path) -> Signature:
    """The digest catches same-size rewrites inside one coarse mtime tick."""
    try:
        st = os.stat(path)
        digest = hashlib.md5(path.read_bytes()).hexdigest()
    except FileNotFoundError:
        return None
    return (st.st_mtime_ns, st.st_size, digest)


class ChangeWatcher:
    """Every observed modification triggers an immediate store.reload().

    No debouncing: reload is a pure read-merge, so duplicate triggers are harmless.
    Reload failures keep the previous Snapshot (store policy).
    """

    def __init__(self, store: ConfigStore, poll_interval: float = 1.0) -> None:
        self._store = store
        self._poll_interval = poll_interval
        self._last: Signature = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Record the current file state and start polling."""
        self._last = await asyncio.to_thread(_signature, self._store.path)
        self._task = asyncio.create_task(self._poll_loop(), name="config_watcher")
        logger.info("Starting file watcher for %s", self._store.path.name)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("File watcher stopped")

    async def check_once(self) -> bool:
        """Poll once. Returns True if a change was seen (and a reload attempted)."""
        current = await asyncio.to_thread(_signature, self._store.path)
        if current == self._last:
            return False
        self._last = current
        logger.debug("File changed: %s", self._store.path)
        await self._store.reload()
        return True

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.check_once()
            except Exception as e:
                logger.exception("Config watcher iteration failed: %s", e)
