"""ConfigStore: owns the backing JSON document and the current Snapshot."""

import asyncio
import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from tunebot.config.bus import ConfigBus
from tunebot.config.models import BrowserView, ConfigDocument, LLMView
from tunebot.errors import (
    ConfigLoadFault,
    ConfigReloadFault,
    PersistFault,
    TunebotError,
)

logger = logging.getLogger(__name__)


def _read_raw(path: Path) -> dict[str, Any]:
    """Read and parse the backing document. Raises OSError or ValueError."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"top-level value must be an object, got {type(data).__name__}")
    return data


def _describe(e: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
    )


def _write_atomic_json(path: Path, data: dict[str, Any]) -> None:
    """Write JSON atomically via temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(suffix=".json", prefix="config_", dir=path.parent)
    try:
        with open(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        Path(tmp).replace(path)
    except Exception:
        Path(tmp).unlink(missing_ok=True)
        raise


class ConfigStore:
    """Loads, defaults, merges and persists the configuration document.

    All mutation (initial load, watcher reloads, wizard commits) goes through
    one lock, so completions are applied in order and the last write wins.
    """

    def __init__(self, path: Path, bus: ConfigBus | None = None) -> None:
        self._path = path
        self._bus = bus
        self._snapshot = ConfigDocument()
        self._ready = asyncio.Event()
        self._lock = asyncio.Lock()
        self.last_fault: TunebotError | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def wait_until_ready(self) -> None:
        """Suspend until the first load() has finished, successfully or not."""
        await self._ready.wait()

    def get(self) -> ConfigDocument:
        return self._snapshot

    def get_llm_view(self) -> LLMView:
        return self._snapshot.llm_view()

    def get_browser_view(self) -> BrowserView:
        return self._snapshot.browser_view()

    async def load(self) -> ConfigDocument:
        """Initial load. Any failure falls back to defaults in full."""
        async with self._lock:
            logger.info("Loading config file from %s", self._path)
            try:
                self._snapshot = await self._read_document()
                self.last_fault = None
                logger.info(
                    "Config loaded. Model: %s, Provider: %s",
                    self._snapshot.model,
                    self._snapshot.provider,
                )
            except (OSError, ValueError) as e:
                self.last_fault = ConfigLoadFault(f"{self._path}: {e}")
                self._snapshot = ConfigDocument()
                logger.error("Error loading config, using defaults: %s", e)
            finally:
                if not self._ready.is_set():
                    self._ready.set()
            return self._snapshot

    async def reload(self) -> bool:
        """Re-read after an external edit. On failure the previous Snapshot is kept.

        Returns True when a new Snapshot was published.
        """
        async with self._lock:
            try:
                snapshot = await self._read_document()
            except (OSError, ValueError) as e:
                self.last_fault = ConfigReloadFault(f"{self._path}: {e}")
                logger.error("Error reloading config, keeping previous: %s", e)
                return False
            self._snapshot = snapshot
            self.last_fault = None
            logger.debug("Config reloaded from %s", self._path)
            self._publish(snapshot)
            return True

    async def commit(self, fragment: Mapping[str, Any]) -> ConfigDocument:
        """Merge fragment over the current on-disk document, persist and publish.

        An unreadable document is replaced by the current Snapshot as the merge base.

        Raises PersistFault when the result is invalid or cannot be written; the
        in-memory Snapshot is then unchanged.
        """
        async with self._lock:
            try:
                current = await asyncio.to_thread(_read_raw, self._path)
            except (OSError, ValueError) as e:
                logger.warning("Unreadable %s, committing over the current Snapshot: %s", self._path, e)
                current = self._snapshot.to_disk()
            merged, snapshot = self._merge(current, dict(fragment))
            try:
                await asyncio.to_thread(_write_atomic_json, self._path, merged)
            except OSError as e:
                logger.error("Failed to write %s: %s", self._path, e)
                raise PersistFault(f"Could not write {self._path}: {e}") from e
            self._snapshot = snapshot
            logger.info("Config saved to %s (%s)", self._path, ", ".join(sorted(fragment)))
            self._publish(snapshot)
            return snapshot

    def _merge(
        self, current: dict[str, Any], fragment: dict[str, Any]
    ) -> tuple[dict[str, Any], ConfigDocument]:
        """Overlay fragment on current and validate.

        Invalid keys outside the fragment are taken from the current Snapshot,
        so a bad external edit in one partition never blocks commits to another.
        Raises PersistFault when the fragment itself is invalid.
        """
        merged = {**current, **fragment}
        try:
            return merged, ConfigDocument.model_validate(merged)
        except ValidationError as e:
            bad = {err["loc"][0] for err in e.errors() if err["loc"]}
            if not bad or bad & fragment.keys():
                raise PersistFault(f"Invalid configuration: {_describe(e)}") from e
            logger.warning("Keeping current values for invalid keys on disk: %s", sorted(bad))
        fallback = self._snapshot.to_disk()
        for key in bad:
            if key in fallback:
                merged[key] = fallback[key]
            else:
                merged.pop(key, None)
        try:
            return merged, ConfigDocument.model_validate(merged)
        except ValidationError as e:
            raise PersistFault(f"Invalid configuration: {_describe(e)}") from e

    async def _read_document(self) -> ConfigDocument:
        raw = await asyncio.to_thread(_read_raw, self._path)
        return ConfigDocument.model_validate(raw)

    def _publish(self, snapshot: ConfigDocument) -> None:
        if self._bus is not None:
            self._bus.publish(snapshot)
