"""Tests for ConfigStore: load, defaults, reload, commit."""

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import write_json
from tunebot.config import ConfigBus, ConfigDocument, ConfigStore
from tunebot.errors import ConfigLoadFault, ConfigReloadFault, PersistFault


def read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


class TestConfigStoreLoad:
    """Initial load and default filling."""

    @pytest.mark.asyncio
    async def test_partial_document_is_filled_with_defaults(self, config_path: Path) -> None:
        """LLM keys from disk, every browser key at its default."""
        write_json(config_path, {"provider": "ollama", "model": "qwen3:0.6b"})
        store = ConfigStore(config_path)
        await store.load()

        doc = store.get()
        assert doc.provider == "ollama"
        assert doc.model == "qwen3:0.6b"
        assert doc.browser_name == "chromium"
        assert doc.headless is True
        assert doc.viewport_width == 1280
        assert doc.viewport_height == 720
        assert doc.slow_mo == 500
        assert doc.record_video is False
        assert store.last_fault is None

    @pytest.mark.asyncio
    async def test_missing_file_uses_defaults(self, config_path: Path) -> None:
        """No backing file: full defaults and a recorded ConfigLoadFault."""
        store = ConfigStore(config_path)
        await store.load()
        assert store.get() == ConfigDocument()
        assert isinstance(store.last_fault, ConfigLoadFault)
        assert store.is_ready

    @pytest.mark.asyncio
    async def test_malformed_json_uses_defaults(self, config_path: Path) -> None:
        """Unparseable JSON never yields a partially-parsed document."""
        config_path.parent.mkdir(parents=True)
        config_path.write_text('{"provider": "openai", "model": ', encoding="utf-8")
        store = ConfigStore(config_path)
        await store.load()
        assert store.get() == ConfigDocument()
        assert isinstance(store.last_fault, ConfigLoadFault)

    @pytest.mark.asyncio
    async def test_non_object_document_uses_defaults(self, config_path: Path) -> None:
        """A JSON array at top level is rejected."""
        write_json(config_path, [1, 2, 3])
        store = ConfigStore(config_path)
        await store.load()
        assert store.get() == ConfigDocument()
        assert isinstance(store.last_fault, ConfigLoadFault)

    @pytest.mark.asyncio
    async def test_invalid_value_uses_defaults(self, config_path: Path) -> None:
        """A value outside its domain (negative delay) falls back in full."""
        write_json(config_path, {"model": "m", "slowMo": -5})
        store = ConfigStore(config_path)
        await store.load()
        assert store.get().model == ConfigDocument().model
        assert isinstance(store.last_fault, ConfigLoadFault)

    @pytest.mark.asyncio
    async def test_wait_until_ready_blocks_until_load(self, config_path: Path) -> None:
        """Readiness is signalled once the first load finishes."""
        store = ConfigStore(config_path)
        waiter = asyncio.create_task(store.wait_until_ready())
        await asyncio.sleep(0)
        assert not waiter.done()
        await store.load()
        await asyncio.wait_for(waiter, timeout=1)
        assert store.is_ready

    @pytest.mark.asyncio
    async def test_load_does_not_publish(self, config_path: Path, bus: ConfigBus) -> None:
        """Consumers read the initial state through get(), not the bus."""
        received: list[ConfigDocument] = []

        async def handler(doc: ConfigDocument) -> None:
            received.append(doc)

        bus.subscribe(handler, "listener")
        store = ConfigStore(config_path, bus)
        await store.load()
        await bus.flush()
        assert received == []

    @pytest.mark.asyncio
    async def test_projections(self, store: ConfigStore) -> None:
        """get_llm_view / get_browser_view carry only their partition."""
        llm = store.get_llm_view()
        browser = store.get_browser_view()
        assert llm.model == "qwen3:0.6b"
        assert browser.viewport == {"width": 1280, "height": 720}
        assert browser.video_dir is None


class TestConfigStoreReload:
    """Watcher-triggered reloads."""

    @pytest.mark.asyncio
    async def test_reload_is_idempotent(self, store: ConfigStore) -> None:
        """Two reloads of an unchanged file give equal Snapshots."""
        assert await store.reload() is True
        first = store.get()
        assert await store.reload() is True
        assert store.get() == first

    @pytest.mark.asyncio
    async def test_reload_publishes(self, store: ConfigStore, bus: ConfigBus, config_path: Path) -> None:
        """An external edit reaches subscribers."""
        received: list[ConfigDocument] = []

        async def handler(doc: ConfigDocument) -> None:
            received.append(doc)

        bus.subscribe(handler, "listener")
        write_json(config_path, {"provider": "ollama", "model": "llama3", "headless": False})
        await store.reload()
        await bus.flush()
        assert len(received) == 1
        assert received[0].model == "llama3"
        assert received[0].headless is False

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_previous_snapshot(
        self, store: ConfigStore, config_path: Path
    ) -> None:
        """Malformed edit after startup: previous Snapshot stays, fault recorded."""
        before = store.get()
        config_path.write_text("not json", encoding="utf-8")
        assert await store.reload() is False
        assert store.get() is before
        assert isinstance(store.last_fault, ConfigReloadFault)


class TestConfigStoreCommit:
    """Wizard commits."""

    @pytest.mark.asyncio
    async def test_commit_merges_and_persists(self, store: ConfigStore, config_path: Path) -> None:
        """Fragment keys overwrite, other keys survive, Snapshot is swapped."""
        doc = await store.commit({"browserName": "firefox", "slowMo": 120})
        assert doc.browser_name == "firefox"
        assert store.get() is doc
        assert read_json(config_path) == {
            "provider": "ollama",
            "model": "qwen3:0.6b",
            "browserName": "firefox",
            "slowMo": 120,
        }

    @pytest.mark.asyncio
    async def test_commit_preserves_unknown_keys(self, config_path: Path) -> None:
        """Keys the document model does not know are kept on disk."""
        write_json(config_path, {"model": "m", "notes": "hand-written"})
        store = ConfigStore(config_path)
        await store.load()
        await store.commit({"headless": False})
        assert read_json(config_path)["notes"] == "hand-written"

    @pytest.mark.asyncio
    async def test_commit_merges_over_disk_state(self, store: ConfigStore, config_path: Path) -> None:
        """An external edit made after the last reload is not lost."""
        write_json(config_path, {"provider": "ollama", "model": "edited-outside"})
        await store.commit({"headless": False})
        assert store.get().model == "edited-outside"
        assert read_json(config_path)["model"] == "edited-outside"

    @pytest.mark.asyncio
    async def test_commit_creates_missing_file(self, config_path: Path) -> None:
        """Committing without a backing file writes the full document."""
        store = ConfigStore(config_path)
        await store.load()
        await store.commit({"provider": "ollama", "model": "qwen3:0.6b"})
        on_disk = read_json(config_path)
        assert on_disk["model"] == "qwen3:0.6b"
        assert on_disk["browserName"] == "chromium"
        assert ConfigDocument.model_validate(on_disk) == store.get()

    @pytest.mark.asyncio
    async def test_commit_publishes(self, store: ConfigStore, bus: ConfigBus) -> None:
        """Subscribers see the committed Snapshot."""
        received: list[ConfigDocument] = []

        async def handler(doc: ConfigDocument) -> None:
            received.append(doc)

        bus.subscribe(handler, "listener")
        await store.commit({"headless": False})
        await bus.flush()
        assert [d.headless for d in received] == [False]

    @pytest.mark.asyncio
    async def test_invalid_commit_raises_persist_fault(
        self, store: ConfigStore, config_path: Path
    ) -> None:
        """A fragment that breaks the document is refused; nothing changes."""
        before_doc = store.get()
        before_disk = read_json(config_path)
        with pytest.raises(PersistFault):
            await store.commit({"viewportWidth": 0})
        assert store.get() is before_doc
        assert read_json(config_path) == before_disk

    @pytest.mark.asyncio
    async def test_write_failure_raises_persist_fault(self, store: ConfigStore, bus: ConfigBus) -> None:
        """An I/O error surfaces as PersistFault and nothing is published."""
        received: list[ConfigDocument] = []

        async def handler(doc: ConfigDocument) -> None:
            received.append(doc)

        bus.subscribe(handler, "listener")
        before = store.get()
        with patch(
            "tunebot.config.store._write_atomic_json", side_effect=OSError("read-only")
        ):
            with pytest.raises(PersistFault, match="read-only"):
                await store.commit({"headless": False})
        await bus.flush()
        assert store.get() is before
        assert received == []

    @pytest.mark.asyncio
    async def test_commit_over_malformed_file_keeps_other_partition(self, config_path: Path) -> None:
        """A broken file on disk falls back to the last good Snapshot, not to defaults."""
        write_json(config_path, {"provider": "openai", "model": "gpt-4o", "apiKey": "sk-1"})
        store = ConfigStore(config_path)
        await store.load()
        before = store.get_llm_view()
        config_path.write_text("{broken", encoding="utf-8")
        assert await store.reload() is False

        await store.commit({"browserName": "firefox"})
        assert store.get_llm_view() == before
        assert store.get_browser_view().browser_name == "firefox"
        on_disk = read_json(config_path)
        assert on_disk["apiKey"] == "sk-1"
        assert on_disk["model"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_invalid_key_outside_fragment_does_not_block_commit(
        self, store: ConfigStore, config_path: Path
    ) -> None:
        """A bad external value in the other partition is replaced by the Snapshot's value."""
        write_json(config_path, {"provider": "ollama", "model": "qwen3:0.6b", "slowMo": "fast"})
        assert await store.reload() is False

        doc = await store.commit({"provider": "openai", "apiKey": "sk-2", "baseUrl": None})
        assert doc.provider == "openai"
        assert doc.slow_mo == 500
        on_disk = read_json(config_path)
        assert on_disk["slowMo"] == 500
        assert on_disk["apiKey"] == "sk-2"

    @pytest.mark.asyncio
    async def test_invalid_fragment_reason_is_reported(self, store: ConfigStore) -> None:
        """PersistFault names the offending key."""
        with pytest.raises(PersistFault, match="viewportWidth"):
            await store.commit({"viewportWidth": -5})
