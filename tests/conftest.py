"""Shared fixtures: config paths, store, bus and wizard test doubles."""

import json
from pathlib import Path
from typing import Any, Mapping

import pytest

from tunebot.config import ConfigBus, ConfigStore
from tunebot.errors import PersistFault, ProvisioningFault


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


class FakeStore:
    """Records committed fragments; fail_next makes the next commit raise PersistFault."""

    def __init__(self) -> None:
        self.commits: list[dict[str, Any]] = []
        self.fail_next = False

    async def commit(self, fragment: Mapping[str, Any]) -> None:
        if self.fail_next:
            self.fail_next = False
            raise PersistFault("disk full")
        self.commits.append(dict(fragment))


class FakeInstaller:
    """Scripted install(): each call pops the next outcome (str or exception)."""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes) or ["installed successfully!"]
        self.calls: list[str] = []

    async def install(self, model: str) -> str:
        self.calls.append(model)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, ProvisioningFault):
            raise outcome
        return outcome


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "config.json"


@pytest.fixture
async def bus() -> ConfigBus:
    b = ConfigBus()
    yield b
    await b.close()


@pytest.fixture
async def store(config_path: Path, bus: ConfigBus) -> ConfigStore:
    write_json(config_path, {"provider": "ollama", "model": "qwen3:0.6b"})
    s = ConfigStore(config_path, bus)
    await s.load()
    return s


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()
