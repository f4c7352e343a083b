"""Configuration document: store, change watcher and latest-value bus."""

from tunebot.config.bus import ConfigBus, Subscription
from tunebot.config.models import (
    BROWSER_KEYS,
    LLM_KEYS,
    BrowserView,
    ConfigDocument,
    LLMView,
    RecordVideo,
)
from tunebot.config.store import ConfigStore
from tunebot.config.watcher import ChangeWatcher

__all__ = [
    "BROWSER_KEYS",
    "LLM_KEYS",
    "BrowserView",
    "ChangeWatcher",
    "ConfigBus",
    "ConfigDocument",
    "ConfigStore",
    "LLMView",
    "RecordVideo",
    "Subscription",
]
