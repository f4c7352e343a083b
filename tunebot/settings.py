"""Load application settings from config/settings.yaml.

These are process settings (paths, logging, bot access), not the tuned
configuration document, which lives in the ConfigStore.
"""

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_DEFAULTS: dict[str, Any] = {
    "config_store": {
        "path": "data/config.json",
        "poll_interval": 1.0,
    },
    "logging": {
        "file": "data/logs/tunebot.log",
        "level": "INFO",
        "log_to_console": True,
        "max_bytes": 10485760,  # 10 MB
        "backup_count": 3,
        "levels": {
            "aiogram": "WARNING",
            "httpx": "WARNING",
        },
    },
    "telegram": {
        "token_secret": "TELEGRAM_BOT_TOKEN",
        "allowed_chat_id": None,
        "polling_timeout": 30,
    },
    "ollama": {
        "base_url": "http://localhost:11434",
        "pull_timeout": 1800.0,
    },
    "browser": {
        "autostart": False,
        "screenshot_dir": "data/screenshots",
    },
}

_cached: dict[str, Any] | None = None


def _merged(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Return base with overlay applied section by section. None values keep the default."""
    out = dict(base)
    for key, value in overlay.items():
        if value is None:
            continue
        current = out.get(key)
        out[key] = _merged(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return out


def get_default_settings() -> dict[str, Any]:
    return copy.deepcopy(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Look up 'section.key' in a settings dict; default when any part is missing."""
    node: Any = settings
    for key in path.split("."):
        try:
            node = node[key]
        except (KeyError, TypeError):
            return default
    return node


def reload_settings() -> None:
    """Forget the cached settings; the next load_settings() reads the file again."""
    global _cached
    _cached = None


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, OSError) as e:
        logger.warning("Ignoring unreadable %s, using defaults: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def load_settings(config_dir: Path | None = None) -> dict[str, Any]:
    """Settings from <config_dir>/settings.yaml over the defaults, cached after the first call."""
    global _cached
    if _cached is None:
        base = config_dir or Path(__file__).resolve().parent.parent / "config"
        _cached = _merged(get_default_settings(), _read_yaml(base / "settings.yaml"))
    return _cached
