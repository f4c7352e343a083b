"""Entry point for the tunebot process: store, watcher, consumers, wizards, Telegram bot."""

import asyncio
import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from channels.telegram import TelegramTransport, create_bot
from tunebot import secrets
from tunebot.browser import BrowserManager
from tunebot.config import ChangeWatcher, ConfigBus, ConfigStore
from tunebot.errors import InitializationFault
from tunebot.llm import LLMManager
from tunebot.logging_config import setup_logging
from tunebot.provisioning import OllamaInstaller
from tunebot.settings import get_setting, load_settings
from wizard.engine import WizardEngine
from wizard.flows import build_browser_tuning, build_provider_setup

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def build_engine(store: ConfigStore, installer: OllamaInstaller) -> WizardEngine:
    engine = WizardEngine(store)
    engine.register(build_provider_setup(installer, store.get_llm_view))
    engine.register(build_browser_tuning())
    return engine


def build_installer(store: ConfigStore | None, settings: dict[str, Any]) -> OllamaInstaller:
    return OllamaInstaller(
        store,
        default_base_url=get_setting(settings, "ollama.base_url", "http://localhost:11434"),
        pull_timeout=float(get_setting(settings, "ollama.pull_timeout", 1800.0)),
    )


def store_path(settings: dict[str, Any]) -> Path:
    return _PROJECT_ROOT / get_setting(settings, "config_store.path", "data/config.json")


async def _build_transport(engine: WizardEngine, settings: dict[str, Any]) -> TelegramTransport | None:
    token_key = get_setting(settings, "telegram.token_secret", "TELEGRAM_BOT_TOKEN")
    token = await secrets.get_secret(token_key)
    if not token:
        logger.warning(
            "Telegram: no token found (keyring or env %s); bot disabled", token_key
        )
        return None
    try:
        bot = create_bot(token)
    except InitializationFault as e:
        logger.error("Telegram: %s", e)
        return None
    return TelegramTransport(
        engine,
        bot,
        allowed_chat_id=get_setting(settings, "telegram.allowed_chat_id"),
        polling_timeout=int(get_setting(settings, "telegram.polling_timeout", 30)),
    )


async def main_async() -> None:
    """Bootstrap: load -> watch -> consumers -> wizards -> poll; tear down in reverse."""
    settings = load_settings()
    setup_logging(_PROJECT_ROOT, settings)

    bus = ConfigBus()
    store = ConfigStore(store_path(settings), bus)
    await store.load()
    if store.last_fault:
        logger.warning("Running on defaults: %s", store.last_fault)

    watcher = ChangeWatcher(
        store, poll_interval=float(get_setting(settings, "config_store.poll_interval", 1.0))
    )
    llm = LLMManager(store, bus)
    browser = BrowserManager(
        store,
        bus,
        screenshot_dir=_PROJECT_ROOT / get_setting(settings, "browser.screenshot_dir", "data/screenshots"),
        autostart=bool(get_setting(settings, "browser.autostart", False)),
    )
    engine = build_engine(store, build_installer(store, settings))

    await watcher.start()
    await llm.start()
    await browser.start()
    transport = await _build_transport(engine, settings)
    try:
        if transport:
            await transport.run()
        else:
            await asyncio.Event().wait()
    except asyncio.CancelledError:
        pass
    finally:
        await browser.stop()
        await llm.stop()
        await watcher.stop()
        await bus.close()


def main() -> None:
    """Synchronous entry for the tunebot process."""
    load_dotenv(_PROJECT_ROOT / ".env")
    from agents import set_tracing_disabled

    set_tracing_disabled(True)
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        pass  # already handled in main_async via CancelledError


__all__ = ["build_engine", "build_installer", "main", "store_path"]
