"""Run one wizard in the terminal: python -m wizard [provider|browser]."""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from tunebot.config import ConfigStore
from tunebot.logging_config import setup_logging
from tunebot.runner import build_engine, build_installer, store_path
from tunebot.settings import load_settings
from wizard.console import reset_terminal_for_input, run_console
from wizard.flows import BROWSER_TUNING, PROVIDER_SETUP

WIZARDS = {"provider": PROVIDER_SETUP, "browser": BROWSER_TUNING}

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


async def main_async(graph_id: str) -> None:
    settings = load_settings()
    # Prompts own the terminal; log to file only.
    settings = {**settings, "logging": {**settings["logging"], "log_to_console": False}}
    setup_logging(_PROJECT_ROOT, settings)

    store = ConfigStore(store_path(settings))
    await store.load()
    engine = build_engine(store, build_installer(store, settings))
    await run_console(engine, graph_id)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="python -m wizard", description=__doc__)
    parser.add_argument("wizard", nargs="?", choices=sorted(WIZARDS), default="provider")
    args = parser.parse_args(argv)

    load_dotenv(_PROJECT_ROOT / ".env")
    try:
        asyncio.run(main_async(WIZARDS[args.wizard]))
    except KeyboardInterrupt:
        print("\n\nSetup cancelled.")
        return 1
    finally:
        reset_terminal_for_input()
    return 0


if __name__ == "__main__":
    sys.exit(main())
