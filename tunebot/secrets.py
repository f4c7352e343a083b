"""Secret lookup (bot token) via the OS keyring with environment fallback."""

import asyncio
import logging
import os

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)
SERVICE_NAME = "tunebot"


async def get_secret(name: str) -> str | None:
    """Resolve secret: keyring -> os.environ. Keyring I/O runs off the event loop."""
    try:
        value = await asyncio.to_thread(keyring.get_password, SERVICE_NAME, name)
        if value:
            return value.strip()
    except KeyringError:
        logger.debug("keyring lookup failed for %s, falling back to env", name)
    value = os.environ.get(name)
    return value.strip() if value else None
