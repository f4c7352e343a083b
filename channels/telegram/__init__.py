"""Telegram transport: aiogram long-polling bot driving the wizards."""

from channels.telegram.transport import TelegramTransport, create_bot

__all__ = ["TelegramTransport", "create_bot"]
