"""Telegram transport: aiogram long-polling bot that maps chats onto wizard sessions.

One session per chat. Text messages become text events, inline keyboard
presses become choice events, /cancel becomes a cancel event.
"""

import logging

from aiogram import Bot, Dispatcher, F
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ChatAction, ParseMode
from aiogram.filters import Command, CommandStart
from aiogram.types import (
    BotCommand,
    CallbackQuery,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Message,
)
from aiogram.utils.token import TokenValidationError, validate_token

from channels.telegram.formatting import md_to_tg_html, split_message
from tunebot.errors import InitializationFault, SessionNotFoundError
from wizard.engine import WizardEngine
from wizard.flows import BROWSER_TUNING, PROVIDER_SETUP
from wizard.graph import Choice, InputEvent, Reply

logger = logging.getLogger(__name__)

BOT_COMMANDS = (
    BotCommand(command="start", description="Set up the AI provider"),
    BotCommand(command="tune", description="Configure the browser"),
    BotCommand(command="cancel", description="Cancel the current wizard"),
)

NO_SESSION_TEXT = "ℹ️ No wizard is running. Use /start to set up the AI provider or /tune to configure the browser."
ERROR_TEXT = "⚠️ Something went wrong. Please try again."

# Keyboard rows hold at most this many buttons.
KEYBOARD_ROW_SIZE = 2


def create_bot(token: str) -> Bot:
    """Bot with HTML parse mode. Raises InitializationFault on a malformed token."""
    try:
        validate_token(token)
    except TokenValidationError as e:
        raise InitializationFault(f"Invalid Telegram bot token: {e}") from e
    return Bot(token=token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))


def build_keyboard(choices: tuple[Choice, ...]) -> InlineKeyboardMarkup | None:
    if not choices:
        return None
    buttons = [InlineKeyboardButton(text=c.label, callback_data=c.value) for c in choices]
    rows = [
        buttons[i : i + KEYBOARD_ROW_SIZE] for i in range(0, len(buttons), KEYBOARD_ROW_SIZE)
    ]
    return InlineKeyboardMarkup(inline_keyboard=rows)


class TelegramTransport:
    """Routes Telegram updates into the WizardEngine and renders replies."""

    def __init__(
        self,
        engine: WizardEngine,
        bot: Bot,
        allowed_chat_id: str | int | None = None,
        polling_timeout: int = 30,
    ) -> None:
        self._engine = engine
        self._bot = bot
        self._allowed_chat_id = str(allowed_chat_id) if allowed_chat_id else None
        self._polling_timeout = polling_timeout
        self._dp = Dispatcher()
        self._register(self._dp)

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dp

    def _register(self, dp: Dispatcher) -> None:
        dp.message.register(self.on_start, CommandStart())
        dp.message.register(self.on_tune, Command("tune"))
        dp.message.register(self.on_cancel, Command("cancel"))
        dp.message.register(self.on_text, F.text)
        dp.callback_query.register(self.on_callback)

    def is_allowed(self, chat_id: str) -> bool:
        if self._allowed_chat_id is None:
            return True
        return chat_id == self._allowed_chat_id

    # ------------------------------------------------------------------ #
    # Update handlers                                                      #
    # ------------------------------------------------------------------ #

    async def on_start(self, message: Message) -> None:
        await self.open(str(message.chat.id), PROVIDER_SETUP)

    async def on_tune(self, message: Message) -> None:
        await self.open(str(message.chat.id), BROWSER_TUNING)

    async def on_cancel(self, message: Message) -> None:
        await self.process(str(message.chat.id), InputEvent.cancel())

    async def on_text(self, message: Message) -> None:
        if not message.text:
            return
        await self.process(str(message.chat.id), InputEvent.text(message.text))

    async def on_callback(self, callback: CallbackQuery) -> None:
        await callback.answer()
        if not callback.data or callback.message is None:
            logger.warning("Callback without data or message ignored")
            return
        await self.process(str(callback.message.chat.id), InputEvent.choice(callback.data))

    # ------------------------------------------------------------------ #
    # Engine bridge                                                        #
    # ------------------------------------------------------------------ #

    async def open(self, chat_id: str, graph_id: str) -> Reply | None:
        if not self.is_allowed(chat_id):
            logger.warning("Ignoring chat %s (not allowed)", chat_id)
            return None
        await self._typing(chat_id)
        try:
            reply = await self._engine.start(chat_id, graph_id)
        except Exception as e:
            logger.exception("Failed to start %s for chat %s: %s", graph_id, chat_id, e)
            reply = Reply(ERROR_TEXT)
        await self.send(chat_id, reply)
        return reply

    async def process(self, chat_id: str, event: InputEvent) -> Reply | None:
        if not self.is_allowed(chat_id):
            logger.warning("Ignoring chat %s (not allowed)", chat_id)
            return None
        await self._typing(chat_id)
        try:
            reply = await self._engine.handle(chat_id, event)
        except SessionNotFoundError:
            reply = Reply(NO_SESSION_TEXT)
        except Exception as e:
            logger.exception("Wizard step failed for chat %s: %s", chat_id, e)
            reply = Reply(ERROR_TEXT)
        await self.send(chat_id, reply)
        return reply

    async def send(self, chat_id: str, reply: Reply) -> None:
        """Deliver reply; the keyboard goes on the last chunk."""
        parts = split_message(md_to_tg_html(reply.text)) if reply.text else []
        if not parts:
            return
        keyboard = build_keyboard(reply.choices)
        for i, part in enumerate(parts):
            last = i == len(parts) - 1
            try:
                await self._bot.send_message(
                    chat_id=chat_id,
                    text=part,
                    parse_mode=ParseMode.HTML,
                    reply_markup=keyboard if last else None,
                )
            except Exception as e:
                logger.exception("Failed to send message to %s: %s", chat_id, e)
                return

    async def _typing(self, chat_id: str) -> None:
        try:
            await self._bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
        except Exception as e:
            logger.debug("Typing action failed for %s: %s", chat_id, e)

    # ------------------------------------------------------------------ #
    # Lifecycle                                                            #
    # ------------------------------------------------------------------ #

    async def run(self) -> None:
        """Register the command menu and long-poll until cancelled."""
        try:
            await self._bot.set_my_commands(list(BOT_COMMANDS))
        except Exception as e:
            logger.warning("Could not register bot commands: %s", e)
        logger.info("Telegram transport polling (timeout=%ss)", self._polling_timeout)
        try:
            await self._dp.start_polling(
                self._bot,
                handle_signals=False,
                polling_timeout=self._polling_timeout,
                allowed_updates=["message", "callback_query"],
            )
        finally:
            await self.close()

    async def close(self) -> None:
        try:
            await self._bot.session.close()
        except Exception as e:
            logger.debug("Bot session close failed: %s", e)
