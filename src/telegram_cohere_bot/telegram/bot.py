from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from telegram import Bot, BotCommand, CallbackQuery, Update
from telegram.error import TelegramError

from telegram_cohere_bot.core.dialog import ChatSession, TextGenerator
from telegram_cohere_bot.core.session_registry import SessionRegistry

POLL_TIMEOUT_SECONDS = 30
POLL_RETRY_DELAY_SECONDS = 5.0
ALLOWED_UPDATES = [Update.MESSAGE, Update.EDITED_MESSAGE, Update.CALLBACK_QUERY]
BOT_COMMANDS = (
    BotCommand("start", "Activate the bot."),
    BotCommand("generate", "Generate an answer."),
)
logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class BotConfig:
    """Runtime settings for Telegram transport and text generation."""

    token: str
    cohere_api_key: str
    model: str
    poll_timeout: int = POLL_TIMEOUT_SECONDS
    retry_delay: float = POLL_RETRY_DELAY_SECONDS


class ChatRequiredError(ValueError):
    """Raised when a Telegram update does not include a chat object."""


class TelegramBridge:
    """Long-polls Telegram and routes every update to its chat session."""

    def __init__(
        self,
        *,
        config: BotConfig,
        bot: Bot,
        registry: SessionRegistry,
        generator_factory: Callable[[], TextGenerator],
    ) -> None:
        self._config = config
        self._bot = bot
        self._registry = registry
        self._generator_factory = generator_factory
        self._tasks: set[asyncio.Task[None]] = set()

    def resolve_session(self, chat_id: int) -> ChatSession | None:
        try:
            return self._registry.get_or_create(chat_id, self._new_session)
        except Exception:
            logger.exception("Failed to create session for chat %s, dropping update", chat_id)
            return None

    def _new_session(self, chat_id: int) -> ChatSession:
        session = ChatSession(chat_id=chat_id, transport=self._bot, generator=self._generator_factory())
        logger.info("Created session for chat %s", chat_id)
        return session

    async def on_update(self, update: Update) -> None:
        try:
            chat_id = self._chat_id(update)
        except ChatRequiredError:
            logger.debug("Dropping update %s without chat", update.update_id)
            return

        session = self.resolve_session(chat_id)
        if session is None:
            return

        if update.callback_query is not None:
            # Awaiting here would let a later update of this chat take the session lock first.
            self._spawn(self._answer_callback(update.callback_query))

        try:
            await session.handle(self.extract_payload(update))
        except Exception:
            logger.exception("Unhandled error while processing update for chat %s", chat_id)

    async def register_commands(self) -> None:
        try:
            await self._bot.set_my_commands(BOT_COMMANDS)
        except TelegramError as exc:
            logger.warning("Could not register bot commands: %s", exc)

    async def poll_once(self, offset: int | None) -> int | None:
        """Fetch one batch of updates and dispatch each of them as a task.

        Returns the offset to use for the next call. On failure the error is
        logged and the call sleeps ``retry_delay`` before returning the
        unchanged offset.
        """
        try:
            updates = await self._bot.get_updates(
                offset=offset,
                timeout=self._config.poll_timeout,
                allowed_updates=ALLOWED_UPDATES,
            )
        except Exception:
            logger.exception("Error polling updates, retrying in %.0f seconds", self._config.retry_delay)
            await asyncio.sleep(self._config.retry_delay)
            return offset

        for update in updates:
            offset = update.update_id + 1
            self._spawn(self.on_update(update))
        return offset

    async def run(self) -> None:
        async with self._bot:
            await self.register_commands()
            logger.info("Polling for updates")
            offset: int | None = None
            while True:
                offset = await self.poll_once(offset)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        # Tasks start in creation order, so per-session locks are taken in arrival order.
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _answer_callback(query: CallbackQuery) -> None:
        try:
            await query.answer()
        except TelegramError as exc:
            logger.warning("Could not answer callback query: %s", exc)

    @staticmethod
    def extract_payload(update: Update) -> str:
        message = update.message
        if message is not None and message.text:
            return message.text
        edited = update.edited_message
        if edited is not None and edited.text:
            return edited.text
        query = update.callback_query
        if query is not None and query.data:
            return query.data
        return ""

    @staticmethod
    def _chat_id(update: Update) -> int:
        chat = update.effective_chat
        if chat is None:
            raise ChatRequiredError
        return chat.id


def build_bot(config: BotConfig) -> Bot:
    return Bot(token=config.token)


def run_polling(bridge: TelegramBridge) -> int:
    try:
        asyncio.run(bridge.run())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


def make_config(*, token: str, cohere_api_key: str, model: str) -> BotConfig:
    return BotConfig(token=token, cohere_api_key=cohere_api_key, model=model)
