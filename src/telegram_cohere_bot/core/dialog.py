from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Protocol

from telegram.error import TelegramError

START_COMMAND = "/start"
GENERATE_COMMAND = "/generate"
TYPING_ACTION = "typing"
TELEGRAM_SAFE_TEXT_LIMIT = 4000

GREETING_TEXT = "Hello! Send /generate to create some text."
PROMPT_REQUEST_TEXT = "Please enter a prompt:"
GENERATION_FAILED_TEXT = "Sorry, something went wrong while generating a response. Please try again."

logger = logging.getLogger(__name__)


class DialogState(enum.Enum):
    IDLE = "idle"
    AWAITING_PROMPT = "awaiting_prompt"


class DialogAction(enum.Enum):
    NONE = "none"
    GREET = "greet"
    REQUEST_PROMPT = "request_prompt"
    GENERATE = "generate"


class Transport(Protocol):
    """Outbound calls a session makes; ``telegram.Bot`` satisfies it."""

    async def send_message(self, chat_id: int, text: str) -> object: ...

    async def send_chat_action(self, chat_id: int, action: str) -> object: ...


class TextGenerator(Protocol):
    """Turns a prompt into generated text, raising on failure."""

    async def generate(self, prompt: str) -> str: ...


def transition(state: DialogState, text: str) -> tuple[DialogAction, DialogState]:
    """Return the action to run and the next state for one inbound payload.

    Commands are recognised by prefix only, so ``/start@my_bot`` counts as
    ``/start``. While a prompt is awaited every non-empty payload is the
    prompt, commands included.
    """
    if state is DialogState.AWAITING_PROMPT:
        if not text:
            return DialogAction.NONE, DialogState.AWAITING_PROMPT
        return DialogAction.GENERATE, DialogState.IDLE

    if text.startswith(START_COMMAND):
        return DialogAction.GREET, DialogState.IDLE
    if text.startswith(GENERATE_COMMAND):
        return DialogAction.REQUEST_PROMPT, DialogState.AWAITING_PROMPT
    return DialogAction.NONE, DialogState.IDLE


def split_text(text: str, *, limit: int = TELEGRAM_SAFE_TEXT_LIMIT) -> list[str]:
    """Cut outgoing text into chunks Telegram accepts, breaking at newlines when possible.

    Used by ``ChatSession._send``; generated answers can exceed one message.
    """
    if not text:
        return [""]
    chunks: list[str] = []
    pending = text
    while pending:
        if len(pending) <= limit:
            chunks.append(pending)
            break
        split_at = pending.rfind("\n", 0, limit)
        if split_at <= 0:
            split_at = limit
        chunks.append(pending[:split_at])
        pending = pending[split_at:]
    return chunks


@dataclass(slots=True)
class ChatSession:
    """Dialog state for one Telegram chat."""

    chat_id: int
    transport: Transport
    generator: TextGenerator
    state: DialogState = DialogState.IDLE
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    async def handle(self, text: str) -> DialogState:
        async with self.lock:
            action, next_state = transition(self.state, text)
            # Stored before acting so a failed send never leaves the chat stuck.
            self.state = next_state
            if action is DialogAction.GREET:
                await self._send(GREETING_TEXT)
            elif action is DialogAction.REQUEST_PROMPT:
                await self._send(PROMPT_REQUEST_TEXT)
            elif action is DialogAction.GENERATE:
                await self._generate(text)
            return self.state

    async def _generate(self, prompt: str) -> None:
        try:
            await self.transport.send_chat_action(chat_id=self.chat_id, action=TYPING_ACTION)
        except TelegramError as exc:
            logger.warning("Could not send typing indicator to chat %s: %s", self.chat_id, exc)

        try:
            reply = await self.generator.generate(prompt)
        except Exception:
            logger.exception("Generation failed for chat %s", self.chat_id)
            await self._send(GENERATION_FAILED_TEXT)
            return

        if not reply.strip():
            logger.warning("Generation for chat %s returned empty text", self.chat_id)
            await self._send(GENERATION_FAILED_TEXT)
            return
        await self._send(reply)

    async def _send(self, text: str) -> None:
        for chunk in split_text(text):
            await self.transport.send_message(chat_id=self.chat_id, text=chunk)
