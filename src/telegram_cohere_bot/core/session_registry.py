from __future__ import annotations

import threading
from collections.abc import Callable

from telegram_cohere_bot.core.dialog import ChatSession


class SessionRegistry:
    """In-memory registry holding at most one session per chat."""

    def __init__(self) -> None:
        self._sessions: dict[int, ChatSession] = {}
        self._lock = threading.Lock()

    def get_or_create(self, chat_id: int, factory: Callable[[int], ChatSession]) -> ChatSession:
        """Return the session for ``chat_id``, building it with ``factory`` if absent.

        A factory error propagates and nothing is stored for that chat.
        """
        with self._lock:
            session = self._sessions.get(chat_id)
            if session is None:
                session = factory(chat_id)
                self._sessions[chat_id] = session
            return session

    def get(self, chat_id: int) -> ChatSession | None:
        return self._sessions.get(chat_id)

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
