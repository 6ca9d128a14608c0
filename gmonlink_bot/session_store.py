"""
session_store.py — Per-user state shared between conversations.

Three stores are kept per process:
  in_conversation — user is inside a flow (suppresses other handlers)
  active_project  — project_id the user is currently working on
  project         — last project row created by the user

They are handed to the bot through ``Application.bot_data`` instead of
living as module globals, so tests can use a fresh set each time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class SessionStore:
    """Key/value store keyed by Telegram user id."""

    def get(self, user_id: int, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, user_id: int, value: Any) -> None:
        raise NotImplementedError

    def delete(self, user_id: int) -> None:
        raise NotImplementedError

    def __contains__(self, user_id: int) -> bool:
        return self.get(user_id) is not None


class InMemorySessionStore(SessionStore):
    def __init__(self, initial: Optional[Dict[int, Any]] = None) -> None:
        self._data: Dict[int, Any] = dict(initial or {})

    def get(self, user_id: int, default: Any = None) -> Any:
        return self._data.get(user_id, default)

    def set(self, user_id: int, value: Any) -> None:
        self._data[user_id] = value

    def delete(self, user_id: int) -> None:
        self._data.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._data)


@dataclass
class SessionStores:
    in_conversation: SessionStore = field(default_factory=InMemorySessionStore)
    active_project: SessionStore = field(default_factory=InMemorySessionStore)
    project: SessionStore = field(default_factory=InMemorySessionStore)
