from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Literal

StateName = Literal[
    "awaiting_lesson_details",
    "broadcast_started",
    "broadcast_method_selected",
    "broadcast_awaiting_content",
    "broadcast_awaiting_confirmation",
]


@dataclass(frozen=True)
class ConversationState:
    """Per-user step in a multi-message flow (lesson entry or broadcast wizard)."""

    name: StateName
    week_type: str | None = None
    day: str | None = None
    method: str | None = None
    target_type: str | None = None
    content_message_id: int | None = None
    content_chat_id: int | None = None

    def evolve(self, **changes) -> ConversationState:
        return replace(self, **changes)


@dataclass
class _Entry:
    state: ConversationState
    expires_at: datetime | None = field(default=None)


class StateStore:
    def __init__(
        self,
        *,
        default_ttl_seconds: int | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._default_ttl = default_ttl_seconds
        self._now_provider = now_provider or (lambda: datetime.now(timezone.utc))
        self._items: dict[int, _Entry] = {}

    def get(self, user_id: int) -> ConversationState | None:
        entry = self._items.get(user_id)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._now_provider():
            self._items.pop(user_id, None)
            return None
        return entry.state

    def set(self, user_id: int, state: ConversationState, *, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = None
        if ttl is not None and ttl > 0:
            expires_at = self._now_provider() + timedelta(seconds=ttl)
        self._items[user_id] = _Entry(state=state, expires_at=expires_at)

    def delete(self, user_id: int) -> None:
        self._items.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._items)
