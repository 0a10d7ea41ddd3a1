"""Dataclasses representing chat turns and remembered slot state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypedDict


class SlotState(TypedDict, total=False):
    """Small facts remembered across turns of a session."""

    service_reference: str
    language: str


@dataclass(slots=True)
class MessageTurn:
    """Single chat message stored in history."""

    session_id: str
    role: str
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ConversationSnapshot:
    """Recent turns of a session with its slot state."""

    session_id: str
    turns: list[MessageTurn]
    slots: SlotState

    def history(self) -> list[dict[str, str]]:
        return [{"role": turn.role, "content": turn.content} for turn in self.turns]
