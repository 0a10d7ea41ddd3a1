"""Conversation history store abstractions and SQLite implementation."""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Sequence

from .models import ConversationSnapshot, MessageTurn, SlotState

SLOT_COLUMNS = ("service_reference", "language")


class MemoryStore(ABC):
    """Abstract interface for reading and writing chat history."""

    @abstractmethod
    def append_turn(self, turn: MessageTurn) -> None:
        """Persist a single chat message."""

    @abstractmethod
    def fetch_recent_turns(self, session_id: str, limit: int = 10) -> Sequence[MessageTurn]:
        """Return the most recent turns for a session, oldest first."""

    @abstractmethod
    def load_snapshot(self, session_id: str, limit: int = 10) -> ConversationSnapshot:
        """Return recent turns and remembered slots."""

    @abstractmethod
    def upsert_slots(self, session_id: str, slots: SlotState) -> None:
        """Merge slot values into a session's remembered state."""


class SQLiteMemoryStore(MemoryStore):
    """SQLite-backed history. Pending confirmations are never written here."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    session_id TEXT PRIMARY KEY
                );

                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    metadata TEXT,
                    FOREIGN KEY (session_id) REFERENCES sessions (session_id)
                        ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS slots (
                    session_id TEXT PRIMARY KEY,
                    service_reference TEXT,
                    language TEXT,
                    FOREIGN KEY (session_id) REFERENCES sessions (session_id)
                        ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_messages_session
                    ON messages (session_id, id DESC);
                """
            )

    def append_turn(self, turn: MessageTurn) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO sessions(session_id) VALUES (?)",
                (turn.session_id,),
            )
            conn.execute(
                """
                INSERT INTO messages (session_id, role, content, created_at, metadata)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    turn.session_id,
                    turn.role,
                    turn.content,
                    turn.created_at.isoformat(),
                    json.dumps(turn.metadata, separators=(",", ":"), ensure_ascii=False),
                ),
            )

    def fetch_recent_turns(self, session_id: str, limit: int = 10) -> Sequence[MessageTurn]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT session_id, role, content, created_at, metadata
                FROM messages
                WHERE session_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (session_id, limit),
            ).fetchall()

        turns = [
            MessageTurn(
                session_id=row["session_id"],
                role=row["role"],
                content=row["content"],
                created_at=datetime.fromisoformat(row["created_at"]),
                metadata=json.loads(row["metadata"] or "{}"),
            )
            for row in rows
        ]
        turns.reverse()
        return turns

    def load_snapshot(self, session_id: str, limit: int = 10) -> ConversationSnapshot:
        turns = self.fetch_recent_turns(session_id, limit=limit)

        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM slots WHERE session_id = ?",
                (session_id,),
            ).fetchone()

        slots: SlotState = SlotState()
        if row:
            slots.update({key: row[key] for key in SLOT_COLUMNS if row[key] is not None})

        return ConversationSnapshot(session_id=session_id, turns=list(turns), slots=slots)

    def upsert_slots(self, session_id: str, slots: SlotState) -> None:
        data: dict[str, Any] = {key: value for key, value in slots.items() if key in SLOT_COLUMNS and value is not None}
        if not data:
            return

        with self._connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO sessions(session_id) VALUES (?)",
                (session_id,),
            )
            columns = ", ".join(["session_id", *data])
            placeholders = ", ".join("?" for _ in range(len(data) + 1))
            update_clause = ", ".join(f"{column}=excluded.{column}" for column in data)
            conn.execute(
                f"""
                INSERT INTO slots ({columns}) VALUES ({placeholders})
                ON CONFLICT(session_id) DO UPDATE SET {update_clause}
                """,
                (session_id, *data.values()),
            )
