"""SQLite-backed storage for chat conversations."""
import json
import logging
import re
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from models.conversation import ConversationRecord, ConversationSummary

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New conversation"
TITLE_MAX_LENGTH = 80
LAST_MESSAGE_MAX_LENGTH = 200


class ChatStoreError(Exception):
    """Raised when the underlying database operation fails."""


def _now_ms() -> int:
    return int(time.time() * 1000)


def _message_text(message: Dict[str, Any]) -> str:
    parts = message.get("parts") or []
    return " ".join(
        part.get("text") or "" for part in parts
        if isinstance(part, dict) and part.get("type") == "text"
    ).strip()


def _truncate(text: str, limit: int) -> str:
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) <= limit:
        return text
    return text[:limit - 1].rstrip() + "…"


def derive_title(messages: Sequence[Dict[str, Any]]) -> str:
    """Title from the first user utterance, or DEFAULT_TITLE."""
    for message in messages:
        if message.get("role") == "user":
            text = _message_text(message)
            if text:
                return _truncate(text, TITLE_MAX_LENGTH)
    return DEFAULT_TITLE


def derive_last_message(messages: Sequence[Dict[str, Any]]) -> Optional[str]:
    """Preview of the final message's text."""
    if not messages:
        return None
    text = _message_text(messages[-1])
    return _truncate(text, LAST_MESSAGE_MAX_LENGTH) if text else None


class ChatStore:
    """
    Conversation records keyed by caller-supplied chat id.

    The database runs in WAL mode so readers keep working while a single
    writer commits. Every upsert is one transaction.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS chats (
            id TEXT PRIMARY KEY,
            role TEXT,
            patientId TEXT,
            title TEXT,
            createdAt INTEGER,
            updatedAt INTEGER,
            lastMessage TEXT,
            messages TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_chats_updated
            ON chats(updatedAt DESC);
    """

    def __init__(self, db_path: str = "chats.db", clock: Optional[Callable[[], int]] = None):
        """
        Open (and if needed create) the conversation database.

        Args:
            db_path: SQLite file path, or ":memory:"
            clock: Returns the current time in epoch milliseconds
        """
        self.db_path = db_path
        self._clock = clock or _now_ms
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self.conn = sqlite3.connect(db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA foreign_keys=ON")
            self.conn.executescript(self.SCHEMA)
            self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to open chat store at {db_path}: {e}", exc_info=True)
            raise ChatStoreError(f"Failed to open chat store: {e}") from e

        logger.info(f"ChatStore opened at {db_path}")

    def upsert(
        self,
        chat_id: str,
        role: str,
        patient_id: str,
        messages: List[Dict[str, Any]]
    ) -> None:
        """
        Create the conversation or replace its message thread.

        A new record gets a derived title and createdAt = now. An existing
        record keeps its title, role and patient id; messages and lastMessage
        are replaced and updatedAt is bumped (never backwards).

        Raises:
            ChatStoreError: If the write fails; nothing is committed
        """
        now = self._clock()
        try:
            payload = json.dumps(messages, ensure_ascii=False)
            with self.conn:
                self.conn.execute(
                    """INSERT INTO chats (id, role, patientId, title, createdAt,
                       updatedAt, lastMessage, messages)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                       ON CONFLICT(id) DO UPDATE SET
                           messages = excluded.messages,
                           lastMessage = excluded.lastMessage,
                           updatedAt = MAX(chats.updatedAt, excluded.updatedAt)""",
                    (chat_id, role, patient_id, derive_title(messages), now, now,
                     derive_last_message(messages), payload),
                )
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"Error saving conversation {chat_id}: {e}")
            raise ChatStoreError(f"Failed to save conversation {chat_id}: {e}") from e

        logger.info(f"Saved conversation {chat_id} with {len(messages)} messages")

    def get(self, chat_id: str) -> Optional[ConversationRecord]:
        """Return the conversation, or None if it was never stored."""
        try:
            row = self.conn.execute(
                "SELECT * FROM chats WHERE id = ?", (chat_id,)
            ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error loading conversation {chat_id}: {e}")
            raise ChatStoreError(f"Failed to load conversation {chat_id}: {e}") from e

        if row is None:
            return None

        return ConversationRecord(
            messages=json.loads(row["messages"]),
            **self._summary_fields(row)
        )

    def list(self) -> List[ConversationSummary]:
        """All conversations, most recently updated first (ties: newest created, then id)."""
        try:
            rows = self.conn.execute(
                """SELECT id, role, patientId, title, createdAt, updatedAt, lastMessage
                   FROM chats
                   ORDER BY updatedAt DESC, createdAt DESC, id ASC"""
            ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error listing conversations: {e}")
            raise ChatStoreError(f"Failed to list conversations: {e}") from e

        return [ConversationSummary(**self._summary_fields(row)) for row in rows]

    def close(self) -> None:
        self.conn.close()
        logger.info("ChatStore closed")

    @staticmethod
    def _summary_fields(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "role": row["role"],
            "patient_id": row["patientId"],
            "title": row["title"],
            "created_at": row["createdAt"],
            "updated_at": row["updatedAt"],
            "last_message": row["lastMessage"],
        }
