"""Conversation store: chat turns per owner."""
import json
import sqlite3
from typing import List, Optional
from cryptofolio.db.connect import get_conn
from cryptofolio.core.errors import PersistenceError
from cryptofolio.core.ids import new_id
from cryptofolio.core.time import now_iso
from cryptofolio.core.logging import get_logger
from cryptofolio.services.schemas import ChatTurn

logger = get_logger(__name__)


def _safe_json_loads(s, default=None):
    """Parse JSON safely, returning default on failure."""
    if not s:
        return default
    try:
        return json.loads(s)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Malformed JSON in DB column (len=%d): %s",
                       len(str(s)), str(s)[:80])
        return default


def _row_to_turn(row) -> ChatTurn:
    return ChatTurn(
        turn_id=row["turn_id"],
        role=row["role"],
        content=row["content"],
        context=_safe_json_loads(row["context_json"], {}),
        created_at=row["created_at"],
    )


class ChatTurnsRepo:
    """Append-only store of chat turns. Turns are never modified once written."""

    def append(self, owner_id: str, turn: ChatTurn) -> str:
        """Persist a turn and return its id.

        Raises:
            PersistenceError: when the write fails.
        """
        turn_id = turn.turn_id or new_id("turn_")
        created_at = turn.created_at or now_iso()
        try:
            with get_conn() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO chat_turns (turn_id, owner_id, role, content, context_json, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        turn_id,
                        owner_id,
                        turn.role.value,
                        turn.content,
                        json.dumps(turn.context or {}),
                        created_at,
                    )
                )
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to save chat turn: {str(e)[:200]}",
                details={"owner_id": owner_id, "role": turn.role.value},
            ) from e
        return turn_id

    def list_turns(self, owner_id: str, limit: Optional[int] = None) -> List[ChatTurn]:
        """Transcript in ascending creation order.

        With ``limit``, only the most recent ``limit`` turns are returned,
        still oldest first.
        """
        try:
            with get_conn() as conn:
                cursor = conn.cursor()
                if limit is None:
                    cursor.execute(
                        """
                        SELECT * FROM chat_turns
                        WHERE owner_id = ?
                        ORDER BY created_at ASC, rowid ASC
                        """,
                        (owner_id,)
                    )
                    rows = cursor.fetchall()
                else:
                    cursor.execute(
                        """
                        SELECT * FROM chat_turns
                        WHERE owner_id = ?
                        ORDER BY created_at DESC, rowid DESC
                        LIMIT ?
                        """,
                        (owner_id, max(limit, 0))
                    )
                    rows = list(reversed(cursor.fetchall()))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to load chat turns: {str(e)[:200]}") from e
        return [_row_to_turn(row) for row in rows]
