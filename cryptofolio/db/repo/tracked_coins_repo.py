"""Tracked coins repository."""
import sqlite3
from typing import Iterable, List, Dict, Any, Tuple
from cryptofolio.db.connect import get_conn
from cryptofolio.core.errors import ErrorCode, ValidationError
from cryptofolio.core.time import now_iso
from cryptofolio.core.logging import get_logger
from cryptofolio.services.schemas import TrackedCoin

logger = get_logger(__name__)


class TrackedCoinsRepo:
    """Repository for the coins an owner watches. Unique per (owner, coin)."""

    def add(self, owner_id: str, coin_id: str, coin_name: str) -> Dict[str, Any]:
        """Start tracking a coin.

        Raises:
            ValidationError: (DUPLICATE_ENTRY) when the coin is already tracked.
        """
        created_at = now_iso()
        try:
            with get_conn() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO tracked_coins (owner_id, coin_id, coin_name, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (owner_id, coin_id, coin_name, created_at)
                )
                conn.commit()
        except sqlite3.IntegrityError:
            raise ValidationError(
                f"{coin_name} is already being tracked",
                error_code=ErrorCode.DUPLICATE_ENTRY,
                details={"coin_id": coin_id},
            )

        logger.info(f"Tracking {coin_id} for {owner_id}")
        return {"owner_id": owner_id, "coin_id": coin_id, "coin_name": coin_name, "created_at": created_at}

    def list_coins(self, owner_id: str) -> List[Dict[str, Any]]:
        """Tracked coins in the order they were added."""
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT owner_id, coin_id, coin_name, created_at FROM tracked_coins
                WHERE owner_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (owner_id,)
            )
            return [dict(row) for row in cursor.fetchall()]

    def coin_ids(self, owner_id: str) -> List[str]:
        return [row["coin_id"] for row in self.list_coins(owner_id)]

    def snapshot(self, owner_id: str) -> List[TrackedCoin]:
        return [TrackedCoin.model_validate(row) for row in self.list_coins(owner_id)]

    def remove(self, owner_id: str, coin_id: str) -> bool:
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM tracked_coins WHERE owner_id = ? AND coin_id = ?",
                (owner_id, coin_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    def seed_defaults(self, owner_id: str, coins: Iterable[Tuple[str, str]]) -> int:
        """Insert default (coin_id, coin_name) pairs, skipping ones already tracked.

        Returns the number of rows inserted.
        """
        inserted = 0
        with get_conn() as conn:
            cursor = conn.cursor()
            for coin_id, coin_name in coins:
                cursor.execute(
                    """
                    INSERT OR IGNORE INTO tracked_coins (owner_id, coin_id, coin_name, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (owner_id, coin_id, coin_name, now_iso())
                )
                inserted += cursor.rowcount
            conn.commit()

        if inserted:
            logger.info(f"Seeded {inserted} default tracked coins for {owner_id}")
        return inserted
