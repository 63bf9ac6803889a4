"""Portfolio entries repository."""
from typing import List, Optional, Dict, Any
from cryptofolio.db.connect import get_conn
from cryptofolio.core.ids import new_id
from cryptofolio.core.time import now_iso
from cryptofolio.core.logging import get_logger
from cryptofolio.services.schemas import PortfolioEntry

logger = get_logger(__name__)


class PortfolioRepo:
    """Repository for per-owner holding lots.

    Entries are never updated in place; an edit is a delete plus a create.
    """

    def create_entry(self, owner_id: str, entry: PortfolioEntry) -> Dict[str, Any]:
        """Insert a holding lot and return the stored row."""
        entry_id = new_id("pe_")
        created_at = now_iso()
        coin_name = entry.coin_name or entry.coin_id.title()

        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO portfolio_entries (
                    entry_id, owner_id, coin_id, coin_name, amount,
                    avg_buy_price, buy_date, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry_id,
                    owner_id,
                    entry.coin_id,
                    coin_name,
                    entry.amount,
                    entry.avg_buy_price,
                    entry.buy_date,
                    created_at,
                )
            )
            conn.commit()

        logger.info(f"Created portfolio entry {entry_id} ({entry.coin_id}) for {owner_id}")
        return self.get_entry(owner_id, entry_id)

    def get_entry(self, owner_id: str, entry_id: str) -> Optional[Dict[str, Any]]:
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM portfolio_entries WHERE entry_id = ? AND owner_id = ?",
                (entry_id, owner_id)
            )
            row = cursor.fetchone()
            return dict(row) if row else None

    def list_entries(self, owner_id: str) -> List[Dict[str, Any]]:
        """Get all entries for an owner, newest first."""
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM portfolio_entries
                WHERE owner_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (owner_id,)
            )
            return [dict(row) for row in cursor.fetchall()]

    def delete_entry(self, owner_id: str, entry_id: str) -> bool:
        """Delete an entry. Returns False when nothing matched."""
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM portfolio_entries WHERE entry_id = ? AND owner_id = ?",
                (entry_id, owner_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    def total_invested(self, owner_id: str) -> float:
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COALESCE(SUM(amount * avg_buy_price), 0) AS total FROM portfolio_entries WHERE owner_id = ?",
                (owner_id,)
            )
            return float(cursor.fetchone()["total"])

    def snapshot(self, owner_id: str) -> List[PortfolioEntry]:
        """Entries as domain objects, for prompt composition."""
        return [PortfolioEntry.model_validate(row) for row in self.list_entries(owner_id)]
