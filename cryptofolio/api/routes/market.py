"""Market lookup API routes (static stats + coin search)."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from cryptofolio.api.deps import get_optional_user
from cryptofolio.db.repo.tracked_coins_repo import TrackedCoinsRepo
from cryptofolio.services.coin_catalog import market_stats, search_coins

router = APIRouter()


@router.get("/stats")
async def get_market_stats(coin_id: Optional[str] = Query(None)):
    """Sample market statistics for a coin (unknown ids fall back to bitcoin)."""
    return market_stats(coin_id.strip().lower() if coin_id else None)


@router.get("/coins")
async def list_coins(
    q: str = Query("", max_length=100),
    user: Optional[dict] = Depends(get_optional_user),
):
    """Popular coins matching ``q``, minus the ones the caller already tracks."""
    exclude = TrackedCoinsRepo().coin_ids(user["user_id"]) if user else []
    return search_coins(q, exclude=exclude)
