"""Portfolio API routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from cryptofolio.api.deps import get_current_user
from cryptofolio.db.repo.portfolio_repo import PortfolioRepo
from cryptofolio.services.schemas import PortfolioEntry

router = APIRouter()


class PortfolioEntryResponse(BaseModel):
    entry_id: str
    coin_id: str
    coin_name: str
    amount: float
    avg_buy_price: float
    buy_date: Optional[str] = None
    total_invested: float
    created_at: str


def _to_response(row: dict) -> PortfolioEntryResponse:
    return PortfolioEntryResponse(
        entry_id=row["entry_id"],
        coin_id=row["coin_id"],
        coin_name=row["coin_name"],
        amount=row["amount"],
        avg_buy_price=row["avg_buy_price"],
        buy_date=row["buy_date"],
        total_invested=round(row["amount"] * row["avg_buy_price"], 2),
        created_at=row["created_at"],
    )


@router.get("/entries", response_model=List[PortfolioEntryResponse])
async def list_entries(user: dict = Depends(get_current_user)):
    """All holding lots for the caller, newest first."""
    return [_to_response(row) for row in PortfolioRepo().list_entries(user["user_id"])]


@router.post("/entries", response_model=PortfolioEntryResponse, status_code=201)
async def create_entry(body: PortfolioEntry, user: dict = Depends(get_current_user)):
    row = PortfolioRepo().create_entry(user["user_id"], body)
    return _to_response(row)


@router.delete("/entries/{entry_id}", status_code=204)
async def delete_entry(entry_id: str, user: dict = Depends(get_current_user)):
    if not PortfolioRepo().delete_entry(user["user_id"], entry_id):
        raise HTTPException(status_code=404, detail="Portfolio entry not found")


@router.get("/summary")
async def portfolio_summary(user: dict = Depends(get_current_user)):
    """Total invested across all lots, plus a per-coin breakdown."""
    repo = PortfolioRepo()
    entries = repo.snapshot(user["user_id"])
    by_coin: dict = {}
    for entry in entries:
        by_coin[entry.coin_id] = by_coin.get(entry.coin_id, 0.0) + entry.total_invested
    return {
        "total_invested": round(repo.total_invested(user["user_id"]), 2),
        "entry_count": len(entries),
        "by_coin": {coin: round(total, 2) for coin, total in by_coin.items()},
    }
