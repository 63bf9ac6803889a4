"""Tracked coins API routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from cryptofolio.api.deps import get_current_user
from cryptofolio.api.routes.utils import assistant_error_response
from cryptofolio.core.errors import ValidationError
from cryptofolio.db.repo.tracked_coins_repo import TrackedCoinsRepo
from cryptofolio.services.coin_catalog import validate_custom_coin
from cryptofolio.services.schemas import TrackedCoin

router = APIRouter()


class AddTrackedCoinRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    coin_id: Optional[str] = Field(None, validation_alias=AliasChoices("coin_id", "coinId", "id"))
    coin_name: Optional[str] = Field(None, validation_alias=AliasChoices("coin_name", "coinName", "name"))


@router.get("", response_model=List[TrackedCoin])
async def list_tracked_coins(user: dict = Depends(get_current_user)):
    return TrackedCoinsRepo().snapshot(user["user_id"])


@router.post("", status_code=201)
async def add_tracked_coin(
    body: AddTrackedCoinRequest,
    request: Request,
    user: dict = Depends(get_current_user),
):
    """Track a popular or custom coin. 400 for a malformed coin, 409 if already tracked."""
    try:
        coin_id, coin_name = validate_custom_coin(body.coin_id, body.coin_name)
        return TrackedCoinsRepo().add(user["user_id"], coin_id, coin_name)
    except ValidationError as e:
        return assistant_error_response(e, request)


@router.delete("/{coin_id}", status_code=204)
async def remove_tracked_coin(coin_id: str, user: dict = Depends(get_current_user)):
    if not TrackedCoinsRepo().remove(user["user_id"], coin_id.strip().lower()):
        raise HTTPException(status_code=404, detail="Coin is not tracked")
