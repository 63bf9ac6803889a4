"""Conversation store API routes.

Lets a browser-side session read its transcript and persist turns it
appended optimistically.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from cryptofolio.api.deps import get_current_user
from cryptofolio.api.routes.utils import assistant_error_response
from cryptofolio.core.errors import PersistenceError
from cryptofolio.core.logging import get_logger
from cryptofolio.db.repo.chat_turns_repo import ChatTurnsRepo
from cryptofolio.services.schemas import ChatRole, ChatTurn

router = APIRouter()
logger = get_logger(__name__)


class CreateTurnRequest(BaseModel):
    role: ChatRole
    content: str = Field(..., min_length=1, max_length=20000)
    context: Optional[dict] = None

    model_config = {"extra": "forbid"}


class CreateTurnResponse(BaseModel):
    turn_id: str


@router.get("/turns", response_model=List[ChatTurn])
async def list_turns(
    request: Request,
    limit: Optional[int] = Query(None, ge=1, le=500),
    user: dict = Depends(get_current_user),
):
    """Transcript for the caller, oldest first."""
    try:
        return ChatTurnsRepo().list_turns(user["user_id"], limit=limit)
    except PersistenceError as e:
        logger.error(f"list_turns failed: {e.message}", extra={"owner_id": user["user_id"]})
        return assistant_error_response(e, request)


@router.post("/turns", response_model=CreateTurnResponse, status_code=201)
async def create_turn(
    body: CreateTurnRequest,
    request: Request,
    user: dict = Depends(get_current_user),
):
    turn = ChatTurn(role=body.role, content=body.content, context=body.context or {})
    try:
        turn_id = ChatTurnsRepo().append(user["user_id"], turn)
    except PersistenceError as e:
        logger.error(f"create_turn failed: {e.message}", extra={"owner_id": user["user_id"]})
        return assistant_error_response(e, request)
    return CreateTurnResponse(turn_id=turn_id)
