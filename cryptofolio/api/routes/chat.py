"""Chat API route: one Chat Session turn against the caller's stored state."""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel, Field

from cryptofolio.api.deps import get_assistant_gateway, get_optional_user
from cryptofolio.api.routes.utils import assistant_error_response
from cryptofolio.core.config import get_settings
from cryptofolio.core.errors import ValidationError
from cryptofolio.core.logging import get_logger
from cryptofolio.db.repo.chat_turns_repo import ChatTurnsRepo
from cryptofolio.db.repo.portfolio_repo import PortfolioRepo
from cryptofolio.db.repo.tracked_coins_repo import TrackedCoinsRepo
from cryptofolio.services.assistant_gateway import AssistantGateway
from cryptofolio.services.chat_session import ChatSession

router = APIRouter()
logger = get_logger(__name__)


class ChatMessageRequest(BaseModel):
    message: str = Field("", max_length=10000)

    model_config = {"extra": "forbid"}


class ChatMessageResponse(BaseModel):
    status: str
    content: Optional[str] = None
    notice: Optional[str] = None
    error_code: Optional[str] = None


@router.post("/messages", response_model=ChatMessageResponse)
async def send_message(
    body: ChatMessageRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    user: Optional[dict] = Depends(get_optional_user),
    gateway: AssistantGateway = Depends(get_assistant_gateway),
):
    """Send one message.

    The reply does not wait for the transcript writes; they finish as a
    background task after the response is sent.
    """
    settings = get_settings()
    owner_id = user["user_id"] if user else None
    turns_repo = ChatTurnsRepo()

    if owner_id is None:
        session = ChatSession(gateway, turns_repo, None, [], [])
    else:
        session = ChatSession(
            gateway,
            turns_repo,
            owner_id,
            portfolio=PortfolioRepo().snapshot(owner_id),
            tracked_coins=TrackedCoinsRepo().coin_ids(owner_id),
            transcript=turns_repo.list_turns(owner_id, limit=settings.chat_window_size),
            window_size=settings.chat_window_size,
        )

    try:
        reply = await session.send(body.message)
    except ValidationError as e:
        return assistant_error_response(e, request)

    background_tasks.add_task(session.flush)
    return ChatMessageResponse(
        status=reply.status.value,
        content=reply.content,
        notice=reply.notice,
        error_code=reply.error_code,
    )
