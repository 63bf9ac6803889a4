"""One chat turn, orchestrated server-side.

Order of effects for a turn:
    1. the user turn lands in the transcript immediately
    2. its persistence is scheduled, not awaited
    3. the gateway is called with the prior window
    4. on success the assistant turn is appended and its persistence scheduled

Persistence failures are logged and dropped. A failed upstream call aborts
the turn after step 1, so a user turn may be stored with no reply.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Set

from cryptofolio.core.errors import (
    ConfigurationError,
    PersistenceError,
    UpstreamError,
    ValidationError,
)
from cryptofolio.core.logging import get_logger
from cryptofolio.core.time import now_iso
from cryptofolio.db.repo.chat_turns_repo import ChatTurnsRepo
from cryptofolio.services.assistant_gateway import ONBOARDING_MESSAGE, AssistantGateway
from cryptofolio.services.conversation import DEFAULT_WINDOW_SIZE, conversation_window
from cryptofolio.services.prompt_composer import snapshot_context
from cryptofolio.services.schemas import AssistantRequest, ChatRole, ChatTurn, PortfolioEntry

logger = get_logger(__name__)

SIGN_IN_PROMPT = "Please sign in to chat with the portfolio assistant."
ONBOARDING_PROMPT = ONBOARDING_MESSAGE
FAILURE_NOTICE = "Failed to get AI response. Please try again."


class ReplyStatus(str, Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    ONBOARDING = "ONBOARDING"
    SIGN_IN_REQUIRED = "SIGN_IN_REQUIRED"


@dataclass
class SessionReply:
    status: ReplyStatus
    content: Optional[str] = None
    notice: Optional[str] = None
    error_code: Optional[str] = None


class ChatSession:
    """Transcript plus the collaborators needed to run turns against it."""

    def __init__(
        self,
        gateway: AssistantGateway,
        turns_repo: ChatTurnsRepo,
        owner_id: Optional[str],
        portfolio: Sequence[PortfolioEntry],
        tracked_coins: Sequence[str],
        transcript: Sequence[ChatTurn] = (),
        window_size: int = DEFAULT_WINDOW_SIZE,
    ):
        self.gateway = gateway
        self.turns_repo = turns_repo
        self.owner_id = owner_id
        self.portfolio = list(portfolio)
        self.tracked_coins = list(tracked_coins)
        self.transcript: List[ChatTurn] = list(transcript)
        self.window_size = window_size
        self._persist_lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()

    async def send(self, text: str) -> SessionReply:
        """Run one turn.

        Raises:
            ValidationError: blank message; nothing is appended or sent.
        """
        if not text or not text.strip():
            raise ValidationError("Message must not be empty")

        if self.owner_id is None:
            return SessionReply(status=ReplyStatus.SIGN_IN_REQUIRED, notice=SIGN_IN_PROMPT)

        if not self.portfolio:
            logger.info("Empty portfolio, onboarding prompt shown locally",
                        extra={"event": "chat.onboarding", "owner_id": self.owner_id})
            return SessionReply(status=ReplyStatus.ONBOARDING, content=ONBOARDING_PROMPT)

        prior = conversation_window(self.transcript, self.window_size)
        context = snapshot_context(self.portfolio, self.tracked_coins)
        user_turn = ChatTurn(role=ChatRole.USER, content=text, context=context, created_at=now_iso())
        self.transcript.append(user_turn)
        self._schedule_persist(user_turn)

        request = AssistantRequest(
            message=text,
            portfolio=self.portfolio,
            selected_coins=self.tracked_coins,
            chat_history=prior,
        )
        try:
            reply_text = await self.gateway.generate(request)
        except (UpstreamError, ConfigurationError) as e:
            logger.warning(
                f"Assistant turn failed: {e.message}",
                extra={"event": "chat.failed", "owner_id": self.owner_id,
                       "error_class": type(e).__name__},
            )
            return SessionReply(
                status=ReplyStatus.FAILED,
                notice=FAILURE_NOTICE,
                error_code=e.error_code.value,
            )

        assistant_turn = ChatTurn(
            role=ChatRole.ASSISTANT, content=reply_text, context=context, created_at=now_iso()
        )
        self.transcript.append(assistant_turn)
        self._schedule_persist(assistant_turn)
        return SessionReply(status=ReplyStatus.COMPLETED, content=reply_text)

    def _schedule_persist(self, turn: ChatTurn) -> None:
        task = asyncio.create_task(self._persist(turn))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, turn: ChatTurn) -> None:
        # Lock waiters are served FIFO, so writes land in send order
        async with self._persist_lock:
            try:
                await asyncio.to_thread(self.turns_repo.append, self.owner_id, turn)
            except PersistenceError as e:
                logger.error(
                    f"Chat turn not saved: {e.message}",
                    extra={"event": "chat.persist_failed", "owner_id": self.owner_id,
                           "error_class": type(e).__name__},
                )

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    async def flush(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
