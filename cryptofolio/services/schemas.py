"""Pydantic schemas shared by the stores, the assistant gateway and the API."""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class PortfolioEntry(BaseModel):
    """One holding lot. Browser payloads use camelCase, rows use snake_case."""

    model_config = ConfigDict(extra="ignore")

    entry_id: Optional[str] = Field(None, validation_alias=AliasChoices("entry_id", "id"))
    coin_id: str = Field(..., min_length=1, max_length=100, validation_alias=AliasChoices("coin_id", "coin"))
    coin_name: Optional[str] = Field(
        None, max_length=100, validation_alias=AliasChoices("coin_name", "coinName", "name")
    )
    amount: float = Field(..., gt=0)
    avg_buy_price: float = Field(..., gt=0, validation_alias=AliasChoices("avg_buy_price", "avgBuyPrice"))
    buy_date: Optional[str] = Field(None, validation_alias=AliasChoices("buy_date", "buyDate"))
    created_at: Optional[str] = None

    @field_validator("coin_id")
    @classmethod
    def _normalize_coin_id(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("coin_name", "buy_date")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def total_invested(self) -> float:
        return self.amount * self.avg_buy_price


class TrackedCoin(BaseModel):
    coin_id: str
    coin_name: str
    created_at: Optional[str] = None


class ChatTurn(BaseModel):
    """One message of a transcript."""

    model_config = ConfigDict(extra="ignore")

    turn_id: Optional[str] = Field(None, validation_alias=AliasChoices("turn_id", "id"))
    role: ChatRole
    content: str = Field(..., validation_alias=AliasChoices("content", "message"))
    context: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = Field(None, validation_alias=AliasChoices("created_at", "timestamp"))

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, v):
        # Model-side names coming back from other clients
        if isinstance(v, str) and v.lower() in ("model", "ai", "bot"):
            return ChatRole.ASSISTANT
        return v


class AssistantRequest(BaseModel):
    """Body of the assistant gateway call."""

    model_config = ConfigDict(extra="ignore")

    message: str = ""
    portfolio: List[PortfolioEntry] = Field(default_factory=list)
    selected_coins: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("selectedCoins", "selected_coins")
    )
    chat_history: List[ChatTurn] = Field(
        default_factory=list, validation_alias=AliasChoices("chatHistory", "chat_history")
    )

    @field_validator("message", mode="before")
    @classmethod
    def _none_message(cls, v):
        return "" if v is None else v

    @field_validator("portfolio", "selected_coins", "chat_history", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return [] if v is None else v
