"""Conversation assembly for the generateContent ``contents`` list."""
from typing import Any, Dict, List, Sequence

from cryptofolio.services.schemas import ChatRole, ChatTurn

DEFAULT_WINDOW_SIZE = 10

USER_ROLE = "user"
MODEL_ROLE = "model"


def conversation_window(history: Sequence[ChatTurn], size: int = DEFAULT_WINDOW_SIZE) -> List[ChatTurn]:
    """Trailing ``size`` turns, oldest first. Older turns are dropped silently."""
    if size <= 0:
        return []
    return list(history[-size:])


def to_content(role: str, text: str) -> Dict[str, Any]:
    return {"role": role, "parts": [{"text": text}]}


def assemble_contents(
    history: Sequence[ChatTurn],
    message: str,
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> List[Dict[str, Any]]:
    """Prior window plus the new user message, in the order the model expects.

    Human turns map to ``user``; everything else maps to ``model``. The new
    message is always last.
    """
    contents = [
        to_content(USER_ROLE if turn.role == ChatRole.USER else MODEL_ROLE, turn.content)
        for turn in conversation_window(history, window_size)
    ]
    contents.append(to_content(USER_ROLE, message))
    return contents
