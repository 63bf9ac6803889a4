"""Assistant gateway: one portfolio-aware request, one generateContent call.

The gateway is stateless per call. It validates the request, composes the
system instruction from the portfolio snapshot, assembles the conversation
window, makes a single upstream POST and unwraps the reply text. It never
persists anything and never retries.
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from cryptofolio.core.config import Settings
from cryptofolio.core.errors import (
    ConfigurationError,
    ErrorCode,
    UpstreamError,
    ValidationError,
)
from cryptofolio.core.logging import get_logger
from cryptofolio.services.conversation import DEFAULT_WINDOW_SIZE, assemble_contents
from cryptofolio.services.prompt_composer import build_system_prompt, compose_context_block
from cryptofolio.services.schemas import AssistantRequest

logger = get_logger(__name__)

ONBOARDING_MESSAGE = (
    "Add your crypto investments to your portfolio first so I can give you "
    "personalized analysis and advice."
)


@dataclass
class GatewayConfig:
    """Upstream model settings. The credential is injected here, never read ad hoc."""
    api_key: Optional[str]
    model: str = "gemini-2.0-flash-exp"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 1024
    window_size: int = DEFAULT_WINDOW_SIZE
    timeout_seconds: Optional[float] = None
    require_portfolio: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayConfig":
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            temperature=settings.gemini_temperature,
            top_k=settings.gemini_top_k,
            top_p=settings.gemini_top_p,
            max_output_tokens=settings.gemini_max_output_tokens,
            window_size=settings.chat_window_size,
            timeout_seconds=settings.gemini_timeout_seconds,
            require_portfolio=settings.require_portfolio_for_chat,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/models/{self.model}:generateContent"

    def generation_config(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
        }


def extract_text(data: Any) -> str:
    """Pull ``candidates[0].content.parts[0].text`` out of a generateContent body.

    Raises:
        UpstreamError: (UPSTREAM_MALFORMED) for any other shape.
    """
    try:
        candidate = data["candidates"][0]
        content = candidate["content"]
        text = content["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise UpstreamError(
            "Invalid response from Gemini API",
            error_code=ErrorCode.UPSTREAM_MALFORMED,
        )
    if not isinstance(text, str):
        raise UpstreamError(
            "Invalid response from Gemini API",
            error_code=ErrorCode.UPSTREAM_MALFORMED,
        )
    return text


class AssistantGateway:
    """Stateless handler for one assistant request."""

    def __init__(self, config: GatewayConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def build_payload(self, request: AssistantRequest) -> Dict[str, Any]:
        """generateContent body for a request (system instruction + contents)."""
        context_block = compose_context_block(request.portfolio, request.selected_coins)
        return {
            "contents": assemble_contents(
                request.chat_history, request.message, self.config.window_size
            ),
            "systemInstruction": {"parts": [{"text": build_system_prompt(context_block)}]},
            "generationConfig": self.config.generation_config(),
        }

    async def generate(self, request: AssistantRequest) -> str:
        """Return the assistant reply text for a request.

        Raises:
            ValidationError: blank message; no network call is made.
            ConfigurationError: no API key provisioned; no network call is made.
            UpstreamError: non-success status, transport failure or a body
                without candidate text.
        """
        if not request.message or not request.message.strip():
            raise ValidationError("Message must not be empty")

        if not self.config.api_key:
            raise ConfigurationError("GEMINI_API_KEY not configured")

        if not request.portfolio and self.config.require_portfolio:
            logger.info("Empty portfolio, returning onboarding prompt without upstream call",
                        extra={"event": "assistant.onboarding"})
            return ONBOARDING_MESSAGE

        payload = self.build_payload(request)
        started = time.monotonic()
        response = await self._post(payload)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if not response.is_success:
            logger.error(
                f"Gemini API error: {response.status_code} - {response.text[:500]}",
                extra={"event": "assistant.upstream_error", "elapsed_ms": elapsed_ms,
                       "status_code": response.status_code},
            )
            raise UpstreamError(
                f"Gemini API error: {response.status_code}",
                error_code=ErrorCode.UPSTREAM_HTTP_ERROR,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError):
            logger.error(f"Gemini API returned non-JSON body: {response.text[:200]}",
                         extra={"event": "assistant.upstream_malformed", "elapsed_ms": elapsed_ms})
            raise UpstreamError(
                "Invalid response from Gemini API",
                error_code=ErrorCode.UPSTREAM_MALFORMED,
                status_code=response.status_code,
            )

        try:
            text = extract_text(data)
        except UpstreamError:
            logger.error(f"Gemini API response missing candidate text: {json.dumps(data)[:500]}",
                         extra={"event": "assistant.upstream_malformed", "elapsed_ms": elapsed_ms})
            raise

        logger.info(
            f"Assistant reply received ({len(text)} chars, {len(payload['contents'])} contents)",
            extra={"event": "assistant.reply", "elapsed_ms": elapsed_ms},
        )
        return text

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds, transport=self._transport
            ) as client:
                return await client.post(
                    self.config.endpoint,
                    params={"key": self.config.api_key},
                    headers={"Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error(f"Gemini API request failed: {type(e).__name__}: {str(e)[:200]}",
                         extra={"event": "assistant.upstream_unreachable",
                                "error_class": type(e).__name__})
            raise UpstreamError(
                "Gemini API request failed",
                error_code=ErrorCode.UPSTREAM_UNREACHABLE,
            ) from e
