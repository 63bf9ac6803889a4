"""Assistant gateway HTTP surface.

Keeps the browser-facing contract: ``{response}`` on success and
``{error, details}`` on failure, open CORS, bare OPTIONS preflight.
"""
from fastapi import APIRouter, Body, Depends, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, AliasChoices

from cryptofolio.api.deps import get_assistant_gateway
from cryptofolio.core.config import get_settings
from cryptofolio.core.errors import ConfigurationError, UpstreamError, ValidationError
from cryptofolio.core.logging import get_logger
from cryptofolio.services.assistant_gateway import AssistantGateway
from cryptofolio.services.schemas import AssistantRequest

router = APIRouter()
logger = get_logger(__name__)

CHAT_PATH = "/api/chat-with-ai"


def cors_headers() -> dict:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Headers": ", ".join(get_settings().cors_allow_headers_list),
    }


def gateway_error(status_code: int, error: str, details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "details": details},
        headers=cors_headers(),
    )


class SaveApiKeyRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    api_key: str = Field("", validation_alias=AliasChoices("apiKey", "api_key"))


@router.options(CHAT_PATH)
async def chat_with_ai_preflight():
    return Response(status_code=200, headers=cors_headers())


@router.post(CHAT_PATH)
async def chat_with_ai(
    body: AssistantRequest = Body(...),
    gateway: AssistantGateway = Depends(get_assistant_gateway),
):
    """One assistant reply for a message plus portfolio context."""
    try:
        text = await gateway.generate(body)
    except ValidationError as e:
        return gateway_error(400, "Invalid request", e.message)
    except (ConfigurationError, UpstreamError) as e:
        logger.error(f"Error in chat-with-ai function: {e.message}",
                     extra={"event": "assistant.failed", "error_class": type(e).__name__})
        return gateway_error(500, "Internal server error", e.message)

    return JSONResponse(content={"response": text}, headers=cors_headers())


@router.options("/api/save-api-key")
async def save_api_key_preflight():
    return Response(status_code=200, headers=cors_headers())


@router.post("/api/save-api-key")
async def save_api_key(body: SaveApiKeyRequest):
    """Check a Gemini key's shape and tell the operator where it belongs.

    The server never stores keys from the browser; the key is read from
    GEMINI_API_KEY at startup. The submitted value is neither logged nor echoed.
    """
    key = body.api_key.strip()
    if not key:
        return gateway_error(400, "Invalid request", "API key is required")
    if not key.startswith("AIza"):
        return gateway_error(400, "Invalid request", "Invalid Gemini API key format")

    logger.info("Gemini API key submitted; operator must set GEMINI_API_KEY",
                extra={"event": "assistant.api_key_submitted"})
    return JSONResponse(
        content={
            "success": True,
            "message": "Set GEMINI_API_KEY in the server environment and restart to enable the assistant.",
            "configured": bool(get_settings().gemini_api_key),
        },
        headers=cors_headers(),
    )
