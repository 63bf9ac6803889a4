"""Utility functions for API routes."""
import uuid
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from cryptofolio.core.errors import AssistantError, ErrorCode, get_error_message


def request_id_of(request: Request) -> str:
    return getattr(request.state, "request_id", str(uuid.uuid4())[:8])


def structured_error(status_code: int, code: str, message: str, request_id: str,
                     headers: Optional[dict] = None) -> JSONResponse:
    """Return a structured JSON error with X-Request-ID header."""
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ERROR",
            "error": {"code": code, "message": message, "request_id": request_id},
            "request_id": request_id,
        },
        headers={"X-Request-ID": request_id, **(headers or {})},
    )


_STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.DUPLICATE_ENTRY: 409,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CREDENTIALS_MISSING: 500,
    ErrorCode.PERSISTENCE_FAILED: 503,
}


def assistant_error_response(exc: AssistantError, request: Request) -> JSONResponse:
    """Structured error for an AssistantError raised by a store or service.

    Adds the remediation hint for the error code next to code and message.
    """
    request_id = request_id_of(request)
    error = exc.to_dict()
    error["request_id"] = request_id
    error["remediation"] = get_error_message(exc.error_code)["remediation"]
    return JSONResponse(
        status_code=_STATUS_BY_CODE.get(exc.error_code, 502),
        content={"status": "ERROR", "error": error, "request_id": request_id},
        headers={"X-Request-ID": request_id},
    )
