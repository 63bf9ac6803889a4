"""FastAPI application entry point."""
import contextvars
import logging
import uuid
from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from cryptofolio.core.config import get_settings
from cryptofolio.core.logging import setup_logging, get_logger
from cryptofolio.db.connect import init_db, get_conn, get_schema_status
from cryptofolio.api.routes import assistant, portfolio, tracked_coins, conversation, chat, market
from cryptofolio.api.routes.assistant import CHAT_PATH, cors_headers
from cryptofolio.api.routes.utils import request_id_of, structured_error
from cryptofolio.api.auth import router as auth_router

# Thread/async-safe request ID propagation via contextvars
_request_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar('request_id', default='')


class RequestIDFilter(logging.Filter):
    """Logging filter that injects request_id from contextvars into log records."""
    def filter(self, record):
        record.request_id = _request_id_ctx.get('')
        return True


settings = get_settings()
setup_logging(settings.log_level)
# On the handlers, so records propagated from module loggers get it too
for _handler in logging.getLogger().handlers:
    _handler.addFilter(RequestIDFilter())
logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to add request_id to requests and responses."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = _request_id_ctx.set(request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            _request_id_ctx.reset(token)


# Initialize database - FATAL on failure (server cannot serve without schema)
init_db()
_schema_status = get_schema_status()
logger.info(
    "Schema status: db=%s | applied=%d | pending=%d | ok=%s",
    _schema_status["db_path"],
    len(_schema_status["applied_migrations"]),
    len(_schema_status["pending_migrations"]),
    _schema_status["schema_ok"],
)

if not settings.gemini_api_key:
    logger.warning("GEMINI_API_KEY is not set; the assistant will answer with a configuration error")

app = FastAPI(
    title="Cryptofolio Assistant API",
    version=settings.service_version
)


# HTTPException handler: preserve original status codes (e.g. 401, 404, 409)
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Return structured JSON for any HTTPException."""
    return structured_error(
        exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail), request_id_of(request), exc.headers
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies: gateway contract shape on the assistant path, envelope elsewhere."""
    request_id = request_id_of(request)
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "invalid value")

    if request.url.path == CHAT_PATH:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": message},
            headers=cors_headers(),
        )
    return structured_error(422, "VALIDATION_ERROR", message, request_id)


# Global exception handler to ensure all errors return JSON, never HTML
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and return JSON error response."""
    request_id = request_id_of(request)
    logger.error(
        "Unhandled exception: %s | %s %s",
        str(exc)[:200],
        request.method,
        str(request.url.path),
        exc_info=exc,
        extra={"error_class": type(exc).__name__},
    )

    if request.url.path == CHAT_PATH:
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(exc)[:200]},
            headers=cors_headers(),
        )
    return structured_error(500, "INTERNAL_ERROR", "An internal error occurred", request_id)


# Request ID middleware
app.add_middleware(RequestIDMiddleware)

# CORS: the assistant endpoint is called straight from the browser
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=settings.cors_allow_headers_list + ["x-dev-user"],
)

# Include routers
app.include_router(assistant.router, tags=["assistant"])
app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["portfolio"])
app.include_router(tracked_coins.router, prefix="/api/v1/tracked-coins", tags=["tracked-coins"])
app.include_router(conversation.router, prefix="/api/v1/conversation", tags=["conversation"])
app.include_router(chat.router, prefix="/api/v1/chat", tags=["chat"])
app.include_router(market.router, prefix="/api/v1/market", tags=["market"])


@app.get("/")
async def root():
    return {"message": "Cryptofolio Assistant API"}


@app.get("/health")
async def health():
    """DB reachability, schema health and whether the assistant has a key."""
    db_ok = False
    try:
        with get_conn() as conn:
            conn.execute("SELECT 1")
            db_ok = True
    except Exception as e:
        logger.warning("Health check DB probe failed: %s", str(e)[:200])

    schema_status = get_schema_status()
    ok = db_ok and schema_status["schema_ok"]
    return {
        "status": "ok" if ok else "degraded",
        "ok": ok,
        "db_ready": db_ok,
        "schema_ok": schema_status["schema_ok"],
        "pending_migrations": schema_status["pending_migrations"],
        "assistant_configured": bool(get_settings().gemini_api_key),
    }
