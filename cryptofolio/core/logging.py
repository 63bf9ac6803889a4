"""Structured logging with secret redaction.

Provides JSON-formatted logs with:
- Correlation IDs (request_id, owner_id)
- Automatic secret redaction for Gemini keys, tokens and passwords
"""
import logging
import sys
import json
import re
from datetime import datetime, timezone

# === SECRET REDACTION PATTERNS ===
# These patterns match common secret formats and redact them from logs

SECRET_PATTERNS = [
    # Google / Gemini API keys (AIza...)
    (
        r'\bAIza[0-9A-Za-z_\-]{20,}',
        '***GEMINI_KEY_REDACTED***'
    ),
    # API key passed as a query parameter (?key=... / &key=...)
    (
        r'([?&]key=)[^&\s"\']+',
        r'\1***REDACTED***'
    ),
    # JWT tokens (eyJ...)
    (
        r'\beyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+\b',
        '***JWT_REDACTED***'
    ),
    # Generic tokens: token=value, bearer token, etc.
    (
        r'(?i)(bearer\s+|token["\']?\s*[:=]\s*["\']?)([a-zA-Z0-9_\-\.\/+]{20,})["\']?',
        r'\1***TOKEN_REDACTED***'
    ),
    # Password patterns
    (
        r'(?i)(password|passwd|pwd)["\']?\s*[:=]\s*["\']?([^\s"\']+)["\']?',
        r'\1=***PASSWORD_REDACTED***'
    ),
    # Environment variable format (GEMINI_API_KEY=value, JWT_SECRET=value, etc.)
    (
        r'(?i)(GEMINI_[A-Z_]*KEY|API_[A-Z_]*KEY|[A-Z_]*SECRET)\s*=\s*([a-zA-Z0-9_\-\.\/+]{16,})',
        r'\1=***REDACTED***'
    ),
]

# Compiled patterns for performance
_COMPILED_PATTERNS = [(re.compile(pattern), replacement) for pattern, replacement in SECRET_PATTERNS]

# Extra record attributes copied into the JSON payload when present
_EXTRA_FIELDS = ("request_id", "owner_id", "event", "elapsed_ms", "error_class", "status_code")


def redact_secrets(text: str) -> str:
    """Redact secrets from text using pattern matching.

    Args:
        text: Input text that may contain secrets

    Returns:
        Text with secrets replaced by redaction markers
    """
    if not text:
        return text

    result = str(text)
    for pattern, replacement in _COMPILED_PATTERNS:
        result = pattern.sub(replacement, result)

    return result


class SecretRedactionFilter(logging.Filter):
    """Logging filter that redacts secrets from log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = redact_secrets(str(record.msg))

        # Only strings are redacted so %d/%f format specifiers keep working
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: redact_secrets(v) if isinstance(v, str) else v
                               for k, v in record.args.items()}
            elif isinstance(record.args, (tuple, list)):
                record.args = tuple(
                    redact_secrets(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter with correlation IDs and elapsed time tracking."""

    def format(self, record):
        message = redact_secrets(record.getMessage())

        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "module": record.module,
            "function": record.funcName,
        }

        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value not in (None, ""):
                log_data[field] = value

        if record.exc_info:
            log_data["exception"] = redact_secrets(self.formatException(record.exc_info))

        return json.dumps(log_data)


def setup_logging(level: str = "INFO"):
    """Setup logging with secret redaction.

    Configures structured JSON logging on stdout with the secret
    redaction filter attached to the handler.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(SecretRedactionFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()
    root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger (typically for ``__name__``)."""
    return logging.getLogger(name)
