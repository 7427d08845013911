"""
Centralized logging configuration for the registry service.

Production writes one JSON object per line; any other APP_ENV gets a
readable console line. Each entry is tagged with the request's correlation
id and the acting user id, both held in contextvars by the middleware, and
credentials are redacted before a handler sees the message.

All modules should use:
    from phytoreq.logging_config import get_logger
    logger = get_logger(__name__)
"""

import json
import logging
import os
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

ROOT_LOGGER = "phytoreq"

CORRELATION_HEADER = "x-correlation-id"

# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------
_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
_acting_user: ContextVar[str] = ContextVar("acting_user", default="")


def get_correlation_id() -> str:
    """Correlation id of the current request, or "" outside a request."""
    return _correlation_id.get()


def set_correlation_id(cid: str) -> None:
    _correlation_id.set(cid)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex


def get_acting_user() -> str:
    return _acting_user.get()


def set_acting_user(user_id: str | None) -> None:
    _acting_user.set(user_id or "")


def is_production() -> bool:
    env = os.environ.get("APP_ENV", os.environ.get("ENV", "development"))
    return env.lower() == "production"


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------
_REDACTIONS = (
    re.compile(r"(aws_secret_access_key\s*[:=]\s*)['\"]?[\w/+\-]{10,}['\"]?", re.IGNORECASE),
    re.compile(r"(aws_session_token\s*[:=]\s*)['\"]?[\w/+=\-]{10,}['\"]?", re.IGNORECASE),
    re.compile(r"(password\s*[:=]\s*)['\"]?[^\s'\"]{4,}['\"]?", re.IGNORECASE),
    re.compile(r"(Bearer\s+)[\w\-\.]{10,}", re.IGNORECASE),
    # Signed document URLs
    re.compile(r"(X-Amz-(?:Signature|Credential|Security-Token)=)[^&\s]+", re.IGNORECASE),
)

_SECRET_ENV_VARS = ("AWS_SECRET_ACCESS_KEY", "AWS_ACCESS_KEY_ID", "AWS_SESSION_TOKEN")


def _redact_secrets(text: str) -> str:
    for pattern in _REDACTIONS:
        text = pattern.sub(r"\1[REDACTED]", text)
    for name in _SECRET_ENV_VARS:
        secret = os.environ.get(name)
        if secret and len(secret) > 4:
            text = text.replace(secret, "[REDACTED]")
    return text


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------
_JSON_LEVELS = {"WARNING": "warn", "CRITICAL": "fatal"}


class StructuredJsonFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: timestamp, level, service, context, correlationId, userId, message,
    plus stackTrace when exc_info is set and data when the call passes
    `extra={"data": {...}}`.
    """

    def __init__(self, service: str = ROOT_LOGGER):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": _JSON_LEVELS.get(record.levelname, record.levelname.lower()),
            "service": self.service,
            "context": record.name,
            "correlationId": get_correlation_id() or None,
            "userId": get_acting_user() or None,
            "message": _redact_secrets(record.getMessage()),
        }
        if record.exc_info and record.exc_info[1] is not None:
            payload["stackTrace"] = _redact_secrets(self.formatException(record.exc_info))
        data = getattr(record, "data", None)
        if isinstance(data, dict):
            payload["data"] = data
        return json.dumps(payload, default=str)


class DevelopmentFormatter(logging.Formatter):
    """`LEVEL  time  logger [cid user]  message` for local runs."""

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S")
        tags = " ".join(t for t in (get_correlation_id()[:8], get_acting_user()) if t)
        line = f"{record.levelname:<8} {when}  {record.name}"
        if tags:
            line += f" [{tags}]"
        line += f"  {_redact_secrets(record.getMessage())}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + _redact_secrets(self.formatException(record.exc_info))
        return line


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------
_configured = False


def configure_logging(log_level: str = "INFO", service: str = ROOT_LOGGER) -> None:
    """Attach a stdout handler to the 'phytoreq' logger.

    Called once from main.py; get_logger() falls back to the defaults if a
    module logs before that.
    """
    global _configured

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredJsonFormatter(service) if is_production() else DevelopmentFormatter())

    root = logging.getLogger(ROOT_LOGGER)
    root.handlers = [handler]
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.propagate = False
    _configured = True


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger under 'phytoreq'; module names already in the package are kept."""
    if not _configured:
        configure_logging()

    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
