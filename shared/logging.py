"""
Centralized structured logging.

Sets up structlog with:
- JSON rendering for production, pretty console output for development
- Redaction of sensitive fields (OTP codes, tokens, secrets)
- Email masking helper so addresses are not logged verbatim

Call setup_logging() once at startup; modules obtain loggers with
get_logger(__name__).
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor

from config import LoggingSettings

# Sensitive fields to redact from logs
REDACTED_FIELDS = {
    "code",
    "otp",
    "otp_code",
    "password",
    "token",
    "api_key",
    "authorization",
    "secret",
}

_SENSITIVE_FRAGMENTS = ("password", "token", "secret")
_PRESERVED_KEYS = {"level", "event", "timestamp", "logger"}


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if key in _PRESERVED_KEYS:
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            fragment in lowered for fragment in _SENSITIVE_FRAGMENTS
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def mask_email(email: Optional[str]) -> Optional[str]:
    """Mask the local part of *email*: ``alice@example.com`` → ``a***@example.com``."""
    if not email:
        return email
    local, sep, domain = email.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def configure_structlog(log_format: str = "console") -> None:
    """
    Configure structlog with appropriate processors for the environment.

    json:    one JSON object per line, for log shippers
    console: colored key/value output for development
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True, pad_event=15)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str = "INFO") -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def setup_logging(settings: Optional[LoggingSettings] = None) -> None:
    """
    Initialize logging for the process.

    Should be called early in startup, before the first log line.
    """
    settings = settings or LoggingSettings()
    configure_stdlib_logging(settings.log_level)
    configure_structlog(settings.log_format)

    get_logger(__name__).info(
        "logging_initialized",
        log_level=settings.log_level,
        log_format=settings.log_format,
    )


def get_logger(name: str) -> BoundLogger:
    """
    Get a logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("otp_issued", email=mask_email(email), purpose="password_reset")
    """
    return structlog.get_logger(name)


__all__ = [
    "REDACTED_FIELDS",
    "configure_structlog",
    "get_logger",
    "mask_email",
    "redact_sensitive_fields",
    "setup_logging",
]
