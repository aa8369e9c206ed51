#!/usr/bin/env python3
"""
Cache Engine Logging

structlog configuration shared by every tier of the cache engine. Each log
line carries a `stage` field naming the fetch step that produced it, so a
single fetch can be followed from key build to remote call to write-back.

Processor chain:
- contextvars merge, then an ISO-8601 UTC timestamp
- upper-case level name
- redaction of emails, bearer tokens, API keys and phone numbers
- JSON renderer (LOG_FORMAT=json) or coloured console renderer

Cache keys embed caller identities, so log call sites pass keys through
short_key() and messages pass through the redaction processor.

Author: System Architect
Date: 2026-03-02
"""

import logging
import re
import sys
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

from callcache.core.config.constants import LOG_KEY_LENGTH
from callcache.core.config.settings import get_settings

_EMAIL_PATTERN = re.compile(r"\b[\w.-]+@[\w.-]+\.\w+\b")
_BEARER_PATTERN = re.compile(r"\bBearer\s+[A-Za-z0-9._~+/-]+=*", re.IGNORECASE)
_API_KEY_PATTERN = re.compile(r"\b(?:sk|pk|tok)-[a-zA-Z0-9]+\b")
_PHONE_PATTERN = re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")

_REDACTIONS = (
    (_EMAIL_PATTERN, "[EMAIL]"),
    (_BEARER_PATTERN, "[REDACTED]"),
    (_API_KEY_PATTERN, "[REDACTED]"),
    (_PHONE_PATTERN, "[PHONE]"),
)


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """STAGE-L.1: stamp the event with UTC time, Z suffix."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def redact_pii(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    STAGE-L.2: scrub personal data out of the event message.

    Emails become [EMAIL], phone numbers [PHONE], and bearer tokens or
    sk-/pk-/tok- keys [REDACTED]. Structured fields are left untouched.
    """
    event = event_dict.get("event")
    if not isinstance(event, str):
        return event_dict

    for pattern, replacement in _REDACTIONS:
        event = pattern.sub(replacement, event)
    event_dict["event"] = event
    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """STAGE-L.3: upper-case the level added by structlog."""
    level = event_dict.get("level")
    if isinstance(level, str):
        event_dict["level"] = level.upper()
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    STAGE-L: Logging initialization

    Args:
        log_level: Overrides LOG_LEVEL from settings
        log_format: Overrides LOG_FORMAT from settings ('json' or 'console')
    """
    settings = get_settings()
    level_name = (log_level or settings.logging.LOG_LEVEL).upper()
    fmt = log_format or settings.logging.LOG_FORMAT

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level_name))

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_pii,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Return a named structlog logger.

    Usage:
        logger = get_logger(__name__)
        logger.info("Persistent hit", stage="2.2_PERSISTENT_LOOKUP")
    """
    return structlog.get_logger(name)


def short_key(key: str, length: int = LOG_KEY_LENGTH) -> str:
    """Truncate a cache key for log output."""
    if len(key) <= length:
        return key
    return key[:length] + "..."


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Emit message at level with a stage field attached.

    stage may be a Stage member or its raw string value; extra keyword
    arguments become structured fields.

    Usage:
        log_stage(logger, Stage.EPHEMERAL_LOOKUP, "Ephemeral hit", key=short_key(key))
    """
    stage_value = getattr(stage, "value", stage)
    emit = getattr(logger, level.lower())
    emit(message, stage=stage_value, **kwargs)
