"""
Structured logging and event emission.

- structlog configuration with JSON/console rendering
- owner identifiers hashed before they reach a log line (also bindable
  into contextvars via ``bind_owner``)
- sensitive data redaction
"""
from __future__ import annotations

import hashlib
import logging
import os
from typing import Any, Dict

import structlog

SCHEMA_VERSION = "1.0"


def _redact_sensitive(logger, method, event_dict: Dict[str, Any]):
    sensitive_keys = {"token", "password", "secret", "authorization", "cookie", "session"}
    for key in list(event_dict.keys()):
        if any(s in str(key).lower() for s in sensitive_keys):
            event_dict[key] = "[REDACTED]"
    return event_dict


def _add_schema_version(logger, method, event_dict: Dict[str, Any]):
    event_dict.setdefault("schema_version", SCHEMA_VERSION)
    return event_dict


def _choose_renderer(log_format: str | None = None):
    debug = str(os.getenv("DEBUG", "")).lower() in {"1", "true", "yes"}
    fmt = (log_format or os.getenv("LOG_FORMAT") or "").lower().strip()
    if debug or fmt == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def hash_identifier(raw: Any) -> str:
    text = "" if raw is None else str(raw).strip()
    if not text:
        return ""
    return hashlib.sha256(text.encode("utf-8", "ignore")).hexdigest()[:16]


def bind_owner(owner: Any | None) -> None:
    """Bind the hashed owner into structlog contextvars for subsequent events."""
    owner_hash = hash_identifier(owner)
    if not owner_hash:
        return
    structlog.contextvars.bind_contextvars(owner=owner_hash)


def setup_structlog_logging(min_level: str | int = "INFO", log_format: str | None = None) -> None:
    level = logging.getLevelName(min_level) if isinstance(min_level, str) else int(min_level)

    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, handlers=[logging.StreamHandler()])
    else:
        logging.getLogger().setLevel(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _redact_sensitive,
            _add_schema_version,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _choose_renderer(log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def emit_event(event: str, severity: str = "info", **fields: Any) -> None:
    """Emit one structured event. Raw owner identifiers are hashed."""
    logger = structlog.get_logger()
    if "owner" in fields:
        fields["owner"] = hash_identifier(fields["owner"])
    if severity in {"error", "critical"}:
        logger.error(event, **fields)
    elif severity in {"warn", "warning", "anomaly"}:
        logger.warning(event, **fields)
    elif severity == "debug":
        logger.debug(event, **fields)
    else:
        logger.info(event, **fields)
