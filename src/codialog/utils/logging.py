"""Structured logging for Codialog, built on structlog with rich console output."""

import logging
from typing import Any, Dict, Optional

import structlog
from rich.logging import RichHandler

from codialog.config import settings

# Event keys whose values never reach the log output
SENSITIVE_KEYS = frozenset({"password", "api_key", "groq_api_key", "openai_api_key"})
REDACTED = "***"


def redact_sensitive(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor that masks credentials passed as event keys."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(level: Optional[str] = None, debug: Optional[bool] = None) -> None:
    """
    Configure structlog and standard library logging.

    Args:
        level: Log level name; ``settings.log_level`` if None
        debug: Human-readable console output instead of JSON; ``settings.debug`` if None
    """
    numeric_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    console_output = settings.debug if debug is None else debug

    # uvicorn and other libraries log through the standard library
    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            redact_sensitive,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer() if console_output else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def execution_context(**context: Any):
    """
    Bind context (e.g. ``session_id``) to every event logged inside the block.

    Usable across ``await`` points; each asyncio task sees only its own bindings.
    """
    return structlog.contextvars.bound_contextvars(**context)


def log_function_call(func_name: str, **kwargs: Any) -> Dict[str, Any]:
    """Create a log context for function calls."""
    return {
        "function": func_name,
        "parameters": {k: v for k, v in kwargs.items() if not k.startswith("_")},
    }


def log_profile_summary(profile: Any) -> Dict[str, Any]:
    """Log context describing which profile fields are filled, never their values."""
    filled = profile.filled_fields() if hasattr(profile, "filled_fields") else []
    return {
        "profile": {
            "filled_fields": filled,
            "has_credentials": "username" in filled and "password" in filled,
        }
    }
