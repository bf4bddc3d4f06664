"""
Logging configuration using structlog for structured logging.

This module provides centralized logging setup for the orchestrator, with
human-readable console output for operators and JSON output for cron logs
that are shipped elsewhere. Secrets (bot tokens, credentials embedded in
remote URLs) are redacted before rendering.
"""

import re
from typing import Any

import structlog

SENSITIVE_KEYS = {"token", "password", "secret", "api_key", "authorization"}

# user:token@ in https remotes, and bare GitHub token formats
SENSITIVE_PATTERNS = [
    (re.compile(r"(https?://)[^:/@\s]+:[^@\s]+@"), r"\1***REDACTED***@"),
    (re.compile(r"\b(gh[pousr]_[A-Za-z0-9]{20,}|github_pat_[A-Za-z0-9_]{20,})\b"), "***REDACTED***"),
]


def redact_sensitive_data(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Redact tokens and URL credentials from log events.

    Args:
        logger: The logger instance
        method_name: The name of the called method
        event_dict: The event dictionary to process

    Returns:
        The event dictionary with sensitive data redacted
    """
    for key, value in event_dict.items():
        if not isinstance(value, str):
            continue
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            event_dict[key] = "***REDACTED***"
            continue
        redacted = value
        for pattern, replacement in SENSITIVE_PATTERNS:
            redacted = pattern.sub(replacement, redacted)
        event_dict[key] = redacted
    return event_dict


def configure_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structured logging.

    Sets up structlog with a pipeline of processors for rich, structured logs
    that include timestamps, log levels, stack traces, and contextual
    information such as the project being processed.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render one JSON object per line instead of console output
    """
    renderer: Any = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_sensitive_data,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level.upper()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a logger instance.

    Args:
        name: Optional logger name (typically __name__ from calling module)

    Returns:
        A structlog logger instance

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("prp_enriched", prp_id="PRP-001", path="PRPs/enriched/PRP-001.md")
    """
    return structlog.get_logger(name)
