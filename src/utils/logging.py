"""Structured logging configuration for toonframe.

Uses structlog for structured, JSON-capable logging with session correlation.
"""

import logging
import sys
from contextvars import ContextVar

import structlog

# Context variable for generation session correlation
current_session_id: ContextVar[str | None] = ContextVar("current_session_id", default=None)


def add_session_id(_logger, _method_name, event_dict):
    """Structlog processor to inject session_id into all log events."""
    session_id = current_session_id.get()
    if session_id:
        event_dict["session_id"] = session_id
    return event_dict


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON logs. If False, use colored console output.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_session_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stdlib loggers (every module uses logging.getLogger) go through the
    # same processors, so session_id lands on their records too.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Suppress noisy third-party loggers
    noisy_loggers = [
        "httpx",
        "httpcore",
        "google_genai",
        "google_genai.models",
        "urllib3.connectionpool",
        "fontTools",
    ]
    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def set_session_context(session_id: str) -> None:
    """Set the current session ID for log correlation.

    Args:
        session_id: Session ID to include in all subsequent log messages
    """
    current_session_id.set(session_id)


def clear_session_context() -> None:
    """Clear the current session context."""
    current_session_id.set(None)
