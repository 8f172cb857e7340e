"""Shared structlog/stdlib logging bootstrap for the pipeline worker process."""

import logging
import logging.config
import sys

import structlog
from structlog.dev import ConsoleRenderer

_CONFIGURED = False


def _is_local_environment(environment: str | None) -> bool:
    """Check if running in local development environment."""
    env = (environment or "").strip().lower()
    return env in ("", "local", "development", "dev")


def configure_logging(log_level: str, environment: str | None = None) -> None:
    """Configure structured logging with environment-appropriate format.

    - Local/development: human-readable console output with colors
    - Anything else: JSON lines for log aggregation
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    # Scraped titles can carry any codepoint; never crash the worker on stdout encoding.
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="backslashreplace")
    if hasattr(sys.stderr, "reconfigure"):
        sys.stderr.reconfigure(encoding="utf-8", errors="backslashreplace")

    is_local = _is_local_environment(environment)

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        ConsoleRenderer(colors=True, pad_event=40)
        if is_local
        else structlog.processors.JSONRenderer()
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                    "foreign_pre_chain": shared_processors,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "structured",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {
                "handlers": ["default"],
                "level": log_level,
            },
            # httpx logs every request at INFO; the worker polls every few seconds.
            "loggers": {
                "httpx": {"level": "WARNING"},
                "httpcore": {"level": "WARNING"},
                "openai": {"level": "WARNING"},
                "asyncpg": {"level": "WARNING"},
            },
        }
    )

    _CONFIGURED = True
