"""Logging configuration for the storefront domain."""

import logging
import os
import sys

import structlog


def configure_logging(level: str | None = None) -> None:
    """Route structlog through a stdout handler; JSON in production, console otherwise."""
    env = os.getenv("PROTEAN_ENV", "development").lower()
    log_level = level or os.getenv("LOG_LEVEL") or ("WARNING" if env == "test" else "INFO")

    logging.basicConfig(stream=sys.stdout, level=log_level, format="%(message)s", force=True)

    if env in ("production", "staging"):
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.RichTracebackFormatter())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def add_context(**kwargs) -> None:
    """Bind key/values onto every log line from this context until removed."""
    structlog.contextvars.bind_contextvars(**kwargs)


def remove_context(*keys: str) -> None:
    """Unbind only the named keys, leaving what callers bound in place."""
    structlog.contextvars.unbind_contextvars(*keys)
