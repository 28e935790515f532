"""Structured logging configuration using structlog.

Login diagnostics (which step failed, which mapping was broken) only ever
reach these logs; HTTP clients get a generic failure.
"""

import logging
import sys

import structlog

from idbridge.core.config import get_settings

_SECRET_KEYS = frozenset({"password", "hashed_password", "password_hash", "access_token", "token"})


def _drop_secrets(logger, method_name: str, event_dict: dict) -> dict:
    """Mask credential fields that callers may have bound by accident."""
    for key in _SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def configure_logging() -> None:
    """Configure structlog: console output in debug mode, JSON lines otherwise."""
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _drop_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.app_debug:
        renderers = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        renderers = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # add_logger_name needs stdlib loggers (they carry a .name)
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)
