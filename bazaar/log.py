"""
Logging — structlog configuration.

    from bazaar.log import configure_logging, get_logger

    configure_logging(level="INFO", json=True)   # once, at startup
    logger = get_logger(__name__)
    logger.info("order_committed", order_id=order_id, total=str(total))

Events are snake_case names with key/value context.
"""

from __future__ import annotations

import logging

import structlog

type Logger = structlog.typing.FilteringBoundLogger


def configure_logging(level: str | int = "INFO", *, json: bool = True) -> None:
    """Configure structlog for the process. Safe to call more than once."""
    if isinstance(level, str):
        level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Logger:
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name)


__all__ = ("Logger", "configure_logging", "get_logger")
