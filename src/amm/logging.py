"""Structured logging for the AMM core, built on structlog.

Events are snake_case names with keyword fields. Reserves, amounts and prices
are Decimal; the ``_decimals_as_text`` processor renders any Decimal left in
an event as its exact string so JSON output never loses precision.

Engine operations bind ``operation`` and ``actor_id`` through
``operation_context``; the values ride on structlog.contextvars, so every
event logged while that coroutine runs carries them.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal

import structlog


def _decimals_as_text(
    logger: logging.Logger, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structlog over stdlib logging.

    Args:
        log_level: Root level name (DEBUG, INFO, ...). Unknown names fall back to INFO.
        log_format: "json" for machine-readable lines, anything else renders
            for the console.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _decimals_as_text,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format.lower() == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@contextmanager
def operation_context(operation: str, actor_id: str | None = None) -> Iterator[None]:
    """Bind the engine operation name (and caller id) to every event inside."""
    with structlog.contextvars.bound_contextvars(operation=operation, actor_id=actor_id):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
