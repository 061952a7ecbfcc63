"""Logging setup shared by structlog and stdlib loggers.

Routers log through ``structlog.get_logger()`` while service modules use
``logging.getLogger(__name__)``. Both are rendered by one root handler whose
``ProcessorFormatter`` runs the same processor chain, so every line carries
the bound request context (``request_id``, ``method``, ``path``) and comes
out as JSON in production.
"""

import logging
import sys

import structlog

from xnrt.config import Settings

HANDLER_NAME = "xnrt"

# Per-statement SQL and uvicorn's own access lines duplicate request_completed.
_QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "httpx")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def build_formatter(log_format: str) -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering both structlog events and foreign stdlib records."""
    if log_format == "json":
        final: list[structlog.types.Processor] = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=False),
        ]
    return structlog.stdlib.ProcessorFormatter(foreign_pre_chain=_shared_processors(), processors=final)


def setup_logging(settings: Settings) -> None:
    """Route structlog and stdlib logging through a single root handler.

    Safe to call repeatedly: the previously installed handler is replaced,
    other handlers on the root logger are left alone.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(build_formatter(settings.log_format))

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
