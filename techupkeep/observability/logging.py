"""
structlog setup for the aggregation CLI.

Log lines go to stderr so ``techupkeep aggregate --json`` keeps stdout
machine-readable. Production renders one JSON object per line; other
environments use the coloured console renderer.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from techupkeep.config.settings import get_settings

# Third-party loggers that flood DEBUG output during a fetch fan-out
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "asyncpg")


def _renderer(production: bool) -> list[Processor]:
    if production:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def setup_logging() -> None:
    """
    Configure structlog and bridge it onto stdlib logging.

    Library modules log through ``logging.getLogger(__name__)`` and the
    aggregation service through ``structlog.get_logger``; both end up on
    the same stderr stream at ``LOG_LEVEL``.
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        *_renderer(settings.is_production),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level),
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Stamp every following log line with ``kwargs`` (e.g. ``batch_id``)."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
