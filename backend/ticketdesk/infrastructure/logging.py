import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

LOG_FORMATS = ("auto", "json", "console")

# Third-party loggers that drown out request logs at INFO.
QUIET_LOGGERS = ("pymongo", "multipart", "uvicorn.access")


def setup_logging(level: int | str = logging.INFO, log_format: str = "auto") -> None:
    """Configures structlog on top of the stdlib root logger.

    ``log_format`` is ``json``, ``console`` or ``auto`` (console on a TTY,
    JSON otherwise). The access line comes from the request middleware, so
    uvicorn's own access log is raised to WARNING.
    """
    numeric_level = _resolve_level(level)
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unsupported log format: {log_format}")

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    logging.getLogger().setLevel(numeric_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    use_console = log_format == "console" or (log_format == "auto" and sys.stderr.isatty())
    if use_console:
        renderer: list[Processor] = [structlog.dev.ConsoleRenderer()]
    else:
        renderer = [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=shared_processors + renderer,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(name: str | None = None) -> Any:
    """Returns a structlog logger."""
    return structlog.get_logger(name)
