"""Logging for the agent: structlog events on top of standard library handlers.

structlog renders every event once (JSON or key=value console text). The
console handler colors the rendered line by level through colorlog, and the
optional log file receives the same line uncolored, rotating at 10 MB and
keeping 14 files.
"""

import functools
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import List, Optional

import colorlog
import structlog
from structlog.typing import Processor

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 14

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def _level(name: str) -> int:
    return logging.getLevelName(name.upper())


def _processors(format_type: str) -> List[Processor]:
    renderer: Processor
    if format_type == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        # colorlog owns coloring, so the file never receives escape codes
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> None:
    """Configure structlog and the root logger's handlers.

    Arguments left as ``None`` fall back to the process settings
    (``ROCKETDRIVE_LOG_*`` environment variables or ``.env``). Calling it
    again replaces the handlers installed by the previous call.
    """
    from ..config.settings import get_settings  # config imports this module

    settings = get_settings().logging
    level = _level(log_level or settings.level)
    format_type = log_format or settings.format
    file_path = settings.file_path if log_file is None else log_file

    structlog.configure(
        processors=_processors(format_type),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)

    root.addHandler(_console_handler(level))
    if file_path:
        root.addHandler(_file_handler(file_path, level))


def _console_handler(level: int) -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(colorlog.ColoredFormatter(
        "%(log_color)s%(message)s",
        reset=True,
        log_colors=LEVEL_COLORS
    ))
    return handler


def _file_handler(file_path: str, level: int) -> logging.Handler:
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_execution_time(func):
    """Log how long each call of ``func`` took, and whether it raised."""
    logger = get_logger(func.__module__)

    @functools.wraps(func)
    def timed(*args, **kwargs):
        started = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(
                f"{func.__qualname__} failed",
                duration_seconds=round(time.perf_counter() - started, 3),
                error=str(e)
            )
            raise

        logger.info(
            f"{func.__qualname__} completed",
            duration_seconds=round(time.perf_counter() - started, 3)
        )
        return result

    return timed
