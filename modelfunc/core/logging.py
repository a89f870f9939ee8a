"""Structured logging configuration."""

import sys
import time
import logging
import structlog
from pathlib import Path
from typing import List, Optional
from modelfunc.core.config import Settings


# Driver loggers that would otherwise echo every statement and pool checkout
QUIET_LOGGERS = ("aiosqlite", "sqlalchemy.engine", "sqlalchemy.pool", "redis")


def build_handlers(settings: Settings) -> List[logging.Handler]:
    """stdout handler, plus a file handler when settings.log_file is set."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    return handlers


def build_processors(log_format: str) -> list:
    """structlog processor chain ending in the renderer for log_format."""
    if log_format == "json":
        head = [structlog.stdlib.add_logger_name, structlog.processors.TimeStamper(fmt="iso")]
        renderer = structlog.processors.JSONRenderer()
    else:
        head = [structlog.processors.TimeStamper(fmt="%H:%M:%S")]
        renderer = structlog.dev.ConsoleRenderer(
            colors=False,
            pad_event=35,
            exception_formatter=structlog.dev.plain_traceback
        )

    return head + [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


def configure_logging(settings: Settings) -> None:
    """Route modelfunc's structlog output through stdlib logging per settings."""
    level = getattr(logging, settings.log_level.upper())
    handlers = build_handlers(settings)
    for handler in handlers:
        handler.setLevel(level)

    logging.basicConfig(level=level, handlers=handlers, format="%(message)s", force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=build_processors(settings.log_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_store_operation(logger: structlog.BoundLogger, operation: str, table: str,
                        start_time: float, **kwargs) -> None:
    """Log a completed store round trip with its duration."""
    logger.debug(
        "Store operation",
        operation=operation,
        table=table,
        execution_time_seconds=round(time.perf_counter() - start_time, 4),
        **kwargs
    )


def log_cache_operation(logger: structlog.BoundLogger, operation: str,
                        key: str, hit: Optional[bool] = None, **kwargs) -> None:
    """Log cache operations."""
    log_data = {
        "operation": operation,
        "cache_key": key,
        **kwargs
    }

    if hit is not None:
        log_data["cache_hit"] = hit

    logger.debug("Cache operation", **log_data)
