"""
Structured logging configuration for the clip pipeline.
"""

import sys
import logging
from typing import Optional
import structlog
from structlog.stdlib import LoggerFactory

from .config import Settings, settings as default_settings


def setup_logging(active: Optional[Settings] = None) -> None:
    """Configure structured logging for the application."""
    active = active or default_settings

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if active.log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, active.log_level.upper(), logging.INFO),
    )

    if not active.log_to_file:
        return

    active.logs_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(active.logs_dir / "trimmer.log", encoding="utf-8")
    file_handler.setLevel(logging.INFO)

    error_handler = logging.FileHandler(active.logs_dir / "errors.log", encoding="utf-8")
    error_handler.setLevel(logging.ERROR)

    root_logger = logging.getLogger()
    root_logger.addHandler(file_handler)
    root_logger.addHandler(error_handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class LoggerMixin:
    """Mixin class to add logging capabilities to other classes."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        """Get a logger instance for this class."""
        return get_logger(self.__class__.__name__)
