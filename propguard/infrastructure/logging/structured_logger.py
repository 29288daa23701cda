"""Structured logging with correlation tracking."""

import logging
import sys
from typing import Optional

import structlog
from structlog.types import FilteringBoundLogger

from ..common.context import get_current_execution_context
from ..config.settings import LoggingConfig

# Global logger instance
_logger: Optional[FilteringBoundLogger] = None


class CorrelationProcessor:
    """Adds correlation context to log records."""

    def __call__(self, logger, method_name, event_dict):
        context = get_current_execution_context()
        if context:
            for key, value in context.to_dict().items():
                event_dict.setdefault(key, value)
        return event_dict


class StructuredLoggerManager:
    """Manages structured logging configuration and setup."""

    def __init__(self, config: LoggingConfig):
        self.config = config
        self._configured = False

    def build_processors(self) -> list:
        """Build the processor chain, renderer last."""
        processors = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            CorrelationProcessor(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]

        if self.config.format == "json":
            processors.append(structlog.processors.JSONRenderer())
        else:
            processors.append(structlog.dev.ConsoleRenderer())

        return processors

    def configure_logging(self) -> FilteringBoundLogger:
        """Configure structured logging with all processors."""
        if self._configured:
            return structlog.get_logger()

        logging.basicConfig(
            format="%(message)s",
            stream=sys.stdout,
            level=getattr(logging, self.config.level),
        )

        structlog.configure(
            processors=self.build_processors(),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        self._configured = True

        logger = structlog.get_logger()
        logger.info(
            "Structured logging configured",
            level=self.config.level,
            format=self.config.format,
        )

        return logger


def configure_logging(config: Optional[LoggingConfig] = None) -> FilteringBoundLogger:
    """Configure global structured logging."""
    global _logger

    if _logger is None:
        manager = StructuredLoggerManager(config or LoggingConfig())
        _logger = manager.configure_logging()

    return _logger


def get_logger(name: Optional[str] = None) -> FilteringBoundLogger:
    """Get a logger, configuring logging with defaults on first use."""
    base = configure_logging()
    if name:
        return base.bind(logger_name=name)
    return base
