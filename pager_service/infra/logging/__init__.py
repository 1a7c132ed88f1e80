"""Logging infrastructure.

Provides structured logging with:
- JSON Lines format with OpenTelemetry trace correlation
- QueueHandler + QueueListener for non-blocking I/O
- Lazy evaluation for expensive debug messages

Basic usage:
    import logging

    logger = logging.getLogger(__name__)
    logger.warning("Falling back to default cursor", extra={"reason": reason})

    # Lazy evaluation for expensive operations
    from pager_service.infra.logging import get_lazy_logger

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"descriptor: {descriptor.model_dump()}")  # Only runs if DEBUG enabled
"""

from pager_service.infra.logging.config import configure_logging, shutdown
from pager_service.infra.logging.formatters import JSONFormatter
from pager_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "JSONFormatter",
    "LazyLoggerAdapter",
    "configure_logging",
    "get_lazy_logger",
    "shutdown",
]
