"""Logging configuration setup.

Root logger gets a single QueueHandler; the real handlers (console and
optional rotating file) run behind a QueueListener so request handling
never blocks on log I/O. Application loggers propagate to the root.

Usage:
    from pager_service.infra.logging import configure_logging

    configure_logging()                      # LOG_* environment settings
    configure_logging(level="DEBUG", json_logs=False)  # local debugging
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from queue import Queue
from typing import TYPE_CHECKING, Any

from pager_service.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from pager_service.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)

_TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
_listener: QueueListener | None = None
_configured = False


def shutdown() -> None:
    """Stop the QueueListener, flushing pending records."""
    global _listener

    if _listener is not None:
        _listener.stop()
        _listener = None


def configure_logging(
    settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **overrides: Any,
) -> None:
    """Install the root queue handler once per process.

    Args:
        settings: Logging settings; cached LOG_* settings when omitted.
        force: Replace an existing configuration.
        **overrides: LoggingSettings fields to change for this call
            (for example ``level="DEBUG"``).
    """
    global _listener, _configured

    if _configured and not force:
        return

    if settings is None:
        from pager_service.core.settings import get_logging_settings

        settings = get_logging_settings()
    if overrides:
        settings = type(settings).model_validate({**settings.model_dump(exclude={"level_int"}), **overrides})

    shutdown()
    logging.captureWarnings(settings.capture_warnings)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "root": {"level": settings.level, "handlers": []},
        }
    )
    _configured = True

    handlers = _build_handlers(settings)
    if not handlers:
        return

    log_queue: Queue[logging.LogRecord] = Queue()
    _listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _listener.start()
    atexit.register(shutdown)

    logging.getLogger().addHandler(QueueHandler(log_queue))
    logger.debug("Logging configured", extra={"json_logs": settings.json_logs, "handlers": len(handlers)})


def _build_handlers(settings: LoggingSettings) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if settings.console_enabled:
        handlers.append(logging.StreamHandler())
    if settings.file_path is not None:
        settings.file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                settings.file_path,
                maxBytes=settings.file_max_bytes,
                backupCount=settings.file_backup_count,
                encoding="utf-8",
            )
        )

    formatter: logging.Formatter
    if settings.json_logs:
        formatter = JSONFormatter(static={"service": settings.service_name})
    else:
        formatter = logging.Formatter(fmt=_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers
