"""Lazy evaluation support for logging.

Debug messages describing a query (ordering, filters, row counts) are
cheap to write but not free to build. The adapter here accepts callables
in place of the message or its arguments and only calls them when the
level is enabled.
"""

from __future__ import annotations

import logging
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that evaluates callable messages on demand.

    ``debug()``, ``info()`` and the other level methods of LoggerAdapter all
    go through ``log()``, so overriding it covers every level.

    Example:
        lazy_logger = get_lazy_logger(__name__)
        lazy_logger.debug(lambda: f"descriptor={descriptor.model_dump()}")
        lazy_logger.debug("rows: %s", lambda: len(rows))
    """

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return
        if callable(msg):
            msg = msg()
        args = tuple(arg() if callable(arg) else arg for arg in args)
        super().log(level, msg, *args, **kwargs)


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    """Logger for ``name`` that accepts callables as message and arguments.

    Keyword arguments are bound to every record as ``extra`` fields.
    """
    return LazyLoggerAdapter(logging.getLogger(name), context)
