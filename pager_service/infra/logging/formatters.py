"""JSON Lines formatter with trace correlation."""
from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace

# Attributes every LogRecord has; anything else on a record came from extra=
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _trace_fields() -> dict[str, str]:
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return {}
    return {
        "trace_id": format(context.trace_id, "032x"),
        "span_id": format(context.span_id, "016x"),
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, one record per line.

    Output keys are ``timestamp`` (UTC, milliseconds), ``level``, ``logger``
    and ``message``, followed by the active OpenTelemetry ``trace_id`` and
    ``span_id`` (when a span is recording), any ``static`` fields, and every
    field passed through ``extra={...}``.

    Example output:
        {"timestamp": "2025-01-01T00:00:00.123Z", "level": "WARNING",
         "logger": "pager_service.core.pagination.usecase",
         "message": "Falling back to default cursor", "service": "pager-service",
         "reason": "Invalid cursor format", "operation": "paginate.resolve_cursor"}
    """

    def __init__(self, static: dict[str, Any] | None = None) -> None:
        super().__init__()
        self.static = dict(static or {})

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        data: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_trace_fields(),
            **self.static,
        }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            data["stack_trace"] = self.formatStack(record.stack_info)

        data.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and key not in data
        )
        return json.dumps(data, ensure_ascii=False, default=str)
