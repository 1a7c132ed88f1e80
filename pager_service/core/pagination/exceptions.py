"""Pagination exceptions.

Cursor errors describe bad client input and are absorbed by the
pagination use case. Descriptor and data source errors describe
misconfiguration or infrastructure failures and always propagate.
"""
from __future__ import annotations

from typing import Any


class PaginationError(Exception):
    """Base exception for pagination operations.

    Attributes:
        message: Error description
        details: Additional context about the error
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class CursorError(PaginationError):
    """Cursor token could not be turned into a descriptor."""


class MalformedTokenError(CursorError):
    """Token is not valid base64, UTF-8 or JSON, or its signature is wrong."""


class InvalidStructureError(CursorError):
    """Token decoded cleanly but does not match the cursor descriptor schema.

    Attributes:
        errors: Validation error entries (pydantic ``errors()`` format)
    """

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        self.errors = errors or []
        super().__init__(message, details={"error_count": len(self.errors)} if errors else None)


class InvalidDescriptorError(PaginationError):
    """Descriptor cannot be executed against the configured statement.

    Raised for an empty ordering or for ordering columns the statement
    does not select. This is a configuration problem, not bad input.
    """

    def __init__(self, message: str, column: str | None = None):
        details = {"column": column} if column else {}
        super().__init__(message, details=details)


class InvalidSearchableColumnError(PaginationError):
    """Searchable column is missing from the statement or is not textual."""

    def __init__(self, column: str, reason: str):
        self.column = column
        super().__init__(f"Column {column!r} cannot be text-searched: {reason}", details={"column": column})


class DataSourceError(PaginationError):
    """Underlying store failed while counting or fetching a page."""

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        super().__init__(
            f"Data source failed during {operation}",
            details={"operation": operation, "error": type(cause).__name__},
        )


__all__ = [
    "PaginationError",
    "CursorError",
    "MalformedTokenError",
    "InvalidStructureError",
    "InvalidDescriptorError",
    "InvalidSearchableColumnError",
    "DataSourceError",
]
