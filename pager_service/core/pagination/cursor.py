"""Cursor encoding and decoding for pagination.

Cursors are opaque strings that carry the complete pagination state:
the ordering columns, the values of those columns for the boundary row,
the page size, the direction and any filters. Nothing is stored on the
server between requests.

The cursor format is:
1. JSON object with camelCase keys
2. Base64 URL-safe encoded for use in URLs
3. Optionally followed by ``.`` and an HMAC-SHA256 signature

Example cursor payload:
    {"cursorValues": {"created_at": "2025-01-15T10:30:00", "id": 42},
     "orderBy": ["created_at", "id"], "limit": 10, "direction": "next",
     "filters": {"name": "lamp"}, "timestamp": "2025-01-15T10:31:02Z"}

JSON has no date type, so datetimes travel as ISO-8601 strings. On decode,
any cursor value that looks like an ISO-8601 timestamp is turned back into
a ``datetime``. A string column holding such text would be revived too and
then no longer match its column, so ordering columns are expected to be
typed columns where this is safe.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Literal, Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from pager_service.core.pagination.exceptions import (
    CursorError,
    InvalidStructureError,
    MalformedTokenError,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pager_service.core.settings.pagination import PaginationSettings

CursorValue = str | int | float | bool | datetime | None
FilterValue = str | int | float | bool
Direction = Literal["next", "prev"]

_ISO_DATETIME = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{1,6})?(Z|[+-]\d{2}:\d{2})?$"
)
_SIGNATURE_SEPARATOR = "."


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CursorDescriptor(BaseModel):
    """Self-describing pagination state carried inside a cursor.

    Attributes:
        cursor_values: Last-seen value per ordering column (None = open start)
        order_by: Ordering columns; the last one should be unique
        limit: Page size
        direction: "next" seeks forward (ascending), "prev" backward (descending)
        filters: Column filters applied before the keyset bound
        timestamp: When the cursor was created (informational)
    """

    cursor_values: dict[str, CursorValue] = Field(
        default_factory=dict,
        description="Ordering column values of the boundary row",
    )
    order_by: tuple[str, ...] = Field(
        description="Ordering columns, most significant first",
    )
    limit: int = Field(gt=0, description="Page size")
    direction: Direction = Field(
        default="next",
        description="Pagination direction",
    )
    filters: dict[str, FilterValue] = Field(
        default_factory=dict,
        description="Equality or substring filters by column",
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="Cursor creation time",
    )

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _cursor_columns_are_ordered(self) -> Self:
        unknown = [key for key in self.cursor_values if key not in self.order_by]
        if unknown:
            msg = f"cursorValues keys {unknown} are not part of orderBy"
            raise ValueError(msg)
        return self

    @property
    def has_position(self) -> bool:
        """Whether any ordering column carries a usable boundary value."""
        return any(is_defined(value) for value in self.cursor_values.values())


def is_defined(value: Any) -> bool:
    """Cursor values of None or "" mean "no bound on this column"."""
    return value is not None and value != ""


def read_field(record: Any, name: str) -> Any:
    """Read a column value from a mapping row or an ORM instance."""
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def to_cursor_value(value: Any) -> CursorValue:
    """Normalize a column value into something a cursor can carry."""
    if isinstance(value, UUID | Decimal):
        return str(value)
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    return value


def cursor_values_from(record: Any, order_by: Sequence[str]) -> dict[str, CursorValue]:
    """Extract the ordering column values of a row.

    Example:
        values = cursor_values_from(row, ["created_at", "id"])
        # {"created_at": datetime(...), "id": 42}
    """
    return {column: to_cursor_value(read_field(record, column)) for column in order_by}


@dataclass(slots=True, frozen=True)
class CursorDecoded:
    """Cursor token decoded into a usable descriptor."""

    descriptor: CursorDescriptor


@dataclass(slots=True, frozen=True)
class CursorFallback:
    """Cursor token rejected; the caller should use its default descriptor."""

    reason: str
    error: CursorError | None = None


DecodeResult = CursorDecoded | CursorFallback


class CursorCodec:
    """Encode and decode pagination cursors.

    Cursors are URL-safe base64 strings holding a JSON CursorDescriptor.
    When a secret is given, tokens are signed with HMAC-SHA256 and tokens
    with a missing or wrong signature are rejected as malformed.

    Usage:
        codec = CursorCodec()
        token = codec.encode(CursorDescriptor(order_by=("id",), limit=10))
        descriptor = codec.decode(token)
    """

    __slots__ = ("_secret",)

    def __init__(self, secret: str | bytes | None = None) -> None:
        if isinstance(secret, str):
            secret = secret.encode()
        self._secret = secret or None

    @classmethod
    def from_settings(cls, settings: PaginationSettings) -> CursorCodec:
        """Build a codec using the configured signing secret (if any)."""
        secret = settings.cursor_secret
        return cls(secret.get_secret_value() if secret is not None else None)

    @property
    def signed(self) -> bool:
        return self._secret is not None

    def encode(self, descriptor: CursorDescriptor) -> str:
        """Encode a descriptor to an opaque token.

        Args:
            descriptor: Pagination state to carry

        Returns:
            URL-safe base64 string, signed when a secret is configured
        """
        payload = descriptor.model_dump(mode="json", by_alias=True)
        json_str = json.dumps(payload, separators=(",", ":"))
        token = base64.urlsafe_b64encode(json_str.encode()).decode()
        if self._secret is None:
            return token
        return f"{token}{_SIGNATURE_SEPARATOR}{_signature(self._secret, token)}"

    def decode(self, token: str) -> CursorDescriptor:
        """Decode a token back into a descriptor.

        Raises:
            MalformedTokenError: Token is not base64/UTF-8/JSON or the signature fails
            InvalidStructureError: Payload does not match the descriptor schema
        """
        payload = self._verified_payload(token)
        try:
            raw = base64.b64decode(payload.encode("ascii"), altchars=b"-_", validate=True)
            data = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise MalformedTokenError("Invalid cursor format", details={"error": str(e)}) from e

        if not isinstance(data, dict):
            raise InvalidStructureError("Cursor payload must be a JSON object")

        try:
            descriptor = CursorDescriptor.model_validate_json(raw, strict=True)
        except ValidationError as e:
            raise InvalidStructureError(
                "Invalid cursor data structure",
                errors=e.errors(include_url=False),
            ) from e

        if not descriptor.order_by:
            raise InvalidStructureError("Cursor orderBy must not be empty")

        return descriptor.model_copy(
            update={"cursor_values": _revive_datetimes(descriptor.cursor_values)}
        )

    def try_decode(self, token: str) -> DecodeResult:
        """Decode a token without raising.

        Returns:
            CursorDecoded on success, CursorFallback describing the rejection otherwise
        """
        try:
            return CursorDecoded(self.decode(token))
        except CursorError as e:
            return CursorFallback(reason=e.message, error=e)

    def _verified_payload(self, token: str) -> str:
        secret = self._secret
        if secret is None:
            return token

        payload, sep, signature = token.rpartition(_SIGNATURE_SEPARATOR)
        if not sep:
            raise MalformedTokenError("Cursor signature missing")
        try:
            expected = _signature(secret, payload)
        except UnicodeEncodeError as e:
            raise MalformedTokenError("Invalid cursor format") from e
        if not hmac.compare_digest(signature.encode(), expected.encode()):
            raise MalformedTokenError("Cursor signature mismatch")
        return payload


def _signature(secret: bytes, payload: str) -> str:
    digest = hmac.new(secret, payload.encode("ascii"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def _parse_iso_datetime(value: str) -> datetime | None:
    if not _ISO_DATETIME.match(value):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        # Shaped like a timestamp but not a real one (e.g. month 13)
        return None


def _revive_datetimes(values: dict[str, CursorValue]) -> dict[str, CursorValue]:
    revived: dict[str, CursorValue] = {}
    for key, value in values.items():
        parsed = _parse_iso_datetime(value) if isinstance(value, str) else None
        revived[key] = parsed if parsed is not None else value
    return revived


__all__ = [
    "CursorCodec",
    "CursorDecoded",
    "CursorDescriptor",
    "CursorFallback",
    "CursorValue",
    "DecodeResult",
    "Direction",
    "FilterValue",
    "cursor_values_from",
    "is_defined",
    "read_field",
    "to_cursor_value",
]
