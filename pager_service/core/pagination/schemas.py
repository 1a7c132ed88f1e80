"""Pagination result schemas.

Two shapes are involved in a paginated request:

1. Page: the raw query result handed from the keyset query to the use case.
   Items are database rows (ORM instances or mappings).

2. PaginatedResult: the public response. Items have been transformed
   into their public representation and the metadata carries the
   opaque cursors for the neighbouring pages.

PaginatedResult serializes with camelCase keys:
    {"data": [...], "meta": {"nextCursor": "...", "hasMore": true,
                             "totalRowCount": 105}}

A cursor that does not exist (previous on page 1, next on the last page)
is omitted from the response.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class Page[R]:
    """One page of raw rows.

    Attributes:
        items: Rows for this page (lookahead row already trimmed)
        total_count: Rows matching the filters, ignoring the cursor position
        has_more: Whether a row exists beyond this page in the query direction
    """

    items: Sequence[R]
    total_count: int
    has_more: bool

    @property
    def first(self) -> R | None:
        return self.items[0] if self.items else None

    @property
    def last(self) -> R | None:
        return self.items[-1] if self.items else None


class PaginatedMeta(BaseModel):
    """Navigation metadata for a paginated response.

    Attributes:
        next_cursor: Cursor for the following page (None on the last page)
        previous_cursor: Cursor for the preceding page (None on the first page)
        has_more: Whether more items exist after this page
        total_row_count: Rows matching the filters across all pages
    """

    next_cursor: str | None = Field(
        default=None,
        description="Cursor to fetch the next page",
    )
    previous_cursor: str | None = Field(
        default=None,
        description="Cursor to fetch the previous page",
    )
    has_more: bool = Field(
        default=False,
        description="Whether more items exist",
    )
    total_row_count: int = Field(
        default=0,
        ge=0,
        description="Total rows matching the filters",
    )

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class PaginatedResult(BaseModel, Generic[T]):
    """Cursor paginated response.

    Usage:
        @router.get("/products", response_model=PaginatedResult[ProductOut])
        async def list_products(params=Depends(cursor_query_params), session=...):
            return await products.paginate(
                session, params.cursor, overrides=params.overrides
            )

    Attributes:
        data: Transformed items for this page
        meta: Cursors and counts
    """

    data: list[T] = Field(
        default_factory=list,
        description="List of items",
    )
    meta: PaginatedMeta = Field(
        default_factory=PaginatedMeta,
        description="Pagination metadata",
    )

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_response(self) -> dict[str, Any]:
        """JSON-ready dict using the camelCase wire names.

        Absent cursors are left out of ``meta`` rather than sent as null.
        """
        response = self.model_dump(mode="json", by_alias=True, exclude={"meta"})
        response["meta"] = self.meta.model_dump(mode="json", by_alias=True, exclude_none=True)
        return response


__all__ = [
    "Page",
    "PaginatedMeta",
    "PaginatedResult",
]
