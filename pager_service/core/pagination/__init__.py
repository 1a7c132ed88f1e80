"""Cursor-based (keyset) pagination.

This package provides keyset pagination that is:
- Stable: Results don't shift or repeat when rows are inserted between pages
- Performant: Uses indexed seeks instead of OFFSET scans
- Stateless: The cursor carries the ordering, position, page size and filters

Typical wiring:
    products = PaginatedUseCase(
        KeysetQuery(select(Product), searchable_columns=["product_name"]),
        lambda p: {"id": str(p.id), "name": p.product_name},
    )

    @router.get("/products/paginated")
    async def list_products(params=Depends(cursor_query_params), session=Depends(get_session)):
        result = await products.paginate(session, params.cursor, params.overrides)
        return result.to_response()

Response shape:
    {"data": [...], "meta": {"nextCursor": "...", "previousCursor": "...",
                             "hasMore": true, "totalRowCount": 105}}

Cursors are opaque URL-safe strings that clients pass back unchanged.
An invalid cursor is served as the first page rather than an error.
"""

from pager_service.core.pagination.cursor import (
    CursorCodec,
    CursorDecoded,
    CursorDescriptor,
    CursorFallback,
)
from pager_service.core.pagination.exceptions import (
    CursorError,
    DataSourceError,
    InvalidDescriptorError,
    InvalidSearchableColumnError,
    InvalidStructureError,
    MalformedTokenError,
    PaginationError,
)
from pager_service.core.pagination.filters import KeysetFilter
from pager_service.core.pagination.params import CursorQueryParams, cursor_query_params
from pager_service.core.pagination.query import KeysetQuery
from pager_service.core.pagination.schemas import Page, PaginatedMeta, PaginatedResult
from pager_service.core.pagination.usecase import PaginatedUseCase

__all__ = [
    # Cursor utilities
    "CursorCodec",
    "CursorDecoded",
    "CursorDescriptor",
    "CursorFallback",
    # Errors
    "CursorError",
    "DataSourceError",
    "InvalidDescriptorError",
    "InvalidSearchableColumnError",
    "InvalidStructureError",
    "MalformedTokenError",
    "PaginationError",
    # Query and use case
    "KeysetFilter",
    "KeysetQuery",
    "PaginatedUseCase",
    # HTTP parameters
    "CursorQueryParams",
    "cursor_query_params",
    # Schemas
    "Page",
    "PaginatedMeta",
    "PaginatedResult",
]
