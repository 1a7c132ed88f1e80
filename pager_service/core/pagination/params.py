"""FastAPI dependency for cursor pagination query parameters.

``cursor``, ``limit`` and ``direction`` are pagination parameters; every
other query parameter is treated as a filter. Filter values are coerced
from their query string form: integers and decimals become numbers,
``true``/``false`` become booleans and anything else stays a string.

``limit`` and ``direction`` are accepted as raw strings so that bad values
are dropped by the use case instead of failing request validation.

Usage:
    @router.get("/products", response_model=PaginatedResult[ProductOut])
    async def list_products(
        params: Annotated[CursorQueryParams, Depends(cursor_query_params)],
        session: Annotated[AsyncSession, Depends(get_session)],
    ) -> PaginatedResult[ProductOut]:
        return await products.paginate(session, params.cursor, params.overrides)

    # GET /products?cursor=eyJjdXJz...&product_name=lamp&in_stock=true
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Query, Request

if TYPE_CHECKING:
    from pager_service.core.pagination.cursor import FilterValue

RESERVED_PARAMS = frozenset({"cursor", "limit", "direction"})

_INT_PATTERN = re.compile(r"^[+-]?\d+$")
_FLOAT_PATTERN = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")


def coerce_query_value(value: str) -> FilterValue:
    """Turn a query string value into a filter value.

    Example:
        coerce_query_value("42")     # 42
        coerce_query_value("4.5")    # 4.5
        coerce_query_value("true")   # True
        coerce_query_value("lamp")   # "lamp"
    """
    if value == "true":
        return True
    if value == "false":
        return False
    if _INT_PATTERN.match(value):
        return int(value)
    if _FLOAT_PATTERN.match(value):
        number = float(value)
        if math.isfinite(number):
            return number
    return value


@dataclass(slots=True, frozen=True)
class CursorQueryParams:
    """Pagination inputs extracted from a request.

    Attributes:
        cursor: Opaque cursor from a previous response
        limit: Raw page size override
        direction: Raw direction override ("next" or "prev")
        filters: Coerced filters from the remaining query parameters
    """

    cursor: str | None = None
    limit: str | None = None
    direction: str | None = None
    filters: dict[str, FilterValue] = field(default_factory=dict)

    @property
    def overrides(self) -> dict[str, Any]:
        """Overrides mapping for PaginatedUseCase.paginate()."""
        overrides: dict[str, Any] = {}
        if self.limit is not None:
            overrides["limit"] = self.limit
        if self.direction is not None:
            overrides["direction"] = self.direction
        if self.filters:
            overrides["filters"] = self.filters
        return overrides


async def cursor_query_params(
    request: Request,
    cursor: Annotated[str | None, Query(description="Cursor from a previous page")] = None,
    limit: Annotated[str | None, Query(description="Page size")] = None,
    direction: Annotated[str | None, Query(description="next or prev")] = None,
) -> CursorQueryParams:
    """Collect cursor, overrides and filters from the query string."""
    filters = {
        key: coerce_query_value(value)
        for key, value in request.query_params.items()
        if key not in RESERVED_PARAMS
    }
    return CursorQueryParams(cursor=cursor, limit=limit, direction=direction, filters=filters)


__all__ = [
    "CursorQueryParams",
    "RESERVED_PARAMS",
    "coerce_query_value",
    "cursor_query_params",
]
