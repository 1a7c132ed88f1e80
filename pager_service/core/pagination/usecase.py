"""Cursor pagination use case.

PaginatedUseCase owns the cursor lifecycle for one listing:

    cursor token ──decode──> descriptor ──overrides──> KeysetQuery.execute
                                                            │
    {data, meta} <──transform── items + next/previous cursors

Bad input never fails a request. A cursor that cannot be decoded, fails
its signature, or belongs to a different ordering resolves to the default
descriptor (page 1). Override values that fail validation are dropped one
by one. Only configuration errors and data source failures propagate.

Example:
    products = PaginatedUseCase(
        KeysetQuery(select(Product), searchable_columns=["product_name"]),
        lambda p: ProductOut(id=p.id, name=p.product_name),
    )

    result = await products.paginate(session, request_cursor, overrides={"limit": 20})
    return result.to_response()
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import Field, TypeAdapter, ValidationError

from pager_service.core.pagination.cursor import (
    CursorCodec,
    CursorDecoded,
    CursorDescriptor,
    CursorFallback,
    Direction,
    FilterValue,
    cursor_values_from,
)
from pager_service.core.pagination.schemas import PaginatedMeta, PaginatedResult
from pager_service.core.settings import get_pagination_settings
from pager_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from pager_service.core.pagination.cursor import DecodeResult
    from pager_service.core.pagination.query import KeysetQuery
    from pager_service.core.settings.pagination import PaginationSettings

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

_LIMIT_ADAPTER = TypeAdapter(Annotated[int, Field(gt=0)])
_DIRECTION_ADAPTER: TypeAdapter[Direction] = TypeAdapter(Direction)
_FILTER_VALUE_ADAPTER: TypeAdapter[FilterValue] = TypeAdapter(FilterValue)


class PaginatedUseCase[T, R]:
    """Paginate a keyset query with opaque cursors.

    Attributes:
        query: Keyset query producing raw rows of type T
        transform: Maps a raw row to its public representation R
        default_descriptor: Descriptor used for page 1 and as cursor fallback
        codec: Cursor encoder/decoder
    """

    __slots__ = ("query", "transform", "default_descriptor", "codec", "_settings")

    def __init__(
        self,
        query: KeysetQuery[T],
        transform: Callable[[T], R],
        *,
        default_descriptor: CursorDescriptor | None = None,
        settings: PaginationSettings | None = None,
        codec: CursorCodec | None = None,
    ) -> None:
        """Initialize the use case.

        Args:
            query: Keyset query to paginate
            transform: Row to response item mapping
            default_descriptor: First-page descriptor; built from settings when omitted
                (ordered by settings.default_order_by, limit settings.default_limit)
            settings: Pagination settings; cached settings when omitted
            codec: Cursor codec; built from settings (signing secret) when omitted
        """
        self._settings = settings or get_pagination_settings()
        self.query = query
        self.transform = transform
        self.codec = codec or CursorCodec.from_settings(self._settings)
        self.default_descriptor = default_descriptor or CursorDescriptor(
            order_by=self._settings.default_order_by,
            limit=self._settings.default_limit,
        )

    async def paginate(
        self,
        session: AsyncSession,
        encoded_cursor: str | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> PaginatedResult[R]:
        """Fetch one page.

        Args:
            session: Database session used for the count and page queries
            encoded_cursor: Cursor from a previous response (None for page 1)
            overrides: Optional "limit", "direction" and "filters" applied on
                top of the resolved descriptor; invalid entries are ignored

        Returns:
            PaginatedResult with transformed items and navigation metadata

        Raises:
            InvalidDescriptorError: The default ordering does not fit the query
            DataSourceError: The database failed
        """
        descriptor, from_cursor = self._resolve(encoded_cursor)
        if overrides:
            descriptor = self._apply_overrides(descriptor, overrides)

        page = await self.query.execute(session, descriptor)

        next_cursor = None
        if page.has_more and page.last is not None:
            next_cursor = self._derive_cursor(descriptor, page.last, "next")

        previous_cursor = None
        if from_cursor and page.first is not None:
            previous_cursor = self._derive_cursor(descriptor, page.first, "prev")

        lazy_logger.debug(
            lambda: f"paginate: {len(page.items)} items, total={page.total_count}, "
            f"has_more={page.has_more}, next={next_cursor is not None}, previous={previous_cursor is not None}"
        )

        return PaginatedResult(
            data=[self.transform(item) for item in page.items],
            meta=PaginatedMeta(
                next_cursor=next_cursor,
                previous_cursor=previous_cursor,
                has_more=page.has_more,
                total_row_count=page.total_count,
            ),
        )

    def resolve_cursor(self, encoded_cursor: str) -> DecodeResult:
        """Decode a cursor and check it belongs to this listing.

        Returns:
            CursorDecoded with a usable (possibly limit-clamped) descriptor,
            or CursorFallback explaining why the default must be used
        """
        result = self.codec.try_decode(encoded_cursor)
        if isinstance(result, CursorFallback):
            return result

        descriptor = result.descriptor
        if descriptor.order_by != self.default_descriptor.order_by:
            return CursorFallback(reason="cursor ordering does not match this listing")
        problem = self.query.cursor_problem(descriptor)
        if problem is not None:
            return CursorFallback(reason=problem)

        if descriptor.limit > self._settings.max_limit:
            lazy_logger.debug(
                lambda: f"paginate: clamping cursor limit {descriptor.limit} to {self._settings.max_limit}"
            )
            descriptor = descriptor.model_copy(update={"limit": self._settings.max_limit})
        return CursorDecoded(descriptor)

    def _resolve(self, encoded_cursor: str | None) -> tuple[CursorDescriptor, bool]:
        """Return the descriptor to run and whether it came from the cursor."""
        if not encoded_cursor:
            return self._fresh_default(), False

        result = self.resolve_cursor(encoded_cursor)
        if isinstance(result, CursorDecoded):
            return result.descriptor, True

        # A rejected cursor is served exactly like page 1, without a previous cursor
        logger.warning(
            "Falling back to default cursor",
            extra={"reason": result.reason, "operation": "paginate.resolve_cursor"},
        )
        return self._fresh_default(), False

    def _fresh_default(self) -> CursorDescriptor:
        return self.default_descriptor.model_copy(update={"timestamp": datetime.now(UTC)})

    def _apply_overrides(
        self,
        descriptor: CursorDescriptor,
        overrides: Mapping[str, Any],
    ) -> CursorDescriptor:
        updates: dict[str, Any] = {}

        if "limit" in overrides:
            limit = self._valid_limit(overrides["limit"])
            if limit is not None:
                updates["limit"] = limit

        if "direction" in overrides:
            try:
                updates["direction"] = _DIRECTION_ADAPTER.validate_python(overrides["direction"])
            except ValidationError:
                lazy_logger.debug(lambda: f"paginate: ignoring direction override {overrides['direction']!r}")

        filters = overrides.get("filters")
        if filters is not None:
            valid_filters = self._valid_filters(filters)
            if valid_filters:
                updates["filters"] = {**descriptor.filters, **valid_filters}

        return descriptor.model_copy(update=updates) if updates else descriptor

    def _valid_limit(self, value: Any) -> int | None:
        if isinstance(value, bool):
            return None
        try:
            limit = _LIMIT_ADAPTER.validate_python(value)
        except ValidationError:
            lazy_logger.debug(lambda: f"paginate: ignoring limit override {value!r}")
            return None
        if limit > self._settings.max_limit:
            lazy_logger.debug(lambda: f"paginate: ignoring limit override {limit} above max_limit")
            return None
        return limit

    def _valid_filters(self, filters: Any) -> dict[str, FilterValue]:
        if not isinstance(filters, dict):
            lazy_logger.debug(lambda: f"paginate: ignoring filters override of type {type(filters).__name__}")
            return {}

        valid: dict[str, FilterValue] = {}
        for column, value in filters.items():
            if not isinstance(column, str) or not column:
                continue
            try:
                valid[column] = _FILTER_VALUE_ADAPTER.validate_python(value, strict=True)
            except ValidationError:
                lazy_logger.debug(lambda column=column: f"paginate: ignoring filter override for {column!r}")
        return valid

    def _derive_cursor(self, descriptor: CursorDescriptor, item: T, direction: Direction) -> str:
        # Fresh descriptor: same ordering, limit and filters, new position
        derived = CursorDescriptor(
            cursor_values=cursor_values_from(item, descriptor.order_by),
            order_by=descriptor.order_by,
            limit=descriptor.limit,
            direction=direction,
            filters=descriptor.filters,
        )
        return self.codec.encode(derived)


__all__ = ["PaginatedUseCase"]
