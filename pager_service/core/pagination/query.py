"""Keyset query execution.

KeysetQuery turns a CursorDescriptor into a bounded, ordered, filtered
query over a base SQLAlchemy statement and runs it on an explicit session.

Example:
    query = KeysetQuery(select(Product), searchable_columns=["product_name"])
    page = await query.execute(session, descriptor)
    for product in page.items:
        ...

The base statement must not carry ORDER BY or LIMIT clauses; both are
derived from the descriptor on every call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from pager_service.core.pagination.cursor import is_defined
from pager_service.core.pagination.exceptions import (
    DataSourceError,
    InvalidDescriptorError,
    InvalidSearchableColumnError,
)
from pager_service.core.pagination.filters import (
    EqualityFilter,
    KeysetFilter,
    OrderBy,
    SearchFilter,
    coerce_cursor_value,
    is_text_column,
    value_fits_column,
)
from pager_service.core.pagination.schemas import Page
from pager_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.elements import ColumnElement

    from pager_service.core.pagination.cursor import CursorDescriptor, FilterValue

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


class KeysetQuery[T]:
    """Cursor (keyset) paginated query over a base statement.

    Provides:
        - execute(session, descriptor) -> Page[T]
        - cursor_problem(descriptor) -> str | None

    Rows are ORM instances when the statement selects a single entity
    (``select(Product)``) and plain dicts otherwise.

    Attributes:
        statement: Base select statement (filters may already be applied)
        searchable_columns: Columns where string filters mean substring search
    """

    __slots__ = ("statement", "searchable_columns", "_columns", "_returns_entities")

    def __init__(
        self,
        statement: Select[Any],
        *,
        searchable_columns: Iterable[str] = (),
    ) -> None:
        """Initialize the query.

        Args:
            statement: Base select statement without ORDER BY or LIMIT
            searchable_columns: Text columns that accept substring filters

        Raises:
            InvalidSearchableColumnError: A searchable column is not selected
                by the statement or is not a text column
        """
        self.statement = statement
        self._columns: dict[str, ColumnElement[Any]] = {
            column.key: column for column in statement.selected_columns
        }
        self.searchable_columns = frozenset(searchable_columns)
        for name in sorted(self.searchable_columns):
            column = self._columns.get(name)
            if column is None:
                raise InvalidSearchableColumnError(name, "not selected by the statement")
            if not is_text_column(column):
                raise InvalidSearchableColumnError(name, "not a text column")

        descriptions = statement.column_descriptions
        self._returns_entities = (
            len(descriptions) == 1
            and descriptions[0].get("entity") is not None
            and descriptions[0]["expr"] is descriptions[0]["entity"]
        )

    async def execute(self, session: AsyncSession, descriptor: CursorDescriptor) -> Page[T]:
        """Run one page of the query.

        Steps:
            1. Apply filters (substring for searchable text, equality for numbers/bools)
            2. Count filtered rows (independent of the cursor position)
            3. Order by the descriptor columns (ASC for next, DESC for prev)
            4. Seek past the cursor values
            5. Fetch limit + 1 rows and trim the lookahead row

        Raises:
            InvalidDescriptorError: Ordering is empty or names unknown columns
            DataSourceError: The session failed to count or fetch
        """
        order_columns = self._order_columns(descriptor)
        lazy_logger.debug(
            lambda: f"keyset.execute start: order_by={list(descriptor.order_by)} "
            f"direction={descriptor.direction} limit={descriptor.limit} filters={descriptor.filters}"
        )

        filtered = self._apply_filters(self.statement, descriptor.filters)
        total_count = await self._count(session, filtered)

        sort_order = "asc" if descriptor.direction == "next" else "desc"
        paged = OrderBy(order_columns, sort_order).apply(filtered)
        paged = KeysetFilter(self._bounds(descriptor), direction=descriptor.direction).apply(paged)
        rows = await self._fetch(session, paged.limit(descriptor.limit + 1))

        has_more = len(rows) > descriptor.limit
        if has_more:
            rows = rows[: descriptor.limit]

        lazy_logger.debug(
            lambda: f"keyset.execute end: {len(rows)} items, total={total_count}, has_more={has_more}"
        )
        return Page(items=rows, total_count=total_count, has_more=has_more)

    def cursor_problem(self, descriptor: CursorDescriptor) -> str | None:
        """Explain why a decoded descriptor cannot run against this query.

        Cursor values arrive from clients, so a value that cannot be
        converted to its column type is bad input rather than a bug.

        Returns:
            Reason string, or None when the descriptor is usable
        """
        for name in descriptor.order_by:
            if name not in self._columns:
                return f"unknown ordering column {name!r}"
        for name, value in descriptor.cursor_values.items():
            if not is_defined(value):
                continue
            try:
                coerce_cursor_value(self._columns[name], value)
            except ValueError:
                return f"cursor value for {name!r} does not match the column type"
        return None

    def _order_columns(self, descriptor: CursorDescriptor) -> list[ColumnElement[Any]]:
        if not descriptor.order_by:
            raise InvalidDescriptorError("Descriptor orderBy must not be empty")
        columns = []
        for name in descriptor.order_by:
            column = self._columns.get(name)
            if column is None:
                raise InvalidDescriptorError("Ordering column is not selected by the statement", column=name)
            columns.append(column)
        return columns

    def _bounds(self, descriptor: CursorDescriptor) -> list[tuple[ColumnElement[Any], Any]]:
        # Columns without a cursor value contribute no term
        return [
            (self._columns[name], descriptor.cursor_values[name])
            for name in descriptor.order_by
            if is_defined(descriptor.cursor_values.get(name))
        ]

    def _apply_filters(
        self,
        statement: Select[Any],
        filters: Mapping[str, FilterValue],
    ) -> Select[Any]:
        for name, value in filters.items():
            column = self._columns.get(name)
            if column is None:
                logger.warning(
                    "Ignoring filter on unknown column",
                    extra={"column": name, "operation": "keyset.filter"},
                )
                continue
            if isinstance(value, str):
                if name in self.searchable_columns and value:
                    statement = SearchFilter(column, value).apply(statement)
                else:
                    lazy_logger.debug(lambda name=name: f"keyset.filter: ignoring text filter on {name!r}")
            elif not value_fits_column(column, value):
                lazy_logger.debug(
                    lambda name=name, value=value: f"keyset.filter: ignoring {value!r} on {name!r}, wrong type"
                )
            else:
                statement = EqualityFilter(column, value).apply(statement)
        return statement

    async def _count(self, session: AsyncSession, statement: Select[Any]) -> int:
        count_stmt = select(func.count()).select_from(statement.subquery())
        try:
            return (await session.execute(count_stmt)).scalar_one()
        except (SQLAlchemyError, TimeoutError) as e:
            logger.error("Pagination count failed", extra={"operation": "keyset.count", "error": str(e)})
            raise DataSourceError("count", e) from e

    async def _fetch(self, session: AsyncSession, statement: Select[Any]) -> list[T]:
        try:
            result = await session.execute(statement)
        except (SQLAlchemyError, TimeoutError) as e:
            logger.error("Pagination fetch failed", extra={"operation": "keyset.fetch", "error": str(e)})
            raise DataSourceError("fetch", e) from e
        if self._returns_entities:
            return list(result.scalars().all())
        return [dict(row) for row in result.mappings().all()]


__all__ = ["KeysetQuery"]
