"""Unit tests for the pagination use case and keyset query guards."""
from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table, select
from sqlalchemy.exc import OperationalError

from pager_service.core.pagination import (
    CursorCodec,
    CursorDecoded,
    CursorDescriptor,
    CursorFallback,
    DataSourceError,
    InvalidDescriptorError,
    InvalidSearchableColumnError,
    KeysetQuery,
    Page,
    PaginatedUseCase,
)
from pager_service.core.settings import PaginationSettings


class InMemoryQuery:
    """Keyset query over a list of dict rows ordered by integer id."""

    def __init__(self, count: int = 25) -> None:
        self.rows = [{"id": i, "name": f"item {i}", "even": i % 2 == 0} for i in range(1, count + 1)]
        self.descriptors: list[CursorDescriptor] = []

    def cursor_problem(self, descriptor):
        for name in descriptor.order_by:
            if name not in ("id", "name"):
                return f"unknown ordering column {name!r}"
        value = descriptor.cursor_values.get("id")
        if value is not None and not isinstance(value, int):
            return "cursor value for 'id' does not match the column type"
        return None

    async def execute(self, session, descriptor):
        self.descriptors.append(descriptor)
        rows = [
            row
            for row in self.rows
            if all(row.get(key) == value for key, value in descriptor.filters.items())
        ]
        total = len(rows)
        bound = descriptor.cursor_values.get("id")
        if descriptor.direction == "next":
            rows = [row for row in rows if bound is None or row["id"] > bound]
        else:
            rows = [row for row in reversed(rows) if bound is None or row["id"] < bound]
        window = rows[: descriptor.limit + 1]
        return Page(
            items=window[: descriptor.limit],
            total_count=total,
            has_more=len(window) > descriptor.limit,
        )


@pytest.fixture
def query():
    return InMemoryQuery()


@pytest.fixture
def usecase(query, pagination_settings):
    return PaginatedUseCase(query, lambda row: row["id"], settings=pagination_settings)


def _ids(result):
    return list(result.data)


def _decode(token):
    return CursorCodec().decode(token)


# ──────────────────────────────────────────────────────────────
# Test construction
# ──────────────────────────────────────────────────────────────


@pytest.mark.unit
class TestUseCaseConstruction:
    """Tests for defaults taken from settings."""

    def test_default_descriptor_from_settings(self, query, pagination_settings):
        usecase = PaginatedUseCase(query, lambda row: row, settings=pagination_settings)

        assert usecase.default_descriptor.order_by == ("id",)
        assert usecase.default_descriptor.limit == 10
        assert usecase.default_descriptor.direction == "next"
        assert not usecase.default_descriptor.has_position

    def test_explicit_default_descriptor(self, query, pagination_settings):
        default = CursorDescriptor(order_by=("id",), limit=3)
        usecase = PaginatedUseCase(
            query, lambda row: row, default_descriptor=default, settings=pagination_settings
        )

        assert usecase.default_descriptor is default

    def test_cached_settings_are_used(self, query, monkeypatch):
        monkeypatch.setenv("PAGINATION_DEFAULT_LIMIT", "7")

        usecase = PaginatedUseCase(query, lambda row: row)

        assert usecase.default_descriptor.limit == 7
        assert usecase.default_descriptor.order_by == ("created_at", "id")

    def test_secret_enables_signed_cursors(self, query):
        settings = PaginationSettings(default_order_by=("id",), cursor_secret="s3cret")

        usecase = PaginatedUseCase(query, lambda row: row, settings=settings)

        assert usecase.codec.signed


# ──────────────────────────────────────────────────────────────
# Test page navigation
# ──────────────────────────────────────────────────────────────


@pytest.mark.unit
@pytest.mark.asyncio
class TestPaginate:
    """Tests for paginate() cursor derivation."""

    async def test_first_page(self, usecase):
        """Page 1 has a next cursor but no previous cursor."""
        result = await usecase.paginate(None)

        assert _ids(result) == list(range(1, 11))
        assert result.meta.has_more is True
        assert result.meta.total_row_count == 25
        assert result.meta.previous_cursor is None
        next_descriptor = _decode(result.meta.next_cursor)
        assert next_descriptor.cursor_values == {"id": 10}
        assert next_descriptor.order_by == ("id",)
        assert next_descriptor.direction == "next"
        assert next_descriptor.limit == 10

    async def test_following_next_cursor(self, usecase):
        """The next cursor continues right after the last item."""
        first = await usecase.paginate(None)

        second = await usecase.paginate(None, first.meta.next_cursor)

        assert _ids(second) == list(range(11, 21))
        previous = _decode(second.meta.previous_cursor)
        assert previous.cursor_values == {"id": 11}
        assert previous.direction == "prev"

    async def test_last_page_has_no_next_cursor(self, usecase):
        first = await usecase.paginate(None)
        second = await usecase.paginate(None, first.meta.next_cursor)

        last = await usecase.paginate(None, second.meta.next_cursor)

        assert _ids(last) == list(range(21, 26))
        assert last.meta.has_more is False
        assert last.meta.next_cursor is None
        assert last.meta.previous_cursor is not None

    async def test_previous_cursor_returns_descending_page(self, usecase):
        """Backward pages come back in descending order."""
        first = await usecase.paginate(None)
        second = await usecase.paginate(None, first.meta.next_cursor)

        back = await usecase.paginate(None, second.meta.previous_cursor)

        assert _ids(back) == list(range(10, 0, -1))
        assert back.meta.has_more is False
        assert back.meta.next_cursor is None

    async def test_empty_result_has_no_cursors(self, pagination_settings):
        usecase = PaginatedUseCase(InMemoryQuery(count=0), lambda row: row, settings=pagination_settings)

        result = await usecase.paginate(None)

        assert result.data == []
        assert result.meta.next_cursor is None
        assert result.meta.previous_cursor is None
        assert result.meta.has_more is False
        assert result.meta.total_row_count == 0

    async def test_transform_is_applied(self, query, pagination_settings):
        usecase = PaginatedUseCase(query, lambda row: row["name"].upper(), settings=pagination_settings)

        result = await usecase.paginate(None)

        assert result.data[0] == "ITEM 1"

    async def test_response_uses_camel_case(self, usecase):
        first = await usecase.paginate(None)
        second = (await usecase.paginate(None, first.meta.next_cursor)).to_response()

        assert set(second) == {"data", "meta"}
        assert set(second["meta"]) == {"nextCursor", "previousCursor", "hasMore", "totalRowCount"}

    async def test_response_omits_absent_cursors(self, usecase):
        """A single full page carries neither cursor key."""
        first = await usecase.paginate(None, overrides={"limit": 25})

        response = first.to_response()

        assert set(response["meta"]) == {"hasMore", "totalRowCount"}
        assert response["data"] == list(range(1, 26))

    async def test_derived_cursor_keeps_filters_and_limit(self, usecase):
        result = await usecase.paginate(None, overrides={"limit": 4, "filters": {"even": True}})

        assert _ids(result) == [2, 4, 6, 8]
        assert result.meta.total_row_count == 12
        descriptor = _decode(result.meta.next_cursor)
        assert descriptor.filters == {"even": True}
        assert descriptor.limit == 4


# ──────────────────────────────────────────────────────────────
# Test cursor fallback
# ──────────────────────────────────────────────────────────────


@pytest.mark.unit
@pytest.mark.asyncio
class TestCursorFallback:
    """Tests for cursors that cannot be used."""

    async def test_invalid_cursor_serves_first_page(self, usecase, caplog):
        """A garbage cursor is treated as page 1 and logged."""
        with caplog.at_level(logging.WARNING, logger="pager_service.core.pagination.usecase"):
            result = await usecase.paginate(None, "invalid-cursor")

        assert _ids(result) == list(range(1, 11))
        assert result.meta.previous_cursor is None
        assert result.meta.next_cursor is not None
        assert any(record.message == "Falling back to default cursor" for record in caplog.records)

    async def test_ordering_mismatch_falls_back(self, usecase):
        token = CursorCodec().encode(
            CursorDescriptor(cursor_values={"name": "item 5"}, order_by=("name",), limit=10)
        )

        result = usecase.resolve_cursor(token)

        assert isinstance(result, CursorFallback)
        assert "ordering" in result.reason

    async def test_uncoercible_value_falls_back(self, usecase):
        token = CursorCodec().encode(
            CursorDescriptor(cursor_values={"id": "abc"}, order_by=("id",), limit=10)
        )

        result = await usecase.paginate(None, token)

        assert _ids(result) == list(range(1, 11))
        assert result.meta.previous_cursor is None

    async def test_signed_usecase_rejects_unsigned_cursor(self, query):
        settings = PaginationSettings(default_order_by=("id",), cursor_secret="s3cret")
        usecase = PaginatedUseCase(query, lambda row: row["id"], settings=settings)
        forged = CursorCodec().encode(CursorDescriptor(cursor_values={"id": 20}, order_by=("id",), limit=10))

        result = await usecase.paginate(None, forged)

        assert _ids(result) == list(range(1, 11))

    async def test_large_cursor_limit_is_clamped(self, usecase, query):
        token = CursorCodec().encode(CursorDescriptor(cursor_values={"id": 2}, order_by=("id",), limit=500))

        result = usecase.resolve_cursor(token)
        await usecase.paginate(None, token)

        assert isinstance(result, CursorDecoded)
        assert result.descriptor.limit == 50
        assert query.descriptors[-1].limit == 50


# ──────────────────────────────────────────────────────────────
# Test overrides
# ──────────────────────────────────────────────────────────────


@pytest.mark.unit
@pytest.mark.asyncio
class TestOverrides:
    """Tests for per-request overrides."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(5, 5), ("5", 5), (0, 10), (-3, 10), ("abc", 10), (True, 10), (1000, 10), (None, 10)],
    )
    async def test_limit_override(self, usecase, query, value, expected):
        await usecase.paginate(None, overrides={"limit": value})

        assert query.descriptors[-1].limit == expected

    @pytest.mark.parametrize(("value", "expected"), [("prev", "prev"), ("up", "next"), (1, "next")])
    async def test_direction_override(self, usecase, query, value, expected):
        await usecase.paginate(None, overrides={"direction": value})

        assert query.descriptors[-1].direction == expected

    async def test_invalid_filter_entries_are_dropped(self, usecase, query):
        await usecase.paginate(
            None,
            overrides={"filters": {"name": "item 3", "bad": None, "tags": ["a"], "": 1}},
        )

        assert query.descriptors[-1].filters == {"name": "item 3"}

    async def test_non_mapping_filters_are_ignored(self, usecase, query):
        await usecase.paginate(None, overrides={"filters": ["name"]})

        assert query.descriptors[-1].filters == {}

    async def test_filters_merge_over_cursor_filters(self, usecase, query):
        token = CursorCodec().encode(
            CursorDescriptor(
                cursor_values={"id": 2},
                order_by=("id",),
                limit=10,
                filters={"even": True, "name": "old"},
            )
        )

        await usecase.paginate(None, token, overrides={"filters": {"name": "new"}})

        assert query.descriptors[-1].filters == {"even": True, "name": "new"}
        assert query.descriptors[-1].cursor_values == {"id": 2}


# ──────────────────────────────────────────────────────────────
# Test KeysetQuery guards
# ──────────────────────────────────────────────────────────────

metadata = MetaData()
items = Table(
    "items",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(50)),
    Column("rank", Integer),
)


def _failing_session(error):
    session = AsyncMock()
    session.execute.side_effect = error
    return session


@pytest.mark.unit
class TestKeysetQueryGuards:
    """Tests for KeysetQuery configuration and failure handling."""

    def test_unknown_searchable_column(self):
        with pytest.raises(InvalidSearchableColumnError, match="not selected"):
            KeysetQuery(select(items), searchable_columns=["missing"])

    def test_non_text_searchable_column(self):
        with pytest.raises(InvalidSearchableColumnError, match="not a text column") as exc_info:
            KeysetQuery(select(items), searchable_columns=["rank"])

        assert exc_info.value.column == "rank"

    @pytest.mark.asyncio
    async def test_empty_ordering_is_rejected(self):
        query = KeysetQuery(select(items))
        session = _failing_session(AssertionError("must not query"))

        with pytest.raises(InvalidDescriptorError):
            await query.execute(session, CursorDescriptor(order_by=(), limit=10))

        session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_ordering_column_is_rejected(self):
        query = KeysetQuery(select(items))
        session = _failing_session(AssertionError("must not query"))

        with pytest.raises(InvalidDescriptorError) as exc_info:
            await query.execute(session, CursorDescriptor(order_by=("created_at",), limit=10))

        assert exc_info.value.details == {"column": "created_at"}

    @pytest.mark.parametrize(
        "error",
        [OperationalError("SELECT 1", {}, Exception("database is locked")), TimeoutError()],
    )
    @pytest.mark.asyncio
    async def test_database_failure_becomes_data_source_error(self, error):
        query = KeysetQuery(select(items))

        with pytest.raises(DataSourceError) as exc_info:
            await query.execute(_failing_session(error), CursorDescriptor(order_by=("id",), limit=10))

        assert exc_info.value.operation == "count"
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        query = KeysetQuery(select(items))

        with pytest.raises(asyncio.CancelledError):
            await query.execute(
                _failing_session(asyncio.CancelledError()),
                CursorDescriptor(order_by=("id",), limit=10),
            )

    def test_cursor_problem(self):
        query = KeysetQuery(select(items))

        assert query.cursor_problem(CursorDescriptor(cursor_values={"id": 3}, order_by=("id",), limit=1)) is None
        assert "unknown ordering column" in query.cursor_problem(
            CursorDescriptor(order_by=("created_at",), limit=1)
        )
        assert "does not match" in query.cursor_problem(
            CursorDescriptor(cursor_values={"id": "abc"}, order_by=("id",), limit=1)
        )

    @pytest.mark.parametrize(
        ("name", "value"),
        [("id", True), ("id", 2.5), ("name", 7), ("rank", False)],
    )
    def test_cursor_problem_rejects_values_of_wrong_type(self, name, value):
        query = KeysetQuery(select(items))
        descriptor = CursorDescriptor(cursor_values={name: value}, order_by=(name,), limit=1)

        assert "does not match" in query.cursor_problem(descriptor)
