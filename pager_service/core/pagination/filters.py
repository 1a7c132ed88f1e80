"""Statement filters used by keyset pagination.

These filters work directly with SQLAlchemy statements without hiding the
query. Each one takes a ``Select`` and returns a new ``Select``.

Usage:
    stmt = select(products)
    stmt = SearchFilter(products.c.name, "lamp").apply(stmt)
    stmt = EqualityFilter(products.c.in_stock, True).apply(stmt)
    stmt = OrderBy([products.c.created_at, products.c.id], "asc").apply(stmt)
    stmt = KeysetFilter(
        [(products.c.created_at, t1), (products.c.id, 41)], direction="next"
    ).apply(stmt)

Keyset seek:
    For ORDER BY created_at, id with a cursor at (t1, 41) moving forward:
    WHERE (created_at > t1) OR (created_at = t1 AND id > 41)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Literal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Integer,
    Numeric,
    Select,
    String,
    TypeDecorator,
    Uuid,
    and_,
    func,
    or_,
)

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement
    from sqlalchemy.types import TypeEngine


class StatementFilter(ABC):
    """Base class for statement filters.

    All filters implement `apply()` which modifies a SQLAlchemy statement.
    """

    @abstractmethod
    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply filter to statement.

        Args:
            statement: SQLAlchemy select statement

        Returns:
            Modified select statement
        """
        ...


class SearchFilter(StatementFilter):
    """Case-insensitive substring match on a text column.

    Generates: WHERE lower(name) LIKE '%' || lower(:value) || '%'
    with LIKE wildcards in the value escaped.
    """

    def __init__(self, column: ColumnElement[Any], value: str) -> None:
        self.column = column
        self.value = value

    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply search filter to statement."""
        if not self.value:
            return statement
        condition = func.lower(self.column).contains(self.value.lower(), autoescape=True)
        return statement.where(condition)


class EqualityFilter(StatementFilter):
    """Exact match on a column."""

    def __init__(self, column: ColumnElement[Any], value: Any) -> None:
        self.column = column
        self.value = value

    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply equality filter to statement."""
        return statement.where(self.column == self.value)


class OrderBy(StatementFilter):
    """Column ordering with one direction for every column.

    Keyset pagination compares all ordering columns with the same operator,
    so mixed directions are not supported here.
    """

    def __init__(
        self,
        columns: Sequence[ColumnElement[Any]],
        sort_order: Literal["asc", "desc"] = "asc",
    ) -> None:
        self.columns = list(columns)
        self.sort_order = sort_order

    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply ordering to statement."""
        for column in self.columns:
            if self.sort_order == "desc":
                statement = statement.order_by(column.desc())
            else:
                statement = statement.order_by(column.asc())
        return statement


class KeysetFilter(StatementFilter):
    """Seek past a cursor position using a lexicographic tuple comparison.

    For bounds (a, v1), (b, v2), (c, v3) the condition is:
        (a op v1) OR
        (a = v1 AND b op v2) OR
        (a = v1 AND b = v2 AND c op v3)

    where op is ``>`` for "next" and ``<`` for "prev". Bounds must be given
    in ordering sequence and only for columns that have a cursor value.

    Attributes:
        bounds: (column, cursor value) pairs in ORDER BY sequence
        direction: "next" or "prev"
    """

    def __init__(
        self,
        bounds: Sequence[tuple[ColumnElement[Any], Any]],
        *,
        direction: Literal["next", "prev"] = "next",
    ) -> None:
        self.bounds = [(column, coerce_cursor_value(column, value)) for column, value in bounds]
        self.direction = direction

    def condition(self) -> ColumnElement[bool] | None:
        """Build the seek condition, or None when there are no bounds."""
        if not self.bounds:
            return None

        branches: list[ColumnElement[bool]] = []
        equal_so_far: list[ColumnElement[bool]] = []
        for column, value in self.bounds:
            compare = column > value if self.direction == "next" else column < value
            branches.append(and_(*equal_so_far, compare) if equal_so_far else compare)
            equal_so_far.append(column == value)

        return or_(*branches) if len(branches) > 1 else branches[0]

    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply the seek condition to statement."""
        condition = self.condition()
        if condition is None:
            return statement
        return statement.where(condition)


def _base_type(column: ColumnElement[Any]) -> TypeEngine[Any]:
    column_type = column.type
    if isinstance(column_type, TypeDecorator):
        column_type = column_type.impl_instance
    return column_type


def _parse_text(column_type: TypeEngine[Any], value: str) -> Any:
    if isinstance(column_type, DateTime):
        return datetime.fromisoformat(value)
    if isinstance(column_type, Date):
        return date.fromisoformat(value)
    if isinstance(column_type, Uuid):
        return UUID(value)
    if isinstance(column_type, Integer):
        return int(value)
    if isinstance(column_type, Numeric):
        try:
            return Decimal(value)
        except InvalidOperation as e:
            msg = f"Invalid decimal cursor value: {value!r}"
            raise ValueError(msg) from e
    return value


def value_fits_column(column: ColumnElement[Any], value: Any) -> bool:
    """Whether a Python value can be bound against the column's type.

    Booleans only fit Boolean columns, and Numeric columns accept any int,
    float or Decimal. Types without a known Python type accept anything.
    """
    column_type = _base_type(column)
    if isinstance(column_type, Boolean):
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if isinstance(column_type, Numeric):
        return isinstance(value, int | float | Decimal)
    try:
        python_type = column_type.python_type
    except NotImplementedError:
        return True
    return isinstance(value, python_type)


def coerce_cursor_value(column: ColumnElement[Any], value: Any) -> Any:
    """Convert a cursor value back to the column's Python type.

    Cursor values travel through JSON, so datetimes, dates, UUIDs and
    decimals may arrive as strings.

    Raises:
        ValueError: The value cannot be converted to the column's type
    """
    if isinstance(value, str):
        value = _parse_text(_base_type(column), value)
    if not value_fits_column(column, value):
        msg = f"{type(value).__name__} cursor value does not fit column {column.key!r}"
        raise ValueError(msg)
    return value


def is_text_column(column: ColumnElement[Any]) -> bool:
    """Whether the column holds text and can be substring-searched."""
    return isinstance(_base_type(column), String)


__all__ = [
    "EqualityFilter",
    "KeysetFilter",
    "OrderBy",
    "SearchFilter",
    "StatementFilter",
    "coerce_cursor_value",
    "is_text_column",
    "value_fits_column",
]
