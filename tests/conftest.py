"""Pytest configuration and shared fixtures.

Organization:
    - Environment: keep settings independent of the developer's shell
    - Models: the Product table and its seed rows
    - Settings Fixtures: explicit PaginationSettings instances
    - Database Fixtures: async SQLite engine and sessions
    - Data Fixtures: the product table used by the pagination tests

Integration tests build on these fixtures; unit tests mostly use the
settings fixtures and stub queries.
"""

from __future__ import annotations

import os
import random
import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio
from sqlalchemy import Boolean, DateTime, Integer, String, Uuid
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from pager_service.core.settings import PaginationSettings, clear_settings_cache

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

# Ensure tests never pick up a signing secret or page sizes from the shell
os.environ.pop("PAGINATION_CURSOR_SECRET", None)
os.environ.pop("PAGINATION_DEFAULT_LIMIT", None)
os.environ.pop("PAGINATION_MAX_LIMIT", None)
os.environ.pop("PAGINATION_DEFAULT_ORDER_BY", None)

PRODUCT_COUNT = 105
COLORS = ("Red", "Blue", "Green")
BASE_TIME = datetime(2025, 1, 1, 9, 0, 0)


# ============================================================================
# Models
# ============================================================================


class Base(DeclarativeBase):
    """Declarative base for test tables."""


class Product(Base):
    """Generic record set used to exercise pagination."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uuid: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True)
    product_name: Mapped[str] = mapped_column(String(255))
    sku: Mapped[str] = mapped_column(String(32))
    price: Mapped[int] = mapped_column(Integer)
    in_stock: Mapped[bool] = mapped_column(Boolean)
    created_at: Mapped[datetime] = mapped_column(DateTime)


def build_products(count: int = PRODUCT_COUNT) -> list[Product]:
    """Create products with ids 1..count.

    Every three consecutive products share a created_at value so that
    ordering by (created_at, id) has to fall back on the id tie-breaker.
    """
    rng = random.Random(1234)
    return [
        Product(
            id=i,
            uuid=uuid.UUID(int=rng.getrandbits(128), version=4),
            product_name=f"Product {i:03d} {COLORS[i % len(COLORS)]}",
            sku=f"SKU-{i:04d}",
            price=i % 5,
            in_stock=i % 2 == 0,
            created_at=BASE_TIME + timedelta(minutes=(i - 1) // 3),
        )
        for i in range(1, count + 1)
    ]


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    """Reload cached settings for every test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def pagination_settings() -> PaginationSettings:
    """Pagination settings ordered by id, page size 10."""
    return PaginationSettings(default_order_by=("id",), default_limit=10, max_limit=50)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Create async SQLAlchemy engine on a temporary SQLite file.

    A file database (rather than :memory:) lets several sessions run
    concurrently on separate connections.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pager.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Provide an empty-table session, rolled back after the test."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ============================================================================
# Data Fixtures
# ============================================================================


@pytest.fixture
def product_model() -> type[Product]:
    """The mapped Product class."""
    return Product


@pytest_asyncio.fixture
async def products(session_factory: async_sessionmaker[AsyncSession]) -> list[Product]:
    """Insert PRODUCT_COUNT products and return them (detached)."""
    rows = build_products()
    async with session_factory() as session:
        session.add_all(rows)
        await session.commit()
    return rows
