"""Pagination settings.

Centralized defaults for cursor pagination so every paginated listing
behaves the same way and page sizes can be tuned without code changes.

Environment variables use PAGINATION_ prefix.
Example: PAGINATION_DEFAULT_LIMIT=25, PAGINATION_CURSOR_SECRET=change-me
"""

from __future__ import annotations

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaginationSettings(BaseSettings):
    """Cursor pagination configuration.

    Attributes:
        default_limit: Page size when neither cursor nor caller sets one.
        max_limit: Largest page size accepted from a cursor or override.
        default_order_by: Ordering of the default descriptor; the last column
            should be unique so the order is total.
        cursor_secret: Optional HMAC key. When set, cursors are signed and
            tampered cursors are rejected (and fall back to the first page).

    Example:
        settings = get_pagination_settings()
        listing = PaginatedUseCase(query, transform, settings=settings)
    """

    default_limit: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Page size of the first page and of cursors without an override",
    )
    max_limit: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Largest page size a cursor or override may request",
    )
    default_order_by: tuple[str, ...] = Field(
        default=("created_at", "id"),
        min_length=1,
        description="Ordering columns of the default cursor",
    )
    cursor_secret: SecretStr | None = Field(
        default=None,
        description="HMAC key for signing cursors (None disables signing)",
    )

    model_config = SettingsConfigDict(
        env_prefix="PAGINATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @field_validator("cursor_secret", mode="before")
    @classmethod
    def blank_secret_disables_signing(cls, v: object) -> object:
        """Treat an empty secret as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def default_within_max(self) -> PaginationSettings:
        """Ensure the default page size is itself allowed."""
        if self.default_limit > self.max_limit:
            msg = "default_limit must not exceed max_limit"
            raise ValueError(msg)
        return self
