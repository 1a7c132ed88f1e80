"""Cached settings loaders.

Each loader validates its settings class on first call and returns the same
frozen instance afterwards. Tests call clear_settings_cache() between cases
or pass explicit instances:

    PaginatedUseCase(query, transform, settings=PaginationSettings(max_limit=5))
"""

from __future__ import annotations

from functools import lru_cache

from .logs import LoggingSettings
from .pagination import PaginationSettings


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """LOG_* settings, loaded once."""
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_pagination_settings() -> PaginationSettings:
    """PAGINATION_* settings, loaded once."""
    return PaginationSettings()


def clear_settings_cache() -> None:
    """Clear all cached settings (tests and reloads)."""
    get_logging_settings.cache_clear()
    get_pagination_settings.cache_clear()
