"""Pydantic Settings v2 configuration.

Settings are split by domain, read from environment variables (and an
optional .env file), validated once, frozen and cached.

Import settings via cached loaders:
    from pager_service.core.settings import get_pagination_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .loader import clear_settings_cache, get_logging_settings, get_pagination_settings
from .logs import LoggingSettings
from .pagination import PaginationSettings

__all__ = [
    "LoggingSettings",
    "PaginationSettings",
    "clear_settings_cache",
    "get_logging_settings",
    "get_pagination_settings",
]
