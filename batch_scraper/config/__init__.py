"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    DEFAULT_ACCEPT,
    DEFAULT_USER_AGENT,
    JobConfig,
    ScraperSettings,
    StoreBackend,
    StoreConfig,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "DEFAULT_ACCEPT",
    "DEFAULT_USER_AGENT",
    "JobConfig",
    "ScraperSettings",
    "StoreBackend",
    "StoreConfig",
]
