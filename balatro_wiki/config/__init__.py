"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import FetchSettings, PageSource, QuerySettings, WikiConfig

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "FetchSettings",
    "PageSource",
    "QuerySettings",
    "WikiConfig",
]
