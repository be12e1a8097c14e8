"""Pydantic models describing how the wiki is scraped and queried."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel, Field, field_validator, model_validator

WIKI_BASE_URL = "https://balatromods.miraheze.org"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_CATEGORIES = (
    "Content Mods",
    "Joker Mods",
    "Quality of Life Mods",
    "Crossover Mods",
    "Technical Mods",
    "API Mods",
)


class PageSource(BaseModel):
    """One wiki page fetched during an update.

    ``category`` pins every entry of the page to that category. Leave it empty
    for list pages where the section headings carry the category.
    """

    url: str
    category: str | None = None

    @field_validator("url")
    @classmethod
    def _require_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("page url cannot be empty")
        return value

    @field_validator("category", mode="before")
    @classmethod
    def _blank_category(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def for_category(cls, category: str, limit: int = 500) -> "PageSource":
        """Build the MediaWiki API query listing members of a wiki category."""

        title = quote(f"Category:{category}")
        url = (
            "/w/api.php?action=query&list=categorymembers"
            f"&cmtitle={title}&format=json&cmlimit={limit}"
        )
        return cls(url=url, category=category)


class FetchSettings(BaseModel):
    """HTTP behaviour of the fetcher."""

    timeout: float = 30.0
    max_attempts: int = 3
    backoff_base: float = 0.5
    backoff_max: float = 8.0
    user_agent: str = DEFAULT_USER_AGENT

    @model_validator(mode="after")
    def _validate_bounds(self) -> "FetchSettings":
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_base < 0 or self.backoff_max < 0:
            raise ValueError("backoff values must be non-negative")
        if self.backoff_max < self.backoff_base:
            raise ValueError("backoff_max must be >= backoff_base")
        return self


class QuerySettings(BaseModel):
    """Thresholds used by search and info."""

    fuzzy_threshold: float = 0.75
    search_min_score: float = 0.45
    search_limit: int = 20
    representatives: int = 3

    @field_validator("fuzzy_threshold", "search_min_score")
    @classmethod
    def _unit_interval(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("scores are expressed between 0 and 1")
        return value

    @field_validator("search_limit", "representatives")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value


class WikiConfig(BaseModel):
    """Top level configuration stored in ``config.yaml``."""

    base_url: str = WIKI_BASE_URL
    pages: list[PageSource] = Field(
        default_factory=lambda: [PageSource.for_category(name) for name in DEFAULT_CATEGORIES]
    )
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)
    workers: int = 6
    enrich_details: bool = True
    stale_after_hours: float = 24.0
    cache_file: Path = Field(default=Path("mods.db"))

    @field_validator("base_url")
    @classmethod
    def _https_only(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith("https://"):
            raise ValueError("base_url must use https")
        return value

    @field_validator("workers", mode="before")
    @classmethod
    def _clamp_workers(cls, value: Any) -> int:
        return max(1, min(8, int(value)))

    @field_validator("cache_file", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _require_pages(self) -> "WikiConfig":
        if not self.pages:
            raise ValueError("at least one page must be configured")
        return self

    def resolved_cache_path(self, base_dir: Path) -> Path:
        """Return the cache file path, relative entries anchored at ``base_dir``."""

        path = self.cache_file.expanduser()
        if not path.is_absolute():
            return (base_dir / path).resolve()
        return path


__all__ = [
    "DEFAULT_CATEGORIES",
    "FetchSettings",
    "PageSource",
    "QuerySettings",
    "WIKI_BASE_URL",
    "WikiConfig",
]
