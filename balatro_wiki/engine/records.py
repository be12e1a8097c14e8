"""Record types flowing between extractor, store, query engine and updater."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from .text import UNCATEGORIZED, normalize_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ModRecord:
    """Normalised description of one mod discovered on the wiki."""

    id: str
    name: str
    category: str = UNCATEGORIZED
    description: str = ""
    source_url: str | None = None
    wiki_url: str | None = None
    author: str | None = None
    version: str | None = None
    tags: tuple[str, ...] = ()
    last_seen: datetime | None = None

    @classmethod
    def create(cls, name: str, **fields: Any) -> "ModRecord":
        category = fields.pop("category", None) or UNCATEGORIZED
        tags = tuple(fields.pop("tags", ()) or ())
        return cls(id=normalize_id(name), name=name, category=category, tags=tags, **fields)

    @property
    def installable(self) -> bool:
        return self.source_url is not None

    def fingerprint(self) -> tuple:
        """Content used for change detection; ``last_seen`` is excluded."""

        return (
            self.name,
            self.category,
            self.description,
            self.source_url,
            self.wiki_url,
            self.author,
            self.version,
            self.tags,
        )

    def seen_at(self, moment: datetime) -> "ModRecord":
        return replace(self, last_seen=moment)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["tags"] = list(self.tags)
        payload["last_seen"] = self.last_seen.isoformat() if self.last_seen else None
        payload["installable"] = self.installable
        return payload


@dataclass(frozen=True, slots=True)
class ParseWarning:
    """Non-fatal problem met while extracting one entry or page."""

    page: str
    reason: str
    entry: str | None = None

    def __str__(self) -> str:
        if self.entry:
            return f"{self.page}: {self.reason} ({self.entry})"
        return f"{self.page}: {self.reason}"


@dataclass(slots=True)
class UpdateSummary:
    """Outcome of one refresh cycle."""

    added: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    total: int = 0
    pages_ok: int = 0
    pages_failed: int = 0
    updated_at: datetime | None = None

    @property
    def unchanged(self) -> bool:
        return not (self.added or self.changed or self.removed)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return payload


__all__ = ["ModRecord", "ParseWarning", "UpdateSummary", "utcnow"]
