"""Exception taxonomy shared by fetcher, store, query engine and updater."""

from __future__ import annotations

from enum import Enum
from typing import Sequence


class WikiError(Exception):
    """Base class for every failure surfaced by balatro-wiki."""


class FailureKind(str, Enum):
    """Whether a network failure is worth retrying."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


class NetworkError(WikiError):
    """Fetch failure classified as transient or permanent."""

    def __init__(
        self,
        kind: FailureKind,
        url: str,
        reason: str,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{kind.value} network error for {url}: {reason}")

    @property
    def transient(self) -> bool:
        return self.kind is FailureKind.TRANSIENT


class StoreError(WikiError):
    """Reading or writing the local cache failed."""


class InvalidQuery(WikiError):
    """The caller supplied an empty or unusable query."""


class NotFound(WikiError):
    """No record matched confidently enough to be returned."""

    def __init__(
        self,
        query: str,
        suggestions: Sequence[str] = (),
        ambiguous: bool = False,
    ) -> None:
        self.query = query
        self.suggestions = list(suggestions)
        self.ambiguous = ambiguous
        if ambiguous:
            message = f"Mod '{query}' is ambiguous: {', '.join(self.suggestions)}"
        else:
            message = f"Mod '{query}' not found"
        super().__init__(message)


class NotInstallable(WikiError):
    """The record exists but carries no repository URL."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Mod '{name}' has no known repository URL")


class UpdateFailed(WikiError):
    """An update produced nothing usable; the cache was left untouched."""

    def __init__(self, warnings: Sequence[str], reason: str = "no wiki page could be fetched") -> None:
        self.warnings = list(warnings)
        self.reason = reason
        super().__init__(f"Update failed: {reason}")


class UpdateCancelled(WikiError):
    """The update was aborted before the cache swap."""


__all__ = [
    "FailureKind",
    "InvalidQuery",
    "NetworkError",
    "NotFound",
    "NotInstallable",
    "StoreError",
    "UpdateCancelled",
    "UpdateFailed",
    "WikiError",
]
