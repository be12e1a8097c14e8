"""Search, browse and lookup over the cached record set."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from rapidfuzz.distance import Levenshtein

from ..config import QuerySettings
from ..errors import InvalidQuery, NotFound, NotInstallable
from .records import ModRecord
from .store import ModStore
from .text import normalize_id

WINDOW_PENALTY = 0.95
TIE_EPSILON = 1e-9


@dataclass(frozen=True, slots=True)
class SearchHit:
    record: ModRecord
    score: float
    kind: str

    def to_dict(self) -> dict:
        payload = self.record.to_dict()
        payload["score"] = round(self.score, 4)
        payload["match"] = self.kind
        return payload


@dataclass(slots=True)
class CategoryOverview:
    category: str
    count: int
    representatives: list[ModRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "count": self.count,
            "representatives": [record.name for record in self.representatives],
        }


def _sort_key(record: ModRecord) -> tuple[str, str]:
    return (record.name.casefold(), record.name)


def fuzzy_score(query: str, name: str) -> float:
    """Similarity in [0, 1] between a query and a mod name.

    Normalised Levenshtein similarity against the whole name, and against
    every run of consecutive name tokens as long as the query (slightly
    discounted); the best of those wins.
    """

    q = normalize_id(query)
    candidate = normalize_id(name)
    if not q or not candidate:
        return 0.0
    best = Levenshtein.normalized_similarity(q, candidate)
    q_tokens = q.split(" ")
    tokens = candidate.split(" ")
    width = len(q_tokens)
    if len(tokens) > width:
        for start in range(len(tokens) - width + 1):
            window = " ".join(tokens[start : start + width])
            score = Levenshtein.normalized_similarity(q, window) * WINDOW_PENALTY
            best = max(best, score)
    return best


def substring_score(record: ModRecord, needle: str) -> int:
    """Weighted case-insensitive substring score; zero means no match."""

    name = record.name.casefold()
    score = 0
    if name == needle:
        score += 100
    elif needle in name:
        score += 50
    if needle in record.description.casefold():
        score += 25
    if record.author and needle in record.author.casefold():
        score += 20
    labels = (record.category, *record.tags)
    if any(needle in label.casefold() for label in labels):
        score += 15
    return score


class QueryEngine:
    """Answer queries from the local store; never touches the network."""

    def __init__(self, store: ModStore, settings: QuerySettings | None = None) -> None:
        self.store = store
        self.settings = settings or QuerySettings()

    # ------------------------------------------------------------------
    def search(self, query: str, limit: int | None = None) -> list[SearchHit]:
        needle = " ".join((query or "").split()).casefold()
        if not needle:
            raise InvalidQuery("search needs a non-empty query")
        limit = limit or self.settings.search_limit
        records = self.store.list()

        hits = [
            SearchHit(record, float(score), "substring")
            for record in records
            if (score := substring_score(record, needle)) > 0
        ]
        if not hits:
            hits = [
                SearchHit(record, score, "fuzzy")
                for record in records
                if (score := fuzzy_score(needle, record.name)) >= self.settings.search_min_score
            ]
        hits.sort(key=lambda hit: (-hit.score, *_sort_key(hit.record)))
        return hits[:limit]

    def browse(self, category: str | None = None) -> list[CategoryOverview] | list[ModRecord]:
        records = self.store.list()
        if category is not None:
            wanted = category.strip().casefold()
            return sorted((r for r in records if r.category.casefold() == wanted), key=_sort_key)

        grouped: dict[str, list[ModRecord]] = {}
        for record in records:
            grouped.setdefault(record.category, []).append(record)
        overview = []
        for name in sorted(grouped, key=lambda label: (label.casefold(), label)):
            members = sorted(grouped[name], key=_sort_key)
            overview.append(
                CategoryOverview(
                    category=name,
                    count=len(members),
                    representatives=members[: self.settings.representatives],
                )
            )
        return overview

    def categories(self) -> list[tuple[str, int]]:
        return [(item.category, item.count) for item in self.browse()]

    def info(self, name: str) -> ModRecord:
        if not (name or "").strip():
            raise InvalidQuery("info needs a mod name")
        exact = self.store.get(name)
        if exact is not None:
            return exact

        ranked = self._rank(name, self.store.list())
        suggestions = [record.name for record, _ in ranked[:3]]
        if not ranked or ranked[0][1] < self.settings.fuzzy_threshold:
            raise NotFound(name, suggestions)
        if len(ranked) > 1 and abs(ranked[0][1] - ranked[1][1]) <= TIE_EPSILON:
            tied = [record.name for record, score in ranked if abs(score - ranked[0][1]) <= TIE_EPSILON]
            raise NotFound(name, tied, ambiguous=True)
        return ranked[0][0]

    def source_url(self, name: str) -> str:
        """Repository URL for installers; raises when the mod has none."""

        record = self.info(name)
        if record.source_url is None:
            raise NotInstallable(record.name)
        return record.source_url

    # ------------------------------------------------------------------
    @staticmethod
    def _rank(query: str, records: Iterable[ModRecord]) -> Sequence[tuple[ModRecord, float]]:
        scored = [(record, fuzzy_score(query, record.name)) for record in records]
        scored.sort(key=lambda item: (-item[1], *_sort_key(item[0])))
        return scored


__all__ = ["CategoryOverview", "QueryEngine", "SearchHit", "fuzzy_score", "substring_score"]
