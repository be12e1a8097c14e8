"""Engine components orchestrating fetch → extract → store → query."""

from .extractor import Extractor, ModDetail, ParseResult
from .fetcher import FetchResponse, Fetcher
from .query import CategoryOverview, QueryEngine, SearchHit
from .records import ModRecord, ParseWarning, UpdateSummary
from .store import ModStore
from .thread_pool import ThreadPoolManager

__all__ = [
    "CategoryOverview",
    "Extractor",
    "FetchResponse",
    "Fetcher",
    "ModDetail",
    "ModRecord",
    "ModStore",
    "ParseResult",
    "ParseWarning",
    "QueryEngine",
    "SearchHit",
    "ThreadPoolManager",
    "UpdateSummary",
]
