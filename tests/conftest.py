"""Pytest configuration providing shared fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from balatro_wiki.config import ConfigLocator, ConfigRepository, FetchSettings, PageSource, WikiConfig
from balatro_wiki.engine import ModRecord, ModStore
from balatro_wiki.infra import SQLiteManager

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def sample_config() -> Callable[..., WikiConfig]:
    def _builder(**overrides: Any) -> WikiConfig:
        base: dict[str, Any] = {
            "pages": [PageSource(url="/wiki/Mod_List")],
            "fetch": FetchSettings(timeout=5, max_attempts=2, backoff_base=0.0, backoff_max=0.0),
            "enrich_details": False,
            "workers": 2,
        }
        base.update(overrides)
        return WikiConfig(**base)

    return _builder


@pytest.fixture
def sample_records() -> list[ModRecord]:
    return [
        ModRecord.create(
            "Cryptid",
            category="Jokers",
            description="Adds a pile of unbalanced jokers and new card editions.",
            source_url="https://github.com/MathIsFun0/Cryptid",
            wiki_url="https://balatromods.miraheze.org/wiki/Cryptid",
            author="MathIsFun",
        ),
        ModRecord.create(
            "Joker Pack",
            category="Jokers",
            description="Twenty extra jokers in the vanilla style.",
        ),
        ModRecord.create(
            "Deck Creator",
            category="Decks",
            description="Design your own starting decks from the main menu.",
            source_url="https://github.com/example/deck-creator",
            tags=("tool",),
        ),
    ]


@pytest.fixture
def store_factory(tmp_path: Path) -> Iterable[Callable[..., ModStore]]:
    manager = SQLiteManager()

    def _builder(records: Iterable[ModRecord] | None = None, name: str = "mods.db") -> ModStore:
        store = ModStore(tmp_path / "cache" / name, manager)
        if records is not None:
            store.replace_all(list(records), updated_at=FIXED_NOW)
        return store

    yield _builder
    manager.close_all()


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("BALATRO_WIKI_HOME", str(tmp_path / "home"))
    locator = ConfigLocator()
    repository = ConfigRepository(locator)
    yield repository
