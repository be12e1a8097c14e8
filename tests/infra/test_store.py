from __future__ import annotations

from datetime import timedelta

import pytest

from balatro_wiki.engine import ModRecord
from balatro_wiki.errors import StoreError
from balatro_wiki.infra import SQLiteManager


def test_sqlite_manager_initialises_schema(tmp_path) -> None:
    manager = SQLiteManager()
    conn = manager.create(tmp_path / "mods.db")
    columns = {row["name"] for row in conn.execute("PRAGMA table_info(mods)").fetchall()}
    version = conn.execute("SELECT value FROM meta WHERE key = 'schema_version'").fetchone()
    conn.close()
    assert {"id", "name", "category", "source_url", "tags", "last_seen"}.issubset(columns)
    assert version["value"] == "1"


def test_store_round_trip(store_factory, sample_records, fixed_now) -> None:
    store = store_factory(sample_records)

    assert store.count() == 3
    assert [record.id for record in store.list()] == ["cryptid", "deck creator", "joker pack"]
    assert store.get("  CRYPTID ") == sample_records[0]
    assert store.get("Deck Creator").tags == ("tool",)
    assert store.get("missing") is None
    assert store.freshness() == fixed_now
    assert store.age(now=fixed_now + timedelta(hours=2)) == timedelta(hours=2)


def test_store_missing_file_reads_empty(store_factory) -> None:
    store = store_factory()
    assert store.list() == []
    assert store.count() == 0
    assert store.freshness() is None
    assert store.age() is None


def test_store_replace_is_visible_to_existing_readers(store_factory, sample_records) -> None:
    store = store_factory(sample_records)
    assert store.count() == 3

    store.replace_all([ModRecord.create("Talisman", category="API Mods")])

    assert [record.name for record in store.list()] == ["Talisman"]


def test_store_failed_swap_keeps_previous_generation(store_factory, sample_records, monkeypatch) -> None:
    store = store_factory(sample_records)

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("balatro_wiki.engine.store.os.replace", broken_replace)
    with pytest.raises(StoreError):
        store.replace_all([ModRecord.create("Talisman")])

    assert store.count() == 3
    assert store.get("Talisman") is None
    assert list(store.path.parent.glob("*.tmp")) == []


def test_store_reports_corrupt_cache(store_factory) -> None:
    store = store_factory()
    store.path.parent.mkdir(parents=True, exist_ok=True)
    store.path.write_bytes(b"this is not a database" * 100)

    with pytest.raises(StoreError):
        store.list()


def test_replace_all_keeps_last_record_per_id(store_factory, sample_records) -> None:
    store = store_factory()
    renamed = ModRecord.create("CRYPTID", category="Utility", description="Second listing of the same mod.")

    store.replace_all([*sample_records, renamed])

    assert store.count() == 3
    assert store.get("cryptid").category == "Utility"
