from __future__ import annotations

import json
import warnings
from pathlib import Path

import pytest
from typer.testing import CliRunner

from balatro_wiki.app import AppState, app
from balatro_wiki.engine import QueryEngine, UpdateSummary
from balatro_wiki.errors import UpdateCancelled, UpdateFailed


class StubUpdater:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.calls = 0
        self.closed = False

    def update(self, cancel_event=None, progress=None) -> UpdateSummary:
        self.calls += 1
        if progress is not None:
            progress("Fetching")
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def close(self) -> None:
        self.closed = True


def make_state(store, config, tmp_path: Path, updater: StubUpdater | None = None) -> AppState:
    updater = updater or StubUpdater(UpdateSummary())
    return AppState(
        config=config,
        store=store,
        engine=QueryEngine(store, config.query),
        updater_factory=lambda: updater,
        log_dir=tmp_path,
    )


@pytest.fixture
def cli(monkeypatch, store_factory, sample_config, sample_records, tmp_path):
    def _builder(records=sample_records, updater=None):
        store = store_factory()
        if records:
            # stamped with the current time so no staleness notice is printed
            store.replace_all(records)
        state = make_state(store, sample_config(), tmp_path, updater)
        monkeypatch.setattr("balatro_wiki.app.build_state", lambda *args, **kwargs: state)
        return CliRunner(), state

    return _builder


def test_cli_info_prints_repository_line(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["info", "cryptid"])

    assert result.exit_code == 0, result.output
    lines = result.stdout.splitlines()
    assert "Name: Cryptid" in lines
    assert "Repository: https://github.com/MathIsFun0/Cryptid" in lines


def test_cli_info_accepts_multi_word_names(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["info", "Deck", "Creator"])

    assert result.exit_code == 0, result.output
    assert "Name: Deck Creator" in result.stdout


def test_cli_info_json(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["info", "Joker Pack", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["name"] == "Joker Pack"
    assert payload["source_url"] is None
    assert payload["installable"] is False


def test_cli_info_not_found(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["info", "Completely", "Unrelated", "Words"])

    assert result.exit_code == 1
    assert "not found" in result.output
    assert "balatro-wiki search" in result.output


def test_cli_search_requires_query(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["search"])
    assert result.exit_code == 2


def test_cli_search_results(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["search", "joker"])

    assert result.exit_code == 0, result.output
    assert "Search results for 'joker' (2 matches):" in result.stdout
    assert result.stdout.index("Name: Joker Pack") < result.stdout.index("Name: Cryptid")


def test_cli_search_json_and_limit(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["search", "joker", "--json", "--limit", "1"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert [item["name"] for item in payload] == ["Joker Pack"]
    assert payload[0]["match"] == "substring"


def test_cli_search_without_matches(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["search", "zzzzqqqq"])

    assert result.exit_code == 0
    assert "No mods found" in result.stdout


def test_cli_browse_overview(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["browse"])

    assert result.exit_code == 0, result.output
    assert "Jokers" in result.stdout
    assert "Decks" in result.stdout
    assert "3 total" in result.stdout


def test_cli_browse_category(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["browse", "jokers"])

    assert result.exit_code == 0, result.output
    assert "jokers (2 mods):" in result.stdout
    assert "Name: Cryptid" in result.stdout


def test_cli_browse_unknown_category(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["browse", "Nope"])

    assert result.exit_code == 0
    assert "No mods in category 'Nope'." in result.stdout


def test_cli_categories(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["categories"])

    assert result.exit_code == 0, result.output
    assert "Jokers" in result.stdout


def test_cli_source_url(cli) -> None:
    runner, _ = cli()
    result = runner.invoke(app, ["source-url", "Cryptid"])
    assert result.exit_code == 0, result.output
    assert result.stdout.strip() == "https://github.com/MathIsFun0/Cryptid"

    result = runner.invoke(app, ["source-url", "Joker", "Pack"])
    assert result.exit_code == 1
    assert "no known repository" in result.output


def test_cli_query_on_empty_cache(cli) -> None:
    runner, _ = cli(records=[])
    result = runner.invoke(app, ["info", "cryptid"])

    assert result.exit_code == 1
    assert "balatro-wiki update" in result.output


def test_cli_update_prints_summary(cli) -> None:
    summary = UpdateSummary(added=["cryptid"], total=1, pages_ok=1, warnings=["/wiki/C: HTTP 404"])
    updater = StubUpdater(summary)
    runner, _ = cli(updater=updater)
    result = runner.invoke(app, ["update"])

    assert result.exit_code == 0, result.output
    assert updater.calls == 1
    assert updater.closed
    assert "Update summary" in result.stdout
    assert "/wiki/C: HTTP 404" in result.stdout


def test_cli_update_json(cli) -> None:
    runner, _ = cli(updater=StubUpdater(UpdateSummary(total=4, pages_ok=6)))
    result = runner.invoke(app, ["update", "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["total"] == 4


def test_cli_update_failure_exits_non_zero(cli) -> None:
    updater = StubUpdater(UpdateFailed(["/wiki/A: HTTP 500"]))
    runner, _ = cli(updater=updater)
    result = runner.invoke(app, ["update"])

    assert result.exit_code == 1
    assert "left untouched" in result.output
    assert updater.closed


def test_cli_update_cancelled(cli) -> None:
    runner, _ = cli(updater=StubUpdater(UpdateCancelled("interrupted")))
    result = runner.invoke(app, ["update"])

    assert result.exit_code == 130
    assert "cancelled" in result.output


def test_cli_status(cli) -> None:
    runner, state = cli()
    (state.log_dir / "balatro-wiki.log").write_text("first\nsecond\n", encoding="utf-8")
    result = runner.invoke(app, ["status", "--log", "1"])

    assert result.exit_code == 0, result.output
    assert "Mods: 3" in result.stdout
    assert "second" in result.stdout
    assert "first" not in result.stdout


@pytest.mark.parametrize("command", ["update", "search", "browse", "info"])
def test_cli_boolean_options_register_cleanly(cli, command) -> None:
    runner, _ = cli()
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = runner.invoke(app, ["--verbose", command, "--help"])

    assert result.exit_code == 0
    assert "--json" in result.output
    assert not [warning for warning in caught if "is_flag" in str(warning.message)]
