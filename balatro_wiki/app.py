"""Typer CLI entrypoint for balatro-wiki."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from threading import Event
from typing import Callable, List, Optional

import typer
from rich.console import Console

from .config import ConfigLocator, ConfigRepository, WikiConfig
from .engine import ModStore, QueryEngine
from .errors import InvalidQuery, NotFound, NotInstallable, StoreError, UpdateCancelled, UpdateFailed
from .infra import SQLiteManager
from .logging_conf import APP_LOG, component_logger, configure_logging, tail_log
from .ui import ProgressActivity
from .ui.render import (
    categories_table,
    format_age,
    hit_lines,
    overview_table,
    record_lines,
    summary_table,
    to_json,
)
from .updater import Updater

app = typer.Typer(
    help="Browse and search Balatro mods listed on the community wiki.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()
err_console = Console(stderr=True)

MAX_LISTED_WARNINGS = 20


@dataclass
class AppState:
    config: WikiConfig
    store: ModStore
    engine: QueryEngine
    updater_factory: Callable[[], Updater]
    log_dir: Path


def build_state(verbose: bool, config_path: Path | None = None) -> AppState:
    locator = ConfigLocator()
    configure_logging(verbose=verbose, log_dir=locator.logs_dir)
    repository = ConfigRepository(locator, path=config_path)
    config = repository.load()
    store = ModStore(
        repository.cache_path(),
        SQLiteManager(),
        logger=component_logger("store"),
    )
    engine = QueryEngine(store, config.query)

    def make_updater() -> Updater:
        return Updater(config, store, logger=component_logger("updater"))

    return AppState(
        config=config,
        store=store,
        engine=engine,
        updater_factory=make_updater,
        log_dir=locator.logs_dir,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _fail(message: str, code: int = 1) -> typer.Exit:
    err_console.print(message, style="red", markup=False, highlight=False, soft_wrap=True)
    return typer.Exit(code=code)


def _emit(lines: List[str]) -> None:
    for line in lines:
        console.print(line, markup=False, highlight=False, soft_wrap=True)


def _require_cache(state: AppState) -> None:
    try:
        age = state.store.age()
    except StoreError as exc:
        raise _fail(str(exc))
    if age is None:
        raise _fail("The mod cache is empty. Run `balatro-wiki update` first.")
    if age.total_seconds() > state.config.stale_after_hours * 3600:
        err_console.print(
            f"Mod cache last updated {format_age(age)}; run `balatro-wiki update` to refresh.",
            style="yellow",
        )


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
    config: Optional[Path] = typer.Option(None, "--config", help="Use this configuration file."),
) -> None:
    try:
        ctx.obj = build_state(verbose, config)
    except (OSError, ValueError) as exc:
        raise _fail(f"Cannot load configuration: {exc}")


@app.command("update", help="Refresh the local mod cache from the wiki.")
def update(
    ctx: typer.Context,
    quiet: bool = typer.Option(False, "--quiet", help="Only print the summary."),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON."),
) -> None:
    state = _get_state(ctx)
    updater = state.updater_factory()
    activity = ProgressActivity(enabled=not (quiet or as_json))
    cancel = Event()
    try:
        summary = updater.update(cancel_event=cancel, progress=activity.update)
    except UpdateFailed as exc:
        activity.close()
        for warning in exc.warnings[:MAX_LISTED_WARNINGS]:
            err_console.print(f"  {warning}", style="dim", markup=False, soft_wrap=True)
        raise _fail(f"{exc}. The existing cache was left untouched.")
    except UpdateCancelled:
        activity.close()
        raise _fail("Update cancelled. The existing cache was left untouched.", code=130)
    except StoreError as exc:
        activity.close()
        raise _fail(str(exc))
    finally:
        activity.close()
        updater.close()

    if as_json:
        typer.echo(to_json(summary.to_dict()))
        return
    console.print(summary_table(summary))
    if summary.warnings and not quiet:
        console.print(f"Warnings ({len(summary.warnings)}):", style="yellow")
        for warning in summary.warnings[:MAX_LISTED_WARNINGS]:
            console.print(f"  {warning}", style="dim", markup=False, soft_wrap=True)
        hidden = len(summary.warnings) - MAX_LISTED_WARNINGS
        if hidden > 0:
            console.print(f"  … and {hidden} more (see the log file)", style="dim")


@app.command("search", help="Search mods by name, description or tag.")
def search(
    ctx: typer.Context,
    query: List[str] = typer.Argument(..., help="Search words."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum number of results."),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON."),
) -> None:
    state = _get_state(ctx)
    _require_cache(state)
    text = " ".join(query)
    try:
        hits = state.engine.search(text, limit=limit)
    except InvalidQuery as exc:
        raise _fail(str(exc), code=2)
    except StoreError as exc:
        raise _fail(str(exc))

    if as_json:
        typer.echo(to_json([hit.to_dict() for hit in hits]))
        return
    if not hits:
        console.print(f"No mods found matching '{text}'.", markup=False)
        return
    fuzzy = hits[0].kind == "fuzzy"
    heading = f"Search results for '{text}' ({len(hits)} matches)"
    _emit([heading + (" - no exact match, closest names:" if fuzzy else ":"), ""])
    for hit in hits:
        _emit(hit_lines(hit) + [""])


@app.command("browse", help="List categories, or the mods of one category.")
def browse(
    ctx: typer.Context,
    category: Optional[str] = typer.Argument(None, help="Category to list."),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON."),
) -> None:
    state = _get_state(ctx)
    _require_cache(state)
    try:
        result = state.engine.browse(category)
    except StoreError as exc:
        raise _fail(str(exc))

    if category is None:
        if as_json:
            typer.echo(to_json([item.to_dict() for item in result]))
            return
        total = sum(item.count for item in result)
        console.print(overview_table(result, total))
        console.print("Use `balatro-wiki browse <category>` to list one category.", style="dim")
        return

    if as_json:
        typer.echo(to_json([record.to_dict() for record in result]))
        return
    if not result:
        console.print(f"No mods in category '{category}'.", markup=False)
        console.print("Use `balatro-wiki categories` to see the available categories.", style="dim")
        return
    _emit([f"{category} ({len(result)} mods):", ""])
    for record in result:
        _emit(record_lines(record, description_width=300) + [""])


@app.command("info", help="Show everything known about one mod.")
def info(
    ctx: typer.Context,
    name: List[str] = typer.Argument(..., help="Mod name."),
    as_json: bool = typer.Option(False, "--json", help="Print the record as JSON."),
) -> None:
    state = _get_state(ctx)
    _require_cache(state)
    text = " ".join(name)
    try:
        record = state.engine.info(text)
    except NotFound as exc:
        if exc.ambiguous:
            err_console.print(f"'{text}' matches several mods equally well:", style="red", markup=False, soft_wrap=True)
        else:
            err_console.print(f"Mod '{text}' not found.", style="red", markup=False, soft_wrap=True)
        if exc.suggestions:
            err_console.print(f"Did you mean: {', '.join(exc.suggestions)}", markup=False)
        raise _fail(f"Try `balatro-wiki search {text}` to look for it.")
    except InvalidQuery as exc:
        raise _fail(str(exc), code=2)
    except StoreError as exc:
        raise _fail(str(exc))

    if as_json:
        typer.echo(to_json(record.to_dict()))
        return
    _emit(record_lines(record))


@app.command("source-url", help="Print only the repository URL of a mod (for installers).")
def source_url(
    ctx: typer.Context,
    name: List[str] = typer.Argument(..., help="Mod name."),
) -> None:
    state = _get_state(ctx)
    _require_cache(state)
    text = " ".join(name)
    try:
        url = state.engine.source_url(text)
    except (NotFound, NotInstallable, InvalidQuery, StoreError) as exc:
        raise _fail(str(exc))
    typer.echo(url)


@app.command("categories", help="List categories with their mod counts.")
def categories(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    _require_cache(state)
    try:
        rows = state.engine.categories()
    except StoreError as exc:
        raise _fail(str(exc))
    console.print(categories_table(rows))


@app.command("status", help="Show cache size and freshness.")
def status(
    ctx: typer.Context,
    log_lines: int = typer.Option(0, "--log", min=0, help="Also show the last N log lines."),
) -> None:
    state = _get_state(ctx)
    try:
        updated_at = state.store.freshness()
        total = state.store.count()
        age = state.store.age()
    except StoreError as exc:
        raise _fail(str(exc))
    lines = [
        f"Cache: {state.store.path}",
        f"Mods: {total}",
        f"Last update: {updated_at.isoformat() if updated_at else 'never'}",
        f"Age: {format_age(age)}",
    ]
    _emit(lines)
    if age is not None and age.total_seconds() > state.config.stale_after_hours * 3600:
        console.print("Cache is stale; run `balatro-wiki update`.", style="yellow")
    if log_lines:
        for line in tail_log(state.log_dir / APP_LOG, log_lines):
            console.print(line.rstrip("\n"), markup=False, highlight=False, soft_wrap=True)


__all__ = ["AppState", "app", "build_state"]
