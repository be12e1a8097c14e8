"""Text renderers for query results.

The ``Repository:`` line is read by installer scripts: it is always the
label, one space and the URL on a single line, and it is omitted entirely
when no repository is known.
"""

from __future__ import annotations

import json
from datetime import timedelta
from typing import Any, Iterable, Sequence

from rich import box
from rich.table import Table

from ..engine import CategoryOverview, ModRecord, SearchHit, UpdateSummary
from ..engine.text import truncate

REPOSITORY_LABEL = "Repository:"
SUMMARY_WIDTH = 300
NAME_WIDTH = 60


def repository_line(record: ModRecord) -> str | None:
    if record.source_url is None:
        return None
    return f"{REPOSITORY_LABEL} {record.source_url}"


def record_lines(record: ModRecord, description_width: int | None = None) -> list[str]:
    """One field per line; optional fields are skipped when unknown."""

    description = record.description or "No description available"
    if description_width is not None:
        description = truncate(description, description_width)
    lines = [
        f"Name: {record.name}",
        f"Category: {record.category}",
        f"Description: {description}",
    ]
    if record.author:
        lines.append(f"Author: {record.author}")
    if record.version:
        lines.append(f"Version: {record.version}")
    if record.tags:
        lines.append(f"Tags: {', '.join(record.tags)}")
    repo = repository_line(record)
    if repo:
        lines.append(repo)
    lines.append(f"Installable: {'yes' if record.installable else 'no'}")
    if record.wiki_url:
        lines.append(f"Wiki: {record.wiki_url}")
    return lines


def hit_lines(hit: SearchHit) -> list[str]:
    lines = record_lines(hit.record, description_width=SUMMARY_WIDTH)
    if hit.kind == "fuzzy":
        lines.append(f"Match: fuzzy ({hit.score:.2f})")
    return lines


def overview_table(overview: Sequence[CategoryOverview], total: int) -> Table:
    table = Table(title=f"Balatro mods · {total} total", box=box.SIMPLE_HEAD)
    table.add_column("Category", style="cyan", no_wrap=True)
    table.add_column("Mods", style="green", justify="right")
    table.add_column("Examples", style="dim", overflow="fold")
    for item in overview:
        examples = ", ".join(truncate(record.name, NAME_WIDTH) for record in item.representatives)
        table.add_row(item.category, str(item.count), examples)
    return table


def categories_table(categories: Iterable[tuple[str, int]]) -> Table:
    table = Table(title="Categories", box=box.SIMPLE_HEAD)
    table.add_column("Category", style="cyan", no_wrap=True)
    table.add_column("Mods", style="green", justify="right")
    for name, count in categories:
        table.add_row(name, str(count))
    return table


def summary_table(summary: UpdateSummary) -> Table:
    table = Table(title="Update summary", box=box.SIMPLE_HEAD, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total mods", str(summary.total))
    table.add_row("Added", str(len(summary.added)))
    table.add_row("Changed", str(len(summary.changed)))
    table.add_row("Removed", str(len(summary.removed)))
    table.add_row("Pages fetched", f"{summary.pages_ok}/{summary.pages_ok + summary.pages_failed}")
    table.add_row("Warnings", str(len(summary.warnings)))
    return table


def format_age(age: timedelta | None) -> str:
    if age is None:
        return "never updated"
    seconds = max(int(age.total_seconds()), 0)
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60
    if days:
        return f"{days}d {hours}h ago"
    if hours:
        return f"{hours}h {minutes}m ago"
    return f"{minutes}m ago"


def to_json(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2)


__all__ = [
    "REPOSITORY_LABEL",
    "categories_table",
    "format_age",
    "hit_lines",
    "overview_table",
    "record_lines",
    "repository_line",
    "summary_table",
    "to_json",
]
