"""Turn fetched wiki markup into mod records.

Every candidate entry is parsed on its own. A failure produces a
``ParseWarning`` and the rest of the page is still processed.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator
from urllib.parse import quote, urljoin, urlparse

import structlog
from selectolax.parser import HTMLParser, Node

from ..config import PageSource
from .records import ModRecord, ParseWarning
from .text import UNCATEGORIZED, clean_heading, clean_text, decode_markup, truncate

CODE_HOSTS = ("github.com", "gitlab.com", "codeberg.org", "bitbucket.org", "gitea.com")
SKIPPED_NAMESPACES = ("Category:", "File:", "Template:", "User:", "Help:", "Special:")
HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4"})
CHROME_IDS = frozenset({"toc", "catlinks", "mw-navigation", "footer"})
CHROME_CLASSES = frozenset(
    {"toc", "navbox", "catlinks", "mw-editsection", "printfooter", "reference", "references", "mw-references-wrap"}
)
NAME_SEPARATOR = re.compile(r"\s+[-–—|]\s+|\s*:\s+")
LEADING_SEPARATORS = " -–—:|·•"
DESCRIPTION_LIMIT = 500

_BOILERPLATE = (
    "disambiguation",
    "redirect",
    "this article is a stub",
    "bibliography",
    "references",
    "external links",
    "see also",
    "categories",
    "navigation",
)
_LINK_HOSTS = ("github.com", "gamebanana.com", "drive.google.com")
_TRAILING_SECTIONS = frozenset(
    {"see also", "external links", "references", "bibliography", "navigation", "categories", "notes"}
)


class EntryError(ValueError):
    """Raised for an entry that cannot become a record."""


@dataclass
class ParseResult:
    """Records extracted from one page plus the problems met on the way."""

    records: list[ModRecord] = field(default_factory=list)
    warnings: list[ParseWarning] = field(default_factory=list)


@dataclass
class ModDetail:
    """Fields found on an individual mod page."""

    description: str = ""
    source_url: str | None = None
    author: str | None = None
    version: str | None = None
    tags: tuple[str, ...] = ()


def is_code_host(url: str) -> bool:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False
    host = (parsed.hostname or "").lower()
    return any(host == known or host.endswith("." + known) for known in CODE_HOSTS)


def _has_chrome_ancestor(node: Node, root: Node) -> bool:
    current = node.parent
    while current is not None and current.mem_id != root.mem_id:
        attrs = current.attributes
        if (attrs.get("id") or "") in CHROME_IDS:
            return True
        classes = set((attrs.get("class") or "").split())
        if classes & CHROME_CLASSES:
            return True
        current = current.parent
    return False


def _heading_text(node: Node) -> str:
    target = node.css_first(".mw-headline") or node
    return clean_heading(target.text(separator=" "))


def _prune(node: Node, selector: str) -> None:
    """Remove outermost matches of ``selector`` below ``node``."""

    matches = node.css(selector)
    matched_ids = {match.mem_id for match in matches}
    outermost = []
    for match in matches:
        parent = match.parent
        nested = False
        while parent is not None and parent.mem_id != node.mem_id:
            if parent.mem_id in matched_ids:
                nested = True
                break
            parent = parent.parent
        if not nested:
            outermost.append(match)
    for match in outermost:
        match.decompose()


class Extractor:
    """Parse listing pages and mod pages fetched from the wiki."""

    def __init__(self, base_url: str, logger: structlog.BoundLogger | None = None) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.logger = logger or structlog.get_logger("balatro_wiki.extractor")

    # ------------------------------------------------------------------
    # Listing pages
    # ------------------------------------------------------------------
    def parse(self, raw: bytes, page: PageSource | None = None, page_url: str | None = None) -> ParseResult:
        label = page.url if page else (page_url or "<page>")
        page_url = page_url or urljoin(self.base_url, page.url if page else "")
        pinned = page.category if page else None
        result = ParseResult()

        text, replaced = decode_markup(raw)
        if replaced:
            result.warnings.append(ParseWarning(label, "page is not valid UTF-8; bytes replaced"))

        payload = self._maybe_json(text)
        if payload is not None:
            if isinstance(payload, dict) and "error" in payload:
                result.warnings.append(ParseWarning(label, f"wiki API error: {payload['error']}"))
            if isinstance(payload, dict) and "continue" in payload:
                result.warnings.append(ParseWarning(label, "category listing truncated by the API limit"))
            entries = self._json_entries(payload, pinned)
        else:
            entries = self._html_entries(text, pinned)

        by_id: dict[str, ModRecord] = {}
        for entry_label, builder in entries:
            try:
                record = builder(page_url)
            except Exception as exc:  # noqa: BLE001
                result.warnings.append(ParseWarning(label, str(exc) or type(exc).__name__, entry_label))
                continue
            if record.id in by_id:
                result.warnings.append(ParseWarning(label, "duplicate entry replaced", record.name))
            by_id[record.id] = record
        result.records = list(by_id.values())
        self.logger.debug(
            "page_parsed",
            page=label,
            records=len(result.records),
            warnings=len(result.warnings),
        )
        return result

    @staticmethod
    def _maybe_json(text: str) -> Any:
        if not text.lstrip().startswith("{"):
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return None

    def _json_entries(self, payload: Any, pinned: str | None) -> Iterator[tuple[str, Any]]:
        query = payload.get("query") if isinstance(payload, dict) else None
        members = query.get("categorymembers") if isinstance(query, dict) else None
        if not isinstance(members, list):
            members = []
        for index, member in enumerate(members):
            title = member.get("title") if isinstance(member, dict) else None
            if isinstance(title, str) and title.startswith(SKIPPED_NAMESPACES):
                continue
            yield f"member #{index}", self._member_builder(member, pinned)

    def _member_builder(self, member: Any, pinned: str | None):
        def build(_page_url: str) -> ModRecord:
            if not isinstance(member, dict):
                raise EntryError("category member is not an object")
            name = clean_text(member.get("title") if isinstance(member.get("title"), str) else "")
            if not name:
                raise EntryError("entry has no name")
            wiki_url = urljoin(self.base_url, "wiki/" + quote(name.replace(" ", "_")))
            return ModRecord.create(name, category=pinned, wiki_url=wiki_url)

        return build

    def _html_entries(self, text: str, pinned: str | None) -> Iterator[tuple[str, Any]]:
        tree = HTMLParser(text)
        root = tree.css_first("div.mw-parser-output") or tree.body
        if root is None:
            return
        heading: str | None = None
        columns: list[str] = []
        index = 0
        skipping = False
        for node in root.traverse(include_text=False):
            tag = node.tag
            if tag in HEADING_TAGS:
                if not _has_chrome_ancestor(node, root):
                    title = _heading_text(node)
                    # wiki footer sections hold links, not mods
                    skipping = title.casefold() in _TRAILING_SECTIONS
                    heading = title or heading
                    columns = []
                continue
            if skipping or tag not in ("li", "tr") or _has_chrome_ancestor(node, root):
                continue
            if tag == "tr":
                cells = node.css("td")
                if not cells:
                    columns = [clean_text(th.text(separator=" ")).casefold() for th in node.css("th")]
                    continue
            index += 1
            category = pinned or heading or UNCATEGORIZED
            if tag == "li":
                yield f"item #{index}", self._item_builder(node.html or "", category)
            else:
                yield f"row #{index}", self._row_builder(node, list(columns), category)

    # ------------------------------------------------------------------
    def _item_builder(self, markup: str, category: str):
        def build(page_url: str) -> ModRecord:
            fragment = HTMLParser(markup).css_first("li")
            if fragment is None:
                raise EntryError("list item could not be re-read")
            _prune(fragment, "ul, ol, sup.reference, .mw-editsection")
            full_text = clean_text(fragment.text(separator=" "))
            links = fragment.css("a[href]")
            name = self._name_from_links(links, page_url)
            if not name:
                name = clean_text(NAME_SEPARATOR.split(full_text, maxsplit=1)[0])
            if not name:
                raise EntryError("entry has no name")
            description = full_text[len(name):] if full_text.startswith(name) else full_text
            return ModRecord.create(
                name,
                category=category,
                description=description.strip(LEADING_SEPARATORS),
                source_url=self._source_url(links, page_url),
                wiki_url=self._wiki_url(links, page_url),
            )

        return build

    def _row_builder(self, row: Node, columns: list[str], category: str):
        def build(page_url: str) -> ModRecord:
            cells = row.css("td")
            fields = self._map_columns(columns, len(cells))
            name_cell = cells[fields.get("name", 0)]
            links = row.css("a[href]")
            name = self._name_from_links(name_cell.css("a[href]"), page_url)
            name = name or clean_text(name_cell.text(separator=" "))
            if not name:
                raise EntryError("entry has no name")

            def cell(key: str) -> str | None:
                position = fields.get(key)
                if position is None or position >= len(cells):
                    return None
                return clean_text(cells[position].text(separator=" ")) or None

            return ModRecord.create(
                name,
                category=category,
                description=cell("description") or "",
                author=cell("author"),
                version=cell("version"),
                source_url=self._source_url(links, page_url),
                wiki_url=self._wiki_url(name_cell.css("a[href]"), page_url),
            )

        return build

    @staticmethod
    def _map_columns(columns: list[str], width: int) -> dict[str, int]:
        mapping: dict[str, int] = {}
        keywords = (
            ("name", ("name", "mod", "title")),
            ("description", ("description", "summary", "about")),
            ("author", ("author", "creator", "developer")),
            ("version", ("version",)),
        )
        for position, label in enumerate(columns[:width]):
            for key, words in keywords:
                if key not in mapping and any(word in label for word in words):
                    mapping[key] = position
                    break
        mapping.setdefault("name", 0)
        if "description" not in mapping and width > 1:
            mapping["description"] = 1 if mapping["name"] != 1 else 0
        return mapping

    # ------------------------------------------------------------------
    def _is_internal(self, href: str, page_url: str) -> bool:
        absolute = urljoin(page_url, href)
        parsed = urlparse(absolute)
        base_host = urlparse(self.base_url).hostname
        return parsed.scheme in ("http", "https") and parsed.hostname == base_host

    def _name_from_links(self, links: Iterable[Node], page_url: str) -> str:
        for link in links:
            href = (link.attributes.get("href") or "").strip()
            if not href or href.startswith(("#", "javascript:")):
                continue
            if not self._is_internal(href, page_url):
                continue
            text = clean_text(link.text(separator=" "))
            if text:
                return text
        return ""

    def _wiki_url(self, links: Iterable[Node], page_url: str) -> str | None:
        for link in links:
            href = (link.attributes.get("href") or "").strip()
            if href and not href.startswith(("#", "javascript:")) and self._is_internal(href, page_url):
                return urljoin(page_url, href)
        return None

    @staticmethod
    def _source_url(links: Iterable[Node], page_url: str) -> str | None:
        for link in links:
            href = (link.attributes.get("href") or "").strip()
            if not href:
                continue
            absolute = urljoin(page_url, href)
            if is_code_host(absolute):
                return absolute
        return None

    # ------------------------------------------------------------------
    # Mod pages
    # ------------------------------------------------------------------
    def parse_detail(self, raw: bytes, page_url: str | None = None) -> ModDetail:
        text, _ = decode_markup(raw)
        tree = HTMLParser(text)
        page_url = page_url or self.base_url
        detail = ModDetail()

        tags: list[str] = []
        infobox_description = ""
        for row in tree.css(".infobox tr"):
            cells = row.css("th, td")
            if len(cells) < 2:
                continue
            label = clean_text(cells[0].text(separator=" ")).casefold()
            value = clean_text(cells[-1].text(separator=" "))
            if not value:
                continue
            if "description" in label and not infobox_description:
                if len(value) > 10 and not value.startswith("http") and "github.com" not in value:
                    infobox_description = value
            elif any(word in label for word in ("author", "creator", "developer")):
                detail.author = detail.author or value
            elif "version" in label:
                detail.version = detail.version or value
            elif any(word in label for word in ("tags", "type", "genre")):
                tags.extend(part.strip() for part in value.split(",") if part.strip())
        for link in tree.css("#catlinks li a, .catlinks li a"):
            category = clean_text(link.text(separator=" ")).removeprefix("Category:").strip()
            if category:
                tags.append(category)
        detail.tags = tuple(dict.fromkeys(tags))

        parts = [infobox_description] if infobox_description else []
        for paragraph in tree.css("div.mw-parser-output > p"):
            cleaned = self._paragraph_text(paragraph)
            if cleaned:
                parts.append(cleaned)
            if len(parts) >= 3:
                break
        detail.description = truncate(" ".join(parts), DESCRIPTION_LIMIT) if parts else ""

        content = tree.css_first("div.mw-parser-output") or tree.body
        if content is not None:
            detail.source_url = self._source_url(content.css("a[href]"), page_url)
        return detail

    @staticmethod
    def _paragraph_text(paragraph: Node) -> str:
        words = clean_text(paragraph.text(separator=" ")).split(" ")
        cleaned = " ".join(
            word for word in words if not word.startswith("http") and not any(host in word for host in _LINK_HOSTS)
        ).strip()
        lowered = cleaned.casefold()
        if len(cleaned) <= 20 or any(marker in lowered for marker in _BOILERPLATE):
            return ""
        return cleaned


__all__ = ["CODE_HOSTS", "EntryError", "Extractor", "ModDetail", "ParseResult", "is_code_host"]
