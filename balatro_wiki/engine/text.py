"""Text normalisation and Unicode-safe display helpers."""

from __future__ import annotations

import re
import unicodedata
from typing import Iterator

UNCATEGORIZED = "uncategorized"

_WHITESPACE = re.compile(r"\s+")
_WIKI_MARKUP = re.compile(r"\[\[|\]\]|\{\{|\}\}|\(\)")
_EDIT_MARKER = re.compile(r"\[\s*edit(\s*\|\s*edit source)?\s*\]\s*$", re.IGNORECASE)

_ZWJ = "\u200d"


def ensure_unicode(text: str) -> str:
    """Reject strings that cannot be encoded as UTF-8 (lone surrogates)."""

    try:
        text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ValueError(f"malformed unicode at position {exc.start}") from exc
    return text


def decode_markup(raw: bytes) -> tuple[str, bool]:
    """Decode page bytes as UTF-8; the flag reports whether bytes were replaced."""

    try:
        return raw.decode("utf-8"), False
    except UnicodeDecodeError:
        return raw.decode("utf-8", errors="replace"), True


def clean_text(text: str | None) -> str:
    """Strip leftover wiki markup, control characters and redundant whitespace."""

    if not text:
        return ""
    text = unicodedata.normalize("NFC", ensure_unicode(text))
    text = "".join(
        " " if unicodedata.category(ch) == "Cc" else ch
        for ch in text
    )
    text = _WIKI_MARKUP.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def clean_heading(text: str | None) -> str:
    """Clean a section heading, dropping MediaWiki ``[edit]`` suffixes."""

    return _EDIT_MARKER.sub("", clean_text(text)).strip()


def normalize_id(name: str) -> str:
    """Derive the stable record identifier from a display name."""

    folded = unicodedata.normalize("NFKC", ensure_unicode(name)).casefold()
    return _WHITESPACE.sub(" ", folded).strip()


def _extends_cluster(ch: str) -> bool:
    code = ord(ch)
    if unicodedata.category(ch) in ("Mn", "Me", "Mc"):
        return True
    return (
        0xFE00 <= code <= 0xFE0F
        or 0xE0100 <= code <= 0xE01EF
        or 0x1F3FB <= code <= 0x1F3FF
        or 0xE0020 <= code <= 0xE007F
    )


def _is_regional_indicator(ch: str) -> bool:
    return 0x1F1E6 <= ord(ch) <= 0x1F1FF


def graphemes(text: str) -> Iterator[str]:
    """Yield approximate extended grapheme clusters.

    Covers combining marks, variation selectors, emoji modifiers and tags,
    ZWJ sequences, regional-indicator flags and CRLF.
    """

    cluster = ""
    pending_ri = False
    for ch in text:
        if not cluster:
            cluster = ch
            pending_ri = _is_regional_indicator(ch)
            continue
        previous = cluster[-1]
        if (
            _extends_cluster(ch)
            or ch == _ZWJ
            or previous == _ZWJ
            or (previous == "\r" and ch == "\n")
        ):
            cluster += ch
            continue
        if pending_ri and _is_regional_indicator(ch):
            cluster += ch
            pending_ri = False
            continue
        yield cluster
        cluster = ch
        pending_ri = _is_regional_indicator(ch)
    if cluster:
        yield cluster


def display_length(text: str) -> int:
    return sum(1 for _ in graphemes(text))


def truncate(text: str, width: int, placeholder: str = "...") -> str:
    """Shorten ``text`` to at most ``width`` grapheme clusters.

    The placeholder counts towards the width and cuts only happen on cluster
    boundaries, so no codepoint or combining sequence is ever split.
    """

    clusters = list(graphemes(text))
    if len(clusters) <= width:
        return text
    if width <= len(placeholder):
        return placeholder[: max(width, 0)]
    kept = "".join(clusters[: width - len(placeholder)]).rstrip()
    return kept + placeholder


__all__ = [
    "UNCATEGORIZED",
    "clean_heading",
    "clean_text",
    "decode_markup",
    "display_length",
    "ensure_unicode",
    "graphemes",
    "normalize_id",
    "truncate",
]
