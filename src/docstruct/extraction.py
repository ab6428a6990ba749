"""Text extraction collaborators.

The parser core only ever sees plain text. Extractors turn a source file
into an ``ExtractionResult``; anything binary (PDF, DOCX) is expected to be
handled by an external extractor implementing the same protocol.

Bundled extractors:
- ``PlainTextExtractor`` for .txt/.md, with encoding fallback
  (UTF-8 -> CP1252 -> replace) for Word exports carrying smart quotes;
- ``HtmlExtractor`` for .html/.htm, BeautifulSoup with paragraph breaks at
  block-level elements.

An extractor that cannot produce any text raises ``ExtractionFailure``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from bs4 import BeautifulSoup

from docstruct.errors import ExtractionFailure

log = logging.getLogger(__name__)

SOURCE_TEXT = "text"
SOURCE_MARKDOWN = "markdown"
SOURCE_HTML = "html"

_SOURCE_BY_SUFFIX: dict[str, str] = {
    ".txt": SOURCE_TEXT,
    ".text": SOURCE_TEXT,
    ".md": SOURCE_MARKDOWN,
    ".markdown": SOURCE_MARKDOWN,
    ".html": SOURCE_HTML,
    ".htm": SOURCE_HTML,
}

_BLOCK_TAGS: list[str] = [
    "p", "div", "br", "tr", "li",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "table",
]

# U+200B (ZWSP), U+200C (ZWNJ), U+FEFF (BOM): invisible characters from
# Word/HTML conversions that break label matching.
_ZERO_WIDTH_RE = re.compile("[\u200b\u200c\ufeff]")


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    plain_text: str
    html: str | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)


class TextExtractor(Protocol):
    def extract(self, path: Path) -> ExtractionResult: ...


def source_kind_for(path: Path) -> str:
    """Source kind ("text", "markdown", "html") from the file suffix."""
    return _SOURCE_BY_SUFFIX.get(path.suffix.lower(), SOURCE_TEXT)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def read_file(fpath: Path) -> str:
    """Read a text file with encoding fallback: UTF-8 -> CP1252 -> replace.

    Raises ExtractionFailure when the file cannot be read at all.
    """
    try:
        try:
            return fpath.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            try:
                return fpath.read_text(encoding="cp1252")
            except UnicodeDecodeError:
                with open(fpath, errors="replace") as f:
                    return f.read()
    except OSError as exc:
        raise ExtractionFailure(f"cannot read {fpath}: {exc}", source=str(fpath)) from exc


def strip_zero_width(text: str) -> str:
    """Remove zero-width Unicode characters."""
    return _ZERO_WIDTH_RE.sub("", text)


def _collapse_whitespace(text: str) -> str:
    """Collapse horizontal whitespace (preserving newlines) and limit blanks."""
    text = re.sub(r"[^\S\n]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text


def strip_html(raw_html: str) -> str:
    """Extract text from HTML with a line break before every block element."""
    if not raw_html:
        return ""
    soup = BeautifulSoup(raw_html, "html.parser")
    for tag in soup.find_all(["script", "style"]):
        tag.decompose()
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_before("\n")
    text = _collapse_whitespace(soup.get_text(separator=" "))
    lines = [line.strip() for line in text.split("\n")]
    return strip_zero_width("\n".join(lines).strip())


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------


class PlainTextExtractor:
    """Reads .txt and .md files as-is (leading whitespace kept)."""

    def extract(self, path: Path) -> ExtractionResult:
        text = strip_zero_width(read_file(path))
        if not text.strip():
            raise ExtractionFailure(f"{path.name} contains no text", source=str(path))
        log.debug("Read %d characters from %s", len(text), path)
        return ExtractionResult(plain_text=text)


class HtmlExtractor:
    """Extracts block-separated text from an HTML file."""

    def extract(self, path: Path) -> ExtractionResult:
        raw = read_file(path)
        text = strip_html(raw)
        if not text:
            raise ExtractionFailure(f"{path.name} has no extractable text", source=str(path))
        warnings: list[str] = []
        if len(text) < 0.01 * len(raw):
            warnings.append("very little text relative to markup; content may be images")
        return ExtractionResult(plain_text=text, html=raw, warnings=tuple(warnings))


def extractor_for(path: Path) -> TextExtractor:
    """Default extractor for a file suffix."""
    if source_kind_for(path) == SOURCE_HTML:
        return HtmlExtractor()
    return PlainTextExtractor()
