"""Section assembler: turn heading lines into sections with body text.

Two passes over the line array:

1. Binding. Each detected item claims the first line (not yet claimed, not
   in the TOC) whose normalized text starts with the item's normalized
   label. Items that find no line are dropped.
2. Walking. A header line closes the running section and opens a new one;
   every other non-blank line is body text of the running section. Lines
   before the first header stay unclaimed for orphan capture.

Header lines often carry more than a label ("Section 2: Quorum – A majority
of directors..."). ``split_header_line`` separates the title from any body
text on the same line.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from docstruct.errors import STRUCTURAL_AMBIGUITY
from docstruct.parsing_types import DetectedItem, Section
from docstruct.trace import STAGE_ASSEMBLE, STAGE_BIND, TraceLog

log = logging.getLogger(__name__)

UNTITLED = "(Untitled)"
CONTENT_ON_HEADER_LINE = "(Content on header line)"

_SHORT_TITLE_MAX = 50
_TITLE_FALLBACK_MAX = 100

_LEADING_DELIMITER_RE = re.compile(r"^[:\-–—.)]+\s*")
# "Title – body" (en/em dash, spaces optional) or "Title - body" (spaced hyphen)
_DASH_SPLIT_RE = re.compile(r"^(.+?)\s*[–—]\s*(.+)$")
_HYPHEN_SPLIT_RE = re.compile(r"^(.+?)\s+-\s+(.+)$")
_SENTENCE_END_RE = re.compile(r"[.!?]$")
_FIRST_SENTENCE_RE = re.compile(r"^([A-Z][^.!?]*[.!?])\s*(.*)$", re.DOTALL)

# Header split kinds
SPLIT_TITLE = "title"
SPLIT_TITLE_AND_BODY = "title+body"
SPLIT_FIRST_SENTENCE = "first-sentence"
SPLIT_BODY_ONLY = "body-only"


@dataclass(frozen=True, slots=True)
class HeaderSplit:
    """Result of splitting a header line into title and inline body."""

    title: str
    inline_body: str | None
    kind: str


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def normalize_for_matching(text: str) -> str:
    """Canonical form used to compare labels with lines.

    Content after the first tab is dropped (TOC page numbers), whitespace is
    collapsed, the result is stripped and upper-cased.
    """
    return re.sub(r"\s+", " ", text.split("\t", 1)[0]).strip().upper()


def clean_text(text: str) -> str:
    """Strip every line and drop blank ones."""
    return "\n".join(
        stripped for line in text.split("\n") if (stripped := line.strip())
    )


def compute_indentation(lines: list[str]) -> list[int]:
    """Indentation level per line: leading whitespace (tab = 4) // 2."""
    levels: list[int] = []
    for line in lines:
        leading = line[: len(line) - len(line.lstrip(" \t"))]
        levels.append(len(leading.replace("\t", "    ")) // 2)
    return levels


def format_label(prefix: str, number: str) -> str:
    """Citation label for a level: prefix + ordinal, closing an open paren."""
    label = f"{prefix}{number}"
    if prefix.rstrip().endswith("("):
        label += ")"
    return label


def _starts_with_label(normalized_line: str, normalized_label: str) -> bool:
    if not normalized_label or not normalized_line.startswith(normalized_label):
        return False
    rest = normalized_line[len(normalized_label):]
    # "ARTICLE I" must not claim "ARTICLE II"
    return not rest or not rest[0].isalnum()


# ---------------------------------------------------------------------------
# Binding
# ---------------------------------------------------------------------------


def _bind_own_line(
    item: DetectedItem,
    label: str,
    normalized: list[str],
    bound: dict[int, DetectedItem],
    toc_lines: frozenset[int],
) -> bool:
    i = item.line_index
    if i < 0 or i >= len(normalized) or i in bound or i in toc_lines:
        return False
    if not _starts_with_label(normalized[i], label):
        return False
    bound[i] = item
    return True


def bind_header_lines(
    lines: list[str],
    items: list[DetectedItem],
    toc_lines: frozenset[int] = frozenset(),
    *,
    trace: TraceLog | None = None,
) -> dict[int, DetectedItem]:
    """Map line index -> detected item for every item that finds its line.

    Every item first claims the line it was found on (``line_index``) when
    that line starts with its label. The rest fall back to a linear scan
    (O(lines * items)) for the first free line starting with the label.
    """
    normalized = [normalize_for_matching(line) for line in lines]
    labels = [normalize_for_matching(item.full_match) for item in items]
    bound: dict[int, DetectedItem] = {}
    pending = [
        (item, label) for item, label in zip(items, labels)
        if not _bind_own_line(item, label, normalized, bound, toc_lines)
    ]
    dropped = 0
    for item, label in pending:
        for i, norm_line in enumerate(normalized):
            if i in bound or i in toc_lines:
                continue
            if _starts_with_label(norm_line, label):
                bound[i] = item
                break
        else:
            dropped += 1
            if trace is not None:
                trace.record(
                    STAGE_BIND, item.full_match, STRUCTURAL_AMBIGUITY,
                    char_offset=item.char_offset, type=item.type,
                )
    log.debug("Bound %d header lines, dropped %d unbindable items", len(bound), dropped)
    return bound


# ---------------------------------------------------------------------------
# Header line split
# ---------------------------------------------------------------------------


def _strip_label(line: str, item: DetectedItem) -> str:
    trimmed = line.strip()
    label = item.full_match.strip()
    if trimmed.upper().startswith(label.upper()):
        return trimmed[len(label):]
    # Whitespace inside the label differs from the line ("ARTICLE\tI").
    collapsed = re.sub(r"\s+", " ", trimmed)
    label_collapsed = re.sub(r"\s+", " ", label)
    if collapsed.upper().startswith(label_collapsed.upper()):
        return collapsed[len(label_collapsed):]
    return trimmed


def split_header_line(line: str, item: DetectedItem) -> HeaderSplit:
    """Separate a header line into title and inline body text.

    After removing the label and one leading delimiter the remainder is:
    - "Title – body" / "Title - body": title plus inline body;
    - short (< 50 chars) and not sentence-terminated: title only;
    - starting with a capitalized sentence: that sentence is the title,
      the rest is body;
    - under 100 chars: title only;
    - anything longer: body with a placeholder title.
    """
    remainder = _strip_label(line, item).strip()
    remainder = _LEADING_DELIMITER_RE.sub("", remainder).strip()
    if not remainder:
        return HeaderSplit(UNTITLED, None, SPLIT_TITLE)

    dash = _DASH_SPLIT_RE.match(remainder) or _HYPHEN_SPLIT_RE.match(remainder)
    if dash:
        title = dash.group(1).strip() or UNTITLED
        return HeaderSplit(title, dash.group(2).strip(), SPLIT_TITLE_AND_BODY)

    if len(remainder) < _SHORT_TITLE_MAX and not _SENTENCE_END_RE.search(remainder):
        return HeaderSplit(remainder, None, SPLIT_TITLE)

    sentence = _FIRST_SENTENCE_RE.match(remainder)
    if sentence:
        rest = sentence.group(2).strip()
        return HeaderSplit(sentence.group(1).rstrip(".").strip(), rest or None, SPLIT_FIRST_SENTENCE)

    if len(remainder) < _TITLE_FALLBACK_MAX:
        return HeaderSplit(remainder, None, SPLIT_TITLE)
    return HeaderSplit(CONTENT_ON_HEADER_LINE, remainder, SPLIT_BODY_ONLY)


# ---------------------------------------------------------------------------
# Citations
# ---------------------------------------------------------------------------


class _CitationStack:
    """Qualifies labels with the citation of the nearest shallower heading."""

    def __init__(self) -> None:
        self._stack: list[tuple[int, str]] = []

    def cite(self, item: DetectedItem) -> str:
        while self._stack and self._stack[-1][0] >= item.schema_depth:
            self._stack.pop()
        label = format_label(item.prefix, item.number)
        citation = f"{self._stack[-1][1]}, {label}" if self._stack else label
        self._stack.append((item.schema_depth, citation))
        return citation


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def assemble_sections(
    lines: list[str],
    items: list[DetectedItem],
    toc_lines: frozenset[int] = frozenset(),
    *,
    indentation: list[int] | None = None,
    trace: TraceLog | None = None,
) -> list[Section]:
    """Build sections from bound header lines and the body lines under them.

    ``indentation`` (per-line hint from plain text) is copied onto each
    section for the depth resolver; pass None for sources where leading
    whitespace carries no meaning.
    """
    bound = bind_header_lines(lines, items, toc_lines, trace=trace)
    citations = _CitationStack()
    sections: list[Section] = []
    current: Section | None = None
    body: list[str] = []

    def close() -> None:
        if current is not None:
            current.body_text = clean_text("\n".join(body))
            sections.append(current)

    for index, line in enumerate(lines):
        if index in toc_lines:
            continue
        item = bound.get(index)
        if item is not None:
            close()
            split = split_header_line(line, item)
            current = Section(
                type=item.type,
                level_name=item.level_name,
                title=split.title,
                citation=citations.cite(item),
                raw_number=item.number,
                prefix=item.prefix,
                line_number=index,
                depth=item.schema_depth,
                indentation=indentation[index] if indentation is not None else None,
            )
            body = [split.inline_body] if split.inline_body else []
            if trace is not None:
                trace.record(STAGE_ASSEMBLE, current.citation, split.kind, line=index)
        elif current is not None and line.strip():
            body.append(line)
    close()

    log.debug("Assembled %d sections from %d lines", len(sections), len(lines))
    return sections
