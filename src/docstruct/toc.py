"""Line/TOC reconciler.

Maps character offsets to line numbers and finds table-of-contents blocks,
so that the TOC copy of a heading ("ARTICLE I<TAB>NAME<TAB>4") is never
mistaken for the real heading in the body.

A TOC entry is a line with some content, then a separator run (tabs or dot
leaders) and a trailing page number. Fewer than three entries in the scan
window is treated as coincidence and nothing is excluded.
"""
from __future__ import annotations

import dataclasses
import logging
import re
from bisect import bisect_right

from docstruct.parsing_types import DetectedItem
from docstruct.trace import STAGE_TOC, TraceLog

log = logging.getLogger(__name__)

TOC_SCAN_LIMIT = 200
TOC_MIN_ENTRIES = 3
# Non-entry lines allowed between two entries of the same block
# (wrapped titles, a "Page" column header).
TOC_MAX_GAP = 2

_TOC_ENTRY_RE = re.compile(
    r"^\s*\S.*?"
    r"(?:\t+[ \t]*|[ \t]*(?:\.[ \t]*){3,}|[ \t]*…+[ \t]*)"
    r"\d{1,4}\s*$"
)
_TOC_HEADER_RE = re.compile(r"^\s*table\s+of\s+contents\s*:?\s*$", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Offsets and lines
# ---------------------------------------------------------------------------


def map_offset_to_line(text: str, char_offset: int) -> int:
    """Line index containing *char_offset* (forward scan, O(lines)).

    Each line accounts for its length plus one terminator. Offsets past the
    end map to the last line.
    """
    lines = text.split("\n")
    consumed = 0
    for index, line in enumerate(lines):
        span = len(line) + 1
        if char_offset < consumed + span:
            return index
        consumed += span
    return len(lines) - 1


def compute_line_starts(text: str) -> list[int]:
    """Char offsets of every line start. Position 0 is always a line start."""
    starts = [0]
    for i, ch in enumerate(text):
        if ch == "\n":
            starts.append(i + 1)
    return starts


def line_for_offset(line_starts: list[int], char_offset: int) -> int:
    """Same answer as map_offset_to_line, by binary search over line starts."""
    return max(bisect_right(line_starts, char_offset) - 1, 0)


# ---------------------------------------------------------------------------
# TOC detection
# ---------------------------------------------------------------------------


def is_toc_entry(line: str) -> bool:
    """True for lines shaped like ``Title<TAB>12`` or ``Title ....... 12``."""
    return bool(_TOC_ENTRY_RE.match(line))


def detect_toc(
    lines: list[str],
    *,
    scan_limit: int = TOC_SCAN_LIMIT,
    trace: TraceLog | None = None,
) -> frozenset[int]:
    """Line indices that belong to a table of contents.

    Scans the first *scan_limit* lines. With at least TOC_MIN_ENTRIES entry
    lines, returns the entries, the short gaps between consecutive entries
    and a literal "Table of Contents" header line if one is present in the
    window. Otherwise returns an empty set.
    """
    window = min(scan_limit, len(lines))
    entries = [i for i in range(window) if is_toc_entry(lines[i])]
    if len(entries) < TOC_MIN_ENTRIES:
        return frozenset()

    toc: set[int] = set(entries)
    for prev, nxt in zip(entries, entries[1:]):
        if 1 < nxt - prev <= TOC_MAX_GAP + 1:
            toc.update(range(prev + 1, nxt))

    header = next(
        (i for i in range(window) if _TOC_HEADER_RE.match(lines[i])), None,
    )
    if header is not None:
        toc.add(header)

    log.info("Detected table of contents: lines %d-%d (%d entries)",
             entries[0], entries[-1], len(entries))
    if trace is not None:
        trace.record(
            STAGE_TOC, f"lines {entries[0]}-{entries[-1]}", "toc-detected",
            entries=len(entries), header_line=header,
        )
    return frozenset(toc)


def reconcile_items(
    items: list[DetectedItem],
    text: str,
    toc_lines: frozenset[int],
    *,
    trace: TraceLog | None = None,
) -> list[DetectedItem]:
    """Attach line indices to detected items and drop those inside the TOC."""
    line_starts = compute_line_starts(text)
    kept: list[DetectedItem] = []
    dropped = 0
    for item in items:
        line_index = line_for_offset(line_starts, item.char_offset)
        if line_index in toc_lines:
            dropped += 1
            continue
        kept.append(dataclasses.replace(item, line_index=line_index))
    if dropped:
        log.info("Filtered %d TOC items, kept %d heading candidates", dropped, len(kept))
        if trace is not None:
            trace.record(STAGE_TOC, "", "toc-items-dropped", count=dropped)
    return kept


def text_without_toc(lines: list[str], toc_lines: frozenset[int]) -> str:
    """The document with its confirmed TOC lines removed."""
    return "\n".join(line for i, line in enumerate(lines) if i not in toc_lines)
