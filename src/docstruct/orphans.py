"""Orphan capture: keep every line of text the assembler did not place.

A line is *claimed* when it belongs to the TOC, is a header line, or its
stripped text already occurs in the body of the section that owns it (the
section with the greatest header line at or before it). The unclaimed,
non-blank lines form blocks; a blank or claimed line ends a block.

Where a block lands depends on its position:

- no sections at all: one unnumbered section holds everything;
- before the first section: the document preamble (blocks merge in order);
- between two sections: appended to the preceding section;
- after the last section: a new "Unnumbered Section <n>".

Blocks shorter than MIN_ORPHAN_CHARS are stray page numbers and the like,
and are dropped.
"""
from __future__ import annotations

import logging
from bisect import bisect_right
from dataclasses import dataclass

from docstruct.parsing_types import (
    PREAMBLE_CITATION,
    TYPE_PREAMBLE,
    TYPE_UNNUMBERED,
    UNNUMBERED_PREFIX,
    Section,
)
from docstruct.trace import STAGE_ORPHAN, TraceLog

log = logging.getLogger(__name__)

MIN_ORPHAN_CHARS = 10

PREAMBLE_TITLE = "Document Preamble"
UNNUMBERED_TITLE = "Additional Content"
DOCUMENT_TITLE = "Document Content"


@dataclass(frozen=True, slots=True)
class OrphanBlock:
    """A run of consecutive unclaimed lines."""

    start_line: int
    end_line: int       # inclusive
    text: str


def _owner_index(header_lines: list[int], line: int) -> int:
    """Index into the sorted header list of the section owning *line*, or -1."""
    return bisect_right(header_lines, line) - 1


def find_orphan_blocks(
    lines: list[str],
    sections: list[Section],
    toc_lines: frozenset[int] = frozenset(),
) -> list[OrphanBlock]:
    """Contiguous runs of non-blank lines no section accounts for."""
    ordered = sorted(sections, key=lambda s: s.line_number)
    header_lines = [s.line_number for s in ordered]
    headers = set(header_lines)

    blocks: list[OrphanBlock] = []
    run: list[int] = []

    def flush() -> None:
        if run:
            text = "\n".join(lines[i].strip() for i in run)
            blocks.append(OrphanBlock(run[0], run[-1], text))
            run.clear()

    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or index in toc_lines or index in headers:
            flush()
            continue
        owner = _owner_index(header_lines, index)
        if owner >= 0 and stripped in ordered[owner].body_text:
            flush()
            continue
        run.append(index)
    flush()
    return blocks


def _preamble(block: OrphanBlock) -> Section:
    return Section(
        type=TYPE_PREAMBLE,
        level_name="Preamble",
        title=PREAMBLE_TITLE,
        citation=PREAMBLE_CITATION,
        raw_number="",
        prefix="",
        line_number=block.start_line,
        body_text=block.text,
        depth=0,
        is_orphan=True,
    )


def _unnumbered(block: OrphanBlock, n: int, title: str) -> Section:
    return Section(
        type=TYPE_UNNUMBERED,
        level_name="Unnumbered",
        title=title,
        citation=f"{UNNUMBERED_PREFIX}{n}",
        raw_number=str(n),
        prefix=UNNUMBERED_PREFIX,
        line_number=block.start_line,
        body_text=block.text,
        depth=0,
        is_orphan=True,
    )


def capture_orphans(
    lines: list[str],
    sections: list[Section],
    toc_lines: frozenset[int] = frozenset(),
    *,
    trace: TraceLog | None = None,
) -> list[Section]:
    """Place every orphan block; returns the section list in document order.

    Existing sections may have text appended to their bodies; synthesized
    sections are flagged ``is_orphan``.
    """
    blocks = find_orphan_blocks(lines, sections, toc_lines)
    if not blocks:
        return list(sections)

    kept: list[OrphanBlock] = []
    for block in blocks:
        if len(block.text) < MIN_ORPHAN_CHARS:
            if trace is not None:
                trace.record(STAGE_ORPHAN, f"line {block.start_line}", "discarded-short",
                             chars=len(block.text))
            continue
        kept.append(block)

    if not sections:
        if not kept:
            return []
        merged = OrphanBlock(
            kept[0].start_line, kept[-1].end_line,
            "\n\n".join(b.text for b in kept),
        )
        log.info("No headings detected; keeping %d text blocks as one section", len(kept))
        if trace is not None:
            trace.record(STAGE_ORPHAN, f"{UNNUMBERED_PREFIX}1", "no-sections",
                         blocks=len(kept))
        return [_unnumbered(merged, 1, DOCUMENT_TITLE)]

    ordered = sorted(sections, key=lambda s: s.line_number)
    header_lines = [s.line_number for s in ordered]
    first_line = header_lines[0]
    last_line = header_lines[-1]

    preamble: Section | None = None
    trailing: list[Section] = []
    for block in kept:
        if block.start_line < first_line:
            if preamble is None:
                preamble = _preamble(block)
            else:
                preamble.body_text = f"{preamble.body_text}\n\n{block.text}"
            if trace is not None:
                trace.record(STAGE_ORPHAN, PREAMBLE_CITATION, "preamble",
                             line=block.start_line)
        elif block.start_line > last_line:
            section = _unnumbered(block, len(trailing) + 1, UNNUMBERED_TITLE)
            trailing.append(section)
            if trace is not None:
                trace.record(STAGE_ORPHAN, section.citation, "unnumbered",
                             line=block.start_line)
        else:
            owner = ordered[_owner_index(header_lines, block.start_line)]
            if block.text in owner.body_text:
                continue
            owner.body_text = (
                f"{owner.body_text}\n\n{block.text}" if owner.body_text else block.text
            )
            if trace is not None:
                trace.record(STAGE_ORPHAN, owner.citation, "appended",
                             line=block.start_line)

    result = list(sections)
    if preamble is not None:
        result.insert(0, preamble)
    result.extend(trailing)
    log.debug("Orphan capture: %d blocks kept, preamble=%s, trailing=%d",
              len(kept), preamble is not None, len(trailing))
    return result
