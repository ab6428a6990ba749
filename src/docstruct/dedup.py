"""Merge sections that share a citation.

Repeated citations come from running headers, restated headings and the
odd TOC line that slipped past detection. The first occurrence keeps its
place; later occurrences contribute their body text:

- both bodies non-empty and different: joined with a blank line;
- first body empty: replaced by the later one;
- same text (or later one empty): dropped.
"""
from __future__ import annotations

import logging

from docstruct.parsing_types import Section
from docstruct.trace import STAGE_DEDUP, TraceLog

log = logging.getLogger(__name__)

MERGE_SEPARATOR = "\n\n"


def deduplicate_sections(
    sections: list[Section],
    *,
    trace: TraceLog | None = None,
) -> list[Section]:
    """Collapse repeated citations, preserving first-seen order."""
    by_citation: dict[str, Section] = {}
    result: list[Section] = []
    for section in sections:
        first = by_citation.get(section.citation)
        if first is None:
            by_citation[section.citation] = section
            result.append(section)
            continue

        new_text = section.body_text
        if not new_text or new_text == first.body_text:
            reason = "dropped-identical"
        elif not first.body_text:
            first.body_text = new_text
            reason = "replaced-empty"
        else:
            first.body_text = f"{first.body_text}{MERGE_SEPARATOR}{new_text}"
            reason = "merged"
        if trace is not None:
            trace.record(STAGE_DEDUP, section.citation, reason,
                         line=section.line_number, kept_line=first.line_number)

    if len(result) != len(sections):
        log.info("Deduplicated %d sections into %d", len(sections), len(result))
    return result
