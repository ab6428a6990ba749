"""Contextual depth resolver.

Assigns the final depth, parent path and sibling ordinal of every section.
The schema's configured depth is the default; the resolver corrects it
with a priority stack built from the document's own sequence of headings:

1. Pop every stack entry whose type priority is not above the current one
   (a Section closes the previous Section, an Article closes everything).
2. Known type: configured depth. Unknown type: current stack height.
3. Articles and the preamble always sit at depth 0.
4. Plain text only: a deeper indentation hint wins (never for articles
   or the preamble).
5. A section never nests more than one level below its parent on the
   stack, nor below the section before it.
6. The citations left on the stack become the parent path.

Depths past MAX_DEPTH are clamped afterwards and counted. Every candidate
value is kept in ``Section.depth_candidates`` so disagreements between the
schema and the layout stay visible.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass

from docstruct.errors import CAPACITY_OVERFLOW
from docstruct.parsing_types import (
    DEPTH_ARTICLE_OVERRIDE,
    DEPTH_CONFIGURED,
    DEPTH_INDENTATION_HINT,
    DEPTH_NESTING_CAP,
    DEPTH_PREAMBLE_OVERRIDE,
    DEPTH_STACK_FALLBACK,
    TYPE_ARTICLE,
    TYPE_PREAMBLE,
    Section,
)
from docstruct.schema import MAX_DEPTH, HierarchySchema
from docstruct.trace import STAGE_CLAMP, STAGE_DEPTH, TraceLog

log = logging.getLogger(__name__)

TYPE_PRIORITY: dict[str, int] = {
    "article": 100,
    "chapter": 100,
    "part": 100,
    "section": 90,
    "subsection": 80,
    "paragraph": 70,
    "subparagraph": 60,
    "clause": 50,
    "subclause": 40,
    "item": 30,
    "subitem": 20,
    "point": 10,
    "subpoint": 5,
    "unnumbered": 0,
    "preamble": 0,
}


def type_priority(section_type: str) -> int:
    """Priority of a section type; unknown types rank lowest (0)."""
    return TYPE_PRIORITY.get(section_type, 0)


@dataclass(frozen=True, slots=True)
class DepthResolution:
    sections: list[Section]
    clamped_count: int
    max_depth: int


@dataclass(frozen=True, slots=True)
class _StackEntry:
    priority: int
    citation: str
    depth: int


def _initial_depth(
    section: Section,
    schema: HierarchySchema,
    stack_height: int,
    candidates: dict[str, int],
) -> tuple[int, str]:
    level = schema.find_level(section.type)
    if level is not None:
        depth, reason = level.depth, DEPTH_CONFIGURED
        candidates["configured"] = depth
    else:
        depth, reason = stack_height, DEPTH_STACK_FALLBACK
        candidates["stack"] = depth
    if section.type == TYPE_ARTICLE:
        depth, reason = 0, DEPTH_ARTICLE_OVERRIDE
    elif section.type == TYPE_PREAMBLE:
        depth, reason = 0, DEPTH_PREAMBLE_OVERRIDE
    return depth, reason


def _nesting_limit(stack: list[_StackEntry], previous: int | None) -> int | None:
    # The first section of a document is never capped.
    limits = [entry.depth + 1 for entry in stack[-1:]]
    if previous is not None:
        limits.append(previous + 1)
    return min(limits) if limits else None


def resolve_depths(
    sections: list[Section],
    schema: HierarchySchema,
    *,
    trace: TraceLog | None = None,
    use_indentation: bool = True,
) -> DepthResolution:
    """Assign depth, depth_reason, parent_path and ordinal in place."""
    stack: list[_StackEntry] = []
    previous: int | None = None

    for section in sections:
        priority = type_priority(section.type)
        while stack and stack[-1].priority <= priority:
            stack.pop()

        candidates: dict[str, int] = {}
        depth, reason = _initial_depth(section, schema, len(stack), candidates)

        overridden = reason in (DEPTH_ARTICLE_OVERRIDE, DEPTH_PREAMBLE_OVERRIDE)
        if use_indentation and section.indentation is not None and not overridden:
            hint = min(section.indentation, MAX_DEPTH)
            candidates["indentation"] = hint
            if hint > depth:
                depth, reason = hint, DEPTH_INDENTATION_HINT

        limit = _nesting_limit(stack, previous)
        if limit is not None and depth > limit:
            candidates["uncapped"] = depth
            if trace is not None:
                trace.record(STAGE_DEPTH, section.citation, "nesting-capped",
                             depth=depth, limit=limit)
            depth, reason = limit, DEPTH_NESTING_CAP

        section.depth = depth
        section.depth_reason = reason
        section.depth_candidates = candidates
        section.parent_path = [entry.citation for entry in stack]
        stack.append(_StackEntry(priority, section.citation, depth))
        previous = depth
        if trace is not None:
            trace.record(STAGE_DEPTH, section.citation, reason, depth=depth)

    clamped = _clamp(sections, MAX_DEPTH, trace)
    assign_ordinals(sections)
    deepest = max((s.depth for s in sections), default=0)
    return DepthResolution(sections=sections, clamped_count=clamped, max_depth=deepest)


def _clamp(sections: list[Section], limit: int, trace: TraceLog | None) -> int:
    clamped = 0
    for section in sections:
        if section.depth > limit:
            section.depth_candidates["unclamped"] = section.depth
            if trace is not None:
                trace.record(STAGE_CLAMP, section.citation, CAPACITY_OVERFLOW,
                             depth=section.depth, limit=limit)
            section.depth = limit
            clamped += 1
    if clamped:
        log.warning("Clamped %d sections deeper than depth %d", clamped, limit)
    return clamped


def assign_ordinals(sections: list[Section]) -> None:
    """1-based ordinals among siblings sharing the same immediate parent.

    The parent of a section is the nearest preceding section with a smaller
    depth (the same walk the storage layer replays).
    """
    parents: list[tuple[int, int]] = []     # (depth, section index)
    counters: Counter[int] = Counter()
    for index, section in enumerate(sections):
        while parents and parents[-1][0] >= section.depth:
            parents.pop()
        parent = parents[-1][1] if parents else -1
        counters[parent] += 1
        section.ordinal = counters[parent]
        parents.append((section.depth, index))


def depth_distribution(sections: list[Section]) -> dict[int, int]:
    """Section count per depth, sorted by depth."""
    counts = Counter(s.depth for s in sections)
    return dict(sorted(counts.items()))
