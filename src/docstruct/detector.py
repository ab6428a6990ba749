"""Pattern detector: find heading labels for every configured level.

Each LevelDefinition compiles to one or more regexes of the shape::

    <escaped prefix><spaces/tabs><ordinal token><boundary>

where the boundary is whitespace, ``.``, ``:`` or end of line (plus ``)``
when the prefix opens a parenthesis). The prefix always matches
case-insensitively ("Article" finds "ARTICLE"); the ordinal token is
case-insensitive for roman/numeric and case-sensitive for the lettered
schemes, so ``alphaLower`` never picks up "Section A".

Levels with an empty prefix use line-start patterns instead (``1. Text``,
``a. Text``, ``(1)``, ``(a)``), which require the label to open the line.

``infer_items`` runs a built-in Article/Chapter/Section/(a)/(1) schema over
documents that arrive without one, and ``suggest_schema`` turns what it
finds into a schema the caller can save and edit.

Compiled matchers are cached per schema hash in a caller-owned
``MatcherRegistry`` so a schema is compiled once however many documents
are parsed with it.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from docstruct.numbering import (
    SCHEME_ALPHA,
    SCHEME_ALPHA_LOWER,
    SCHEME_NUMERIC,
    SCHEME_ROMAN,
    SCHEME_ROMAN_LOWER,
)
from docstruct.parsing_types import DetectedItem
from docstruct.schema import MAX_LEVELS, HierarchySchema, LevelDefinition
from docstruct.trace import STAGE_DETECT, TraceLog

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Ordinal tokens
# ---------------------------------------------------------------------------

# Canonical roman grammar; the lookahead keeps it from matching empty.
_ROMAN_UPPER = (
    r"(?=[IVXLCDM])M{0,3}(?:CM|CD|D?C{0,3})(?:XC|XL|L?X{0,3})(?:IX|IV|V?I{0,3})"
)
_ROMAN_LOWER = _ROMAN_UPPER.lower()

_TOKENS: dict[str, str] = {
    SCHEME_ROMAN: f"(?i:{_ROMAN_UPPER})",
    SCHEME_ROMAN_LOWER: _ROMAN_LOWER,
    SCHEME_NUMERIC: r"\d{1,4}",
    SCHEME_ALPHA: r"[A-Z]{1,3}",
    SCHEME_ALPHA_LOWER: r"[a-z]{1,3}",
}

# Single-character forms for line-start (prefix-less) levels.
_LINE_START_TOKENS: dict[str, str] = {
    SCHEME_ROMAN: f"(?i:{_ROMAN_UPPER})",
    SCHEME_ROMAN_LOWER: _ROMAN_LOWER,
    SCHEME_NUMERIC: r"\d{1,4}",
    SCHEME_ALPHA: r"[A-Z]",
    SCHEME_ALPHA_LOWER: r"[a-z]",
}

_GENERIC_TOKEN = r"\w+"


@dataclass(frozen=True, slots=True)
class CompiledLevel:
    """A level definition with its ready-to-run patterns."""

    level: LevelDefinition
    patterns: tuple[re.Pattern[str], ...]


def _prefixed_patterns(level: LevelDefinition) -> tuple[re.Pattern[str], ...]:
    prefix = level.prefix.rstrip()
    escaped = re.escape(prefix)
    token = _TOKENS.get(level.numbering, _GENERIC_TOKEN)
    closer = r"\)" if prefix.endswith("(") else ""
    # A prefix glued to a preceding word or number is not a heading label:
    # "Subsection 2" must not match "Section ", "2020-21" must not match "-".
    guard = r"(?<![A-Za-z0-9])"
    regex = (
        rf"{guard}(?P<label>(?i:{escaped})[ \t]*(?P<number>{token}))"
        rf"(?=[\s.:{closer}]|$)"
    )
    return (re.compile(regex, re.MULTILINE),)


def _line_start_patterns(level: LevelDefinition) -> tuple[re.Pattern[str], ...]:
    token = _LINE_START_TOKENS.get(level.numbering, _GENERIC_TOKEN)
    period = rf"^[ \t]*(?P<label>(?P<number>{token})\.)(?=[ \t]+\w)"
    paren = rf"^[ \t]*(?P<label>\([ \t]*(?P<number>{token})[ \t]*\))"
    return (
        re.compile(period, re.MULTILINE),
        re.compile(paren, re.MULTILINE),
    )


def compile_level(level: LevelDefinition) -> CompiledLevel:
    """Build the matcher(s) for one level definition."""
    if level.prefix.strip():
        patterns = _prefixed_patterns(level)
    else:
        patterns = _line_start_patterns(level)
    return CompiledLevel(level=level, patterns=patterns)


class MatcherRegistry:
    """Compiled matchers keyed by schema hash.

    Entries are immutable once built; ``clear()`` drops them all (for
    callers that cycle through many throwaway schemas).
    """

    def __init__(self) -> None:
        self._compiled: dict[str, tuple[CompiledLevel, ...]] = {}

    def get(self, schema: HierarchySchema) -> tuple[CompiledLevel, ...]:
        key = schema.schema_hash
        compiled = self._compiled.get(key)
        if compiled is None:
            compiled = tuple(compile_level(lv) for lv in schema.levels)
            self._compiled[key] = compiled
            log.debug("Compiled %d level matchers for schema %s", len(compiled), key)
        return compiled

    def clear(self) -> None:
        self._compiled.clear()

    def __contains__(self, schema_hash: object) -> bool:
        return schema_hash in self._compiled

    def __len__(self) -> int:
        return len(self._compiled)


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------


def detect_level(compiled: CompiledLevel, text: str) -> list[DetectedItem]:
    """All matches of one level in *text*, in offset order."""
    level = compiled.level
    items: list[DetectedItem] = []
    for pattern in compiled.patterns:
        for m in pattern.finditer(text):
            items.append(DetectedItem(
                type=level.type,
                level_name=level.name,
                number=m.group("number"),
                prefix=level.prefix,
                full_match=m.group("label"),
                char_offset=m.start("label"),
                numbering_scheme=level.numbering,
                schema_depth=level.depth,
            ))
    items.sort(key=lambda it: it.char_offset)
    return items


def detect_items(
    text: str,
    schema: HierarchySchema,
    *,
    registry: MatcherRegistry | None = None,
    trace: TraceLog | None = None,
) -> list[DetectedItem]:
    """Scan *text* for every level and merge the matches by offset.

    Levels sharing a pattern match the same label; only the shallowest
    level keeps an offset.
    A level without matches is normal: levels are optional per document.
    """
    if not text:
        return []
    # Without a caller-owned registry the schema is compiled for this call only.
    compiled_levels = (registry if registry is not None else MatcherRegistry()).get(schema)
    detected: list[DetectedItem] = []
    for compiled in compiled_levels:
        found = detect_level(compiled, text)
        if trace is not None:
            trace.record(STAGE_DETECT, compiled.level.name, "matched", count=len(found))
        detected.extend(found)
    detected.sort(key=lambda it: (it.char_offset, it.schema_depth))
    detected = _collapse_shared_offsets(detected, trace)
    log.debug("Detected %d heading candidates across %d levels",
              len(detected), len(compiled_levels))
    return detected


def _collapse_shared_offsets(
    items: list[DetectedItem], trace: TraceLog | None,
) -> list[DetectedItem]:
    # items are sorted by (offset, schema depth)
    kept: list[DetectedItem] = []
    for item in items:
        if kept and kept[-1].char_offset == item.char_offset:
            if trace is not None:
                trace.record(STAGE_DETECT, item.level_name, "same-offset-shadowed",
                             char_offset=item.char_offset, kept=kept[-1].level_name)
            continue
        kept.append(item)
    return kept


# ---------------------------------------------------------------------------
# Schema-less inference
# ---------------------------------------------------------------------------

# Built-in patterns for documents that arrive without a schema.
INFERENCE_SCHEMA = HierarchySchema(levels=(
    LevelDefinition("Article", "article", SCHEME_ROMAN, "Article ", 0),
    LevelDefinition("Chapter", "chapter", SCHEME_NUMERIC, "Chapter ", 0),
    LevelDefinition("Section", "section", SCHEME_NUMERIC, "Section ", 1),
    LevelDefinition("Subsection", "subsection", SCHEME_ALPHA_LOWER, "(", 2),
    LevelDefinition("Paragraph", "paragraph", SCHEME_NUMERIC, "(", 3),
))

_MAX_EXAMPLES = 3


def infer_items(
    text: str,
    *,
    registry: MatcherRegistry | None = None,
    trace: TraceLog | None = None,
) -> list[DetectedItem]:
    """Detect headings with the built-in Article/Chapter/Section/(a)/(1) patterns."""
    return detect_items(text, INFERENCE_SCHEMA, registry=registry, trace=trace)


@dataclass(frozen=True, slots=True)
class SchemaSuggestion:
    """A schema built from the labels found in one document."""

    schema: HierarchySchema | None      # None when nothing was detected
    examples: dict[str, list[str]]      # level type -> first few ordinals
    detected_count: int

    def to_dict(self) -> dict[str, Any]:
        levels = [] if self.schema is None else [
            {**lv.to_dict(), "examples": self.examples.get(lv.type, [])}
            for lv in self.schema.levels
        ]
        return {
            "levels": levels,
            "maxDepth": MAX_LEVELS,
            "detectedPatterns": self.detected_count,
        }


def suggest_schema(items: list[DetectedItem]) -> SchemaSuggestion:
    """Turn detected items into a schema with contiguous depths.

    One level per item type, in order of first appearance. Depths are the
    dense rank of the detected items' own depths, so levels that were peers
    (Article and Chapter) stay peers and unused depths close up.
    """
    firsts: dict[str, DetectedItem] = {}
    examples: dict[str, list[str]] = {}
    for item in items:
        firsts.setdefault(item.type, item)
        seen = examples.setdefault(item.type, [])
        if len(seen) < _MAX_EXAMPLES:
            seen.append(item.number)
    if not firsts:
        return SchemaSuggestion(schema=None, examples={}, detected_count=0)

    rank = {d: i for i, d in enumerate(sorted({it.schema_depth for it in firsts.values()}))}
    levels = tuple(
        LevelDefinition(it.level_name, it.type, it.numbering_scheme, it.prefix, rank[it.schema_depth])
        for it in firsts.values()
    )
    log.info("Suggested a %d-level schema from %d detected labels", len(levels), len(items))
    return SchemaSuggestion(
        schema=HierarchySchema(levels=levels),
        examples=examples,
        detected_count=len(items),
    )
