"""Core types shared by every stage of the section pipeline.

Type overview:
  DetectedItem      - one prefix+ordinal match in the raw text (ephemeral)
  Section           - a titled, numbered block of body text (the output)
  ValidationIssue   - one finding of the validator
  ValidationReport  - all findings for a section list
  DocumentMetadata  - caller-side description of a parsed source
  ParseResult       - everything a parse invocation hands back

Character offsets are global (positions in the full normalized text) and
line numbers are 0-based indices into ``text.split("\\n")``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from docstruct.trace import TraceLog

# ---------------------------------------------------------------------------
# Section types with special handling
# ---------------------------------------------------------------------------

TYPE_ARTICLE = "article"
TYPE_PREAMBLE = "preamble"
TYPE_UNNUMBERED = "unnumbered"

PREAMBLE_CITATION = "Preamble"
UNNUMBERED_PREFIX = "Unnumbered Section "

# ---------------------------------------------------------------------------
# Depth assignment reasons (Section.depth_reason)
# ---------------------------------------------------------------------------

DEPTH_CONFIGURED = "configured"
DEPTH_STACK_FALLBACK = "stack-fallback"
DEPTH_ARTICLE_OVERRIDE = "article-override"
DEPTH_PREAMBLE_OVERRIDE = "preamble-override"
DEPTH_INDENTATION_HINT = "indentation-hint"
DEPTH_NESTING_CAP = "nesting-cap"

DEPTH_REASONS: tuple[str, ...] = (
    DEPTH_CONFIGURED,
    DEPTH_STACK_FALLBACK,
    DEPTH_ARTICLE_OVERRIDE,
    DEPTH_PREAMBLE_OVERRIDE,
    DEPTH_INDENTATION_HINT,
    DEPTH_NESTING_CAP,
)


@dataclass(frozen=True, slots=True)
class DetectedItem:
    """A heading candidate found by the pattern detector."""

    type: str               # level type: "article", "section", ...
    level_name: str         # display name: "Article"
    number: str             # raw ordinal text as matched: "IV", "3", "b"
    prefix: str             # configured prefix: "Article "
    full_match: str         # matched label text: "ARTICLE IV"
    char_offset: int        # global char offset of full_match
    numbering_scheme: str
    schema_depth: int
    line_index: int = -1    # filled in by the line reconciler


@dataclass(slots=True)
class Section:
    """A section of the parsed document.

    ``depth`` holds the schema lookup value until the depth resolver runs;
    ``ordinal`` and ``parent_path`` are only meaningful after that point.
    """

    type: str
    title: str
    citation: str
    raw_number: str
    prefix: str
    line_number: int
    body_text: str = ""
    level_name: str = ""
    depth: int = 0
    ordinal: int = 1
    parent_path: list[str] = field(default_factory=list)
    depth_reason: str = DEPTH_CONFIGURED
    is_orphan: bool = False
    indentation: int | None = None
    depth_candidates: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "level_name": self.level_name,
            "title": self.title,
            "citation": self.citation,
            "raw_number": self.raw_number,
            "prefix": self.prefix,
            "line_number": self.line_number,
            "body_text": self.body_text,
            "depth": self.depth,
            "ordinal": self.ordinal,
            "parent_path": list(self.parent_path),
            "depth_reason": self.depth_reason,
            "is_orphan": self.is_orphan,
            "indentation": self.indentation,
            "depth_candidates": dict(self.depth_candidates),
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """One validator finding, tied to a section citation."""

    section: str
    message: str
    code: str

    def to_dict(self) -> dict[str, str]:
        return {"section": self.section, "message": self.message, "code": self.code}


@dataclass(frozen=True, slots=True)
class ValidationReport:
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


# ---------------------------------------------------------------------------
# Parse output
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DocumentMetadata:
    """Where a parse came from. Assembled by the caller, not the core."""

    source: str             # "text" | "markdown" | "html"
    file_name: str
    parsed_at: str          # ISO-8601 UTC
    section_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "file_name": self.file_name,
            "parsed_at": self.parsed_at,
            "section_count": self.section_count,
        }


@dataclass(slots=True)
class ParseResult:
    success: bool
    sections: list[Section] = field(default_factory=list)
    error: str | None = None
    validation: ValidationReport = field(default_factory=ValidationReport)
    clamped_count: int = 0
    toc_lines: frozenset[int] = frozenset()
    trace: TraceLog = field(default_factory=TraceLog)
    metadata: DocumentMetadata | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "sections": [s.to_dict() for s in self.sections],
            "validation": self.validation.to_dict(),
            "clamped_count": self.clamped_count,
            "toc_lines": sorted(self.toc_lines),
            "warnings": list(self.warnings),
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.metadata is not None:
            payload["metadata"] = self.metadata.to_dict()
        return payload
