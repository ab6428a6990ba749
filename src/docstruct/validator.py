"""Post-parse checks on a resolved section list.

Runs every check over every section and reports findings; it never raises,
never mutates and never stops at the first problem.

Errors:   depth outside 0..9, duplicate citation, ordinal that does not fit
          the level's numbering scheme.
Warnings: empty body on a non-container section, depth jump of more than
          one level.
"""
from __future__ import annotations

from docstruct.errors import SCHEMA_MISMATCH
from docstruct.numbering import matches_format
from docstruct.parsing_types import (
    TYPE_ARTICLE,
    Section,
    ValidationIssue,
    ValidationReport,
)
from docstruct.schema import MAX_DEPTH, HierarchySchema

CODE_DEPTH_RANGE = "depth_out_of_range"
CODE_EMPTY_BODY = "empty_body"
CODE_DUPLICATE_CITATION = "duplicate_citation"
CODE_DEPTH_JUMP = "depth_jump"


def _is_container(sections: list[Section], index: int) -> bool:
    section = sections[index]
    if section.type == TYPE_ARTICLE:
        return True
    following = sections[index + 1] if index + 1 < len(sections) else None
    return following is not None and following.depth > section.depth


def validate_sections(
    sections: list[Section],
    schema: HierarchySchema,
) -> ValidationReport:
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    seen: set[str] = set()
    previous_depth: int | None = None

    for index, section in enumerate(sections):
        cite = section.citation

        if not 0 <= section.depth <= MAX_DEPTH:
            errors.append(ValidationIssue(
                cite, f"depth {section.depth} outside 0..{MAX_DEPTH}", CODE_DEPTH_RANGE,
            ))

        if not section.body_text.strip() and not _is_container(sections, index):
            warnings.append(ValidationIssue(cite, "section has no body text", CODE_EMPTY_BODY))

        if cite in seen:
            errors.append(ValidationIssue(cite, "duplicate citation", CODE_DUPLICATE_CITATION))
        seen.add(cite)

        level = schema.find_level(section.type)
        if level is not None and section.raw_number and not section.is_orphan:
            if not matches_format(section.raw_number, level.numbering):
                errors.append(ValidationIssue(
                    cite,
                    f"ordinal {section.raw_number!r} does not match "
                    f"{level.numbering} numbering for {level.name}",
                    SCHEMA_MISMATCH,
                ))

        if previous_depth is not None and section.depth > previous_depth + 1:
            warnings.append(ValidationIssue(
                cite,
                f"depth jumps from {previous_depth} to {section.depth}",
                CODE_DEPTH_JUMP,
            ))
        previous_depth = section.depth

    return ValidationReport(errors=tuple(errors), warnings=tuple(warnings))
