"""Error taxonomy for the section inference engine.

Only two conditions are raised as exceptions: a schema that cannot be built
(``SchemaError``) and an upstream extraction that produced no text
(``ExtractionFailure``). Everything else is recovered locally and reported
as data, using the issue codes below in trace events and validation
reports.
"""
from __future__ import annotations

# Issue codes (TraceEvent.reason / ValidationIssue.code)
STRUCTURAL_AMBIGUITY = "structural_ambiguity"
SCHEMA_MISMATCH = "schema_mismatch"
CAPACITY_OVERFLOW = "capacity_overflow"
EXTRACTION_FAILURE = "extraction_failure"


class DocstructError(Exception):
    """Base class for errors raised by docstruct."""


class SchemaError(DocstructError, ValueError):
    """Raised when a hierarchy schema is malformed."""


class ExtractionFailure(DocstructError):
    """Raised by an extractor when no text could be obtained from a source."""

    def __init__(self, message: str, *, source: str = "") -> None:
        super().__init__(message)
        self.source = source
