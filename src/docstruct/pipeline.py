"""Parse entry points.

``parse_text`` runs the full pipeline on text already in memory::

    detect -> TOC/line reconcile -> assemble -> orphans -> dedup
           -> depth -> validate

``parse_document`` adds the extraction step and the document metadata;
``parse_for_organization`` resolves the schema through a caller-owned
``SchemaCache``.

``infer_schema`` suggests a schema for documents that come without one and
``preview_sections`` summarizes the first few sections of a result.

Nothing here raises for malformed documents. Problems come back as trace
events and validation issues; only a source that yields no text at all
produces ``ParseResult(success=False)``.
"""
from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from docstruct.assembler import assemble_sections, compute_indentation
from docstruct.config_cache import SchemaCache, SchemaLoader
from docstruct.dedup import deduplicate_sections
from docstruct.depth import resolve_depths
from docstruct.detector import (
    MatcherRegistry,
    SchemaSuggestion,
    detect_items,
    infer_items,
    suggest_schema,
)
from docstruct.errors import ExtractionFailure
from docstruct.extraction import (
    SOURCE_HTML,
    SOURCE_MARKDOWN,
    SOURCE_TEXT,
    TextExtractor,
    extractor_for,
    source_kind_for,
)
from docstruct.markdown import markdown_warnings, preprocess_markdown
from docstruct.orphans import capture_orphans
from docstruct.parsing_types import DocumentMetadata, ParseResult, Section
from docstruct.schema import HierarchySchema, resolve_schema
from docstruct.toc import detect_toc, reconcile_items
from docstruct.trace import TraceLog
from docstruct.validator import validate_sections

log = logging.getLogger(__name__)

# Sources where leading whitespace reflects the author's nesting.
_INDENTED_SOURCES = frozenset({SOURCE_TEXT, SOURCE_MARKDOWN})


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def parse_text(
    raw_text: str,
    schema: HierarchySchema | None = None,
    *,
    override: HierarchySchema | None = None,
    source_kind: str = SOURCE_TEXT,
    registry: MatcherRegistry | None = None,
    trace: TraceLog | None = None,
) -> ParseResult:
    """Parse plain (or Markdown) text into an ordered section list.

    Args:
        raw_text: Document text. Line endings are normalized to ``\\n``.
        schema: Organization schema; the two-level default when None.
        override: Per-document schema that fully replaces *schema*.
        source_kind: "text", "markdown" or "html". Markdown is pre-processed;
            indentation hints are only used for text and Markdown.
        registry: Caller-owned matcher cache; matchers are compiled for this
            call only when None.
        trace: Trace sink to record into (a fresh one when None).
    """
    effective = resolve_schema(schema, override)
    trace = trace if trace is not None else TraceLog()
    text = normalize_newlines(raw_text)
    if source_kind == SOURCE_MARKDOWN:
        text = preprocess_markdown(text, effective)
    lines = text.split("\n")

    items = detect_items(text, effective, registry=registry, trace=trace)
    toc_lines = detect_toc(lines, trace=trace)
    items = reconcile_items(items, text, toc_lines, trace=trace)

    use_indentation = source_kind in _INDENTED_SOURCES
    indentation = compute_indentation(lines) if use_indentation else None
    sections = assemble_sections(lines, items, toc_lines, indentation=indentation, trace=trace)
    sections = capture_orphans(lines, sections, toc_lines, trace=trace)
    sections = deduplicate_sections(sections, trace=trace)
    resolution = resolve_depths(
        sections, effective, trace=trace, use_indentation=use_indentation,
    )
    report = validate_sections(resolution.sections, effective)

    warnings: list[str] = []
    if source_kind == SOURCE_MARKDOWN:
        for w in markdown_warnings(resolution.sections, normalize_newlines(raw_text)):
            where = f" (line {w['line']})" if "line" in w else ""
            warnings.append(f"{w['type']}{where}: {w.get('content') or w.get('message', '')}")

    log.info(
        "Parsed %d sections (max depth %d, %d clamped, %d errors, %d warnings)",
        len(resolution.sections), resolution.max_depth, resolution.clamped_count,
        len(report.errors), len(report.warnings),
    )
    return ParseResult(
        success=True,
        sections=resolution.sections,
        validation=report,
        clamped_count=resolution.clamped_count,
        toc_lines=toc_lines,
        trace=trace,
        warnings=warnings,
    )


def _metadata(path: Path, source_kind: str, section_count: int) -> DocumentMetadata:
    return DocumentMetadata(
        source=source_kind,
        file_name=path.name,
        parsed_at=datetime.now(UTC).isoformat(),
        section_count=section_count,
    )


def parse_document(
    path: Path,
    schema: HierarchySchema | None = None,
    *,
    extractor: TextExtractor | None = None,
    override: HierarchySchema | None = None,
    registry: MatcherRegistry | None = None,
) -> ParseResult:
    """Extract text from *path* and parse it.

    An extraction failure yields ``success=False`` with the error message
    and no sections; it is not raised.
    """
    source_kind = source_kind_for(path)
    extractor = extractor or extractor_for(path)
    try:
        extracted = extractor.extract(path)
    except ExtractionFailure as exc:
        log.error("Extraction failed for %s: %s", path, exc)
        return ParseResult(
            success=False,
            error=str(exc),
            metadata=_metadata(path, source_kind, 0),
        )

    # HTML extraction already flattened the markup; parse the text as HTML
    # so indentation is ignored.
    kind = SOURCE_HTML if extracted.html is not None else source_kind
    result = parse_text(
        extracted.plain_text, schema,
        override=override, source_kind=kind, registry=registry,
    )
    result.warnings[:0] = list(extracted.warnings)
    result.metadata = _metadata(path, kind, len(result.sections))
    return result


def parse_for_organization(
    org_id: str,
    raw_text: str,
    *,
    cache: SchemaCache,
    loader: SchemaLoader,
    override: HierarchySchema | None = None,
    source_kind: str = SOURCE_TEXT,
    registry: MatcherRegistry | None = None,
    trace: TraceLog | None = None,
) -> ParseResult:
    """Parse with the organization's schema from *cache* (loaded on miss).

    Pass the same *registry* for every call to compile each schema once.
    """
    schema = cache.get_or_load(org_id, loader)
    return parse_text(
        raw_text, schema,
        override=override, source_kind=source_kind, registry=registry, trace=trace,
    )


def infer_schema(
    raw_text: str,
    *,
    registry: MatcherRegistry | None = None,
) -> SchemaSuggestion:
    """Suggest a schema from the built-in heading patterns found in *raw_text*."""
    return suggest_schema(infer_items(normalize_newlines(raw_text), registry=registry))


_PREVIEW_CHARS = 100


def preview_sections(sections: list[Section], limit: int = 5) -> dict[str, Any]:
    """Citation, title, type, depth and a body snippet of the first *limit* sections."""
    preview = []
    for section in sections[:limit]:
        body = section.body_text
        if not body:
            snippet = "(Empty)"
        elif len(body) > _PREVIEW_CHARS:
            snippet = body[:_PREVIEW_CHARS] + "..."
        else:
            snippet = body
        preview.append({
            "citation": section.citation,
            "title": section.title,
            "type": section.type,
            "depth": section.depth,
            "text_preview": snippet,
        })
    return {"total_sections": len(sections), "preview": preview}
