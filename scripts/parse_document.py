#!/usr/bin/env python3
"""Parse a bylaws/charter document into hierarchical sections.

Reads a .txt, .md or .html file, infers its section hierarchy and writes the
result as JSON (stdout or --out). Optionally stores the sections in a DuckDB
section store and verifies the stored hierarchy.

Usage:
    # Parse with the default Article/Section schema
    python3 scripts/parse_document.py bylaws.txt

    # Use a bundled template, write JSON and the trace
    python3 scripts/parse_document.py bylaws.md --template standard-bylaws \
      --out parsed.json --trace

    # Custom schema file, store into DuckDB
    python3 scripts/parse_document.py charter.html --schema schema.json \
      --db sections.duckdb --doc-id charter-2024

    # No schema at hand: infer one, show a preview and the outline
    python3 scripts/parse_document.py rules.txt --infer --preview 5 --outline

Structured JSON output goes to stdout; log messages go to stderr.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

import orjson

from docstruct.depth import depth_distribution
from docstruct.errors import ExtractionFailure, SchemaError
from docstruct.extraction import extractor_for
from docstruct.io_utils import load_json, save_json
from docstruct.pipeline import infer_schema, parse_document, preview_sections
from docstruct.schema import TEMPLATES, HierarchySchema, get_template
from docstruct.storage import SectionStore
from docstruct.tree import outline

log = logging.getLogger("parse_document")


def dump_json(obj: Any) -> None:
    sys.stdout.buffer.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Infer the section hierarchy of a bylaws/charter document."
    )
    parser.add_argument("path", type=Path, help="Document (.txt, .md, .html)")
    schema_group = parser.add_mutually_exclusive_group()
    schema_group.add_argument(
        "--template", choices=sorted(TEMPLATES), default=None,
        help="Bundled hierarchy template",
    )
    schema_group.add_argument(
        "--schema", type=Path, default=None,
        help='Schema JSON file ({"levels": [...], "maxDepth": 10})',
    )
    schema_group.add_argument(
        "--infer", action="store_true",
        help="Infer a schema from built-in Article/Chapter/Section/(a)/(1) patterns",
    )
    parser.add_argument("--out", type=Path, default=None, help="Write JSON here instead of stdout")
    parser.add_argument("--trace", action="store_true", help="Include trace events in the output")
    parser.add_argument(
        "--preview", type=int, default=None, metavar="N",
        help="Include a preview of the first N sections",
    )
    parser.add_argument("--outline", action="store_true", help="Include an indented section outline")
    parser.add_argument("--db", type=Path, default=None, help="Store sections in this DuckDB file")
    parser.add_argument("--doc-id", default=None, help="Document id for --db (default: file stem)")
    parser.add_argument("--org-id", default="", help="Organization id for --db")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def load_schema(args: argparse.Namespace) -> HierarchySchema | None:
    if args.template:
        return get_template(args.template)
    if args.schema:
        return HierarchySchema.from_dict(load_json(args.schema))
    return None


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    if not args.path.exists():
        print(f"Error: file not found: {args.path}", file=sys.stderr)
        return 1
    try:
        schema = load_schema(args)
    except (SchemaError, OSError, orjson.JSONDecodeError) as exc:
        print(f"Error: invalid schema: {exc}", file=sys.stderr)
        return 1

    suggestion = None
    if args.infer:
        try:
            extracted = extractor_for(args.path).extract(args.path)
        except ExtractionFailure as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        suggestion = infer_schema(extracted.plain_text)
        schema = suggestion.schema
        if schema is None:
            log.warning("No known heading patterns in %s; using the default schema", args.path)

    result = parse_document(args.path, schema)
    payload = result.to_dict()
    payload["depth_distribution"] = {
        str(depth): count for depth, count in depth_distribution(result.sections).items()
    }
    if suggestion is not None:
        payload["suggested_schema"] = suggestion.to_dict()
    if args.preview is not None:
        payload["preview"] = preview_sections(result.sections, args.preview)
    if args.outline:
        payload["outline"] = outline(result.sections)
    if args.trace:
        payload["trace"] = result.trace.to_dicts()

    if result.success and args.db is not None:
        doc_id = args.doc_id or args.path.stem
        with SectionStore(args.db) as store:
            store.store_sections(
                doc_id, result.sections,
                organization_id=args.org_id, metadata=result.metadata,
            )
            problems = store.verify_hierarchy(doc_id)
        payload["storage"] = {"document_id": doc_id, "problems": problems}

    if args.out is not None:
        save_json(payload, args.out)
        log.info("Wrote %d sections to %s", len(result.sections), args.out)
    else:
        dump_json(payload)

    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
