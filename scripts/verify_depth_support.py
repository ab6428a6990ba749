#!/usr/bin/env python3
"""Verify that the parser supports ten hierarchy levels end to end.

Checks:
  templates      every bundled template defines 10 valid levels
  validator      depths 0..9 pass validation, depth 11 is rejected
  codec          numbering round trip (roman 1..3999, alpha 1..702)
  hard_limits    no hard-coded depth comparison below 9 in the package
  synthetic      a synthetic 10-level document resolves to depths 0..9

The numbering schemes each template uses are reported under "info"; they
are not a pass/fail check.

Usage:
    python3 scripts/verify_depth_support.py
    python3 scripts/verify_depth_support.py --src src/docstruct

Structured JSON output goes to stdout; exit status 1 if any check fails.
"""
from __future__ import annotations

import argparse
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import orjson

from docstruct import numbering
from docstruct.parsing_types import Section
from docstruct.pipeline import parse_text
from docstruct.schema import MAX_DEPTH, MAX_LEVELS, TEMPLATES, HierarchySchema, validate_schema_dict
from docstruct.validator import validate_sections

DEFAULT_SRC = Path(__file__).resolve().parent.parent / "src" / "docstruct"

SYNTHETIC_LEVELS: tuple[str, ...] = (
    "Article", "Section", "Subsection", "Paragraph", "Subparagraph",
    "Clause", "Subclause", "Item", "Subitem", "Point",
)

_SUSPICIOUS_LIMITS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bdepth\s*(?:<|<=|>|>=|==|!=)\s*[1-8]\b"),
    re.compile(r"\bmax_depth\s*=\s*[1-8]\b"),
)


@dataclass(slots=True)
class CheckResult:
    name: str
    passed: bool
    details: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "passed": self.passed, "details": list(self.details)}


def dump_json(obj: Any) -> None:
    sys.stdout.buffer.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def check_templates() -> CheckResult:
    details: list[str] = []
    for name, schema in sorted(TEMPLATES.items()):
        problems = validate_schema_dict(schema.to_dict())
        depths = [lv.depth for lv in schema.levels]
        if len(schema.levels) != MAX_LEVELS or schema.max_depth != MAX_LEVELS:
            problems.append(f"{len(schema.levels)} levels, maxDepth {schema.max_depth}")
        if depths != list(range(MAX_LEVELS)):
            problems.append(f"depths {depths}")
        details.extend(f"{name}: {p}" for p in problems)
    return CheckResult("templates", not details, details)


def _level_sections(schema: HierarchySchema) -> list[Section]:
    return [
        Section(
            type=lv.type, level_name=lv.name, title=lv.name,
            citation=f"{lv.name} 1 @ {lv.depth}",
            raw_number=numbering.encode(1, lv.numbering), prefix=lv.prefix,
            line_number=lv.depth, body_text=f"{lv.name} body", depth=lv.depth,
        )
        for lv in schema.levels
    ]


def check_validator() -> CheckResult:
    schema = TEMPLATES["standard-bylaws"]
    details: list[str] = []
    accepted = validate_sections(_level_sections(schema), schema)
    if not accepted.valid:
        details.extend(f"rejected valid depth: {e.section}: {e.message}" for e in accepted.errors)
    too_deep = Section(
        type="invalid", title="Invalid", citation="Invalid", raw_number="1",
        prefix="", line_number=0, body_text="x", depth=MAX_DEPTH + 2,
    )
    if validate_sections([too_deep], schema).valid:
        details.append(f"accepted depth {MAX_DEPTH + 2}")
    return CheckResult("validator", not details, details)


def scheme_summary() -> dict[str, list[str]]:
    """Numbering schemes used by each bundled template."""
    return {
        name: sorted({lv.numbering for lv in schema.levels})
        for name, schema in sorted(TEMPLATES.items())
    }


def check_codec() -> CheckResult:
    details: list[str] = []
    ranges = {
        numbering.SCHEME_ROMAN: range(1, numbering.ROMAN_MAX + 1),
        numbering.SCHEME_ROMAN_LOWER: range(1, numbering.ROMAN_MAX + 1),
        numbering.SCHEME_NUMERIC: range(1, 1000),
        numbering.SCHEME_ALPHA: range(1, 703),
        numbering.SCHEME_ALPHA_LOWER: range(1, 703),
    }
    for scheme, ranks in ranges.items():
        bad = [n for n in ranks if numbering.decode(numbering.encode(n, scheme), scheme) != n]
        if bad:
            details.append(f"{scheme}: {len(bad)} ranks fail, first {bad[0]}")
    return CheckResult("codec", not details, details)


def check_hard_limits(src: Path) -> CheckResult:
    details: list[str] = []
    for path in sorted(src.glob("*.py")):
        for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
            for pattern in _SUSPICIOUS_LIMITS:
                m = pattern.search(line)
                if m:
                    details.append(f"{path.name}:{lineno}: {m.group(0)}")
    return CheckResult("hard_limits", not details, details)


def synthetic_schema() -> HierarchySchema:
    return HierarchySchema.from_levels([
        {"name": name, "numbering": numbering.SCHEME_NUMERIC, "prefix": f"{name} ", "depth": depth}
        for depth, name in enumerate(SYNTHETIC_LEVELS)
    ])


def synthetic_document() -> str:
    lines: list[str] = []
    for name in SYNTHETIC_LEVELS:
        lines.append(f"{name} 1 {name} heading")
        lines.append(f"Body text of the {name.lower()}.")
    return "\n".join(lines)


def check_synthetic() -> CheckResult:
    result = parse_text(synthetic_document(), synthetic_schema())
    depths = [s.depth for s in result.sections]
    details: list[str] = []
    if depths != list(range(MAX_LEVELS)):
        details.append(f"depths {depths}")
    if result.clamped_count:
        details.append(f"{result.clamped_count} sections clamped")
    details.extend(f"{e.section}: {e.message}" for e in result.validation.errors)
    return CheckResult("synthetic", not details, details)


def run_checks(src: Path = DEFAULT_SRC) -> list[CheckResult]:
    return [
        check_templates(),
        check_validator(),
        check_codec(),
        check_hard_limits(src),
        check_synthetic(),
    ]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Verify 10-level hierarchy support.")
    parser.add_argument("--src", type=Path, default=DEFAULT_SRC, help="Package source to scan")
    args = parser.parse_args(argv)

    results = run_checks(args.src)
    passed = all(r.passed for r in results)
    dump_json({
        "passed": passed,
        "checks": [r.to_dict() for r in results],
        "info": {"schemes": scheme_summary()},
    })
    for r in results:
        print(f"{'PASS' if r.passed else 'FAIL'}  {r.name}", file=sys.stderr)
    return 0 if passed else 1


if __name__ == "__main__":
    sys.exit(main())
