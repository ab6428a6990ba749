"""Tests for the command-line scripts."""
from __future__ import annotations

from pathlib import Path

import orjson
import pytest

from docstruct.io_utils import load_json
from docstruct.storage import SectionStore
from scripts.parse_document import build_parser, main as parse_main
from scripts.verify_depth_support import (
    check_hard_limits,
    run_checks,
    scheme_summary,
    synthetic_document,
    main as verify_main,
)

DOCUMENT = """ARTICLE I NAME
Section 1. Name. The name of this organization is the Riverside Garden Club.
ARTICLE II PURPOSE
Section 1. Purpose. The club exists to promote gardening in the community.
Section 2. Activities. The club may hold plant sales and garden tours.
"""

RULES = """Section 1 Purpose
(a) Members pay annual dues.
(b) Officers serve one year.
Section 2 Meetings
Meetings are held monthly.
"""


# ── parse_document ───────────────────────────────────────────────────


class TestParseDocumentScript:
    def test_parser_rejects_template_and_schema(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["x.txt", "--template", "standard-bylaws", "--schema", "s.json"])

    def test_writes_json(self, tmp_path: Path) -> None:
        doc = tmp_path / "bylaws.txt"
        doc.write_text(DOCUMENT, encoding="utf-8")
        out = tmp_path / "parsed.json"
        assert parse_main([str(doc), "--out", str(out), "--trace"]) == 0
        payload = load_json(out)
        assert payload["success"] is True
        assert [s["citation"] for s in payload["sections"]] == [
            "Article I", "Article I, Section 1", "Article II",
            "Article II, Section 1", "Article II, Section 2",
        ]
        assert payload["depth_distribution"] == {"0": 2, "1": 3}
        assert isinstance(payload["trace"], list)

    def test_schema_file(self, tmp_path: Path) -> None:
        doc = tmp_path / "rules.txt"
        doc.write_text("Rule 1\nFirst rule text.\nRule 2\nSecond rule text.\n", encoding="utf-8")
        schema = tmp_path / "schema.json"
        schema.write_bytes(orjson.dumps({"levels": [
            {"name": "Rule", "numbering": "numeric", "prefix": "Rule ", "depth": 0},
        ]}))
        out = tmp_path / "parsed.json"
        assert parse_main([str(doc), "--schema", str(schema), "--out", str(out)]) == 0
        assert [s["citation"] for s in load_json(out)["sections"]] == ["Rule 1", "Rule 2"]

    def test_invalid_schema_file(self, tmp_path: Path) -> None:
        doc = tmp_path / "rules.txt"
        doc.write_text("Rule 1\nText.\n", encoding="utf-8")
        schema = tmp_path / "schema.json"
        schema.write_bytes(b"{not json")
        assert parse_main([str(doc), "--schema", str(schema)]) == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        assert parse_main([str(tmp_path / "absent.txt")]) == 1

    def test_infer_preview_and_outline(self, tmp_path: Path) -> None:
        doc = tmp_path / "rules.txt"
        doc.write_text(RULES, encoding="utf-8")
        out = tmp_path / "parsed.json"
        args = [str(doc), "--infer", "--preview", "2", "--outline", "--out", str(out)]
        assert parse_main(args) == 0
        payload = load_json(out)
        suggested = payload["suggested_schema"]
        assert [(lv["name"], lv["depth"]) for lv in suggested["levels"]] == [
            ("Section", 0), ("Subsection", 1),
        ]
        assert suggested["levels"][1]["examples"] == ["a", "b"]
        assert [s["citation"] for s in payload["sections"]] == [
            "Section 1", "Section 1, (a)", "Section 1, (b)", "Section 2",
        ]
        assert payload["preview"]["total_sections"] == 4
        assert len(payload["preview"]["preview"]) == 2
        assert payload["preview"]["preview"][0]["text_preview"] == "(Empty)"
        assert payload["outline"][0] == "Section 1 - Purpose"
        assert payload["outline"][1].startswith("  Section 1, (a) - ")
        assert payload["outline"][3] == "Section 2 - Meetings"

    def test_infer_conflicts_with_template(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["x.txt", "--infer", "--template", "standard-bylaws"])

    def test_infer_without_known_patterns_uses_default(self, tmp_path: Path) -> None:
        doc = tmp_path / "prose.txt"
        doc.write_text("Just a paragraph of prose.\n", encoding="utf-8")
        out = tmp_path / "parsed.json"
        assert parse_main([str(doc), "--infer", "--out", str(out)]) == 0
        payload = load_json(out)
        assert payload["suggested_schema"]["levels"] == []
        assert payload["suggested_schema"]["detectedPatterns"] == 0
        assert len(payload["sections"]) == 1

    def test_stores_sections(self, tmp_path: Path) -> None:
        doc = tmp_path / "bylaws.txt"
        doc.write_text(DOCUMENT, encoding="utf-8")
        db = tmp_path / "sections.duckdb"
        out = tmp_path / "parsed.json"
        args = [str(doc), "--db", str(db), "--doc-id", "club", "--org-id", "org-7", "--out", str(out)]
        assert parse_main(args) == 0
        assert load_json(out)["storage"] == {"document_id": "club", "problems": []}
        with SectionStore(db) as store:
            assert store.section_count("club") == 5


# ── verify_depth_support ─────────────────────────────────────────────


class TestVerifyDepthSupport:
    def test_all_checks_pass(self) -> None:
        results = run_checks()
        assert [r.name for r in results if not r.passed] == []

    def test_main_exit_code(self) -> None:
        assert verify_main([]) == 0

    def test_hard_limit_scan_flags_shallow_cap(self, tmp_path: Path) -> None:
        (tmp_path / "shallow.py").write_text("if depth > 5:\n    pass\n", encoding="utf-8")
        result = check_hard_limits(tmp_path)
        assert not result.passed
        assert result.details == ["shallow.py:1: depth > 5"]

    def test_synthetic_document_has_ten_headings(self) -> None:
        assert len(synthetic_document().split("\n")) == 20

    def test_schemes_reported_as_info(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert "schemes" not in [r.name for r in run_checks()]
        assert verify_main([]) == 0
        payload = orjson.loads(capsys.readouterr().out)
        assert payload["info"]["schemes"] == scheme_summary()
        assert payload["info"]["schemes"]["technical-standard"] == ["numeric"]
