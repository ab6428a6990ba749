"""Tests for docstruct.pipeline (end-to-end parsing)."""
from __future__ import annotations

import re
from pathlib import Path

from docstruct.assembler import CONTENT_ON_HEADER_LINE, UNTITLED, format_label
from docstruct.config_cache import SchemaCache
from docstruct.detector import MatcherRegistry
from docstruct.errors import ExtractionFailure
from docstruct.extraction import ExtractionResult
from docstruct.parsing_types import (
    DEPTH_ARTICLE_OVERRIDE,
    DEPTH_NESTING_CAP,
    PREAMBLE_CITATION,
    TYPE_PREAMBLE,
)
from docstruct.pipeline import (
    infer_schema,
    parse_document,
    parse_for_organization,
    parse_text,
    preview_sections,
)
from docstruct.schema import DEFAULT_SCHEMA, HierarchySchema, get_template
from docstruct.trace import STAGE_ASSEMBLE, STAGE_BIND, STAGE_DETECT, STAGE_TOC


def _two_level_schema() -> HierarchySchema:
    return HierarchySchema.from_levels([
        {"name": "Article", "type": "article", "numbering": "roman", "prefix": "ARTICLE ", "depth": 0},
        {"name": "Section", "type": "section", "numbering": "numeric", "prefix": "Section ", "depth": 1},
    ])


BYLAWS = """BYLAWS OF THE RIVERSIDE GARDEN CLUB
As amended by the members at the annual meeting.

Table of Contents
ARTICLE I\tNAME\t1
ARTICLE II\tPURPOSE\t1
ARTICLE III\tMEMBERSHIP\t2
ARTICLE IV\tMEETINGS\t2
ARTICLE V\tAMENDMENTS\t3

ARTICLE I NAME
Section 1. Name. The name of this organization is the Riverside Garden Club.
ARTICLE II PURPOSE
Section 1. Purpose. The club exists to promote gardening in the community.
Section 2. Activities
The club may hold plant sales, lectures and garden tours.
ARTICLE III MEMBERSHIP
Section 1. Eligibility. Any resident of the county may apply for membership.
ARTICLE IV MEETINGS
Section 1. Annual Meeting. The annual meeting is held each spring.
Section 2. Quorum – Ten members constitute a quorum.
ARTICLE V AMENDMENTS
These bylaws may be amended by a two-thirds vote of members present.
"""


def _visible_chars(text: str) -> int:
    return len(re.sub(r"\s", "", text))


class TestScenarios:
    def test_article_section_citations_and_depths(self) -> None:
        text = "ARTICLE I\nSection 1\nBody one.\nARTICLE II\nSection 1\nBody two."
        result = parse_text(text, _two_level_schema())
        assert result.success
        assert [s.citation for s in result.sections] == [
            "ARTICLE I", "ARTICLE I, Section 1", "ARTICLE II", "ARTICLE II, Section 1",
        ]
        assert [s.depth for s in result.sections] == [0, 1, 0, 1]
        assert [s.body_text for s in result.sections] == ["", "Body one.", "", "Body two."]

    def test_table_of_contents_excluded(self) -> None:
        toc = [f"ARTICLE {n}\tTITLE\t4" for n in ("I", "II", "III", "IV", "V")]
        text = "\n".join(
            ["Table of Contents", *toc, "", "ARTICLE I", "First article body text.",
             "ARTICLE II", "Second article body text."]
        )
        result = parse_text(text, _two_level_schema())
        assert result.toc_lines >= frozenset(range(1, 6))
        assert [s.line_number for s in result.sections] == [7, 9]
        assert all("TITLE" not in s.body_text for s in result.sections)
        assert not any(s.is_orphan for s in result.sections)
        assert "toc-items-dropped" in result.trace.reasons(STAGE_TOC)

    def test_duplicate_citations_merge(self) -> None:
        text = "Section 1\nv1\nSection 1\nv2"
        schema = HierarchySchema.from_levels([
            {"name": "Section", "numbering": "numeric", "prefix": "Section ", "depth": 0},
        ])
        result = parse_text(text, schema)
        assert len(result.sections) == 1
        assert result.sections[0].body_text == "v1\n\nv2"

    def test_indented_articles_stay_at_root(self) -> None:
        text = (
            "            ARTICLE I\nSection 1\nBody one here.\n"
            "            ARTICLE II\nSection 1\nBody two here."
        )
        result = parse_text(text, _two_level_schema())
        assert [s.depth for s in result.sections] == [0, 1, 0, 1]
        assert result.sections[0].indentation == 6
        assert result.sections[2].depth_reason == DEPTH_ARTICLE_OVERRIDE

    def test_shared_paragraph_pattern_keeps_shallowest_level(self) -> None:
        text = "\n".join([
            "Article I Name",
            "Section 1 Purpose",
            "(a) first item text",
            "(b) second item text",
            "Article II Members",
            "Section 1 Eligibility",
            "(a) residents of the county",
            "(b) others by invitation",
        ])
        result = parse_text(text, get_template("standard-bylaws"))
        lettered = [s for s in result.sections if s.raw_number in ("a", "b")]
        assert len(lettered) == 4
        assert all(s.type == "paragraph" for s in lettered)
        assert all(s.depth == 2 for s in lettered)
        assert all(s.depth_reason == DEPTH_NESTING_CAP for s in lettered)
        assert lettered[2].citation == "Article II, Section 1, (a)"
        assert [s.ordinal for s in lettered] == [1, 2, 1, 2]
        assert result.trace.reasons(STAGE_BIND) == []
        assert result.trace.reasons(STAGE_DETECT).count("same-offset-shadowed") == 4

    def test_standard_template_depths_in_range(self) -> None:
        template = get_template("standard-bylaws")
        text = "\n".join([
            "Article I Top",
            "Section 1 Second",
            "1. Third level",
        ])
        result = parse_text(text, template)
        assert result.success
        assert all(0 <= s.depth <= 9 for s in result.sections)


class TestProperties:
    def test_bylaws_document(self) -> None:
        result = parse_text(BYLAWS, _two_level_schema())
        citations = [s.citation for s in result.sections]
        assert citations[0] == PREAMBLE_CITATION
        assert result.sections[0].type == TYPE_PREAMBLE
        assert "ARTICLE IV, Section 2" in citations
        assert len(citations) == len(set(citations))
        assert all(0 <= s.depth <= 9 for s in result.sections)
        depths = [s.depth for s in result.sections]
        assert all(b <= a + 1 for a, b in zip(depths, depths[1:]))
        quorum = result.sections[citations.index("ARTICLE IV, Section 2")]
        assert quorum.title == "Quorum"
        assert quorum.body_text == "Ten members constitute a quorum."
        assert result.validation.valid

    def test_content_preserved(self) -> None:
        # Heading lines count as label + title: citations repeat parent
        # labels and the delimiter after a label is not kept.
        result = parse_text(BYLAWS, _two_level_schema())
        lines = BYLAWS.split("\n")
        source = "".join(l for i, l in enumerate(lines) if i not in result.toc_lines)
        produced = 0
        for s in result.sections:
            produced += _visible_chars(s.body_text)
            if not s.is_orphan:
                produced += _visible_chars(format_label(s.prefix, s.raw_number))
                if s.title not in (UNTITLED, CONTENT_ON_HEADER_LINE):
                    produced += _visible_chars(s.title)
        ratio = produced / _visible_chars(source)
        assert 0.95 <= ratio <= 1.0

    def test_ordinals_consecutive_among_siblings(self) -> None:
        result = parse_text(BYLAWS, _two_level_schema())
        by_parent: dict[tuple[str, ...], list[int]] = {}
        for s in result.sections:
            by_parent.setdefault(tuple(s.parent_path), []).append(s.ordinal)
        for ordinals in by_parent.values():
            assert ordinals == list(range(1, len(ordinals) + 1))

    def test_trace_records_header_splits(self) -> None:
        result = parse_text(BYLAWS, _two_level_schema())
        assert len(result.trace.by_stage(STAGE_ASSEMBLE)) == 11
        assert result.trace.reasons(STAGE_BIND) == []

    def test_crlf_normalized(self) -> None:
        result = parse_text("ARTICLE I\r\nSection 1\r\nBody.", _two_level_schema())
        assert result.sections[1].body_text == "Body."

    def test_no_headings_still_returns_content(self) -> None:
        result = parse_text("Plain prose with no numbered headings at all.", DEFAULT_SCHEMA)
        assert result.success
        assert len(result.sections) == 1
        assert result.sections[0].is_orphan

    def test_override_replaces_schema(self) -> None:
        override = HierarchySchema.from_levels([
            {"name": "Chapter", "numbering": "numeric", "prefix": "Chapter ", "depth": 0},
        ])
        result = parse_text("Chapter 1\nText of chapter one.", _two_level_schema(), override=override)
        assert [s.citation for s in result.sections] == ["Chapter 1"]

    def test_result_to_dict(self) -> None:
        payload = parse_text("ARTICLE I\nSection 1\nBody.", _two_level_schema()).to_dict()
        assert payload["success"] is True
        assert payload["sections"][1]["citation"] == "ARTICLE I, Section 1"
        assert payload["validation"]["valid"] is True


class TestInferenceAndPreview:
    def test_inferred_schema_parses_document(self) -> None:
        text = "Article I\r\nSection 1 Scope\r\n(a) All members.\r\nArticle II\r\nSection 1 Dues"
        suggestion = infer_schema(text)
        assert suggestion.schema is not None
        result = parse_text(text, suggestion.schema)
        assert [s.citation for s in result.sections] == [
            "Article I", "Article I, Section 1", "Article I, Section 1, (a)",
            "Article II", "Article II, Section 1",
        ]
        assert [s.depth for s in result.sections] == [0, 1, 2, 0, 1]

    def test_preview_truncates_and_marks_empty(self) -> None:
        long_body = "word " * 40
        result = parse_text(f"ARTICLE I\nSection 1 Long\n{long_body}\nSection 2 Short\nBrief.",
                            _two_level_schema())
        preview = preview_sections(result.sections, limit=2)
        assert preview["total_sections"] == 3
        assert [p["citation"] for p in preview["preview"]] == ["ARTICLE I", "ARTICLE I, Section 1"]
        assert preview["preview"][0]["text_preview"] == "(Empty)"
        snippet = preview["preview"][1]["text_preview"]
        assert snippet.endswith("...") and len(snippet) == 103
        assert preview["preview"][1] == {
            "citation": "ARTICLE I, Section 1", "title": "Long", "type": "section",
            "depth": 1, "text_preview": snippet,
        }

    def test_preview_keeps_short_body(self) -> None:
        result = parse_text("ARTICLE I\nSection 1 Short\nBrief.", _two_level_schema())
        assert preview_sections(result.sections)["preview"][1]["text_preview"] == "Brief."


class TestParseDocument:
    def test_text_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bylaws.txt"
        path.write_text(BYLAWS, encoding="utf-8")
        result = parse_document(path, _two_level_schema())
        assert result.success
        assert result.metadata is not None
        assert result.metadata.source == "text"
        assert result.metadata.file_name == "bylaws.txt"
        assert result.metadata.section_count == len(result.sections)

    def test_markdown_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bylaws.md"
        path.write_text(
            "# ARTICLE I Name\n\n## Section 1 Name\nThe club is named Riverside.\n",
            encoding="utf-8",
        )
        result = parse_document(path, _two_level_schema())
        assert [s.citation for s in result.sections] == ["ARTICLE I", "ARTICLE I, Section 1"]
        assert result.metadata is not None and result.metadata.source == "markdown"

    def test_html_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bylaws.html"
        path.write_text(
            "<html><body><h1>ARTICLE I Name</h1><p>Section 1. Name</p>"
            "<p>The club is named Riverside.</p></body></html>",
            encoding="utf-8",
        )
        result = parse_document(path, _two_level_schema())
        assert [s.citation for s in result.sections] == ["ARTICLE I", "ARTICLE I, Section 1"]
        assert result.sections[1].body_text == "The club is named Riverside."
        assert result.metadata is not None and result.metadata.source == "html"

    def test_extraction_failure_is_not_raised(self, tmp_path: Path) -> None:
        class FailingExtractor:
            def extract(self, path: Path) -> ExtractionResult:
                raise ExtractionFailure("scanned image, no text layer", source=str(path))

        result = parse_document(tmp_path / "scan.pdf", extractor=FailingExtractor())
        assert result.success is False
        assert result.sections == []
        assert result.error == "scanned image, no text layer"

    def test_missing_file(self, tmp_path: Path) -> None:
        result = parse_document(tmp_path / "missing.txt")
        assert result.success is False
        assert "missing.txt" in (result.error or "")


class TestParseForOrganization:
    def test_uses_cached_schema(self) -> None:
        cache = SchemaCache()
        calls: list[str] = []

        def loader(org_id: str) -> HierarchySchema:
            calls.append(org_id)
            return _two_level_schema()

        for _ in range(2):
            result = parse_for_organization(
                "org-1", "ARTICLE I\nSection 1\nBody.", cache=cache, loader=loader,
            )
            assert [s.depth for s in result.sections] == [0, 1]
        assert calls == ["org-1"]

    def test_caller_registry_compiles_once(self) -> None:
        cache = SchemaCache()
        registry = MatcherRegistry()
        schema = _two_level_schema()
        for org_id in ("org-1", "org-2"):
            parse_for_organization(
                org_id, "ARTICLE I\nSection 1\nBody.",
                cache=cache, loader=lambda _org: schema, registry=registry,
            )
        assert len(registry) == 1
        assert schema.schema_hash in registry
