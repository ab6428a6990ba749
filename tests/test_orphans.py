"""Tests for docstruct.orphans."""
from __future__ import annotations

from docstruct.orphans import (
    DOCUMENT_TITLE,
    PREAMBLE_TITLE,
    UNNUMBERED_TITLE,
    capture_orphans,
    find_orphan_blocks,
)
from docstruct.parsing_types import (
    PREAMBLE_CITATION,
    TYPE_PREAMBLE,
    TYPE_UNNUMBERED,
    Section,
)
from docstruct.trace import STAGE_ORPHAN, TraceLog


def _section(citation: str, line: int, body: str = "") -> Section:
    return Section(
        type="section", title="T", citation=citation, raw_number="1",
        prefix="Section ", line_number=line, body_text=body, depth=1,
    )


class TestFindOrphanBlocks:
    def test_claimed_lines_end_blocks(self) -> None:
        lines = [
            "Bylaws of the Example Society",     # 0 orphan
            "Adopted in the year 2020",          # 1 orphan
            "",                                  # 2
            "Section 1",                         # 3 header
            "Kept body line",                    # 4 in body
            "Stray trailing remark here",        # 5 orphan
        ]
        sections = [_section("Section 1", 3, "Kept body line")]
        blocks = find_orphan_blocks(lines, sections)
        assert [(b.start_line, b.end_line) for b in blocks] == [(0, 1), (5, 5)]
        assert blocks[0].text == "Bylaws of the Example Society\nAdopted in the year 2020"

    def test_toc_lines_are_claimed(self) -> None:
        lines = ["Table of Contents", "Section 1\tName\t2", "Section 1", "body"]
        sections = [_section("Section 1", 2, "body")]
        assert find_orphan_blocks(lines, sections, frozenset({0, 1})) == []


class TestCaptureOrphans:
    def test_preamble_blocks_merge_in_order(self) -> None:
        lines = ["First preamble paragraph", "", "Second preamble paragraph", "Section 1", "body"]
        sections = [_section("Section 1", 3, "body")]
        trace = TraceLog()
        result = capture_orphans(lines, sections, trace=trace)
        preamble = result[0]
        assert preamble.type == TYPE_PREAMBLE
        assert preamble.citation == PREAMBLE_CITATION
        assert preamble.title == PREAMBLE_TITLE
        assert preamble.depth == 0 and preamble.is_orphan
        assert preamble.body_text == "First preamble paragraph\n\nSecond preamble paragraph"
        assert trace.reasons(STAGE_ORPHAN) == ["preamble", "preamble"]
        assert result[1] is sections[0]

    def test_between_sections_appends_to_preceding(self) -> None:
        lines = ["Section 1", "one", "", "an orphaned paragraph", "Section 2", "two"]
        # Section 1 knows only "one"; the paragraph after the blank is unclaimed
        sections = [_section("Section 1", 0, "one"), _section("Section 2", 4, "two")]
        result = capture_orphans(lines, sections)
        assert len(result) == 2
        assert result[0].body_text == "one\n\nan orphaned paragraph"

    def test_after_last_section_becomes_unnumbered(self) -> None:
        lines = ["Section 1", "one", "trailing orphan text", "", "another trailing block"]
        sections = [_section("Section 1", 0, "one")]
        result = capture_orphans(lines, sections)
        assert [s.citation for s in result] == [
            "Section 1", "Unnumbered Section 1", "Unnumbered Section 2",
        ]
        assert result[1].type == TYPE_UNNUMBERED
        assert result[1].title == UNNUMBERED_TITLE
        assert result[2].body_text == "another trailing block"

    def test_no_sections_keeps_everything(self) -> None:
        lines = ["Just some prose without headings.", "", "And a second paragraph."]
        result = capture_orphans(lines, [])
        assert len(result) == 1
        assert result[0].title == DOCUMENT_TITLE
        assert result[0].body_text == "Just some prose without headings.\n\nAnd a second paragraph."

    def test_short_blocks_discarded(self) -> None:
        lines = ["- 3 -", "Section 1", "one"]
        trace = TraceLog()
        result = capture_orphans(lines, [_section("Section 1", 1, "one")], trace=trace)
        assert [s.citation for s in result] == ["Section 1"]
        assert trace.reasons(STAGE_ORPHAN) == ["discarded-short"]
