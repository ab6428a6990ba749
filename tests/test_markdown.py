"""Tests for docstruct.markdown."""
from __future__ import annotations

from docstruct.markdown import markdown_features, markdown_warnings, preprocess_markdown
from docstruct.parsing_types import Section
from docstruct.schema import DEFAULT_SCHEMA


class TestPreprocess:
    def test_prefixed_headers_unwrapped(self) -> None:
        text = "# Article I Name\n## Section 1 Purpose\n## Overview"
        out = preprocess_markdown(text, DEFAULT_SCHEMA).split("\n")
        assert out == ["Article I Name", "Section 1 Purpose", "## Overview"]

    def test_bullets_numbered_per_depth(self) -> None:
        text = "- first\n- second\n  - nested a\n  - nested b\n- third"
        out = preprocess_markdown(text, DEFAULT_SCHEMA).split("\n")
        assert out == ["1. first", "2. second", "  1. nested a", "  2. nested b", "3. third"]

    def test_numbering_restarts_after_list(self) -> None:
        text = "* one\n* two\n\nparagraph\n\n+ again"
        out = preprocess_markdown(text, DEFAULT_SCHEMA).split("\n")
        assert out[0] == "1. one"
        assert out[1] == "2. two"
        assert out[-1] == "1. again"

    def test_ordered_markers_kept(self) -> None:
        text = "1. one\n(a) alpha\nb. beta"
        assert preprocess_markdown(text, DEFAULT_SCHEMA) == text

    def test_code_fence_verbatim(self) -> None:
        text = "```\n# Article I inside code\n- bullet\n```\n- real bullet"
        out = preprocess_markdown(text, DEFAULT_SCHEMA).split("\n")
        assert out[1] == "# Article I inside code"
        assert out[2] == "- bullet"
        assert out[4] == "1. real bullet"


class TestFeaturesAndWarnings:
    def test_feature_counts(self) -> None:
        text = "# Title\n- item\n[link](http://example.org)\n```\ncode\n```"
        features = markdown_features(text)
        assert features.to_dict() == {"headers": 1, "lists": 1, "links": 1, "code_blocks": 1}

    def test_uncaptured_header_warning(self) -> None:
        section = Section(
            type="section", title="Purpose", citation="Section 1", raw_number="1",
            prefix="Section ", line_number=0,
        )
        warnings = markdown_warnings([section], "## Section 1 Purpose\n## Appendix")
        assert [w["type"] for w in warnings] == ["uncaptured_header"]
        assert warnings[0]["line"] == 2

    def test_deep_nesting_warning(self) -> None:
        text = " " * 22 + "- very deep"
        warnings = markdown_warnings([], text)
        assert warnings[-1]["type"] == "deep_nesting"
        assert warnings[-1]["max_depth"] == 11
