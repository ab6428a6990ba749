"""Markdown pre-processing ahead of the plain-text pipeline.

Markdown carries its structure in markup the pattern detector does not
read. ``preprocess_markdown`` rewrites it into the shape a plain-text
bylaws document would have:

- ``## Section 2 Quorum`` loses its ``#`` markers when the heading text
  starts with a configured prefix; other headings are left alone;
- fenced code blocks pass through verbatim;
- ``-``/``*``/``+`` bullets become ``1.``, ``2.``, ... counted per
  indentation depth; ordered and lettered list markers are kept.

Leading whitespace survives so the indentation hint still sees nesting.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from docstruct.parsing_types import Section
from docstruct.schema import MAX_DEPTH, HierarchySchema

log = logging.getLogger(__name__)

_FENCE = "```"
_HEADER_RE = re.compile(r"^(#{1,6})\s+(.+)$")
_LIST_RE = re.compile(
    r"^(?P<indent>\s*)(?P<marker>[-*+]|\d+\.|[a-z]\.|[A-Z]\.|\([a-z]\)|\(\d+\))\s+(?P<content>.+)$"
)
_LINK_RE = re.compile(r"\[[^\]]*\]\([^)]*\)")


@dataclass(frozen=True, slots=True)
class MarkdownFeatures:
    headers: int
    lists: int
    links: int
    code_blocks: int

    def to_dict(self) -> dict[str, int]:
        return {
            "headers": self.headers,
            "lists": self.lists,
            "links": self.links,
            "code_blocks": self.code_blocks,
        }


def _prefixes(schema: HierarchySchema) -> list[str]:
    return [p for lv in schema.levels if (p := lv.prefix.strip().lower())]


def preprocess_markdown(text: str, schema: HierarchySchema) -> str:
    """Rewrite Markdown markup into plain heading and list lines."""
    prefixes = _prefixes(schema)
    out: list[str] = []
    in_code = False
    list_depth = 0
    counters: dict[int, int] = {}

    for line in text.split("\n"):
        if line.strip().startswith(_FENCE):
            in_code = not in_code
            out.append(line)
            continue
        if in_code:
            out.append(line)
            continue

        header = _HEADER_RE.match(line)
        if header:
            content = header.group(2).strip()
            if any(content.lower().startswith(p) for p in prefixes):
                out.append(content)
            else:
                out.append(line)
            list_depth = 0
            counters.clear()
            continue

        item = _LIST_RE.match(line)
        if item is None:
            list_depth = 0
            counters.clear()
            out.append(line)
            continue

        indent = item.group("indent")
        depth = len(indent) // 2
        if depth > list_depth:
            counters[depth] = 1
        elif depth < list_depth:
            for deeper in [d for d in counters if d > depth]:
                del counters[deeper]
        list_depth = depth

        if item.group("marker") in ("-", "*", "+"):
            n = counters.get(depth, 1)
            out.append(f"{indent}{n}. {item.group('content')}")
            counters[depth] = n + 1
        else:
            out.append(line)

    log.debug("Pre-processed %d Markdown lines", len(out))
    return "\n".join(out)


def markdown_features(text: str) -> MarkdownFeatures:
    """Counts of Markdown constructs in the raw source."""
    lines = text.split("\n")
    return MarkdownFeatures(
        headers=sum(1 for line in lines if _HEADER_RE.match(line)),
        lists=sum(1 for line in lines if _LIST_RE.match(line)),
        links=len(_LINK_RE.findall(text)),
        code_blocks=sum(1 for line in lines if line.strip().startswith(_FENCE)) // 2,
    )


def markdown_warnings(sections: list[Section], text: str) -> list[dict[str, Any]]:
    """Headings that no section title picked up, and over-deep list nesting."""
    warnings: list[dict[str, Any]] = []
    titles = [s.title.lower() for s in sections if s.title]
    deepest = 0
    for number, line in enumerate(text.split("\n"), start=1):
        header = _HEADER_RE.match(line)
        if header:
            heading = header.group(2).strip().lower()
            if not any(heading[:20] in title or title in heading for title in titles):
                warnings.append({
                    "type": "uncaptured_header",
                    "line": number,
                    "content": header.group(2).strip()[:50],
                })
        item = _LIST_RE.match(line)
        if item:
            deepest = max(deepest, len(item.group("indent")) // 2)
    if deepest > MAX_DEPTH:
        warnings.append({
            "type": "deep_nesting",
            "message": f"list nesting depth {deepest} exceeds {MAX_DEPTH}",
            "max_depth": deepest,
        })
    return warnings
