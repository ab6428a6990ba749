"""Section tree built from a resolved, ordered section list.

Parent links come from the depth walk: a section's parent is the nearest
preceding section with a smaller depth. Traversal uses an explicit work
stack, never recursion, and refuses to go deeper than MAX_LEVELS.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from docstruct.parsing_types import Section
from docstruct.schema import MAX_LEVELS


@dataclass(slots=True)
class SectionNode:
    section: Section
    children: list[SectionNode] = field(default_factory=list)

    @property
    def citation(self) -> str:
        return self.section.citation


def build_tree(sections: list[Section]) -> list[SectionNode]:
    """Root nodes of the forest described by *sections*."""
    roots: list[SectionNode] = []
    open_nodes: list[SectionNode] = []
    for section in sections:
        node = SectionNode(section)
        while open_nodes and open_nodes[-1].section.depth >= section.depth:
            open_nodes.pop()
        if open_nodes:
            open_nodes[-1].children.append(node)
        else:
            roots.append(node)
        open_nodes.append(node)
    return roots


def iter_descendants(
    node: SectionNode,
    *,
    max_levels: int = MAX_LEVELS,
) -> Iterator[tuple[int, SectionNode]]:
    """Pre-order (relative level, node) pairs below *node*, node excluded.

    Raises ValueError if the subtree is deeper than *max_levels*.
    """
    work: list[tuple[int, SectionNode]] = [(1, child) for child in reversed(node.children)]
    while work:
        level, current = work.pop()
        if level > max_levels:
            raise ValueError(
                f"tree under {node.citation!r} is deeper than {max_levels} levels"
            )
        yield level, current
        work.extend((level + 1, child) for child in reversed(current.children))


def walk(roots: list[SectionNode]) -> Iterator[tuple[int, SectionNode]]:
    """Pre-order (tree level, node) pairs over the whole forest."""
    for root in roots:
        yield 0, root
        yield from iter_descendants(root)


def find(roots: list[SectionNode], citation: str) -> SectionNode | None:
    for _, node in walk(roots):
        if node.citation == citation:
            return node
    return None


def outline(sections: list[Section], *, indent: str = "  ") -> list[str]:
    """One indented "citation - title" line per section, in document order."""
    return [
        f"{indent * level}{node.citation} - {node.section.title}"
        for level, node in walk(build_tree(sections))
    ]
