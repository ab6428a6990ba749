"""Hierarchy schema: ordered level definitions for one organization.

A schema is an input value. It names each level ("Article", "Section", ...),
its numbering scheme, the prefix printed before the ordinal and its depth
(0 = top). Depths are contiguous from 0; at most ten levels (depth 0..9).

Schemas arrive as JSON-style dicts::

    {"levels": [{"name": "Article", "type": "article", "numbering": "roman",
                 "prefix": "Article ", "depth": 0}, ...],
     "maxDepth": 10}

``type`` may be omitted, in which case it defaults to ``name.lower()``
(the bundled templates only carry names).
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any

import orjson

from docstruct.errors import SchemaError
from docstruct.numbering import (
    SCHEME_ALPHA,
    SCHEME_ALPHA_LOWER,
    SCHEME_NUMERIC,
    SCHEME_ROMAN,
    SUPPORTED_SCHEMES,
)

MAX_DEPTH = 9
MAX_LEVELS = MAX_DEPTH + 1


@dataclass(frozen=True, slots=True)
class LevelDefinition:
    """One level of the hierarchy."""

    name: str
    type: str
    numbering: str
    prefix: str
    depth: int

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> LevelDefinition:
        name = str(raw.get("name", "")).strip()
        level_type = str(raw.get("type") or name).strip().lower()
        return cls(
            name=name,
            type=level_type,
            numbering=str(raw.get("numbering", SCHEME_NUMERIC)),
            prefix=str(raw.get("prefix") or ""),
            depth=int(raw.get("depth", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "numbering": self.numbering,
            "prefix": self.prefix,
            "depth": self.depth,
        }


# Returned by HierarchySchema.level_for() for types the schema does not know.
FALLBACK_LEVEL = LevelDefinition(
    name="Unknown", type="", numbering=SCHEME_NUMERIC, prefix="", depth=0,
)


@dataclass(frozen=True, slots=True)
class HierarchySchema:
    """Ordered, immutable set of level definitions."""

    levels: tuple[LevelDefinition, ...]
    max_depth: int = MAX_LEVELS
    _by_type: dict[str, LevelDefinition] = field(
        default_factory=dict, init=False, repr=False, compare=False,
    )

    def __post_init__(self) -> None:
        by_type: dict[str, LevelDefinition] = {}
        for level in self.levels:
            by_type.setdefault(level.type, level)
        object.__setattr__(self, "_by_type", by_type)

    # -- construction -------------------------------------------------------

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> HierarchySchema:
        """Build a schema from its JSON form. Raises SchemaError if malformed."""
        problems = validate_schema_dict(raw)
        if problems:
            raise SchemaError("; ".join(problems))
        levels = tuple(LevelDefinition.from_dict(lv) for lv in raw["levels"])
        return cls(levels=levels, max_depth=int(raw.get("maxDepth", MAX_LEVELS)))

    @classmethod
    def from_levels(cls, levels: list[dict[str, Any]]) -> HierarchySchema:
        return cls.from_dict({"levels": levels})

    def to_dict(self) -> dict[str, Any]:
        return {
            "levels": [lv.to_dict() for lv in self.levels],
            "maxDepth": self.max_depth,
        }

    # -- lookups ------------------------------------------------------------

    def find_level(self, level_type: str) -> LevelDefinition | None:
        """Level definition for *level_type*, or None when not configured."""
        return self._by_type.get(level_type)

    def level_for(self, level_type: str) -> LevelDefinition:
        """Total lookup: unknown types get FALLBACK_LEVEL (depth 0)."""
        return self._by_type.get(level_type, FALLBACK_LEVEL)

    def has_type(self, level_type: str) -> bool:
        return level_type in self._by_type

    @property
    def depth_count(self) -> int:
        return len(self.levels)

    @property
    def deepest(self) -> int:
        return max((lv.depth for lv in self.levels), default=0)

    @property
    def schema_hash(self) -> str:
        """Stable identity of the schema content (matcher registry key)."""
        payload = orjson.dumps(self.to_dict(), option=orjson.OPT_SORT_KEYS)
        return hashlib.sha256(payload).hexdigest()[:16]


# ---------------------------------------------------------------------------
# Shape validation
# ---------------------------------------------------------------------------


def validate_schema_dict(raw: Any) -> list[str]:
    """Check a schema dict's shape. Returns a list of problems (empty = ok).

    Checks: ``levels`` is a non-empty list; each level has a name, a
    supported numbering scheme and an integer depth within 0..9; level
    types are unique; depths are contiguous from 0; at most ``maxDepth``
    levels (itself 1..20).
    """
    problems: list[str] = []
    if not isinstance(raw, dict):
        return ["schema must be an object"]
    levels = raw.get("levels")
    if not isinstance(levels, list) or not levels:
        return ["schema.levels must be a non-empty list"]

    max_levels = raw.get("maxDepth", MAX_LEVELS)
    if not isinstance(max_levels, int) or not 1 <= max_levels <= 20:
        problems.append(f"maxDepth must be an integer in 1..20, got {max_levels!r}")
    elif len(levels) > max_levels:
        problems.append(f"{len(levels)} levels exceed maxDepth {max_levels}")

    seen_types: set[str] = set()
    depths: list[int] = []
    for i, level in enumerate(levels):
        where = f"levels[{i}]"
        if not isinstance(level, dict):
            problems.append(f"{where} must be an object")
            continue
        name = level.get("name")
        if not isinstance(name, str) or not name.strip():
            problems.append(f"{where}.name is required")
            continue
        numbering = level.get("numbering")
        if numbering not in SUPPORTED_SCHEMES:
            problems.append(f"{where}.numbering {numbering!r} is not one of {list(SUPPORTED_SCHEMES)}")
        prefix = level.get("prefix", "")
        if prefix is not None and not isinstance(prefix, str):
            problems.append(f"{where}.prefix must be a string")
        depth = level.get("depth")
        if not isinstance(depth, int) or isinstance(depth, bool) or not 0 <= depth <= MAX_DEPTH:
            problems.append(f"{where}.depth must be an integer in 0..{MAX_DEPTH}, got {depth!r}")
        else:
            depths.append(depth)
        level_type = str(level.get("type") or name).strip().lower()
        if level_type in seen_types:
            problems.append(f"{where}.type {level_type!r} is duplicated")
        seen_types.add(level_type)

    if depths and sorted(set(depths)) != list(range(max(depths) + 1)):
        problems.append(f"depths must be contiguous from 0, got {sorted(set(depths))}")
    return problems


# ---------------------------------------------------------------------------
# Default schema and templates
# ---------------------------------------------------------------------------

DEFAULT_SCHEMA = HierarchySchema(levels=(
    LevelDefinition("Article", "article", SCHEME_ROMAN, "Article ", 0),
    LevelDefinition("Section", "section", SCHEME_NUMERIC, "Section ", 1),
))


def _template(*levels: tuple[str, str, str]) -> HierarchySchema:
    return HierarchySchema(levels=tuple(
        LevelDefinition(name, name.lower(), numbering, prefix, depth)
        for depth, (name, numbering, prefix) in enumerate(levels)
    ))


TEMPLATES: dict[str, HierarchySchema] = {
    "standard-bylaws": _template(
        ("Article", SCHEME_ROMAN, "Article "),
        ("Section", SCHEME_NUMERIC, "Section "),
        ("Subsection", SCHEME_NUMERIC, ""),
        ("Paragraph", SCHEME_ALPHA_LOWER, "("),
        ("Subparagraph", SCHEME_NUMERIC, ""),
        ("Clause", SCHEME_ALPHA_LOWER, "("),
        ("Subclause", SCHEME_ROMAN, ""),
        ("Item", SCHEME_NUMERIC, "•"),
        ("Subitem", SCHEME_ALPHA, "◦"),
        ("Point", SCHEME_NUMERIC, "-"),
    ),
    "legal-document": _template(
        ("Chapter", SCHEME_ROMAN, "Chapter "),
        ("Section", SCHEME_NUMERIC, "Section "),
        ("Clause", SCHEME_NUMERIC, "Clause "),
        ("Subclause", SCHEME_NUMERIC, ""),
        ("Paragraph", SCHEME_ALPHA_LOWER, "("),
        ("Subparagraph", SCHEME_NUMERIC, ""),
        ("Item", SCHEME_ALPHA_LOWER, "("),
        ("Subitem", SCHEME_ROMAN, ""),
        ("Point", SCHEME_NUMERIC, "•"),
        ("Subpoint", SCHEME_ALPHA, "◦"),
    ),
    "policy-manual": _template(
        ("Part", SCHEME_ROMAN, "Part "),
        ("Section", SCHEME_NUMERIC, "Section "),
        ("Paragraph", SCHEME_NUMERIC, ""),
        ("Subparagraph", SCHEME_ALPHA_LOWER, "("),
        ("Item", SCHEME_NUMERIC, ""),
        ("Subitem", SCHEME_ALPHA_LOWER, "("),
        ("Clause", SCHEME_ROMAN, ""),
        ("Subclause", SCHEME_NUMERIC, "•"),
        ("Point", SCHEME_ALPHA, "◦"),
        ("Detail", SCHEME_NUMERIC, "-"),
    ),
    "technical-standard": _template(
        *((f"Level {n}", SCHEME_NUMERIC, "") for n in range(1, 11))
    ),
}


def get_template(name: str) -> HierarchySchema:
    """Look up a bundled template by name. Raises SchemaError if unknown."""
    try:
        return TEMPLATES[name]
    except KeyError:
        raise SchemaError(
            f"unknown template {name!r}; available: {sorted(TEMPLATES)}"
        ) from None


def resolve_schema(
    schema: HierarchySchema | None,
    override: HierarchySchema | None = None,
) -> HierarchySchema:
    """Schema in effect for one parse: the override fully replaces the base."""
    if override is not None:
        return override
    return schema if schema is not None else DEFAULT_SCHEMA
