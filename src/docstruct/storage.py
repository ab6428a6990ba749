"""DuckDB-backed section store.

Persists finalized section lists in document order. Parent links are not
taken from the parser: they are re-derived by replaying a depth stack over
the ordered list (``assign_storage_links``), so a stored hierarchy is always
consistent with the stored depths.

Tables:
    documents       - one row per stored parse
    sections        - one row per section (FK to documents, self-FK parent)
    _schema_version - schema version tracking
"""
from __future__ import annotations

import importlib
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from docstruct.parsing_types import DocumentMetadata, Section

# Dynamic DuckDB import for pyright compatibility
_duckdb_mod = importlib.import_module("duckdb")

log = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"


class SchemaVersionError(RuntimeError):
    """Raised when a section store's schema version does not match expected."""


_DDL = (
    """
    CREATE TABLE IF NOT EXISTS _schema_version (
        table_name VARCHAR PRIMARY KEY,
        version VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS documents (
        document_id VARCHAR PRIMARY KEY,
        organization_id VARCHAR,
        file_name VARCHAR,
        source VARCHAR,
        parsed_at VARCHAR,
        section_count INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sections (
        section_id VARCHAR PRIMARY KEY,
        document_id VARCHAR NOT NULL,
        parent_section_id VARCHAR,
        document_order INTEGER NOT NULL,
        ordinal INTEGER NOT NULL,
        depth INTEGER NOT NULL,
        section_type VARCHAR,
        citation VARCHAR,
        title VARCHAR,
        body_text VARCHAR,
        prefix VARCHAR,
        raw_number VARCHAR,
        depth_reason VARCHAR,
        is_orphan BOOLEAN,
        path_ids VARCHAR[],
        path_ordinals INTEGER[]
    )
    """,
)

_SECTION_COLUMNS = (
    "section_id, document_id, parent_section_id, document_order, ordinal, "
    "depth, section_type, citation, title, body_text, prefix, raw_number, "
    "depth_reason, is_orphan, path_ids, path_ordinals"
)


@dataclass(frozen=True, slots=True)
class StoredSection:
    """A section row as persisted."""

    section_id: str
    document_id: str
    parent_section_id: str | None
    document_order: int
    ordinal: int
    depth: int
    section_type: str
    citation: str
    title: str
    body_text: str
    prefix: str
    raw_number: str
    depth_reason: str
    is_orphan: bool
    path_ids: tuple[str, ...]
    path_ordinals: tuple[int, ...]

    def to_row(self) -> list[Any]:
        return [
            self.section_id, self.document_id, self.parent_section_id,
            self.document_order, self.ordinal, self.depth, self.section_type,
            self.citation, self.title, self.body_text, self.prefix,
            self.raw_number, self.depth_reason, self.is_orphan,
            list(self.path_ids), list(self.path_ordinals),
        ]


def _section_from_row(r: tuple[Any, ...]) -> StoredSection:
    return StoredSection(
        section_id=str(r[0]),
        document_id=str(r[1]),
        parent_section_id=str(r[2]) if r[2] is not None else None,
        document_order=int(r[3]),
        ordinal=int(r[4]),
        depth=int(r[5]),
        section_type=str(r[6] or ""),
        citation=str(r[7] or ""),
        title=str(r[8] or ""),
        body_text=str(r[9] or ""),
        prefix=str(r[10] or ""),
        raw_number=str(r[11] or ""),
        depth_reason=str(r[12] or ""),
        is_orphan=bool(r[13]),
        path_ids=tuple(str(v) for v in (r[14] or ())),
        path_ordinals=tuple(int(v) for v in (r[15] or ())),
    )


# ---------------------------------------------------------------------------
# Link derivation (pure)
# ---------------------------------------------------------------------------


def assign_storage_links(
    document_id: str,
    sections: list[Section],
    *,
    id_factory: Any = None,
) -> list[StoredSection]:
    """Replay a depth stack over *sections* to derive parent links.

    The parent of a section is the nearest preceding section with a smaller
    depth. Each section gets a fresh id, its 1-based ordinal among siblings,
    its 0-based position in the document and the id/ordinal paths from its
    root down to itself.
    """
    new_id = id_factory or (lambda: str(uuid.uuid4()))
    stored: list[StoredSection] = []
    stack: list[StoredSection] = []
    sibling_counts: dict[str | None, int] = {}

    for order, section in enumerate(sections):
        while stack and stack[-1].depth >= section.depth:
            stack.pop()
        parent = stack[-1] if stack else None
        parent_id = parent.section_id if parent else None
        ordinal = sibling_counts.get(parent_id, 0) + 1
        sibling_counts[parent_id] = ordinal
        section_id = new_id()

        row = StoredSection(
            section_id=section_id,
            document_id=document_id,
            parent_section_id=parent_id,
            document_order=order,
            ordinal=ordinal,
            depth=section.depth,
            section_type=section.type,
            citation=section.citation,
            title=section.title,
            body_text=section.body_text,
            prefix=section.prefix,
            raw_number=section.raw_number,
            depth_reason=section.depth_reason,
            is_orphan=section.is_orphan,
            path_ids=(parent.path_ids if parent else ()) + (section_id,),
            path_ordinals=(parent.path_ordinals if parent else ()) + (ordinal,),
        )
        stored.append(row)
        stack.append(row)
    return stored


def check_links(rows: list[StoredSection]) -> list[str]:
    """Consistency problems in a stored hierarchy (empty list = consistent).

    Checks that document order is contiguous, that every parent exists, sits
    earlier and is shallower, that id/ordinal paths extend the parent's, and
    that sibling ordinals run 1..n.
    """
    problems: list[str] = []
    by_id = {r.section_id: r for r in rows}
    siblings: dict[str | None, list[int]] = {}

    for expected, row in enumerate(sorted(rows, key=lambda r: r.document_order)):
        where = f"{row.citation or row.section_id}"
        if row.document_order != expected:
            problems.append(f"{where}: document_order {row.document_order}, expected {expected}")
        siblings.setdefault(row.parent_section_id, []).append(row.ordinal)
        if len(row.path_ids) != len(row.path_ordinals):
            problems.append(f"{where}: path_ids and path_ordinals differ in length")
        if not row.path_ids or row.path_ids[-1] != row.section_id:
            problems.append(f"{where}: path_ids does not end with the section id")
        if row.parent_section_id is None:
            if len(row.path_ids) != 1:
                problems.append(f"{where}: root section with a path of {len(row.path_ids)}")
            continue
        parent = by_id.get(row.parent_section_id)
        if parent is None:
            problems.append(f"{where}: parent {row.parent_section_id} missing")
            continue
        if parent.document_order >= row.document_order:
            problems.append(f"{where}: parent stored after child")
        if parent.depth >= row.depth:
            problems.append(f"{where}: parent depth {parent.depth} >= depth {row.depth}")
        if row.path_ids[:-1] != parent.path_ids:
            problems.append(f"{where}: path_ids does not extend parent's path")
        if row.path_ordinals != parent.path_ordinals + (row.ordinal,):
            problems.append(f"{where}: path_ordinals does not extend parent's path")

    for parent_id, ordinals in siblings.items():
        if ordinals != list(range(1, len(ordinals) + 1)):
            problems.append(f"children of {parent_id or 'root'}: ordinals {ordinals} not 1..n")
    return problems


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


def _read_schema_version(conn: Any) -> str:
    try:
        result = conn.execute(
            "SELECT version FROM _schema_version WHERE table_name = 'sections'"
        ).fetchone()
        return str(result[0]) if result else "unknown"
    except _duckdb_mod.Error:
        return "unknown"


class SectionStore:
    """Read/write interface to a DuckDB section store.

    A new (or empty) database is initialized with the current schema. An
    existing one must carry the expected schema version.
    """

    def __init__(self, db_path: Path | str, *, read_only: bool = False) -> None:
        self._db_path = str(db_path)
        self._conn: Any = _duckdb_mod.connect(self._db_path, read_only=read_only)
        try:
            if not read_only:
                self._init_schema()
            version = _read_schema_version(self._conn)
            if version != SCHEMA_VERSION:
                raise SchemaVersionError(
                    f"Schema version mismatch in {self._db_path}: "
                    f"expected {SCHEMA_VERSION}, got {version}"
                )
        except Exception:
            self._conn.close()
            raise

    def _init_schema(self) -> None:
        for ddl in _DDL:
            self._conn.execute(ddl)
        exists = self._conn.execute(
            "SELECT COUNT(*) FROM _schema_version WHERE table_name = 'sections'"
        ).fetchone()
        if not exists or int(exists[0]) == 0:
            self._conn.execute(
                "INSERT INTO _schema_version VALUES ('sections', ?)", [SCHEMA_VERSION]
            )

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> SectionStore:
        return self

    def __exit__(self, *_args: object) -> None:
        self.close()

    @property
    def schema_version(self) -> str:
        return _read_schema_version(self._conn)

    # -- writes -------------------------------------------------------------

    def store_sections(
        self,
        document_id: str,
        sections: list[Section],
        *,
        organization_id: str = "",
        metadata: DocumentMetadata | None = None,
    ) -> list[StoredSection]:
        """Replace the stored sections of *document_id* with *sections*."""
        rows = assign_storage_links(document_id, sections)
        self._conn.execute("BEGIN TRANSACTION")
        try:
            self._conn.execute("DELETE FROM sections WHERE document_id = ?", [document_id])
            self._conn.execute("DELETE FROM documents WHERE document_id = ?", [document_id])
            self._conn.execute(
                "INSERT INTO documents VALUES (?, ?, ?, ?, ?, ?)",
                [
                    document_id,
                    organization_id,
                    metadata.file_name if metadata else "",
                    metadata.source if metadata else "",
                    metadata.parsed_at if metadata else "",
                    len(rows),
                ],
            )
            if rows:
                self._conn.executemany(
                    f"INSERT INTO sections ({_SECTION_COLUMNS}) "
                    f"VALUES ({', '.join('?' * 16)})",
                    [r.to_row() for r in rows],
                )
            self._conn.execute("COMMIT")
        except Exception:
            self._conn.execute("ROLLBACK")
            raise
        log.info("Stored %d sections for document %s", len(rows), document_id)
        return rows

    def delete_document(self, document_id: str) -> None:
        self._conn.execute("DELETE FROM sections WHERE document_id = ?", [document_id])
        self._conn.execute("DELETE FROM documents WHERE document_id = ?", [document_id])

    # -- reads --------------------------------------------------------------

    def document_ids(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT document_id FROM documents ORDER BY document_id"
        ).fetchall()
        return [str(r[0]) for r in rows]

    def section_count(self, document_id: str) -> int:
        result = self._conn.execute(
            "SELECT COUNT(*) FROM sections WHERE document_id = ?", [document_id]
        ).fetchone()
        return int(result[0]) if result else 0

    def get_sections(self, document_id: str) -> list[StoredSection]:
        """All sections of a document in document order."""
        rows = self._conn.execute(
            f"SELECT {_SECTION_COLUMNS} FROM sections "
            "WHERE document_id = ? ORDER BY document_order",
            [document_id],
        ).fetchall()
        return [_section_from_row(r) for r in rows]

    def get_section(self, section_id: str) -> StoredSection | None:
        row = self._conn.execute(
            f"SELECT {_SECTION_COLUMNS} FROM sections WHERE section_id = ?",
            [section_id],
        ).fetchone()
        return _section_from_row(row) if row else None

    def children(self, section_id: str) -> list[StoredSection]:
        """Direct children in ordinal order."""
        rows = self._conn.execute(
            f"SELECT {_SECTION_COLUMNS} FROM sections "
            "WHERE parent_section_id = ? ORDER BY ordinal",
            [section_id],
        ).fetchall()
        return [_section_from_row(r) for r in rows]

    def descendants(self, section_id: str) -> list[StoredSection]:
        """Every section below *section_id*, in document order."""
        rows = self._conn.execute(
            f"SELECT {_SECTION_COLUMNS} FROM sections "
            "WHERE list_contains(path_ids, ?) AND section_id <> ? "
            "ORDER BY document_order",
            [section_id, section_id],
        ).fetchall()
        return [_section_from_row(r) for r in rows]

    def verify_hierarchy(self, document_id: str) -> list[str]:
        """Consistency problems in the stored hierarchy of one document."""
        problems = check_links(self.get_sections(document_id))
        if problems:
            log.warning("Document %s: %d hierarchy problems", document_id, len(problems))
        return problems
