"""Per-organization schema cache.

The cache is a plain object owned by the caller (a service, a batch
script), not module state. Reads during a parse see a fixed snapshot;
lookups, writes and invalidation go through one lock so the hit and
miss counters stay exact under concurrent callers.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TypeAlias

from docstruct.schema import HierarchySchema

log = logging.getLogger(__name__)

SchemaLoader: TypeAlias = Callable[[str], HierarchySchema]


class SchemaCache:
    """Maps organization id -> HierarchySchema."""

    def __init__(self) -> None:
        self._schemas: dict[str, HierarchySchema] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, org_id: str) -> HierarchySchema | None:
        with self._lock:
            schema = self._schemas.get(org_id)
            if schema is None:
                self.misses += 1
            else:
                self.hits += 1
        return schema

    def put(self, org_id: str, schema: HierarchySchema) -> None:
        with self._lock:
            self._schemas[org_id] = schema

    def invalidate(self, org_id: str) -> bool:
        """Drop one organization's schema. Returns True if it was cached."""
        with self._lock:
            removed = self._schemas.pop(org_id, None) is not None
        if removed:
            log.info("Invalidated cached schema for organization %s", org_id)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._schemas.clear()

    def get_or_load(self, org_id: str, loader: SchemaLoader) -> HierarchySchema:
        """Cached schema, or the loader's result (cached before returning)."""
        schema = self.get(org_id)
        if schema is not None:
            return schema
        with self._lock:
            # another writer may have filled it while we waited
            schema = self._schemas.get(org_id)
            if schema is None:
                schema = loader(org_id)
                self._schemas[org_id] = schema
                log.debug("Loaded schema %s for organization %s", schema.schema_hash, org_id)
        return schema

    def __contains__(self, org_id: object) -> bool:
        return org_id in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)
