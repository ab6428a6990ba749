"""Tests for docstruct.config_cache."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from docstruct.config_cache import SchemaCache
from docstruct.schema import DEFAULT_SCHEMA, get_template


class TestSchemaCache:
    def test_get_put_counts(self) -> None:
        cache = SchemaCache()
        assert cache.get("org") is None
        cache.put("org", DEFAULT_SCHEMA)
        assert cache.get("org") is DEFAULT_SCHEMA
        assert (cache.hits, cache.misses) == (1, 1)
        assert "org" in cache
        assert len(cache) == 1

    def test_invalidate(self) -> None:
        cache = SchemaCache()
        cache.put("org", DEFAULT_SCHEMA)
        assert cache.invalidate("org") is True
        assert cache.invalidate("org") is False
        assert "org" not in cache

    def test_get_or_load_calls_loader_once(self) -> None:
        cache = SchemaCache()
        loaded: list[str] = []

        def loader(org_id: str):
            loaded.append(org_id)
            return get_template("policy-manual")

        first = cache.get_or_load("org", loader)
        second = cache.get_or_load("org", loader)
        assert first is second
        assert loaded == ["org"]

    def test_reload_after_invalidate(self) -> None:
        cache = SchemaCache()
        cache.put("org", DEFAULT_SCHEMA)
        cache.invalidate("org")
        schema = cache.get_or_load("org", lambda _org: get_template("legal-document"))
        assert schema.levels[0].name == "Chapter"

    def test_clear(self) -> None:
        cache = SchemaCache()
        cache.put("a", DEFAULT_SCHEMA)
        cache.put("b", DEFAULT_SCHEMA)
        cache.clear()
        assert len(cache) == 0

    def test_counters_exact_across_threads(self) -> None:
        cache = SchemaCache()
        cache.put("known", DEFAULT_SCHEMA)

        def lookups(n: int) -> None:
            for i in range(500):
                cache.get("known" if (i + n) % 2 else "absent")

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lookups, range(8)))
        assert cache.hits + cache.misses == 8 * 500
        assert cache.hits == cache.misses == 2000
