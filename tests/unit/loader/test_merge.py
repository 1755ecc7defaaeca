"""Tests for fragment merging and the document store."""

import pytest

from dochub_validator.loader.merge import deep_merge
from dochub_validator.loader.store import DocumentStore, DocumentStoreError


class TestDeepMerge:

    def test_mappings_merge_recursively(self):
        target = {"components": {"web": {"title": "Web"}}}
        deep_merge(target, {"components": {"db": {"title": "DB"}, "web": {"entity": "component"}}})

        assert target == {
            "components": {
                "web": {"title": "Web", "entity": "component"},
                "db": {"title": "DB"},
            }
        }

    def test_later_scalar_wins(self):
        target = {"components": {"web": {"title": "Old"}}}
        deep_merge(target, {"components": {"web": {"title": "New"}}})

        assert target["components"]["web"]["title"] == "New"

    def test_lists_concatenate_without_duplicates(self):
        target = {"aspects": ["a", "b"]}
        deep_merge(target, {"aspects": ["b", "c"]})

        assert target["aspects"] == ["a", "b", "c"]

    def test_type_mismatch_replaces(self):
        target = {"components": ["not", "a", "mapping"]}
        deep_merge(target, {"components": {"web": {}}})

        assert target == {"components": {"web": {}}}

    def test_source_is_not_aliased(self):
        source = {"components": {"web": {"aspects": ["sec"]}}}
        target = deep_merge({}, source)

        target["components"]["web"]["aspects"].append("perf")

        assert source["components"]["web"]["aspects"] == ["sec"]


class TestDocumentStore:

    def test_add_and_get(self):
        store = DocumentStore()
        store.add("file:///a.yaml", {"components": {"web": {}}})

        assert "file:///a.yaml" in store
        assert len(store) == 1
        assert store.get("file:///a.yaml") == {"components": {"web": {}}}
        assert store.get("file:///b.yaml") is None

    def test_add_twice_raises(self):
        store = DocumentStore()
        store.add("file:///a.yaml", {})

        with pytest.raises(DocumentStoreError, match="already loaded"):
            store.add("file:///a.yaml", {})

    def test_origins_keep_first_declaration(self):
        store = DocumentStore()
        store.add("file:///a.yaml", {"components": {"web": {}}, "imports": ["b.yaml"]})
        store.add("file:///b.yaml", {"components": {"web": {}, "db": {}}})

        assert store.origin_of("/components/web") == "file:///a.yaml"
        assert store.origin_of("/components/db") == "file:///b.yaml"
        assert store.origin_of("/imports/0") is None

    def test_clear(self):
        store = DocumentStore()
        store.add("file:///a.yaml", {"components": {"web": {}}})
        store.add_imports("file:///a.yaml", ["file:///b.yaml"])

        store.clear()

        assert len(store) == 0
        assert store.imports == {}
        assert store.origins == {}
