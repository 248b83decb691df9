"""
Tests for the mapping store (reminders_sync/sync/mapping.py).
"""

import json
import os
from unittest.mock import patch

import pytest

from reminders_sync.core.exceptions import MappingStoreWriteError
from reminders_sync.core.models import TaskMapping, compute_signature
from reminders_sync.sync.mapping import MappingStore


@pytest.fixture
def mapping_path(temp_dir):
    return os.path.join(temp_dir, "._RemindersMapping.json")


class TestLoadSave:

    def test_missing_file_is_empty(self, mapping_path):
        store = MappingStore(mapping_path).load()
        assert len(store) == 0
        assert not store.dirty

    def test_empty_file_is_empty(self, mapping_path):
        open(mapping_path, "w").close()
        assert len(MappingStore(mapping_path).load()) == 0

    def test_save_and_reload(self, mapping_path):
        store = MappingStore(mapping_path)
        store.upsert(TaskMapping("U1", "B1", "Daily.md", "Buy milk"))
        assert store.dirty
        store.save()
        assert not store.dirty

        with open(mapping_path, encoding="utf-8") as handle:
            data = json.load(handle)
        assert data == {"mappings": [{
            "obsidianId": "U1",
            "reminderId": "B1",
            "filePath": "Daily.md",
            "taskText": "Buy milk",
        }]}

        reloaded = MappingStore(mapping_path).load()
        assert reloaded.entries == [TaskMapping("U1", "B1", "Daily.md", "Buy milk")]

    @pytest.mark.parametrize("content", [
        "{not json",
        '["a", "list"]',
        '{"mappings": "nope"}',
        '{"mappings": [{"obsidianId": "U1"}]}',
        '{"mappings": [{"obsidianId": 1, "reminderId": "B", "filePath": "x", "taskText": "y"}]}',
    ])
    def test_corrupt_file_is_backed_up(self, mapping_path, content):
        with open(mapping_path, "w", encoding="utf-8") as handle:
            handle.write(content)

        store = MappingStore(mapping_path).load()

        assert len(store) == 0
        backup = mapping_path + ".backup"
        assert os.path.exists(backup)
        with open(backup, encoding="utf-8") as handle:
            assert handle.read() == content

    def test_duplicate_entries_in_file_are_collapsed(self, mapping_path):
        with open(mapping_path, "w", encoding="utf-8") as handle:
            json.dump({"mappings": [
                {"obsidianId": "U1", "reminderId": "B1", "filePath": "a.md", "taskText": "one"},
                {"obsidianId": "U1", "reminderId": "B2", "filePath": "a.md", "taskText": "one"},
            ]}, handle)
        store = MappingStore(mapping_path).load()
        assert store.entries == [TaskMapping("U1", "B2", "a.md", "one")]

    def test_write_failure_raises(self, mapping_path):
        store = MappingStore(mapping_path)
        store.upsert(TaskMapping("U1", "B1", "a.md", "one"))
        with patch("reminders_sync.sync.mapping.safe_write_json", return_value=False):
            with pytest.raises(MappingStoreWriteError):
                store.save()
        assert store.dirty

    def test_delete_file(self, mapping_path):
        store = MappingStore(mapping_path)
        store.upsert(TaskMapping("U1", "B1", "a.md", "one"))
        store.save()
        assert store.delete_file()
        assert not os.path.exists(mapping_path)
        assert len(store) == 0
        assert not store.delete_file()


class TestUpsertInvariants:
    """At most one entry per local id and per backend id."""

    def test_upsert_replaces_same_local_id(self, mapping_path):
        store = MappingStore(mapping_path)
        store.upsert(TaskMapping("U1", "B1", "a.md", "one"))
        store.upsert(TaskMapping("U1", "B9", "a.md", "one"))
        assert store.entries == [TaskMapping("U1", "B9", "a.md", "one")]

    def test_upsert_replaces_same_backend_id(self, mapping_path):
        store = MappingStore(mapping_path)
        store.upsert(TaskMapping("U1", "B1", "a.md", "one"))
        store.upsert(TaskMapping("U2", "B1", "a.md", "one"))
        assert store.entries == [TaskMapping("U2", "B1", "a.md", "one")]

    def test_upsert_drops_both_conflicts(self, mapping_path):
        store = MappingStore(mapping_path)
        store.upsert(TaskMapping("U1", "B1", "a.md", "one"))
        store.upsert(TaskMapping("U2", "B2", "b.md", "two"))
        store.upsert(TaskMapping("U1", "B2", "a.md", "one"))
        assert store.entries == [TaskMapping("U1", "B2", "a.md", "one")]

    def test_identical_upsert_is_not_a_change(self, mapping_path):
        store = MappingStore(mapping_path)
        store.upsert(TaskMapping("U1", "B1", "a.md", "one"))
        store.save()
        assert not store.upsert(TaskMapping("U1", "B1", "a.md", "one"))
        assert not store.dirty

    def test_find_helpers(self, mapping_path):
        store = MappingStore(mapping_path)
        entry = TaskMapping("U1", "B1", "a.md", "one")
        store.upsert(entry)
        assert store.find_by_local_id("U1") == entry
        assert store.find_by_backend_id("B1") == entry
        assert store.find_by_signature(compute_signature("a.md", "one")) == entry
        assert store.find_by_local_id("nope") is None

    def test_remove_by_predicate(self, mapping_path):
        store = MappingStore(mapping_path)
        store.upsert(TaskMapping("U1", "B1", "a.md", "one"))
        store.upsert(TaskMapping("U2", "B2", "b.md", "two"))
        store.save()
        assert store.remove(lambda e: e.file_path == "a.md") == 1
        assert [e.local_id for e in store] == ["U2"]
        assert store.dirty
        assert store.remove(lambda e: False) == 0
