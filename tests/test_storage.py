"""
tests/test_storage.py
Tests for the key-value persistence stores.
"""

from __future__ import annotations

import json
import pathlib

import pytest

from sqlconstructor.storage import JsonFileStore, MemoryStore, StateStore


class TestMemoryStore:
    def test_fallback_for_missing_key(self, memory_store: MemoryStore) -> None:
        assert memory_store.load("missing") is None
        assert memory_store.load("missing", []) == []

    def test_values_stored_as_json_text(self, memory_store: MemoryStore) -> None:
        memory_store.save("fields", [{"table": "users"}])
        assert memory_store.data["fields"] == '[{"table": "users"}]'
        assert memory_store.load("fields") == [{"table": "users"}]
        assert "fields" in memory_store
        assert len(memory_store) == 1

    def test_falsy_values_round_trip(self, memory_store: MemoryStore) -> None:
        memory_store.save("flag", False)
        memory_store.save("count", 0)
        assert memory_store.load("flag", True) is False
        assert memory_store.load("count", 1) == 0

    def test_corrupt_value_returns_fallback(self) -> None:
        store = MemoryStore({"k": "{oops"})
        assert store.load("k", "fallback") == "fallback"


class TestJsonFileStore:
    def test_creates_file_on_first_save(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "nested" / "state.json"
        store = JsonFileStore(path)
        assert store.load("k", 1) == 1

        store.save("k", {"a": 2})
        assert path.exists()
        assert json.loads(json.loads(path.read_text(encoding="utf-8"))["k"]) == {"a": 2}

    def test_shared_path_is_consistent(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "state.json"
        JsonFileStore(path).save("a", 1)
        JsonFileStore(path).save("b", 2)
        reader = JsonFileStore(path)
        assert (reader.load("a"), reader.load("b")) == (1, 2)

    @pytest.mark.parametrize("content", ["{broken", "[1, 2, 3]"])
    def test_unusable_file_reads_as_empty(self, tmp_path: pathlib.Path, content: str) -> None:
        path = tmp_path / "state.json"
        path.write_text(content, encoding="utf-8")
        store = JsonFileStore(path)
        assert store.load("k", "fallback") == "fallback"

        store.save("k", "v")
        assert store.load("k") == "v"

    def test_repr(self, tmp_path: pathlib.Path) -> None:
        assert "state.json" in repr(JsonFileStore(tmp_path / "state.json"))


def test_base_store_is_abstract() -> None:
    with pytest.raises(NotImplementedError):
        StateStore().load("k")
    with pytest.raises(NotImplementedError):
        StateStore().save("k", 1)
