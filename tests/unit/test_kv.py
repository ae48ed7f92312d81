"""
Tests for the key-value pillar implementations.

Every backend must honor the same contract, so most tests run against all of
them; backend-specific behavior is tested separately.
"""

import sqlite3

import pytest
from palaver.kv import File, InMemory, KeyValue, SQLite


@pytest.fixture(params=["InMemory", "File", "SQLite"])
def backend(request, tmp_path) -> KeyValue:
    if request.param == "InMemory":
        return InMemory()
    if request.param == "File":
        return File(str(tmp_path / "kv"))
    return SQLite(str(tmp_path / "kv.db"))


class TestKeyValueInterface:
    def test_is_abstract(self):
        with pytest.raises(TypeError) as exc_info:
            KeyValue()
        assert "abstract" in str(exc_info.value).lower()

    def test_requires_all_methods(self):
        class Incomplete(KeyValue):
            def get(self, key):
                return None

            def set(self, key, value):
                pass

            def remove(self, key):
                pass

        with pytest.raises(TypeError) as exc_info:
            Incomplete()
        assert "keys" in str(exc_info.value)


class TestKeyValueContract:
    """Behavior shared by every backend."""

    def test_missing_key_returns_none(self, backend):
        assert backend.get("session-1-abc") is None

    def test_set_then_get(self, backend):
        backend.set("session-1-abc", '{"messages": []}')
        assert backend.get("session-1-abc") == '{"messages": []}'

    def test_set_replaces(self, backend):
        backend.set("k", "one")
        backend.set("k", "two")
        assert backend.get("k") == "two"
        assert backend.keys() == ["k"]

    def test_keys_lists_everything(self, backend):
        for key in ["session-2-b", "session-1-a", "other"]:
            backend.set(key, "{}")
        assert sorted(backend.keys()) == ["other", "session-1-a", "session-2-b"]

    def test_remove_is_idempotent(self, backend):
        backend.set("k", "v")
        backend.remove("k")
        backend.remove("k")
        backend.remove("never-there")
        assert backend.get("k") is None
        assert backend.keys() == []

    def test_unicode_values(self, backend):
        backend.set("k", "مرحبا 👋")
        assert backend.get("k") == "مرحبا 👋"


class TestFile:
    def test_creates_directory(self, tmp_path):
        directory = tmp_path / "nested" / "kv"
        File(str(directory))
        assert directory.is_dir()

    def test_one_file_per_key(self, tmp_path):
        store = File(str(tmp_path))
        store.set("session-1-a", "{}")
        assert (tmp_path / "session-1-a.json").read_text(encoding="utf-8") == "{}"
        assert not list(tmp_path.glob("*.tmp"))

    def test_ignores_unrelated_files(self, tmp_path):
        (tmp_path / "notes.txt").write_text("hello")
        store = File(str(tmp_path))
        assert store.keys() == []

    @pytest.mark.parametrize("key", ["../escape", "a/b", ".hidden", ""])
    def test_rejects_unsafe_keys(self, tmp_path, key):
        store = File(str(tmp_path))
        with pytest.raises(ValueError):
            store.set(key, "{}")


class TestSQLite:
    def test_creates_table(self, tmp_path):
        db_path = tmp_path / "sub" / "kv.db"
        SQLite(str(db_path))
        conn = sqlite3.connect(db_path)
        try:
            tables = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        finally:
            conn.close()
        assert ("kv",) in tables

    def test_persists_across_instances(self, tmp_path):
        db_path = str(tmp_path / "kv.db")
        SQLite(db_path).set("session-1-a", "{}")
        assert SQLite(db_path).get("session-1-a") == "{}"
