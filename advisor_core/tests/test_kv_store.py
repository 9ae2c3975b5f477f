import tempfile
from pathlib import Path

import pytest

from advisor_core.domain.exceptions import StoreError
from advisor_core.infrastructure.storage.kv_store import JsonFileStore, MemoryStore


def test_json_file_store_set_get_remove():
    with tempfile.TemporaryDirectory() as d:
        store = JsonFileStore(root=Path(d) / ".storage")
        assert store.get("empath_conversations") is None
        store.set("empath_conversations", '[{"id": "c-1"}]')
        assert store.get("empath_conversations") == '[{"id": "c-1"}]'
        assert (store.root / "empath_conversations.json").exists()
        store.remove("empath_conversations")
        assert store.get("empath_conversations") is None
        # removing a missing key is a no-op
        store.remove("empath_conversations")


def test_json_file_store_leaves_no_temp_files():
    with tempfile.TemporaryDirectory() as d:
        store = JsonFileStore(root=Path(d))
        store.set("k", "one")
        store.set("k", "two")
        assert store.get("k") == "two"
        assert sorted(p.name for p in store.root.iterdir()) == ["k.json"]


def test_json_file_store_rejects_invalid_keys():
    with tempfile.TemporaryDirectory() as d:
        store = JsonFileStore(root=Path(d))
        for key in ("", "../escape", ".hidden", "a/b"):
            with pytest.raises(StoreError) as exc:
                store.set(key, "x")
            assert exc.value.code == "STORE_INVALID_KEY"


def test_json_file_store_unavailable_root():
    with tempfile.TemporaryDirectory() as d:
        blocker = Path(d) / "file"
        blocker.write_text("not a directory", encoding="utf-8")
        with pytest.raises(StoreError) as exc:
            JsonFileStore(root=blocker / "nested")
        assert exc.value.code == "STORE_UNAVAILABLE"
        assert exc.value.kind == "unavailable"


def test_memory_store():
    store = MemoryStore({"a": "1"})
    assert store.get("a") == "1"
    store.set("b", "2")
    store.remove("a")
    store.remove("missing")
    assert store.keys() == ["b"]
    assert store.get("a") is None
