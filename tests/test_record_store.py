"""Tests for the local ledger adapters."""

from concurrent.futures import ThreadPoolExecutor
import json

import pytest

from royaltyvault.record_store import FileRecordStore, InMemoryRecordStore


class TestInMemoryRecordStore:
    def test_absent_key_is_empty_bytes(self):
        store = InMemoryRecordStore()
        assert store.get("missing") == b""

    def test_set_then_get(self):
        store = InMemoryRecordStore()
        store.set("k", b"value")
        assert store.get("k") == b"value"
        assert store.keys() == ["k"]

    def test_availability_toggle(self):
        store = InMemoryRecordStore(available=False)
        assert not store.is_available()
        store.available = True
        assert store.is_available()

    def test_rejects_non_bytes(self):
        with pytest.raises(TypeError):
            InMemoryRecordStore().set("k", "text")


class TestFileRecordStore:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "ledger.json"
        FileRecordStore(path).set("token_keys", b'["a"]')

        reopened = FileRecordStore(path)
        assert reopened.is_available()
        assert reopened.get("token_keys") == b'["a"]'
        assert reopened.get("missing") == b""

    def test_values_stored_hex_encoded(self, tmp_path):
        path = tmp_path / "ledger.json"
        FileRecordStore(path).set("k", b"\x00\xffdata")

        state = json.loads(path.read_text())
        assert state["entries"]["k"] == b"\x00\xffdata".hex()

    def test_unavailable_without_state_file(self, tmp_path):
        store = FileRecordStore(tmp_path / "absent.json", create=False)
        assert not store.is_available()

    def test_concurrent_writes_are_safe(self, tmp_path):
        store = FileRecordStore(tmp_path / "ledger.json")

        def write_one(index: int):
            store.set(f"key-{index}", str(index).encode())
            return index

        with ThreadPoolExecutor(max_workers=8) as ex:
            list(ex.map(write_one, range(24)))

        assert all(store.get(f"key-{i}") == str(i).encode() for i in range(24))
