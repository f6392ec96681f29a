"""Record store contract and local ledger adapters.

The registry depends only on :class:`RecordStore`. A deployed ledger contract
exposes the same three calls; the adapters here stand in for it during local
development and tests.
"""

from __future__ import annotations

import fcntl
import json
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Protocol

from .storage import ensure_private_dir, ensure_private_file


DEFAULT_STORE_PATH = Path.home() / ".royaltyvault" / "ledger_state.json"


class RecordStore(Protocol):
    def is_available(self) -> bool: ...

    def get(self, key: str) -> bytes: ...

    def set(self, key: str, value: bytes) -> None: ...


class InMemoryRecordStore:
    """Process-local key-value ledger."""

    def __init__(self, available: bool = True):
        self.available = available
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return self.available

    def get(self, key: str) -> bytes:
        with self._lock:
            return self._data.get(key, b"")

    def set(self, key: str, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError("value must be bytes")
        with self._lock:
            self._data[key] = bytes(value)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class FileRecordStore:
    """File-backed ledger stand-in with lock-based concurrency control.

    Values are kept hex-encoded in a single JSON document. Each ``set`` is an
    atomic whole-file replace, so readers never observe a partial write.
    """

    def __init__(self, path: Optional[Path] = None, create: bool = True):
        self.path = path or DEFAULT_STORE_PATH
        ensure_private_dir(self.path.parent)
        self._lock_path = self.path.parent / ".ledger.lock"
        ensure_private_file(self._lock_path)
        if create and not self.path.exists():
            self._save_state({"entries": {}})

    @contextmanager
    def _lock(self):
        with open(self._lock_path, "r+") as lockf:
            fcntl.flock(lockf.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lockf.fileno(), fcntl.LOCK_UN)

    def _load_state(self) -> dict:
        with open(self.path, encoding="utf-8") as f:
            return json.load(f)

    def _save_state(self, state: dict) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + f".tmp.{os.getpid()}")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2, sort_keys=True)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
        ensure_private_file(self.path)

    def is_available(self) -> bool:
        return self.path.exists()

    def get(self, key: str) -> bytes:
        with self._lock():
            state = self._load_state()
            encoded = state.get("entries", {}).get(key)
        if not encoded:
            return b""
        return bytes.fromhex(encoded)

    def set(self, key: str, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError("value must be bytes")
        with self._lock():
            state = self._load_state()
            state.setdefault("entries", {})[key] = bytes(value).hex()
            self._save_state(state)
