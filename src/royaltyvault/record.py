"""Royalty record model, key layout, and ledger wire format."""

from __future__ import annotations

import json
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from eth_utils import is_address

from .errors import DeserializationError


INDEX_KEY = "token_keys"
RECORD_KEY_PREFIX = "token_"
RECORD_ID_PREFIX = "royalty-"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class RecordStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SOLD = "sold"


_STATUS_ORDER = [RecordStatus.PENDING, RecordStatus.ACTIVE, RecordStatus.SOLD]

# Only forward transitions implemented here. SOLD is set by an external process.
_ALLOWED_TRANSITIONS = {(RecordStatus.PENDING, RecordStatus.ACTIVE)}


def can_transition(current: RecordStatus, new: RecordStatus) -> bool:
    """True when ``new`` is strictly later than ``current`` and implemented."""
    if _STATUS_ORDER.index(new) <= _STATUS_ORDER.index(current):
        return False
    return (current, new) in _ALLOWED_TRANSITIONS


@dataclass(frozen=True)
class Record:
    """One registered royalty valuation."""

    id: str
    owner: str
    artist: str
    song_title: str
    encrypted_royalty_value: str
    token_amount: int
    timestamp: int
    status: RecordStatus = RecordStatus.PENDING

    @property
    def descriptor(self) -> tuple[str, str]:
        return self.artist, self.song_title

    @property
    def key(self) -> str:
        return record_key(self.id)

    def to_wire(self) -> dict[str, Any]:
        return {
            "artist": self.artist,
            "songTitle": self.song_title,
            "encryptedRoyaltyValue": self.encrypted_royalty_value,
            "tokenAmount": self.token_amount,
            "timestamp": self.timestamp,
            "owner": self.owner,
            "status": self.status.value,
        }

    def to_bytes(self) -> bytes:
        return dump_json_bytes(self.to_wire())

    @classmethod
    def from_wire(cls, record_id: str, data: Mapping[str, Any]) -> "Record":
        try:
            return cls(
                id=record_id,
                owner=str(data.get("owner") or ""),
                artist=str(data["artist"]),
                song_title=str(data["songTitle"]),
                encrypted_royalty_value=str(data["encryptedRoyaltyValue"]),
                token_amount=int(data["tokenAmount"]),
                timestamp=int(data["timestamp"]),
                status=RecordStatus(data.get("status") or RecordStatus.PENDING.value),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DeserializationError(
                f"Malformed record {record_id}: {exc}", key=record_key(record_id)
            ) from exc

    @classmethod
    def from_bytes(cls, record_id: str, raw: bytes) -> "Record":
        return cls.from_wire(record_id, parse_record_mapping(record_id, raw))


def record_key(record_id: str) -> str:
    """Derive the store key for a record id."""
    if not record_id:
        raise ValueError("record_id must be non-empty")
    return f"{RECORD_KEY_PREFIX}{record_id}"


def generate_record_id(now_ms: Optional[int] = None) -> str:
    """Time-ordered id with a short random suffix, e.g. ``royalty-1700000000000-k3x9``."""
    millis = int(time.time() * 1000) if now_ms is None else int(now_ms)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"{RECORD_ID_PREFIX}{millis}-{suffix}"


def validate_owner(owner: str) -> str:
    candidate = owner.strip()
    if not is_address(candidate):
        raise ValueError(f"Invalid owner address: {owner}")
    return candidate


def dump_json_bytes(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def parse_record_mapping(record_id: str, raw: bytes) -> dict[str, Any]:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DeserializationError(
            f"Record {record_id} is not valid JSON: {exc}", key=record_key(record_id)
        ) from exc
    if not isinstance(data, dict):
        raise DeserializationError(
            f"Record {record_id} is not a JSON object", key=record_key(record_id)
        )
    return data


def parse_index(raw: bytes) -> list[str]:
    """Parse index bytes; empty or whitespace-only content is an empty index."""
    if not raw:
        return []
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DeserializationError(f"Index is not UTF-8: {exc}", key=INDEX_KEY) from exc
    if not text.strip():
        return []
    try:
        ids = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DeserializationError(f"Index is not valid JSON: {exc}", key=INDEX_KEY) from exc
    if not isinstance(ids, list) or not all(isinstance(item, str) for item in ids):
        raise DeserializationError("Index must be a JSON array of strings", key=INDEX_KEY)
    return ids
