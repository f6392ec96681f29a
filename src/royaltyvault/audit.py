"""
Tamper-evident history of record lifecycle and reveal attempts.

Each line of the JSONL log is one :class:`AuditEvent`. Events are chained per
record: an event's HMAC covers its own payload and the hash of the previous
event for the same record id, so editing an entry, removing an earlier one,
or reordering a record's history is detected on read.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os
import secrets
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional

from .errors import AuditIntegrityError
from .record import Record, RecordStatus, record_key
from .storage import ensure_private_dir, ensure_private_file


DEFAULT_AUDIT_PATH = Path.home() / ".royaltyvault" / "audit.jsonl"
DEFAULT_AUDIT_KEY_PATH = Path.home() / ".royaltyvault-secrets" / "audit_hmac.key"
AUDIT_HMAC_KEY_ENV = "ROYALTYVAULT_AUDIT_HMAC_KEY"


class EventType(str, Enum):
    RECORD_CREATED = "record_created"
    RECORD_STATUS_CHANGED = "record_status_changed"
    INDEX_APPEND_FAILED = "index_append_failed"
    REVEAL_GRANTED = "reveal_granted"
    REVEAL_DECLINED = "reveal_declined"


@dataclass(frozen=True)
class AuditEvent:
    """One entry in a record's history."""

    event_type: EventType
    record_id: str
    timestamp: float
    identity: Optional[str] = None
    status: Optional[RecordStatus] = None
    success: bool = True
    reason: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    prev_hash: str = ""
    event_hash: str = ""

    def payload(self) -> dict[str, Any]:
        """Hashed fields, with enums flattened and empty values omitted."""
        body = {
            "event_type": self.event_type.value,
            "record_id": self.record_id,
            "timestamp": self.timestamp,
            "identity": self.identity,
            "status": self.status.value if self.status is not None else None,
            "success": self.success,
            "reason": self.reason,
            "details": self.details,
        }
        return {k: v for k, v in body.items() if v is not None}

    def to_line(self) -> str:
        line = dict(self.payload(), prev_hash=self.prev_hash, event_hash=self.event_hash)
        return json.dumps(line, separators=(",", ":"))

    @classmethod
    def from_line(cls, line: str) -> "AuditEvent":
        raw = json.loads(line)
        record_id = str(raw["record_id"])
        record_key(record_id)
        status = raw.get("status")
        return cls(
            event_type=EventType(raw["event_type"]),
            record_id=record_id,
            timestamp=float(raw["timestamp"]),
            identity=raw.get("identity"),
            status=RecordStatus(status) if status is not None else None,
            success=bool(raw.get("success", True)),
            reason=raw.get("reason"),
            details=raw.get("details"),
            prev_hash=str(raw.get("prev_hash", "")),
            event_hash=str(raw.get("event_hash", "")),
        )


def load_audit_key(key_path: Path) -> bytes:
    """HMAC key from the environment, else from ``key_path`` (created on first use)."""
    env_key = os.getenv(AUDIT_HMAC_KEY_ENV)
    if env_key:
        return env_key.encode()
    ensure_private_dir(key_path.parent)
    ensure_private_file(key_path)
    existing = key_path.read_bytes().strip()
    if existing:
        return existing
    key = secrets.token_hex(32).encode()
    key_path.write_bytes(key)
    return key


class AuditTrail:
    """Append-only audit log with per-record hash chains."""

    def __init__(self, path: Optional[Path] = None, key_path: Optional[Path] = None):
        self.path = path or DEFAULT_AUDIT_PATH
        self.key_path = key_path or DEFAULT_AUDIT_KEY_PATH
        ensure_private_dir(self.path.parent)
        ensure_private_file(self.path)
        self._key = load_audit_key(self.key_path)
        self._lock = threading.Lock()
        self._heads = {event.record_id: event.event_hash for event in self._iter_verified()}

    # ── Recording ─────────────────────────────────────────────────

    def record_created(self, record: Record) -> AuditEvent:
        return self._append(
            EventType.RECORD_CREATED,
            record.id,
            identity=record.owner,
            status=record.status,
            details={
                "artist": record.artist,
                "song_title": record.song_title,
                "token_amount": record.token_amount,
            },
        )

    def status_changed(self, record: Record, previous: RecordStatus) -> AuditEvent:
        return self._append(
            EventType.RECORD_STATUS_CHANGED,
            record.id,
            identity=record.owner,
            status=record.status,
            details={"previous": previous.value},
        )

    def index_append_failed(self, record: Record, reason: str) -> AuditEvent:
        return self._append(
            EventType.INDEX_APPEND_FAILED,
            record.id,
            identity=record.owner,
            status=record.status,
            success=False,
            reason=reason,
        )

    def reveal_granted(
        self, record: Record, identity: str, details: Optional[dict[str, Any]] = None
    ) -> AuditEvent:
        return self._append(
            EventType.REVEAL_GRANTED, record.id, identity=identity, details=details
        )

    def reveal_declined(self, record: Record, identity: str, reason: str) -> AuditEvent:
        return self._append(
            EventType.REVEAL_DECLINED, record.id, identity=identity, success=False, reason=reason
        )

    # ── Reading ───────────────────────────────────────────────────

    def events(
        self,
        record_id: Optional[str] = None,
        event_type: Optional[EventType] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Verified events, oldest first, optionally filtered."""
        matches = [
            event
            for event in self._iter_verified()
            if (record_id is None or event.record_id == record_id)
            and (event_type is None or event.event_type == event_type)
        ]
        return matches[-limit:] if limit > 0 else matches

    def status_history(self, record_id: str) -> list[RecordStatus]:
        """Statuses a record has been recorded in, in order."""
        return [
            event.status
            for event in self.events(record_id=record_id, limit=0)
            if event.status is not None
            and event.event_type in (EventType.RECORD_CREATED, EventType.RECORD_STATUS_CHANGED)
        ]

    def verify(self) -> tuple[bool, str]:
        try:
            count = sum(1 for _ in self._iter_verified())
        except AuditIntegrityError as exc:
            return False, str(exc)
        return True, f"{count} events verified"

    # ── Internals ─────────────────────────────────────────────────

    def _hash(self, payload: dict[str, Any], prev_hash: str) -> str:
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()
        return hmac.new(self._key, prev_hash.encode() + b"|" + canonical, hashlib.sha256).hexdigest()

    def _append(self, event_type: EventType, record_id: str, **fields: Any) -> AuditEvent:
        with self._lock:
            prev_hash = self._heads.get(record_id, "")
            draft = AuditEvent(
                event_type=event_type,
                record_id=record_id,
                timestamp=time.time(),
                prev_hash=prev_hash,
                **fields,
            )
            event = replace(draft, event_hash=self._hash(draft.payload(), prev_hash))
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(event.to_line() + "\n")
                f.flush()
                os.fsync(f.fileno())
            self._heads[record_id] = event.event_hash
        return event

    def _iter_verified(self) -> Iterator[AuditEvent]:
        heads: dict[str, str] = {}
        with open(self.path, encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    event = AuditEvent.from_line(line)
                except (KeyError, TypeError, ValueError) as exc:
                    raise AuditIntegrityError(line_number, f"unreadable entry ({exc})") from exc
                if event.prev_hash != heads.get(event.record_id, ""):
                    raise AuditIntegrityError(line_number, f"history of {event.record_id} out of order")
                expected = self._hash(event.payload(), event.prev_hash)
                if not hmac.compare_digest(expected, event.event_hash):
                    raise AuditIntegrityError(line_number, f"entry for {event.record_id} was altered")
                heads[event.record_id] = event.event_hash
                yield event
