"""
Record registry on top of a key-value ledger.

Keeps an append-only index of record ids under ``token_keys`` and one JSON
record per id under ``token_<id>``. The store offers no multi-key
transactions, so ``create`` writes the record first and the index second; a
failure between the two leaves the record reachable by id only.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Iterable, Optional, Union

from .audit import AuditTrail
from .encoding import Amount, DEFAULT_TRANSFORM, EncodingTransform
from .errors import (
    DeserializationError,
    InvalidTransitionError,
    OrphanedRecordError,
    RecordNotFoundError,
    StoreUnavailableError,
)
from .record import (
    INDEX_KEY,
    Record,
    RecordStatus,
    can_transition,
    dump_json_bytes,
    generate_record_id,
    parse_index,
    parse_record_mapping,
    record_key,
    validate_owner,
)
from .record_store import RecordStore

logger = logging.getLogger(__name__)


class RecordRegistry:
    """CRUD and enumeration of royalty records held in a :class:`RecordStore`."""

    def __init__(
        self,
        store: RecordStore,
        transform: EncodingTransform = DEFAULT_TRANSFORM,
        audit: Optional[AuditTrail] = None,
    ):
        self.store = store
        self.transform = transform
        self.audit = audit
        self._index_lock = threading.Lock()

    # ── Reads ─────────────────────────────────────────────────────

    def list_ids(self) -> list[str]:
        """Return indexed ids in append order. Never raises."""
        try:
            if not self.store.is_available():
                logger.warning("Record store unavailable; index treated as empty")
                return []
            raw = self.store.get(INDEX_KEY)
        except Exception:
            logger.exception("Failed to read record index")
            return []
        try:
            return parse_index(raw)
        except DeserializationError as exc:
            logger.warning("Ignoring malformed record index: %s", exc)
            return []

    def load_all(self) -> list[Record]:
        """Load every indexed record, newest first. Bad entries are skipped."""
        records: list[Record] = []
        for record_id in self.list_ids():
            try:
                raw = self.store.get(record_key(record_id))
            except Exception:
                logger.exception("Failed to load record %s", record_id)
                continue
            if not raw:
                logger.warning("Indexed record %s has no data; skipping", record_id)
                continue
            try:
                records.append(Record.from_bytes(record_id, raw))
            except DeserializationError as exc:
                logger.warning("Skipping malformed record %s: %s", record_id, exc)
        # sort() is stable, so equal timestamps keep index order
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records

    def get(self, record_id: str) -> Record:
        """Direct lookup by id, independent of the index."""
        return Record.from_wire(record_id, self._read_mapping(record_id))

    # ── Writes ────────────────────────────────────────────────────

    def create(
        self,
        artist: str,
        song_title: str,
        royalty_value: Amount,
        token_amount: int,
        owner: str,
    ) -> Record:
        """Encrypt the royalty value, persist a pending record, and index it."""
        if isinstance(token_amount, bool) or not isinstance(token_amount, int):
            raise ValueError("token_amount must be an integer")
        if token_amount < 0:
            raise ValueError("token_amount must be >= 0")
        owner = validate_owner(owner)
        encrypted = self.transform.encode(royalty_value)

        self._require_available()
        record = Record(
            id=generate_record_id(),
            owner=owner,
            artist=artist,
            song_title=song_title,
            encrypted_royalty_value=encrypted,
            token_amount=token_amount,
            timestamp=int(time.time()),
            status=RecordStatus.PENDING,
        )

        with self._index_lock:
            # Read the index before writing anything so a corrupt index is
            # reported instead of being overwritten with a single id.
            ids = parse_index(self._store_get(INDEX_KEY))
            self._store_set(record.key, record.to_bytes())
            ids.append(record.id)
            try:
                self.store.set(INDEX_KEY, dump_json_bytes(ids))
            except Exception as exc:
                logger.error("Record %s persisted but index append failed: %s", record.id, exc)
                if self.audit is not None:
                    self.audit.index_append_failed(record, str(exc))
                raise OrphanedRecordError(record, str(exc)) from exc

        logger.info(
            "Record created: %s (owner: %s, tokens: %d)", record.id, owner, token_amount
        )
        if self.audit is not None:
            self.audit.record_created(record)
        return record

    def set_status(self, record_id: str, new_status: Union[RecordStatus, str]) -> Record:
        """Advance a record's status, copying every other stored field verbatim."""
        try:
            requested = RecordStatus(new_status)
        except ValueError:
            raise InvalidTransitionError("unknown", str(new_status)) from None

        data = self._read_mapping(record_id)
        current = Record.from_wire(record_id, data)
        if not can_transition(current.status, requested):
            raise InvalidTransitionError(current.status.value, requested.value)

        updated = dict(data)
        updated["status"] = requested.value
        self._store_set(record_key(record_id), dump_json_bytes(updated))

        logger.info(
            "Record %s status: %s -> %s", record_id, current.status.value, requested.value
        )
        result = Record.from_wire(record_id, updated)
        if self.audit is not None:
            self.audit.status_changed(result, previous=current.status)
        return result

    def activate(self, record_id: str) -> Record:
        return self.set_status(record_id, RecordStatus.ACTIVE)

    # ── Internals ─────────────────────────────────────────────────

    def _require_available(self) -> None:
        try:
            available = self.store.is_available()
        except Exception as exc:
            raise StoreUnavailableError(f"Record store probe failed: {exc}") from exc
        if not available:
            raise StoreUnavailableError("Record store is not available")

    def _store_get(self, key: str) -> bytes:
        try:
            return self.store.get(key) or b""
        except Exception as exc:
            raise StoreUnavailableError(f"Failed to read {key}: {exc}") from exc

    def _store_set(self, key: str, value: bytes) -> None:
        try:
            self.store.set(key, value)
        except Exception as exc:
            raise StoreUnavailableError(f"Failed to write {key}: {exc}") from exc

    def _read_mapping(self, record_id: str) -> dict:
        self._require_available()
        raw = self._store_get(record_key(record_id))
        if not raw:
            raise RecordNotFoundError(record_id)
        return parse_record_mapping(record_id, raw)


def filter_records(
    records: Iterable[Record],
    search: str = "",
    status: Union[RecordStatus, str, None] = None,
) -> list[Record]:
    """Case-insensitive artist/title search plus an optional status filter."""
    needle = search.strip().lower()
    wanted = None if status in (None, "", "all") else RecordStatus(status)
    matches = []
    for record in records:
        if needle and needle not in record.artist.lower() and needle not in record.song_title.lower():
            continue
        if wanted is not None and record.status != wanted:
            continue
        matches.append(record)
    return matches


def is_owner(record: Record, identity: Optional[str]) -> bool:
    if not identity or not record.owner:
        return False
    return record.owner.lower() == identity.strip().lower()
