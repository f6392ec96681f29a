"""Tests for record wire format, keys, and status progression."""

import json
import re

import pytest

from royaltyvault.errors import DeserializationError
from royaltyvault.record import (
    Record,
    RecordStatus,
    can_transition,
    generate_record_id,
    parse_index,
    record_key,
)


def _wire(**overrides):
    data = {
        "artist": "Artist A",
        "songTitle": "Song B",
        "encryptedRoyaltyValue": "FHE-MTAwMA==",
        "tokenAmount": 50,
        "timestamp": 1_700_000_000,
        "owner": "0x1234567890123456789012345678901234567890",
        "status": "active",
    }
    data.update(overrides)
    return data


class TestRecordWire:
    def test_round_trip_through_bytes(self):
        record = Record.from_wire("royalty-1-abcd", _wire())
        raw = record.to_bytes()

        assert json.loads(raw.decode()) == _wire()
        assert Record.from_bytes("royalty-1-abcd", raw) == record
        assert record.descriptor == ("Artist A", "Song B")

    def test_missing_status_defaults_to_pending(self):
        data = _wire()
        del data["status"]
        assert Record.from_wire("r", data).status == RecordStatus.PENDING

    def test_missing_field_raises(self):
        data = _wire()
        del data["songTitle"]
        with pytest.raises(DeserializationError):
            Record.from_wire("r", data)

    @pytest.mark.parametrize("raw", [b"{not json", b"[1, 2]", b"\xff\xfe"])
    def test_malformed_bytes_raise(self, raw):
        with pytest.raises(DeserializationError):
            Record.from_bytes("r", raw)


class TestKeysAndIds:
    def test_record_key(self):
        assert record_key("royalty-1-abcd") == "token_royalty-1-abcd"
        with pytest.raises(ValueError):
            record_key("")

    def test_generated_id_format(self):
        record_id = generate_record_id(now_ms=1_700_000_000_123)
        assert re.fullmatch(r"royalty-1700000000123-[0-9a-z]{4}", record_id)


class TestIndexParsing:
    @pytest.mark.parametrize("raw", [b"", b"   ", b"\n\t"])
    def test_empty_content_is_empty_index(self, raw):
        assert parse_index(raw) == []

    def test_parses_id_list(self):
        assert parse_index(b'["a","b"]') == ["a", "b"]

    @pytest.mark.parametrize("raw", [b"{", b'{"a": 1}', b"[1, 2]"])
    def test_malformed_index_raises(self, raw):
        with pytest.raises(DeserializationError):
            parse_index(raw)


class TestStatusProgression:
    def test_only_pending_to_active(self):
        assert can_transition(RecordStatus.PENDING, RecordStatus.ACTIVE)
        assert not can_transition(RecordStatus.ACTIVE, RecordStatus.ACTIVE)
        assert not can_transition(RecordStatus.ACTIVE, RecordStatus.PENDING)
        assert not can_transition(RecordStatus.ACTIVE, RecordStatus.SOLD)
        assert not can_transition(RecordStatus.PENDING, RecordStatus.SOLD)
        assert not can_transition(RecordStatus.SOLD, RecordStatus.ACTIVE)
