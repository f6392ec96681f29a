"""Tests for the reversible amount encoding."""

import base64
from decimal import Decimal
import math

import pytest

from royaltyvault.encoding import (
    ENCRYPTED_TAG,
    TaggedBase64Transform,
    decode_amount,
    encode_amount,
    format_amount,
)


class TestEncode:
    def test_tagged_and_deterministic(self):
        first = encode_amount(1000)
        assert first.startswith(ENCRYPTED_TAG)
        assert first == encode_amount(1000)

    def test_integral_values_match_historical_payload(self):
        assert encode_amount(1000) == "FHE-" + base64.b64encode(b"1000").decode()
        assert encode_amount(1000.0) == encode_amount(1000)

    @pytest.mark.parametrize(
        "bad",
        [math.nan, math.inf, -math.inf, True, "12", 2**53 + 1, 10**400, Decimal("0.1"), Decimal("NaN")],
    )
    def test_rejects_non_finite_and_non_numeric(self, bad):
        with pytest.raises(ValueError):
            encode_amount(bad)

    @pytest.mark.parametrize("value", [2**53, -(2**60), Decimal("1000"), Decimal("0.5")])
    def test_accepts_exactly_representable_amounts(self, value):
        assert decode_amount(encode_amount(value)) == value


class TestDecode:
    @pytest.mark.parametrize(
        "value",
        [0, 1, -7, 1000, 0.1, 1234.5678, -0.000123, 1e-9, 2.5e20, 123456789012345],
    )
    def test_round_trip(self, value):
        assert decode_amount(encode_amount(value)) == value

    def test_untagged_literal_is_parsed_directly(self):
        assert decode_amount("1500") == 1500.0
        assert decode_amount(" 42.5 ") == 42.5

    def test_tagged_and_literal_paths_agree(self):
        cipher = encode_amount(987.25)
        payload = base64.b64decode(cipher[len(ENCRYPTED_TAG):]).decode()
        assert decode_amount(payload) == decode_amount(cipher)

    @pytest.mark.parametrize("bad", ["", "not a number", "FHE-", "FHE-***", "FHE-" + base64.b64encode(b"abc").decode()])
    def test_malformed_input_returns_nan(self, bad):
        assert math.isnan(decode_amount(bad))

    def test_non_string_returns_nan(self):
        assert math.isnan(TaggedBase64Transform().decode(None))


def test_format_amount_shortest_text():
    assert format_amount(50) == "50"
    assert format_amount(50.0) == "50"
    assert format_amount(0.1) == "0.1"
