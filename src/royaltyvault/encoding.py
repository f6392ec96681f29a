"""
Reversible amount encoding.

Stands in for a real confidentiality backend. Any replacement must keep the
same contract: ``encode`` is deterministic and tags its output, ``decode``
accepts both tagged values and untagged legacy numeric text, and
``decode(encode(x)) == x`` for every finite amount.
"""

from __future__ import annotations

import base64
import binascii
import math
from decimal import Decimal
from typing import Protocol, Union


ENCRYPTED_TAG = "FHE-"

Amount = Union[int, float, Decimal]


class EncodingTransform(Protocol):
    def encode(self, plain: Amount) -> str: ...

    def decode(self, cipher: str) -> float: ...


class TaggedBase64Transform:
    """Reference transform: ``FHE-`` + base64 of the amount's decimal text."""

    tag = ENCRYPTED_TAG

    def encode(self, plain: Amount) -> str:
        payload = format_amount(plain).encode("ascii")
        return self.tag + base64.b64encode(payload).decode("ascii")

    def decode(self, cipher: str) -> float:
        """Decode to a float, or NaN when the input cannot be interpreted."""
        if not isinstance(cipher, str):
            return math.nan
        try:
            if self.is_tagged(cipher):
                raw = base64.b64decode(cipher[len(self.tag):], validate=True)
                return _parse_literal(raw.decode("ascii"))
            return _parse_literal(cipher)
        except (ValueError, binascii.Error, UnicodeDecodeError):
            return math.nan

    def is_tagged(self, cipher: str) -> bool:
        return cipher.startswith(self.tag)


def format_amount(value: Amount) -> str:
    """Render an amount as the shortest decimal text that parses back exactly."""
    if isinstance(value, bool):
        raise ValueError("Amount must be numeric, not bool")
    if not isinstance(value, (int, float, Decimal)):
        raise ValueError(f"Amount must be numeric, got {type(value).__name__}")
    try:
        as_float = float(value)
    except OverflowError:
        raise ValueError(f"Amount out of range: {value}") from None
    if not math.isfinite(as_float):
        raise ValueError(f"Amount must be finite, got {value}")
    # decode returns a float, so anything a float cannot hold exactly is refused
    exact = as_float == value if isinstance(value, int) else Decimal(as_float) == Decimal(value)
    if not exact:
        raise ValueError(f"Amount {value} is not exactly representable as a float")
    if as_float.is_integer() and abs(as_float) < 1e16:
        return str(int(as_float))
    return repr(as_float)


def _parse_literal(text: str) -> float:
    return float(text.strip())


DEFAULT_TRANSFORM = TaggedBase64Transform()


def encode_amount(plain: Amount) -> str:
    return DEFAULT_TRANSFORM.encode(plain)


def decode_amount(cipher: str) -> float:
    return DEFAULT_TRANSFORM.decode(cipher)
