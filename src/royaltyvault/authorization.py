"""
Decryption authorization messages and signature checks.

The challenge message binds public key material, the ledger contract address,
the chain id, and a validity window. Field order and layout are fixed so that
independent implementations produce byte-identical messages for the same
inputs. Window expiry is not checked here; that belongs to whatever
infrastructure consumes the signed message.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount


DEFAULT_DURATION_DAYS = 30
PUBLIC_KEY_HEX_CHARS = 2000
SECONDS_PER_DAY = 86400

Verifier = Callable[[str, str, str], tuple[bool, str]]


@dataclass(frozen=True)
class AuthorizationParams:
    """Inputs to the authorization message."""

    public_key: str
    contract_address: str
    chain_id: int
    start_timestamp: int
    duration_days: int = DEFAULT_DURATION_DAYS

    @property
    def expires_at(self) -> int:
        return self.start_timestamp + self.duration_days * SECONDS_PER_DAY

    def message(self) -> str:
        return build_authorization_message(
            public_key=self.public_key,
            contract_address=self.contract_address,
            chain_id=self.chain_id,
            start_timestamp=self.start_timestamp,
            duration_days=self.duration_days,
        )


def build_authorization_message(
    *,
    public_key: str,
    contract_address: str,
    chain_id: int,
    start_timestamp: int,
    duration_days: int,
) -> str:
    return "\n".join(
        [
            f"publickey:{public_key}",
            f"contractAddresses:{contract_address}",
            f"contractsChainId:{int(chain_id)}",
            f"startTimestamp:{int(start_timestamp)}",
            f"durationDays:{int(duration_days)}",
        ]
    )


def generate_public_key() -> str:
    return "0x" + secrets.token_hex(PUBLIC_KEY_HEX_CHARS // 2)


def new_authorization_params(
    contract_address: str,
    chain_id: int,
    duration_days: int = DEFAULT_DURATION_DAYS,
    now: Optional[int] = None,
    public_key: Optional[str] = None,
) -> AuthorizationParams:
    """Open a fresh authorization window starting now."""
    if duration_days <= 0:
        raise ValueError("duration_days must be > 0")
    return AuthorizationParams(
        public_key=public_key or generate_public_key(),
        contract_address=contract_address,
        chain_id=int(chain_id),
        start_timestamp=int(time.time()) if now is None else int(now),
        duration_days=int(duration_days),
    )


class Signer(Protocol):
    """Signing capability bound to a single identity."""

    @property
    def address(self) -> str: ...

    def sign_message(self, message: str) -> str: ...


class AccountSigner:
    """EIP-191 personal-sign capability over a local account."""

    def __init__(self, account: LocalAccount):
        self._account = account

    @classmethod
    def from_key(cls, private_key: str) -> "AccountSigner":
        return cls(Account.from_key(private_key))

    @property
    def address(self) -> str:
        return self._account.address

    def sign_message(self, message: str) -> str:
        signed = self._account.sign_message(encode_defunct(text=message))
        return "0x" + _strip_0x(signed.signature.hex())

    def __repr__(self) -> str:
        return f"AccountSigner(address={self.address})"


def verify_authorization(message: str, signature: str, identity: str) -> tuple[bool, str]:
    """Check that ``signature`` is ``identity``'s EIP-191 signature over ``message``."""
    if not signature:
        return False, "Missing signature"
    try:
        recovered = Account.recover_message(
            encode_defunct(text=message),
            signature=bytes.fromhex(_strip_0x(signature)),
        )
    except Exception as exc:
        return False, f"Signature verification failed: {exc}"
    if recovered.lower() != identity.strip().lower():
        return False, f"Signer mismatch: expected {identity}, got {recovered}"
    return True, "Valid authorization"


def permissive_verifier(message: str, signature: str, identity: str) -> tuple[bool, str]:
    """Accept any non-empty signature without checking it."""
    if not signature:
        return False, "Missing signature"
    return True, "Signature present (not verified)"


def _strip_0x(value: str) -> str:
    return value[2:] if value.lower().startswith("0x") else value
