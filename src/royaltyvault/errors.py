"""
RoyaltyVault error types.

Specific exceptions for different failure modes, enabling callers
to map each case to its own message (retry, abort, re-authorize, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .record import Record


class RoyaltyVaultError(Exception):
    """Base error for all RoyaltyVault operations."""


# Store errors
class StoreUnavailableError(RoyaltyVaultError):
    """Record store is not reachable, not initialized, or failed a call."""


class OrphanedRecordError(StoreUnavailableError):
    """Record was persisted but its id could not be appended to the index.

    The record is reachable by direct lookup only.
    """
    def __init__(self, record: "Record", message: str):
        self.record = record
        super().__init__(f"Record {record.id} persisted but not indexed: {message}")


class DeserializationError(RoyaltyVaultError):
    """Persisted bytes could not be parsed."""
    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message)


# Record errors
class RecordNotFoundError(RoyaltyVaultError):
    """Requested record id is absent from the store."""
    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class InvalidTransitionError(RoyaltyVaultError):
    """Requested status change is not a permitted forward transition."""
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Invalid status transition: {current} -> {requested}")


# Authorization errors
class AuthorizationDeclinedError(RoyaltyVaultError):
    """Signer refused or failed to authorize a decryption."""


class InvalidAuthorizationError(AuthorizationDeclinedError):
    """A signature was returned but does not prove the claimed identity."""


# Audit errors
class AuditIntegrityError(RoyaltyVaultError):
    """Audit log failed hash-chain verification or holds an unreadable entry."""
    def __init__(self, line_number: int, message: str):
        self.line_number = line_number
        super().__init__(f"Audit chain broken at line {line_number}: {message}")
