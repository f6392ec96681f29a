"""
RoyaltyVault - encrypted music royalty records on a key-value ledger.

Valuations are stored encrypted; revealing one requires a wallet signature
over an authorization bound to the ledger, chain, and time window.
"""

__version__ = "0.1.0"

from .encoding import (
    DEFAULT_TRANSFORM,
    ENCRYPTED_TAG,
    EncodingTransform,
    TaggedBase64Transform,
    decode_amount,
    encode_amount,
)
from .record import INDEX_KEY, Record, RecordStatus, record_key
from .record_store import FileRecordStore, InMemoryRecordStore, RecordStore
from .registry import RecordRegistry, filter_records, is_owner
from .authorization import (
    AccountSigner,
    AuthorizationParams,
    build_authorization_message,
    new_authorization_params,
    permissive_verifier,
    verify_authorization,
)
from .decryption import DecryptionFlow
from .audit import AuditEvent, AuditTrail, EventType

__all__ = [
    "EncodingTransform", "TaggedBase64Transform", "DEFAULT_TRANSFORM", "ENCRYPTED_TAG",
    "encode_amount", "decode_amount",
    "Record", "RecordStatus", "INDEX_KEY", "record_key",
    "RecordStore", "InMemoryRecordStore", "FileRecordStore",
    "RecordRegistry", "filter_records", "is_owner",
    "AuthorizationParams", "AccountSigner", "build_authorization_message",
    "new_authorization_params", "verify_authorization", "permissive_verifier",
    "DecryptionFlow", "AuditTrail", "AuditEvent", "EventType",
]
