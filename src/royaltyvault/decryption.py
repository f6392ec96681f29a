"""Reveal a record's plaintext royalty value to an authorized signer."""

from __future__ import annotations

import logging
import math
from typing import Optional

from .audit import AuditTrail
from .authorization import AuthorizationParams, Signer, Verifier, verify_authorization
from .encoding import DEFAULT_TRANSFORM, EncodingTransform
from .errors import (
    AuthorizationDeclinedError,
    DeserializationError,
    InvalidAuthorizationError,
)
from .record import Record

logger = logging.getLogger(__name__)


class DecryptionFlow:
    """Obtain a signed authorization, check it, then decode.

    The default verifier recovers the signer from the signature. Pass
    ``permissive_verifier`` to accept any returned signature unchecked.
    """

    def __init__(
        self,
        transform: EncodingTransform = DEFAULT_TRANSFORM,
        verifier: Verifier = verify_authorization,
        audit: Optional[AuditTrail] = None,
    ):
        self.transform = transform
        self.verifier = verifier
        self.audit = audit

    def reveal(self, record: Record, signer: Signer, params: AuthorizationParams) -> float:
        message = params.message()
        identity = _signer_address(signer)

        try:
            signature = signer.sign_message(message)
        except Exception as exc:
            self._declined(record, identity, f"Signer failed: {exc}")
            raise AuthorizationDeclinedError(f"Authorization declined: {exc}") from exc
        if not signature:
            self._declined(record, identity, "Signer returned no signature")
            raise AuthorizationDeclinedError("Authorization declined: no signature")

        valid, reason = self.verifier(message, signature, identity)
        if not valid:
            self._declined(record, identity, reason)
            raise InvalidAuthorizationError(f"Authorization rejected: {reason}")

        value = self.transform.decode(record.encrypted_royalty_value)
        if math.isnan(value):
            raise DeserializationError(
                f"Encrypted value of record {record.id} could not be decoded",
                key=record.key,
            )

        logger.info("Reveal granted: %s (identity: %s)", record.id, identity)
        if self.audit is not None:
            self.audit.reveal_granted(
                record,
                identity,
                details={
                    "contract_address": params.contract_address,
                    "chain_id": params.chain_id,
                    "start_timestamp": params.start_timestamp,
                    "duration_days": params.duration_days,
                },
            )
        return value

    def _declined(self, record: Record, identity: str, reason: str) -> None:
        logger.warning("Reveal declined: %s (identity: %s): %s", record.id, identity, reason)
        if self.audit is not None:
            self.audit.reveal_declined(record, identity, reason)


def _signer_address(signer: Signer) -> str:
    try:
        return str(signer.address)
    except Exception as exc:
        raise AuthorizationDeclinedError(f"Signer has no identity: {exc}") from exc
