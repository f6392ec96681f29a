"""
End-to-end demo: register, activate, and reveal a royalty record.

Runs against a throwaway file-backed ledger with fresh wallets.
"""

import sys
import tempfile
import time
from pathlib import Path

from eth_account import Account

sys.path.insert(0, "../src")
from royaltyvault import (
    AccountSigner,
    DecryptionFlow,
    FileRecordStore,
    RecordRegistry,
    new_authorization_params,
)
from royaltyvault.errors import AuthorizationDeclinedError


CONTRACT_ADDRESS = "0x0000000000000000000000000000000000000001"
CHAIN_ID = 11155111


class RefusingSigner:
    def __init__(self, address: str):
        self.address = address

    def sign_message(self, message: str) -> str:
        raise RuntimeError("User rejected the request")


def main():
    print("🎵 RoyaltyVault demo: encrypted royalty records")
    print("=" * 50)
    print()

    workdir = Path(tempfile.mkdtemp(prefix="royaltyvault-"))
    registry = RecordRegistry(FileRecordStore(workdir / "ledger.json"))
    flow = DecryptionFlow()
    artist = Account.create()

    print("1️⃣  Registering royalty valuation...")
    record = registry.create("Artist A", "Song B", 1000, 50, artist.address)
    print(f"   ✅ {record.id}")
    print(f"   Stored value: {record.encrypted_royalty_value}")
    print()

    print("2️⃣  Activating record...")
    record = registry.activate(record.id)
    print(f"   ✅ Status: {record.status.value}")
    print()

    print("3️⃣  Revealing with a signed authorization...")
    params = new_authorization_params(CONTRACT_ADDRESS, CHAIN_ID, now=int(time.time()))
    value = flow.reveal(record, AccountSigner(artist), params)
    print(f"   ✅ Royalty value: ${value:,.2f}")
    print()

    print("4️⃣  Revealing with a refused signature...")
    try:
        flow.reveal(record, RefusingSigner(artist.address), params)
    except AuthorizationDeclinedError as exc:
        print(f"   ✅ Declined as expected: {exc}")
    print()

    print(f"Ledger state: {workdir / 'ledger.json'}")


if __name__ == "__main__":
    main()
