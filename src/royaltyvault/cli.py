"""
RoyaltyVault CLI - encrypted royalty records on a key-value ledger.

Commands:
    royaltyvault create     Register a royalty valuation (encrypted)
    royaltyvault list       List records, newest first
    royaltyvault activate   Move an owned record from pending to active
    royaltyvault reveal     Sign an authorization and reveal a value
    royaltyvault message    Print the authorization message to sign
    royaltyvault audit      View audit trail
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
from pathlib import Path
from typing import NoReturn, Optional

import click
from click.core import ParameterSource
from eth_account import Account

from .audit import AuditTrail, EventType
from .authorization import (
    DEFAULT_DURATION_DAYS,
    AccountSigner,
    build_authorization_message,
    new_authorization_params,
)
from .decryption import DecryptionFlow
from .errors import (
    AuthorizationDeclinedError,
    DeserializationError,
    InvalidTransitionError,
    OrphanedRecordError,
    RecordNotFoundError,
    RoyaltyVaultError,
    StoreUnavailableError,
)
from .record import RecordStatus
from .record_store import FileRecordStore
from .registry import RecordRegistry, filter_records, is_owner


# ── Configuration ─────────────────────────────────────────────────

DEFAULT_CONTRACT_ADDRESS = "0x0000000000000000000000000000000000000001"
DEFAULT_CHAIN_ID = 11155111

STORE_PATH_ENV = "ROYALTYVAULT_STORE_PATH"
CONTRACT_ADDRESS_ENV = "ROYALTYVAULT_CONTRACT_ADDRESS"
CHAIN_ID_ENV = "ROYALTYVAULT_CHAIN_ID"


def _store() -> FileRecordStore:
    override_path = os.getenv(STORE_PATH_ENV)
    return FileRecordStore(Path(override_path) if override_path else None)


def _audit_trail() -> AuditTrail:
    try:
        return AuditTrail()
    except RoyaltyVaultError as exc:
        _fail(exc)


def _registry(audit: Optional[AuditTrail] = None) -> RecordRegistry:
    return RecordRegistry(_store(), audit=audit)


def _resolve_private_key(key_input: str) -> str:
    candidate = key_input.strip()
    if candidate.startswith("op://"):
        result = subprocess.run(
            ["op", "read", candidate],
            capture_output=True,
            text=True,
            timeout=10,
        )
        if result.returncode != 0:
            raise RuntimeError(f"Failed to read key from 1Password reference: {result.stderr.strip()}")
        candidate = result.stdout.strip()

    if candidate.startswith("0x"):
        candidate = candidate[2:]
    if len(candidate) != 64:
        raise ValueError("Private key must be a 32-byte hex string or valid op:// reference")
    int(candidate, 16)
    return "0x" + candidate


def _refuse_key_from_argv(param_name: str, flag: str, unsafe_allow_key_arg: bool) -> None:
    ctx = click.get_current_context(silent=True)
    key_from_argv = (
        ctx is not None
        and ctx.get_parameter_source(param_name) == ParameterSource.COMMANDLINE
    )
    if key_from_argv and not unsafe_allow_key_arg:
        click.echo(
            f"❌ Refusing {flag} from argv. Re-run with prompt input or pass "
            "--unsafe-allow-key-arg to acknowledge the risk.",
            err=True,
        )
        sys.exit(1)


def _load_account(key_input: str):
    try:
        return Account.from_key(_resolve_private_key(key_input))
    except Exception as exc:
        click.echo(f"❌ Invalid key: {exc}", err=True)
        sys.exit(1)


def _fail(exc: RoyaltyVaultError) -> NoReturn:
    if isinstance(exc, OrphanedRecordError):
        message = f"Record saved but not listed (index update failed): {exc.record.id}"
    elif isinstance(exc, StoreUnavailableError):
        message = f"Ledger unavailable: {exc}"
    elif isinstance(exc, RecordNotFoundError):
        message = f"Record not found: {exc.record_id}"
    elif isinstance(exc, InvalidTransitionError):
        message = f"Status change not allowed: {exc.current} -> {exc.requested}"
    elif isinstance(exc, AuthorizationDeclinedError):
        message = f"Authorization declined: {exc}"
    elif isinstance(exc, DeserializationError):
        message = f"Stored data is malformed: {exc}"
    else:
        message = str(exc)
    click.echo(f"❌ {message}", err=True)
    sys.exit(1)


def _key_options(fn):
    fn = click.option(
        "--unsafe-allow-key-arg",
        is_flag=True,
        default=False,
        help="Allow passing --key via argv (unsafe; can leak in shell/process history).",
    )(fn)
    fn = click.option("--key", prompt=True, hide_input=True,
                      help="Wallet private key hex or op:// reference")(fn)
    return fn


# ── CLI ───────────────────────────────────────────────────────────

@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
def main(verbose: bool):
    """RoyaltyVault - encrypted music royalty records."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@main.command()
@_key_options
@click.option("--artist", prompt=True, help="Artist name")
@click.option("--song-title", prompt=True, help="Song title")
@click.option("--royalty-value", type=float, prompt=True, help="Royalty valuation to encrypt")
@click.option("--token-amount", type=click.IntRange(min=0), prompt=True,
              help="Number of royalty tokens")
def create(
    key: str,
    unsafe_allow_key_arg: bool,
    artist: str,
    song_title: str,
    royalty_value: float,
    token_amount: int,
):
    """Encrypt a royalty valuation and register it."""
    _refuse_key_from_argv("key", "--key", unsafe_allow_key_arg)
    account = _load_account(key)
    registry = _registry(_audit_trail())

    try:
        record = registry.create(
            artist=artist,
            song_title=song_title,
            royalty_value=royalty_value,
            token_amount=token_amount,
            owner=account.address,
        )
    except RoyaltyVaultError as exc:
        _fail(exc)
    except ValueError as exc:
        click.echo(f"❌ Failed to create record: {exc}", err=True)
        sys.exit(1)

    click.echo(f"✅ Record created: {record.id}")
    click.echo(f"   Work:      {record.artist} - {record.song_title}")
    click.echo(f"   Tokens:    {record.token_amount}")
    click.echo(f"   Encrypted: {record.encrypted_royalty_value[:30]}...")
    click.echo(f"   Status:    {record.status.value}")


@main.command("list")
@click.option(
    "--status",
    type=click.Choice(["all"] + [s.value for s in RecordStatus], case_sensitive=False),
    default="all",
    help="Only show records with this status",
)
@click.option("--search", default="", help="Filter by artist or song title")
def list_records(status: str, search: str):
    """List records, newest first."""
    records = filter_records(_registry().load_all(), search=search, status=status.lower())
    if not records:
        click.echo("No royalty records found.")
        return

    click.echo(f"{'ID':<32} {'Status':<8} {'Tokens':>8}  {'Created':<16}  Work")
    click.echo("─" * 90)
    for record in records:
        created = time.strftime("%Y-%m-%d %H:%M", time.localtime(record.timestamp))
        click.echo(
            f"{record.id:<32} {record.status.value:<8} {record.token_amount:>8}  "
            f"{created:<16}  {record.artist} - {record.song_title}"
        )


@main.command()
@click.argument("record_id")
@_key_options
def activate(record_id: str, key: str, unsafe_allow_key_arg: bool):
    """Activate a pending record you own."""
    _refuse_key_from_argv("key", "--key", unsafe_allow_key_arg)
    account = _load_account(key)
    registry = _registry(_audit_trail())

    try:
        record = registry.get(record_id)
        if not is_owner(record, account.address):
            click.echo(f"❌ Only the owner ({record.owner}) can activate {record_id}", err=True)
            sys.exit(1)
        record = registry.activate(record_id)
    except RoyaltyVaultError as exc:
        _fail(exc)

    click.echo(f"✅ Record activated: {record.id}")


@main.command()
@click.argument("record_id")
@_key_options
@click.option(
    "--contract-address",
    default=lambda: os.getenv(CONTRACT_ADDRESS_ENV, DEFAULT_CONTRACT_ADDRESS),
    show_default=f"env {CONTRACT_ADDRESS_ENV} or placeholder address",
    help="Ledger contract address bound into the authorization",
)
@click.option(
    "--chain-id",
    type=int,
    default=lambda: int(os.getenv(CHAIN_ID_ENV, str(DEFAULT_CHAIN_ID))),
    show_default=f"env {CHAIN_ID_ENV} or {DEFAULT_CHAIN_ID}",
    help="Chain id bound into the authorization",
)
@click.option("--duration-days", type=click.IntRange(min=1), default=DEFAULT_DURATION_DAYS,
              help="Authorization window length in days")
def reveal(
    record_id: str,
    key: str,
    unsafe_allow_key_arg: bool,
    contract_address: str,
    chain_id: int,
    duration_days: int,
):
    """Sign an authorization and reveal a record's royalty value."""
    _refuse_key_from_argv("key", "--key", unsafe_allow_key_arg)
    signer = AccountSigner(_load_account(key))
    audit = _audit_trail()
    registry = _registry(audit)
    flow = DecryptionFlow(audit=audit)
    params = new_authorization_params(contract_address, chain_id, duration_days=duration_days)

    try:
        record = registry.get(record_id)
        value = flow.reveal(record, signer, params)
    except RoyaltyVaultError as exc:
        _fail(exc)

    click.echo(f"🔓 {record.artist} - {record.song_title}")
    click.echo(f"   Royalty value: ${value:,.2f}")
    click.echo(f"   Authorized by: {signer.address}")


@main.command()
@click.option("--public-key", required=True, help="Public key material")
@click.option("--contract-address", required=True, help="Ledger contract address")
@click.option("--chain-id", type=int, required=True, help="Chain id")
@click.option("--start-timestamp", type=int, default=None,
              help="Window start (unix seconds, default: now)")
@click.option("--duration-days", type=click.IntRange(min=1), default=DEFAULT_DURATION_DAYS,
              help="Window length in days")
def message(
    public_key: str,
    contract_address: str,
    chain_id: int,
    start_timestamp: Optional[int],
    duration_days: int,
):
    """Print the canonical authorization message."""
    click.echo(
        build_authorization_message(
            public_key=public_key,
            contract_address=contract_address,
            chain_id=chain_id,
            start_timestamp=int(time.time()) if start_timestamp is None else start_timestamp,
            duration_days=duration_days,
        )
    )


@main.command()
@click.option("--record-id", default=None, help="Filter by record ID")
@click.option(
    "--event-type",
    type=click.Choice([e.value for e in EventType]),
    default=None,
    help="Filter by event type",
)
@click.option("--limit", default=20, help="Number of events to show")
def audit(record_id: Optional[str], event_type: Optional[str], limit: int):
    """View the audit trail."""
    trail = _audit_trail()
    try:
        events = trail.events(
            record_id=record_id,
            event_type=EventType(event_type) if event_type else None,
            limit=limit,
        )
    except RoyaltyVaultError as exc:
        _fail(exc)

    if not events:
        click.echo("No audit events found.")
        return

    for event in events:
        ts = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(event.timestamp))
        status = "✅" if event.success else "❌"
        line = f"{status} [{ts}] {event.event_type.value}  {event.record_id}"
        if event.status is not None:
            line += f"  -> {event.status.value}"
        if event.reason:
            line += f"  ({event.reason})"
        click.echo(line)

    failures = sum(1 for event in events if not event.success)
    click.echo(f"\n{len(events)} events shown, {failures} failures")


if __name__ == "__main__":
    main()
