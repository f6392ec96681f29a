"""CLI tests: key handling, record lifecycle, and error mapping."""

from click.testing import CliRunner
from eth_account import Account
import pytest

import royaltyvault.audit as audit_module
import royaltyvault.record_store as record_store_module
from royaltyvault.cli import STORE_PATH_ENV, main


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path, monkeypatch):
    monkeypatch.setenv(STORE_PATH_ENV, str(tmp_path / "ledger" / "state.json"))
    monkeypatch.setattr(audit_module, "DEFAULT_AUDIT_PATH", tmp_path / "audit.jsonl")
    monkeypatch.setattr(audit_module, "DEFAULT_AUDIT_KEY_PATH", tmp_path / "secret" / "hmac.key")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def owner():
    return Account.create()


def _create(runner, owner, artist="Artist A", title="Song B"):
    result = runner.invoke(
        main,
        [
            "create",
            "--artist", artist,
            "--song-title", title,
            "--royalty-value", "1000",
            "--token-amount", "50",
        ],
        input=owner.key.hex() + "\n",
    )
    assert result.exit_code == 0, result.output
    line = next(l for l in result.output.splitlines() if "Record created:" in l)
    return line.split("Record created:")[1].strip()


def test_create_rejects_raw_key_on_argv(runner, owner):
    result = runner.invoke(
        main,
        [
            "create",
            "--key", owner.key.hex(),
            "--artist", "A",
            "--song-title", "S",
            "--royalty-value", "1",
            "--token-amount", "1",
        ],
    )

    assert result.exit_code != 0
    assert "Refusing --key from argv" in result.output


def test_create_list_activate_reveal(runner, owner):
    record_id = _create(runner, owner)

    listed = runner.invoke(main, ["list"])
    assert listed.exit_code == 0
    assert record_id in listed.output
    assert "pending" in listed.output

    activated = runner.invoke(main, ["activate", record_id], input=owner.key.hex() + "\n")
    assert activated.exit_code == 0, activated.output

    active_only = runner.invoke(main, ["list", "--status", "active"])
    assert record_id in active_only.output

    revealed = runner.invoke(main, ["reveal", record_id], input=owner.key.hex() + "\n")
    assert revealed.exit_code == 0, revealed.output
    assert "$1,000.00" in revealed.output


def test_activate_twice_reports_invalid_transition(runner, owner):
    record_id = _create(runner, owner)
    runner.invoke(main, ["activate", record_id], input=owner.key.hex() + "\n")

    again = runner.invoke(main, ["activate", record_id], input=owner.key.hex() + "\n")
    assert again.exit_code == 1
    assert "Status change not allowed: active -> active" in again.output


def test_activate_requires_owner(runner, owner):
    record_id = _create(runner, owner)
    stranger = Account.create()

    result = runner.invoke(main, ["activate", record_id], input=stranger.key.hex() + "\n")
    assert result.exit_code == 1
    assert "Only the owner" in result.output


def test_unknown_record(runner, owner):
    result = runner.invoke(main, ["reveal", "royalty-0-none"], input=owner.key.hex() + "\n")
    assert result.exit_code == 1
    assert "Record not found: royalty-0-none" in result.output


def test_list_search(runner, owner):
    _create(runner, owner, artist="Nina Simone", title="Feeling Good")
    _create(runner, owner, artist="Miles Davis", title="So What")

    result = runner.invoke(main, ["list", "--search", "miles"])
    assert "So What" in result.output
    assert "Feeling Good" not in result.output


def test_message_command():
    result = CliRunner().invoke(
        main,
        [
            "message",
            "--public-key", "0xabc",
            "--contract-address", "0x0000000000000000000000000000000000000001",
            "--chain-id", "1",
            "--start-timestamp", "1700000000",
            "--duration-days", "7",
        ],
    )
    assert result.exit_code == 0
    assert result.output.splitlines() == [
        "publickey:0xabc",
        "contractAddresses:0x0000000000000000000000000000000000000001",
        "contractsChainId:1",
        "startTimestamp:1700000000",
        "durationDays:7",
    ]


def test_audit_command(runner, owner):
    _create(runner, owner)

    result = runner.invoke(main, ["audit"])
    assert result.exit_code == 0
    assert "record_created" in result.output


def test_store_defaults_to_record_store_path(runner, owner, tmp_path, monkeypatch):
    monkeypatch.delenv(STORE_PATH_ENV)
    default_path = tmp_path / "home" / "ledger_state.json"
    monkeypatch.setattr(record_store_module, "DEFAULT_STORE_PATH", default_path)

    record_id = _create(runner, owner)

    assert record_id in default_path.read_text()
    assert not (tmp_path / "ledger" / "state.json").exists()


def test_audit_command_reports_tampered_log(runner, owner, tmp_path):
    _create(runner, owner)
    log = tmp_path / "audit.jsonl"
    log.write_text(log.read_text().replace('"status":"pending"', '"status":"active"'))

    result = runner.invoke(main, ["audit"])

    assert result.exit_code == 1
    assert "Audit chain broken at line 1" in result.output
