# tests/test_cli.py
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from cipherledger.cli.main import app, store_path
from cipherledger.core.types import MessageRecord

runner = CliRunner()


@pytest.fixture
def store(tmp_path: Path) -> Path:
    return tmp_path / "messages.json"


@pytest.fixture
def keys_dir(tmp_path: Path) -> Path:
    return tmp_path / "keys"


@pytest.fixture
def populated_store(store: Path, keys_dir: Path) -> Path:
    """Store with 2 records: one signed, one unsigned."""
    result = runner.invoke(
        app,
        ["send", "--store", str(store), "--keys-dir", str(keys_dir)],
        input="Alice\nBob\ny\nhi\ny\nBob\nAlice\nn\nhowdy\nn\n",
    )
    assert result.exit_code == 0, result.stdout
    return store


def test_store_path_strips_scheme():
    assert store_path("json:///tmp/a.json") == Path("/tmp/a.json")
    assert store_path("sqlite://records.db") == Path("records.db")
    assert store_path("messages.json") == Path("messages.json")


def test_send_single_message(store: Path, keys_dir: Path):
    result = runner.invoke(
        app,
        ["send", "--store", str(store), "--keys-dir", str(keys_dir)],
        input="Alice\nBob\ny\nhi\nn\n",
    )
    assert result.exit_code == 0, result.stdout
    assert "Decrypted Message: hi" in result.stdout
    assert "Saved 1 record(s)" in result.stdout

    data = json.loads(store.read_text(encoding="utf-8"))
    assert len(data) == 1
    assert data[0]["sender"] == "alice"
    assert data[0]["recipient"] == "bob"
    assert data[0]["decryptedMessage"] == "hi"
    assert data[0]["signature"]
    assert data[0]["blockIndex"] == 1

    assert (keys_dir / "alice" / "privateKey.pem").exists()
    assert (keys_dir / "bob" / "publicKey.pem").exists()


def test_send_resumes_existing_chain(populated_store: Path, keys_dir: Path):
    result = runner.invoke(
        app,
        ["send", "--store", str(populated_store), "--keys-dir", str(keys_dir)],
        input="carol\nalice\ny\nthird\nn\n",
    )
    assert result.exit_code == 0, result.stdout

    records = [MessageRecord.from_dict(d) for d in json.loads(populated_store.read_text(encoding="utf-8"))]
    assert [r.block_index for r in records] == [1, 2, 3]
    assert records[2].previous_block_hash == records[1].block_hash


def test_send_without_self_check_or_key_files(store: Path, keys_dir: Path):
    result = runner.invoke(
        app,
        ["send", "--store", str(store), "--keys-dir", str(keys_dir), "--no-self-check", "--no-save-keys"],
        input="Alice\nBob\nn\nquiet\nn\n",
    )
    assert result.exit_code == 0, result.stdout
    data = json.loads(store.read_text(encoding="utf-8"))
    assert data[0]["decryptedMessage"] is None
    assert data[0]["signature"] is None
    assert not keys_dir.exists()


def test_send_too_long_message_fails(store: Path, keys_dir: Path):
    result = runner.invoke(
        app,
        ["send", "--store", str(store), "--keys-dir", str(keys_dir)],
        input=f"Alice\nBob\ny\n{'x' * 191}\nn\n",
    )
    assert result.exit_code == 1
    assert "too long" in result.stdout.lower()
    assert not store.exists()


def test_send_with_miner_shows_balances(store: Path, keys_dir: Path):
    result = runner.invoke(
        app,
        ["send", "--store", str(store), "--keys-dir", str(keys_dir), "--miner", "Miner"],
        input="Alice\nBob\ny\npay\nn\n",
    )
    assert result.exit_code == 0, result.stdout
    assert "Balances" in result.stdout
    assert "miner" in result.stdout
    assert "100" in result.stdout
    assert "-1" in result.stdout


def test_send_refuses_tampered_store(populated_store: Path, keys_dir: Path):
    data = json.loads(populated_store.read_text(encoding="utf-8"))
    data[0]["decryptedMessage"] = "HACKED"
    populated_store.write_text(json.dumps(data), encoding="utf-8")

    result = runner.invoke(
        app,
        ["send", "--store", str(populated_store), "--keys-dir", str(keys_dir)],
        input="Alice\nBob\ny\nhi\nn\n",
    )
    assert result.exit_code == 1
    assert "cannot resume ledger" in result.stdout.lower()


def test_records_no_store(store: Path):
    result = runner.invoke(app, ["records", "--store", str(store)])
    assert result.exit_code == 1
    assert "not found" in result.stdout.lower()
    assert "to get started" in result.stdout.lower()


def test_records_shows_content(populated_store: Path):
    result = runner.invoke(app, ["records", "--store", str(populated_store), "--limit", "5"])
    assert result.exit_code == 0
    assert "alice" in result.stdout
    assert "bob" in result.stdout
    assert "hi" in result.stdout
    assert "howdy" in result.stdout


def test_records_empty_store(store: Path):
    store.write_text("[]", encoding="utf-8")
    result = runner.invoke(app, ["records", "--store", str(store)])
    assert result.exit_code == 0
    assert "no records found" in result.stdout.lower()


def test_verify_with_keys(populated_store: Path, keys_dir: Path):
    result = runner.invoke(app, ["verify", "--store", str(populated_store), "--keys-dir", str(keys_dir)])
    assert result.exit_code == 0, result.stdout
    assert "valid" in result.stdout.lower()
    assert "warning" not in result.stdout.lower()


def test_verify_without_keys_warns(populated_store: Path, tmp_path: Path):
    result = runner.invoke(app, ["verify", "--store", str(populated_store), "--keys-dir", str(tmp_path / "empty")])
    assert result.exit_code == 0, result.stdout
    assert "key rotation checks skipped" in result.stdout.lower()


def test_verify_detects_tampering(populated_store: Path, keys_dir: Path):
    data = json.loads(populated_store.read_text(encoding="utf-8"))
    data[1]["recipient"] = "mallory"
    populated_store.write_text(json.dumps(data), encoding="utf-8")

    result = runner.invoke(app, ["verify", "--store", str(populated_store), "--keys-dir", str(keys_dir)])
    assert result.exit_code == 1
    assert "verification failed" in result.stdout.lower()
    assert "[2] hash" in result.stdout


def test_export_creates_jsonl(populated_store: Path, tmp_path: Path):
    output_file = tmp_path / "export-test.jsonl"

    result = runner.invoke(app, ["export", "--store", str(populated_store), "--output", str(output_file)])

    assert result.exit_code == 0
    assert "Exported 2 records" in result.stdout
    with open(output_file, "r", encoding="utf-8") as f:
        lines = f.readlines()
    assert len(lines) == 2
    for line in lines:
        assert json.loads(line)["encryptedMessage"]


def send_one(store: Path, keys_dir: Path, message: str):
    return runner.invoke(
        app,
        ["send", "--store", str(store), "--keys-dir", str(keys_dir)],
        input=f"Alice\nBob\ny\n{message}\nn\n",
    )


def test_verify_after_sender_sends_in_two_runs(store: Path, keys_dir: Path):
    assert send_one(store, keys_dir, "first run").exit_code == 0
    assert send_one(store, keys_dir, "second run").exit_code == 0

    result = runner.invoke(app, ["verify", "--store", str(store), "--keys-dir", str(keys_dir)])
    assert result.exit_code == 0, result.stdout
    assert "Ledger of 2 record(s) is valid" in result.stdout
    assert "key_rotated" in result.stdout


def test_verify_catches_forged_signature_without_keys(populated_store: Path, tmp_path: Path):
    data = json.loads(populated_store.read_text(encoding="utf-8"))
    data[0]["signature"] = data[0]["signature"][::-1]
    populated_store.write_text(json.dumps(data), encoding="utf-8")

    result = runner.invoke(app, ["verify", "--store", str(populated_store), "--keys-dir", str(tmp_path / "empty")])
    assert result.exit_code == 1
    assert "signature" in result.stdout


@pytest.mark.parametrize("command", ["records", "verify", "export"])
def test_invalid_configuration_is_reported(populated_store: Path, monkeypatch, command):
    monkeypatch.setenv("CIPHERLEDGER_DIFFICULTY", "abc")
    result = runner.invoke(app, [command, "--store", str(populated_store)])
    assert result.exit_code == 1
    assert "invalid configuration" in result.stdout.lower()
    assert "CIPHERLEDGER_DIFFICULTY" in result.stdout


def test_records_from_sqlite_store(tmp_path: Path, keys_dir: Path):
    db = tmp_path / "records.db"
    assert send_one(db, keys_dir, "one").exit_code == 0
    assert send_one(db, keys_dir, "two").exit_code == 0

    result = runner.invoke(app, ["records", "--store", str(db), "--limit", "1"])
    assert result.exit_code == 0, result.stdout
    assert "two" in result.stdout
    assert "2 record(s) stored" in result.stdout
    assert "participants: alice, bob" in result.stdout
