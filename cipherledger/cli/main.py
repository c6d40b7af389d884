# cipherledger/cli/main.py
"""
CLI for sending encrypted messages and inspecting, verifying and exporting the record ledger.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from cipherledger.chain.blockchain import Blockchain, chain_from_records
from cipherledger.chain.transactions import TransactionLedger
from cipherledger.core.config import LedgerSettings
from cipherledger.core.errors import LedgerError
from cipherledger.core.types import MessageRecord
from cipherledger.crypto.keys import fingerprint
from cipherledger.exchange.orchestrator import ExchangeRequest, GeneratingKeyProvider, MessageExchange
from cipherledger.storage import SQLiteStorage, StorageBackend, create_storage
from cipherledger.storage.keystore import FileKeyStore
from cipherledger.verify.verifier import ChainVerifier

app = typer.Typer(
    name="cipherledger",
    help="Send RSA-encrypted, signed messages and audit the hash-chained record ledger",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def store_path(uri: str) -> Path:
    """Filesystem path behind a storage URI (json://, sqlite:// or bare path)."""
    for scheme in ("json://", "sqlite://"):
        if uri.startswith(scheme):
            return Path(uri[len(scheme):])
    return Path(uri)


def load_settings(store: Optional[str], keys_dir: Optional[Path] = None, self_check: Optional[bool] = None) -> LedgerSettings:
    try:
        return LedgerSettings.from_env(store, keys_dir, self_check)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/]")
        raise typer.Exit(1)


def open_existing_store(settings: LedgerSettings) -> StorageBackend:
    path = store_path(settings.store)
    if not path.exists():
        console.print(f"[red]Record store not found: {path}[/]")
        console.print("[yellow]To get started:[/]")
        console.print("  • Send a message first: cipherledger send")
        console.print("  • Set env var: export CIPHERLEDGER_STORE=/path/to/messages.json")
        console.print("  • Or use --store: cipherledger records --store /custom/messages.json")
        raise typer.Exit(1)
    try:
        return create_storage(settings.store)
    except Exception as e:
        console.print(f"[red]Failed to open record store: {str(e)}[/]")
        raise typer.Exit(1)


class PromptInputSource:
    """Asks for each exchange on the terminal."""

    def read(self) -> ExchangeRequest:
        sender = typer.prompt("Enter sender name")
        recipient = typer.prompt("Enter recipient name")
        sign = typer.confirm("Do you want to sign the message?", default=True)
        message = typer.prompt("Enter the message to send")
        another = typer.confirm("Send another message?", default=False)
        return ExchangeRequest(sender, recipient, message, sign=sign, another=another)


def print_record(record: MessageRecord) -> None:
    console.print(f"[green]Encrypted Message: {record.encrypted_message}[/]")
    console.print(f"[green]Signature: {record.signature}[/]")
    console.print(f"[green]Decrypted Message: {escape(str(record.decrypted_message))}[/]")
    console.print(f"[cyan]Block {record.block_index}: {record.block_hash}[/]")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Encrypted message exchange with a tamper-evident ledger."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command()
def send(
    store: Optional[str] = typer.Option(None, "--store", help="Record store (overrides CIPHERLEDGER_STORE)"),
    keys_dir: Optional[Path] = typer.Option(None, "--keys-dir", help="Key folder root (overrides CIPHERLEDGER_KEYS_DIR)"),
    no_self_check: bool = typer.Option(False, "--no-self-check", help="Skip decrypting the message after encrypting it"),
    no_save_keys: bool = typer.Option(False, "--no-save-keys", help="Do not write generated keys to disk"),
    miner: Optional[str] = typer.Option(None, "--miner", help="Queue a transfer per message and mine them to this address"),
):
    """Encrypt, optionally sign, and record one or more messages."""
    settings = load_settings(store, keys_dir, False if no_self_check else None)

    try:
        storage = create_storage(settings.store)
    except ValueError as e:
        console.print(f"[red]Failed to open record store: {e}[/]")
        raise typer.Exit(1)

    keystore = None if no_save_keys else FileKeyStore(settings.keys_dir)
    accounting = None
    if miner:
        accounting = TransactionLedger(
            Blockchain(),
            difficulty=settings.difficulty,
            max_attempts=settings.max_attempts,
        )

    with storage:
        try:
            ledger = chain_from_records(storage.load_records())
        except LedgerError as e:
            console.print(f"[red]Cannot resume ledger from {settings.store}: {e}[/]")
            raise typer.Exit(1)

        exchange = MessageExchange(
            ledger,
            key_provider=GeneratingKeyProvider(keystore=keystore),
            sink=storage,
            self_check=settings.self_check,
            accounting=accounting,
        )

        try:
            records = exchange.run(PromptInputSource(), on_record=print_record)
            balances = exchange.settle(miner) if miner else {}
        except LedgerError as e:
            console.print(f"[red]An error occurred: {e}[/]")
            raise typer.Exit(1)

    console.print(f"[green]Saved {len(records)} record(s) to {settings.store}[/]")
    if keystore is not None:
        console.print(f"[green]Keys saved under: {keystore.root}[/]")
    for name, public_pem in exchange.public_keys.items():
        console.print(f"  {name}: {fingerprint(public_pem)[:32]}")

    if balances:
        table = Table(title="Balances")
        table.add_column("Address")
        table.add_column("Balance", justify="right")
        for address, amount in balances.items():
            table.add_row(address, str(amount))
        console.print(table)


@app.command()
def records(
    store: Optional[str] = typer.Option(None, "--store", help="Record store (overrides CIPHERLEDGER_STORE)"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of recent records to show"),
):
    """Show the most recent message records."""
    settings = load_settings(store)
    storage = open_existing_store(settings)

    caption = None
    try:
        with storage:
            if isinstance(storage, SQLiteStorage):
                recs = storage.query_records(limit)
                participants = ", ".join(storage.list_participants())
                caption = f"{storage.get_record_count()} record(s) stored; participants: {participants}"
            else:
                recs = storage.load_records()[-limit:]
    except LedgerError as e:
        console.print(f"[red]Failed to load records: {str(e)}[/]")
        raise typer.Exit(1)

    if not recs:
        console.print("[yellow]No records found.[/]")
        return

    table = Table(title="Message Records", caption=caption)
    table.add_column("Block")
    table.add_column("Timestamp")
    table.add_column("Sender")
    table.add_column("Recipient")
    table.add_column("Signed")
    table.add_column("Message")

    for rec in recs:
        text = rec.decrypted_message if rec.decrypted_message is not None else "—"
        table.add_row(
            str(rec.block_index),
            rec.timestamp,
            rec.sender,
            rec.recipient,
            "yes" if rec.signature else "no",
            escape(f"{text[:60]}{'...' if len(text) > 60 else ''}"),
        )

    console.print(table)


@app.command()
def verify(
    store: Optional[str] = typer.Option(None, "--store", help="Record store (overrides CIPHERLEDGER_STORE)"),
    keys_dir: Optional[Path] = typer.Option(None, "--keys-dir", help="Where to look for senders' public keys"),
):
    """Verify the integrity of the stored chain (hashes, links, signatures)."""
    settings = load_settings(store, keys_dir)
    storage = open_existing_store(settings)

    with storage:
        try:
            recs = storage.load_records()
        except LedgerError as e:
            console.print(f"[red]Verification failed: {str(e)}[/]")
            raise typer.Exit(1)

        keystore = FileKeyStore(settings.keys_dir)
        trusted_keys = {}
        for rec in recs:
            if rec.sender not in trusted_keys and keystore.key_path(rec.sender, "publicKey").exists():
                trusted_keys[rec.sender] = keystore.load_public_key(rec.sender)

        if not trusted_keys:
            console.print("[yellow]Warning: No trusted public keys found; key rotation checks skipped.[/]")
            console.print("  Signatures are still checked against the key recorded in each block.")
            console.print("  Point --keys-dir at the folder holding <user>/publicKey.pem to compare with current keys.")

        result = ChainVerifier(trusted_keys=trusted_keys).verify_records(recs)

    if result.is_valid:
        console.print(f"[green]✓ Ledger of {len(recs)} record(s) is valid[/]")
        console.print(f"  {result.message}")
        for note in result.notes:
            console.print(f"[yellow]  • {escape(str(note))}[/]")
    else:
        console.print("[red]✗ Verification failed[/]")
        for failure in result.failures:
            console.print(f"  • {escape(str(failure))}")
        raise typer.Exit(1)


@app.command()
def export(
    store: Optional[str] = typer.Option(None, "--store", help="Record store (overrides CIPHERLEDGER_STORE)"),
    output: Path = typer.Option(Path("records.jsonl"), "--output", "-o", help="Output file"),
):
    """Export all records as JSONL (one record per line)."""
    settings = load_settings(store)
    storage = open_existing_store(settings)

    try:
        with storage:
            recs = storage.load_records()
    except LedgerError as e:
        console.print(f"[red]Failed to load records: {str(e)}[/]")
        raise typer.Exit(1)

    if not recs:
        console.print("[yellow]No records found.[/]")
        raise typer.Exit(0)

    with open(output, "w", encoding="utf-8") as f:
        for rec in recs:
            json.dump(rec.to_dict(), f, separators=(",", ":"))
            f.write("\n")

    console.print(f"[green]Exported {len(recs)} records to {output}[/]")
    console.print("Format: JSONL — one record per line")


if __name__ == "__main__":
    app()
