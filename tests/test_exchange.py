# tests/test_exchange.py
import pytest
from pathlib import Path

from cipherledger.chain.blockchain import Blockchain, chain_from_records
from cipherledger.chain.transactions import TransactionLedger
from cipherledger.core.encoding import b64_decode
from cipherledger.core.errors import MessageTooLargeError
from cipherledger.crypto import engine
from cipherledger.crypto.keys import KeyPairGenerator
from cipherledger.exchange.orchestrator import (
    ExchangeRequest,
    GeneratingKeyProvider,
    MessageExchange,
    ScriptedInputSource,
)
from cipherledger.storage import JsonFileStorage
from cipherledger.storage.keystore import FileKeyStore


class StaticKeyProvider:
    """Hands out pre-generated pairs so tests don't pay for RSA generation each time."""

    def __init__(self, pairs):
        self.pairs = pairs
        self.requested = []

    def key_pair_for(self, username):
        self.requested.append(username)
        return self.pairs[username]


@pytest.fixture(scope="module")
def pairs():
    gen = KeyPairGenerator()
    return {name: gen.generate() for name in ("alice", "bob", "carol")}


@pytest.fixture
def provider(pairs):
    return StaticKeyProvider(pairs)


@pytest.fixture
def sink(tmp_path: Path):
    return JsonFileStorage(tmp_path / "messages.json")


def test_round_trip_end_to_end(provider, pairs, sink):
    ledger = Blockchain()
    exchange = MessageExchange(ledger, key_provider=provider, sink=sink)

    record = exchange.exchange(ExchangeRequest("Alice", "Bob", "hi", sign=True))

    assert record.sender == "alice"
    assert record.recipient == "bob"
    assert record.decrypted_message == "hi"

    ciphertext = b64_decode(record.encrypted_message)
    assert engine.verify_b64(ciphertext, record.signature, pairs["alice"].public_key) is True
    assert engine.decrypt(ciphertext, pairs["bob"].private_key) == b"hi"

    assert ledger.is_chain_valid() is True
    block = ledger.last_block
    assert record.block_index == block.index == 1
    assert record.block_hash == block.hash
    assert record.previous_block_hash == ledger.blocks[0].hash
    assert block.payload == record.payload()
    assert block.payload["senderPublicKey"] == pairs["alice"].public_key
    assert block.timestamp == record.timestamp

    assert sink.load_records() == [record]


def test_names_are_lowercased_for_keys(provider, sink):
    exchange = MessageExchange(Blockchain(), key_provider=provider, sink=sink)
    exchange.exchange(ExchangeRequest("ALICE", "Bob", "hello"))
    assert provider.requested == ["alice", "bob"]
    assert set(exchange.public_keys) == {"alice", "bob"}


def test_unsigned_message(provider):
    exchange = MessageExchange(Blockchain(), key_provider=provider)
    record = exchange.exchange(ExchangeRequest("alice", "bob", "no sig", sign=False))
    assert record.signature is None
    assert record.sender_public_key is None
    assert "senderPublicKey" not in exchange.ledger.last_block.payload
    assert record.decrypted_message == "no sig"


def test_signature_does_not_verify_for_other_sender(provider, pairs):
    exchange = MessageExchange(Blockchain(), key_provider=provider)
    record = exchange.exchange(ExchangeRequest("alice", "bob", "hi"))
    ciphertext = b64_decode(record.encrypted_message)
    assert engine.verify_b64(ciphertext, record.signature, pairs["carol"].public_key) is False


def test_self_check_disabled(provider):
    exchange = MessageExchange(Blockchain(), key_provider=provider, self_check=False)
    record = exchange.exchange(ExchangeRequest("alice", "bob", "secret"))
    assert record.decrypted_message is None
    assert exchange.ledger.last_block.payload["decryptedMessage"] is None


def test_oversize_message_aborts_exchange(provider, sink):
    ledger = Blockchain()
    exchange = MessageExchange(ledger, key_provider=provider, sink=sink)

    with pytest.raises(MessageTooLargeError):
        exchange.exchange(ExchangeRequest("alice", "bob", "x" * 191))

    assert ledger.length == 1
    assert sink.load_records() == []


def test_run_loops_until_continuation_flag_is_false(provider, sink):
    ledger = Blockchain()
    exchange = MessageExchange(ledger, key_provider=provider, sink=sink)
    source = ScriptedInputSource([
        ExchangeRequest("alice", "bob", "one", another=True),
        ExchangeRequest("bob", "carol", "two", sign=False, another=True),
        ExchangeRequest("carol", "alice", "three"),
        ExchangeRequest("never", "read", "four"),
    ])
    seen = []

    records = exchange.run(source, on_record=seen.append)

    assert [r.decrypted_message for r in records] == ["one", "two", "three"]
    assert seen == records
    assert [r.block_index for r in records] == [1, 2, 3]
    assert ledger.is_chain_valid()
    assert len(sink.load_records()) == 3


def test_run_propagates_failures(provider):
    exchange = MessageExchange(Blockchain(), key_provider=provider)
    source = ScriptedInputSource([
        ExchangeRequest("alice", "bob", "fine", another=True),
        ExchangeRequest("alice", "bob", "y" * 300, another=True),
        ExchangeRequest("alice", "bob", "not reached"),
    ])
    with pytest.raises(MessageTooLargeError):
        exchange.run(source)
    assert exchange.ledger.length == 2


def test_scripted_source_exhausted():
    with pytest.raises(EOFError):
        ScriptedInputSource([]).read()


def test_resume_chain_from_sink(provider, sink):
    first = MessageExchange(Blockchain(), key_provider=provider, sink=sink)
    first.exchange(ExchangeRequest("alice", "bob", "run one"))

    resumed = chain_from_records(sink.load_records())
    second = MessageExchange(resumed, key_provider=provider, sink=sink)
    record = second.exchange(ExchangeRequest("bob", "alice", "run two"))

    assert record.block_index == 2
    records = sink.load_records()
    assert records[1].previous_block_hash == records[0].block_hash
    assert chain_from_records(records).is_chain_valid()


def test_accounting_settle(provider):
    accounting = TransactionLedger(Blockchain())
    exchange = MessageExchange(Blockchain(), key_provider=provider, accounting=accounting)
    exchange.exchange(ExchangeRequest("alice", "bob", "pay"))

    balances = exchange.settle("Miner")

    assert balances == {"alice": -1, "bob": 1, "miner": 100}
    assert accounting.pending_transactions == []


def test_settle_without_accounting(provider):
    assert MessageExchange(Blockchain(), key_provider=provider).settle("miner") == {}


def test_generating_provider_writes_keys(tmp_path: Path):
    keystore = FileKeyStore(tmp_path)
    provider = GeneratingKeyProvider(keystore=keystore)

    first = provider.key_pair_for("dave")
    assert provider.key_pair_for("dave") == first  # one pair per participant per run

    second = GeneratingKeyProvider(keystore=keystore).key_pair_for("dave")
    assert second != first
    assert keystore.load("dave") == second
    assert (tmp_path / "dave" / "publicKey.pem").read_text(encoding="utf-8").startswith("-----BEGIN PUBLIC KEY-----")
