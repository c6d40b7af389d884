# cipherledger/exchange/orchestrator.py
"""
One logical exchange, end to end:

    input -> key pairs -> encrypt -> sign ciphertext -> self-check decrypt
          -> append block -> persist record

Every step runs to completion before the next exchange starts.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from cipherledger.chain.blockchain import Blockchain
from cipherledger.chain.transactions import TransactionLedger
from cipherledger.core.encoding import b64_encode
from cipherledger.core.types import KeyPair, MessageRecord, Transaction, utc_now
from cipherledger.crypto import engine
from cipherledger.crypto.keys import KeyPairGenerator
from cipherledger.storage import StorageBackend
from cipherledger.storage.keystore import FileKeyStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExchangeRequest:
    sender: str
    recipient: str
    message: str
    sign: bool = True
    another: bool = False   # continuation flag: read one more request after this one


class InputSource(Protocol):
    def read(self) -> ExchangeRequest:
        ...


class KeyProvider(Protocol):
    def key_pair_for(self, username: str) -> KeyPair:
        ...


class ScriptedInputSource:
    """Feeds pre-built requests, e.g. from a test or a batch script."""

    def __init__(self, requests: Iterable[ExchangeRequest]):
        self._requests = list(requests)
        self._pos = 0

    def read(self) -> ExchangeRequest:
        if self._pos >= len(self._requests):
            raise EOFError("No more exchange requests")
        request = self._requests[self._pos]
        self._pos += 1
        return request


class GeneratingKeyProvider:
    """
    Fresh key pair per participant per run; written to the keystore when one
    is given. A new provider (a new run) overwrites whatever keys a previous
    run left under the same name.
    """

    def __init__(self, generator: Optional[KeyPairGenerator] = None, keystore: Optional[FileKeyStore] = None):
        self.generator = generator or KeyPairGenerator()
        self.keystore = keystore
        self._issued: Dict[str, KeyPair] = {}

    def key_pair_for(self, username: str) -> KeyPair:
        if username in self._issued:
            return self._issued[username]

        logger.info("Generating keys for: %s", username)
        key_pair = self.generator.generate()
        if self.keystore is not None:
            self.keystore.save(username, key_pair)
        self._issued[username] = key_pair
        return key_pair


class MessageExchange:
    """
    Owns nothing global: the ledger, key provider, sink and optional
    accounting ledger are all handed in by the caller.
    """

    def __init__(
        self,
        ledger: Blockchain,
        key_provider: Optional[KeyProvider] = None,
        sink: Optional[StorageBackend] = None,
        self_check: bool = True,
        accounting: Optional[TransactionLedger] = None,
        transfer_amount: int = 1,
    ):
        self.ledger = ledger
        self.key_provider = key_provider or GeneratingKeyProvider()
        self.sink = sink
        self.self_check = self_check
        self.accounting = accounting
        self.transfer_amount = transfer_amount
        self.public_keys: Dict[str, str] = {}

    def exchange(self, request: ExchangeRequest) -> MessageRecord:
        sender = request.sender.lower()
        recipient = request.recipient.lower()

        sender_keys = self.key_provider.key_pair_for(sender)
        recipient_keys = self.key_provider.key_pair_for(recipient)
        self.public_keys[sender] = sender_keys.public_key
        self.public_keys[recipient] = recipient_keys.public_key

        ciphertext = engine.encrypt(request.message.encode("utf-8"), recipient_keys.public_key)

        signature = None
        if request.sign:
            signature = b64_encode(engine.sign(ciphertext, sender_keys.private_key))

        decrypted = None
        if self.self_check:
            decrypted = engine.decrypt(ciphertext, recipient_keys.private_key).decode("utf-8")

        record = MessageRecord(
            sender=sender,
            recipient=recipient,
            encrypted_message=b64_encode(ciphertext),
            signature=signature,
            decrypted_message=decrypted,
            timestamp=utc_now(),
            sender_public_key=sender_keys.public_key if request.sign else None,
        )

        block = self.ledger.append_block(record.payload(), timestamp=record.timestamp)
        record = replace(
            record,
            block_index=block.index,
            block_hash=block.hash,
            previous_block_hash=block.previous_hash,
        )

        if self.sink is not None:
            self.sink.append(record)

        if self.accounting is not None:
            self.accounting.queue_transaction(
                Transaction(sender, recipient, self.transfer_amount, record.timestamp)
            )

        logger.info("Message %s -> %s recorded in block %d", sender, recipient, block.index)
        return record

    def run(
        self,
        source: InputSource,
        on_record: Optional[Callable[[MessageRecord], None]] = None,
    ) -> List[MessageRecord]:
        """Exchange until a request comes back with another=False."""
        records = []
        while True:
            request = source.read()
            record = self.exchange(request)
            records.append(record)
            if on_record is not None:
                on_record(record)
            if not request.another:
                return records

    def settle(self, miner: str) -> Dict[str, int]:
        """Mine queued transfers with the reward going to `miner`; returns all balances."""
        if self.accounting is None:
            return {}
        self.accounting.mine_block(miner.lower())
        return self.accounting.balances()
