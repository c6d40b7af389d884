# cipherledger/__init__.py
"""
cipherledger — encrypted, optionally signed messages recorded on a hash-chained ledger.

RSA-OAEP encryption, PKCS#1 v1.5 signatures over the ciphertext, and an
append-only block chain whose hashes are computed over RFC 8785 canonical JSON.
"""

__version__ = "0.1.0"

from cipherledger.core.types import Block, KeyPair, MessageRecord, Transaction
from cipherledger.chain.blockchain import Blockchain
from cipherledger.chain.transactions import TransactionLedger
from cipherledger.crypto.keys import KeyPairGenerator
from cipherledger.crypto import engine as crypto_engine
from cipherledger.exchange.orchestrator import ExchangeRequest, MessageExchange
from cipherledger.verify.verifier import ChainVerifier

__all__ = [
    "Block",
    "Blockchain",
    "ChainVerifier",
    "ExchangeRequest",
    "KeyPair",
    "KeyPairGenerator",
    "MessageExchange",
    "MessageRecord",
    "Transaction",
    "TransactionLedger",
    "crypto_engine",
]
