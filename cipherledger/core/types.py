# cipherledger/core/types.py
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utc_now() -> str:
    """ISO 8601 UTC timestamp with millisecond precision, e.g. 2026-01-31T14:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class KeyPair:
    """RSA key pair as PEM text (SPKI public, unencrypted PKCS8 private)."""
    public_key: str
    private_key: str


@dataclass(frozen=True)
class MessageRecord:
    """One exchanged message. Persisted externally and wrapped inside a Block."""
    sender: str
    recipient: str
    encrypted_message: str                      # base64 ciphertext
    signature: Optional[str]                    # base64, None when signing was declined
    decrypted_message: Optional[str]            # None when the self-check step is disabled
    timestamp: str
    sender_public_key: Optional[str] = None     # SPKI PEM the signature was made with; None when unsigned
    block_index: Optional[int] = None           # filled once the block is appended
    block_hash: Optional[str] = None
    previous_block_hash: Optional[str] = None

    def payload(self) -> Dict[str, Any]:
        """The part of the record that is hashed into its block."""
        payload = {
            "sender": self.sender,
            "recipient": self.recipient,
            "encryptedMessage": self.encrypted_message,
            "signature": self.signature,
            "decryptedMessage": self.decrypted_message,
            "timestamp": self.timestamp,
        }
        if self.sender_public_key is not None:
            payload["senderPublicKey"] = self.sender_public_key
        return payload

    def to_dict(self) -> Dict[str, Any]:
        d = self.payload()
        d["blockIndex"] = self.block_index
        d["blockHash"] = self.block_hash
        d["previousBlockHash"] = self.previous_block_hash
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MessageRecord":
        return cls(
            sender=d["sender"],
            recipient=d["recipient"],
            encrypted_message=d["encryptedMessage"],
            signature=d.get("signature"),
            decrypted_message=d.get("decryptedMessage"),
            timestamp=d["timestamp"],
            sender_public_key=d.get("senderPublicKey"),
            block_index=d.get("blockIndex"),
            block_hash=d.get("blockHash"),
            previous_block_hash=d.get("previousBlockHash"),
        )


@dataclass(frozen=True)
class Transaction:
    """Value transfer. from_address None means system issuance (mining reward)."""
    from_address: Optional[str]
    to_address: str
    amount: int
    timestamp: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fromAddress": self.from_address,
            "toAddress": self.to_address,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Transaction":
        return cls(
            from_address=d.get("fromAddress"),
            to_address=d["toAddress"],
            amount=d["amount"],
            timestamp=d.get("timestamp", ""),
        )


@dataclass(frozen=True)
class Block:
    """Single entry in the hash-linked chain."""
    index: int
    timestamp: str
    payload: Optional[Dict[str, Any]]   # message record payload, {"transactions": [...]}, or None for genesis
    previous_hash: str
    hash: str
    nonce: int = 0

    @property
    def is_message(self) -> bool:
        return bool(self.payload) and "encryptedMessage" in self.payload

    @property
    def transactions(self) -> list:
        if not self.payload:
            return []
        return [Transaction.from_dict(t) for t in self.payload.get("transactions", [])]
