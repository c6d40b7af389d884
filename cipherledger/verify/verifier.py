# cipherledger/verify/verifier.py
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from cipherledger.chain.blockchain import GENESIS_PREVIOUS_HASH, blocks_from_records
from cipherledger.core.encoding import b64_decode
from cipherledger.core.errors import LedgerError
from cipherledger.core.types import Block, MessageRecord
from cipherledger.crypto import engine
from cipherledger.crypto.hashing import compute_block_hash
from cipherledger.crypto.keys import fingerprint
from cipherledger.storage import StorageBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Finding:
    """One observation about a block; index -1 means the records never became blocks."""
    index: int
    message: str
    category: str   # genesis, index, hash, hash_chain, signature, storage, key_rotated

    def __str__(self):
        return f"[{self.index}] {self.category}: {self.message}"


@dataclass
class VerificationResult:
    """
    failures make the ledger invalid; notes do not (a sender whose current
    key on disk is newer than the one a block was signed with).
    """
    failures: List[Finding] = field(default_factory=list)
    notes: List[Finding] = field(default_factory=list)
    blocks_checked: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.failures

    @property
    def first_failure(self) -> Optional[Finding]:
        return self.failures[0] if self.failures else None

    @property
    def message(self) -> str:
        if self.is_valid:
            return f"{self.blocks_checked} block(s) checked"
        return f"{len(self.failures)} problem(s) in {self.blocks_checked} block(s)"

    def fail(self, index: int, message: str, category: str) -> None:
        self.failures.append(Finding(index, message, category))

    def note(self, index: int, message: str, category: str) -> None:
        self.notes.append(Finding(index, message, category))

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        head = "Chain is valid ✓" if self.is_valid else f"Chain is INVALID ({self.message})"
        return "\n".join([head] + [f"  • {f}" for f in self.failures + self.notes])


class ChainVerifier:
    """
    Diagnostic counterpart of Blockchain.is_chain_valid(): reports every
    failure and which block it is in.

    Signed message blocks carry the signer's public key inside the hashed
    payload, and the signature is checked against that key. trusted_keys
    (username -> PEM, e.g. the keys currently on disk) are compared with it:
    a different fingerprint is noted as key_rotated, not failed. Blocks
    written before the key was recorded fall back to the trusted key.
    """

    def __init__(self, trusted_keys: Optional[Dict[str, str]] = None):
        self.trusted_keys = {name.lower(): pem for name, pem in (trusted_keys or {}).items()}

    def verify(self, chain: List[Block]) -> VerificationResult:
        result = VerificationResult(blocks_checked=len(chain))
        if not chain:
            result.fail(0, "Missing genesis block", "genesis")
            return result

        genesis = chain[0]
        if genesis.index != 0 or genesis.previous_hash != GENESIS_PREVIOUS_HASH:
            result.fail(0, "Genesis block has wrong index or previous hash", "genesis")

        for i, block in enumerate(chain):
            if block.index != i:
                result.fail(i, f"Index mismatch: expected {i}, got {block.index}", "index")

        for i, block in enumerate(chain):
            if block.hash != compute_block_hash(block):
                result.fail(i, "Stored hash does not match block contents", "hash")

        for i in range(1, len(chain)):
            if chain[i].previous_hash != chain[i - 1].hash:
                result.fail(i, "previous_hash does not match previous block hash", "hash_chain")

        if not self.trusted_keys:
            logger.warning("No trusted public keys loaded; key rotation checks skipped")
        for i, block in enumerate(chain):
            if block.is_message:
                self._check_signature(result, i, block)

        return result

    def _check_signature(self, result: VerificationResult, index: int, block: Block) -> None:
        payload = block.payload
        signature = payload.get("signature")
        if signature is None:
            return  # sender declined to sign

        sender = (payload.get("sender") or "").lower()
        trusted_pem = self.trusted_keys.get(sender)
        signer_pem = payload.get("senderPublicKey") or trusted_pem
        if signer_pem is None:
            result.fail(index, f"No trusted key for sender '{sender}'", "signature")
            return

        try:
            ciphertext = b64_decode(payload["encryptedMessage"])
            if not engine.verify_b64(ciphertext, signature, signer_pem):
                result.fail(index, "Invalid signature", "signature")
                return
            if trusted_pem is not None and fingerprint(trusted_pem) != fingerprint(signer_pem):
                result.note(
                    index,
                    f"Signed by {sender} key {fingerprint(signer_pem)[:16]}, "
                    f"current key is {fingerprint(trusted_pem)[:16]}",
                    "key_rotated",
                )
        except (ValueError, LedgerError) as e:
            result.fail(index, f"Signature check failed: {e}", "signature")

    def verify_records(self, records: List[MessageRecord]) -> VerificationResult:
        """Rebuild the message chain from persisted records and verify it."""
        try:
            blocks = blocks_from_records(records)
        except LedgerError as e:
            result = VerificationResult()
            result.fail(-1, str(e), "storage")
            return result
        return self.verify(blocks)

    def verify_from_storage(self, storage: StorageBackend) -> VerificationResult:
        try:
            records = storage.load_records()
        except Exception as e:
            result = VerificationResult()
            result.fail(-1, f"Failed to load records from storage: {e}", "storage")
            return result
        return self.verify_records(records)
