# cipherledger/crypto/hashing.py
import hashlib
from typing import Any

from cipherledger.core.canon import canonical_json
from cipherledger.core.types import Block


def block_hash(index: int, previous_hash: str, timestamp: str, payload: Any, nonce: int = 0) -> str:
    """hex(sha256) over the canonical JSON of the block's own fields."""
    header = {
        "index": index,
        "previousHash": previous_hash,
        "timestamp": timestamp,
        "payload": payload,
        "nonce": nonce,
    }
    return hashlib.sha256(canonical_json(header)).hexdigest()


def compute_block_hash(block: Block) -> str:
    """Recompute a block's hash from its stored fields (ignores block.hash)."""
    return block_hash(block.index, block.previous_hash, block.timestamp, block.payload, block.nonce)
