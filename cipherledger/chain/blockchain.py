# cipherledger/chain/blockchain.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from cipherledger.core.errors import ChainIntegrityError, MiningError
from cipherledger.core.types import Block, MessageRecord, utc_now
from cipherledger.crypto.hashing import block_hash, compute_block_hash

logger = logging.getLogger(__name__)

GENESIS_TIMESTAMP = "1970-01-01T00:00:00.000Z"
GENESIS_PREVIOUS_HASH = "0" * 64


def create_genesis_block() -> Block:
    """Fixed first block. Identical on every run, so persisted chains can be rebuilt."""
    return Block(
        index=0,
        timestamp=GENESIS_TIMESTAMP,
        payload=None,
        previous_hash=GENESIS_PREVIOUS_HASH,
        hash=block_hash(0, GENESIS_PREVIOUS_HASH, GENESIS_TIMESTAMP, None, 0),
        nonce=0,
    )


def meets_difficulty(hash_hex: str, difficulty: int) -> bool:
    """difficulty N: the hex digest must start with N zero nibbles (0 always passes)."""
    return hash_hex.startswith("0" * difficulty)


@dataclass
class Blockchain:
    """
    Ordered, append-only list of hash-linked blocks.

    append_block() is the only mutator and assumes a single writer: nothing
    guards the tail. Concurrent producers would need a lock around it.
    """
    blocks: List[Block] = field(default_factory=list)

    def __post_init__(self):
        if not self.blocks:
            self.blocks.append(create_genesis_block())

    @classmethod
    def from_blocks(cls, blocks: Iterable[Block]) -> "Blockchain":
        """Rebuild a chain from stored blocks. Raises ChainIntegrityError if it does not validate."""
        chain = cls(blocks=list(blocks))
        if not chain.is_chain_valid():
            raise ChainIntegrityError(f"Stored chain of {chain.length} blocks failed validation")
        return chain

    @property
    def length(self) -> int:
        return len(self.blocks)

    @property
    def last_block(self) -> Block:
        return self.blocks[-1]

    def get_chain(self) -> List[Block]:
        """Returns copy of the full chain (immutable view)"""
        return self.blocks.copy()

    def get_block(self, index: int) -> Optional[Block]:
        if 0 <= index < len(self.blocks):
            return self.blocks[index]
        return None

    def append_block(
        self,
        payload: Optional[Dict[str, Any]],
        timestamp: Optional[str] = None,
        difficulty: int = 0,
        max_attempts: Optional[int] = None,
    ) -> Block:
        """
        Link a new block to the tail: index = last.index + 1, previous_hash = last.hash.

        With difficulty > 0 the nonce is searched until the hash has that many
        leading zero nibbles. max_attempts bounds the search; when it runs out
        MiningError is raised and the chain is left untouched.
        """
        if difficulty < 0:
            raise ValueError(f"difficulty must be >= 0, got {difficulty}")

        last = self.last_block
        index = last.index + 1
        ts = timestamp or utc_now()

        nonce = 0
        digest = block_hash(index, last.hash, ts, payload, nonce)
        if difficulty > 0:
            while not meets_difficulty(digest, difficulty):
                nonce += 1
                if max_attempts is not None and nonce >= max_attempts:
                    raise MiningError(
                        f"No hash with {difficulty} leading zeros found in {max_attempts} attempts"
                    )
                digest = block_hash(index, last.hash, ts, payload, nonce)
            logger.debug("Mined block %d after %d attempts: %s", index, nonce + 1, digest)

        block = Block(
            index=index,
            timestamp=ts,
            payload=payload,
            previous_hash=last.hash,
            hash=digest,
            nonce=nonce,
        )
        self.blocks.append(block)
        logger.info("Appended block %d (%s...)", index, digest[:16])
        return block

    def is_chain_valid(self) -> bool:
        """
        Recompute every block's hash from its own fields and check the links.
        Returns False on the first violation; use ChainVerifier to learn which block failed.
        """
        if not self.blocks:
            return False

        genesis = self.blocks[0]
        if genesis.index != 0 or genesis.previous_hash != GENESIS_PREVIOUS_HASH:
            return False
        if genesis.hash != compute_block_hash(genesis):
            return False

        for i in range(1, len(self.blocks)):
            prev, block = self.blocks[i - 1], self.blocks[i]
            if block.hash != compute_block_hash(block):
                return False
            if block.previous_hash != prev.hash:
                return False
            if block.index != prev.index + 1:
                return False
        return True


def block_from_record(record: MessageRecord) -> Block:
    """
    Rebuild the block a persisted record was appended as. Message blocks use
    the record's timestamp and are never mined, so nonce is 0.
    """
    if record.block_index is None or record.block_hash is None or record.previous_block_hash is None:
        raise ChainIntegrityError(f"Record from {record.timestamp} carries no block fields")
    return Block(
        index=record.block_index,
        timestamp=record.timestamp,
        payload=record.payload(),
        previous_hash=record.previous_block_hash,
        hash=record.block_hash,
        nonce=0,
    )


def blocks_from_records(records: Iterable[MessageRecord]) -> List[Block]:
    """Genesis followed by one block per record, in stored order. Not validated."""
    return [create_genesis_block()] + [block_from_record(r) for r in records]


def chain_from_records(records: Iterable[MessageRecord]) -> Blockchain:
    """Resume a message chain from persisted records. Raises ChainIntegrityError if it does not validate."""
    return Blockchain.from_blocks(blocks_from_records(records))
