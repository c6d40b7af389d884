# cipherledger/chain/transactions.py
import logging
from typing import Dict, List, Optional

from cipherledger.chain.blockchain import Blockchain
from cipherledger.core.config import DEFAULT_MAX_ATTEMPTS
from cipherledger.core.types import Block, Transaction, utc_now

logger = logging.getLogger(__name__)

MINING_REWARD = 100


class TransactionLedger:
    """
    Accounting on top of a Blockchain: pending queue, mining, balances.

    Mining is a cosmetic gate, not a security mechanism. Sender balances are
    never checked, so they may go negative.
    """

    def __init__(
        self,
        chain: Blockchain,
        difficulty: int = 0,
        max_attempts: Optional[int] = DEFAULT_MAX_ATTEMPTS,
        reward: int = MINING_REWARD,
    ):
        if difficulty < 0:
            raise ValueError(f"difficulty must be >= 0, got {difficulty}")
        self.chain = chain
        self.difficulty = difficulty
        self.max_attempts = max_attempts
        self.reward = reward
        self._pending: List[Transaction] = []

    @property
    def pending_transactions(self) -> List[Transaction]:
        return self._pending.copy()

    def queue_transaction(self, tx: Transaction) -> None:
        if not tx.timestamp:
            tx = Transaction(tx.from_address, tx.to_address, tx.amount, utc_now())
        self._pending.append(tx)
        logger.debug("Queued %s -> %s: %d", tx.from_address, tx.to_address, tx.amount)

    def mine_block(self, reward_address: str) -> Block:
        """
        Pending transactions plus the reward become one block.
        The pending list is cleared only once the block is on the chain.
        """
        reward_tx = Transaction(None, reward_address, self.reward, utc_now())
        batch = self._pending + [reward_tx]

        block = self.chain.append_block(
            {"transactions": [tx.to_dict() for tx in batch]},
            difficulty=self.difficulty,
            max_attempts=self.max_attempts,
        )
        self._pending = []
        logger.info("Mined block %d with %d transactions for %s", block.index, len(batch), reward_address)
        return block

    def get_balance(self, address: str) -> int:
        """
        Linear scan of the whole chain. O(chain length x block size);
        fine at this scale, not meant to grow.
        """
        balance = 0
        for block in self.chain.blocks:
            for tx in block.transactions:
                if tx.from_address == address:
                    balance -= tx.amount
                if tx.to_address == address:
                    balance += tx.amount
        return balance

    def balances(self) -> Dict[str, int]:
        """Balance of every address that appears on the chain."""
        addresses = []
        for block in self.chain.blocks:
            for tx in block.transactions:
                for addr in (tx.from_address, tx.to_address):
                    if addr is not None and addr not in addresses:
                        addresses.append(addr)
        return {addr: self.get_balance(addr) for addr in addresses}
