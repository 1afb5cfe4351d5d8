import hashlib
import itertools
import logging
import time
from typing import Optional, Tuple

from totem.errors import MiningCancelled
from totem.transaction import Transaction, canonical_bytes, now_ms

logger = logging.getLogger(__name__)

GENESIS_PREVIOUS_HASH = "0"
# How often the search looks at the cancel event and reports progress.
PROGRESS_INTERVAL = 5000


def header_bytes(index, previous_hash, timestamp, transactions) -> bytes:
    return canonical_bytes({
        "index": index,
        "previousHash": previous_hash,
        "timestamp": timestamp,
        "transactions": [tx.to_dict() for tx in transactions],
    })


def compute_hash(index, previous_hash, timestamp, transactions, nonce) -> str:
    digest = hashlib.sha256(header_bytes(index, previous_hash, timestamp, transactions))
    digest.update(str(nonce).encode("ascii"))
    return digest.hexdigest()


def meets_difficulty(block_hash: str, difficulty: int) -> bool:
    return block_hash.startswith("0" * difficulty)


class Block:
    def __init__(self, index, timestamp, transactions, previous_hash, nonce=0, hash=None):
        self.index = index
        self.timestamp = timestamp
        self.transactions: Tuple[Transaction, ...] = tuple(transactions)
        self.previous_hash = previous_hash
        self.nonce = nonce
        self.hash = hash if hash is not None else self.calculate_hash()

    def calculate_hash(self) -> str:
        return compute_hash(self.index, self.previous_hash, self.timestamp, self.transactions, self.nonce)

    def has_valid_hash(self) -> bool:
        return self.hash == self.calculate_hash()

    def copy(self) -> "Block":
        # Transactions are immutable, so sharing them is safe.
        return Block(self.index, self.timestamp, self.transactions, self.previous_hash, self.nonce, self.hash)

    def to_dict(self):
        return {
            "index": self.index,
            "timestamp": self.timestamp,
            "transactions": [tx.to_dict() for tx in self.transactions],
            "previousHash": self.previous_hash,
            "hash": self.hash,
            "nonce": self.nonce,
        }

    @classmethod
    def from_dict(cls, data):
        # The stored hash is kept as-is so verification can catch tampering.
        return cls(
            index=data["index"],
            timestamp=data["timestamp"],
            transactions=[Transaction.from_dict(tx) for tx in data["transactions"]],
            previous_hash=data["previousHash"],
            nonce=data["nonce"],
            hash=data["hash"],
        )

    def __repr__(self):
        return f"Block(index={self.index}, txs={len(self.transactions)}, hash={self.hash[:12]})"


def create_genesis_block(timestamp: Optional[int] = None) -> Block:
    return Block(0, now_ms() if timestamp is None else timestamp, [], GENESIS_PREVIOUS_HASH)


def seal_block(block: Block, difficulty: int, cancel_event=None) -> Block:
    """Brute-force the nonce until the hash has `difficulty` leading zero hex digits.

    Returns a new sealed Block; `block` itself is left untouched, so an
    interrupted search has no side effects. Raises MiningCancelled as soon as
    `cancel_event` (anything with ``is_set()``) is observed set.
    """
    if difficulty < 0:
        raise ValueError("difficulty must be >= 0")

    target = "0" * difficulty
    base = hashlib.sha256(header_bytes(block.index, block.previous_hash, block.timestamp, block.transactions))
    started = time.monotonic()

    for nonce in itertools.count():
        if nonce % PROGRESS_INTERVAL == 0:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Mining of block #%s cancelled at nonce %d", block.index, nonce)
                raise MiningCancelled(f"mining of block #{block.index} cancelled")
            if nonce:
                logger.debug("Mining block #%s... nonce %d", block.index, nonce)

        digest = base.copy()
        digest.update(str(nonce).encode("ascii"))
        block_hash = digest.hexdigest()
        if block_hash.startswith(target):
            logger.info(
                "Block #%s mined: %s (nonce %d, %.2fs)",
                block.index, block_hash, nonce, time.monotonic() - started,
            )
            return Block(block.index, block.timestamp, block.transactions, block.previous_hash, nonce, block_hash)
