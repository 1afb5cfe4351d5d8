import itertools
import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from totem import storage
from totem.block import (
    GENESIS_PREVIOUS_HASH,
    Block,
    create_genesis_block,
    meets_difficulty,
    seal_block,
)
from totem.crypto import verify_signature
from totem.errors import AuthenticationError, IntegrityError, LedgerError, StateError
from totem.ticket_status import TicketState, TicketStatus, replay
from totem.transaction import Transaction, TransactionType, now_ms

logger = logging.getLogger(__name__)

DEFAULT_DIFFICULTY = 2

# Status a ticket must be in before each action is admitted.
_REQUIRED_STATUS = {
    TransactionType.MINT: lambda status: status is TicketStatus.INVALID,
    TransactionType.ACTIVATE: lambda status: status is TicketStatus.ISSUED,
    TransactionType.INSPECT: lambda status: status is not TicketStatus.INVALID,
}


class _AnyEvent:
    def __init__(self, *events):
        self._events = [event for event in events if event is not None]

    def is_set(self):
        return any(event.is_set() for event in self._events)


@dataclass(frozen=True)
class ChainSnapshot:
    blocks: Tuple[Block, ...]
    pending_transactions: Tuple[Transaction, ...]
    difficulty: int
    height: int

    def to_dict(self):
        return {
            "blocks": [block.to_dict() for block in self.blocks],
            "pending": [tx.to_dict() for tx in self.pending_transactions],
            "difficulty": self.difficulty,
            "height": self.height,
        }


def verify_chain(blocks, difficulty, verify_signatures=True):
    """Raise IntegrityError at the first block that cannot be trusted.

    Everything from that block on is untrusted; nothing is repaired.
    """
    if not blocks:
        raise IntegrityError(0, "chain is empty")

    genesis = blocks[0]
    if genesis.index != 0 or genesis.previous_hash != GENESIS_PREVIOUS_HASH or genesis.transactions:
        raise IntegrityError(0, "genesis block is not in its fixed form")
    if not genesis.has_valid_hash():
        raise IntegrityError(0, "genesis hash does not match its contents")

    for i in range(1, len(blocks)):
        block, previous = blocks[i], blocks[i - 1]
        if block.index != i:
            raise IntegrityError(i, f"expected index {i}, found {block.index}")
        if block.previous_hash != previous.hash:
            raise IntegrityError(i, "previous hash does not link to block #%d" % (i - 1))
        if not block.has_valid_hash():
            raise IntegrityError(i, "hash does not match block contents")
        if not meets_difficulty(block.hash, difficulty):
            raise IntegrityError(i, f"hash does not meet difficulty {difficulty}")
        if verify_signatures:
            for tx in block.transactions:
                if not verify_signature(tx.payload, tx.signature, tx.ticket_id):
                    raise IntegrityError(i, f"transaction {tx.id} has an invalid signature")


class Blockchain:
    """The single authoritative ledger: sealed blocks plus the mempool.

    Every read and write goes through one lock, so status checks always see
    a consistent chain + mempool and mining cannot interleave with admission.
    """

    def __init__(self, difficulty=DEFAULT_DIFFICULTY, chain=None, storage_path=None):
        if difficulty < 0:
            raise ValueError("difficulty must be >= 0")
        self.difficulty = difficulty
        self.chain: List[Block] = list(chain) if chain else [create_genesis_block()]
        self.pending_transactions: List[Transaction] = []
        self.storage_path = storage_path
        self._lock = threading.RLock()
        self._shutdown = threading.Event()

    # ── hydration ────────────────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data, difficulty=None, storage_path=None):
        stored_difficulty = data.get("difficulty")
        if stored_difficulty is None:
            stored_difficulty = DEFAULT_DIFFICULTY if difficulty is None else difficulty
        elif difficulty is not None and difficulty != stored_difficulty:
            logger.warning(
                "Stored chain uses difficulty %d, ignoring configured %d",
                stored_difficulty, difficulty,
            )

        try:
            blocks = [Block.from_dict(b) for b in data["blocks"]]
        except (KeyError, TypeError, ValueError) as e:
            raise IntegrityError(0, f"malformed block record: {e}") from e
        verify_chain(blocks, stored_difficulty)

        blockchain = cls(difficulty=stored_difficulty, chain=blocks, storage_path=storage_path)
        for record in data.get("pending", []):
            try:
                blockchain.add_transaction(Transaction.from_dict(record))
            except LedgerError as e:
                logger.warning("Dropping stored pending transaction: %s", e)

        logger.info(
            "Loaded chain with %d blocks and %d pending transactions",
            len(blockchain.chain), len(blockchain.pending_transactions),
        )
        return blockchain

    @classmethod
    def load(cls, path, difficulty=None):
        data = storage.load_snapshot(path)
        if data is None:
            return cls(
                difficulty=DEFAULT_DIFFICULTY if difficulty is None else difficulty,
                storage_path=path,
            )
        return cls.from_dict(data, difficulty=difficulty, storage_path=path)

    def to_dict(self):
        with self._lock:
            return {
                "difficulty": self.difficulty,
                "blocks": [block.to_dict() for block in self.chain],
                "pending": [tx.to_dict() for tx in self.pending_transactions],
            }

    def save(self, path=None):
        path = path or self.storage_path
        if not path:
            raise ValueError("no storage path configured")
        storage.save_snapshot(path, self.to_dict())

    def shutdown(self):
        # Abort an in-flight mine first, then wait for the lock to flush.
        self._shutdown.set()
        with self._lock:
            if self.storage_path:
                self.save()

    # ── reads ────────────────────────────────────────────────────────────────

    def get_latest_block(self) -> Block:
        with self._lock:
            return self.chain[-1]

    def _ticket_transactions(self):
        committed = (tx for block in self.chain for tx in block.transactions)
        return itertools.chain(committed, self.pending_transactions)

    def get_ticket_state(self, ticket_id) -> TicketState:
        with self._lock:
            return replay(self._ticket_transactions(), ticket_id)

    def get_ticket_status(self, ticket_id, now=None) -> TicketStatus:
        now = now_ms() if now is None else now
        return self.get_ticket_state(ticket_id).status_at(now)

    def locate_transaction(self, tx_id) -> Optional[Block]:
        with self._lock:
            for block in reversed(self.chain):
                if any(tx.id == tx_id for tx in block.transactions):
                    return block
            return None

    def get_chain_snapshot(self) -> ChainSnapshot:
        with self._lock:
            return ChainSnapshot(
                blocks=tuple(block.copy() for block in self.chain),
                pending_transactions=tuple(self.pending_transactions),
                difficulty=self.difficulty,
                height=len(self.chain),
            )

    def is_valid(self) -> bool:
        with self._lock:
            try:
                verify_chain(self.chain, self.difficulty)
            except IntegrityError as e:
                logger.warning("Chain verification failed: %s", e)
                return False
            return True

    # ── writes ───────────────────────────────────────────────────────────────

    def add_transaction(self, tx: Transaction, now=None):
        # Shape, then authentication, then business rules.
        tx.validate()
        if not verify_signature(tx.payload, tx.signature, tx.ticket_id):
            logger.warning("Rejected %s %s: bad signature", tx.type.value, tx.id)
            raise AuthenticationError(tx.ticket_id)

        with self._lock:
            current = self.get_ticket_status(tx.ticket_id, now=now)
            if not _REQUIRED_STATUS[tx.type](current):
                logger.warning("Rejected %s %s: ticket is %s", tx.type.value, tx.id, current.value)
                raise StateError(current, tx.type)

            self.pending_transactions.append(tx)
            logger.info(
                "Accepted %s %s for ticket %s... (%d pending)",
                tx.type.value, tx.id, tx.ticket_id[:16], len(self.pending_transactions),
            )

    def mine_pending_transactions(self, cancel_event=None) -> Optional[Block]:
        cancel_event = _AnyEvent(self._shutdown, cancel_event)
        with self._lock:
            if not self.pending_transactions:
                return None

            previous = self.chain[-1]
            candidate = Block(
                previous.index + 1,
                now_ms(),
                self.pending_transactions,
                previous.hash,
            )
            # MiningCancelled propagates with chain and mempool untouched.
            block = seal_block(candidate, self.difficulty, cancel_event=cancel_event)

            self.chain.append(block)
            self.pending_transactions = []
            return block
