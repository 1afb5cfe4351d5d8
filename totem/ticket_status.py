"""Ticket lifecycle derived by replaying the transaction log.

Status is never stored: it is a left fold over every transaction that
references a ticket, in chain order then mempool order. Expiry is a view
over the folded state at a given ``now`` and is never written to the log.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional

from totem.transaction import Transaction, TransactionType

DEFAULT_VALID_DURATION = 2 * 60 * 60 * 1000  # 2 hours in ms


class TicketStatus(str, Enum):
    INVALID = "INVALID"  # never minted
    ISSUED = "ISSUED"  # minted, timer not started
    ACTIVE = "ACTIVE"  # timer running, valid for travel
    EXPIRED = "EXPIRED"  # timer ran out
    USED = "USED"  # reserved, no action leads here


@dataclass(frozen=True)
class TicketState:
    status: TicketStatus = TicketStatus.INVALID
    minted_duration: Optional[int] = None
    activated_at: Optional[int] = None
    valid_duration: Optional[int] = None

    @property
    def expires_at(self) -> Optional[int]:
        if self.status is not TicketStatus.ACTIVE:
            return None
        return self.activated_at + self.valid_duration

    def status_at(self, now: int) -> TicketStatus:
        if self.status is TicketStatus.ACTIVE and now > self.expires_at:
            return TicketStatus.EXPIRED
        return self.status


def apply_transaction(state: TicketState, tx: Transaction) -> TicketState:
    if state.status is TicketStatus.INVALID and tx.type is TransactionType.MINT:
        return replace(state, status=TicketStatus.ISSUED, minted_duration=tx.duration)

    if state.status is TicketStatus.ISSUED and tx.type is TransactionType.ACTIVATE:
        duration = state.minted_duration
        if duration is None:
            duration = tx.duration if tx.duration is not None else DEFAULT_VALID_DURATION
        return replace(
            state,
            status=TicketStatus.ACTIVE,
            activated_at=tx.timestamp,
            valid_duration=duration,
        )

    # INSPECT is audit-only; everything else is a no-op.
    return state


def replay(transactions: Iterable[Transaction], ticket_id: str) -> TicketState:
    state = TicketState()
    for tx in transactions:
        if tx.ticket_id == ticket_id:
            state = apply_transaction(state, tx)
    return state


def derive_status(transactions: Iterable[Transaction], ticket_id: str, now: int) -> TicketStatus:
    return replay(transactions, ticket_id).status_at(now)
