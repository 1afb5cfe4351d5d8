import pytest

from totem.ticket_status import (
    DEFAULT_VALID_DURATION,
    TicketState,
    TicketStatus,
    apply_transaction,
    derive_status,
    replay,
)
from totem.transaction import Transaction, TransactionType

T1 = "a1" * 32
T2 = "b2" * 32


def tx(tx_type, ticket_id=T1, **payload):
    payload.setdefault("timestamp", 1000)
    return Transaction(type=TransactionType(tx_type), ticket_id=ticket_id, payload=payload, signature="00")


def test_unreferenced_ticket_is_invalid():
    assert derive_status([], T1, now=0) is TicketStatus.INVALID
    assert derive_status([tx("MINT", ticket_id=T2)], T1, now=0) is TicketStatus.INVALID


def test_mint_issues():
    assert derive_status([tx("MINT")], T1, now=0) is TicketStatus.ISSUED


@pytest.mark.parametrize("action", ["ACTIVATE", "INSPECT"])
def test_actions_before_mint_are_no_ops(action):
    assert derive_status([tx(action)], T1, now=0) is TicketStatus.INVALID


def test_activate_starts_timer_with_minted_duration():
    state = replay([tx("MINT", duration=500), tx("ACTIVATE", timestamp=2000, duration=99)], T1)
    assert state.status is TicketStatus.ACTIVE
    assert state.activated_at == 2000
    assert state.valid_duration == 500
    assert state.expires_at == 2500


def test_activate_duration_used_when_mint_had_none():
    state = replay([tx("MINT"), tx("ACTIVATE", timestamp=2000, duration=300)], T1)
    assert state.valid_duration == 300


def test_default_duration_is_two_hours():
    state = replay([tx("MINT"), tx("ACTIVATE", timestamp=2000)], T1)
    assert state.valid_duration == DEFAULT_VALID_DURATION == 7_200_000


def test_expiry_is_a_view_over_now():
    log = [tx("MINT", duration=10), tx("ACTIVATE", timestamp=1000)]
    assert derive_status(log, T1, now=1000) is TicketStatus.ACTIVE
    assert derive_status(log, T1, now=1010) is TicketStatus.ACTIVE
    assert derive_status(log, T1, now=1011) is TicketStatus.EXPIRED
    # Nothing in the log changed.
    assert replay(log, T1).status is TicketStatus.ACTIVE


def test_inspect_does_not_change_active():
    log = [tx("MINT"), tx("ACTIVATE", timestamp=1000), tx("INSPECT", timestamp=1500)]
    assert derive_status(log, T1, now=1600) is TicketStatus.ACTIVE


def test_second_mint_and_activate_are_no_ops():
    log = [
        tx("MINT", duration=100),
        tx("MINT", duration=999),
        tx("ACTIVATE", timestamp=1000),
        tx("ACTIVATE", timestamp=5000),
    ]
    state = replay(log, T1)
    assert state.activated_at == 1000
    assert state.valid_duration == 100


def test_only_matching_ticket_is_folded():
    log = [tx("MINT"), tx("MINT", ticket_id=T2), tx("ACTIVATE", ticket_id=T2)]
    assert derive_status(log, T1, now=0) is TicketStatus.ISSUED
    assert derive_status(log, T2, now=1000) is TicketStatus.ACTIVE


def test_reducer_is_pure():
    start = TicketState()
    after = apply_transaction(start, tx("MINT"))
    assert start.status is TicketStatus.INVALID
    assert after.status is TicketStatus.ISSUED


def test_expires_at_only_for_active():
    assert replay([tx("MINT")], T1).expires_at is None
    assert TicketState().status_at(10**15) is TicketStatus.INVALID
