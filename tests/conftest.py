"""Shared fixtures: key pairs, a signed-transaction factory and a cheap ledger."""
import pytest

from totem.blockchain import Blockchain
from totem.crypto import generate_keypair, sign_payload
from totem.transaction import Transaction, TransactionType, now_ms


class Holder:
    def __init__(self):
        self.private_key, self.ticket_id = generate_keypair()

    def tx(self, tx_type, signer=None, ticket_id=None, **payload_fields):
        payload = {"timestamp": now_ms(), "deviceId": "TEST_DEVICE"}
        payload.update(payload_fields)
        signer = signer or self.private_key
        return Transaction(
            type=TransactionType(tx_type),
            ticket_id=ticket_id or self.ticket_id,
            payload=payload,
            signature=sign_payload(payload, signer),
        )


@pytest.fixture
def make_holder():
    return Holder


@pytest.fixture
def alice():
    return Holder()


@pytest.fixture
def mallory():
    return Holder()


@pytest.fixture
def blockchain():
    return Blockchain(difficulty=1)
