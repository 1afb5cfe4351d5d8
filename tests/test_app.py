import pytest

from app import create_app
from totem.blockchain import Blockchain
from totem.config import Settings


@pytest.fixture
def ledger():
    return Blockchain(difficulty=1)


@pytest.fixture
def client(ledger):
    app = create_app(ledger, Settings(difficulty=1, chain_path=""))
    app.config["TESTING"] = True
    return app.test_client()


def _body(tx):
    record = tx.to_dict()
    del record["id"]
    return record


def test_chain_endpoint(client):
    response = client.get("/chain")
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["height"] == 1
    assert data["difficulty"] == 1
    assert data["pending"] == []
    assert data["blocks"][0]["previousHash"] == "0"


def test_submit_mints_and_seals(client, alice):
    response = client.post("/submit", json=_body(alice.tx("MINT", price="5.00")))
    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["data"]["status"] == "ACCEPTED"
    assert body["data"]["blockIndex"] == 1
    assert body["data"]["blockHash"].startswith("0")

    status = client.get(f"/status/{alice.ticket_id}").get_json()["data"]
    assert status == {"ticketId": alice.ticket_id, "status": "ISSUED", "expiresAt": None}


def test_status_reports_expiry(client, alice):
    client.post("/submit", json=_body(alice.tx("MINT", duration=60_000)))
    activate = alice.tx("ACTIVATE")
    client.post("/submit", json=_body(activate))

    data = client.get(f"/status/{alice.ticket_id}").get_json()["data"]
    assert data["status"] == "ACTIVE"
    assert data["expiresAt"] == activate.timestamp + 60_000


def test_unknown_ticket_status(client):
    data = client.get("/status/deadbeef").get_json()["data"]
    assert data["status"] == "INVALID"


def test_bad_signature_is_401(client, alice, mallory):
    response = client.post("/submit", json=_body(alice.tx("MINT", signer=mallory.private_key)))
    assert response.status_code == 401
    assert response.get_json()["success"] is False


def test_illegal_transition_is_409(client, alice):
    response = client.post("/submit", json=_body(alice.tx("ACTIVATE")))
    assert response.status_code == 409
    assert "ticket is INVALID" in response.get_json()["error"]


@pytest.mark.parametrize(
    "body",
    [
        {"type": "MINT"},
        {"type": "ENTRY", "ticketId": "ab", "payload": {"timestamp": 1}, "signature": "cd"},
    ],
)
def test_malformed_submission_is_400(client, body):
    response = client.post("/submit", json=body)
    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_missing_body_is_400(client):
    response = client.post("/submit", data="not json", content_type="text/plain")
    assert response.status_code == 400
    assert response.get_json()["error"] == "No data provided"


def test_pending_mode_and_mine(ledger, alice):
    app = create_app(ledger, Settings(difficulty=1, chain_path="", auto_mine=False))
    client = app.test_client()

    response = client.post("/submit", json=_body(alice.tx("MINT")))
    assert response.status_code == 202
    assert response.get_json()["data"]["status"] == "PENDING"

    # Double admission is blocked while the first MINT is still pending.
    assert client.post("/submit", json=_body(alice.tx("MINT"))).status_code == 409
    assert len(client.get("/chain").get_json()["data"]["pending"]) == 1

    block = client.post("/mine").get_json()["data"]
    assert block["index"] == 1
    assert len(block["transactions"]) == 1
    assert client.post("/mine").get_json()["data"] is None


def test_mining_during_shutdown_is_503(ledger, alice):
    app = create_app(ledger, Settings(difficulty=1, chain_path="", auto_mine=False))
    client = app.test_client()
    client.post("/submit", json=_body(alice.tx("MINT")))
    ledger.shutdown()

    response = client.post("/mine")
    assert response.status_code == 503
    assert len(ledger.pending_transactions) == 1
