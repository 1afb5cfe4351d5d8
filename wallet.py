"""Wallet CLI: keeps ticket keys on this machine and talks to the ledger over HTTP.

Usage:
    python wallet.py new alice
    python wallet.py mint alice --price "5.00 CHF"
    python wallet.py activate alice --location Bern
    python wallet.py inspect alice --device POLICE_SCANNER
    python wallet.py status alice
    python wallet.py list
    python wallet.py chain
"""
import argparse
import json
import logging
import sys
from pathlib import Path

import requests

from totem.config import load_settings
from totem.crypto import generate_keypair, private_key_from_hex, private_key_to_hex, sign_payload
from totem.transaction import now_ms

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 2 * 60 * 60 * 1000
REQUEST_TIMEOUT = 30


class WalletError(Exception):
    pass


# ── wallet file ──────────────────────────────────────────────────────────────

def load_wallets(path):
    path = Path(path)
    if not path.exists():
        return []
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def save_wallets(path, wallets):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(wallets, f, indent=2)


def find_wallet(wallets, name):
    for wallet in wallets:
        if wallet["name"] == name:
            return wallet
    raise WalletError(f"no wallet named {name!r}")


def create_wallet(path, name):
    wallets = load_wallets(path)
    if any(w["name"] == name for w in wallets):
        raise WalletError(f"wallet {name!r} already exists")

    private_key, ticket_id = generate_keypair()
    wallet = {
        "name": name,
        "id": ticket_id,
        "privateKey": private_key_to_hex(private_key),
        "status": "NEW",
    }
    wallets.append(wallet)
    save_wallets(path, wallets)
    return wallet


# ── API client ───────────────────────────────────────────────────────────────

class TotemClient:
    def __init__(self, api_url, session=None):
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()

    def _unwrap(self, response):
        try:
            body = response.json()
        except ValueError:
            raise WalletError(f"unexpected response ({response.status_code}): {response.text[:200]}") from None
        if not body.get("success"):
            raise WalletError(body.get("error") or f"request failed ({response.status_code})")
        return body.get("data")

    def submit(self, tx_type, wallet, payload):
        signature = sign_payload(payload, private_key_from_hex(wallet["privateKey"]))
        response = self.session.post(
            f"{self.api_url}/submit",
            json={"type": tx_type, "ticketId": wallet["id"], "payload": payload, "signature": signature},
            timeout=REQUEST_TIMEOUT,
        )
        return self._unwrap(response)

    def status(self, ticket_id):
        response = self.session.get(f"{self.api_url}/status/{ticket_id}", timeout=REQUEST_TIMEOUT)
        return self._unwrap(response)

    def chain(self):
        response = self.session.get(f"{self.api_url}/chain", timeout=REQUEST_TIMEOUT)
        return self._unwrap(response)


def build_payload(device_id, **fields):
    payload = {"timestamp": now_ms(), "deviceId": device_id}
    payload.update({key: value for key, value in fields.items() if value is not None})
    return payload


# ── commands ─────────────────────────────────────────────────────────────────

def cmd_new(args, client):
    wallet = create_wallet(args.wallet_path, args.name)
    print(f"Created wallet for {wallet['name']}. Ticket ID: {wallet['id'][:16]}...")


def cmd_list(args, client):
    wallets = load_wallets(args.wallet_path)
    if not wallets:
        print("(No wallets found)")
    for i, wallet in enumerate(wallets, 1):
        print(f"{i}. {wallet['name']}\t[{wallet['status']}]\t{wallet['id'][:16]}...")


def _submit(args, client, tx_type, payload):
    wallets = load_wallets(args.wallet_path)
    wallet = find_wallet(wallets, args.name)
    print(f"> Sending {tx_type}...")
    data = client.submit(tx_type, wallet, payload)
    if "blockIndex" in data:
        print(f"Success! Block Index: {data['blockIndex']}")
    else:
        print(f"Accepted, pending as {data['txId']}")
    wallet["status"] = client.status(wallet["id"])["status"]
    save_wallets(args.wallet_path, wallets)


def cmd_mint(args, client):
    _submit(args, client, "MINT", build_payload(args.device, price=args.price, duration=args.duration))


def cmd_activate(args, client):
    _submit(args, client, "ACTIVATE", build_payload(args.device, location=args.location))


def cmd_inspect(args, client):
    _submit(args, client, "INSPECT", build_payload(args.device, location=args.location))


def cmd_status(args, client):
    wallets = load_wallets(args.wallet_path)
    wallet = find_wallet(wallets, args.name)
    data = client.status(wallet["id"])
    wallet["status"] = data["status"]
    save_wallets(args.wallet_path, wallets)
    print(f"{wallet['name']}: {data['status']}")
    if data.get("expiresAt"):
        print(f"Expires at {data['expiresAt']} (ms)")


def cmd_chain(args, client):
    data = client.chain()
    print(f"Height: {data['height']}  Difficulty: {data['difficulty']}  Pending: {len(data['pending'])}")
    for block in data["blocks"]:
        print(f"#{block['index']} {block['hash'][:16]}... txs={len(block['transactions'])} nonce={block['nonce']}")


def build_parser(settings):
    parser = argparse.ArgumentParser(description="Totem ticket wallet")
    parser.add_argument("--api-url", default=settings.api_url, help="Ledger API base URL")
    parser.add_argument("--wallet-path", default=settings.wallet_path, help="Wallet JSON file")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("new", help="Generate a key pair (a new ticket identity)")
    p.add_argument("name")
    p.set_defaults(func=cmd_new)

    p = sub.add_parser("list", help="List local wallets")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("mint", help="Buy a ticket")
    p.add_argument("name")
    p.add_argument("--price", default="5.00")
    p.add_argument("--duration", type=int, default=DEFAULT_DURATION, help="Validity in ms")
    p.add_argument("--device", default="CLI_KIOSK")
    p.set_defaults(func=cmd_mint)

    p = sub.add_parser("activate", help="Start the ticket timer")
    p.add_argument("name")
    p.add_argument("--location", default="Demo Station")
    p.add_argument("--device", default="PHONE_APP")
    p.set_defaults(func=cmd_activate)

    p = sub.add_parser("inspect", help="Record an inspection")
    p.add_argument("name")
    p.add_argument("--location", default="Train IC1")
    p.add_argument("--device", default="POLICE_SCANNER")
    p.set_defaults(func=cmd_inspect)

    p = sub.add_parser("status", help="Show the ticket status")
    p.add_argument("name")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("chain", help="Show the chain")
    p.set_defaults(func=cmd_chain)
    return parser


def main(argv=None, settings=None, session=None):
    settings = settings or load_settings()
    args = build_parser(settings).parse_args(argv)
    client = TotemClient(args.api_url, session=session)
    try:
        args.func(args, client)
    except WalletError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except requests.RequestException as e:
        logger.debug("Request failed", exc_info=True)
        print(f"Connection Error: {args.api_url} unreachable ({e})", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
