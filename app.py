import logging

from flask import Flask, jsonify, request

from totem.blockchain import Blockchain
from totem.config import load_settings
from totem.errors import AuthenticationError, MiningCancelled, StateError, TransactionFormatError
from totem.transaction import Transaction, now_ms

logger = logging.getLogger(__name__)


def ok(data, status=200):
    return jsonify({"success": True, "data": data}), status


def fail(message, status=400):
    return jsonify({"success": False, "error": message}), status


def create_app(blockchain=None, settings=None):
    settings = settings or load_settings()
    blockchain = blockchain or Blockchain(difficulty=settings.difficulty)

    app = Flask(__name__)
    app.config["TOTEM_SETTINGS"] = settings
    app.extensions["totem"] = blockchain

    @app.errorhandler(MiningCancelled)
    def mining_cancelled(e):
        logger.warning("Request aborted: %s", e)
        return fail("ledger is shutting down", 503)

    @app.route("/chain", methods=["GET"])
    def get_chain():
        return ok(blockchain.get_chain_snapshot().to_dict())

    @app.route("/status/<ticket_id>", methods=["GET"])
    def get_status(ticket_id):
        state = blockchain.get_ticket_state(ticket_id)
        status = state.status_at(now_ms())
        return ok({"ticketId": ticket_id, "status": status.value, "expiresAt": state.expires_at})

    @app.route("/submit", methods=["POST"])
    def submit_transaction():
        tx_dict = request.get_json(silent=True)
        if tx_dict is None:
            return fail("No data provided")

        try:
            tx = Transaction.from_dict(tx_dict, assign_id=True)
            blockchain.add_transaction(tx)
        except TransactionFormatError as e:
            return fail(str(e), 400)
        except AuthenticationError as e:
            return fail(str(e), 401)
        except StateError as e:
            return fail(str(e), 409)

        if not settings.auto_mine:
            return ok({"status": "PENDING", "txId": tx.id}, 202)

        block = blockchain.mine_pending_transactions()
        if block is None:
            # A concurrent /mine sealed it first.
            block = blockchain.locate_transaction(tx.id)
        return ok({
            "status": "ACCEPTED",
            "txId": tx.id,
            "blockIndex": block.index,
            "blockHash": block.hash,
        })

    @app.route("/mine", methods=["POST"])
    def mine():
        block = blockchain.mine_pending_transactions()
        return ok(block.to_dict() if block else None)

    return app
