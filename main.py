import argparse
import logging

from app import create_app
from totem.blockchain import Blockchain
from totem.config import load_settings

logger = logging.getLogger("totem")


def build_blockchain(settings):
    if settings.chain_path:
        return Blockchain.load(settings.chain_path, difficulty=settings.difficulty)
    return Blockchain(difficulty=settings.difficulty)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the Totem ticket ledger")
    parser.add_argument("--config", help="JSON config file (default: totem_config.json)")
    parser.add_argument("--host", help="Bind address")
    parser.add_argument("--port", type=int, help="Bind port")
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    blockchain = build_blockchain(settings)
    genesis = blockchain.chain[0]
    logger.info("Totem ledger active. Genesis: %s... height %d", genesis.hash[:10], len(blockchain.chain))

    app = create_app(blockchain, settings)
    host = args.host or settings.host
    port = args.port or settings.port
    logger.info("Server running on %s:%d", host, port)
    try:
        app.run(host=host, port=port, threaded=True)
    except KeyboardInterrupt:
        logger.info("Exiting.")
    finally:
        blockchain.shutdown()


if __name__ == "__main__":
    main()
