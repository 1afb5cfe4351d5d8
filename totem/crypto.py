"""Ed25519 helpers.

The ticket id *is* the holder's raw public key in hex, so verifying a
transaction only needs public material: the wallet signs the canonical
payload bytes, the ledger re-encodes the payload the same way and checks.
"""
import binascii
import logging

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from totem.transaction import canonical_bytes

logger = logging.getLogger(__name__)

PUBLIC_KEY_LENGTH = 32
SIGNATURE_LENGTH = 64


def generate_keypair():
    private_key = Ed25519PrivateKey.generate()
    return private_key, public_key_hex(private_key)


def public_key_hex(private_key: Ed25519PrivateKey) -> str:
    raw = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return raw.hex()


def private_key_to_hex(private_key: Ed25519PrivateKey) -> str:
    raw = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return raw.hex()


def private_key_from_hex(private_hex: str) -> Ed25519PrivateKey:
    return Ed25519PrivateKey.from_private_bytes(bytes.fromhex(private_hex))


def sign_payload(payload, private_key: Ed25519PrivateKey) -> str:
    return private_key.sign(canonical_bytes(payload)).hex()


def verify_signature(payload, signature_hex: str, public_key_hex: str) -> bool:
    """True only if `signature_hex` is a valid signature of `payload` by `public_key_hex`.

    Malformed input is reported as False, the same as a mismatch.
    """
    try:
        signature = binascii.unhexlify(signature_hex)
        public_bytes = binascii.unhexlify(public_key_hex)
        message = canonical_bytes(payload)
    except (binascii.Error, TypeError, ValueError) as e:
        logger.debug("Rejecting malformed signature input: %s", e)
        return False

    if len(public_bytes) != PUBLIC_KEY_LENGTH or len(signature) != SIGNATURE_LENGTH:
        return False

    try:
        Ed25519PublicKey.from_public_bytes(public_bytes).verify(signature, message)
        return True
    except InvalidSignature:
        return False
    except ValueError as e:
        logger.debug("Rejecting unusable public key: %s", e)
        return False
