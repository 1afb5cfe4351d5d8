import json
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from totem.errors import TransactionFormatError


class TransactionType(str, Enum):
    MINT = "MINT"
    ACTIVATE = "ACTIVATE"
    INSPECT = "INSPECT"


def now_ms() -> int:
    return int(time.time() * 1000)


def _plain(value):
    if isinstance(value, Mapping):
        return dict(value)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def canonical_json(value: Any) -> str:
    # Shared bit-for-bit by the signer, the verifier and the block hasher.
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_plain)


def canonical_bytes(value: Any) -> bytes:
    return canonical_json(value).encode("utf-8")


def freeze(value):
    """Read-only copy of a JSON value: mappings become proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value):
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


def new_transaction_id() -> str:
    return uuid.uuid4().hex


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class Transaction:
    type: TransactionType
    ticket_id: str  # hex public key of the ticket holder
    payload: Mapping[str, Any]
    signature: str  # hex signature over the canonical payload
    id: str = field(default_factory=new_transaction_id)

    def __post_init__(self):
        if isinstance(self.payload, Mapping):
            object.__setattr__(self, "payload", freeze(self.payload))
        self.validate()

    def validate(self):
        """Raise TransactionFormatError unless the record can be replayed safely."""
        if not isinstance(self.type, TransactionType):
            raise TransactionFormatError(f"unknown transaction type {self.type!r}")
        if not isinstance(self.ticket_id, str) or not isinstance(self.signature, str):
            raise TransactionFormatError("ticketId and signature must be hex strings")
        if not isinstance(self.id, str) or not self.id:
            raise TransactionFormatError("id must be a non-empty string")
        if not isinstance(self.payload, Mapping):
            raise TransactionFormatError("payload must be a JSON object")
        if not _is_int(self.payload.get("timestamp")):
            raise TransactionFormatError("payload.timestamp must be an integer (ms)")
        duration = self.payload.get("duration")
        if duration is not None and (not _is_int(duration) or duration < 0):
            raise TransactionFormatError("payload.duration must be a non-negative integer (ms)")

    @property
    def timestamp(self) -> int:
        return self.payload["timestamp"]

    @property
    def duration(self) -> Optional[int]:
        return self.payload.get("duration")

    def get_bytes(self) -> bytes:
        return canonical_bytes(self.payload)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type.value,
            "ticketId": self.ticket_id,
            "payload": thaw(self.payload),
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], assign_id: bool = False):
        if not isinstance(data, Mapping):
            raise TransactionFormatError("transaction must be a JSON object")

        missing = [key for key in ("type", "ticketId", "payload", "signature") if not data.get(key)]
        if not assign_id and not data.get("id"):
            missing.insert(0, "id")
        if missing:
            raise TransactionFormatError(f"missing fields: {', '.join(missing)}")

        try:
            tx_type = TransactionType(data["type"])
        except ValueError:
            raise TransactionFormatError(f"unknown transaction type {data['type']!r}") from None

        return cls(
            type=tx_type,
            ticket_id=data["ticketId"],
            payload=data["payload"],
            signature=data["signature"],
            id=data.get("id") or new_transaction_id(),
        )
