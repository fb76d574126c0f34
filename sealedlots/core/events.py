"""
Audit records emitted by the auction.

Records are append-only and externally observable. Each one is a pydantic
model with a stable JSON form: addresses and hashes as 0x-prefixed hex,
uint256 values as decimal strings.
"""

import threading
from contextlib import contextmanager
from typing import Annotated, Callable, Dict, Iterator, List, Literal, Optional, Type

from pydantic import BaseModel, BeforeValidator, ConfigDict, PlainSerializer

from sealedlots.crypto import bytes_to_hex, hex_to_bytes
from sealedlots.utils.logger import get_logger

logger = get_logger("events")


def _to_bytes(value):
    if isinstance(value, str):
        return hex_to_bytes(value)
    return value


def _to_int(value):
    if isinstance(value, str):
        return int(value)
    return value


HexBytes = Annotated[
    bytes,
    BeforeValidator(_to_bytes),
    PlainSerializer(bytes_to_hex, return_type=str, when_used="json"),
]

Uint256 = Annotated[
    int,
    BeforeValidator(_to_int),
    PlainSerializer(str, return_type=str, when_used="json"),
]


# =============================================================================
# Records
# =============================================================================


class AuditEvent(BaseModel):
    """Base class of all audit records."""
    model_config = ConfigDict(frozen=True)

    event: str


class LotCreated(AuditEvent):
    event: Literal["LotCreated"] = "LotCreated"
    lot_id: Uint256
    owner: HexBytes
    tokens: List[HexBytes]
    parts: List[Uint256]
    reference_amount: Uint256


class BidCreated(AuditEvent):
    event: Literal["BidCreated"] = "BidCreated"
    lot_id: Uint256
    sender: HexBytes
    bid_index: Uint256
    amounts: List[Uint256]
    secret_hash: HexBytes


class OwnershipTransferred(AuditEvent):
    event: Literal["OwnershipTransferred"] = "OwnershipTransferred"
    previous_owner: HexBytes
    new_owner: HexBytes


class OwnershipRenounced(AuditEvent):
    event: Literal["OwnershipRenounced"] = "OwnershipRenounced"
    previous_owner: HexBytes


EVENT_TYPES: Dict[str, Type[AuditEvent]] = {
    cls.model_fields["event"].default: cls
    for cls in (LotCreated, BidCreated, OwnershipTransferred, OwnershipRenounced)
}


def event_from_json(kind: str, payload: str) -> AuditEvent:
    """Rebuild a record from its stored JSON form."""
    cls = EVENT_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"Unknown event kind: {kind}")
    return cls.model_validate_json(payload)


# =============================================================================
# Audit Log
# =============================================================================


class AuditLog:
    """
    In-memory, append-only sequence of audit records.

    Writers call `record()` while holding `ordered()` together with the
    storage write, so the in-memory order matches the stored order. Records
    are published to subscribers afterwards, once the writer has released
    its locks; a failing subscriber is logged and never fails the writer.
    """

    def __init__(self):
        self._events: List[AuditEvent] = []
        self._subscribers: List[Callable[[AuditEvent], None]] = []
        self._lock = threading.Lock()
        self._order_lock = threading.Lock()

    @contextmanager
    def ordered(self) -> Iterator[None]:
        """Hold the log-wide order across persisting and recording one record."""
        with self._order_lock:
            yield

    def record(self, event: AuditEvent) -> int:
        """Append a record without notifying, returning its sequence number."""
        with self._lock:
            self._events.append(event)
            return len(self._events) - 1

    def publish(self, event: AuditEvent) -> None:
        """Call every subscriber with an already recorded event, in order."""
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Audit subscriber {callback!r} failed on {event.event}")

    def append(self, event: AuditEvent) -> int:
        """Record and publish in one step."""
        with self.ordered():
            seq = self.record(event)
        self.publish(event)
        return seq

    def extend(self, events: List[AuditEvent]) -> None:
        """Bulk load without notifying subscribers (restore from storage)."""
        with self._lock:
            self._events.extend(events)

    def subscribe(self, callback: Callable[[AuditEvent], None]) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def events(self, kind: Optional[str] = None) -> List[AuditEvent]:
        with self._lock:
            if kind is None:
                return list(self._events)
            return [e for e in self._events if e.event == kind]

    def for_lot(self, lot_id: int) -> List[AuditEvent]:
        with self._lock:
            return [e for e in self._events if getattr(e, "lot_id", None) == lot_id]

    def __len__(self) -> int:
        return len(self._events)


__all__ = [
    "AuditEvent",
    "LotCreated",
    "BidCreated",
    "OwnershipTransferred",
    "OwnershipRenounced",
    "EVENT_TYPES",
    "event_from_json",
    "AuditLog",
]
