"""
Lot Registry - Lockable, transactional store of lot snapshots.

Conceptual Background:
---------------------
The registry is the single owner of auction state: one entry per lot id,
each holding the latest committed Lot snapshot.

Transactions:
------------
Every mutation runs inside `transaction(lot_id)`:
1. The lot's exclusive lock is taken (writers to one lot are serialized,
   writers to different lots only share the commit step)
2. The caller reads `txn.current` and stages a replacement snapshot with
   its audit record
3. On a clean exit the staged snapshot is persisted, swapped in and its
   record appended to the audit log, all under the log-wide order so the
   stored and in-memory record sequences agree; on an exception nothing
   is applied
4. With the lot lock released, the record is published to subscribers

Locks exist only for ids that were created or are being created.

Readers never lock: `get()` returns the last committed snapshot, which is
never mutated afterwards.
"""

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

from sealedlots.core.auction.models import Lot
from sealedlots.core.events import AuditEvent, AuditLog
from sealedlots.utils.logger import get_logger

if TYPE_CHECKING:
    from sealedlots.core.storage import StorageManager

logger = get_logger("registry")


class LotTransaction:
    """
    Staging area of one registry transaction.

    Attributes:
        lot_id: Lot being mutated
        current: Committed snapshot when the transaction started (None if absent)
    """

    def __init__(self, lot_id: int, current: Optional[Lot]):
        self.lot_id = lot_id
        self.current = current
        self.staged: Optional[Lot] = None
        self.event: Optional[AuditEvent] = None
        self.bid_index: Optional[int] = None

    def stage_lot(self, lot: Lot, event: AuditEvent) -> None:
        """Stage a newly created lot (replacing `current` if any)."""
        self._check(lot)
        self.staged, self.event, self.bid_index = lot, event, None

    def stage_bid(self, lot: Lot, bid_index: int, event: AuditEvent) -> None:
        """Stage `lot` as `current` plus the bid at `bid_index`."""
        self._check(lot)
        if self.current is None:
            raise RuntimeError(f"Cannot stage a bid on missing lot {self.lot_id}")
        self.staged, self.event, self.bid_index = lot, event, bid_index

    def _check(self, lot: Lot) -> None:
        if lot.lot_id != self.lot_id:
            raise RuntimeError(f"Staged lot {lot.lot_id} in transaction for lot {self.lot_id}")
        if self.staged is not None:
            raise RuntimeError("A transaction stages a single mutation")


class LotRegistry:
    """
    Keyed store of lots.

    Attributes:
        audit_log: Where committed records are appended
        storage_manager: Optional persistence, written before the in-memory swap
    """

    def __init__(
        self,
        audit_log: Optional[AuditLog] = None,
        storage_manager: Optional["StorageManager"] = None,
    ):
        """
        Initialize the registry.

        Args:
            audit_log: Shared audit log. A fresh one is created if None.
            storage_manager: Persistence manager. None = in-memory only.
        """
        self.audit_log = audit_log if audit_log is not None else AuditLog()
        self.storage_manager = storage_manager

        self._lots: Dict[int, Lot] = {}
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        if storage_manager:
            self._load_from_storage()

    # =========================================================================
    # State Access
    # =========================================================================

    def get(self, lot_id: int) -> Optional[Lot]:
        """Latest committed snapshot of a lot, None if it was never created."""
        return self._lots.get(lot_id)

    def __contains__(self, lot_id: int) -> bool:
        return lot_id in self._lots

    def __len__(self) -> int:
        return len(self._lots)

    def lot_ids(self) -> List[int]:
        return sorted(self._lots)

    def lock_for(self, lot_id: int) -> threading.Lock:
        """The exclusive lock of a lot, created on first use."""
        with self._locks_guard:
            lock = self._locks.get(lot_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[lot_id] = lock
            return lock

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def transaction(self, lot_id: int) -> Iterator[LotTransaction]:
        """
        Run one all-or-nothing mutation of a lot.

        The committed record is published to audit subscribers after the
        lot lock is released, so a subscriber may call back into the
        registry and cannot fail a mutation that already happened.

        Yields:
            LotTransaction to read `current` from and stage into

        Raises:
            Whatever the block raises; nothing is applied in that case
        """
        with self.lock_for(lot_id):
            txn = LotTransaction(lot_id, self._lots.get(lot_id))
            yield txn
            if txn.staged is not None:
                self._commit(txn)

        if txn.staged is not None:
            self.audit_log.publish(txn.event)

    def _commit(self, txn: LotTransaction) -> None:
        # One log-wide order across all lots: stored seq == in-memory seq
        with self.audit_log.ordered():
            if self.storage_manager:
                if txn.bid_index is None:
                    self.storage_manager.persist_lot_created(txn.staged, txn.event)
                else:
                    self.storage_manager.persist_bid_created(txn.staged, txn.bid_index, txn.event)

            self._lots[txn.lot_id] = txn.staged
            self.audit_log.record(txn.event)

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_from_storage(self) -> None:
        """Load lots and the audit trail from storage manager."""
        lots = self.storage_manager.load_lots()
        for lot in lots:
            self._lots[lot.lot_id] = lot

        events = self.storage_manager.load_events()
        self.audit_log.extend(events)

        logger.info(f"Loaded registry: {len(lots)} lots, {len(events)} audit records")

    def __repr__(self) -> str:
        return f"LotRegistry(lots={len(self._lots)}, events={len(self.audit_log)})"
