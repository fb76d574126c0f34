from pathlib import Path
from types import MappingProxyType
from typing import List, Optional, Tuple

from sealedlots.core.events import AuditEvent, event_from_json
from sealedlots.core.auction.models import Bid, Lot, LotPart
from sealedlots.core.storage.sqlite_adapter import SQLiteAdapter
from sealedlots.crypto import bytes_to_hex, hex_to_bytes
from sealedlots.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for an auction.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Lot creation and bid appends, each in one SQL transaction
      together with its audit record
    - Audit trail reload
    - Metadata (administrative owner)
    """

    def __init__(self, data_dir: Path, db_name: str = "auction.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    def close(self):
        self.adapter.close()

    # =========================================================================
    # Metadata
    # =========================================================================

    def save_owner(self, owner: bytes):
        """Save the administrative owner address."""
        self.adapter.set_chain_meta("owner", bytes_to_hex(owner))

    def persist_owner_change(self, owner: bytes, event: AuditEvent):
        """Atomically save a new owner and the record of the change."""
        self.adapter.set_chain_meta_with_event(
            "owner", bytes_to_hex(owner), event.event, event.model_dump_json()
        )

    def get_owner(self) -> Optional[bytes]:
        value = self.adapter.get_chain_meta("owner")
        return hex_to_bytes(value) if value is not None else None

    # =========================================================================
    # Auction State
    # =========================================================================

    def persist_lot_created(self, lot: Lot, event: AuditEvent):
        """Atomically store a new lot (replacing any lot at the same id)."""
        lot_row = (
            lot.lot_id,
            lot.owner,
            lot.expiration,
            lot.reference_amount,
            lot.bid_count,
            lot.winning_bid,
            lot.winning_score,
            lot.winning_secret_hash,
        )
        part_rows = [(pos, p.token, p.part) for pos, p in enumerate(lot.parts)]
        self.adapter.replace_lot(lot_row, part_rows, event.event, event.model_dump_json())

    def persist_bid_created(self, lot: Lot, bid_index: int, event: AuditEvent):
        """
        Atomically store a bid.

        Args:
            lot: Lot snapshot after the bid was recorded
            bid_index: Index of the new bid
            event: BidCreated record
        """
        bid = lot.bids[bid_index]
        self.adapter.append_bid(
            lot.lot_id,
            bid_index,
            bid.sender,
            bid.amounts,
            bid.secret_hash,
            lot.bid_count,
            lot.winning_bid,
            lot.winning_score,
            lot.winning_secret_hash,
            event.event,
            event.model_dump_json(),
        )

    def load_lots(self) -> List[Lot]:
        """Rebuild every stored lot snapshot."""
        lots = []
        for row in self.adapter.get_all_lots():
            lot_id, owner, expiration, reference_amount, bid_count, winning_bid, winning_score, winning_hash = row
            parts = tuple(
                LotPart(token=token, part=part)
                for token, part in self.adapter.get_lot_parts(lot_id)
            )
            bids = {
                index: Bid(sender=sender, amounts=tuple(amounts), secret_hash=secret_hash)
                for index, sender, amounts, secret_hash in self.adapter.get_lot_bids(lot_id)
            }
            lots.append(Lot(
                lot_id=lot_id,
                owner=owner,
                parts=parts,
                expiration=expiration,
                reference_amount=reference_amount,
                bid_count=bid_count,
                bids=MappingProxyType(bids),
                winning_bid=winning_bid,
                winning_score=winning_score,
                winning_secret_hash=winning_hash,
            ))
        return lots

    def load_events(self) -> List[AuditEvent]:
        """Rebuild the audit trail in append order."""
        return [event_from_json(kind, payload) for kind, payload in self.adapter.get_all_events()]

    def load_auction_state(self) -> Tuple[List[Lot], List[AuditEvent], Optional[bytes]]:
        """
        Load full auction state.

        Returns:
            (lots, events, owner)
        """
        return self.load_lots(), self.load_events(), self.get_owner()
