"""
Lot Auction - Multi-asset lot auction with streaming winner selection.

This module implements the lot/bid lifecycle:
1. Creation: a lot bundles asset shares and opens a fixed bidding window
2. Bidding: while the lot is alive, bids (per-asset amounts + commitment
   hash) are appended and the winner summary is updated in place
3. Result: once the window has passed, the winning bid is readable

Each mutating call is atomic and serialized per lot through the registry.
Failures raise ValidationError, PhaseError or ArithmeticOverflowError and
leave no trace.
"""

from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from sealedlots.core.access import Ownable
from sealedlots.core.auction.models import Bid, Lot, WinBetInfo, build_parts
from sealedlots.core.auction.phase import LotPhase, lot_phase, require_phase
from sealedlots.core.auction.registry import LotRegistry
from sealedlots.core.auction.scoring import calculate_score, verify_winner
from sealedlots.core.clock import Clock, SystemClock
from sealedlots.core.config import AuctionConfig
from sealedlots.core.errors import ValidationError
from sealedlots.core.events import AuditLog, BidCreated, LotCreated
from sealedlots.crypto import ZERO_ADDRESS, bytes_to_hex
from sealedlots.utils.logger import get_logger
from sealedlots.utils.validation import validate_bet_request, validate_lot_request

if TYPE_CHECKING:
    from sealedlots.core.storage import StorageManager

logger = get_logger("auction")


class Auction:
    """
    Lot auction service.

    Holds the lot registry, the audit log, the clock every phase check uses
    and the administrative owner capability.

    Attributes:
        config: Auction parameters
        clock: Current-time provider
        audit_log: Append-only LotCreated / BidCreated / ownership records
        registry: Lot store
        ownership: Owner capability for administrative operations
    """

    def __init__(
        self,
        config: Optional[AuctionConfig] = None,
        clock: Optional[Clock] = None,
        storage_manager: Optional["StorageManager"] = None,
        owner: Optional[bytes] = None,
    ):
        """
        Initialize the auction.

        Args:
            config: Parameters. Defaults to AuctionConfig().
            clock: Time source. Defaults to SystemClock().
            storage_manager: Persistence manager. None = in-memory only.
            owner: Administrative owner. A stored owner takes precedence; a
                new store records the given owner. Without either, the
                auction starts unowned and nothing is stored, so a later
                open with an owner can still claim it.
        """
        self.config = config or AuctionConfig()
        self.clock = clock or SystemClock()
        self.storage_manager = storage_manager

        self.audit_log = AuditLog()
        self.registry = LotRegistry(self.audit_log, storage_manager)

        stored_owner = storage_manager.get_owner() if storage_manager else None
        if stored_owner is not None:
            if owner is not None and owner != stored_owner:
                logger.warning(
                    f"Ignoring owner {bytes_to_hex(owner)}: store is owned by {bytes_to_hex(stored_owner)}"
                )
            owner = stored_owner
        self.ownership = Ownable(
            owner if owner is not None else ZERO_ADDRESS, self.audit_log, storage_manager
        )
        if storage_manager and stored_owner is None and owner is not None:
            storage_manager.save_owner(self.ownership.owner)

        logger.info(
            f"Auction initialized: window={self.config.bidding_window}s, "
            f"lots={len(self.registry)}"
        )

    # =========================================================================
    # Lot Creation
    # =========================================================================

    def create_lot(
        self,
        sender: bytes,
        lot_id: int,
        tokens: Sequence[bytes],
        parts: Sequence[int],
        reference_amount: int = 0,
    ) -> int:
        """
        Create a lot and open its bidding window.

        Args:
            sender: Creator address, becomes the lot owner
            lot_id: Lot identifier chosen by the creator
            tokens: Asset addresses
            parts: Share of each asset, aligned with tokens
            reference_amount: Reference amount recorded with the lot

        Returns:
            lot_id

        Raises:
            ValidationError: empty or mismatched tokens/parts, malformed
                values, or lot_id already taken (unless overwrite is allowed)
        """
        valid, err = validate_lot_request(
            sender, lot_id, tokens, parts, reference_amount,
            max_parts=self.config.max_lot_parts,
        )
        if not valid:
            logger.warning(f"create_lot rejected: {err}")
            raise ValidationError(err)

        with self.registry.transaction(lot_id) as txn:
            if txn.current is not None:
                if not self.config.allow_lot_overwrite:
                    logger.warning(f"create_lot rejected: lot {lot_id} already exists")
                    raise ValidationError(f"Lot {lot_id} already exists")
                logger.warning(
                    f"Overwriting lot {lot_id}: discarding {len(txn.current.bids)} bids"
                )

            now = self.clock.now()
            lot = Lot(
                lot_id=lot_id,
                owner=bytes(sender),
                parts=build_parts(list(tokens), list(parts)),
                expiration=now + self.config.bidding_window,
                reference_amount=reference_amount,
                bid_count=self.config.first_bid_index,
            )
            event = LotCreated(
                lot_id=lot_id,
                owner=bytes(sender),
                tokens=[bytes(t) for t in tokens],
                parts=list(parts),
                reference_amount=reference_amount,
            )
            txn.stage_lot(lot, event)

        logger.info(
            f"Lot {lot_id} created by {bytes_to_hex(sender)[:10]}...: "
            f"{len(lot.parts)} parts, open until {lot.expiration}"
        )
        return lot_id

    # =========================================================================
    # Bidding
    # =========================================================================

    def create_bet(
        self,
        sender: bytes,
        lot_id: int,
        amounts: Sequence[int],
        secret_hash: bytes,
    ) -> int:
        """
        Submit a bid on an alive lot.

        The bid's score is the checked sum of its amounts. The first bid of
        a lot becomes the winner; later bids replace it only with a strictly
        greater score.

        Args:
            sender: Bidder address
            lot_id: Lot to bid on
            amounts: One amount per lot part, in part order
            secret_hash: 20-byte commitment hash

        Returns:
            Index of the new bid

        Raises:
            PhaseError: the lot is not alive
            ValidationError: amounts misaligned with the lot, malformed values
            ArithmeticOverflowError: score or bid counter overflow
        """
        # Unknown ids are rejected before a lot lock is created for them
        require_phase(
            lot_id, self.registry.get(lot_id), LotPhase.ALIVE, self.clock.now(), "create_bet"
        )

        with self.registry.transaction(lot_id) as txn:
            lot = require_phase(
                lot_id, txn.current, LotPhase.ALIVE, self.clock.now(), "create_bet"
            )

            valid, err = validate_bet_request(sender, amounts, secret_hash, len(lot.parts))
            if not valid:
                logger.warning(f"create_bet on lot {lot_id} rejected: {err}")
                raise ValidationError(err)

            bid = Bid(sender=bytes(sender), amounts=tuple(amounts), secret_hash=bytes(secret_hash))
            score = calculate_score(bid.amounts)
            bid_index = lot.bid_count
            updated = lot.with_bid(bid, score)

            event = BidCreated(
                lot_id=lot_id,
                sender=bid.sender,
                bid_index=bid_index,
                amounts=list(bid.amounts),
                secret_hash=bid.secret_hash,
            )
            txn.stage_bid(updated, bid_index, event)

        logger.debug(
            f"Bid {bid_index} on lot {lot_id}: score={score}, "
            f"leader={updated.winning_bid} ({updated.winning_score})"
        )
        return bid_index

    # =========================================================================
    # Winner Queries (expired lots only)
    # =========================================================================

    def get_win_bet_info(self, lot_id: int) -> WinBetInfo:
        """
        Score and commitment hash of the winning bid.

        A lot that received no bids reports score 0 and an all-zero hash.

        Raises:
            PhaseError: the lot is not expired
        """
        lot = require_phase(
            lot_id, self.registry.get(lot_id), LotPhase.EXPIRED,
            self.clock.now(), "get_win_bet_info",
        )
        return WinBetInfo(score=lot.winning_score, secret_hash=lot.winning_secret_hash)

    def get_winning_bet(self, lot_id: int) -> Optional[int]:
        """
        Index of the winning bid, None if the lot received no bids.

        Raises:
            PhaseError: the lot is not expired
        """
        lot = require_phase(
            lot_id, self.registry.get(lot_id), LotPhase.EXPIRED,
            self.clock.now(), "get_winning_bet",
        )
        return lot.winning_bid

    # =========================================================================
    # Bid Queries
    # =========================================================================

    def _bid(self, lot_id: int, bid_index: int, sealed_field: bool, operation: str) -> Bid:
        lot = self.registry.get(lot_id)
        if lot is None:
            raise ValidationError(f"Lot {lot_id} does not exist")
        if sealed_field and self.config.sealed_bid_queries:
            require_phase(lot_id, lot, LotPhase.EXPIRED, self.clock.now(), operation)
        bid = lot.get_bid(bid_index)
        if bid is None:
            raise ValidationError(f"Lot {lot_id} has no bid {bid_index}")
        return bid

    def get_bet_sender(self, lot_id: int, bid_index: int) -> bytes:
        """Address that submitted a bid. Never phase-gated."""
        return self._bid(lot_id, bid_index, False, "get_bet_sender").sender

    def get_bet_amounts(self, lot_id: int, bid_index: int) -> List[int]:
        """
        Amounts of a bid.

        Readable while the lot is alive unless `sealed_bid_queries` is set.
        """
        return list(self._bid(lot_id, bid_index, True, "get_bet_amounts").amounts)

    def get_bet_secret_hash(self, lot_id: int, bid_index: int) -> bytes:
        """
        Commitment hash of a bid.

        Readable while the lot is alive unless `sealed_bid_queries` is set.
        """
        return self._bid(lot_id, bid_index, True, "get_bet_secret_hash").secret_hash

    # =========================================================================
    # Inspection
    # =========================================================================

    def get_lot(self, lot_id: int) -> Optional[Lot]:
        """Latest committed snapshot of a lot."""
        return self.registry.get(lot_id)

    def get_phase(self, lot_id: int) -> LotPhase:
        return lot_phase(self.registry.get(lot_id), self.clock.now())

    def lot_ids(self) -> List[int]:
        return self.registry.lot_ids()

    def verify_winner(self, lot_id: int) -> bool:
        """Check the lot's winner summary against a full scan of its bids."""
        lot = self.registry.get(lot_id)
        if lot is None:
            raise ValidationError(f"Lot {lot_id} does not exist")
        return verify_winner(lot)

    def close(self) -> None:
        """Close storage."""
        if self.storage_manager:
            self.storage_manager.close()

    def __repr__(self) -> str:
        return f"Auction(lots={len(self.registry)}, events={len(self.audit_log)})"

    def stats(self) -> Dict[str, object]:
        """Get auction statistics."""
        now = self.clock.now()
        phases = {phase.name: 0 for phase in (LotPhase.ALIVE, LotPhase.EXPIRED)}
        bid_total = 0
        for lot_id in self.registry.lot_ids():
            lot = self.registry.get(lot_id)
            phases[lot_phase(lot, now).name] += 1
            bid_total += len(lot.bids)
        return {
            "lot_count": len(self.registry),
            "alive_lots": phases["ALIVE"],
            "expired_lots": phases["EXPIRED"],
            "bid_count": bid_total,
            "event_count": len(self.audit_log),
            "owner": bytes_to_hex(self.ownership.owner),
        }


__all__ = ["Auction"]
