"""
SealedLots Auction Module.

This module provides the lot auction:
- Lot and bid records
- Scoring and winner selection
- Phase guard
- Lot registry with per-lot transactions
- The Auction service
- Commitment helper for bidders
"""

from sealedlots.core.auction.models import (
    Lot,
    LotPart,
    Bid,
    WinBetInfo,
    EMPTY_SECRET_HASH,
)

from sealedlots.core.auction.scoring import (
    calculate_score,
    compare_bids,
    select_winner,
    verify_winner,
    rank_bids,
)

from sealedlots.core.auction.phase import (
    LotPhase,
    lot_phase,
    phase_of,
    require_phase,
)

from sealedlots.core.auction.registry import LotRegistry, LotTransaction
from sealedlots.core.auction.auction import Auction
from sealedlots.core.auction.commitment import create_secret_hash, create_sealed_bid

__all__ = [
    # Models
    "Lot",
    "LotPart",
    "Bid",
    "WinBetInfo",
    "EMPTY_SECRET_HASH",
    # Scoring
    "calculate_score",
    "compare_bids",
    "select_winner",
    "verify_winner",
    "rank_bids",
    # Phase
    "LotPhase",
    "lot_phase",
    "phase_of",
    "require_phase",
    # Registry
    "LotRegistry",
    "LotTransaction",
    # Service
    "Auction",
    # Commitments
    "create_secret_hash",
    "create_sealed_bid",
]
