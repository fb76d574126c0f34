"""
Scoring - Deterministic bid scoring and winner selection.

This module implements the ranking rule of a lot auction:
- Score: checked sum of a bid's per-asset amounts
- Winner: argmax over score, earliest bid wins ties

Every asset unit counts equally toward the score; there is no weighting by
the lot's share sizes. All computations stay in uint256 integer arithmetic
and abort on overflow instead of saturating.
"""

from typing import Iterable, Mapping, Optional, Sequence, Tuple

from sealedlots.core.auction.models import Bid, Lot
from sealedlots.core.safe_math import safe_add
from sealedlots.utils.logger import get_logger

logger = get_logger("scoring")


# =============================================================================
# Score Computation
# =============================================================================

def calculate_score(amounts: Iterable[int]) -> int:
    """
    Compute the score of a bid.

    Args:
        amounts: Per-asset amounts of the bid

    Returns:
        Sum of the amounts

    Raises:
        ArithmeticOverflowError: the sum leaves uint256
    """
    score = 0
    for amount in amounts:
        score = safe_add(score, amount)
    return score


# =============================================================================
# Winner Selection
# =============================================================================

def compare_bids(score_a: int, index_a: int, score_b: int, index_b: int) -> int:
    """
    Compare two scored bids.

    Uses lexicographic ordering: (score, -index)

    Returns:
        -1 if bid a loses to bid b
         0 if they are the same bid
        +1 if bid a beats bid b
    """
    if score_a > score_b:
        return 1
    if score_a < score_b:
        return -1

    # Equal score: the earlier bid wins
    if index_a < index_b:
        return 1
    if index_a > index_b:
        return -1
    return 0


def select_winner(bids: Mapping[int, Bid]) -> Tuple[Optional[int], int]:
    """
    Select the winning bid by a full scan.

    The live auction keeps a streaming summary instead; this scan is the
    reference it is checked against.

    Args:
        bids: bid index -> Bid

    Returns:
        (winner_index, winner_score), (None, 0) if there are no bids
    """
    if not bids:
        logger.debug("No bids to select winner from")
        return None, 0

    winner_idx: Optional[int] = None
    winner_score = 0

    for index in sorted(bids):
        score = calculate_score(bids[index].amounts)
        if winner_idx is None or compare_bids(score, index, winner_score, winner_idx) > 0:
            winner_idx = index
            winner_score = score

    logger.debug(f"Selected winner at index {winner_idx} with score {winner_score}")
    return winner_idx, winner_score


def verify_winner(lot: Lot) -> bool:
    """
    Verify that the lot's streaming winner summary matches a full scan.

    Args:
        lot: Lot snapshot

    Returns:
        True if index, score and commitment hash all agree
    """
    expected_idx, expected_score = select_winner(lot.bids)

    if expected_idx is None:
        return lot.winning_bid is None

    return (
        lot.winning_bid == expected_idx
        and lot.winning_score == expected_score
        and lot.winning_secret_hash == lot.bids[expected_idx].secret_hash
    )


def rank_bids(bids: Mapping[int, Bid]) -> Sequence[Tuple[int, int, int]]:
    """
    Rank all bids from best to worst.

    Returns list of (bid_index, rank, score) tuples.
    """
    scored = [(index, calculate_score(bid.amounts)) for index, bid in bids.items()]

    # Sort by (score desc, index asc)
    scored.sort(key=lambda x: (-x[1], x[0]))

    return [(index, rank, score) for rank, (index, score) in enumerate(scored)]


__all__ = [
    "calculate_score",
    "compare_bids",
    "select_winner",
    "verify_winner",
    "rank_bids",
]
