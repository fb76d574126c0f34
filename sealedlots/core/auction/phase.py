"""
Phase Guard - Lot phase derived from expiration and the current time.

There is no explicit transition call. A lot is UNINITIALIZED until created,
ALIVE from creation until its expiration, and EXPIRED from then on; the
phase is recomputed on every access.
"""

from enum import IntEnum
from typing import Optional

from sealedlots.core.auction.models import Lot
from sealedlots.core.errors import PhaseError
from sealedlots.utils.logger import get_logger

logger = get_logger("phase")


class LotPhase(IntEnum):
    """Phase of a lot."""
    UNINITIALIZED = 0  # Never created (expiration == 0)
    ALIVE = 1          # Accepting bids (expiration > now)
    EXPIRED = 2        # Closed, winner readable (0 < expiration <= now)


def phase_of(expiration: int, now: int) -> LotPhase:
    """Phase for a raw expiration timestamp."""
    if expiration == 0:
        return LotPhase.UNINITIALIZED
    if expiration > now:
        return LotPhase.ALIVE
    return LotPhase.EXPIRED


def lot_phase(lot: Optional[Lot], now: int) -> LotPhase:
    """Phase of a lot snapshot; a missing lot is UNINITIALIZED."""
    if lot is None:
        return LotPhase.UNINITIALIZED
    return phase_of(lot.expiration, now)


def require_phase(
    lot_id: int,
    lot: Optional[Lot],
    expected: LotPhase,
    now: int,
    operation: Optional[str] = None,
) -> Lot:
    """
    Gate an operation on a lot phase.

    Returns:
        The lot, which is never None once the check passes
        (UNINITIALIZED is never a required phase)

    Raises:
        PhaseError: the lot is in any other phase
    """
    actual = lot_phase(lot, now)
    if actual != expected:
        logger.warning(f"{operation or 'operation'} on lot {lot_id} rejected: {actual.name}, needs {expected.name}")
        raise PhaseError(lot_id, expected, actual, operation)
    return lot


__all__ = ["LotPhase", "phase_of", "lot_phase", "require_phase"]
