"""
Lot and bid records.

Lots are immutable snapshots: recording a bid produces a new Lot, and the
registry swaps the snapshot in on commit. Readers holding an older snapshot
keep a consistent view while writers move on.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from sealedlots.core.safe_math import safe_add
from sealedlots.crypto import bytes_to_hex
from sealedlots.utils.validation import SECRET_HASH_SIZE

# Winner hash of a lot without bids
EMPTY_SECRET_HASH = bytes(SECRET_HASH_SIZE)


@dataclass(frozen=True)
class LotPart:
    """One asset share of a lot."""
    token: bytes  # 20-byte asset address
    part: int     # share amount


@dataclass(frozen=True)
class Bid:
    """
    A participant's bid on a lot.

    `amounts` is positionally aligned with the lot parts. The secret hash is
    an opaque commitment, stored and returned as given.
    """
    sender: bytes
    amounts: Tuple[int, ...]
    secret_hash: bytes

    def to_dict(self) -> dict:
        return {
            "sender": bytes_to_hex(self.sender),
            "amounts": list(self.amounts),
            "secret_hash": bytes_to_hex(self.secret_hash),
        }


@dataclass(frozen=True)
class WinBetInfo:
    """Score and commitment hash of a lot's winning bid."""
    score: int
    secret_hash: bytes


@dataclass(frozen=True)
class Lot:
    """
    A bundle of asset shares being auctioned.

    Attributes:
        lot_id: Lot identifier (uint256)
        owner: Address of the creator
        parts: Assets and shares on sale, fixed at creation
        expiration: Unix time after which no bid is accepted (0 = uninitialized)
        reference_amount: Reference amount given at creation
        bid_count: Next bid index to assign
        bids: bid index -> Bid, dense from the first bid index
        winning_bid: Index of the current leader, None before the first bid
        winning_score: Score of the current leader
        winning_secret_hash: Commitment hash of the current leader
    """
    lot_id: int
    owner: bytes
    parts: Tuple[LotPart, ...]
    expiration: int
    reference_amount: int = 0
    bid_count: int = 0
    bids: Mapping[int, Bid] = field(default_factory=lambda: MappingProxyType({}))
    winning_bid: Optional[int] = None
    winning_score: int = 0
    winning_secret_hash: bytes = EMPTY_SECRET_HASH

    @property
    def tokens(self) -> List[bytes]:
        return [p.token for p in self.parts]

    @property
    def shares(self) -> List[int]:
        return [p.part for p in self.parts]

    def get_bid(self, index: int) -> Optional[Bid]:
        return self.bids.get(index)

    def with_bid(self, bid: Bid, score: int) -> "Lot":
        """
        Return the snapshot after appending `bid` with precomputed `score`.

        The bid takes index `bid_count`. The first bid of a lot always leads;
        later bids lead only with a strictly greater score, so among equal
        scores the earliest bid stays the winner.
        """
        index = self.bid_count
        next_count = safe_add(self.bid_count, 1)

        bids = dict(self.bids)
        bids[index] = bid

        if self.winning_bid is None or score > self.winning_score:
            winning_bid, winning_score, winning_hash = index, score, bid.secret_hash
        else:
            winning_bid = self.winning_bid
            winning_score = self.winning_score
            winning_hash = self.winning_secret_hash

        return replace(
            self,
            bid_count=next_count,
            bids=MappingProxyType(bids),
            winning_bid=winning_bid,
            winning_score=winning_score,
            winning_secret_hash=winning_hash,
        )

    def to_dict(self) -> dict:
        """JSON-friendly view, used by the CLI."""
        return {
            "lot_id": self.lot_id,
            "owner": bytes_to_hex(self.owner),
            "parts": [
                {"token": bytes_to_hex(p.token), "part": p.part} for p in self.parts
            ],
            "expiration": self.expiration,
            "reference_amount": self.reference_amount,
            "bid_count": self.bid_count,
            "bids": {str(i): b.to_dict() for i, b in self.bids.items()},
            "winning_bid": self.winning_bid,
            "winning_score": self.winning_score,
            "winning_secret_hash": bytes_to_hex(self.winning_secret_hash),
        }


def build_parts(tokens: List[bytes], shares: List[int]) -> Tuple[LotPart, ...]:
    """Pair tokens and shares positionally."""
    return tuple(LotPart(token=bytes(t), part=s) for t, s in zip(tokens, shares))
