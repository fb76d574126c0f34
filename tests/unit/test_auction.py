"""
Tests for the lot auction service.

Tests cover:
1. Lot creation
2. Bid submission and validation
3. Streaming winner selection
4. Phase gating of queries
5. Legacy behaviour switches
"""

import threading

import pytest

from sealedlots.core.auction import (
    Auction,
    EMPTY_SECRET_HASH,
    LotPhase,
    WinBetInfo,
)
from sealedlots.core.clock import ManualClock
from sealedlots.core.config import AuctionConfig
from sealedlots.core.errors import ArithmeticOverflowError, PhaseError, ValidationError
from sealedlots.core.events import BidCreated, LotCreated
from sealedlots.core.safe_math import UINT256_MAX
from sealedlots.core.storage import StorageManager


# =============================================================================
# Fixtures
# =============================================================================

START = 1_700_000_000
WINDOW = 10

CREATOR = b"\xc0" * 20
ALICE = b"\xa1" * 20
BOB = b"\xb0" * 20
TOKEN_X = b"\x01" * 20
TOKEN_Y = b"\x02" * 20
HASH_1 = b"\x11" * 20
HASH_2 = b"\x22" * 20
HASH_3 = b"\x33" * 20


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def auction(clock):
    return Auction(config=AuctionConfig(bidding_window=WINDOW), clock=clock)


@pytest.fixture
def lot_id(auction):
    """Lot 7: 40 X + 60 Y."""
    return auction.create_lot(CREATOR, 7, [TOKEN_X, TOKEN_Y], [40, 60], 1000)


# =============================================================================
# Lot Creation
# =============================================================================


class TestCreateLot:
    """Tests for lot creation."""

    def test_returns_lot_id(self, auction):
        assert auction.create_lot(CREATOR, 42, [TOKEN_X], [1], 0) == 42

    def test_lot_fields(self, auction, lot_id):
        """Parts, owner and expiration are set from the request and clock."""
        lot = auction.get_lot(lot_id)

        assert lot.owner == CREATOR
        assert lot.tokens == [TOKEN_X, TOKEN_Y]
        assert lot.shares == [40, 60]
        assert lot.expiration == START + WINDOW
        assert lot.reference_amount == 1000
        assert lot.bid_count == 1
        assert lot.bids == {}
        assert lot.winning_bid is None

    def test_new_lot_is_alive(self, auction, lot_id):
        assert auction.get_phase(lot_id) == LotPhase.ALIVE

    def test_unknown_lot_is_uninitialized(self, auction):
        assert auction.get_phase(999) == LotPhase.UNINITIALIZED

    def test_emits_lot_created(self, auction, lot_id):
        events = auction.audit_log.events("LotCreated")

        assert events == [LotCreated(
            lot_id=7,
            owner=CREATOR,
            tokens=[TOKEN_X, TOKEN_Y],
            parts=[40, 60],
            reference_amount=1000,
        )]

    @pytest.mark.parametrize("tokens,parts", [
        ([], []),
        ([TOKEN_X, TOKEN_Y], [1]),
        ([TOKEN_X], [1, 2]),
    ])
    def test_length_mismatch_rejected(self, auction, tokens, parts):
        """Empty or mismatched tokens/parts fail with no state change."""
        with pytest.raises(ValidationError):
            auction.create_lot(CREATOR, 1, tokens, parts, 0)

        assert auction.get_lot(1) is None
        assert len(auction.audit_log) == 0

    def test_malformed_token_rejected(self, auction):
        with pytest.raises(ValidationError, match="tokens"):
            auction.create_lot(CREATOR, 1, [b"\x01" * 19], [1], 0)

    def test_too_many_parts_rejected(self, clock):
        auction = Auction(config=AuctionConfig(max_lot_parts=2), clock=clock)

        with pytest.raises(ValidationError):
            auction.create_lot(CREATOR, 1, [TOKEN_X] * 3, [1, 1, 1], 0)

    def test_duplicate_lot_id_rejected(self, auction, lot_id):
        """Re-creating a lot does not touch the existing one by default."""
        auction.create_bet(ALICE, lot_id, [1, 1], HASH_1)

        with pytest.raises(ValidationError, match="already exists"):
            auction.create_lot(BOB, lot_id, [TOKEN_X], [5], 0)

        lot = auction.get_lot(lot_id)
        assert lot.owner == CREATOR
        assert len(lot.bids) == 1


# =============================================================================
# Bidding
# =============================================================================


class TestCreateBet:
    """Tests for bid submission."""

    def test_first_bid_index(self, auction, lot_id):
        """Index 0 stays reserved: the first bid gets index 1."""
        assert auction.create_bet(ALICE, lot_id, [1, 2], HASH_1) == 1
        assert auction.create_bet(BOB, lot_id, [3, 4], HASH_2) == 2

    def test_first_bid_index_configurable(self, clock):
        auction = Auction(config=AuctionConfig(first_bid_index=0), clock=clock)
        auction.create_lot(CREATOR, 1, [TOKEN_X], [1], 0)

        assert auction.create_bet(ALICE, 1, [5], HASH_1) == 0
        assert auction.get_lot(1).winning_bid == 0

    def test_bid_recorded(self, auction, lot_id):
        index = auction.create_bet(ALICE, lot_id, [1, 2], HASH_1)

        assert auction.get_bet_sender(lot_id, index) == ALICE
        assert auction.get_bet_amounts(lot_id, index) == [1, 2]
        assert auction.get_bet_secret_hash(lot_id, index) == HASH_1
        assert auction.get_lot(lot_id).bid_count == 2

    def test_emits_bid_created(self, auction, lot_id):
        auction.create_bet(ALICE, lot_id, [1, 2], HASH_1)

        assert auction.audit_log.events("BidCreated") == [BidCreated(
            lot_id=lot_id,
            sender=ALICE,
            bid_index=1,
            amounts=[1, 2],
            secret_hash=HASH_1,
        )]

    @pytest.mark.parametrize("amounts", [[], [1], [1, 2, 3]])
    def test_length_mismatch_leaves_bid_count(self, auction, lot_id, amounts):
        """Misaligned amounts fail with ValidationError and bid_count unchanged."""
        before = auction.get_lot(lot_id).bid_count

        with pytest.raises(ValidationError):
            auction.create_bet(ALICE, lot_id, amounts, HASH_1)

        assert auction.get_lot(lot_id).bid_count == before
        assert auction.audit_log.events("BidCreated") == []

    def test_negative_amount_rejected(self, auction, lot_id):
        with pytest.raises(ValidationError):
            auction.create_bet(ALICE, lot_id, [-1, 2], HASH_1)

    def test_bad_secret_hash_rejected(self, auction, lot_id):
        with pytest.raises(ValidationError, match="secret_hash"):
            auction.create_bet(ALICE, lot_id, [1, 2], b"\x11" * 32)

    def test_expired_lot_rejects_bid(self, auction, lot_id, clock):
        """A lot whose expiration <= now rejects bids."""
        clock.advance(WINDOW)

        with pytest.raises(PhaseError) as exc_info:
            auction.create_bet(ALICE, lot_id, [1, 2], HASH_1)

        assert exc_info.value.expected == LotPhase.ALIVE
        assert exc_info.value.actual == LotPhase.EXPIRED

    def test_bid_just_before_expiry(self, auction, lot_id, clock):
        clock.advance(WINDOW - 1)
        assert auction.create_bet(ALICE, lot_id, [1, 2], HASH_1) == 1

    def test_unknown_lot_rejects_bid(self, auction):
        with pytest.raises(PhaseError) as exc_info:
            auction.create_bet(ALICE, 404, [1], HASH_1)

        assert exc_info.value.actual == LotPhase.UNINITIALIZED

    def test_rejected_unknown_lots_leave_no_locks(self, auction, lot_id):
        """Bids on lots that were never created allocate nothing."""
        locks_before = len(auction.registry._locks)

        for unknown in range(1000, 1100):
            with pytest.raises(PhaseError):
                auction.create_bet(ALICE, unknown, [1, 2], HASH_1)

        assert len(auction.registry._locks) == locks_before

    def test_score_overflow_discards_bid(self, auction, lot_id):
        """An overflowing score aborts the whole submission."""
        auction.create_bet(ALICE, lot_id, [1, 2], HASH_1)

        with pytest.raises(ArithmeticOverflowError):
            auction.create_bet(BOB, lot_id, [UINT256_MAX, 1], HASH_2)

        lot = auction.get_lot(lot_id)
        assert lot.bid_count == 2
        assert list(lot.bids) == [1]
        assert lot.winning_bid == 1
        assert len(auction.audit_log.events("BidCreated")) == 1

    def test_max_score_without_overflow(self, auction, lot_id):
        auction.create_bet(ALICE, lot_id, [UINT256_MAX - 5, 5], HASH_1)
        assert auction.get_lot(lot_id).winning_score == UINT256_MAX


# =============================================================================
# Winner Selection
# =============================================================================


class TestWinner:
    """Tests for the streaming winner summary."""

    def test_scenario_higher_score_wins(self, auction, lot_id, clock):
        """Bids scoring 3 then 10: the second wins with score 10."""
        auction.create_bet(ALICE, lot_id, [1, 2], HASH_1)
        b2 = auction.create_bet(BOB, lot_id, [5, 5], HASH_2)

        clock.advance(WINDOW)

        assert auction.get_winning_bet(lot_id) == b2
        assert auction.get_win_bet_info(lot_id) == WinBetInfo(score=10, secret_hash=HASH_2)

    def test_tie_keeps_first_bid(self, auction, lot_id, clock):
        """Equal scores: the first submitted bid stays the winner."""
        b1 = auction.create_bet(ALICE, lot_id, [4, 6], HASH_1)
        auction.create_bet(BOB, lot_id, [6, 4], HASH_2)

        clock.advance(WINDOW)

        assert auction.get_winning_bet(lot_id) == b1
        assert auction.get_win_bet_info(lot_id).secret_hash == HASH_1

    def test_first_bid_wins_with_zero_score(self, auction, lot_id, clock):
        """The first bid leads even when it scores nothing."""
        b1 = auction.create_bet(ALICE, lot_id, [0, 0], HASH_1)
        clock.advance(WINDOW)

        assert auction.get_winning_bet(lot_id) == b1
        assert auction.get_win_bet_info(lot_id) == WinBetInfo(score=0, secret_hash=HASH_1)

    def test_lower_later_bid_does_not_win(self, auction, lot_id):
        b1 = auction.create_bet(ALICE, lot_id, [10, 10], HASH_1)
        auction.create_bet(BOB, lot_id, [1, 1], HASH_2)

        lot = auction.get_lot(lot_id)
        assert lot.winning_bid == b1
        assert lot.winning_score == 20

    def test_winner_matches_full_scan(self, auction, lot_id):
        """After any bid sequence the summary equals max score, earliest index."""
        for amounts in ([3, 1], [2, 9], [0, 4], [11, 0], [5, 6], [7, 3]):
            auction.create_bet(ALICE, lot_id, amounts, HASH_1)

        lot = auction.get_lot(lot_id)
        assert lot.winning_score == 11
        assert lot.winning_bid == 2
        assert auction.verify_winner(lot_id)

    def test_no_bids(self, auction, lot_id, clock):
        clock.advance(WINDOW)

        assert auction.get_winning_bet(lot_id) is None
        assert auction.get_win_bet_info(lot_id) == WinBetInfo(score=0, secret_hash=EMPTY_SECRET_HASH)

    def test_winner_queries_require_expiry(self, auction, lot_id):
        """Winner queries fail while the lot is alive, whatever the bids."""
        auction.create_bet(ALICE, lot_id, [1, 2], HASH_1)

        with pytest.raises(PhaseError):
            auction.get_winning_bet(lot_id)
        with pytest.raises(PhaseError):
            auction.get_win_bet_info(lot_id)

    def test_winner_queries_on_unknown_lot(self, auction):
        with pytest.raises(PhaseError):
            auction.get_winning_bet(404)


# =============================================================================
# Bid Queries
# =============================================================================


class TestBidQueries:
    """Tests for bid-detail queries."""

    def test_readable_while_alive(self, auction, lot_id):
        """Legacy default: amounts and hashes are visible before expiry."""
        index = auction.create_bet(ALICE, lot_id, [1, 2], HASH_1)

        assert auction.get_phase(lot_id) == LotPhase.ALIVE
        assert auction.get_bet_amounts(lot_id, index) == [1, 2]
        assert auction.get_bet_secret_hash(lot_id, index) == HASH_1

    def test_readable_after_expiry(self, auction, lot_id, clock):
        index = auction.create_bet(ALICE, lot_id, [1, 2], HASH_1)
        clock.advance(WINDOW * 10)

        assert auction.get_bet_sender(lot_id, index) == ALICE
        assert auction.get_bet_amounts(lot_id, index) == [1, 2]

    def test_reserved_index_has_no_bid(self, auction, lot_id):
        auction.create_bet(ALICE, lot_id, [1, 2], HASH_1)

        with pytest.raises(ValidationError, match="no bid 0"):
            auction.get_bet_sender(lot_id, 0)

    def test_unknown_lot(self, auction):
        with pytest.raises(ValidationError, match="does not exist"):
            auction.get_bet_amounts(404, 1)

    def test_returned_amounts_are_copies(self, auction, lot_id):
        index = auction.create_bet(ALICE, lot_id, [1, 2], HASH_1)

        auction.get_bet_amounts(lot_id, index).append(99)

        assert auction.get_bet_amounts(lot_id, index) == [1, 2]

    def test_sealed_queries(self, clock):
        """With sealed queries, amounts and hashes wait for expiry; sender does not."""
        auction = Auction(config=AuctionConfig(sealed_bid_queries=True), clock=clock)
        auction.create_lot(CREATOR, 1, [TOKEN_X], [1], 0)
        index = auction.create_bet(ALICE, 1, [5], HASH_1)

        assert auction.get_bet_sender(1, index) == ALICE
        with pytest.raises(PhaseError):
            auction.get_bet_amounts(1, index)
        with pytest.raises(PhaseError):
            auction.get_bet_secret_hash(1, index)

        clock.advance(auction.config.bidding_window)

        assert auction.get_bet_amounts(1, index) == [5]
        assert auction.get_bet_secret_hash(1, index) == HASH_1


# =============================================================================
# Lot Overwrite (legacy)
# =============================================================================


class TestLotOverwrite:
    """Tests for re-creating a lot id with overwrite enabled."""

    @pytest.fixture
    def legacy(self, clock):
        return Auction(
            config=AuctionConfig(bidding_window=WINDOW, allow_lot_overwrite=True),
            clock=clock,
        )

    def test_second_create_replaces_lot(self, legacy, clock):
        """Parts, owner and bid history are fully replaced."""
        legacy.create_lot(CREATOR, 5, [TOKEN_X, TOKEN_Y], [40, 60], 0)
        legacy.create_bet(ALICE, 5, [9, 9], HASH_1)
        legacy.create_bet(BOB, 5, [1, 1], HASH_2)

        clock.advance(3)
        legacy.create_lot(BOB, 5, [TOKEN_Y], [100], 7)

        lot = legacy.get_lot(5)
        assert lot.owner == BOB
        assert lot.tokens == [TOKEN_Y]
        assert lot.shares == [100]
        assert lot.expiration == START + 3 + WINDOW
        assert lot.bids == {}
        assert lot.bid_count == 1
        assert lot.winning_bid is None
        assert lot.winning_score == 0

        with pytest.raises(ValidationError):
            legacy.get_bet_sender(5, 1)

    def test_bids_after_overwrite_use_new_parts(self, legacy):
        legacy.create_lot(CREATOR, 5, [TOKEN_X, TOKEN_Y], [40, 60], 0)
        legacy.create_lot(CREATOR, 5, [TOKEN_X], [40], 0)

        with pytest.raises(ValidationError):
            legacy.create_bet(ALICE, 5, [1, 2], HASH_1)
        assert legacy.create_bet(ALICE, 5, [3], HASH_3) == 1

    def test_overwrite_emits_second_record(self, legacy):
        legacy.create_lot(CREATOR, 5, [TOKEN_X], [1], 0)
        legacy.create_lot(BOB, 5, [TOKEN_Y], [2], 0)

        owners = [e.owner for e in legacy.audit_log.for_lot(5)]
        assert owners == [CREATOR, BOB]


# =============================================================================
# Inspection
# =============================================================================


class TestStats:
    """Tests for statistics."""

    def test_stats(self, auction, clock):
        auction.create_lot(CREATOR, 1, [TOKEN_X], [1], 0)
        auction.create_bet(ALICE, 1, [1], HASH_1)
        clock.advance(WINDOW)
        auction.create_lot(CREATOR, 2, [TOKEN_X], [1], 0)

        stats = auction.stats()

        assert stats["lot_count"] == 2
        assert stats["alive_lots"] == 1
        assert stats["expired_lots"] == 1
        assert stats["bid_count"] == 1
        assert stats["event_count"] == 3
        assert auction.lot_ids() == [1, 2]


# =============================================================================
# Subscriber Tests
# =============================================================================

class TestSubscribers:
    """Audit subscribers run after the lot is committed and unlocked."""

    def test_failing_subscriber_keeps_bid(self, auction, lot_id):
        def broken(event):
            raise RuntimeError("subscriber down")

        auction.audit_log.subscribe(broken)

        assert auction.create_bet(ALICE, lot_id, [1, 2], HASH_1) == 1
        assert auction.get_lot(lot_id).bid_count == 2
        assert auction.get_bet_sender(lot_id, 1) == ALICE
        assert auction.create_bet(BOB, lot_id, [3, 4], HASH_2) == 2

    def test_subscriber_sees_committed_lot(self, auction, lot_id):
        seen = []
        auction.audit_log.subscribe(
            lambda e: seen.append(auction.get_lot(e.lot_id).bid_count)
        )

        auction.create_bet(ALICE, lot_id, [1, 2], HASH_1)

        assert seen == [2]

    def test_subscriber_may_bid_on_same_lot(self, auction, lot_id):
        """A callback that bids again on the same lot does not block."""
        replies = []

        def reply(event):
            if isinstance(event, BidCreated) and event.sender == ALICE:
                replies.append(auction.create_bet(BOB, event.lot_id, [3, 4], HASH_2))

        auction.audit_log.subscribe(reply)

        thread = threading.Thread(
            target=auction.create_bet, args=(ALICE, lot_id, [1, 2], HASH_1), daemon=True
        )
        thread.start()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert replies == [2]
        assert auction.get_bet_sender(lot_id, 1) == ALICE
        assert auction.get_bet_sender(lot_id, 2) == BOB


# =============================================================================
# Owner Tests
# =============================================================================

class TestOwner:
    """Administrative owner of a persistent auction."""

    OWNER = b"\x0a" * 20
    OTHER = b"\x0b" * 20

    def _open(self, tmp_path, clock, owner=None):
        return Auction(clock=clock, storage_manager=StorageManager(tmp_path), owner=owner)

    def test_unowned_store_stores_nothing(self, tmp_path, clock):
        auction = self._open(tmp_path, clock)
        try:
            assert auction.ownership.renounced
            assert auction.storage_manager.get_owner() is None
        finally:
            auction.close()

    def test_unowned_store_can_be_claimed(self, tmp_path, clock):
        self._open(tmp_path, clock).close()

        auction = self._open(tmp_path, clock, owner=self.OWNER)
        auction.close()

        reopened = self._open(tmp_path, clock)
        try:
            assert reopened.ownership.is_owner(self.OWNER)
        finally:
            reopened.close()

    def test_stored_owner_wins(self, tmp_path, clock):
        self._open(tmp_path, clock, owner=self.OWNER).close()

        auction = self._open(tmp_path, clock, owner=self.OTHER)
        try:
            assert auction.ownership.is_owner(self.OWNER)
            assert not auction.ownership.is_owner(self.OTHER)
        finally:
            auction.close()

    def test_malformed_owner_not_stored(self, tmp_path, clock):
        with pytest.raises(ValidationError):
            self._open(tmp_path, clock, owner=b"\x0a" * 19)

        auction = self._open(tmp_path, clock)
        try:
            assert auction.storage_manager.get_owner() is None
        finally:
            auction.close()
