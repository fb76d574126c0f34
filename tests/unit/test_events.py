"""
Tests for audit records and the audit log.
"""

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from sealedlots.core.events import (
    EVENT_TYPES,
    AuditLog,
    BidCreated,
    LotCreated,
    OwnershipRenounced,
    event_from_json,
)
from sealedlots.core.safe_math import UINT256_MAX


@pytest.fixture
def bid_event():
    return BidCreated(
        lot_id=UINT256_MAX,
        sender=b"\xab" * 20,
        bid_index=1,
        amounts=[UINT256_MAX, 0],
        secret_hash=b"\x11" * 20,
    )


class TestRecords:
    """Tests for record serialization."""

    def test_json_form(self, bid_event):
        """Bytes as 0x hex, uint256 as decimal strings."""
        data = json.loads(bid_event.model_dump_json())

        assert data == {
            "event": "BidCreated",
            "lot_id": str(UINT256_MAX),
            "sender": "0x" + "ab" * 20,
            "bid_index": "1",
            "amounts": [str(UINT256_MAX), "0"],
            "secret_hash": "0x" + "11" * 20,
        }

    def test_python_form_keeps_types(self, bid_event):
        data = bid_event.model_dump()
        assert data["sender"] == b"\xab" * 20
        assert data["amounts"] == [UINT256_MAX, 0]

    def test_rebuild_from_json(self, bid_event):
        assert event_from_json("BidCreated", bid_event.model_dump_json()) == bid_event

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Unknown event kind"):
            event_from_json("LotDeleted", "{}")

    def test_event_types(self):
        assert set(EVENT_TYPES) == {
            "LotCreated", "BidCreated", "OwnershipTransferred", "OwnershipRenounced",
        }

    def test_records_are_frozen(self, bid_event):
        with pytest.raises(PydanticValidationError):
            bid_event.bid_index = 2

    def test_event_name_default(self):
        record = OwnershipRenounced(previous_owner=b"\x01" * 20)
        assert record.event == "OwnershipRenounced"


class TestAuditLog:
    """Tests for the append-only log."""

    def _lot(self, lot_id):
        return LotCreated(lot_id=lot_id, owner=b"\x01" * 20, tokens=[], parts=[], reference_amount=0)

    def test_append_returns_sequence(self):
        log = AuditLog()
        assert log.append(self._lot(1)) == 0
        assert log.append(self._lot(2)) == 1
        assert len(log) == 2

    def test_filter_by_kind(self, bid_event):
        log = AuditLog()
        log.append(self._lot(1))
        log.append(bid_event)

        assert log.events("BidCreated") == [bid_event]
        assert len(log.events()) == 2

    def test_for_lot(self):
        log = AuditLog()
        log.append(self._lot(1))
        log.append(self._lot(2))
        log.append(OwnershipRenounced(previous_owner=b"\x01" * 20))

        assert [e.lot_id for e in log.for_lot(2)] == [2]

    def test_subscribers_called_in_order(self):
        log = AuditLog()
        calls = []
        log.subscribe(lambda e: calls.append(("first", e.lot_id)))
        log.subscribe(lambda e: calls.append(("second", e.lot_id)))

        log.append(self._lot(7))

        assert calls == [("first", 7), ("second", 7)]

    def test_extend_does_not_notify(self):
        log = AuditLog()
        calls = []
        log.subscribe(calls.append)

        log.extend([self._lot(1), self._lot(2)])

        assert calls == []
        assert len(log) == 2

    def test_events_returns_copy(self):
        log = AuditLog()
        log.append(self._lot(1))

        log.events().clear()

        assert len(log) == 1

    def test_failing_subscriber_is_isolated(self, caplog):
        """A raising callback is logged; later callbacks still run."""
        log = AuditLog()
        calls = []

        def broken(event):
            raise RuntimeError("boom")

        log.subscribe(broken)
        log.subscribe(calls.append)

        with caplog.at_level("ERROR", logger="sealedlots.events"):
            assert log.append(self._lot(3)) == 0

        assert len(log) == 1
        assert [e.lot_id for e in calls] == [3]
        assert "Audit subscriber" in caplog.text

    def test_record_does_not_notify(self):
        log = AuditLog()
        calls = []
        log.subscribe(calls.append)

        with log.ordered():
            seq = log.record(self._lot(1))

        assert seq == 0
        assert calls == []

        log.publish(log.events()[0])
        assert [e.lot_id for e in calls] == [1]
