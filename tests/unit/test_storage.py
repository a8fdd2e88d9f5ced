"""
Unit tests for persistent storage.

Tests verify:
1. Fresh databases report no state
2. persist_call writes events and state together
3. Journal order and name filtering
"""

import pytest

from sda.core.events import AuctionEnded, BidAccepted
from sda.core.storage import StorageManager
from sda.crypto import address_from_label


ALICE = address_from_label("alice")
BOB = address_from_label("bob")


@pytest.fixture
def storage(tmp_path):
    manager = StorageManager(tmp_path)
    yield manager
    manager.close()


class TestStorageManager:

    def test_fresh_database(self, storage, tmp_path):
        assert storage.db_path == tmp_path / "auction.db"
        assert storage.db_path.exists()
        assert storage.load_state() is None
        assert storage.load_events() == []
        assert storage.event_count() == 0

    def test_persist_call(self, storage):
        events = [BidAccepted(bidder=ALICE, total=100), BidAccepted(bidder=BOB, total=106)]
        storage.persist_call(events, {"marker": 1}, committed_at=10)

        assert storage.load_state() == {"marker": 1}
        assert storage.load_events() == events
        assert storage.event_count() == 2

    def test_state_is_latest(self, storage):
        storage.persist_call([BidAccepted(bidder=ALICE, total=100)], {"marker": 1}, committed_at=10)
        storage.persist_call([], {"marker": 2}, committed_at=20)

        assert storage.load_state() == {"marker": 2}
        assert storage.event_count() == 1

    def test_filter_by_name(self, storage):
        storage.persist_call(
            [BidAccepted(bidder=ALICE, total=100), AuctionEnded(winner=ALICE, amount=100)],
            {},
            committed_at=10,
        )

        assert storage.load_events("AuctionEnded") == [AuctionEnded(winner=ALICE, amount=100)]
        assert storage.load_events("FundsWithdrawn") == []

    def test_reopen(self, tmp_path):
        first = StorageManager(tmp_path, db_name="journal.db")
        first.persist_call([BidAccepted(bidder=ALICE, total=5)], {"marker": 3}, committed_at=1)
        first.close()

        second = StorageManager(tmp_path, db_name="journal.db")
        assert second.load_state() == {"marker": 3}
        assert second.load_events() == [BidAccepted(bidder=ALICE, total=5)]
        second.close()
