"""
Unit tests for execution-environment collaborators.

Tests cover:
1. Clocks
2. Chain value movement, receive hooks and rollback
3. Reentrancy guard
4. Event log commit semantics
"""

import pytest

from sda.core.environment import AccessControl, Chain, ManualClock
from sda.core.errors import InsufficientFunds, ReentrantCall
from sda.core.events import (
    AuctionEnded,
    BidAccepted,
    EVENT_TYPES,
    EventLog,
    NonWinnerRefunded,
    event_from_dict,
)
from sda.core.guard import ReentrancyGuard
from sda.crypto import address_from_label


ALICE = address_from_label("alice")
BOB = address_from_label("bob")


class TestManualClock:

    def test_set_and_advance(self):
        clock = ManualClock(start=10)
        clock.advance(5)
        assert clock.now() == 15
        clock.set(100)
        assert clock.now() == 100

    def test_cannot_go_backwards(self):
        clock = ManualClock(start=10)
        with pytest.raises(ValueError):
            clock.set(9)


class TestChain:
    """Tests for the in-memory transfer primitive."""

    @pytest.fixture
    def chain(self):
        chain = Chain()
        chain.fund(ALICE, 500)
        chain.deposit(ALICE, 300)
        return chain

    def test_deposit(self, chain):
        assert chain.balance_of(ALICE) == 200
        assert chain.held == 300
        assert chain.total_received == 300

    def test_deposit_insufficient(self, chain):
        with pytest.raises(InsufficientFunds):
            chain.deposit(ALICE, 201)
        assert chain.held == 300

    def test_transfer(self, chain):
        assert chain.transfer(BOB, 100)
        assert chain.balance_of(BOB) == 100
        assert chain.held == 200
        assert chain.total_paid_out == 100
        assert chain.transfers == [(BOB, 100)]

    def test_transfer_more_than_held(self, chain):
        assert not chain.transfer(BOB, 301)
        assert chain.held == 300

    def test_rejecting_hook_reverts_transfer(self, chain):
        def reject(amount):
            raise RuntimeError("no")

        chain.set_receive_hook(BOB, reject)
        assert not chain.transfer(BOB, 100)
        assert chain.balance_of(BOB) == 0
        assert chain.held == 300
        assert chain.transfers == []

    def test_hook_sees_credited_value(self, chain):
        seen = []
        chain.set_receive_hook(BOB, lambda amount: seen.append((amount, chain.balance_of(BOB))))

        chain.transfer(BOB, 50)
        assert seen == [(50, 50)]

    def test_snapshot_restore(self, chain):
        checkpoint = chain.snapshot()
        chain.transfer(BOB, 100)
        chain.restore(checkpoint)

        assert chain.held == 300
        assert chain.balance_of(BOB) == 0
        assert chain.transfers == []

    def test_state_roundtrip(self, chain):
        chain.transfer(BOB, 100)
        other = Chain()
        other.load_state(chain.to_state())

        assert other.to_state() == chain.to_state()


class TestAccessControl:

    def test_single_owner(self):
        access = AccessControl(ALICE)
        assert access.is_owner(ALICE)
        assert not access.is_owner(BOB)


class TestReentrancyGuard:

    def test_nested_entry_rejected(self):
        guard = ReentrancyGuard()
        with guard.hold("close"):
            assert guard.locked
            with pytest.raises(ReentrantCall):
                with guard.hold("withdraw"):
                    pass
        assert not guard.locked

    def test_released_after_error(self):
        guard = ReentrancyGuard()
        with pytest.raises(KeyError):
            with guard.hold("close"):
                raise KeyError("boom")

        with guard.hold("close"):
            pass


class TestEventLog:

    def test_commit_notifies_subscribers(self):
        log = EventLog()
        received = []
        log.subscribe(received.append)

        log.emit(BidAccepted(bidder=ALICE, total=100))
        assert received == []

        committed = log.commit()
        assert committed == received == [BidAccepted(bidder=ALICE, total=100)]
        assert log.pending == []

    def test_failing_subscriber_isolated(self):
        log = EventLog()
        received = []

        def broken(event):
            raise RuntimeError("subscriber down")

        log.subscribe(broken)
        log.subscribe(received.append)
        log.emit(BidAccepted(bidder=ALICE, total=100))

        log.commit()

        assert received == [BidAccepted(bidder=ALICE, total=100)]
        assert log.history == received

    def test_names_are_class_names(self):
        for name, cls in EVENT_TYPES.items():
            assert name == cls.name == cls.__name__
        assert BidAccepted(bidder=ALICE, total=1).name == "BidAccepted"

    def test_discard(self):
        log = EventLog()
        log.emit(AuctionEnded(winner=ALICE, amount=1))
        log.discard()

        assert log.commit() == []
        assert log.history == []

    def test_dict_roundtrip(self):
        event = NonWinnerRefunded(bidder=BOB, original=106, net=104, commission=2)
        data = event.to_dict()

        assert data["event"] == "NonWinnerRefunded"
        assert data["bidder"].startswith("0x")
        assert event_from_dict(data) == event


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
