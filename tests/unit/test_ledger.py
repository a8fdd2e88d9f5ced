"""
Unit tests for the bid ledger.

Tests cover:
1. First-bid acceptance and the 5% minimum raise
2. Accumulating commitments and bid history
3. Unique-bidder registry and its cap
4. Deadline extension on late bids
5. Partial refunds
"""

import pytest

from sda.core.config import AuctionConfig
from sda.core.environment import AccessControl, Chain
from sda.core.errors import (
    AuctionExpired,
    AuctionNotActive,
    BidderLimitExceeded,
    BidTooLow,
    InvalidBidAmount,
    LeaderCannotRefund,
    NoExcessFunds,
    ValidationError,
)
from sda.core.events import BidAccepted, EventLog
from sda.core.ledger import BidLedger, LeaderRecord
from sda.core.settlement import SettlementEngine
from sda.crypto import address_from_label
from sda.utils.validation import MAX_AMOUNT


OWNER = address_from_label("owner")
ALICE = address_from_label("alice")
BOB = address_from_label("bob")
CAROL = address_from_label("carol")


# =============================================================================
# Fixtures
# =============================================================================


def build(config=None, start_time=0):
    config = config or AuctionConfig(duration=3600)
    events = EventLog()
    settlement = SettlementEngine(config, Chain(), events, AccessControl(OWNER), start_time=start_time)
    ledger = BidLedger(config, events, settlement)
    settlement.bind(ledger)
    return ledger, settlement, events


@pytest.fixture
def ledger():
    """Ledger with a 3600s auction starting at t=0."""
    return build()[0]


@pytest.fixture
def parts():
    return build()


# =============================================================================
# Admission
# =============================================================================


class TestAdmission:
    """Tests for bid validation rules."""

    def test_first_bid_accepted_unconditionally(self, ledger):
        """The first bid needs no threshold and becomes the leader."""
        total = ledger.apply_bid(ALICE, 1, now=0)

        assert total == 1
        assert ledger.leader == LeaderRecord(ALICE, 1)

    def test_five_percent_boundary(self, ledger):
        """With leader at 100, a total of 105 fails and 106 succeeds."""
        ledger.apply_bid(ALICE, 100, now=0)

        with pytest.raises(BidTooLow) as exc:
            ledger.apply_bid(BOB, 105, now=1)
        assert exc.value.min_required == 105

        ledger.apply_bid(BOB, 106, now=2)
        assert ledger.leader == LeaderRecord(BOB, 106)

    def test_equal_bid_rejected(self, ledger):
        """Ties never displace the leader."""
        ledger.apply_bid(ALICE, 100, now=0)

        with pytest.raises(BidTooLow):
            ledger.apply_bid(BOB, 100, now=1)
        assert ledger.leader.bidder == ALICE

    def test_small_leader_rounds_down(self, ledger):
        """floor(10 * 5 / 100) == 0, so 11 is enough against 10."""
        ledger.apply_bid(ALICE, 10, now=0)

        with pytest.raises(BidTooLow):
            ledger.apply_bid(BOB, 10, now=1)
        ledger.apply_bid(BOB, 11, now=1)
        assert ledger.leader.amount == 11

    @pytest.mark.parametrize("value", [0, -5, True, 1.5, "100"])
    def test_invalid_values_rejected(self, ledger, value):
        with pytest.raises(InvalidBidAmount):
            ledger.apply_bid(ALICE, value, now=0)

    def test_total_bounded_by_uint256(self, ledger):
        """Accumulated totals stay inside the uint256 range."""
        ledger.apply_bid(ALICE, MAX_AMOUNT, now=0)

        with pytest.raises(InvalidBidAmount):
            ledger.apply_bid(ALICE, 1, now=1)
        with pytest.raises(BidTooLow):
            ledger.apply_bid(BOB, MAX_AMOUNT, now=1)

        assert ledger.balance_of(ALICE) == MAX_AMOUNT
        assert ledger.leader == LeaderRecord(ALICE, MAX_AMOUNT)

    def test_malformed_bidder_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.apply_bid(b"short", 100, now=0)

    def test_rejected_bid_leaves_no_trace(self, parts):
        """A failed first bid does not take a registry slot."""
        ledger, _, events = parts
        ledger.apply_bid(ALICE, 100, now=0)
        events.commit()

        with pytest.raises(BidTooLow):
            ledger.apply_bid(BOB, 50, now=1)

        assert not ledger.is_registered(BOB)
        assert ledger.balance_of(BOB) == 0
        assert ledger.bids_of(BOB) == []
        assert events.pending == []

    def test_paused_rejects_bids(self, parts):
        ledger, settlement, _ = parts
        settlement.pause(OWNER)

        with pytest.raises(AuctionNotActive):
            ledger.apply_bid(ALICE, 100, now=0)

    def test_bid_at_deadline_rejected(self, ledger):
        """Bids must arrive strictly before the deadline."""
        ledger.apply_bid(ALICE, 100, now=3599)
        with pytest.raises(AuctionExpired):
            ledger.apply_bid(BOB, 200, now=3600)


# =============================================================================
# Accumulation
# =============================================================================


class TestAccumulation:
    """Tests for balances, history and the global bid log."""

    def test_rebid_accumulates(self, ledger):
        ledger.apply_bid(ALICE, 100, now=0)
        ledger.apply_bid(BOB, 106, now=0)
        total = ledger.apply_bid(ALICE, 12, now=10)

        assert total == 112
        assert ledger.balance_of(ALICE) == 112
        assert ledger.bids_of(ALICE) == [100, 12]
        assert ledger.leader == LeaderRecord(ALICE, 112)

    def test_leader_can_raise_own_bid(self, ledger):
        ledger.apply_bid(ALICE, 100, now=0)
        ledger.apply_bid(ALICE, 6, now=1)

        assert ledger.leader == LeaderRecord(ALICE, 106)
        assert ledger.registry == [ALICE]

    def test_global_bid_log_in_order(self, ledger):
        ledger.apply_bid(ALICE, 100, now=0)
        ledger.apply_bid(BOB, 106, now=5)

        assert [(b.bidder, b.amount, b.total, b.timestamp) for b in ledger.bids] == [
            (ALICE, 100, 100, 0),
            (BOB, 106, 106, 5),
        ]

    def test_history_survives_clear(self, ledger):
        ledger.apply_bid(ALICE, 100, now=0)
        assert ledger.clear_balance(ALICE) == 100

        assert ledger.balance_of(ALICE) == 0
        assert ledger.bids_of(ALICE) == [100]

    def test_bid_accepted_event(self, parts):
        ledger, _, events = parts
        ledger.apply_bid(ALICE, 100, now=0)

        assert events.pending == [BidAccepted(bidder=ALICE, total=100)]

    def test_leader_amount_monotonic(self, ledger):
        """Leader amount never decreases across accepted and rejected bids."""
        seen = []
        amounts = [(ALICE, 100), (BOB, 50), (BOB, 106), (CAROL, 111), (CAROL, 112), (ALICE, 30)]
        for bidder, value in amounts:
            try:
                ledger.apply_bid(bidder, value, now=0)
            except BidTooLow:
                pass
            seen.append(ledger.leader.amount)

        assert seen == sorted(seen)


# =============================================================================
# Registry
# =============================================================================


class TestRegistry:
    """Tests for the unique-bidder cap."""

    def test_cap_applies_to_new_bidders_only(self):
        ledger, _, _ = build(AuctionConfig(duration=3600, max_bidders=2))
        ledger.apply_bid(ALICE, 100, now=0)
        ledger.apply_bid(BOB, 106, now=0)

        with pytest.raises(BidderLimitExceeded):
            ledger.apply_bid(CAROL, 10_000, now=0)

        # Existing bidders keep raising
        ledger.apply_bid(ALICE, 100, now=0)
        assert ledger.leader == LeaderRecord(ALICE, 200)
        assert ledger.registry == [ALICE, BOB]

    def test_cap_checked_before_threshold(self):
        """A full registry wins over a too-low bid."""
        ledger, _, _ = build(AuctionConfig(duration=3600, max_bidders=1))
        ledger.apply_bid(ALICE, 100, now=0)

        with pytest.raises(BidderLimitExceeded):
            ledger.apply_bid(BOB, 1, now=0)

    def test_registry_order_is_first_bid_order(self, ledger):
        ledger.apply_bid(BOB, 100, now=0)
        ledger.apply_bid(ALICE, 106, now=0)
        ledger.apply_bid(BOB, 100, now=0)

        assert ledger.registry == [BOB, ALICE]


# =============================================================================
# Extension
# =============================================================================


class TestExtension:
    """Tests for anti-sniping deadline extension."""

    def test_exactly_window_remaining_extends(self, parts):
        ledger, settlement, _ = parts
        ledger.apply_bid(ALICE, 100, now=0)
        ledger.apply_bid(BOB, 106, now=3600 - 600)

        assert settlement.deadline == 3600 + 600

    def test_window_plus_one_does_not_extend(self, parts):
        ledger, settlement, _ = parts
        ledger.apply_bid(ALICE, 100, now=0)
        ledger.apply_bid(BOB, 106, now=3600 - 601)

        assert settlement.deadline == 3600

    def test_first_bid_never_extends(self):
        ledger, settlement, _ = build(AuctionConfig(duration=300))
        ledger.apply_bid(ALICE, 100, now=0)

        assert settlement.deadline == 300

    def test_extension_is_additive(self, parts):
        """Each late leader change adds a full window to the current deadline."""
        ledger, settlement, _ = parts
        ledger.apply_bid(ALICE, 100, now=0)
        ledger.apply_bid(BOB, 106, now=3599)
        assert settlement.deadline == 4200

        ledger.apply_bid(ALICE, 100, now=4199)
        assert settlement.deadline == 4800

    def test_leader_raising_own_bid_extends(self, parts):
        """The leader topping up inside the window also moves the deadline."""
        ledger, settlement, _ = parts
        ledger.apply_bid(ALICE, 100, now=0)
        ledger.apply_bid(BOB, 106, now=1)
        ledger.apply_bid(BOB, 6, now=3500)

        assert ledger.leader == LeaderRecord(BOB, 112)
        assert settlement.deadline == 3600 + 600

    def test_rejected_late_bid_does_not_extend(self, parts):
        ledger, settlement, _ = parts
        ledger.apply_bid(ALICE, 100, now=0)

        with pytest.raises(BidTooLow):
            ledger.apply_bid(BOB, 105, now=3599)
        assert settlement.deadline == 3600


# =============================================================================
# Partial Refund
# =============================================================================


class TestPartialRefund:
    """Tests for pre-close partial refunds."""

    def test_leader_cannot_refund(self, ledger):
        ledger.apply_bid(ALICE, 100, now=0)

        with pytest.raises(LeaderCannotRefund):
            ledger.partial_refund(ALICE, now=1)

    def test_outbid_participant_has_no_excess(self, ledger):
        """A non-leader's balance never exceeds leader + 5%."""
        ledger.apply_bid(ALICE, 100, now=0)
        ledger.apply_bid(BOB, 106, now=0)

        with pytest.raises(NoExcessFunds):
            ledger.partial_refund(ALICE, now=1)
        assert ledger.balance_of(ALICE) == 100

    def test_stranger_has_no_excess(self, ledger):
        with pytest.raises(NoExcessFunds):
            ledger.partial_refund(CAROL, now=0)

    def test_paused_blocks_refund(self, parts):
        ledger, settlement, _ = parts
        ledger.apply_bid(ALICE, 100, now=0)
        ledger.apply_bid(BOB, 106, now=0)
        settlement.pause(OWNER)

        with pytest.raises(AuctionNotActive):
            ledger.partial_refund(ALICE, now=1)

    def test_after_deadline_blocks_refund(self, ledger):
        ledger.apply_bid(ALICE, 100, now=0)

        with pytest.raises(AuctionExpired):
            ledger.partial_refund(BOB, now=3600)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
