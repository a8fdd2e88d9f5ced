"""
BidLedger - Bid accounting for a single-asset auction.

Conceptual Background:
---------------------
Each participant accumulates a commitment: every bid adds its attached
value to the participant's balance. The ledger keeps:

1. **Balances**: accumulated commitment per participant
2. **History**: every individual increment per participant (append-only,
   survives settlement)
3. **Registry**: insertion-ordered set of participants, capped at
   `max_bidders`; a slot is taken on a participant's first accepted bid
4. **Leader**: (participant, total) with the highest total so far

Admission:
---------
The very first bid is accepted unconditionally. Every later bid must bring
the caller's new total strictly above leader + floor(leader * 5 / 100).
An accepted bid always becomes the new leader; if it lands within the
extension window before the deadline, the deadline moves out by one
window.

All checks run before any mutation, so a rejected bid leaves no trace
(including no registry slot).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from sda.core.accounting import min_required
from sda.core.config import AuctionConfig
from sda.core.errors import (
    BidderLimitExceeded,
    BidTooLow,
    InvalidBidAmount,
    LeaderCannotRefund,
    NoExcessFunds,
    ValidationError,
)
from sda.core.events import BidAccepted, EventLog, PartialRefundProcessed
from sda.utils.logger import get_logger, short_address
from sda.utils.validation import validate_address, validate_amount

logger = get_logger("ledger")


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class LeaderRecord:
    """Current highest accumulated commitment."""
    bidder: Optional[bytes] = None
    amount: int = 0

    @property
    def exists(self) -> bool:
        return self.bidder is not None


@dataclass(frozen=True)
class BidRecord:
    """One accepted bid, in global chronological order."""
    bidder: bytes
    amount: int      # Value attached to this bid
    total: int       # Bidder's accumulated commitment after this bid
    timestamp: int


# =============================================================================
# Bid Ledger
# =============================================================================


class BidLedger:
    """
    Validates and applies bids.
    
    Attributes:
        balances: participant -> accumulated commitment
        history: participant -> individual increments, oldest first
        registry: participants in first-bid order
        leader: current LeaderRecord
        bids: every accepted bid, oldest first
    """

    def __init__(self, config: AuctionConfig, events: EventLog, settlement):
        """
        Args:
            config: Auction parameters
            events: Notification buffer
            settlement: SettlementEngine owning lifecycle, deadline and payouts
        """
        self.config = config
        self.events = events
        self.settlement = settlement

        self.balances: Dict[bytes, int] = {}
        self.history: Dict[bytes, List[int]] = {}
        self.registry: List[bytes] = []
        self._registered: Set[bytes] = set()
        self.leader = LeaderRecord()
        self.bids: List[BidRecord] = []

    # =========================================================================
    # State Access
    # =========================================================================

    def balance_of(self, bidder: bytes) -> int:
        return self.balances.get(bidder, 0)

    def bids_of(self, bidder: bytes) -> List[int]:
        return list(self.history.get(bidder, []))

    def is_registered(self, bidder: bytes) -> bool:
        return bidder in self._registered

    def total_balance(self) -> int:
        return sum(self.balances.values())

    def min_required(self) -> int:
        """Threshold the next competing total must strictly exceed."""
        return min_required(self.leader.amount, self.config.min_increment_percent)

    # =========================================================================
    # Bidding
    # =========================================================================

    def apply_bid(self, caller: bytes, value: int, now: int) -> int:
        """
        Validate and apply a bid.
        
        Args:
            caller: Bidder address
            value: Attached value (added to caller's balance)
            now: Call timestamp
            
        Returns:
            Caller's new accumulated total
            
        Raises:
            InvalidBidAmount: value is not a positive integer, or the new
                total would exceed the uint256 range
            AuctionNotActive / AuctionExpired: bidding is not open
            BidderLimitExceeded: first-time bidder and registry is full
            BidTooLow: new total does not exceed the minimum raise
        """
        is_valid, error = validate_address(caller, "bidder")
        if not is_valid:
            raise ValidationError(error)
        is_valid, error = validate_amount(value, "bid value")
        if not is_valid:
            raise InvalidBidAmount(error)
        if value == 0:
            raise InvalidBidAmount("Bid value must be greater than zero")

        self.settlement.require_bidding_open(now)

        new_total = self.balance_of(caller) + value
        is_valid, error = validate_amount(new_total, "bid total")
        if not is_valid:
            raise InvalidBidAmount(error)

        # Existing participants never hit the cap
        is_new = caller not in self._registered
        if is_new and len(self.registry) >= self.config.max_bidders:
            raise BidderLimitExceeded(self.config.max_bidders)

        first_bid = not self.leader.exists
        if not first_bid:
            threshold = self.min_required()
            if new_total <= threshold:
                raise BidTooLow(new_total, threshold)

        # Effects
        if is_new:
            self.registry.append(caller)
            self._registered.add(caller)

        self.balances[caller] = new_total
        self.history.setdefault(caller, []).append(value)
        self.bids.append(BidRecord(bidder=caller, amount=value, total=new_total, timestamp=now))

        if first_bid or new_total > self.leader.amount:
            self.leader = LeaderRecord(bidder=caller, amount=new_total)
            logger.info(f"New leader {short_address(caller)} at {new_total}")
            if not first_bid:
                self.settlement.maybe_extend(now)

        self.events.emit(BidAccepted(bidder=caller, total=new_total))
        logger.debug(f"Bid accepted: {short_address(caller)} +{value} -> {new_total}")
        return new_total

    # =========================================================================
    # Refunds
    # =========================================================================

    def partial_refund(self, caller: bytes, now: int) -> int:
        """
        Return a non-leader's funds above the amount needed to stay competitive.
        
        The balance drops to leader + minimum raise before the transfer, so a
        callback from the recipient sees the reduced balance.
        
        Returns:
            Net amount transferred
            
        Raises:
            AuctionNotActive / AuctionExpired: bidding is not open
            LeaderCannotRefund: caller is the leader
            NoExcessFunds: nothing above the required amount
            TransferFailure: transfer primitive refused
        """
        self.settlement.require_bidding_open(now)

        if self.leader.exists and caller == self.leader.bidder:
            raise LeaderCannotRefund("Current leader cannot take a partial refund")

        required = self.min_required()
        balance = self.balance_of(caller)
        if balance <= required:
            raise NoExcessFunds(f"Balance {balance} does not exceed required {required}")

        excess = balance - required
        self.balances[caller] = required

        net, commission = self.settlement.pay_out(caller, excess)
        self.events.emit(PartialRefundProcessed(
            bidder=caller,
            original=excess,
            net=net,
            commission=commission,
        ))
        logger.info(f"Partial refund {short_address(caller)}: {excess} (net {net})")
        return net

    def clear_balance(self, bidder: bytes) -> int:
        """Zero a balance ahead of a payout. History is kept."""
        amount = self.balances.get(bidder, 0)
        if amount:
            self.balances[bidder] = 0
        return amount

    # =========================================================================
    # Atomicity
    # =========================================================================

    def snapshot(self) -> dict:
        return {
            "balances": dict(self.balances),
            "history": {k: list(v) for k, v in self.history.items()},
            "registry": list(self.registry),
            "leader": self.leader,
            "bids": list(self.bids),
        }

    def restore(self, snapshot: dict) -> None:
        self.balances = dict(snapshot["balances"])
        self.history = {k: list(v) for k, v in snapshot["history"].items()}
        self.registry = list(snapshot["registry"])
        self._registered = set(self.registry)
        self.leader = snapshot["leader"]
        self.bids = list(snapshot["bids"])

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_state(self) -> dict:
        return {
            "balances": {k.hex(): v for k, v in self.balances.items()},
            "history": {k.hex(): list(v) for k, v in self.history.items()},
            "registry": [k.hex() for k in self.registry],
            "leader": [self.leader.bidder.hex(), self.leader.amount] if self.leader.exists else None,
            "bids": [[b.bidder.hex(), b.amount, b.total, b.timestamp] for b in self.bids],
        }

    def load_state(self, state: dict) -> None:
        self.balances = {bytes.fromhex(k): v for k, v in state["balances"].items()}
        self.history = {bytes.fromhex(k): list(v) for k, v in state["history"].items()}
        self.registry = [bytes.fromhex(k) for k in state["registry"]]
        self._registered = set(self.registry)
        leader = state["leader"]
        self.leader = LeaderRecord(bytes.fromhex(leader[0]), leader[1]) if leader else LeaderRecord()
        self.bids = [BidRecord(bytes.fromhex(b), a, t, ts) for b, a, t, ts in state["bids"]]

    def __repr__(self) -> str:
        return f"BidLedger(bidders={len(self.registry)}, leader={self.leader.amount}, held={self.total_balance()})"
