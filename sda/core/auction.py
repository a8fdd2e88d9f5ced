"""
Auction - Entry point for a single-asset sealed-duration auction.

Every mutating operation:
1. takes the reentrancy guard,
2. samples the clock once,
3. runs against BidLedger / SettlementEngine,
4. persists the resulting state, then commits its notifications.

If anything raises, a failed write included, ledger, settlement and
chain are restored to their pre-call state and the error is re-raised.
Subscriber failures after the commit are logged and do not undo the call.

Readers take no guard and have no side effects.
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

from sda.core.config import AuctionConfig
from sda.core.environment import AccessControl, Chain, Clock, SystemClock
from sda.core.errors import ValidationError
from sda.core.events import EventLog
from sda.core.guard import ReentrancyGuard
from sda.core.ledger import BidLedger, BidRecord
from sda.core.settlement import AuctionState, SettlementEngine
from sda.core.storage import StorageManager
from sda.utils.logger import get_logger, short_address
from sda.utils.validation import validate_timestamp

logger = get_logger("auction")


class Auction:
    """
    Single-asset auction with anti-sniping extension and commission-netted settlement.
    
    Attributes:
        config: Auction parameters
        ledger: BidLedger (balances, history, registry, leader)
        settlement: SettlementEngine (lifecycle, deadline, payouts)
        chain: Value-transfer primitive
        events: Committed notifications
    """

    def __init__(
        self,
        owner: bytes,
        config: Optional[AuctionConfig] = None,
        clock: Optional[Clock] = None,
        chain: Optional[Chain] = None,
        storage_manager: Optional[StorageManager] = None,
    ):
        """
        Deploy an auction: empty ledger, state OPEN, deadline = now + duration.
        
        Args:
            owner: Privileged address (pause, close, emergency withdraw)
            config: Auction parameters. None = defaults
            clock: Time source. None = wall clock
            chain: Value-transfer primitive. None = fresh in-memory chain
            storage_manager: Persistence. None = in-memory only
        """
        self.config = config or AuctionConfig()
        self.clock = clock or SystemClock()
        self.chain = chain or Chain()
        self.access = AccessControl(owner)
        self.events = EventLog()
        self._guard = ReentrancyGuard()

        self.settlement = SettlementEngine(
            self.config,
            self.chain,
            self.events,
            self.access,
            start_time=self.clock.now(),
        )
        self.ledger = BidLedger(self.config, self.events, self.settlement)
        self.settlement.bind(self.ledger)

        self.storage_manager = storage_manager
        if storage_manager:
            self._load_from_storage()

        logger.info(
            f"Auction deployed: owner={short_address(owner)}, "
            f"deadline={self.settlement.deadline}, mode={self.config.settlement_mode.value}"
        )

    # =========================================================================
    # Transaction Scope
    # =========================================================================

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[int]:
        """Guarded, all-or-nothing scope for one mutating call. Yields now."""
        with self._guard.hold(operation):
            now = self.clock.now()
            is_valid, error = validate_timestamp(now, "now")
            if not is_valid:
                raise ValidationError(error)
            checkpoint = (
                self.ledger.snapshot(),
                self.settlement.snapshot(),
                self.chain.snapshot(),
            )
            try:
                yield now
                # A failed write rolls back memory too
                if self.storage_manager:
                    self.storage_manager.persist_call(list(self.events.pending), self.to_state(), now)
            except Exception as e:
                self.ledger.restore(checkpoint[0])
                self.settlement.restore(checkpoint[1])
                self.chain.restore(checkpoint[2])
                self.events.discard()
                logger.debug(f"{operation} rolled back: {type(e).__name__}: {e}")
                raise

            self.events.commit()

    # =========================================================================
    # Mutators
    # =========================================================================

    def place_bid(self, caller: bytes, value: int) -> int:
        """Add value to caller's commitment. Returns caller's new total."""
        with self._transaction("place_bid") as now:
            total = self.ledger.apply_bid(caller, value, now)
            self.chain.deposit(caller, value)
        return total

    def pause(self, caller: bytes) -> None:
        with self._transaction("pause"):
            self.settlement.pause(caller)

    def unpause(self, caller: bytes) -> None:
        with self._transaction("unpause"):
            self.settlement.unpause(caller)

    def end_auction(self, caller: bytes) -> bytes:
        """Close the auction. Returns the winner."""
        with self._transaction("end_auction") as now:
            return self.settlement.close(caller, now)

    def retrieve_deposit(self, caller: bytes) -> int:
        """Withdraw caller's balance after close. Returns net amount paid."""
        with self._transaction("retrieve_deposit") as now:
            return self.settlement.withdraw(caller, now)

    def partial_refund(self, caller: bytes) -> int:
        """Return a non-leader's excess over leader + minimum raise. Returns net paid."""
        with self._transaction("partial_refund") as now:
            return self.ledger.partial_refund(caller, now)

    def emergency_withdraw(self, caller: bytes) -> int:
        """Owner sweeps everything held. Returns amount transferred."""
        with self._transaction("emergency_withdraw"):
            return self.settlement.emergency_withdraw(caller)

    # =========================================================================
    # Readers
    # =========================================================================

    def get_highest_bid(self) -> Tuple[Optional[bytes], int]:
        """(leader, amount); (None, 0) before the first bid."""
        return self.ledger.leader.bidder, self.ledger.leader.amount

    def get_all_bids(self) -> List[BidRecord]:
        return list(self.ledger.bids)

    def bids_of(self, bidder: bytes) -> List[int]:
        return self.ledger.bids_of(bidder)

    def total_bid_of(self, bidder: bytes) -> int:
        return self.ledger.balance_of(bidder)

    def time_remaining(self) -> int:
        return self.settlement.time_remaining(self.clock.now())

    def get_deadline(self) -> int:
        return self.settlement.deadline

    def is_ended(self) -> bool:
        return self.settlement.state == AuctionState.CLOSED

    def is_paused(self) -> bool:
        return self.settlement.state == AuctionState.PAUSED

    def get_state(self) -> AuctionState:
        return self.settlement.state

    def get_commission_percent(self) -> int:
        return self.config.commission_percent

    def get_all_unique_bidders(self) -> List[bytes]:
        return list(self.ledger.registry)

    def get_max_bidders(self) -> int:
        return self.config.max_bidders

    # =========================================================================
    # Invariants
    # =========================================================================

    def check_conservation(self) -> bool:
        """
        Every unit received is either still owed to a participant, kept as
        commission, or was paid out to a participant.
        
        sum(balances) + commission + participant payouts == received
        """
        participant_paid = self.chain.total_paid_out - self.settlement.emergency_withdrawn
        accounted = (
            self.ledger.total_balance()
            + self.settlement.commission_collected
            + participant_paid
        )
        return accounted == self.chain.total_received

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_state(self) -> dict:
        return {
            "owner": self.access.owner.hex(),
            "config": self.config.to_dict(),
            "ledger": self.ledger.to_state(),
            "settlement": self.settlement.to_state(),
            "chain": self.chain.to_state(),
        }

    def _load_from_storage(self) -> None:
        """Restore the latest persisted state, if any."""
        state = self.storage_manager.load_state()
        if state is None:
            return

        if state["owner"] != self.access.owner.hex():
            raise ValueError("Persisted auction belongs to a different owner")

        self.ledger.load_state(state["ledger"])
        self.settlement.load_state(state["settlement"])
        self.chain.load_state(state["chain"])
        self.events.history.extend(self.storage_manager.load_events())

        logger.info(
            f"Loaded auction: {len(self.ledger.registry)} bidders, "
            f"state={self.settlement.state.name}, deadline={self.settlement.deadline}"
        )

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return (
            f"Auction(state={self.settlement.state.name}, bidders={len(self.ledger.registry)}, "
            f"leader={self.ledger.leader.amount}, deadline={self.settlement.deadline})"
        )

    def stats(self) -> dict:
        """Get auction statistics."""
        return {
            "state": self.settlement.state.name,
            "deadline": self.settlement.deadline,
            "unique_bidders": len(self.ledger.registry),
            "bid_count": len(self.ledger.bids),
            "highest_bid": self.ledger.leader.amount,
            "total_balance": self.ledger.total_balance(),
            "held": self.chain.held,
            "commission_collected": self.settlement.commission_collected,
            "total_received": self.chain.total_received,
            "total_paid_out": self.chain.total_paid_out,
        }
