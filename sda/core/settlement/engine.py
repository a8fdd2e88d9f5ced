"""
SettlementEngine - Lifecycle, deadline and payouts.

State machine:
-------------
    OPEN <--(owner pause / unpause)--> PAUSED
    OPEN | PAUSED --(deadline passed, owner close)--> CLOSED

CLOSED is terminal. Pausing stops bids and partial refunds but not the
clock.

Settlement:
----------
Close flips the state to CLOSED before any value moves, so a reentrant
close fails even mid-sweep. Then, depending on `settlement_mode`:

- push: every registered participant with a balance is paid, in
  registration order. Each balance is zeroed before its transfer. Any
  failed transfer aborts the whole close.
- pull: close only finalizes the winner; participants call withdraw.

Every outbound transfer keeps `commission_percent` of the gross amount in
the engine. The commission can later be recovered by the owner through
emergency_withdraw.
"""

from enum import IntEnum
from typing import Optional, Tuple

from sda.core.accounting import split_commission
from sda.core.config import AuctionConfig, SettlementMode
from sda.core.environment import AccessControl, Chain
from sda.core.errors import (
    AlreadyClosed,
    AlreadyPaused,
    AuctionExpired,
    AuctionNotActive,
    AuctionNotClosed,
    DeadlineNotReached,
    NoBidsPlaced,
    NoFundsHeld,
    NothingToWithdraw,
    NotOwner,
    NotPaused,
    TransferFailure,
)
from sda.core.events import (
    AuctionEnded,
    EmergencyWithdrawal,
    EventLog,
    FundsWithdrawn,
    NonWinnerRefunded,
)
from sda.utils.logger import get_logger, short_address

logger = get_logger("settlement")


class AuctionState(IntEnum):
    """Lifecycle state of the auction."""
    OPEN = 0      # Accepting bids
    PAUSED = 1    # Bids and partial refunds suspended; clock keeps running
    CLOSED = 2    # Terminal


class SettlementEngine:
    """
    Owns the auction lifecycle and converts ledger balances into transfers.
    
    Attributes:
        state: Current AuctionState
        deadline: Unix timestamp; bids must arrive strictly before it
        commission_collected: Commission retained across all payouts
        emergency_withdrawn: Value swept to the owner by emergency_withdraw
        winner: Winner (address) fixed at close
    """

    def __init__(
        self,
        config: AuctionConfig,
        chain: Chain,
        events: EventLog,
        access: AccessControl,
        start_time: int,
    ):
        self.config = config
        self.chain = chain
        self.events = events
        self.access = access
        self.ledger = None

        self.state = AuctionState.OPEN
        self.deadline = start_time + config.duration
        self.commission_collected = 0
        self.emergency_withdrawn = 0
        self.winner: Optional[bytes] = None

    def bind(self, ledger) -> None:
        """Attach the BidLedger whose balances this engine settles."""
        self.ledger = ledger

    # =========================================================================
    # Guards
    # =========================================================================

    def require_owner(self, caller: bytes) -> None:
        if not self.access.is_owner(caller):
            raise NotOwner(f"{short_address(caller)} is not the owner")

    def require_bidding_open(self, now: int) -> None:
        """Raise unless bids and partial refunds are admissible at now."""
        if self.state != AuctionState.OPEN:
            raise AuctionNotActive(f"Auction is {self.state.name.lower()}")
        if now >= self.deadline:
            raise AuctionExpired(f"Deadline {self.deadline} passed (now {now})")

    # =========================================================================
    # Deadline
    # =========================================================================

    def time_remaining(self, now: int) -> int:
        return max(0, self.deadline - now)

    def maybe_extend(self, now: int) -> bool:
        """
        Push the deadline out by one window if now is inside the final window.
        
        Additive: repeated late bids keep extending.
        """
        if self.deadline - now > self.config.extension_window:
            return False

        self.deadline += self.config.extension_window
        logger.info(f"Deadline extended to {self.deadline}")
        return True

    # =========================================================================
    # Pause
    # =========================================================================

    def pause(self, caller: bytes) -> None:
        self.require_owner(caller)
        if self.state == AuctionState.CLOSED:
            raise AlreadyClosed("Auction already closed")
        if self.state == AuctionState.PAUSED:
            raise AlreadyPaused("Auction already paused")
        self.state = AuctionState.PAUSED
        logger.info("Auction paused")

    def unpause(self, caller: bytes) -> None:
        self.require_owner(caller)
        if self.state != AuctionState.PAUSED:
            raise NotPaused(f"Auction is {self.state.name.lower()}")
        self.state = AuctionState.OPEN
        logger.info("Auction resumed")

    # =========================================================================
    # Payouts
    # =========================================================================

    def pay_out(self, recipient: bytes, gross: int) -> Tuple[int, int]:
        """
        Transfer gross minus commission to recipient.
        
        The caller must already have debited gross from the ledger.
        
        Returns:
            (net, commission)
            
        Raises:
            TransferFailure: transfer primitive refused
        """
        net, commission = split_commission(gross, self.config.commission_percent)
        self.commission_collected += commission

        if not self.chain.transfer(recipient, net):
            logger.warning(f"Transfer of {net} to {short_address(recipient)} failed")
            raise TransferFailure(recipient, net)

        return net, commission

    # =========================================================================
    # Close
    # =========================================================================

    def close(self, caller: bytes, now: int) -> bytes:
        """
        End the auction and settle according to settlement_mode.
        
        Returns:
            Winner address
            
        Raises:
            NotOwner, DeadlineNotReached, AlreadyClosed, NoBidsPlaced,
            TransferFailure (push mode)
        """
        self.require_owner(caller)
        if now < self.deadline:
            raise DeadlineNotReached(f"Deadline {self.deadline} not reached (now {now})")
        if self.state == AuctionState.CLOSED:
            raise AlreadyClosed("Auction already closed")

        leader = self.ledger.leader
        if not leader.exists or leader.amount == 0:
            raise NoBidsPlaced("No bids placed")

        # Flag first: a reentrant close must fail mid-sweep
        self.state = AuctionState.CLOSED
        self.winner = leader.bidder
        self.events.emit(AuctionEnded(winner=leader.bidder, amount=leader.amount))
        logger.info(f"Auction closed: winner {short_address(leader.bidder)} at {leader.amount}")

        if self.config.settlement_mode == SettlementMode.PUSH:
            self._sweep()

        return leader.bidder

    def _sweep(self) -> None:
        """Pay every registered participant, in registration order."""
        paid = 0
        for bidder in self.ledger.registry:
            balance = self.ledger.clear_balance(bidder)
            if balance == 0:
                continue

            net, commission = self.pay_out(bidder, balance)
            paid += 1
            if bidder == self.winner:
                self.events.emit(FundsWithdrawn(user=bidder, net=net, commission=commission))
            else:
                self.events.emit(NonWinnerRefunded(
                    bidder=bidder,
                    original=balance,
                    net=net,
                    commission=commission,
                ))

        # The winner is registered, so the loop above has already paid it
        assert self.ledger.balance_of(self.winner) == 0, "winner balance survived the sweep"
        logger.info(f"Sweep complete: {paid} payouts, commission {self.commission_collected}")

    # =========================================================================
    # Withdrawals
    # =========================================================================

    def withdraw(self, caller: bytes, now: int) -> int:
        """
        Pull caller's remaining balance after close.
        
        Returns:
            Net amount transferred
            
        Raises:
            AuctionNotClosed, NothingToWithdraw, TransferFailure
        """
        if self.state != AuctionState.CLOSED:
            raise AuctionNotClosed("Auction has not been closed")

        balance = self.ledger.clear_balance(caller)
        if balance == 0:
            raise NothingToWithdraw("Nothing to withdraw")

        net, commission = self.pay_out(caller, balance)
        self.events.emit(FundsWithdrawn(user=caller, net=net, commission=commission))
        logger.info(f"Withdrawal {short_address(caller)}: {balance} (net {net}) at {now}")
        return net

    def emergency_withdraw(self, caller: bytes) -> int:
        """
        Send everything the engine holds to the owner.
        
        Does not touch individual balances: outstanding withdraw claims
        become unpayable afterwards.
        
        Returns:
            Amount transferred
        """
        self.require_owner(caller)
        if self.state != AuctionState.CLOSED:
            raise AuctionNotClosed("Auction has not been closed")

        amount = self.chain.held
        if amount == 0:
            raise NoFundsHeld("No funds held")

        self.emergency_withdrawn += amount
        if not self.chain.transfer(caller, amount):
            raise TransferFailure(caller, amount)

        self.events.emit(EmergencyWithdrawal(receiver=caller, amount=amount))
        logger.warning(f"Emergency withdrawal of {amount} to {short_address(caller)}")
        return amount

    # =========================================================================
    # Atomicity / Persistence
    # =========================================================================

    def snapshot(self) -> tuple:
        return (
            self.state,
            self.deadline,
            self.commission_collected,
            self.emergency_withdrawn,
            self.winner,
        )

    def restore(self, snapshot: tuple) -> None:
        (
            self.state,
            self.deadline,
            self.commission_collected,
            self.emergency_withdrawn,
            self.winner,
        ) = snapshot

    def to_state(self) -> dict:
        return {
            "state": self.state.name,
            "deadline": self.deadline,
            "commission_collected": self.commission_collected,
            "emergency_withdrawn": self.emergency_withdrawn,
            "winner": self.winner.hex() if self.winner else None,
        }

    def load_state(self, state: dict) -> None:
        self.state = AuctionState[state["state"]]
        self.deadline = state["deadline"]
        self.commission_collected = state["commission_collected"]
        self.emergency_withdrawn = state["emergency_withdrawn"]
        self.winner = bytes.fromhex(state["winner"]) if state["winner"] else None
