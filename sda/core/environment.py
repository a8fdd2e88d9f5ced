"""
Environment - Reference collaborators for the auction engine.

The engine needs four things from the outside world:

1. **Time**: a clock sampled once per call (`Clock.now()`)
2. **Value transfer**: an atomic "move N units to address A" primitive
   that reports success or failure (`Chain.transfer`)
3. **Value receipt**: attached value credited to the engine (`Chain.deposit`)
4. **Privilege**: a single-owner predicate (`AccessControl.is_owner`)

Chain recipients may install a receive hook. The hook runs inside
`transfer` and may call back into the auction (reentrancy). A hook that
raises makes the transfer report failure and leaves no trace, like a
reverted call.
"""

import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from sda.core.errors import InsufficientFunds
from sda.utils.logger import get_logger, short_address

logger = get_logger("environment")


# =============================================================================
# Clocks
# =============================================================================


class Clock:
    """Time source interface (unix seconds)."""

    def now(self) -> int:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> int:
        return int(time.time())


class ManualClock(Clock):
    """Clock driven by tests and simulations."""

    def __init__(self, start: int = 0):
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(f"Clock cannot go backwards: {timestamp} < {self._now}")
        self._now = timestamp

    def advance(self, seconds: int) -> None:
        self.set(self._now + seconds)


# =============================================================================
# Access Control
# =============================================================================


class AccessControl:
    """Single privileged role."""

    def __init__(self, owner: bytes):
        self.owner = owner

    def is_owner(self, caller: bytes) -> bool:
        return caller == self.owner


# =============================================================================
# Value Transfer
# =============================================================================


ReceiveHook = Callable[[int], None]


class Chain:
    """
    In-memory value-transfer primitive.
    
    Tracks external account balances and the value held by the engine.
    
    Attributes:
        accounts: External balances (address -> amount)
        held: Value currently held by the engine
        total_received: Cumulative value deposited into the engine
        total_paid_out: Cumulative value transferred out of the engine
        transfers: Successful outbound transfers, in order
    """

    def __init__(self):
        self.accounts: Dict[bytes, int] = defaultdict(int)
        self.held = 0
        self.total_received = 0
        self.total_paid_out = 0
        self.transfers: List[Tuple[bytes, int]] = []
        self._hooks: Dict[bytes, ReceiveHook] = {}

    # =========================================================================
    # Accounts
    # =========================================================================

    def fund(self, address: bytes, amount: int) -> None:
        """Credit an external account (faucet)."""
        self.accounts[address] += amount

    def balance_of(self, address: bytes) -> int:
        return self.accounts.get(address, 0)

    def set_receive_hook(self, address: bytes, hook: Optional[ReceiveHook]) -> None:
        """Install (or clear, with None) the hook run when address receives value."""
        if hook is None:
            self._hooks.pop(address, None)
        else:
            self._hooks[address] = hook

    # =========================================================================
    # Value Movement
    # =========================================================================

    def deposit(self, sender: bytes, amount: int) -> None:
        """
        Move attached value from sender's account into the engine.
        
        Raises:
            InsufficientFunds: If sender cannot cover amount
        """
        available = self.accounts.get(sender, 0)
        if amount > available:
            raise InsufficientFunds(f"Insufficient balance: have {available}, need {amount}")

        self.accounts[sender] = available - amount
        self.held += amount
        self.total_received += amount

    def transfer(self, to: bytes, amount: int) -> bool:
        """
        Move amount from the engine to an external account.
        
        Returns:
            True on success, False if funds are short or the recipient rejects
        """
        if amount < 0 or amount > self.held:
            logger.warning(f"Transfer of {amount} to {short_address(to)} exceeds held {self.held}")
            return False

        checkpoint = self.snapshot()

        self.held -= amount
        self.accounts[to] += amount
        self.total_paid_out += amount
        self.transfers.append((to, amount))

        hook = self._hooks.get(to)
        if hook is not None:
            try:
                hook(amount)
            except Exception as e:
                # Recipient rejected the value; the transfer never happened
                self.restore(checkpoint)
                logger.warning(f"Recipient {short_address(to)} rejected {amount}: {e}")
                return False

        return True

    # =========================================================================
    # Atomicity
    # =========================================================================

    def snapshot(self) -> tuple:
        return (
            dict(self.accounts),
            self.held,
            self.total_received,
            self.total_paid_out,
            len(self.transfers),
        )

    def restore(self, snapshot: tuple) -> None:
        accounts, self.held, self.total_received, self.total_paid_out, transfer_count = snapshot
        self.accounts = defaultdict(int, accounts)
        del self.transfers[transfer_count:]

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_state(self) -> dict:
        return {
            "accounts": {a.hex(): v for a, v in self.accounts.items()},
            "held": self.held,
            "total_received": self.total_received,
            "total_paid_out": self.total_paid_out,
            "transfers": [[a.hex(), v] for a, v in self.transfers],
        }

    def load_state(self, state: dict) -> None:
        self.accounts = defaultdict(int, {bytes.fromhex(a): v for a, v in state["accounts"].items()})
        self.held = state["held"]
        self.total_received = state["total_received"]
        self.total_paid_out = state["total_paid_out"]
        self.transfers = [(bytes.fromhex(a), v) for a, v in state["transfers"]]
