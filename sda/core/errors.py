"""
Error taxonomy for the auction engine.

Every rejection raised by BidLedger, SettlementEngine or the Auction facade
derives from AuctionError and falls into one of four families:

- ValidationError: bad input or wrong phase; retry with corrected input
- CapacityError: participant registry is full; never frees up
- StateError: wrong lifecycle state or wrong identity
- TransferFailure: the value-transfer primitive refused; whole call rolled back
"""


class AuctionError(Exception):
    """Base class for all auction errors."""


# =============================================================================
# Validation
# =============================================================================


class ValidationError(AuctionError):
    """Input rejected before any state mutation."""


class InvalidBidAmount(ValidationError):
    """Attached value is zero, negative or malformed."""


class BidTooLow(ValidationError):
    """New total does not strictly exceed the minimum raise over the leader."""

    def __init__(self, new_total: int, min_required: int):
        self.new_total = new_total
        self.min_required = min_required
        super().__init__(f"Bid total {new_total} must exceed {min_required}")


class AuctionNotActive(ValidationError):
    """Auction is paused or closed."""


class AuctionExpired(ValidationError):
    """Deadline has passed."""


class LeaderCannotRefund(ValidationError):
    """The current leader may not take a partial refund."""


class NoExcessFunds(ValidationError):
    """Balance does not exceed the amount required to stay competitive."""


# =============================================================================
# Capacity
# =============================================================================


class CapacityError(AuctionError):
    """A bounded resource is exhausted."""


class BidderLimitExceeded(CapacityError):
    """The unique-participant registry is full."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Bidder limit of {limit} reached")


# =============================================================================
# State
# =============================================================================


class StateError(AuctionError):
    """Operation not allowed in the current lifecycle state or by this caller."""


class AlreadyClosed(StateError):
    pass


class AuctionNotClosed(StateError):
    pass


class DeadlineNotReached(StateError):
    pass


class NoBidsPlaced(StateError):
    pass


class NothingToWithdraw(StateError):
    pass


class NotOwner(StateError):
    pass


class AlreadyPaused(StateError):
    pass


class NotPaused(StateError):
    pass


class NoFundsHeld(StateError):
    pass


class ReentrantCall(StateError):
    """A guarded entry point was entered again before the outer call finished."""


# =============================================================================
# Transfers
# =============================================================================


class TransferFailure(AuctionError):
    """The value-transfer primitive reported failure."""

    def __init__(self, recipient: bytes, amount: int):
        self.recipient = recipient
        self.amount = amount
        super().__init__(f"Transfer of {amount} to 0x{recipient.hex()} failed")


class InsufficientFunds(ValidationError):
    """Caller's external account cannot cover the attached value."""
