"""Auction lifecycle, deadline and settlement"""
from sda.core.settlement.engine import AuctionState, SettlementEngine

__all__ = [
    "AuctionState",
    "SettlementEngine",
]
