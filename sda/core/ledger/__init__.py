"""Bid accounting: balances, history, participant registry and leader"""
from sda.core.ledger.bid_ledger import BidLedger, BidRecord, LeaderRecord

__all__ = [
    "BidLedger",
    "BidRecord",
    "LeaderRecord",
]
