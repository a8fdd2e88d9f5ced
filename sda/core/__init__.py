"""Auction core: bid ledger, settlement engine and the Auction entry point"""
from sda.core.auction import Auction
from sda.core.config import AuctionConfig, SettlementMode, load_config
from sda.core.ledger import BidLedger, BidRecord, LeaderRecord
from sda.core.settlement import AuctionState, SettlementEngine

__all__ = [
    "Auction",
    "AuctionConfig",
    "SettlementMode",
    "load_config",
    "BidLedger",
    "BidRecord",
    "LeaderRecord",
    "AuctionState",
    "SettlementEngine",
]
