"""
Sealed-Duration Auction (SDA)

A single-asset auction engine featuring:
- Monotonic bid accounting with a 5% minimum raise
- Anti-sniping deadline extension
- Commission-netted settlement (push sweep or pull withdrawals)
- Reentrancy-safe, all-or-nothing mutators
"""

__version__ = "0.1.0"
