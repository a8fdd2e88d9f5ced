"""
Integer arithmetic shared by the ledger and settlement.

All amounts are unsigned integers; percentages are floored.
"""

from typing import Tuple


def percent_of(amount: int, percent: int) -> int:
    """floor(amount * percent / 100)"""
    return amount * percent // 100


def min_required(leader_amount: int, increment_percent: int) -> int:
    """
    Threshold a competing total must strictly exceed.
    
    With a leader at 100 and a 5% increment this is 105, so 105 is
    rejected and 106 accepted.
    """
    return leader_amount + percent_of(leader_amount, increment_percent)


def split_commission(gross: int, commission_percent: int) -> Tuple[int, int]:
    """
    Split an outbound amount into (net, commission).
    
    net + commission == gross always holds.
    """
    commission = percent_of(gross, commission_percent)
    return gross - commission, commission
