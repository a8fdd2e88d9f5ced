"""
Input Validation - Sanitization of values handed in by callers.

Provides validation for all external inputs to prevent:
- Malformed participant identities
- Negative or non-integer amounts
- Integer overflows beyond the 256-bit value range
"""

from typing import Any, Tuple

from sda.crypto import ADDRESS_SIZE

# =============================================================================
# Constants
# =============================================================================

MIN_AMOUNT = 0
MAX_AMOUNT = 2**256 - 1
MIN_TIMESTAMP = 0
MAX_TIMESTAMP = 2**64 - 1


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: int,
) -> Tuple[bool, str]:
    """
    Validate bytes input of a fixed length.
    
    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        
    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"
    
    if len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"
    
    return True, ""


def validate_integer(
    value: Any,
    name: str,
    min_val: int,
    max_val: int,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.
    
    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass; never a valid amount
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"
    
    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"
    
    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"
    
    return True, ""


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a participant address."""
    return validate_bytes(address, name, expected_length=ADDRESS_SIZE)


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a monetary amount."""
    return validate_integer(amount, name, MIN_AMOUNT, MAX_AMOUNT)


def validate_timestamp(timestamp: Any, name: str = "timestamp") -> Tuple[bool, str]:
    """Validate a unix timestamp in seconds."""
    return validate_integer(timestamp, name, MIN_TIMESTAMP, MAX_TIMESTAMP)


__all__ = [
    "validate_bytes",
    "validate_integer",
    "validate_address",
    "validate_amount",
    "validate_timestamp",
    "MAX_AMOUNT",
]
