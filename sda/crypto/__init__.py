"""
Identity primitives for SDA.

Participants are identified by 20-byte addresses derived Ethereum-style
from a secp256k1 public key: address = keccak256(public_key)[-20:].

Labelled addresses (keccak256 of a UTF-8 label) are used for demos and
fixtures where no keypair is needed.
"""

import secrets
from dataclasses import dataclass

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# secp256k1 curve order
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

ADDRESS_SIZE = 20


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).
    
    Used for: address derivation.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Keys and Addresses
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.
    
    Attributes:
        private_key: 32-byte secret key
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes
    public_key: bytes

    @property
    def address(self) -> bytes:
        """20-byte participant address for this keypair."""
        return address_from_public_key(self.public_key)


def generate_keypair() -> KeyPair:
    """Generate a new random keypair."""
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")

    # P = k * G
    x, y = secp256k1.privtopub(private_key)
    public_key = x.to_bytes(32, byteorder="big") + y.to_bytes(32, byteorder="big")

    return KeyPair(private_key=private_key, public_key=public_key)


def address_from_public_key(public_key: bytes) -> bytes:
    """Derive a 20-byte address from a 64-byte public key."""
    if len(public_key) != 64:
        raise ValueError("Public key must be 64 bytes")
    return keccak256(public_key)[-ADDRESS_SIZE:]


def address_from_label(label: str) -> bytes:
    """Deterministic address for a human-readable label (demos, fixtures)."""
    return keccak256(label.encode("utf-8"))[-ADDRESS_SIZE:]


# =============================================================================
# Encoding
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to 0x-prefixed hex string."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid 0x-prefixed 20-byte hex address."""
    if not address.startswith("0x") or len(address) != 2 + 2 * ADDRESS_SIZE:
        return False
    try:
        bytes.fromhex(address[2:])
    except ValueError:
        return False
    return True


__all__ = [
    "keccak256",
    "KeyPair",
    "generate_keypair",
    "address_from_public_key",
    "address_from_label",
    "bytes_to_hex",
    "hex_to_bytes",
    "is_valid_address",
    "ADDRESS_SIZE",
]
