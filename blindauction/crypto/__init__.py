"""
Cryptographic primitives for the blind auction.

This module provides:
- Hashing functions (SHA-256, Keccak-256)
- Key generation and address derivation for bidder identities
- Hex helpers for addresses and digests

Design Notes:
-------------
Bidder identities are Ethereum-style addresses: the last 20 bytes of the
Keccak-256 hash of a secp256k1 public key. Bid commitments use Keccak-256 over
the same packed encoding Solidity's ``abi.encodePacked(uint256, bytes32)``
produces, so commitments built by EVM tooling verify here unchanged.
"""

import hashlib
import secrets
from dataclasses import dataclass

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order (number of points on the curve)
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


# =============================================================================
# Hashing
# =============================================================================


def sha256(data: bytes) -> bytes:
    """Compute SHA-256 hash."""
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: bid commitments, address derivation.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Key Generation
# =============================================================================


def address_from_public_key(public_key: bytes) -> bytes:
    """
    Derive address from public key (Ethereum-style).

    address = keccak256(public_key)[-20:]

    Args:
        public_key: 64-byte public key

    Returns:
        20-byte address
    """
    if len(public_key) != 64:
        raise ValueError("Public key must be 64 bytes")
    return keccak256(public_key)[-20:]


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret key (integer in [1, order-1])
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes  # 32 bytes
    public_key: bytes   # 64 bytes (uncompressed, no 0x04 prefix)

    @property
    def address_bytes(self) -> bytes:
        """20-byte bidder identity."""
        return address_from_public_key(self.public_key)

    @property
    def address(self) -> str:
        """Address hex-encoded with 0x prefix."""
        return bytes_to_hex(self.address_bytes)

    @property
    def private_key_hex(self) -> str:
        return self.private_key.hex()


def private_key_to_public_key(private_key: bytes) -> bytes:
    """
    Derive public key from private key.

    Args:
        private_key: 32-byte private key

    Returns:
        64-byte uncompressed public key
    """
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")

    x, y = secp256k1.privtopub(private_key)
    return x.to_bytes(32, byteorder="big") + y.to_bytes(32, byteorder="big")


def generate_keypair() -> KeyPair:
    """
    Generate a new random keypair.

    Uses cryptographically secure random number generator.
    """
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    if not address.startswith("0x"):
        return False
    if len(address) != 42:  # 0x + 40 hex chars
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def short_hex(data: bytes, length: int = 10) -> str:
    """Truncated hex for log lines."""
    return bytes_to_hex(data)[:length] + "..."


# Commitment scheme (kept in its own module, re-exported here)
from blindauction.crypto.commitment import (
    ZERO_COMMITMENT,
    WEI_PER_ETHER,
    encode_uint256,
    encode_bytes32_string,
    decode_bytes32_string,
    parse_ether,
    format_ether,
    compute_commitment,
    verify_commitment,
    create_sealed_bid,
)
