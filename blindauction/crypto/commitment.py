"""
Sealed bid commitments.

A commitment binds a bidder to a hidden value without revealing it:

    C = keccak256(uint256_be(value) || secret)

where ``secret`` is 32 bytes. This is exactly Solidity's
``keccak256(abi.encodePacked(uint256 value, bytes32 secret))``, and what
``solidityPackedKeccak256(['uint', 'bytes32'], [value, secret])`` computes
on the client side.

Values are in wei. ``parse_ether`` / ``encode_bytes32_string`` mirror the
ethers.js helpers bidders use to build commitments off-line.
"""

from decimal import Decimal, Inexact, InvalidOperation, localcontext
from typing import Optional, Tuple, Union

from blindauction.crypto import keccak256


# =============================================================================
# Constants
# =============================================================================

# Marks a sealed bid as consumed by a reveal
ZERO_COMMITMENT = bytes(32)

WEI_PER_ETHER = 10**18
ETHER_DECIMALS = 18

UINT256_MAX = 2**256 - 1

# Enough significant digits for any uint256 wei amount
WEI_PRECISION = 100


# =============================================================================
# Encoding
# =============================================================================


def encode_uint256(value: int) -> bytes:
    """Fixed-width 32-byte big-endian encoding of an unsigned integer."""
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"value out of uint256 range: {value}")
    return value.to_bytes(32, "big")


def encode_bytes32_string(text: str) -> bytes:
    """
    Encode a short string as bytes32 (UTF-8, zero right-padded).

    The encoded string must leave room for a terminating zero byte,
    so at most 31 bytes of UTF-8 are accepted.
    """
    data = text.encode("utf-8")
    if len(data) > 31:
        raise ValueError("bytes32 string must be less than 32 bytes")
    return data.ljust(32, b"\x00")


def decode_bytes32_string(data: bytes) -> str:
    """Inverse of ``encode_bytes32_string``."""
    if len(data) != 32:
        raise ValueError("invalid bytes32 - not 32 bytes long")
    if data[31] != 0:
        raise ValueError("invalid bytes32 string - no null terminator")
    return data.rstrip(b"\x00").decode("utf-8")


def parse_ether(amount: Union[str, int, Decimal]) -> int:
    """
    Convert a decimal ether amount to wei.

    >>> parse_ether("0.3")
    300000000000000000
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"invalid ether amount: {amount!r}") from e

    if not value.is_finite() or value < 0:
        raise ValueError(f"invalid ether amount: {amount!r}")

    # Exact for every uint256 amount; anything that would round is rejected
    with localcontext() as ctx:
        ctx.prec = WEI_PRECISION
        ctx.traps[Inexact] = True
        try:
            wei = value * WEI_PER_ETHER
        except Inexact as e:
            raise ValueError(f"ether amount out of range: {amount!r}") from e

    if wei != wei.to_integral_value():
        raise ValueError(f"too many decimals for ether: {amount!r}")
    if wei > UINT256_MAX:
        raise ValueError(f"ether amount out of range: {amount!r}")
    return int(wei)


def format_ether(wei: int) -> str:
    """Render wei as a decimal ether string (always with a fractional part)."""
    whole, frac = divmod(wei, WEI_PER_ETHER)
    frac_str = str(frac).rjust(ETHER_DECIMALS, "0").rstrip("0") or "0"
    return f"{whole}.{frac_str}"


# =============================================================================
# Commitments
# =============================================================================


def compute_commitment(value: int, secret: bytes) -> bytes:
    """
    Compute the commitment for a bid value and secret.

    Args:
        value: Bid value in wei
        secret: 32-byte blinding secret

    Returns:
        32-byte Keccak-256 digest
    """
    if len(secret) != 32:
        raise ValueError(f"secret must be 32 bytes, got {len(secret)}")
    return keccak256(encode_uint256(value) + bytes(secret))


def verify_commitment(commitment: bytes, value: int, secret: bytes) -> bool:
    """Check a revealed (value, secret) pair against a stored commitment."""
    return compute_commitment(value, secret) == commitment


def create_sealed_bid(
    value: int,
    secret: Union[bytes, str],
    deposit: Optional[int] = None,
) -> Tuple[bytes, int]:
    """
    Build a matching (commitment, deposit) pair.

    Args:
        value: Bid value in wei
        secret: 32-byte secret, or a short string encoded as bytes32
        deposit: Deposit to attach. Defaults to the bid value.

    Returns:
        (commitment, deposit)
    """
    if isinstance(secret, str):
        secret = encode_bytes32_string(secret)
    return compute_commitment(value, secret), value if deposit is None else deposit
