"""
Input Validation - sanitization of values crossing the auction boundary.

Bidder identities, commitments, secrets and amounts all arrive from outside
(CLI, tooling, callers of the coordinator). Each validator returns
``(is_valid, error_message)`` so callers decide how to reject; the
coordinator turns the first failure into ``InvalidBidInput``.
"""

from typing import Any, Optional, Sequence, Tuple

# =============================================================================
# Constants
# =============================================================================

ADDRESS_SIZE = 20
HASH_SIZE = 32
SECRET_SIZE = 32

# Amounts and bid values are Solidity uint256
MAX_AMOUNT = 2**256 - 1


# =============================================================================
# Field Validators
# =============================================================================


def validate_bytes(data: Any, name: str, expected_length: int) -> Tuple[bool, str]:
    """Fixed-width byte string (bytes or bytearray)."""
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"
    if len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"
    return True, ""


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    return validate_bytes(address, name, ADDRESS_SIZE)


def validate_hash(hash_value: Any, name: str = "hash") -> Tuple[bool, str]:
    return validate_bytes(hash_value, name, HASH_SIZE)


def validate_secret(secret: Any, name: str = "secret") -> Tuple[bool, str]:
    return validate_bytes(secret, name, SECRET_SIZE)


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """
    Validate a uint256 amount in wei.

    Args:
        amount: Value to validate
        name: Field name for error messages

    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass; a flag is never an amount
    if not isinstance(amount, int) or isinstance(amount, bool):
        return False, f"{name} must be int, got {type(amount).__name__}"
    if amount < 0:
        return False, f"{name} must be >= 0, got {amount}"
    if amount > MAX_AMOUNT:
        return False, f"{name} exceeds uint256"
    return True, ""


# =============================================================================
# Composite Validators
# =============================================================================


def validate_reveal_data(values: Any, secrets: Any) -> Tuple[bool, str]:
    """Validate the element types of a reveal call (lengths are checked by the engine)."""
    for seq, name in ((values, "values"), (secrets, "secrets")):
        if not isinstance(seq, (list, tuple)):
            return False, f"{name} must be list/tuple, got {type(seq).__name__}"

    for i, value in enumerate(values):
        valid, err = validate_amount(value, f"values[{i}]")
        if not valid:
            return False, err

    for i, secret in enumerate(secrets):
        valid, err = validate_secret(secret, f"secrets[{i}]")
        if not valid:
            return False, err

    return True, ""


def first_error(checks: Sequence[Tuple[bool, str]]) -> Optional[str]:
    """Return the first failing message from a batch of validator results."""
    for valid, err in checks:
        if not valid:
            return err
    return None


__all__ = [
    "validate_bytes",
    "validate_address",
    "validate_hash",
    "validate_secret",
    "validate_amount",
    "validate_reveal_data",
    "first_error",
    "ADDRESS_SIZE",
    "HASH_SIZE",
    "SECRET_SIZE",
    "MAX_AMOUNT",
]
