"""
Input Validation - Sanitization of externally supplied auction inputs.

Every check returns (is_valid, error_message) with an empty message on
success; the service layer turns a failed check into ValidationError.
Guards against:
- Misaligned amount vectors
- Integer values outside uint256
- Malformed addresses and commitment hashes
- Oversized lots
"""

from typing import Any, Optional, Tuple

from sealedlots.core.safe_math import UINT256_MAX, UINT256_MIN

# =============================================================================
# Constants
# =============================================================================

ADDRESS_SIZE = 20
SECRET_HASH_SIZE = 20
MAX_ARRAY_LENGTH = 256

OK = (True, "")


# =============================================================================
# Primitive Checks
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Check a bytes-like value and optionally its length.

    Args:
        data: Candidate value
        name: Field name used in the message
        expected_length: Required exact length
        max_length: Upper bound on the length
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"
    size = len(data)
    if expected_length is not None and size != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {size}"
    if max_length is not None and size > max_length:
        return False, f"{name} is {size} bytes, max {max_length}"
    return OK


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 20-byte participant or asset address."""
    return validate_bytes(address, name, expected_length=ADDRESS_SIZE)


def validate_secret_hash(secret_hash: Any) -> Tuple[bool, str]:
    return validate_bytes(secret_hash, "secret_hash", expected_length=SECRET_HASH_SIZE)


def validate_integer(
    value: Any,
    name: str,
    min_val: int = UINT256_MIN,
    max_val: int = UINT256_MAX,
) -> Tuple[bool, str]:
    """Check that value is an int in [min_val, max_val]."""
    # bool is an int subclass but never a valid amount
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"
    if not min_val <= value <= max_val:
        return False, f"{name} out of range [{min_val}, {max_val}]: {value}"
    return OK


def validate_uint256(value: Any, name: str) -> Tuple[bool, str]:
    return validate_integer(value, name, UINT256_MIN, UINT256_MAX)


def validate_array(
    data: Any,
    name: str,
    max_length: int = MAX_ARRAY_LENGTH,
    allow_empty: bool = True,
) -> Tuple[bool, str]:
    """Check a list/tuple and its length bounds."""
    if not isinstance(data, (list, tuple)):
        return False, f"{name} must be list/tuple, got {type(data).__name__}"
    if not data and not allow_empty:
        return False, f"{name} must not be empty"
    if len(data) > max_length:
        return False, f"{name} has {len(data)} items, max {max_length}"
    return OK


def validate_hex_string(value: Any, name: str, expected_bytes: Optional[int] = None) -> Tuple[bool, str]:
    """
    Check a hex string, 0x prefix optional, as typed on the command line.

    Args:
        value: Candidate string
        name: Field name used in the message
        expected_bytes: Required decoded length
    """
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"
    digits = value[2:] if value[:2] in ("0x", "0X") else value
    try:
        decoded = bytes.fromhex(digits)
    except ValueError:
        return False, f"{name} is not valid hex: {value}"
    if expected_bytes is not None and len(decoded) != expected_bytes:
        return False, f"{name} must be {expected_bytes} bytes, got {len(decoded)}"
    return OK


# =============================================================================
# Composite Validators
# =============================================================================


def validate_lot_request(
    sender: Any,
    lot_id: Any,
    tokens: Any,
    parts: Any,
    reference_amount: Any,
    max_parts: int = MAX_ARRAY_LENGTH,
) -> Tuple[bool, str]:
    """Validate the inputs of a lot creation."""
    valid, err = validate_address(sender, "sender")
    if not valid:
        return False, err

    valid, err = validate_uint256(lot_id, "lot_id")
    if not valid:
        return False, err

    valid, err = validate_array(tokens, "tokens", max_length=max_parts, allow_empty=False)
    if not valid:
        return False, err

    valid, err = validate_array(parts, "parts", max_length=max_parts, allow_empty=False)
    if not valid:
        return False, err

    if len(tokens) != len(parts):
        return False, f"tokens and parts length mismatch: {len(tokens)} != {len(parts)}"

    for i, (token, part) in enumerate(zip(tokens, parts)):
        valid, err = validate_address(token, f"tokens[{i}]")
        if not valid:
            return False, err
        valid, err = validate_uint256(part, f"parts[{i}]")
        if not valid:
            return False, err

    valid, err = validate_uint256(reference_amount, "reference_amount")
    if not valid:
        return False, err

    return OK


def validate_bet_request(
    sender: Any,
    amounts: Any,
    secret_hash: Any,
    part_count: int,
) -> Tuple[bool, str]:
    """
    Validate the inputs of a bid against a lot with `part_count` parts.

    Amounts are positionally aligned with the lot parts, so the lengths
    must match exactly.
    """
    valid, err = validate_address(sender, "sender")
    if not valid:
        return False, err

    if not isinstance(amounts, (list, tuple)):
        return False, f"amounts must be list/tuple, got {type(amounts).__name__}"

    if len(amounts) != part_count:
        return False, f"amounts length {len(amounts)} does not match lot parts {part_count}"

    for i, amount in enumerate(amounts):
        valid, err = validate_uint256(amount, f"amounts[{i}]")
        if not valid:
            return False, err

    valid, err = validate_secret_hash(secret_hash)
    if not valid:
        return False, err

    return OK


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_bytes",
    "validate_address",
    "validate_secret_hash",
    "validate_integer",
    "validate_uint256",
    "validate_array",
    "validate_hex_string",
    "validate_lot_request",
    "validate_bet_request",
    "ADDRESS_SIZE",
    "SECRET_HASH_SIZE",
    "MAX_ARRAY_LENGTH",
]
