"""
Commitment helper for bidders.

The auction stores a bid's secret hash as an opaque 20-byte value and never
checks it. This helper gives clients a well-formed commitment:

    secret_hash = keccak256(lot_id || sender || n || amounts... || salt)[-20:]

with every integer encoded as 32 big-endian bytes.
"""

import secrets
from typing import Optional, Sequence, Tuple

from sealedlots.core.errors import ValidationError
from sealedlots.crypto import keccak256
from sealedlots.utils.validation import (
    SECRET_HASH_SIZE,
    validate_address,
    validate_bytes,
    validate_uint256,
)

SALT_SIZE = 32


def _word(value: int) -> bytes:
    return value.to_bytes(32, "big")


def create_secret_hash(
    lot_id: int,
    sender: bytes,
    amounts: Sequence[int],
    salt: bytes,
) -> bytes:
    """
    Compute the commitment of a bid.

    Args:
        lot_id: Lot being bid on
        sender: Bidder address
        amounts: Per-asset amounts
        salt: 32-byte random blinding factor

    Returns:
        20-byte commitment hash
    """
    checks = [
        validate_uint256(lot_id, "lot_id"),
        validate_address(sender, "sender"),
        validate_bytes(salt, "salt", expected_length=SALT_SIZE),
    ]
    checks += [validate_uint256(a, f"amounts[{i}]") for i, a in enumerate(amounts)]
    for valid, err in checks:
        if not valid:
            raise ValidationError(err)

    preimage = _word(lot_id) + bytes(sender) + _word(len(amounts))
    preimage += b"".join(_word(a) for a in amounts)
    preimage += bytes(salt)
    return keccak256(preimage)[-SECRET_HASH_SIZE:]


def create_sealed_bid(
    lot_id: int,
    sender: bytes,
    amounts: Sequence[int],
    salt: Optional[bytes] = None,
) -> Tuple[bytes, bytes]:
    """
    Create a commitment with a fresh salt.

    Returns:
        (secret_hash, salt) - the salt must be kept to open the commitment later
    """
    if salt is None:
        salt = secrets.token_bytes(SALT_SIZE)
    return create_secret_hash(lot_id, sender, amounts, salt), salt


__all__ = ["create_secret_hash", "create_sealed_bid", "SALT_SIZE"]
