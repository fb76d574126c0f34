"""
Cryptographic primitives for SealedLots.

Participants and assets are identified by 20-byte addresses derived the
Ethereum way, the tail of keccak256 over an uncompressed secp256k1 public
key. Bid commitment hashes have the same width.

Contents:
- sha256 / keccak256
- KeyPair generation and address derivation
- 0x-hex conversion helpers
"""

import hashlib
import secrets
from dataclasses import dataclass

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# Order of the secp256k1 generator; private keys live in [1, n-1]
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

PRIVATE_KEY_SIZE = 32
PUBLIC_KEY_SIZE = 64
ADDRESS_SIZE = 20

# The "no owner" address
ZERO_ADDRESS = bytes(ADDRESS_SIZE)


# =============================================================================
# Hashing
# =============================================================================


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """Keccak-256 as used by Ethereum (pre-standard padding, not SHA3-256)."""
    return keccak.new(data=data, digest_bits=256).digest()


# =============================================================================
# Keys and Addresses
# =============================================================================


@dataclass
class KeyPair:
    """
    secp256k1 keypair of a participant.

    Attributes:
        private_key: 32-byte big-endian scalar
        public_key: 64 bytes, x || y without the 0x04 prefix
    """
    private_key: bytes
    public_key: bytes

    @property
    def address(self) -> bytes:
        return address_from_public_key(self.public_key)

    @property
    def address_hex(self) -> str:
        return bytes_to_hex(self.address)


def generate_keypair() -> KeyPair:
    """Fresh keypair from the OS random source."""
    scalar = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = scalar.to_bytes(PRIVATE_KEY_SIZE, "big")
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


def private_key_to_public_key(private_key: bytes) -> bytes:
    """
    Multiply the generator by the private key.

    Raises:
        ValueError: private_key is not 32 bytes
    """
    if len(private_key) != PRIVATE_KEY_SIZE:
        raise ValueError(f"Private key must be {PRIVATE_KEY_SIZE} bytes")

    x, y = secp256k1.privtopub(private_key)
    return x.to_bytes(32, "big") + y.to_bytes(32, "big")


def address_from_public_key(public_key: bytes) -> bytes:
    """Last 20 bytes of keccak256(public_key)."""
    if len(public_key) != PUBLIC_KEY_SIZE:
        raise ValueError(f"Public key must be {PUBLIC_KEY_SIZE} bytes")
    return keccak256(public_key)[-ADDRESS_SIZE:]


# =============================================================================
# Hex Helpers
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Decode hex, with or without a 0x/0X prefix."""
    if hex_str[:2] in ("0x", "0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def is_valid_address(address: str) -> bool:
    """True for a 0x-prefixed, 40-digit hex string."""
    if len(address) != 2 + 2 * ADDRESS_SIZE or not address.startswith("0x"):
        return False
    try:
        bytes.fromhex(address[2:])
    except ValueError:
        return False
    return True


__all__ = [
    "SECP256K1_ORDER",
    "ADDRESS_SIZE",
    "ZERO_ADDRESS",
    "sha256",
    "keccak256",
    "KeyPair",
    "generate_keypair",
    "private_key_to_public_key",
    "address_from_public_key",
    "bytes_to_hex",
    "hex_to_bytes",
    "is_valid_address",
]
