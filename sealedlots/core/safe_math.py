"""
Safe Arithmetic - Checked uint256 arithmetic.

Unlike saturating arithmetic, every violation aborts: the enclosing
operation fails with ArithmeticOverflowError and nothing it staged is kept.
"""

from sealedlots.core.errors import ArithmeticOverflowError


# =============================================================================
# Constants
# =============================================================================

UINT256_MIN = 0
UINT256_MAX = 2**256 - 1


def _check_operand(value: int, name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ArithmeticOverflowError(f"{name} must be int, got {type(value).__name__}")
    if value < UINT256_MIN or value > UINT256_MAX:
        raise ArithmeticOverflowError(f"{name} out of uint256 range: {value}")


# =============================================================================
# Checked Operations
# =============================================================================

def safe_add(a: int, b: int) -> int:
    """Add two uint256 values, raising on overflow."""
    _check_operand(a, "a")
    _check_operand(b, "b")
    result = a + b
    if result > UINT256_MAX:
        raise ArithmeticOverflowError(f"uint256 overflow: {a} + {b}")
    return result


def safe_sub(a: int, b: int) -> int:
    """Subtract b from a, raising if b > a."""
    _check_operand(a, "a")
    _check_operand(b, "b")
    if b > a:
        raise ArithmeticOverflowError(f"uint256 underflow: {a} - {b}")
    return a - b


def safe_mul(a: int, b: int) -> int:
    """Multiply two uint256 values, raising on overflow."""
    _check_operand(a, "a")
    _check_operand(b, "b")
    result = a * b
    if result > UINT256_MAX:
        raise ArithmeticOverflowError(f"uint256 overflow: {a} * {b}")
    return result


def safe_div(a: int, b: int) -> int:
    """Integer division truncating the quotient, raising on division by zero."""
    _check_operand(a, "a")
    _check_operand(b, "b")
    if b == 0:
        raise ArithmeticOverflowError(f"division by zero: {a} / 0")
    return a // b


__all__ = [
    "UINT256_MIN",
    "UINT256_MAX",
    "safe_add",
    "safe_sub",
    "safe_mul",
    "safe_div",
]
