"""
Random code generators: pure, side-effect-free functions.

All generators use the cryptographically secure ``secrets`` module.
"""

from __future__ import annotations

import secrets


def otp_code_bounds(length: int = 6) -> tuple[int, int]:
    """Return the inclusive ``(low, high)`` range of *length*-digit codes.

    Codes never start with a zero, so 6 digits gives ``(100000, 999999)``.
    """
    if length < 1:
        raise ValueError("OTP length must be positive")
    return 10 ** (length - 1), 10**length - 1


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure numeric OTP.

    ``secrets.randbelow`` is uniform over its range, so every code in
    :func:`otp_code_bounds` is equally likely.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of exactly *length* decimal digits.
    """
    low, high = otp_code_bounds(length)
    return str(low + secrets.randbelow(high - low + 1))
