"""
Input validators: framework-agnostic, pure functions.
"""

from __future__ import annotations

from typing import Union

import validators as _validators

from errors import ValidationError
from schemas.models.otp import OtpPurpose


def normalize_email(email: str) -> str:
    """Return *email* stripped and lowercased, the form used as a store key.

    Raises:
        ValidationError: when the address is empty or malformed.
    """
    normalized = (email or "").strip().lower()
    if not normalized:
        raise ValidationError("Email address is required", field="email")
    if not _validators.email(normalized):
        raise ValidationError("Invalid email address", field="email")
    return normalized


def parse_purpose(purpose: Union[OtpPurpose, str]) -> OtpPurpose:
    """Coerce *purpose* to an :class:`OtpPurpose`.

    Raises:
        ValidationError: for a value outside the enumerated set.
    """
    try:
        return OtpPurpose(purpose)
    except ValueError:
        raise ValidationError(
            f"Unsupported OTP purpose: {purpose!r}",
            field="purpose",
            details={"allowed": [p.value for p in OtpPurpose]},
        ) from None
