"""Unit tests for AppError hierarchy."""

import pytest

from errors import (
    AppError,
    AttemptsExceededError,
    ConflictError,
    DeliveryError,
    DuplicateRecordError,
    InvalidCodeError,
    NotFoundError,
    OtpExpiredError,
    RateLimitError,
    StoreError,
    ValidationError,
)


@pytest.mark.parametrize(
    "cls, status, code",
    [
        (ValidationError, 400, "validation_error"),
        (NotFoundError, 404, "not_found"),
        (ConflictError, 409, "conflict"),
        (RateLimitError, 429, "rate_limited"),
        (OtpExpiredError, 410, "expired"),
        (AttemptsExceededError, 429, "attempts_exceeded"),
        (InvalidCodeError, 400, "invalid_code"),
        (DeliveryError, 502, "delivery_failed"),
        (StoreError, 500, "internal_store_error"),
        (DuplicateRecordError, 409, "duplicate_record"),
    ],
)
def test_status_and_code(cls, status, code):
    e = cls("boom")
    assert isinstance(e, AppError)
    assert e.status_code == status
    assert e.error_code == code
    assert e.message == "boom"


def test_duplicate_record_is_a_conflict():
    assert issubclass(DuplicateRecordError, ConflictError)


class TestAppErrorToDict:
    def test_basic(self):
        e = NotFoundError("no otp")
        assert e.to_dict() == {"error": "no otp", "code": "not_found"}

    @pytest.mark.parametrize(
        "kwargs, key, value",
        [
            ({"field": "email"}, "field", "email"),
            ({"details": {"remaining_attempts": 1}}, "details", {"remaining_attempts": 1}),
        ],
        ids=["with_field", "with_details"],
    )
    def test_optional_keys(self, kwargs, key, value):
        e = InvalidCodeError("bad code", **kwargs)
        assert e.to_dict()[key] == value

    def test_str_is_message(self):
        assert str(RateLimitError("slow down")) == "slow down"
