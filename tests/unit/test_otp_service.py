"""End-to-end OTP lifecycle scenarios through OtpService."""

import asyncio

import pytest

from config import OtpSettings
from repositories.memory import InMemoryOtpStore
from schemas.dto.responses.otp import OtpFailure
from schemas.models.otp import OtpPurpose
from services.otp_service import OtpService

EMAIL = "a@x.com"
APP = "application_submission"


class TestLifecycleScenarios:
    async def test_issue_verify_then_gate(self, service, notifier):
        issued = await service.issue(EMAIL, APP)
        assert issued.success is True

        verified = await service.verify(EMAIL, notifier.last_code, APP)
        assert verified.success is True
        assert verified.verified is True

        assert await service.is_verified(EMAIL, APP) is True

    async def test_reissue_within_90_seconds_is_rate_limited(self, service, clock):
        assert (await service.issue(EMAIL, APP)).success
        clock.advance(seconds=90)
        again = await service.issue(EMAIL, APP)
        assert again.failure is OtpFailure.RATE_LIMITED

    async def test_three_wrong_codes_then_gate_is_closed(self, service, notifier):
        await service.issue(EMAIL, APP)
        wrong = "111111" if notifier.last_code != "111111" else "222222"

        results = [await service.verify(EMAIL, wrong, APP) for _ in range(3)]
        assert [r.failure for r in results] == [
            OtpFailure.INVALID_CODE,
            OtpFailure.INVALID_CODE,
            OtpFailure.ATTEMPTS_EXCEEDED,
        ]
        assert await service.is_verified(EMAIL, APP) is False
        assert (await service.verify(EMAIL, wrong, APP)).failure is OtpFailure.NOT_FOUND

    async def test_gate_closes_at_expiry_and_sweep_removes(self, service, notifier, clock, store):
        await service.issue(EMAIL, APP)
        await service.verify(EMAIL, notifier.last_code, APP)

        clock.advance(minutes=10)
        assert await service.is_verified(EMAIL, APP) is False
        assert await service.sweep_expired() == 1
        assert await service.sweep_expired() == 0
        assert len(store) == 0

    async def test_reissue_after_verification_resets_gate(self, service, notifier, clock):
        await service.issue(EMAIL, APP)
        await service.verify(EMAIL, notifier.last_code, APP)
        clock.advance(minutes=3)

        assert (await service.issue(EMAIL, APP)).success
        assert await service.is_verified(EMAIL, APP) is False

    async def test_default_purpose_comes_from_settings(self, store, notifier, clock):
        settings = OtpSettings(otp_default_purpose="password_reset")
        svc = OtpService(store, notifier, settings=settings, clock=clock)
        await svc.issue(EMAIL)
        assert store.all()[0].purpose is OtpPurpose.PASSWORD_RESET
        await svc.verify(EMAIL, notifier.last_code)
        assert await svc.is_verified(EMAIL) is True
        assert await svc.is_verified(EMAIL, APP) is False

    async def test_consume_policy(self, store, notifier, clock):
        settings = OtpSettings(otp_verified_policy="consume")
        svc = OtpService(store, notifier, settings=settings, clock=clock)
        await svc.issue(EMAIL, APP)
        await svc.verify(EMAIL, notifier.last_code, APP)

        assert await svc.consume(EMAIL, APP) is True
        assert await svc.consume(EMAIL, APP) is False

    async def test_stats(self, service, notifier):
        await service.issue(EMAIL, APP)
        await service.issue("b@x.com", APP)
        await service.verify(EMAIL, notifier.sent[0][1], APP)

        stats = await service.stats()
        assert (stats.total, stats.active, stats.verified, stats.expired) == (2, 1, 1, 0)

    async def test_custom_policy_values(self, notifier, clock):
        store = InMemoryOtpStore()
        settings = OtpSettings(otp_max_attempts=5, otp_ttl_seconds=60, otp_code_length=8)
        svc = OtpService(store, notifier, settings=settings, clock=clock)
        await svc.issue(EMAIL, APP)
        [record] = store.all()
        assert record.max_attempts == 5
        assert len(record.code) == 8
        assert (record.expires_at - record.created_at).total_seconds() == 60


class YieldingStore(InMemoryOtpStore):
    """Hands control back to the event loop before every store call."""

    async def find_active(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().find_active(*args, **kwargs)

    async def find_by_id(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().find_by_id(*args, **kwargs)

    async def increment_attempts(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().increment_attempts(*args, **kwargs)

    async def mark_verified(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().mark_verified(*args, **kwargs)

    async def delete_unverified(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().delete_unverified(*args, **kwargs)


class TestConcurrency:
    async def test_concurrent_issues_leave_one_record(self, service, store, notifier):
        results = await asyncio.gather(*[service.issue(EMAIL, APP) for _ in range(5)])

        assert sum(r.success for r in results) == 1
        assert all(
            r.failure is OtpFailure.RATE_LIMITED for r in results if not r.success
        )
        assert len(store) == 1
        assert store.all()[0].code == notifier.last_code

    async def test_concurrent_wrong_guesses_share_no_attempt(self, service, store, notifier):
        await service.issue(EMAIL, APP)
        wrong = "111111" if notifier.last_code != "111111" else "222222"

        results = await asyncio.gather(
            *[service.verify(EMAIL, wrong, APP) for _ in range(6)]
        )
        failures = [r.failure for r in results]

        assert failures.count(OtpFailure.INVALID_CODE) == 2
        assert OtpFailure.ATTEMPTS_EXCEEDED in failures
        assert len(store) == 0
        assert all(r.success is False for r in results)

    @pytest.mark.parametrize("correct_first", [True, False], ids=["correct_first", "wrong_first"])
    async def test_racing_last_attempt_never_undoes_success(
        self, notifier, otp_settings, clock, correct_first
    ):
        store = YieldingStore()
        service = OtpService(store, notifier, settings=otp_settings, clock=clock)
        await service.issue(EMAIL, APP)
        code = notifier.last_code
        wrong = "111111" if code != "111111" else "222222"
        for _ in range(2):
            await service.verify(EMAIL, wrong, APP)

        calls = [service.verify(EMAIL, code, APP), service.verify(EMAIL, wrong, APP)]
        if not correct_first:
            calls.reverse()
        results = await asyncio.gather(*calls)
        correct = results[0] if correct_first else results[1]
        guess = results[1] if correct_first else results[0]

        assert guess.success is False
        assert correct.success is await service.is_verified(EMAIL, APP)
        if correct.success:
            [record] = store.all()
            assert record.verified is True
            assert record.attempts == 3

    async def test_interleaved_correct_guess_wins_the_last_attempt(
        self, notifier, otp_settings, clock
    ):
        store = YieldingStore()
        service = OtpService(store, notifier, settings=otp_settings, clock=clock)
        await service.issue(EMAIL, APP)
        code = notifier.last_code
        wrong = "111111" if code != "111111" else "222222"
        for _ in range(2):
            await service.verify(EMAIL, wrong, APP)

        correct, guess = await asyncio.gather(
            service.verify(EMAIL, code, APP), service.verify(EMAIL, wrong, APP)
        )

        assert correct.success is True
        assert guess.failure is OtpFailure.NOT_FOUND
        assert await service.is_verified(EMAIL, APP) is True
