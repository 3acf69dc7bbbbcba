"""AdmissionRateLimiter 테스트"""

import pytest

from conftest import FakeClock
from mediafetch.services import AdmissionRateLimiter


@pytest.fixture
def limiter(fake_clock: FakeClock) -> AdmissionRateLimiter:
    return AdmissionRateLimiter(cooldown_s=5.0, clock=fake_clock)


def test_second_request_within_cooldown_rejected(limiter: AdmissionRateLimiter, fake_clock: FakeClock) -> None:
    assert limiter.admit("1.2.3.4").allowed

    fake_clock.advance(2)
    decision = limiter.admit("1.2.3.4")

    assert decision.allowed is False
    assert decision.retry_after_seconds == pytest.approx(3.0)


def test_request_after_cooldown_admitted(limiter: AdmissionRateLimiter, fake_clock: FakeClock) -> None:
    assert limiter.admit("1.2.3.4").allowed
    fake_clock.advance(6)
    assert limiter.admit("1.2.3.4").allowed


def test_rejection_does_not_extend_cooldown(limiter: AdmissionRateLimiter, fake_clock: FakeClock) -> None:
    limiter.admit("1.2.3.4")
    fake_clock.advance(4)
    assert not limiter.admit("1.2.3.4").allowed
    fake_clock.advance(1)
    assert limiter.admit("1.2.3.4").allowed


def test_keys_are_independent(limiter: AdmissionRateLimiter) -> None:
    assert limiter.admit("1.1.1.1").allowed
    assert limiter.admit("2.2.2.2").allowed
    assert not limiter.admit("1.1.1.1").allowed


def test_stale_keys_pruned(fake_clock: FakeClock) -> None:
    limiter = AdmissionRateLimiter(cooldown_s=5.0, max_tracked_keys=3, clock=fake_clock)
    for i in range(3):
        limiter.admit(f"10.0.0.{i}")
    fake_clock.advance(10)

    limiter.admit("10.0.0.99")

    assert limiter.tracked_keys == 1
