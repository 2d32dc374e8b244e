import asyncio
from types import SimpleNamespace

import pytest

from solicitudes_api.errors import RateLimitError
from solicitudes_api.limiter import RateLimit, RateLimiter, client_identity


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def fake_request(headers=None, host="10.0.0.1", path="/api/v2/solicitudes"):
    return SimpleNamespace(
        headers=headers or {},
        client=SimpleNamespace(host=host) if host else None,
        url=SimpleNamespace(path=path),
    )


def test_fixed_window_allows_up_to_max_then_rejects():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)

    decisions = [limiter.check_and_increment("1.2.3.4", "/x", 60000, 3) for _ in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert decisions[-1].retry_after_seconds == 60


def test_rejection_does_not_extend_window():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.check_and_increment("ip", "/x", 60000, 1)

    clock.now += 59.5
    rejected = limiter.check_and_increment("ip", "/x", 60000, 1)
    assert not rejected.allowed
    assert rejected.retry_after_seconds == 1

    clock.now += 0.5
    assert limiter.check_and_increment("ip", "/x", 60000, 1).allowed


def test_identities_and_routes_are_independent():
    limiter = RateLimiter(clock=FakeClock())
    assert limiter.check_and_increment("a", "/x", 60000, 1).allowed
    assert limiter.check_and_increment("b", "/x", 60000, 1).allowed
    assert limiter.check_and_increment("a", "/y", 60000, 1).allowed
    assert not limiter.check_and_increment("a", "/x", 60000, 1).allowed


def test_non_positive_max_disables_rule():
    limiter = RateLimiter(clock=FakeClock())
    for _ in range(10):
        assert limiter.check_and_increment("ip", "/x", 60000, 0).allowed
    assert len(limiter) == 0


def test_sweep_removes_only_expired_records():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.check_and_increment("old", "/x", 1000, 5)
    clock.now += 0.5
    limiter.check_and_increment("new", "/x", 1000, 5)

    clock.now += 0.6
    assert limiter.sweep() == 1
    assert len(limiter) == 1


def test_start_and_shutdown_sweeper():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)

    async def run():
        limiter.check_and_increment("ip", "/x", 10, 5)
        clock.now += 1
        limiter.start(interval=0.01)
        await asyncio.sleep(0.05)
        await limiter.shutdown()

    asyncio.run(run())
    assert len(limiter) == 0


def test_client_identity_prefers_forwarded_for():
    assert client_identity(fake_request({"x-forwarded-for": "203.0.113.7, 10.0.0.2"})) == "203.0.113.7"
    assert client_identity(fake_request()) == "10.0.0.1"
    assert client_identity(fake_request(host=None)) == "unknown"


def test_rate_limit_dependency_raises_with_retry_after():
    limiter = RateLimiter(clock=FakeClock())
    rule = RateLimit(window_ms=60000, max_requests=lambda: 1, message="Calma")
    request = fake_request()

    rule(request, limiter)
    with pytest.raises(RateLimitError) as exc_info:
        rule(request, limiter)

    assert exc_info.value.message == "Calma"
    assert exc_info.value.details == {"retryAfter": 60}
    assert exc_info.value.headers == {"Retry-After": "60"}
