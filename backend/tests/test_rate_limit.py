from app.core.config import Settings
from app.services.rate_limit import FixedWindowRateLimiter, RateLimitScope


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_window_allows_limit_then_reports_retry_after():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(clock=clock)

    decisions = [limiter.consume("auth.login:1.2.3.4:ada", limit=3, window_seconds=60) for _ in range(3)]
    assert [item.remaining for item in decisions] == [2, 1, 0]
    assert all(item.allowed for item in decisions)

    clock.now += 20.5
    blocked = limiter.consume("auth.login:1.2.3.4:ada", limit=3, window_seconds=60)
    assert blocked.allowed is False
    assert blocked.retry_after_seconds == 40

    clock.now += 40
    assert limiter.consume("auth.login:1.2.3.4:ada", limit=3, window_seconds=60).remaining == 2


def test_keys_are_counted_independently_and_clear_resets():
    limiter = FixedWindowRateLimiter(clock=FakeClock())
    assert limiter.consume("a", limit=1, window_seconds=60).allowed
    assert not limiter.consume("a", limit=1, window_seconds=60).allowed
    assert limiter.consume("b", limit=1, window_seconds=60).allowed

    limiter.clear()
    assert limiter.consume("a", limit=1, window_seconds=60).allowed


def test_scopes_read_their_limits_from_settings():
    settings = Settings(
        database_url="sqlite+pysqlite://",
        auth_rate_limit_register_max_requests=2,
        auth_rate_limit_login_max_requests=5,
    )
    assert RateLimitScope.register.max_requests(settings) == 2
    assert RateLimitScope.login.max_requests(settings) == 5
