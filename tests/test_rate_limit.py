import pytest

from sitecheck.utils.rate_limit import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_fixed_window_allows_then_blocks():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)

    first = limiter.hit("a")
    second = limiter.hit("a")
    third = limiter.hit("a")

    assert (first.allowed, first.remaining) == (True, 1)
    assert (second.allowed, second.remaining) == (True, 0)
    assert (third.allowed, third.remaining) == (False, 0)
    assert third.reset_at == 1060.0
    assert limiter.hit("b").allowed


def test_window_resets():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    assert limiter.hit("a").allowed
    assert not limiter.hit("a").allowed
    clock.now += 60
    assert limiter.hit("a").allowed


def test_purge_expired():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=10, clock=clock)
    limiter.hit("a")
    clock.now += 5
    limiter.hit("b")
    clock.now += 6
    assert limiter.purge_expired() == 1
    assert not limiter.hit("b").allowed


def test_instances_do_not_share_state():
    one, two = RateLimiter(max_requests=1), RateLimiter(max_requests=1)
    assert one.hit("k").allowed
    assert two.hit("k").allowed


@pytest.mark.parametrize("kwargs", [{"max_requests": 0}, {"window_seconds": 0}])
def test_rejects_nonsense_limits(kwargs):
    with pytest.raises(ValueError):
        RateLimiter(**kwargs)
