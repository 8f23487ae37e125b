from transgate.services.rate_limiter import RateLimiter


def test_rejects_request_over_the_limit(clock):
    limiter = RateLimiter(max_requests=3, window_s=60, clock=clock)

    assert [limiter.allow("1.2.3.4") for _ in range(3)] == [True, True, True]
    assert limiter.allow("1.2.3.4") is False


def test_identities_are_counted_separately(clock):
    limiter = RateLimiter(max_requests=1, window_s=60, clock=clock)

    assert limiter.allow("a") is True
    assert limiter.allow("b") is True
    assert limiter.allow("a") is False


def test_new_window_after_elapsed(clock):
    limiter = RateLimiter(max_requests=2, window_s=60, clock=clock)
    limiter.allow("a")
    limiter.allow("a")
    assert limiter.allow("a") is False

    clock.advance(60)
    assert limiter.allow("a") is True
    assert limiter.allow("a") is True
    assert limiter.allow("a") is False


def test_still_limited_just_before_window_end(clock):
    limiter = RateLimiter(max_requests=1, window_s=60, clock=clock)
    limiter.allow("a")

    clock.advance(59.9)
    assert limiter.allow("a") is False


def test_sweep_removes_only_buckets_stale_for_two_windows(clock):
    limiter = RateLimiter(max_requests=5, window_s=60, clock=clock)
    limiter.allow("old")
    clock.advance(100)
    limiter.allow("recent")

    clock.advance(30)  # "old" started 130s ago, "recent" 30s ago
    assert limiter.sweep() == 1
    assert len(limiter) == 1

    # Swept identity starts over with a fresh window
    assert limiter.allow("old") is True


def test_sweep_boundary_is_exactly_two_windows(clock):
    limiter = RateLimiter(max_requests=5, window_s=60, clock=clock)
    limiter.allow("edge")

    clock.advance(119)
    assert limiter.sweep() == 0
    clock.advance(1)
    assert limiter.sweep() == 1
    assert len(limiter) == 0
