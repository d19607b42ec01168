import asyncio

from nurseai.utils.rate_limiter import ProviderRateLimiter, RateLimitConfig


async def test_concurrency_is_capped():
    limiter = ProviderRateLimiter(RateLimitConfig(
        max_concurrent=2, requests_per_minute=100, min_delay_between_calls=0.0
    ))
    active = 0
    peak = 0

    async def call():
        nonlocal active, peak
        async with limiter.acquire():
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

    await asyncio.gather(*[call() for _ in range(6)])

    assert peak == 2


async def test_slot_is_released_when_the_call_fails():
    limiter = ProviderRateLimiter(RateLimitConfig(
        max_concurrent=1, requests_per_minute=100, min_delay_between_calls=0.0
    ))

    for _ in range(3):
        try:
            async with limiter.acquire():
                raise RuntimeError("provider down")
        except RuntimeError:
            pass

    async with limiter.acquire():
        pass


def test_window_full_requires_waiting():
    limiter = ProviderRateLimiter(RateLimitConfig(
        max_concurrent=5, requests_per_minute=2, min_delay_between_calls=0.0
    ))
    limiter._admitted.extend([100.0, 110.0])

    assert limiter._delay_needed(130.0) == 30.0
    assert limiter._delay_needed(160.0) == 0.0


def test_shared_instances_are_reused_until_reset():
    first = ProviderRateLimiter.for_chat()
    assert ProviderRateLimiter.for_chat() is first

    ProviderRateLimiter.reset_instances()

    assert ProviderRateLimiter.for_chat() is not first
