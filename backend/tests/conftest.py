"""
Pytest configuration shared by the service tests.

Nothing here talks to PostgreSQL or a provider: repositories and clients are
replaced by the in-memory fakes in ``tests.fakes``.
"""

import pytest

from nurseai.utils.rate_limiter import ProviderRateLimiter, RateLimitConfig


@pytest.fixture(autouse=True)
def reset_rate_limiters():
    """Shared limiters hold asyncio primitives; never reuse them across tests."""
    ProviderRateLimiter.reset_instances()
    yield
    ProviderRateLimiter.reset_instances()


@pytest.fixture
def fast_limiter():
    return ProviderRateLimiter(RateLimitConfig(
        max_concurrent=10,
        requests_per_minute=1000,
        min_delay_between_calls=0.0,
    ))
