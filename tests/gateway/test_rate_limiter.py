"""RateLimiter 测试 -- moving window 计数与 retry-after 提示"""

import pytest
from skilllance.core.config import RateLimitPolicy
from skilllance.core.exceptions import RateLimitError
from skilllance.gateway.services.rate_limiter import RateLimiter

CREATE_POLICY = RateLimitPolicy(name="create_request", limit=3, window_seconds=3600)


class TestRateLimiter:
    async def test_fourth_create_in_window_denied(self):
        limiter = RateLimiter()
        for _ in range(3):
            await limiter.enforce(CREATE_POLICY, "user:uid-alice")

        with pytest.raises(RateLimitError) as exc_info:
            await limiter.enforce(CREATE_POLICY, "user:uid-alice")
        assert 0 < exc_info.value.retry_after <= 3600
        assert exc_info.value.details == {"retry_after": exc_info.value.retry_after}

    async def test_keys_are_independent(self):
        limiter = RateLimiter()
        for _ in range(3):
            await limiter.enforce(CREATE_POLICY, "user:uid-alice")
        await limiter.enforce(CREATE_POLICY, "user:uid-bob")

    async def test_policies_are_scoped(self):
        limiter = RateLimiter()
        read_policy = RateLimitPolicy(name="read", limit=1, window_seconds=60)
        await limiter.enforce(read_policy, "user:uid-alice")
        # 同一 key 在另一个策略下单独计数
        await limiter.enforce(CREATE_POLICY, "user:uid-alice")

    async def test_allow_reports_bool(self):
        limiter = RateLimiter()
        assert await limiter.allow("k", 60, 2) is True
        assert await limiter.allow("k", 60, 2) is True
        assert await limiter.allow("k", 60, 2) is False

    async def test_disabled_limiter_always_allows(self):
        limiter = RateLimiter(enabled=False)
        for _ in range(10):
            await limiter.enforce(CREATE_POLICY, "user:uid-alice")

    async def test_reset_clears_counters(self):
        limiter = RateLimiter()
        assert await limiter.allow("k", 60, 1) is True
        assert await limiter.allow("k", 60, 1) is False
        await limiter.reset()
        assert await limiter.allow("k", 60, 1) is True
