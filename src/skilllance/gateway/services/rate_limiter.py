"""RateLimiter -- 基于 limits 的滚动窗口限流

按调用方真实身份（匿名化之前）计数，匿名读请求退化为客户端指纹。
使用 moving-window 策略，存储由 URI 决定（默认进程内 async+memory://，
多副本部署时改用 async+redis:// 共享计数）。
限流只会拒绝调用，从不修改任何请求状态。
"""

import math
import time

import structlog
from limits import RateLimitItemPerSecond
from limits.aio.strategies import MovingWindowRateLimiter
from limits.storage import storage_from_string

from skilllance.core.config import RateLimitPolicy
from skilllance.core.exceptions import RateLimitError

log = structlog.get_logger()


class RateLimiter:
    """按 key 独立计数的限流器"""

    def __init__(self, storage_uri: str = "async+memory://", enabled: bool = True) -> None:
        self._storage = storage_from_string(storage_uri)
        self._limiter = MovingWindowRateLimiter(self._storage)
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    @staticmethod
    def _item(window_seconds: int, limit: int) -> RateLimitItemPerSecond:
        return RateLimitItemPerSecond(limit, window_seconds)

    async def allow(self, key: str, window_seconds: int, limit: int) -> bool:
        """消耗一次配额

        Returns:
            True 表示放行，False 表示窗口内已达上限
        """
        if not self._enabled:
            return True
        return await self._limiter.hit(self._item(window_seconds, limit), key)

    async def retry_after(self, key: str, window_seconds: int, limit: int) -> int:
        """距离窗口内最早一次计数过期的秒数（至少 1）"""
        stats = await self._limiter.get_window_stats(self._item(window_seconds, limit), key)
        return max(1, math.ceil(stats.reset_time - time.time()))

    async def enforce(self, policy: RateLimitPolicy, key: str) -> None:
        """按策略限流

        Raises:
            RateLimitError: 超出配额，携带 retry_after 提示
        """
        scoped_key = f"{policy.name}:{key}"
        if await self.allow(scoped_key, policy.window_seconds, policy.limit):
            return

        retry_after = await self.retry_after(scoped_key, policy.window_seconds, policy.limit)
        log.warning(
            "rate_limit_exceeded",
            policy=policy.name,
            limit=policy.limit,
            window_seconds=policy.window_seconds,
            retry_after=retry_after,
        )
        raise RateLimitError(retry_after)

    async def reset(self) -> None:
        """清空全部计数（测试与运维使用）"""
        await self._storage.reset()

    async def check_storage(self) -> bool:
        """存储后端连通性（readiness 检查使用）"""
        return await self._storage.check()
