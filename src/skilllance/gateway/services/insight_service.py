"""InsightService -- 搜索、热门技能与活跃度统计

只读聚合，直接面向 RequestStore，不经过生命周期状态机。
搜索始终限定 status == open 且未过期。
"""

import math
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from skilllance.core.exceptions import AuthenticationError, ValidationError
from skilllance.core.identity import IdentityAnonymizer
from skilllance.core.models import (
    CallerIdentity,
    DailyEngagement,
    PageRequest,
    RequestPage,
    SearchFilters,
    SkillTrend,
    StatusOverview,
    UserStats,
)
from skilllance.core.store import StoreGroup

from .request_service import utc_now

# 窗口天数上限
MAX_WINDOW_DAYS = 365
MAX_TRENDING_LIMIT = 50


class InsightService:
    """搜索与统计服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        anonymizer: IdentityAnonymizer,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._stores = store_group
        self._anonymizer = anonymizer
        self._clock = clock

    async def search(
        self,
        filters: SearchFilters | None = None,
        page_request: PageRequest | None = None,
    ) -> RequestPage:
        """按过滤条件搜索开放请求，排序均以 created_at 为稳定次序"""
        filters = filters or SearchFilters()
        page_request = page_request or PageRequest()

        items, total = await self._stores.request_store.search_open(
            filters,
            page_request.sort,
            page_request.page,
            page_request.limit,
            self._clock(),
        )
        return RequestPage(
            items=items,
            total=total,
            page=page_request.page,
            pages=math.ceil(total / page_request.limit),
            limit=page_request.limit,
        )

    async def trending_skills(
        self,
        window_days: int = 7,
        limit: int = 10,
    ) -> list[SkillTrend]:
        """窗口内开放请求的技能频次排行

        Args:
            window_days: 统计窗口（天）
            limit: 返回条目数上限

        Returns:
            按 count 降序、skill 名升序排列的列表
        """
        _check_window(window_days)
        if not 1 <= limit <= MAX_TRENDING_LIMIT:
            raise ValidationError(
                f"limit must be between 1 and {MAX_TRENDING_LIMIT}",
                {"field": "limit"},
            )
        now = self._clock()
        return await self._stores.request_store.trending_skills(
            since=now - timedelta(days=window_days),
            now=now,
            limit=limit,
        )

    async def user_stats(self, caller: CallerIdentity) -> UserStats:
        """调用方的创建数与响应数"""
        if not caller.real_id:
            raise AuthenticationError()
        pseudonym = self._anonymizer.derive(caller.real_id)
        return await self._stores.request_store.user_stats(pseudonym)

    async def engagement_metrics(self, days_back: int = 30) -> list[DailyEngagement]:
        """按 UTC 日聚合的创建数、响应数与平均预计耗时"""
        _check_window(days_back)
        since = self._clock() - timedelta(days=days_back)
        return await self._stores.request_store.engagement_by_day(since)

    async def overview(self) -> StatusOverview:
        return await self._stores.request_store.status_overview(self._clock())

    async def analytics(self, caller: CallerIdentity) -> dict[str, Any]:
        """个人统计 + 近 7 天热门技能前 5"""
        stats = await self.user_stats(caller)
        trending = await self.trending_skills(window_days=7, limit=5)
        return {"user_stats": stats, "trending_skills": trending}


def _check_window(days: int) -> None:
    if not 1 <= days <= MAX_WINDOW_DAYS:
        raise ValidationError(
            f"window must be between 1 and {MAX_WINDOW_DAYS} days",
            {"field": "days"},
        )
