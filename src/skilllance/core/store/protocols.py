"""Store Protocol 接口定义

定义 RequestStore 的抽象接口，使用 Python Protocol 实现结构化子类型（duck typing）。
所有写方法均为条件写入，返回 False 表示前提不成立，调用方负责区分具体原因。
"""

from datetime import datetime
from typing import Any, Protocol

from ..models.enums import RequestStatus, SortOption
from ..models.insight import (
    DailyEngagement,
    SearchFilters,
    SkillTrend,
    StatusOverview,
    UserStats,
)
from ..models.request import HelpRequest, HelpResponse


class RequestStore(Protocol):
    """HelpRequest 聚合存储接口"""

    async def insert_request(self, request: HelpRequest) -> None:
        """插入新请求"""
        ...

    async def get_request(self, request_id: str) -> HelpRequest | None:
        """根据 request_id 查询请求"""
        ...

    async def append_response(
        self,
        request_id: str,
        response: HelpResponse,
        now: datetime,
    ) -> bool:
        """原子追加响应（open、未过期、非自我、非重复）"""
        ...

    async def accept_response(
        self,
        request_id: str,
        response_index: int,
        response_id: str,
        now: datetime,
    ) -> bool:
        """CAS 采纳响应"""
        ...

    async def complete_request(
        self,
        request_id: str,
        rating: int,
        feedback: str | None,
        now: datetime,
    ) -> bool:
        """CAS 完成请求"""
        ...

    async def cancel_request(
        self,
        request_id: str,
        expected_status: RequestStatus,
        now: datetime,
    ) -> bool:
        """CAS 取消请求"""
        ...

    async def update_content(
        self,
        request_id: str,
        requester_anonymous_id: str,
        changes: dict[str, Any],
        now: datetime,
    ) -> bool:
        """CAS 修改 open 请求的内容字段（创建者作为写入前提）"""
        ...

    async def increment_views(self, request_id: str, now: datetime) -> None:
        ...

    async def purge_expired(self, now: datetime) -> int:
        ...

    async def list_by_requester(self, anonymous_id: str) -> list[HelpRequest]:
        ...

    async def search_open(
        self,
        filters: SearchFilters,
        sort: SortOption,
        page: int,
        limit: int,
        now: datetime,
    ) -> tuple[list[HelpRequest], int]:
        """搜索开放且未过期的请求，返回 (当前页, 总数)"""
        ...

    async def trending_skills(
        self,
        since: datetime,
        now: datetime,
        limit: int,
    ) -> list[SkillTrend]:
        ...

    async def user_stats(self, anonymous_id: str) -> UserStats:
        ...

    async def engagement_by_day(self, since: datetime) -> list[DailyEngagement]:
        ...

    async def status_overview(self, now: datetime) -> StatusOverview:
        ...
