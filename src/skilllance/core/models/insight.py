"""搜索与统计相关模型"""

from pydantic import BaseModel, Field

from .enums import SortOption, UrgencyLevel
from .request import HelpRequest


class SearchFilters(BaseModel):
    """搜索过滤条件（隐含 status == open 且未过期）"""

    query: str | None = Field(default=None, max_length=255, description="标题/描述/标签子串")
    skills: list[str] = Field(default_factory=list, description="任一技能命中")
    urgency: list[UrgencyLevel] = Field(default_factory=list, description="任一紧急程度命中")
    is_remote: bool | None = Field(default=None, description="是否远程")
    max_estimated_time: int | None = Field(default=None, ge=1, le=240)
    tags: list[str] = Field(default_factory=list, description="任一标签命中")
    college_hint: str | None = Field(default=None, max_length=100, description="学校提示子串")


class PageRequest(BaseModel):
    """分页与排序参数"""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort: SortOption = SortOption.NEWEST


class RequestPage(BaseModel):
    """分页结果"""

    items: list[HelpRequest]
    total: int
    page: int
    pages: int
    limit: int


class SkillTrend(BaseModel):
    """热门技能条目"""

    skill: str
    count: int
    avg_estimated_time: float | None = None


class UserStats(BaseModel):
    """调用方统计（两个独立计数）"""

    requests_created: int = 0
    responses_given: int = 0


class DailyEngagement(BaseModel):
    """按 UTC 日聚合的活跃度"""

    day: str = Field(description="YYYY-MM-DD")
    requests_created: int
    total_responses: int
    avg_estimated_time: float | None = None


class StatusOverview(BaseModel):
    """全量请求概览（按有效状态计数）"""

    total_requests: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    avg_estimated_time: float | None = None
    avg_response_count: float | None = None
