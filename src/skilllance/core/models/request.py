"""HelpRequest / HelpResponse Domain Model

HelpRequest 是聚合根，HelpResponse 内嵌其中，二者作为一个整体读写。
responses 只追加；唯一允许的修改是某一条响应的 status/accepted_at。
open 状态下创建者可以修改请求内容字段，其余字段一经写入不再改变。
response_count 恒等于 len(responses)，冗余存储用于排序。
requester_anonymous_id 为派生值，记录中不保存可逆的真实用户引用。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .avatar import AnonymousAvatar
from .enums import (
    ACTIVE_STATES,
    CreatedFrom,
    RequestStatus,
    ResponseStatus,
    UrgencyLevel,
)


class HelpResponse(BaseModel):
    """对某个求助请求的响应（内嵌于 HelpRequest）"""

    response_id: str = Field(description="唯一标识，ULID 格式")
    responder_anonymous_id: str = Field(description="响应者匿名 ID")
    avatar: AnonymousAvatar | None = Field(default=None, description="响应者展示头像（随机）")
    message: str = Field(description="响应内容")
    proposed_solution: str | None = Field(default=None, description="方案说明")
    estimated_time: int = Field(description="预计耗时（小时）")
    status: ResponseStatus = Field(default=ResponseStatus.PENDING, description="响应状态")
    created_at: datetime = Field(description="创建时间")
    accepted_at: datetime | None = Field(default=None, description="被采纳时间")


class HelpRequest(BaseModel):
    """匿名求助请求聚合"""

    request_id: str = Field(description="唯一标识，ULID 格式")
    requester_anonymous_id: str = Field(description="创建者匿名 ID")
    requester_avatar: AnonymousAvatar | None = Field(
        default=None, description="创建者展示头像（随机）"
    )
    title: str = Field(description="标题")
    description: str = Field(description="描述")
    skills_needed: list[str] = Field(description="所需技能（非空、去重）")
    urgency_level: UrgencyLevel = Field(default=UrgencyLevel.MEDIUM, description="紧急程度")
    estimated_time: int = Field(description="预计耗时（小时）")
    is_remote: bool = Field(default=True, description="是否远程")
    college_hint: str | None = Field(default=None, description="学校提示（非精确身份）")
    tags: list[str] = Field(default_factory=list, description="标签")
    status: RequestStatus = Field(default=RequestStatus.OPEN, description="存储状态")
    responses: list[HelpResponse] = Field(default_factory=list, description="响应列表")
    response_count: int = Field(default=0, description="响应数量")
    accepted_response_id: str | None = Field(default=None, description="被采纳的响应 ID")
    views: int = Field(default=0, description="浏览次数")
    rating: int | None = Field(default=None, description="完成评分 1-5")
    feedback: str | None = Field(default=None, description="完成反馈")
    created_at: datetime = Field(description="创建时间")
    expires_at: datetime = Field(description="过期时间")
    last_activity_at: datetime = Field(description="最近活动时间")
    completed_at: datetime | None = Field(default=None, description="完成时间")
    cancelled_at: datetime | None = Field(default=None, description="取消时间")
    created_from: CreatedFrom = Field(default=CreatedFrom.WEB, description="来源渠道")

    # 仅用于限流/反滥用，不对外返回
    client_fingerprint: str | None = Field(default=None, description="客户端 IP 哈希")
    user_agent: str | None = Field(default=None, description="客户端 User-Agent")

    def is_expired(self, now: datetime) -> bool:
        """expires_at 已过即视为过期（无论物理记录是否已被清理）"""
        return self.expires_at <= now

    def effective_status(self, now: datetime) -> RequestStatus:
        """读路径使用的状态：活跃状态过期后视为 EXPIRED"""
        if self.status in ACTIVE_STATES and self.is_expired(now):
            return RequestStatus.EXPIRED
        return self.status

    def find_response(self, response_id: str) -> tuple[int, HelpResponse] | None:
        """按 response_id 查找响应，返回 (下标, 响应)

        responses 只追加，下标一经分配不会改变。
        """
        for index, response in enumerate(self.responses):
            if response.response_id == response_id:
                return index, response
        return None

    def has_response_from(self, anonymous_id: str) -> bool:
        return any(r.responder_anonymous_id == anonymous_id for r in self.responses)
