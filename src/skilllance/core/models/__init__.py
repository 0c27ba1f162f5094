"""SkillLance Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .avatar import AnonymousAvatar, generate_avatar
from .caller import ANONYMOUS_CALLER, CallerIdentity
from .enums import (
    ACTIVE_STATES,
    TERMINAL_STATES,
    URGENCY_RANK,
    VALID_TRANSITIONS,
    CreatedFrom,
    RequestEventType,
    RequestStatus,
    ResponseStatus,
    SortOption,
    UrgencyLevel,
    validate_transition,
)
from .event import RequestEvent
from .insight import (
    DailyEngagement,
    PageRequest,
    RequestPage,
    SearchFilters,
    SkillTrend,
    StatusOverview,
    UserStats,
)
from .payloads import (
    CompletePayload,
    CreateRequestPayload,
    RespondPayload,
    UpdateRequestPayload,
    parse_payload,
)
from .request import HelpRequest, HelpResponse

__all__ = [
    # 枚举
    "RequestStatus",
    "ResponseStatus",
    "UrgencyLevel",
    "SortOption",
    "CreatedFrom",
    "RequestEventType",
    "URGENCY_RANK",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "ACTIVE_STATES",
    "validate_transition",
    # 聚合
    "HelpRequest",
    "HelpResponse",
    "AnonymousAvatar",
    "generate_avatar",
    # 调用方
    "CallerIdentity",
    "ANONYMOUS_CALLER",
    # Payloads
    "CreateRequestPayload",
    "UpdateRequestPayload",
    "RespondPayload",
    "CompletePayload",
    "parse_payload",
    # 搜索与统计
    "SearchFilters",
    "PageRequest",
    "RequestPage",
    "SkillTrend",
    "UserStats",
    "DailyEngagement",
    "StatusOverview",
    # 通知
    "RequestEvent",
]
