"""枚举定义

包含 RequestStatus 状态机、ResponseStatus、UrgencyLevel、SortOption、
RequestEventType 枚举，以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class RequestStatus(StrEnum):
    """求助请求状态机"""

    OPEN = "open"
    IN_PROGRESS = "in_progress"

    # 终态
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# 合法状态流转
# EXPIRED 由 TTL 被动触发（读路径按 expires_at 判定），不经过写操作
VALID_TRANSITIONS: dict[RequestStatus, set[RequestStatus]] = {
    RequestStatus.OPEN: {
        RequestStatus.IN_PROGRESS,
        RequestStatus.CANCELLED,
        RequestStatus.EXPIRED,
    },
    RequestStatus.IN_PROGRESS: {
        RequestStatus.COMPLETED,
        RequestStatus.CANCELLED,
        RequestStatus.EXPIRED,
    },
    # 终态不可再流转
    RequestStatus.COMPLETED: set(),
    RequestStatus.CANCELLED: set(),
    RequestStatus.EXPIRED: set(),
}

TERMINAL_STATES: set[RequestStatus] = {
    RequestStatus.COMPLETED,
    RequestStatus.CANCELLED,
    RequestStatus.EXPIRED,
}

# 可被 TTL 过期的活跃状态
ACTIVE_STATES: set[RequestStatus] = {RequestStatus.OPEN, RequestStatus.IN_PROGRESS}


class ResponseStatus(StrEnum):
    """响应状态：pending -> accepted（仅一次，之后不可变）"""

    PENDING = "pending"
    ACCEPTED = "accepted"


class UrgencyLevel(StrEnum):
    """紧急程度"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# urgency 排序权重：数值越大越靠前
URGENCY_RANK: dict[UrgencyLevel, int] = {
    UrgencyLevel.LOW: 1,
    UrgencyLevel.MEDIUM: 2,
    UrgencyLevel.HIGH: 3,
    UrgencyLevel.URGENT: 4,
}


class SortOption(StrEnum):
    """搜索排序键，均以 created_at 为稳定次序"""

    NEWEST = "newest"
    OLDEST = "oldest"
    URGENCY = "urgency"
    TIME = "time"
    RESPONSES = "responses"


class CreatedFrom(StrEnum):
    """请求来源渠道"""

    WEB = "web"
    MOBILE = "mobile"
    API = "api"


class RequestEventType(StrEnum):
    """SSE 通知事件类型"""

    REQUEST_UPDATED = "REQUEST_UPDATED"
    RESPONSE_ADDED = "RESPONSE_ADDED"
    RESPONSE_ACCEPTED = "RESPONSE_ACCEPTED"
    REQUEST_COMPLETED = "REQUEST_COMPLETED"
    REQUEST_CANCELLED = "REQUEST_CANCELLED"


def validate_transition(from_status: RequestStatus, to_status: RequestStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
