"""RequestEvent -- SSE 通知事件

仅用于实时通知，不落盘；正确性不依赖事件送达。
payload 中不包含任何身份信息（真实 ID 或匿名 ID）。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import RequestEventType, RequestStatus


class RequestEvent(BaseModel):
    """请求生命周期通知事件"""

    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    request_id: str = Field(description="关联的请求 ID")
    ts: datetime = Field(description="事件时间戳")
    type: RequestEventType = Field(description="事件类型")
    status: RequestStatus = Field(description="事件发生后的请求状态")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")
