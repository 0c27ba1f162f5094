"""SSE 通知路由

GET /api/stream/requests/{request_id}: 实时推送指定请求的生命周期事件。
仅推送订阅之后发生的事件（无历史回放），15 秒心跳保活；
请求进入终态时最后一条事件携带 final: true 并结束流；
订阅因消费过慢被关闭时发送 STREAM_CLOSED 后结束。
"""

import asyncio
import json

from fastapi import APIRouter, Depends
from skilllance.core.config import SSE_HEARTBEAT_INTERVAL
from skilllance.core.models import TERMINAL_STATES, RequestEvent
from sse_starlette.sse import EventSourceResponse

from ..deps import get_request_service, get_sse_hub
from ..services.request_service import RequestService
from ..services.sse_hub import STREAM_CLOSED, SSEHub

router = APIRouter()


def _event_to_sse_data(event: RequestEvent, is_final: bool) -> dict:
    """将 RequestEvent 转换为 SSE data JSON（不含任何身份信息）"""
    return {
        "event_id": event.event_id,
        "request_id": event.request_id,
        "ts": event.ts.isoformat(),
        "type": event.type.value,
        "status": event.status.value,
        "payload": event.payload,
        "final": is_final,
    }


@router.get("/api/stream/requests/{request_id}")
async def stream_request_events(
    request_id: str,
    service: RequestService = Depends(get_request_service),
    sse_hub: SSEHub = Depends(get_sse_hub),
):
    """SSE 事件流端点；请求不存在或已过期返回 404"""
    help_request = await service.get(request_id, count_view=False)

    async def event_generator():
        if help_request.status in TERMINAL_STATES:
            return

        queue = await sse_hub.subscribe(request_id)
        try:
            while True:
                try:
                    event = await asyncio.wait_for(
                        queue.get(), timeout=SSE_HEARTBEAT_INTERVAL
                    )
                except TimeoutError:
                    yield {"comment": "heartbeat"}
                    continue

                if event is STREAM_CLOSED:
                    # 订阅被服务端关闭（消费过慢），客户端应重新读取请求
                    yield {"event": "STREAM_CLOSED", "data": json.dumps({"final": True})}
                    return

                is_final = event.status in TERMINAL_STATES
                yield {
                    "id": event.event_id,
                    "event": event.type.value,
                    "data": json.dumps(_event_to_sse_data(event, is_final), ensure_ascii=False),
                }
                if is_final:
                    return
        finally:
            await sse_hub.unsubscribe(request_id, queue)

    return EventSourceResponse(event_generator())
