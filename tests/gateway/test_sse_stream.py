"""SSE 通知测试

测试内容：
1. 订阅后收到生命周期事件，终态事件携带 final: true 且流随之结束
2. 已在终态的请求：连接后立即结束
3. SSEHub：终态关闭频道、慢订阅者被清空并收到 STREAM_CLOSED
"""

import asyncio
import json
from datetime import UTC, datetime

import pytest
from httpx import AsyncClient
from skilllance.core.models import RequestEvent, RequestEventType, RequestStatus
from skilllance.gateway.services.sse_hub import STREAM_CLOSED, SSEHub
from ulid import ULID


@pytest.fixture(autouse=True)
def _reset_sse_exit_event():
    """sse-starlette 的全局退出事件绑定在首个事件循环上，每个测试重置"""
    import sse_starlette.sse as sse

    app_status = getattr(sse, "AppStatus", None)
    if app_status is not None:
        app_status.should_exit_event = None


async def _collect_events(client: AsyncClient, request_id: str) -> list[dict]:
    events = []
    async with client.stream("GET", f"/api/stream/requests/{request_id}") as response:
        assert response.status_code == 200
        async for line in response.aiter_lines():
            if line.startswith("data:"):
                events.append(json.loads(line[len("data:"):].strip()))
    return events


async def _wait_for_subscriber(hub: SSEHub, request_id: str) -> None:
    for _ in range(200):
        if hub.subscriber_count(request_id):
            return
        await asyncio.sleep(0.01)
    raise AssertionError("stream never subscribed")


def _event(request_id: str, status: RequestStatus) -> RequestEvent:
    return RequestEvent(
        event_id=str(ULID()),
        request_id=request_id,
        ts=datetime.now(UTC),
        type=RequestEventType.RESPONSE_ADDED,
        status=status,
        payload={},
    )


class TestRequestStream:
    async def test_events_until_cancel(
        self, client: AsyncClient, app, headers_for, create_payload, respond_payload
    ):
        alice = headers_for("uid-alice")
        resp = await client.post("/api/requests", json=create_payload, headers=alice)
        request_id = resp.json()["request"]["request_id"]
        hub = app.state.sse_hub

        stream_task = asyncio.create_task(_collect_events(client, request_id))
        await _wait_for_subscriber(hub, request_id)

        await client.post(
            f"/api/requests/{request_id}/responses",
            json=respond_payload,
            headers=headers_for("uid-bob"),
        )
        await client.post(f"/api/requests/{request_id}/cancel", headers=alice)

        events = await asyncio.wait_for(stream_task, timeout=5.0)

        assert [e["type"] for e in events] == ["RESPONSE_ADDED", "REQUEST_CANCELLED"]
        assert events[0]["final"] is False
        assert events[0]["payload"]["response_count"] == 1
        assert events[1]["final"] is True
        assert events[1]["status"] == "cancelled"
        assert all(e["request_id"] == request_id for e in events)
        assert "uid-" not in json.dumps(events)
        assert hub.subscriber_count(request_id) == 0

    async def test_terminal_request_stream_ends_immediately(
        self, client: AsyncClient, app, headers_for, create_payload
    ):
        alice = headers_for("uid-alice")
        resp = await client.post("/api/requests", json=create_payload, headers=alice)
        request_id = resp.json()["request"]["request_id"]
        await client.post(f"/api/requests/{request_id}/cancel", headers=alice)

        events = await asyncio.wait_for(_collect_events(client, request_id), timeout=5.0)

        assert events == []
        assert app.state.sse_hub.subscriber_count(request_id) == 0


class TestSSEHub:
    async def test_publish_without_subscribers(self):
        hub = SSEHub()
        assert await hub.publish(_event("req-1", RequestStatus.OPEN)) == 0

    async def test_terminal_event_closes_channel(self):
        hub = SSEHub()
        first = await hub.subscribe("req-1")
        second = await hub.subscribe("req-1")

        assert await hub.publish(_event("req-1", RequestStatus.OPEN)) == 2
        assert await hub.publish(_event("req-1", RequestStatus.COMPLETED)) == 2
        assert hub.subscriber_count("req-1") == 0

        for queue in (first, second):
            assert queue.get_nowait().status == RequestStatus.OPEN
            assert queue.get_nowait().status == RequestStatus.COMPLETED

        # 频道已关闭后退订是无操作
        await hub.unsubscribe("req-1", first)

    async def test_slow_subscriber_is_evicted(self):
        hub = SSEHub(queue_maxsize=1)
        slow = await hub.subscribe("req-1")

        await hub.publish(_event("req-1", RequestStatus.OPEN))
        assert await hub.publish(_event("req-1", RequestStatus.OPEN)) == 0

        assert slow.get_nowait() is STREAM_CLOSED
        assert slow.empty()
        assert hub.subscriber_count("req-1") == 0

    async def test_channels_are_isolated(self):
        hub = SSEHub()
        mine = await hub.subscribe("req-1")
        other = await hub.subscribe("req-2")

        await hub.publish(_event("req-1", RequestStatus.OPEN))

        assert mine.qsize() == 1
        assert other.empty()
