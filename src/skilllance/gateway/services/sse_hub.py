"""SSEHub -- 求助请求生命周期通知的内存广播

每个 /api/stream/requests/{id} 连接持有一个有界 asyncio.Queue。
- 只推送订阅之后发生的事件，不保存历史
- 请求进入终态的事件送达后，该请求的全部订阅随之关闭
- 消费过慢（队列满）的订阅者被清空并收到 STREAM_CLOSED，由客户端重新读取请求
请求状态的正确性从不依赖事件送达。
"""

import asyncio
from collections import defaultdict

import structlog
from skilllance.core.models import TERMINAL_STATES, RequestEvent

log = structlog.get_logger()

# 订阅被服务端关闭时放入队列的哨兵
STREAM_CLOSED = None


class SSEHub:
    """按 request_id 分组的订阅表"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        self._channels: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, request_id: str) -> asyncio.Queue:
        """订阅某个请求；队列中依次收到 RequestEvent，最后可能是 STREAM_CLOSED"""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._channels[request_id].add(queue)
        return queue

    async def unsubscribe(self, request_id: str, queue: asyncio.Queue) -> None:
        channel = self._channels.get(request_id)
        if channel is None:
            return
        channel.discard(queue)
        if not channel:
            del self._channels[request_id]

    async def publish(self, event: RequestEvent) -> int:
        """投递事件到该请求的全部订阅者，返回成功送达数

        终态事件送达后关闭整个频道。
        """
        channel = self._channels.get(event.request_id)
        if not channel:
            return 0

        delivered = 0
        for queue in list(channel):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                self._evict(event.request_id, queue)

        if event.status in TERMINAL_STATES:
            self._channels.pop(event.request_id, None)
        return delivered

    def _evict(self, request_id: str, queue: asyncio.Queue) -> None:
        """丢弃积压事件，只留下关闭哨兵"""
        while not queue.empty():
            queue.get_nowait()
        queue.put_nowait(STREAM_CLOSED)
        channel = self._channels[request_id]
        channel.discard(queue)
        if not channel:
            del self._channels[request_id]
        log.warning("sse_subscriber_evicted", request_ref=request_id)

    def subscriber_count(self, request_id: str) -> int:
        return len(self._channels.get(request_id, ()))
