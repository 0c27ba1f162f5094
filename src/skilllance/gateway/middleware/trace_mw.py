"""TraceMiddleware

为针对单个求助请求的操作绑定 request_ref，贯穿该请求相关的全部日志。
request_ref 从路径 /api/requests/{id}/... 或 /api/stream/requests/{id} 中提取。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ULID 字符串长度
_ULID_LENGTH = 26


def extract_request_ref(path: str) -> str | None:
    """从路径中提取求助请求 ID（排除 /mine 等子路由）"""
    parts = path.split("/")
    for i, part in enumerate(parts):
        if part == "requests" and i + 1 < len(parts):
            candidate = parts[i + 1]
            if len(candidate) == _ULID_LENGTH:
                return candidate
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """求助请求级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_ref = extract_request_ref(request.url.path)
        if request_ref:
            structlog.contextvars.bind_contextvars(request_ref=request_ref)

        return await call_next(request)
