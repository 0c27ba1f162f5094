"""LoggingMiddleware

每个 HTTP 请求绑定 request_id 与 caller_kind，响应头返回 X-Request-ID。

caller_kind 只描述调用方类别（anonymous / unverified / verified），
真实用户 ID 与 pseudonym 都不会进入请求级日志。
/health、/ready 健康检查请求只在 DEBUG 级别记录。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

_HEALTH_PATHS = frozenset({"/health", "/ready"})
_TRUE_VALUES = ("1", "true", "yes")


def caller_kind(request: Request) -> str:
    """按上游认证代理注入的请求头给调用方分类"""
    if not request.headers.get("x-caller-id", "").strip():
        return "anonymous"
    verified = request.headers.get("x-caller-email-verified", "").strip().lower()
    return "verified" if verified in _TRUE_VALUES else "unverified"


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(ULID())
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
            caller_kind=caller_kind(request),
        )

        log = structlog.get_logger()
        is_health_check = path in _HEALTH_PATHS
        started = time.perf_counter()

        response = await call_next(request)

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        if is_health_check:
            await log.adebug("health_check_completed", status_code=response.status_code)
        elif response.status_code == 429:
            await log.awarning(
                "request_throttled",
                retry_after=response.headers.get("retry-after"),
                duration_ms=duration_ms,
            )
        else:
            await log.ainfo(
                "request_completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        response.headers["X-Request-ID"] = request_id
        return response
