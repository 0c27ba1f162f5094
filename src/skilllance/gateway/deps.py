"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store、服务与调用方身份

共享组件通过 app.state 管理，在 lifespan（或测试 fixture）中初始化/清理。
调用方身份由上游认证代理通过请求头传入：
    X-Caller-Id: 身份提供方的稳定用户 ID
    X-Caller-Email-Verified: "true" / "false"
"""

from fastapi import Depends, Header, Request
from skilllance.core.config import EngineSettings
from skilllance.core.exceptions import AuthenticationError
from skilllance.core.identity import IdentityAnonymizer
from skilllance.core.models import ANONYMOUS_CALLER, CallerIdentity
from skilllance.core.store import StoreGroup

from .services.insight_service import InsightService
from .services.rate_limiter import RateLimiter
from .services.request_service import RequestService
from .services.shaper import ResponseShaper
from .services.sse_hub import SSEHub


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_sse_hub(request: Request) -> SSEHub:
    return request.app.state.sse_hub


def get_settings(request: Request) -> EngineSettings:
    return request.app.state.settings


def get_anonymizer(request: Request) -> IdentityAnonymizer:
    return request.app.state.anonymizer


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_shaper(request: Request) -> ResponseShaper:
    return request.app.state.shaper


def get_caller(
    x_caller_id: str | None = Header(default=None),
    x_caller_email_verified: str | None = Header(default=None),
) -> CallerIdentity:
    """每次调用构造一次调用方身份，real_id 不会被持久化"""
    real_id = (x_caller_id or "").strip()
    if not real_id:
        return ANONYMOUS_CALLER
    verified = (x_caller_email_verified or "").strip().lower() in ("1", "true", "yes")
    return CallerIdentity(real_id=real_id, email_verified=verified)


def get_client_fingerprint(
    request: Request,
    anonymizer: IdentityAnonymizer = Depends(get_anonymizer),
) -> str:
    """客户端 IP 的带密钥哈希（仅用于限流与反滥用）"""
    host = request.client.host if request.client else "unknown"
    return anonymizer.derive(f"client:{host}")


def get_request_service(request: Request) -> RequestService:
    state = request.app.state
    return RequestService(
        state.store_group,
        state.anonymizer,
        state.settings,
        sse_hub=state.sse_hub,
    )


def get_insight_service(request: Request) -> InsightService:
    state = request.app.state
    return InsightService(state.store_group, state.anonymizer)


def _limit_key(caller: CallerIdentity, fingerprint: str) -> str:
    # 限流在匿名化之前按真实身份计数；匿名访客按客户端指纹计数
    if caller.real_id:
        return f"user:{caller.real_id}"
    return f"client:{fingerprint}"


async def enforce_create_limit(
    caller: CallerIdentity = Depends(get_caller),
    fingerprint: str = Depends(get_client_fingerprint),
    settings: EngineSettings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """创建请求限流；未认证的调用方先被拒绝，不占用任何配额"""
    if not caller.is_authenticated:
        raise AuthenticationError("Verified caller identity is required")
    await limiter.enforce(settings.create_limit, _limit_key(caller, fingerprint))


async def enforce_read_limit(
    caller: CallerIdentity = Depends(get_caller),
    fingerprint: str = Depends(get_client_fingerprint),
    settings: EngineSettings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """高频读接口限流"""
    await limiter.enforce(settings.read_limit, _limit_key(caller, fingerprint))
