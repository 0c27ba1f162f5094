"""FastAPI 应用主文件

app 创建 + lifespan 管理：配置加载、DB 初始化/关闭、共享组件装配、路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from skilllance.core.config import EngineSettings, get_db_path, load_engine_settings
from skilllance.core.identity import IdentityAnonymizer
from skilllance.core.store import StoreGroup, create_store_group

from .middleware.error_handlers import register_exception_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import health, insights, requests, stream
from .services.rate_limiter import RateLimiter
from .services.shaper import ResponseShaper
from .services.sse_hub import SSEHub

log = structlog.get_logger()


def init_app_state(
    app: FastAPI,
    store_group: StoreGroup,
    settings: EngineSettings,
) -> None:
    """装配 app.state 上的共享组件（lifespan 与测试共用）"""
    anonymizer = IdentityAnonymizer(settings.anon_salt.get_secret_value())
    app.state.settings = settings
    app.state.store_group = store_group
    app.state.anonymizer = anonymizer
    app.state.sse_hub = SSEHub()
    app.state.rate_limiter = RateLimiter(
        settings.ratelimit_storage,
        enabled=settings.ratelimit_enabled,
    )
    app.state.shaper = ResponseShaper(anonymizer)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 与共享组件，关闭时清理连接"""
    settings = load_engine_settings()
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    init_app_state(app, store_group, settings)

    log.info(
        "gateway_started",
        db_path=db_path,
        request_ttl_hours=settings.request_ttl_hours,
        ratelimit_enabled=settings.ratelimit_enabled,
        ratelimit_storage=settings.ratelimit_storage.split("://", 1)[0],
    )

    yield

    # 关闭：清理数据库连接
    if getattr(app.state, "store_group", None):
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="SkillLance Gateway",
        version="0.1.0",
        description="匿名校园互助请求 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    # 初始化日志
    setup_logging()
    setup_logfire()

    # 注册路由
    app.include_router(requests.router, tags=["requests"])
    app.include_router(insights.router, tags=["insights"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
