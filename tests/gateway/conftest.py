"""gateway 测试配置 -- FastAPI app + httpx AsyncClient"""

import os
from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from skilllance.core.config import EngineSettings
from skilllance.core.identity import IdentityAnonymizer
from skilllance.core.store import StoreGroup
from skilllance.gateway.services.request_service import RequestService
from skilllance.gateway.services.sse_hub import SSEHub


@pytest.fixture
def sse_hub() -> SSEHub:
    return SSEHub()


@pytest.fixture
def request_service(
    store_group: StoreGroup,
    anonymizer: IdentityAnonymizer,
    settings: EngineSettings,
    sse_hub: SSEHub,
    clock,
) -> RequestService:
    """绑定可控时钟的 RequestService"""
    return RequestService(store_group, anonymizer, settings, sse_hub=sse_hub, clock=clock)


@pytest_asyncio.fixture
async def app(store_group: StoreGroup, settings: EngineSettings):
    """创建测试用 FastAPI app 实例（手动装配 app.state，绕过 lifespan）"""
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from skilllance.gateway.main import create_app, init_app_state

    application = create_app()
    init_app_state(application, store_group, settings)
    yield application

    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def headers_for() -> Callable[..., dict[str, str]]:
    """构造上游认证代理注入的身份请求头"""

    def _headers(real_id: str, verified: bool = True) -> dict[str, str]:
        return {
            "X-Caller-Id": real_id,
            "X-Caller-Email-Verified": "true" if verified else "false",
        }

    return _headers
