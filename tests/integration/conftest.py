"""集成测试共享 fixture -- 走真实 lifespan（环境变量配置 + 建库）"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture
async def integration_app(tmp_path: Path, monkeypatch):
    """集成测试用 FastAPI app，lifespan 负责装配全部组件"""
    monkeypatch.setenv("SKILLLANCE_DB_PATH", str(tmp_path / "sqlite" / "integration.db"))
    monkeypatch.setenv("SKILLLANCE_ANON_SALT", "integration-salt")
    monkeypatch.setenv("SKILLLANCE_CREATE_LIMIT", "2")
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from skilllance.gateway.main import create_app

    app = create_app()
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
