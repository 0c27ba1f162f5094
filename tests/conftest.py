"""全局 pytest 配置 -- 临时 SQLite 数据库、可控时钟与调用方 fixture"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from pydantic import SecretStr
from skilllance.core.config import EngineSettings
from skilllance.core.identity import IdentityAnonymizer
from skilllance.core.models import CallerIdentity
from skilllance.core.store import StoreGroup, create_store_group

TEST_SALT = "test-salt-for-pytest"


class FakeClock:
    """可手动推进的时钟"""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=UTC))


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(anon_salt=SecretStr(TEST_SALT))


@pytest.fixture
def anonymizer(settings: EngineSettings) -> IdentityAnonymizer:
    return IdentityAnonymizer(settings.anon_salt.get_secret_value())


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "sqlite" / "test.db"


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """提供已初始化的临时 Store 实例组"""
    group = await create_store_group(str(tmp_db_path))
    yield group
    await group.conn.close()


@pytest.fixture
def alice() -> CallerIdentity:
    return CallerIdentity(real_id="uid-alice", email_verified=True)


@pytest.fixture
def bob() -> CallerIdentity:
    return CallerIdentity(real_id="uid-bob", email_verified=True)


@pytest.fixture
def carol() -> CallerIdentity:
    return CallerIdentity(real_id="uid-carol", email_verified=True)


@pytest.fixture
def create_payload() -> dict:
    """合法的创建 payload"""
    return {
        "title": "Need help with React hooks",
        "description": "My useEffect runs in an infinite loop and I cannot figure out why.",
        "skills_needed": ["react"],
        "urgency_level": "high",
        "estimated_time": 2,
        "tags": ["Frontend", "hooks"],
    }


@pytest.fixture
def respond_payload() -> dict:
    """合法的响应 payload"""
    return {
        "message": "I have debugged this exact issue before, happy to pair.",
        "estimated_time": 1,
    }
