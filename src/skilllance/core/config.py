"""配置模块 -- 可通过环境变量覆盖

包含数据库路径、匿名 salt、请求 TTL、限流配额、SSE 心跳等可配置项。
路径类配置以函数形式提供（每次读取环境变量），引擎参数汇总为 EngineSettings。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()

# 未配置 SKILLLANCE_ANON_SALT 时使用的开发默认值（生产环境必须覆盖）
DEV_ANON_SALT = "skilllance-dev-salt"


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("SKILLLANCE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "SKILLLANCE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "skilllance.db"),
    )


# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("SKILLLANCE_SSE_HEARTBEAT_INTERVAL", "15")
)

# 匿名 ID 截断长度（hex 字符数）
ANON_ID_LENGTH: int = 16

# 分页上限
MAX_PAGE_SIZE: int = 100
DEFAULT_PAGE_SIZE: int = 10


class RateLimitPolicy(BaseModel):
    """单个限流策略：window_seconds 滚动窗口内最多 limit 次"""

    name: str = Field(description="策略名称，同时作为限流 key 前缀")
    limit: int = Field(ge=1, description="窗口内允许次数")
    window_seconds: int = Field(ge=1, description="滚动窗口长度（秒）")


class EngineSettings(BaseModel):
    """引擎配置 -- 从环境变量加载

    环境变量:
        SKILLLANCE_ANON_SALT: 匿名 ID 派生密钥
        SKILLLANCE_REQUEST_TTL_HOURS: 请求默认存活时长（小时，默认 24）
        SKILLLANCE_MAX_REQUEST_TTL_HOURS: 调用方自定义 expires_at 的上限（小时，默认 168）
        SKILLLANCE_CREATE_LIMIT / SKILLLANCE_CREATE_WINDOW_S: 创建限流（默认 3 / 3600）
        SKILLLANCE_READ_LIMIT / SKILLLANCE_READ_WINDOW_S: 读接口限流（默认 100 / 900）
        SKILLLANCE_RATELIMIT_STORAGE: limits 存储 URI（默认 async+memory://）
        SKILLLANCE_RATELIMIT_ENABLED: 是否启用限流（默认 true）
    """

    anon_salt: SecretStr = Field(
        default=SecretStr(DEV_ANON_SALT),
        description="匿名 ID 派生密钥（服务端保密）",
    )
    request_ttl_hours: int = Field(default=24, ge=1, description="请求默认 TTL（小时）")
    max_request_ttl_hours: int = Field(
        default=168,
        ge=1,
        description="自定义 expires_at 允许的最长 TTL（小时）",
    )
    create_limit: RateLimitPolicy = Field(
        default_factory=lambda: RateLimitPolicy(
            name="create_request", limit=3, window_seconds=3600
        ),
    )
    read_limit: RateLimitPolicy = Field(
        default_factory=lambda: RateLimitPolicy(
            name="read", limit=100, window_seconds=900
        ),
    )
    ratelimit_storage: str = Field(
        default="async+memory://",
        description="limits 存储 URI，多副本部署时使用 async+redis://",
    )
    ratelimit_enabled: bool = Field(default=True, description="是否启用限流")

    @property
    def uses_dev_salt(self) -> bool:
        return self.anon_salt.get_secret_value() == DEV_ANON_SALT


def _int_env(name: str, fallback: int) -> int:
    """读取整数环境变量，非法值记录告警并回退默认值（不阻塞启动）"""
    val = os.environ.get(name)
    if not val:
        return fallback
    try:
        return int(val)
    except ValueError:
        log.warning(
            "invalid_int_config",
            env_var=name,
            value=val,
            fallback=fallback,
        )
        return fallback


def load_engine_settings() -> EngineSettings:
    """从环境变量加载 EngineSettings

    Returns:
        EngineSettings 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("SKILLLANCE_ANON_SALT"):
        kwargs["anon_salt"] = SecretStr(val)

    kwargs["request_ttl_hours"] = _int_env("SKILLLANCE_REQUEST_TTL_HOURS", 24)
    kwargs["max_request_ttl_hours"] = _int_env("SKILLLANCE_MAX_REQUEST_TTL_HOURS", 168)
    kwargs["create_limit"] = RateLimitPolicy(
        name="create_request",
        limit=_int_env("SKILLLANCE_CREATE_LIMIT", 3),
        window_seconds=_int_env("SKILLLANCE_CREATE_WINDOW_S", 3600),
    )
    kwargs["read_limit"] = RateLimitPolicy(
        name="read",
        limit=_int_env("SKILLLANCE_READ_LIMIT", 100),
        window_seconds=_int_env("SKILLLANCE_READ_WINDOW_S", 900),
    )

    if val := os.environ.get("SKILLLANCE_RATELIMIT_STORAGE"):
        kwargs["ratelimit_storage"] = val

    if val := os.environ.get("SKILLLANCE_RATELIMIT_ENABLED"):
        kwargs["ratelimit_enabled"] = val.lower() not in ("0", "false", "no")

    settings = EngineSettings(**kwargs)
    if settings.uses_dev_salt:
        log.warning(
            "anon_salt_not_configured",
            message="SKILLLANCE_ANON_SALT 未设置，使用开发默认值",
        )
    return settings
