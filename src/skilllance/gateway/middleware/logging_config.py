"""structlog 配置模块

日志里可以出现 pseudonym，但不能出现身份提供方的真实用户 ID：
scrub_identity 处理器位于所有渲染之前，对 structlog 事件与
经 ProcessorFormatter 进入的标准库日志（uvicorn 等）同样生效。

SKILLLANCE_LOG_FORMAT: dev（默认，pretty print）/ json（生产）
SKILLLANCE_LOG_LEVEL: 根日志级别，默认 INFO
LOGFIRE_SEND_TO_LOGFIRE: true 时启用 Logfire，否则只输出本地日志
"""

import logging
import os

import structlog

# 携带真实身份的字段名（含请求头名的各种写法）
IDENTITY_KEYS = frozenset(
    {"real_id", "caller_id", "x_caller_id", "x-caller-id", "X-Caller-Id", "user_id", "uid"}
)

# 逐条操作都会打 DEBUG 的第三方 logger
_NOISY_LOGGERS = ("aiosqlite", "uvicorn.access")


def scrub_identity(
    logger: object, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """删除真实身份字段；嵌套的 caller/headers dict 同样处理"""
    for key in event_dict.keys() & IDENTITY_KEYS:
        del event_dict[key]
    for name, value in event_dict.items():
        # 不修改调用方传入的 dict
        if isinstance(value, dict) and value.keys() & IDENTITY_KEYS:
            event_dict[name] = {k: v for k, v in value.items() if k not in IDENTITY_KEYS}
    return event_dict


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog 与标准库 logging（参数缺省时读取环境变量）"""
    log_format = log_format or os.environ.get("SKILLLANCE_LOG_FORMAT", "dev")
    log_level = log_level or os.environ.get("SKILLLANCE_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        scrub_identity,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # 每个请求已由 LoggingMiddleware 记录
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logfire() -> None:
    """可选启用 Logfire（需要 logfire extra 与 LOGFIRE_TOKEN）"""
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return
    try:
        import logfire

        logfire.configure()
        logfire.instrument_fastapi()
    except Exception:
        structlog.get_logger().warning("logfire_init_failed", exc_info=True)
