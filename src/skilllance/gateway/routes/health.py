"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、限流存储、磁盘空间。
"""

import shutil

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性
    2. ratelimit_storage: 限流计数存储可用（未启用限流时为 skipped）
    3. disk_space_mb: 磁盘剩余空间
    """
    checks: dict = {}
    all_ok = True

    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        log.warning("readiness_sqlite_failed", error=str(e))
        checks["sqlite"] = f"error: {e}"
        all_ok = False

    limiter = request.app.state.rate_limiter
    if not limiter.enabled:
        checks["ratelimit_storage"] = "skipped"
    else:
        try:
            reachable = await limiter.check_storage()
        except Exception as e:
            log.warning("readiness_ratelimit_failed", error=str(e))
            reachable = False
        checks["ratelimit_storage"] = "ok" if reachable else "unreachable"
        all_ok = all_ok and reachable

    try:
        disk_usage = shutil.disk_usage("/")
        checks["disk_space_mb"] = disk_usage.free // (1024 * 1024)
    except OSError:
        checks["disk_space_mb"] = 0
        all_ok = False

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
