"""异常到 HTTP 响应的统一映射

业务异常在服务层抛出，只在此处转换一次：
{"error": {"code": ..., "message": ..., "details": {...}}}
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from skilllance.core.exceptions import RateLimitError, SkillLanceError, ValidationError
from starlette.responses import JSONResponse

log = structlog.get_logger()


def error_body(code: str, message: str, details: dict | None = None) -> dict:
    return {"error": {"code": code, "message": message, "details": details or {}}}


async def handle_skilllance_error(request: Request, exc: SkillLanceError) -> JSONResponse:
    """已知业务异常 -> 对应 HTTP 状态码"""
    log.info(
        "request_rejected",
        code=exc.code,
        status_code=exc.http_status,
        reason=exc.message,
    )
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.http_status,
        content=error_body(exc.code, exc.message, jsonable_encoder(exc.details)),
        headers=headers,
    )


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """FastAPI 请求体/参数校验失败 -> VALIDATION_ERROR"""
    errors = jsonable_encoder(exc.errors())
    log.info("request_validation_failed", error_count=len(errors))
    return JSONResponse(
        status_code=ValidationError.http_status,
        content=error_body(ValidationError.code, "Invalid input data", {"errors": errors}),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """未知异常：记录完整堆栈，对外只返回通用信息"""
    log.exception("unhandled_error", error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content=error_body("INTERNAL_ERROR", "Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SkillLanceError, handle_skilllance_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
