"""求助请求路由

POST /api/requests: 创建请求（需认证，创建限流）
GET  /api/requests: 搜索开放请求（可匿名）
GET  /api/requests/mine: 调用方自己的请求
GET  /api/requests/{request_id}: 请求详情（浏览计数 +1）
PUT  /api/requests/{request_id}: 创建者修改 open 请求
POST /api/requests/{request_id}/responses: 提交响应
POST /api/requests/{request_id}/responses/{response_id}/accept: 采纳响应
POST /api/requests/{request_id}/complete: 完成请求
POST /api/requests/{request_id}/cancel: 取消请求

所有出参都经过 ResponseShaper；错误由统一异常处理器映射。
"""

from fastapi import APIRouter, Depends, Query, Request
from skilllance.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from skilllance.core.models import (
    CallerIdentity,
    CompletePayload,
    CreateRequestPayload,
    PageRequest,
    RespondPayload,
    SearchFilters,
    SortOption,
    UpdateRequestPayload,
    UrgencyLevel,
)
from starlette.responses import JSONResponse

from ..deps import (
    enforce_create_limit,
    enforce_read_limit,
    get_caller,
    get_client_fingerprint,
    get_insight_service,
    get_request_service,
    get_shaper,
)
from ..services.insight_service import InsightService
from ..services.request_service import RequestService
from ..services.shaper import ResponseShaper

router = APIRouter()


@router.post("/api/requests", dependencies=[Depends(enforce_create_limit)])
async def create_request(
    payload: CreateRequestPayload,
    request: Request,
    caller: CallerIdentity = Depends(get_caller),
    fingerprint: str = Depends(get_client_fingerprint),
    service: RequestService = Depends(get_request_service),
    shaper: ResponseShaper = Depends(get_shaper),
):
    """创建匿名求助请求，返回 201"""
    help_request = await service.create(
        payload,
        caller,
        client_fingerprint=fingerprint,
        user_agent=request.headers.get("user-agent"),
    )
    return JSONResponse(
        status_code=201,
        content={"request": shaper.shape(help_request, caller)},
    )


@router.get("/api/requests", dependencies=[Depends(enforce_read_limit)])
async def search_requests(
    q: str | None = Query(default=None, max_length=255, description="标题/描述/标签子串"),
    skills: list[str] = Query(default=[], description="任一技能命中"),
    urgency: list[UrgencyLevel] = Query(default=[], description="任一紧急程度命中"),
    is_remote: bool | None = Query(default=None),
    max_estimated_time: int | None = Query(default=None, ge=1, le=240),
    tags: list[str] = Query(default=[]),
    college_hint: str | None = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort: SortOption = Query(default=SortOption.NEWEST),
    caller: CallerIdentity = Depends(get_caller),
    insights: InsightService = Depends(get_insight_service),
    shaper: ResponseShaper = Depends(get_shaper),
):
    """搜索开放且未过期的请求"""
    result = await insights.search(
        SearchFilters(
            query=q.strip() if q and q.strip() else None,
            skills=skills,
            urgency=urgency,
            is_remote=is_remote,
            max_estimated_time=max_estimated_time,
            tags=tags,
            college_hint=college_hint,
        ),
        PageRequest(page=page, limit=limit, sort=sort),
    )
    return {
        "requests": shaper.shape_many(result.items, caller),
        "pagination": {
            "total": result.total,
            "page": result.page,
            "pages": result.pages,
            "limit": result.limit,
        },
    }


@router.get("/api/requests/mine", dependencies=[Depends(enforce_read_limit)])
async def list_my_requests(
    caller: CallerIdentity = Depends(get_caller),
    service: RequestService = Depends(get_request_service),
    shaper: ResponseShaper = Depends(get_shaper),
):
    """调用方自己的请求（含已过期与终态）"""
    requests = await service.list_mine(caller)
    return {"requests": shaper.shape_many(requests, caller)}


@router.get("/api/requests/{request_id}", dependencies=[Depends(enforce_read_limit)])
async def get_request(
    request_id: str,
    caller: CallerIdentity = Depends(get_caller),
    service: RequestService = Depends(get_request_service),
    shaper: ResponseShaper = Depends(get_shaper),
):
    """请求详情；匿名访客拿到精简视图"""
    help_request = await service.get(request_id)
    return {"request": shaper.shape(help_request, caller)}


@router.put("/api/requests/{request_id}", dependencies=[Depends(enforce_read_limit)])
async def update_request(
    request_id: str,
    payload: UpdateRequestPayload,
    caller: CallerIdentity = Depends(get_caller),
    service: RequestService = Depends(get_request_service),
    shaper: ResponseShaper = Depends(get_shaper),
):
    """创建者修改 open 请求"""
    help_request = await service.update(request_id, payload, caller)
    return {"request": shaper.shape(help_request, caller)}


@router.post(
    "/api/requests/{request_id}/responses",
    dependencies=[Depends(enforce_read_limit)],
)
async def respond_to_request(
    request_id: str,
    payload: RespondPayload,
    caller: CallerIdentity = Depends(get_caller),
    service: RequestService = Depends(get_request_service),
    shaper: ResponseShaper = Depends(get_shaper),
):
    """提交响应，返回 201 与新响应 ID"""
    help_request, response = await service.respond(request_id, payload, caller)
    return JSONResponse(
        status_code=201,
        content={
            "response_id": response.response_id,
            "request": shaper.shape(help_request, caller),
        },
    )


@router.post("/api/requests/{request_id}/responses/{response_id}/accept")
async def accept_response(
    request_id: str,
    response_id: str,
    caller: CallerIdentity = Depends(get_caller),
    service: RequestService = Depends(get_request_service),
    shaper: ResponseShaper = Depends(get_shaper),
):
    """采纳响应；并发竞争失败返回 409，调用方应重新读取而不是重试"""
    help_request = await service.accept_response(request_id, response_id, caller)
    return {"request": shaper.shape(help_request, caller)}


@router.post("/api/requests/{request_id}/complete")
async def complete_request(
    request_id: str,
    payload: CompletePayload,
    caller: CallerIdentity = Depends(get_caller),
    service: RequestService = Depends(get_request_service),
    shaper: ResponseShaper = Depends(get_shaper),
):
    help_request = await service.complete_request(request_id, payload, caller)
    return {"request": shaper.shape(help_request, caller)}


@router.post("/api/requests/{request_id}/cancel")
async def cancel_request(
    request_id: str,
    caller: CallerIdentity = Depends(get_caller),
    service: RequestService = Depends(get_request_service),
    shaper: ResponseShaper = Depends(get_shaper),
):
    help_request = await service.cancel(request_id, caller)
    return {"request": shaper.shape(help_request, caller)}
