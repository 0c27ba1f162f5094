"""统计路由

GET /api/trending-skills: 热门技能（近 N 天开放请求）
GET /api/stats: 调用方的创建数与响应数（需身份）
GET /api/analytics: 个人统计 + 热门技能前 5（需身份）
GET /api/metrics/engagement: 按日活跃度
GET /api/metrics/overview: 全量状态概览
"""

from fastapi import APIRouter, Depends, Query
from skilllance.core.models import CallerIdentity

from ..deps import enforce_read_limit, get_caller, get_insight_service
from ..services.insight_service import MAX_TRENDING_LIMIT, MAX_WINDOW_DAYS, InsightService

router = APIRouter(dependencies=[Depends(enforce_read_limit)])


@router.get("/api/trending-skills")
async def trending_skills(
    days: int = Query(default=7, ge=1, le=MAX_WINDOW_DAYS, description="统计窗口（天）"),
    limit: int = Query(default=10, ge=1, le=MAX_TRENDING_LIMIT),
    insights: InsightService = Depends(get_insight_service),
):
    trends = await insights.trending_skills(window_days=days, limit=limit)
    return {
        "window_days": days,
        "skills": [t.model_dump() for t in trends],
    }


@router.get("/api/stats")
async def user_stats(
    caller: CallerIdentity = Depends(get_caller),
    insights: InsightService = Depends(get_insight_service),
):
    stats = await insights.user_stats(caller)
    return {"stats": stats.model_dump()}


@router.get("/api/analytics")
async def analytics(
    caller: CallerIdentity = Depends(get_caller),
    insights: InsightService = Depends(get_insight_service),
):
    result = await insights.analytics(caller)
    return {
        "user_stats": result["user_stats"].model_dump(),
        "trending_skills": [t.model_dump() for t in result["trending_skills"]],
    }


@router.get("/api/metrics/engagement")
async def engagement_metrics(
    days: int = Query(default=30, ge=1, le=MAX_WINDOW_DAYS),
    insights: InsightService = Depends(get_insight_service),
):
    daily = await insights.engagement_metrics(days_back=days)
    return {"days_back": days, "daily": [d.model_dump() for d in daily]}


@router.get("/api/metrics/overview")
async def overview(insights: InsightService = Depends(get_insight_service)):
    summary = await insights.overview()
    return {"overview": summary.model_dump()}
