"""InsightService 测试 -- 搜索分页、热门技能、统计"""

from datetime import timedelta

import pytest
from skilllance.core.exceptions import AuthenticationError, ValidationError
from skilllance.core.models import CallerIdentity, PageRequest, SearchFilters, SortOption
from skilllance.gateway.services.insight_service import InsightService


@pytest.fixture
def insight_service(store_group, anonymizer, clock) -> InsightService:
    return InsightService(store_group, anonymizer, clock=clock)


def _payload(create_payload: dict, **overrides) -> dict:
    return {**create_payload, **overrides}


class TestSearch:
    async def test_urgency_first_then_newest(
        self, request_service, insight_service: InsightService, alice, create_payload, clock
    ):
        created = {}
        for name, urgency in (("low", "low"), ("urgent-old", "urgent"), ("high", "high"), ("urgent-new", "urgent")):
            clock.advance(minutes=1)
            request = await request_service.create(
                _payload(create_payload, title=name, urgency_level=urgency), alice
            )
            created[request.request_id] = name

        page = await insight_service.search(
            SearchFilters(), PageRequest(sort=SortOption.URGENCY)
        )
        assert [created[r.request_id] for r in page.items] == [
            "urgent-new",
            "urgent-old",
            "high",
            "low",
        ]

    async def test_page_metadata(
        self, request_service, insight_service: InsightService, alice, bob, create_payload
    ):
        for _ in range(3):
            await request_service.create(create_payload, alice)
        for _ in range(2):
            await request_service.create(create_payload, bob)

        page = await insight_service.search(page_request=PageRequest(page=2, limit=2))
        assert (page.total, page.page, page.pages, page.limit) == (5, 2, 3, 2)
        assert len(page.items) == 2

    async def test_empty_result(self, insight_service: InsightService):
        page = await insight_service.search(SearchFilters(query="nothing"))
        assert page.total == 0
        assert page.pages == 0
        assert page.items == []

    async def test_cancelled_and_expired_hidden(
        self, request_service, insight_service: InsightService, alice, create_payload, clock
    ):
        cancelled = await request_service.create(create_payload, alice)
        await request_service.cancel(cancelled.request_id, alice)
        await request_service.create(
            _payload(create_payload, expires_at=(clock.now + timedelta(hours=1)).isoformat()),
            alice,
        )
        clock.advance(hours=2)

        page = await insight_service.search()
        assert page.total == 0


class TestTrendsAndStats:
    async def test_trending_ties_by_name(
        self, request_service, insight_service: InsightService, alice, bob, create_payload
    ):
        await request_service.create(_payload(create_payload, skills_needed=["sql", "react"]), alice)
        await request_service.create(_payload(create_payload, skills_needed=["react"]), alice)
        await request_service.create(_payload(create_payload, skills_needed=["go", "sql"]), bob)

        trends = await insight_service.trending_skills(window_days=7, limit=10)
        assert [(t.skill, t.count) for t in trends] == [("react", 2), ("sql", 2), ("go", 1)]

    @pytest.mark.parametrize("kwargs", [{"window_days": 0}, {"limit": 0}, {"limit": 51}])
    async def test_trending_bounds(self, insight_service: InsightService, kwargs):
        with pytest.raises(ValidationError):
            await insight_service.trending_skills(**kwargs)

    async def test_user_stats(
        self, request_service, insight_service: InsightService, alice, bob, create_payload, respond_payload
    ):
        mine = await request_service.create(create_payload, alice)
        theirs = await request_service.create(create_payload, bob)
        await request_service.respond(theirs.request_id, respond_payload, alice)
        await request_service.respond(mine.request_id, respond_payload, bob)

        stats = await insight_service.user_stats(alice)
        assert (stats.requests_created, stats.responses_given) == (1, 1)

    async def test_user_stats_requires_identity(self, insight_service: InsightService):
        with pytest.raises(AuthenticationError):
            await insight_service.user_stats(CallerIdentity())

    async def test_engagement_and_overview(
        self, request_service, insight_service: InsightService, alice, bob, create_payload, respond_payload, clock
    ):
        first = await request_service.create(create_payload, alice)
        await request_service.respond(first.request_id, respond_payload, bob)
        clock.advance(days=1)
        await request_service.create(create_payload, alice)

        daily = await insight_service.engagement_metrics(days_back=30)
        assert [(d.requests_created, d.total_responses) for d in daily] == [(1, 1), (1, 0)]

        overview = await insight_service.overview()
        assert overview.total_requests == 2
        # 第一个请求已超过 24 小时 TTL
        assert overview.by_status == {"open": 1, "expired": 1}
        assert overview.avg_response_count == pytest.approx(0.5)

    async def test_analytics_bundles_stats_and_trends(
        self, request_service, insight_service: InsightService, alice, create_payload
    ):
        await request_service.create(create_payload, alice)
        result = await insight_service.analytics(alice)
        assert result["user_stats"].requests_created == 1
        assert [t.skill for t in result["trending_skills"]] == ["react"]
