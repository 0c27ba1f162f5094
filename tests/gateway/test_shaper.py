"""ResponseShaper 测试 -- 内部字段剥离与视角标注"""

from datetime import timedelta

from skilllance.core.identity import IdentityAnonymizer
from skilllance.core.models import CallerIdentity
from skilllance.gateway.services.request_service import RequestService
from skilllance.gateway.services.shaper import ResponseShaper


async def _request_with_response(service: RequestService, owner, responder, create_payload, respond_payload):
    request = await service.create(
        create_payload,
        owner,
        client_fingerprint="fp-hash",
        user_agent="pytest-agent",
    )
    updated, _ = await service.respond(request.request_id, respond_payload, responder)
    return updated


class TestResponseShaper:
    async def test_internal_fields_never_emitted(
        self, request_service, anonymizer: IdentityAnonymizer, alice, bob, create_payload, respond_payload, clock
    ):
        shaper = ResponseShaper(anonymizer)
        request = await _request_with_response(
            request_service, alice, bob, create_payload, respond_payload
        )
        assert request.client_fingerprint == "fp-hash"

        for caller in (alice, bob, CallerIdentity()):
            shaped = shaper.shape(request, caller, clock.now)
            assert "client_fingerprint" not in shaped
            assert "user_agent" not in shaped
            assert "fp-hash" not in str(shaped)
            assert alice.real_id not in str(shaped)

    async def test_owner_and_responder_flags(
        self, request_service, anonymizer, alice, bob, create_payload, respond_payload, clock
    ):
        shaper = ResponseShaper(anonymizer)
        request = await _request_with_response(
            request_service, alice, bob, create_payload, respond_payload
        )

        as_owner = shaper.shape(request, alice, clock.now)
        assert as_owner["is_own_request"] is True
        assert as_owner["responses"][0]["is_own_response"] is False

        as_responder = shaper.shape(request, bob, clock.now)
        assert as_responder["is_own_request"] is False
        assert as_responder["responses"][0]["is_own_response"] is True

    async def test_anonymous_viewer_gets_reduced_view(
        self, request_service, anonymizer, alice, bob, create_payload, respond_payload, clock
    ):
        shaper = ResponseShaper(anonymizer)
        request = await _request_with_response(
            request_service, alice, bob, create_payload, respond_payload
        )

        shaped = shaper.shape(request, CallerIdentity(), clock.now)
        for hidden in ("requester_anonymous_id", "responses", "rating", "feedback", "is_own_request"):
            assert hidden not in shaped
        assert shaped["response_count"] == 1
        assert shaped["title"] == create_payload["title"]

    async def test_effective_status_and_time_remaining(
        self, request_service, anonymizer, alice, create_payload, clock
    ):
        shaper = ResponseShaper(anonymizer)
        request = await request_service.create(create_payload, alice)

        shaped = shaper.shape(request, alice, clock.now + timedelta(hours=23))
        assert shaped["status"] == "open"
        assert shaped["time_remaining_seconds"] == 3600

        shaped = shaper.shape(request, alice, clock.now + timedelta(hours=25))
        assert shaped["status"] == "expired"
        assert shaped["time_remaining_seconds"] == 0

    async def test_shape_many(self, request_service, anonymizer, alice, bob, create_payload, clock):
        shaper = ResponseShaper(anonymizer)
        mine = await request_service.create(create_payload, alice)
        theirs = await request_service.create(create_payload, bob)

        shaped = shaper.shape_many([mine, theirs], alice, clock.now)
        assert [s["is_own_request"] for s in shaped] == [True, False]
