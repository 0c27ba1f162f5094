"""RequestService -- 匿名求助请求生命周期

状态机：open -> in_progress -> completed，open / in_progress -> cancelled，
TTL 到期被动视为 expired。open 期间创建者可以修改内容字段。

服务本身无状态、不持锁：
- 鉴权一律重新派生调用方 pseudonym 并与记录上的值比较
- 并发只依赖存储层的条件写入（CAS），先写者胜
- 预检查读到的状态只用于给出精确错误，最终结果以条件写入为准
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from skilllance.core.config import EngineSettings
from skilllance.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from skilllance.core.identity import IdentityAnonymizer
from skilllance.core.models import (
    CallerIdentity,
    CompletePayload,
    CreateRequestPayload,
    HelpRequest,
    HelpResponse,
    RequestEvent,
    RequestEventType,
    RequestStatus,
    ResponseStatus,
    RespondPayload,
    UpdateRequestPayload,
    generate_avatar,
    parse_payload,
    validate_transition,
)
from skilllance.core.store import StoreGroup
from ulid import ULID

log = structlog.get_logger()


def utc_now() -> datetime:
    return datetime.now(UTC)


class RequestService:
    """求助请求业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        anonymizer: IdentityAnonymizer,
        settings: EngineSettings,
        sse_hub=None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._stores = store_group
        self._anonymizer = anonymizer
        self._settings = settings
        self._sse_hub = sse_hub
        self._clock = clock

    # ------------------------------------------------------------------
    # 写操作
    # ------------------------------------------------------------------

    async def create(
        self,
        payload: CreateRequestPayload | dict,
        caller: CallerIdentity,
        *,
        client_fingerprint: str | None = None,
        user_agent: str | None = None,
    ) -> HelpRequest:
        """创建求助请求

        Args:
            payload: 请求内容
            caller: 调用方身份（必须已认证且邮箱已验证）
            client_fingerprint: 客户端指纹（仅用于反滥用，不对外返回）
            user_agent: 客户端 User-Agent

        Returns:
            新创建的 HelpRequest（status=open，无响应）

        Raises:
            AuthenticationError: 调用方未认证，不落库
            ValidationError: payload 不合法或 expires_at 越界
        """
        requester_id = self._require_writer(caller)
        data = parse_payload(CreateRequestPayload, payload)
        now = self._clock()

        request = HelpRequest(
            request_id=str(ULID()),
            requester_anonymous_id=requester_id,
            requester_avatar=generate_avatar(),
            title=data.title,
            description=data.description,
            skills_needed=data.skills_needed,
            urgency_level=data.urgency_level,
            estimated_time=data.estimated_time,
            is_remote=data.is_remote,
            college_hint=data.college_hint,
            tags=data.tags,
            status=RequestStatus.OPEN,
            created_at=now,
            expires_at=self._resolve_expiry(data.expires_at, now),
            last_activity_at=now,
            created_from=data.created_from,
            client_fingerprint=client_fingerprint,
            user_agent=user_agent,
        )
        await self._stores.request_store.insert_request(request)

        log.info(
            "help_request_created",
            request_id=request.request_id,
            requester=requester_id,
            urgency=request.urgency_level.value,
            expires_at=request.expires_at.isoformat(),
        )
        return request

    async def update(
        self,
        request_id: str,
        payload: UpdateRequestPayload | dict,
        caller: CallerIdentity,
    ) -> HelpRequest:
        """创建者修改 open 请求的内容字段

        已有响应不受影响；状态、过期时间与匿名 ID 不可修改。

        Raises:
            NotFoundError: 请求不存在或已过期
            AuthorizationError: 调用方不是创建者
            BusinessRuleError: 请求不在 open
            ConflictError: 条件写入失败
        """
        requester_id = self._require_writer(caller)
        data = parse_payload(UpdateRequestPayload, payload)
        now = self._clock()

        request = await self._load_active(request_id, now)
        self._require_owner(caller, request)
        if request.status != RequestStatus.OPEN:
            raise BusinessRuleError(
                "Only open requests can be edited",
                rule="request_not_editable",
            )

        changes = data.changes()
        updated_ok = await self._stores.request_store.update_content(
            request_id, requester_id, changes, now
        )
        if not updated_ok:
            log.warning("request_update_conflict", request_id=request_id)
            raise ConflictError("Request was modified concurrently, please re-read it")

        updated = await self._reload(request_id)
        fields = sorted(changes)
        log.info("help_request_updated", request_id=request_id, fields=fields)
        await self._notify(updated, RequestEventType.REQUEST_UPDATED, {"fields": fields})
        return updated

    async def respond(
        self,
        request_id: str,
        payload: RespondPayload | dict,
        caller: CallerIdentity,
    ) -> tuple[HelpRequest, HelpResponse]:
        """对开放请求提交响应（多个响应者可并发调用）

        Returns:
            (更新后的请求, 新追加的响应)

        Raises:
            NotFoundError: 请求不存在或已过期
            BusinessRuleError: 自我响应、请求未开放、重复响应
        """
        responder_id = self._require_writer(caller)
        data = parse_payload(RespondPayload, payload)
        now = self._clock()

        request = await self._load_active(request_id, now)
        self._check_can_respond(request, responder_id)

        response = HelpResponse(
            response_id=str(ULID()),
            responder_anonymous_id=responder_id,
            avatar=generate_avatar(),
            message=data.message,
            proposed_solution=data.proposed_solution,
            estimated_time=data.estimated_time,
            status=ResponseStatus.PENDING,
            created_at=now,
        )

        appended = await self._stores.request_store.append_response(
            request_id, response, now
        )
        if not appended:
            # 预检查之后状态被并发修改：重新读取给出精确原因
            request = await self._load_active(request_id, now)
            self._check_can_respond(request, responder_id)
            log.warning("response_append_conflict", request_id=request_id)
            raise ConflictError("Request was modified concurrently, please re-read it")

        updated = await self._reload(request_id)
        log.info(
            "help_response_added",
            request_id=request_id,
            response_id=response.response_id,
            responder=responder_id,
            response_count=updated.response_count,
        )
        await self._notify(
            updated,
            RequestEventType.RESPONSE_ADDED,
            {"response_id": response.response_id, "response_count": updated.response_count},
        )
        return updated, response

    async def accept_response(
        self,
        request_id: str,
        response_id: str,
        caller: CallerIdentity,
    ) -> HelpRequest:
        """采纳响应：open -> in_progress

        同一请求上的并发采纳只有一个成功，其余得到 ConflictError。

        Raises:
            NotFoundError: 请求或响应不存在、请求已过期
            AuthorizationError: 调用方不是创建者
            BusinessRuleError: 请求未开放或响应不是 pending
            ConflictError: 条件写入失败（已被其他调用抢先）
        """
        self._require_writer(caller)
        now = self._clock()

        request = await self._load_active(request_id, now)
        self._require_owner(caller, request)
        if request.status != RequestStatus.OPEN:
            raise BusinessRuleError("Request is not open", rule="request_not_open")

        found = request.find_response(response_id)
        if found is None:
            raise NotFoundError("Response", response_id)
        index, response = found
        if response.status != ResponseStatus.PENDING:
            raise BusinessRuleError("Response is not pending", rule="response_not_pending")

        accepted = await self._stores.request_store.accept_response(
            request_id, index, response_id, now
        )
        if not accepted:
            log.warning(
                "response_accept_conflict",
                request_id=request_id,
                response_id=response_id,
            )
            raise ConflictError(
                "Request was updated by another operation; re-read it to see the current state"
            )

        updated = await self._reload(request_id)
        log.info(
            "help_response_accepted",
            request_id=request_id,
            response_id=response_id,
        )
        await self._notify(
            updated,
            RequestEventType.RESPONSE_ACCEPTED,
            {"response_id": response_id},
        )
        return updated

    async def complete_request(
        self,
        request_id: str,
        payload: CompletePayload | dict,
        caller: CallerIdentity,
    ) -> HelpRequest:
        """完成请求：in_progress -> completed（终态）

        Raises:
            AuthorizationError: 调用方不是创建者（与请求状态无关）
            BusinessRuleError: 请求不在 in_progress
            ConflictError: 条件写入失败
        """
        self._require_writer(caller)
        data = parse_payload(CompletePayload, payload)
        now = self._clock()

        request = await self._load_active(request_id, now)
        self._require_owner(caller, request)
        if not validate_transition(request.status, RequestStatus.COMPLETED):
            raise BusinessRuleError(
                "Request is not in progress",
                rule="request_not_in_progress",
            )

        completed = await self._stores.request_store.complete_request(
            request_id, data.rating, data.feedback, now
        )
        if not completed:
            log.warning("request_complete_conflict", request_id=request_id)
            raise ConflictError("Request was modified concurrently, please re-read it")

        updated = await self._reload(request_id)
        log.info("help_request_completed", request_id=request_id, rating=data.rating)
        await self._notify(updated, RequestEventType.REQUEST_COMPLETED, {"rating": data.rating})
        return updated

    async def cancel(self, request_id: str, caller: CallerIdentity) -> HelpRequest:
        """创建者取消请求（open 或 in_progress）

        Raises:
            AuthorizationError: 调用方不是创建者
            BusinessRuleError: 请求已在终态
            ConflictError: 条件写入失败
        """
        self._require_writer(caller)
        now = self._clock()

        request = await self._load_active(request_id, now)
        self._require_owner(caller, request)
        if not validate_transition(request.status, RequestStatus.CANCELLED):
            raise BusinessRuleError(
                f"Request cannot be cancelled from status {request.status.value}",
                rule="request_not_cancellable",
            )

        cancelled = await self._stores.request_store.cancel_request(
            request_id, request.status, now
        )
        if not cancelled:
            log.warning("request_cancel_conflict", request_id=request_id)
            raise ConflictError("Request was modified concurrently, please re-read it")

        updated = await self._reload(request_id)
        log.info(
            "help_request_cancelled",
            request_id=request_id,
            from_status=request.status.value,
        )
        await self._notify(
            updated,
            RequestEventType.REQUEST_CANCELLED,
            {"from_status": request.status.value},
        )
        return updated

    # ------------------------------------------------------------------
    # 读操作
    # ------------------------------------------------------------------

    async def get(
        self,
        request_id: str,
        *,
        count_view: bool = True,
    ) -> HelpRequest:
        """查询单个请求，默认浏览计数 +1

        Raises:
            NotFoundError: 请求不存在或已过期
        """
        now = self._clock()
        request = await self._load_active(request_id, now)
        if not count_view:
            return request
        await self._stores.request_store.increment_views(request_id, now)
        return request.model_copy(update={"views": request.views + 1})

    async def list_mine(self, caller: CallerIdentity) -> list[HelpRequest]:
        """调用方自己创建的请求，按创建时间倒序（含已过期与终态）"""
        pseudonym = self._require_identity(caller)
        return await self._stores.request_store.list_by_requester(pseudonym)

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    def _require_identity(self, caller: CallerIdentity | None) -> str:
        """派生调用方 pseudonym；无身份时 fail closed"""
        if caller is None or not caller.real_id:
            raise AuthenticationError()
        return self._anonymizer.derive(caller.real_id)

    def _require_writer(self, caller: CallerIdentity | None) -> str:
        """写路径：要求身份存在且邮箱已验证"""
        if caller is None or not caller.is_authenticated:
            raise AuthenticationError("Verified caller identity is required")
        return self._anonymizer.derive(caller.real_id)

    def _require_owner(self, caller: CallerIdentity, request: HelpRequest) -> None:
        if not self._anonymizer.is_owner(caller.real_id, request.requester_anonymous_id):
            log.info("owner_check_failed", request_id=request.request_id)
            raise AuthorizationError()

    @staticmethod
    def _check_can_respond(request: HelpRequest, responder_id: str) -> None:
        # 自我响应检查在状态检查之前：任何状态下都拒绝
        if responder_id == request.requester_anonymous_id:
            raise BusinessRuleError(
                "You cannot respond to your own request",
                rule="no_self_response",
            )
        if request.status != RequestStatus.OPEN:
            raise BusinessRuleError("Request is not open", rule="request_not_open")
        if request.has_response_from(responder_id):
            raise BusinessRuleError(
                "You have already responded to this request",
                rule="single_response_per_responder",
            )

    async def _load_active(self, request_id: str, now: datetime) -> HelpRequest:
        """读取请求；不存在或已过期一律视为 NotFound"""
        request = await self._stores.request_store.get_request(request_id)
        if request is None or request.is_expired(now):
            raise NotFoundError("Request", request_id)
        return request

    async def _reload(self, request_id: str) -> HelpRequest:
        request = await self._stores.request_store.get_request(request_id)
        if request is None:
            raise NotFoundError("Request", request_id)
        return request

    def _resolve_expiry(self, requested: datetime | None, now: datetime) -> datetime:
        """缺省为 now + TTL；自定义值必须在 (now, now + 最长 TTL] 之内"""
        if requested is None:
            return now + timedelta(hours=self._settings.request_ttl_hours)

        if requested.tzinfo is None:
            requested = requested.replace(tzinfo=UTC)
        latest = now + timedelta(hours=self._settings.max_request_ttl_hours)
        if requested <= now or requested > latest:
            raise ValidationError(
                "expires_at must be in the future and within "
                f"{self._settings.max_request_ttl_hours} hours",
                {"field": "expires_at"},
            )
        return requested.astimezone(UTC)

    async def _notify(
        self,
        request: HelpRequest,
        event_type: RequestEventType,
        payload: dict[str, Any],
    ) -> None:
        if self._sse_hub is None:
            return
        event = RequestEvent(
            event_id=str(ULID()),
            request_id=request.request_id,
            ts=self._clock(),
            type=event_type,
            status=request.status,
            payload=payload,
        )
        await self._sse_hub.publish(event)

