"""ResponseShaper -- 出站数据整形

在任何 HelpRequest 离开服务之前：
- 去除仅用于限流/反滥用的字段（client_fingerprint、user_agent）
- 有调用方身份时标注 is_own_request / is_own_response（重新派生后比较）
- 报告有效状态（过期的活跃请求显示为 expired）与剩余秒数
- 匿名访客只拿到精简视图：无匿名 ID、无响应正文、无评分反馈
"""

import hmac
from datetime import UTC, datetime
from typing import Any

from skilllance.core.identity import IdentityAnonymizer
from skilllance.core.models import CallerIdentity, HelpRequest

# 永不对外输出
_INTERNAL_FIELDS = {"client_fingerprint", "user_agent"}

# 匿名访客额外隐藏
_MEMBER_ONLY_FIELDS = {"requester_anonymous_id", "responses", "rating", "feedback"}


class ResponseShaper:
    """HelpRequest -> 对外 dict"""

    def __init__(self, anonymizer: IdentityAnonymizer) -> None:
        self._anonymizer = anonymizer

    def _viewer_id(self, caller: CallerIdentity | None) -> str | None:
        if caller is None or not caller.real_id:
            return None
        return self._anonymizer.derive(caller.real_id)

    def shape(
        self,
        request: HelpRequest,
        caller: CallerIdentity | None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """整形单个请求"""
        return self._shape(request, self._viewer_id(caller), now or datetime.now(UTC))

    def shape_many(
        self,
        requests: list[HelpRequest],
        caller: CallerIdentity | None,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """整形请求列表（调用方 pseudonym 只派生一次）"""
        viewer_id = self._viewer_id(caller)
        now = now or datetime.now(UTC)
        return [self._shape(r, viewer_id, now) for r in requests]

    @staticmethod
    def _shape(request: HelpRequest, viewer_id: str | None, now: datetime) -> dict[str, Any]:
        exclude = set(_INTERNAL_FIELDS)
        if viewer_id is None:
            exclude |= _MEMBER_ONLY_FIELDS

        data = request.model_dump(mode="json", exclude=exclude)
        data["status"] = request.effective_status(now).value
        data["time_remaining_seconds"] = max(
            0, int((request.expires_at - now).total_seconds())
        )

        if viewer_id is None:
            return data

        data["is_own_request"] = hmac.compare_digest(
            viewer_id, request.requester_anonymous_id
        )
        for shaped, response in zip(data["responses"], request.responses, strict=True):
            shaped["is_own_response"] = hmac.compare_digest(
                viewer_id, response.responder_anonymous_id
            )
        return data
