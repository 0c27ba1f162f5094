"""请求生命周期异常体系

所有业务异常继承 SkillLanceError，由 gateway 统一映射为 HTTP 响应。
code / http_status 为类属性，错误响应体形如
{"error": {"code": ..., "message": ..., "details": {...}}}。
"""

from typing import Any


class SkillLanceError(Exception):
    """基础异常"""

    code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Args:
            message: 面向调用方的错误描述
            details: 可选的结构化补充信息（字段级错误等）
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(SkillLanceError):
    """输入格式错误或越界（与数据模型字段约束一一对应）"""

    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(
        self,
        message: str = "Invalid input data",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)


class BusinessRuleError(ValidationError):
    """输入形状合法但状态流转不合法（请求未开放、自我响应、重复响应等）"""

    code = "BUSINESS_RULE_VIOLATION"
    http_status = 422

    def __init__(self, message: str, rule: str | None = None) -> None:
        super().__init__(message, {"rule": rule} if rule else None)
        self.rule = rule


class AuthenticationError(SkillLanceError):
    """写路径缺少调用方身份（或邮箱未验证）"""

    code = "AUTHENTICATION_REQUIRED"
    http_status = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class AuthorizationError(SkillLanceError):
    """调用方派生 ID 与资源创建者不一致

    消息保持通用，不透露资源归属。
    """

    code = "FORBIDDEN"
    http_status = 403

    def __init__(
        self,
        message: str = "Only the request creator can perform this action",
    ) -> None:
        super().__init__(message)


class NotFoundError(SkillLanceError):
    """资源不存在或已过期"""

    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str = "Request", resource_id: str | None = None) -> None:
        if resource_id is not None:
            message = f"{resource} with id {resource_id} does not exist"
        else:
            message = f"{resource} does not exist"
        super().__init__(message, {"resource": resource})
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(SkillLanceError):
    """条件写入前提失败（并发竞争落败）

    调用方应重新读取以获知胜者，而不是重试写入。
    """

    code = "CONFLICT"
    http_status = 409

    def __init__(self, message: str = "Resource was modified concurrently") -> None:
        super().__init__(message)


class RateLimitError(SkillLanceError):
    """超出限流配额"""

    code = "RATE_LIMITED"
    http_status = 429

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        """
        Args:
            retry_after: 建议重试等待秒数（>= 1）
            message: 可选的自定义描述
        """
        retry_after = max(1, int(retry_after))
        super().__init__(
            message or f"Rate limit exceeded, retry after {retry_after}s",
            {"retry_after": retry_after},
        )
        self.retry_after = retry_after
