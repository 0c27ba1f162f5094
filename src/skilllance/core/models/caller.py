"""CallerIdentity -- 身份提供方给出的调用方信息

每次调用派生一次，core 从不持久化 real_id。
"""

from pydantic import BaseModel, Field


class CallerIdentity(BaseModel):
    """调用方身份"""

    real_id: str | None = Field(default=None, description="身份提供方的稳定用户 ID")
    email_verified: bool = Field(default=False, description="邮箱是否已验证")

    @property
    def is_authenticated(self) -> bool:
        """写路径要求：有 real_id 且邮箱已验证"""
        return bool(self.real_id) and self.email_verified


ANONYMOUS_CALLER = CallerIdentity()
