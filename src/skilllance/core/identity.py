"""匿名身份派生

pseudonym = HMAC-SHA256(salt, real_user_id) 的 hex 摘要截断到 ANON_ID_LENGTH。
纯函数、确定性、不可逆；不存在 decode 操作。
鉴权一律通过重新派生调用方 pseudonym 并与资源上存储的值比较完成。
"""

import hashlib
import hmac

from .config import ANON_ID_LENGTH
from .exceptions import AuthenticationError


def derive_anonymous_id(real_user_id: str | None, salt: str) -> str:
    """从真实用户 ID 派生匿名 ID

    Args:
        real_user_id: 身份提供方给出的稳定用户 ID
        salt: 服务端密钥

    Returns:
        固定长度的 hex 字符串

    Raises:
        AuthenticationError: real_user_id 为空（fail closed）
    """
    if not real_user_id:
        raise AuthenticationError("Caller identity is required")
    digest = hmac.new(
        salt.encode("utf-8"),
        real_user_id.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return digest[:ANON_ID_LENGTH]


class IdentityAnonymizer:
    """绑定服务端 salt 的匿名 ID 派生器"""

    def __init__(self, salt: str) -> None:
        if not salt:
            raise ValueError("anonymizer salt must not be empty")
        self._salt = salt

    def derive(self, real_user_id: str | None) -> str:
        return derive_anonymous_id(real_user_id, self._salt)

    def is_owner(self, real_user_id: str | None, stored_pseudonym: str) -> bool:
        """重新派生调用方 pseudonym 并与存储值做常量时间比较

        real_user_id 为空时返回 False（读路径的匿名访客）。
        """
        if not real_user_id:
            return False
        return hmac.compare_digest(self.derive(real_user_id), stored_pseudonym)
