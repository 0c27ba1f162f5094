"""匿名头像

头像只是颜色/形状/图案的随机组合，与身份无关：同一用户在不同请求、
不同响应上拿到的头像互相独立，不能用于关联 pseudonym。
"""

import secrets

from pydantic import BaseModel, Field

AVATAR_COLORS = ("#4F46E5", "#7C3AED", "#DC2626", "#059669", "#D97706", "#2563EB")
AVATAR_SHAPES = ("circle", "square", "triangle", "hexagon")
AVATAR_PATTERNS = ("solid", "gradient", "dots", "stripes")


class AnonymousAvatar(BaseModel):
    """展示用匿名头像"""

    color: str = Field(description="十六进制颜色")
    shape: str = Field(description="形状")
    pattern: str = Field(description="填充图案")


def generate_avatar() -> AnonymousAvatar:
    """随机生成头像（不依赖任何调用方输入）"""
    return AnonymousAvatar(
        color=secrets.choice(AVATAR_COLORS),
        shape=secrets.choice(AVATAR_SHAPES),
        pattern=secrets.choice(AVATAR_PATTERNS),
    )
