"""写操作输入 payload -- 字段约束与 HelpRequest / HelpResponse 一一对应

pydantic 校验失败由服务层转换为 ValidationError。
"""

from datetime import datetime
from typing import Annotated, TypeVar

import pydantic
from pydantic import BaseModel, Field, StringConstraints, field_validator, model_validator

from ..exceptions import ValidationError
from .enums import CreatedFrom, UrgencyLevel

PayloadT = TypeVar("PayloadT", bound=BaseModel)

SkillName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
TagName = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_lower=True, min_length=1, max_length=30),
]


def _dedupe(values: list[str]) -> list[str]:
    """保持顺序去重"""
    return list(dict.fromkeys(values))


class CreateRequestPayload(BaseModel):
    """创建求助请求"""

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    skills_needed: list[SkillName] = Field(min_length=1, max_length=20)
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    estimated_time: int = Field(ge=1, le=240, description="预计耗时（小时）")
    is_remote: bool = True
    college_hint: str | None = Field(default=None, max_length=100)
    tags: list[TagName] = Field(default_factory=list, max_length=10)
    expires_at: datetime | None = Field(
        default=None,
        description="自定义过期时间，缺省为 now + TTL",
    )
    created_from: CreatedFrom = CreatedFrom.WEB

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("college_hint", mode="before")
    @classmethod
    def _blank_hint_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("skills_needed", "tags")
    @classmethod
    def _unique(cls, value: list[str]) -> list[str]:
        return _dedupe(value)


class UpdateRequestPayload(BaseModel):
    """修改 open 请求的内容字段（只写入显式提供的字段）

    college_hint 显式传空值表示清除；其余字段不接受 null。
    """

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=2000)
    skills_needed: list[SkillName] | None = Field(default=None, min_length=1, max_length=20)
    urgency_level: UrgencyLevel | None = None
    estimated_time: int | None = Field(default=None, ge=1, le=240)
    is_remote: bool | None = None
    college_hint: str | None = Field(default=None, max_length=100)
    tags: list[TagName] | None = Field(default=None, max_length=10)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("college_hint", mode="before")
    @classmethod
    def _blank_hint_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("skills_needed", "tags")
    @classmethod
    def _unique(cls, value: list[str] | None) -> list[str] | None:
        return _dedupe(value) if value is not None else None

    @model_validator(mode="after")
    def _check_changes(self) -> "UpdateRequestPayload":
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        for name in self.model_fields_set - {"college_hint"}:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        """显式提供的字段 -> 新值"""
        return {name: getattr(self, name) for name in self.model_fields_set}


class RespondPayload(BaseModel):
    """提交响应"""

    message: str = Field(min_length=10, max_length=1000)
    proposed_solution: str | None = Field(default=None, max_length=2000)
    estimated_time: int = Field(ge=1, le=240)

    @field_validator("message", mode="before")
    @classmethod
    def _strip_message(cls, value):
        return value.strip() if isinstance(value, str) else value


class CompletePayload(BaseModel):
    """完成请求"""

    rating: int = Field(ge=1, le=5)
    feedback: str | None = Field(default=None, max_length=1000)


def parse_payload(model: type[PayloadT], payload: PayloadT | dict) -> PayloadT:
    """将 dict 校验为 payload 模型，pydantic 校验失败转换为 ValidationError

    已是模型实例时原样返回（HTTP 层已由 FastAPI 校验）。
    """
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(
            details={
                "errors": e.errors(
                    include_url=False,
                    include_context=False,
                    include_input=False,
                )
            }
        ) from e
