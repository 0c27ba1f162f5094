"""payload 校验测试 -- 字段约束与数据模型一一对应"""

import pytest
from skilllance.core.exceptions import ValidationError
from skilllance.core.models import (
    CompletePayload,
    CreateRequestPayload,
    RespondPayload,
    UpdateRequestPayload,
    UrgencyLevel,
    parse_payload,
)


class TestCreateRequestPayload:
    def test_defaults_and_normalization(self, create_payload: dict):
        create_payload.update(
            title="  Padded title  ",
            skills_needed=["react", "react", " css "],
            tags=["Frontend", "frontend", "Hooks"],
            college_hint="   ",
        )
        data = parse_payload(CreateRequestPayload, create_payload)
        assert data.title == "Padded title"
        assert data.skills_needed == ["react", "css"]
        assert data.tags == ["frontend", "hooks"]
        assert data.college_hint is None
        assert data.is_remote is True
        assert data.urgency_level == UrgencyLevel.HIGH

    @pytest.mark.parametrize(
        "field,value",
        [
            ("title", ""),
            ("title", "   "),
            ("title", "x" * 201),
            ("description", "y" * 2001),
            ("skills_needed", []),
            ("skills_needed", [f"skill-{i}" for i in range(21)]),
            ("estimated_time", 0),
            ("estimated_time", 241),
            ("urgency_level", "critical"),
            ("tags", [f"tag{i}" for i in range(11)]),
            ("tags", ["t" * 31]),
            ("college_hint", "c" * 101),
        ],
    )
    def test_out_of_range_fields_rejected(self, create_payload: dict, field, value):
        create_payload[field] = value
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(CreateRequestPayload, create_payload)
        assert exc_info.value.code == "VALIDATION_ERROR"
        assert exc_info.value.details["errors"]

    def test_model_instance_passes_through(self, create_payload: dict):
        model = CreateRequestPayload(**create_payload)
        assert parse_payload(CreateRequestPayload, model) is model


class TestRespondPayload:
    @pytest.mark.parametrize("message", ["too short", "m" * 1001])
    def test_message_bounds(self, message):
        with pytest.raises(ValidationError):
            parse_payload(RespondPayload, {"message": message, "estimated_time": 1})

    def test_message_is_trimmed_before_length_check(self):
        with pytest.raises(ValidationError):
            parse_payload(RespondPayload, {"message": "   short   ", "estimated_time": 1})


class TestCompletePayload:
    @pytest.mark.parametrize("rating", [0, 6])
    def test_rating_bounds(self, rating):
        with pytest.raises(ValidationError):
            parse_payload(CompletePayload, {"rating": rating})

    def test_feedback_optional(self):
        assert parse_payload(CompletePayload, {"rating": 5}).feedback is None


class TestUpdateRequestPayload:
    def test_changes_only_contains_provided_fields(self):
        data = parse_payload(
            UpdateRequestPayload,
            {"title": "  Sharper title ", "tags": ["SQL", "sql"], "college_hint": ""},
        )
        assert data.changes() == {
            "title": "Sharper title",
            "tags": ["sql"],
            "college_hint": None,
        }

    def test_empty_update_rejected(self):
        with pytest.raises(ValidationError):
            parse_payload(UpdateRequestPayload, {})

    @pytest.mark.parametrize("field", ["title", "skills_needed", "estimated_time"])
    def test_explicit_null_rejected_for_required_content(self, field):
        with pytest.raises(ValidationError):
            parse_payload(UpdateRequestPayload, {field: None})

    def test_same_bounds_as_create(self):
        with pytest.raises(ValidationError):
            parse_payload(UpdateRequestPayload, {"skills_needed": []})
        with pytest.raises(ValidationError):
            parse_payload(UpdateRequestPayload, {"estimated_time": 241})
