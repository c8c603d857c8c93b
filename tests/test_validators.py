"""
tests/test_validators.py
Unit tests for crudgen.validators (model checks run before generation).

Tests cover:
- A clean schema passing
- Duplicate names and slug collisions
- Invalid and reserved model names
- Duplicate and keyword field names
- ValidationResult behaviour (truthiness, merge, invalid_models, report)
"""

from __future__ import annotations

from typing import List

from crudgen.models import FieldDescriptor, ModelDescriptor
from crudgen.schema import parse_models
from crudgen.validators import (
    ValidationResult,
    validate_model_fields,
    validate_model_names,
    validate_models,
)


def _model(name: str, *field_names: str) -> ModelDescriptor:
    return ModelDescriptor(
        name=name,
        fields=tuple(FieldDescriptor(name=f, source_type="String") for f in field_names),
    )


# ===========================================================================
# Model names
# ===========================================================================


class TestModelNames:
    def test_clean_schema_is_valid(self, blog_models: List[ModelDescriptor]) -> None:
        result = validate_models(blog_models)
        assert result.is_valid
        assert bool(result) is True
        assert result.errors == []

    def test_duplicate_model_name(self) -> None:
        result = validate_model_names([_model("Post", "id"), _model("Post", "id")])
        assert "DUPLICATE_MODEL_NAME" in result.codes()
        assert result.invalid_models == {"Post"}

    def test_slug_collision(self) -> None:
        result = validate_model_names([_model("Post", "id"), _model("POST", "id")])
        assert result.codes() == ["SLUG_COLLISION"]
        assert result.invalid_models == {"POST"}

    def test_keyword_model_name(self) -> None:
        result = validate_model_names([_model("class", "id")])
        assert "INVALID_MODEL_NAME" in result.codes()

    def test_reserved_slugs(self) -> None:
        result = validate_model_names(
            [_model("Auth", "id"), _model("Common", "id"), _model("Metadata", "id")]
        )
        assert result.codes() == ["RESERVED_SLUG"] * 3
        assert result.invalid_models == {"Auth", "Common", "Metadata"}


# ===========================================================================
# Model fields
# ===========================================================================


class TestModelFields:
    def test_empty_model_warns(self) -> None:
        result = validate_model_fields([ModelDescriptor(name="Empty")])
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["EMPTY_MODEL"]

    def test_duplicate_field(self) -> None:
        result = validate_model_fields([_model("Post", "id", "title", "title")])
        assert [e.code for e in result.errors] == ["DUPLICATE_FIELD_NAME"]
        assert result.errors[0].context == {"model": "Post", "field": "title"}

    def test_keyword_field_warns_only(self) -> None:
        models = parse_models("model Lesson {\n  id Int @id\n  class String\n}\n")
        result = validate_model_fields(models)
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["FIELD_NAME_KEYWORD"]


# ===========================================================================
# ValidationResult
# ===========================================================================


class TestValidationResult:
    def test_merge_and_len(self) -> None:
        first = ValidationResult()
        first.add_warning("W", "warn")
        second = ValidationResult()
        second.add_error("E", "boom", {"model": "Post"})
        first.merge(second)
        assert len(first) == 2
        assert first.has_errors
        assert not first
        assert first.invalid_models == {"Post"}

    def test_errors_without_model_do_not_block_models(self) -> None:
        result = ValidationResult()
        result.add_error("E", "global problem")
        assert result.invalid_models == set()

    def test_report_lists_every_item(self) -> None:
        result = validate_models([_model("Post", "a", "a"), ModelDescriptor(name="Empty")])
        report = result.format_report()
        assert report.splitlines()[0] == "Validation: 1 error(s), 1 warning(s)."
        assert "[DUPLICATE_FIELD_NAME]" in report
        assert "[EMPTY_MODEL]" in report

    def test_only_invalid_models_are_blocked(self) -> None:
        result = validate_models([_model("Post", "id"), _model("Bad", "x", "x")])
        assert result.invalid_models == {"Bad"}
