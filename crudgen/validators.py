# File: crudgen/validators.py
"""
crudgen - Model Validators
===========================
Semantic checks run on parsed ``ModelDescriptor`` values before any file is
generated.

The schema reader is deliberately lenient; this module catches the cases
that would produce broken Python or clashing files:

- two models with the same name, or names that collapse to the same slug;
- model names that are not identifiers (they become class names);
- slugs claimed by the built-in ``auth`` and ``metadata`` routers;
- duplicate field names inside a model.

Errors carry the offending model in their context so the generator can
skip just that model.  Warnings are informational.

Usage::

    result = validate_models(models)
    if result.has_errors:
        blocked = result.invalid_models
"""

from __future__ import annotations

import keyword
import logging
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Set

from crudgen.models import ModelDescriptor
from crudgen.utils import is_identifier

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight issue descriptor (no pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    @property
    def model(self) -> Optional[str]:
        return self.context.get("model")

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()


class ValidationResult:
    """Accumulates ``ValidationError`` instances produced by the checks."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def invalid_models(self) -> Set[str]:
        """Names of models with at least one error."""
        return {e.model for e in self._items if e.is_error and e.model}

    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self) -> str:
        lines: List[str] = [self.summary()]
        for item in self._items:
            prefix: str = "error" if item.is_error else "warning"
            lines.append(f"  {prefix} [{item.code}] {item.message}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# auth and metadata are built-in routers; common is app/validation/common.py.
RESERVED_SLUGS: FrozenSet[str] = frozenset({"auth", "common", "metadata"})


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def validate_model_names(models: Sequence[ModelDescriptor]) -> ValidationResult:
    """
    Check every model name for:
    - duplicates (exact name);
    - slug collisions between distinct names (``Post`` / ``POST``);
    - identifier format and Python keywords;
    - slugs reserved by built-in routers.
    """
    result: ValidationResult = ValidationResult()
    seen_names: Set[str] = set()
    slug_owner: Dict[str, str] = {}

    for model in models:
        name: str = model.name
        ctx: Dict[str, Any] = {"model": name}

        if name in seen_names:
            result.add_error(
                "DUPLICATE_MODEL_NAME",
                f"Model '{name}' is defined more than once.",
                ctx,
            )
            continue
        seen_names.add(name)

        owner: Optional[str] = slug_owner.get(model.slug)
        if owner is not None:
            result.add_error(
                "SLUG_COLLISION",
                f"Models '{owner}' and '{name}' both map to '/{model.slug}'.",
                ctx,
            )
        else:
            slug_owner[model.slug] = name

        if not is_identifier(name) or keyword.iskeyword(name):
            result.add_error(
                "INVALID_MODEL_NAME",
                f"Model name '{name}' is not a valid Python identifier.",
                ctx,
            )

        if model.slug in RESERVED_SLUGS:
            result.add_error(
                "RESERVED_SLUG",
                f"Model '{name}' maps to the reserved name '{model.slug}' "
                f"(built-in router or shared module).",
                ctx,
            )

    logger.debug("validate_model_names: checked %d model(s), %d issue(s).", len(models), len(result))
    return result


def validate_model_fields(models: Sequence[ModelDescriptor]) -> ValidationResult:
    result: ValidationResult = ValidationResult()

    for model in models:
        if not model.fields:
            result.add_warning(
                "EMPTY_MODEL",
                f"Model '{model.name}' has no fields; its request bodies will be empty.",
                {"model": model.name},
            )
            continue

        seen: Set[str] = set()
        for f in model.fields:
            ctx: Dict[str, Any] = {"model": model.name, "field": f.name}
            if f.name in seen:
                result.add_error(
                    "DUPLICATE_FIELD_NAME",
                    f"Field '{f.name}' is declared twice in model '{model.name}'.",
                    ctx,
                )
            seen.add(f.name)

            if keyword.iskeyword(f.name):
                result.add_warning(
                    "FIELD_NAME_KEYWORD",
                    f"Field '{model.name}.{f.name}' is a Python keyword; "
                    f"it will be aliased in the validation schema.",
                    ctx,
                )

    return result


def validate_models(models: Sequence[ModelDescriptor]) -> ValidationResult:
    """
    Run all model checks and return the merged result.

    This is the single entry point ``generator.py`` calls before generating.
    """
    result: ValidationResult = ValidationResult()
    validators: List[Callable[[Sequence[ModelDescriptor]], ValidationResult]] = [
        validate_model_names,
        validate_model_fields,
    ]
    for validator_fn in validators:
        logger.debug("Running validator: %s", validator_fn.__name__)
        result.merge(validator_fn(models))

    for item in result.warnings:
        logger.warning("%s", item.message)
    logger.info("Model validation complete: %s", result.summary())
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationError",
    "ValidationResult",
    "RESERVED_SLUGS",
    "validate_model_names",
    "validate_model_fields",
    "validate_models",
]

logger.debug("crudgen.validators loaded.")
