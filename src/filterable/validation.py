"""
Input validation for filter values, backed by pydantic.

Rules are pydantic annotations keyed by filter key::

    filter.set_validation_rules({
        "status": Literal["active", "inactive"],
        "age": Annotated[int, Field(ge=0)],
        "name": Annotated[str, Field(max_length=20)],
    })

Only keys that have a rule *and* an active value are validated. Custom
messages replace pydantic's, either per field (``"age"``) or per field and
error type (``"age.greater_than_equal"``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import ConfigDict, Field, create_model
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping


def default_errors_factory() -> dict[str, list[str]]:
    return {}


@dataclass
class ValidationResult:
    """Collects field-level validation errors.

    Usage::

        result = ValidationResult.success()
        result = ValidationResult.failure({"age": ["must be positive"]})
    """

    errors: dict[str, list[str]] = field(default_factory=default_errors_factory)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    @classmethod
    def success(cls) -> ValidationResult:
        return cls()

    @classmethod
    def failure(cls, errors: dict[str, list[str]]) -> ValidationResult:
        return cls(errors=errors)

    def add_error(self, field_name: str, message: str) -> None:
        self.errors.setdefault(field_name, []).append(message)

    def raise_for_errors(self) -> None:
        if not self.is_valid:
            raise ValidationError(self.errors)

    def __bool__(self) -> bool:
        return self.is_valid


class FilterValidator:
    """Validates active filter values against per-key pydantic rules."""

    def __init__(self) -> None:
        self.rules: dict[str, Any] = {}
        self.messages: dict[str, str] = {}

    def set_rules(self, rules: Mapping[str, Any]) -> None:
        self.rules = dict(rules)

    def add_rule(self, key: str, rule: Any) -> None:
        self.rules[key] = rule

    def set_messages(self, messages: Mapping[str, str]) -> None:
        self.messages = dict(messages)

    def validate(self, filterables: Mapping[str, Any]) -> ValidationResult:
        """Validate the subset of *filterables* that has rules."""
        to_validate = {k: v for k, v in filterables.items() if k in self.rules}
        if not to_validate:
            return ValidationResult.success()

        model = self._build_model(list(to_validate))
        try:
            model.model_validate(to_validate)
        except PydanticValidationError as exc:
            result = ValidationResult()
            for error in exc.errors():
                loc = error.get("loc") or ("__root__",)
                field_name = str(loc[0])
                result.add_error(field_name, self._message_for(field_name, error))
            return result
        return ValidationResult.success()

    def _build_model(self, keys: list[str]) -> type[Any]:
        # Input keys need not be identifiers; fields are positional with aliases.
        definitions: dict[str, Any] = {}
        for index, key in enumerate(keys):
            rule = self.rules[key]
            annotation, default = rule if isinstance(rule, tuple) else (rule, ...)
            definitions[f"field_{index}"] = (
                Annotated[annotation, Field(alias=key)],
                default,
            )
        return create_model(  # type: ignore[call-overload,no-any-return]
            "FilterInput",
            __config__=ConfigDict(extra="ignore", arbitrary_types_allowed=True),
            **definitions,
        )

    def _message_for(self, field_name: str, error: Mapping[str, Any]) -> str:
        error_type = str(error.get("type", ""))
        specific = self.messages.get(f"{field_name}.{error_type}")
        if specific is not None:
            return specific
        return self.messages.get(field_name, str(error.get("msg", "validation error")))
