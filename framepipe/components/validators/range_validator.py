"""
RangeValidator - validates numeric values are within a specified range.
"""

from typing import Any

from pydantic import model_validator

from framepipe.core.exceptions import ValidationFailure
from framepipe.core.frame import Frame

from .base_validator import AbstractValidator, ValidatorConfig


class RangeConfig(ValidatorConfig):
    min: float | None = None
    max: float | None = None
    min_exclusive: float | None = None
    max_exclusive: float | None = None

    @model_validator(mode="after")
    def has_boundary(self) -> "RangeConfig":
        if all(v is None for v in (self.min, self.max, self.min_exclusive, self.max_exclusive)):
            raise ValueError("Range requires at least one of: min, max, min_exclusive, max_exclusive")
        return self


class RangeValidator(AbstractValidator):
    """
    Validates that a numeric field is within a range.

    Numeric strings are accepted; null values pass.
    """

    config_model = RangeConfig
    rule_type = "range"

    def check(self, value: Any, frame: Frame) -> None:
        if value is None:
            return

        if isinstance(value, bool):
            raise ValidationFailure(self.rule_type, self.field_name, "Value must be numeric, got bool")
        if not isinstance(value, (int, float)):
            try:
                value = float(str(value))
            except ValueError:
                raise ValidationFailure(
                    self.rule_type,
                    self.field_name,
                    f"Value must be numeric, got {type(value).__name__}"
                ) from None

        s = self.settings
        if s.min is not None and value < s.min:
            raise ValidationFailure(self.rule_type, self.field_name, f"Value {value} is less than minimum {s.min}")
        if s.min_exclusive is not None and value <= s.min_exclusive:
            raise ValidationFailure(self.rule_type, self.field_name, f"Value {value} must be greater than {s.min_exclusive}")
        if s.max is not None and value > s.max:
            raise ValidationFailure(self.rule_type, self.field_name, f"Value {value} exceeds maximum {s.max}")
        if s.max_exclusive is not None and value >= s.max_exclusive:
            raise ValidationFailure(self.rule_type, self.field_name, f"Value {value} must be less than {s.max_exclusive}")
