"""
RegexValidator - validates field values against a regular expression pattern.
"""

import re
from typing import Any

from pydantic import field_validator

from framepipe.core.exceptions import ValidationFailure
from framepipe.core.frame import Frame

from .base_validator import AbstractValidator, ValidatorConfig


class RegexConfig(ValidatorConfig):
    pattern: str
    ignore_case: bool = False

    @field_validator("pattern")
    @classmethod
    def compiles(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid regex pattern: {e}")
        return v


class RegexValidator(AbstractValidator):
    """
    Validates that a field value matches a regular expression.

    Null values pass; pair with RequiredFieldValidator to reject them.
    """

    config_model = RegexConfig
    rule_type = "regex"

    def configure(self, config):
        super().configure(config)
        flags = re.IGNORECASE if self.settings.ignore_case else 0
        self.pattern = re.compile(self.settings.pattern, flags)

    def check(self, value: Any, frame: Frame) -> None:
        if value is None:
            return

        text = value if isinstance(value, str) else str(value)
        if not self.pattern.match(text):
            raise ValidationFailure(
                self.rule_type,
                self.field_name,
                f"Value '{text}' does not match pattern '{self.pattern.pattern}'"
            )
