"""
RequiredFieldValidator - ensures a field is present and not null/empty.
"""

from typing import Any

from framepipe.core.exceptions import ValidationFailure
from framepipe.core.frame import Frame

from .base_validator import AbstractValidator, ValidatorConfig


class RequiredFieldConfig(ValidatorConfig):
    allow_empty_string: bool = False


class RequiredFieldValidator(AbstractValidator):
    """
    Fails if:
    - Field is missing from the frame
    - Field value is None
    - Field value is a blank string (unless allow_empty_string)
    """

    config_model = RequiredFieldConfig
    rule_type = "required"

    def check(self, value: Any, frame: Frame) -> None:
        if not frame.contains(self.field_name):
            raise ValidationFailure(self.rule_type, self.field_name, "Field is missing from frame")

        if value is None:
            raise ValidationFailure(self.rule_type, self.field_name, "Field value is null")

        if not self.settings.allow_empty_string and isinstance(value, str) and value.strip() == "":
            raise ValidationFailure(self.rule_type, self.field_name, "Field value is empty string")
