"""
Frame validators.
"""

from .base_validator import AbstractValidator, ValidatorConfig
from .range_validator import RangeValidator
from .regex_validator import RegexValidator
from .required_field_validator import RequiredFieldValidator
from .type_validator import TypeValidator

__all__ = [
    "AbstractValidator",
    "ValidatorConfig",
    "RequiredFieldValidator",
    "TypeValidator",
    "RangeValidator",
    "RegexValidator",
]
