"""
TypeValidator - validates that a field holds (or converts to) a field type.
"""

from typing import Any

from pydantic import field_validator

from framepipe.core.exceptions import ValidationFailure
from framepipe.core.frame import FieldType, Frame

from .base_validator import AbstractValidator, ValidatorConfig

TYPE_ALIASES = {
    "integer": FieldType.S64,
    "int": FieldType.S64,
    "long": FieldType.S64,
    "decimal": FieldType.DBL,
    "float": FieldType.DBL,
    "double": FieldType.DBL,
    "string": FieldType.STR,
    "str": FieldType.STR,
    "boolean": FieldType.BOL,
    "bool": FieldType.BOL,
    "date": FieldType.DAT,
    "datetime": FieldType.DAT,
}

_INTEGERS = {FieldType.S8, FieldType.U8, FieldType.S16, FieldType.U16,
             FieldType.S32, FieldType.U32, FieldType.S64, FieldType.U64}
_FLOATS = {FieldType.FLT, FieldType.DBL}


def resolve_type(name: str) -> FieldType:
    alias = TYPE_ALIASES.get(name.strip().lower())
    return alias if alias is not None else FieldType.from_name(name)


class TypeConfig(ValidatorConfig):
    expected_type: str
    coerce: bool = True

    @field_validator("expected_type")
    @classmethod
    def known_type(cls, v: str) -> str:
        resolve_type(v)
        return v


class TypeValidator(AbstractValidator):
    """
    Checks the type of a field.

    With ``coerce`` (the default) the value passes when it converts to the
    expected type, e.g. "99.99" for a double. Without it the value must
    already be of the same type family. Null values pass.
    """

    config_model = TypeConfig
    rule_type = "type"

    def configure(self, config):
        super().configure(config)
        self.expected = resolve_type(self.settings.expected_type)

    def _same_family(self, actual: FieldType) -> bool:
        if actual == self.expected:
            return True
        if actual in _INTEGERS and self.expected in _INTEGERS:
            return True
        return actual in _FLOATS and self.expected in _FLOATS

    def check(self, value: Any, frame: Frame) -> None:
        if value is None:
            return

        if self.settings.coerce:
            try:
                self.expected.convert(value)
            except (TypeError, ValueError) as e:
                raise ValidationFailure(
                    self.rule_type,
                    self.field_name,
                    f"Cannot convert '{value}' to {self.expected.name}: {e}"
                ) from None
            return

        actual = FieldType.of(value)
        if not self._same_family(actual):
            raise ValidationFailure(
                self.rule_type,
                self.field_name,
                f"Expected {self.expected.name}, got {actual.name}"
            )
