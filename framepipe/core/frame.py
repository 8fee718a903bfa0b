"""
Frame data model.

A Frame is an ordered mapping of field name to typed value. Field types
come from a closed enumeration whose integer tags are also what the
persisted context stores alongside each value.
"""

from collections.abc import Iterator, Mapping
from datetime import date, datetime
from enum import IntEnum
from typing import Any

from .exceptions import FrameLockedError

_S32_MIN = -(2**31)
_S32_MAX = 2**31 - 1


class FieldType(IntEnum):
    """
    Frame field types.

    The member names double as the abstract type tags used by the SQL
    dialect type maps (e.g. "S32" -> "INTEGER").
    """

    NUL = 0
    BOL = 1
    STR = 3
    S8 = 4
    U8 = 5
    S16 = 6
    U16 = 7
    S32 = 8
    U32 = 9
    S64 = 10
    U64 = 11
    FLT = 12
    DBL = 13
    DAT = 14

    @classmethod
    def of(cls, value: Any) -> "FieldType":
        """
        Infer the field type of a Python value.

        Raises:
            TypeError: If the value has no frame representation
        """
        if value is None:
            return cls.NUL
        # bool is a subclass of int, check it first
        if isinstance(value, bool):
            return cls.BOL
        if isinstance(value, int):
            return cls.S32 if _S32_MIN <= value <= _S32_MAX else cls.S64
        if isinstance(value, float):
            return cls.DBL
        if isinstance(value, str):
            return cls.STR
        if isinstance(value, (datetime, date)):
            return cls.DAT
        raise TypeError(f"Unsupported frame value type: {type(value).__name__}")

    @classmethod
    def from_name(cls, name: str) -> "FieldType":
        """Look up a type by its tag name, case-insensitive."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown field type: {name}") from None

    def convert(self, value: Any) -> Any:
        """
        Convert a value into the Python representation of this type.

        Strings are parsed; dates accept ISO-8601 text.

        Raises:
            ValueError: If the value cannot be converted
        """
        if value is None or self is FieldType.NUL:
            return None
        if self is FieldType.STR:
            if isinstance(value, (datetime, date)):
                return value.isoformat()
            if isinstance(value, bool):
                return "true" if value else "false"
            return str(value)
        if self is FieldType.BOL:
            if isinstance(value, bool):
                return value
            if isinstance(value, (int, float)):
                return value != 0
            text = str(value).strip().lower()
            if text in ("true", "t", "yes", "y", "1"):
                return True
            if text in ("false", "f", "no", "n", "0"):
                return False
            raise ValueError(f"Cannot convert '{value}' to boolean")
        if self in (FieldType.FLT, FieldType.DBL):
            return float(value)
        if self is FieldType.DAT:
            if isinstance(value, datetime):
                return value
            if isinstance(value, date):
                return datetime(value.year, value.month, value.day)
            return datetime.fromisoformat(str(value).strip())
        # integer family
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"Cannot convert '{value}' to integer without loss")
            return int(value)
        return int(str(value).strip()) if not isinstance(value, int) else int(value)


class Frame:
    """
    Ordered mapping of field name to value.

    Setting an existing field replaces its value in place. Once frozen
    (as it is before being handed to writers) any mutation raises
    FrameLockedError.
    """

    def __init__(self, fields: Mapping[str, Any] | None = None):
        self._fields: dict[str, Any] = {}
        self._types: dict[str, FieldType] = {}
        self._frozen = False
        if fields:
            for name, value in fields.items():
                self.put(name, value)

    def _check_mutable(self) -> None:
        if self._frozen:
            raise FrameLockedError("Frame is frozen and cannot be modified")

    def put(self, name: str, value: Any, field_type: FieldType | None = None) -> None:
        """
        Set a field, converting the value when an explicit type is given.
        """
        self._check_mutable()
        if not name:
            raise ValueError("Field name must be a non-empty string")
        if field_type is None:
            field_type = FieldType.of(value)
        else:
            value = field_type.convert(value)
        self._fields[name] = value
        self._types[name] = field_type

    def get(self, name: str, default: Any = None) -> Any:
        return self._fields.get(name, default)

    def get_type(self, name: str) -> FieldType | None:
        return self._types.get(name)

    def remove(self, name: str) -> Any:
        self._check_mutable()
        self._types.pop(name, None)
        return self._fields.pop(name, None)

    def contains(self, name: str) -> bool:
        return name in self._fields

    @property
    def field_names(self) -> list[str]:
        return list(self._fields)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "Frame":
        self._frozen = True
        return self

    def copy(self) -> "Frame":
        """Return an unfrozen copy with the same fields and types."""
        clone = Frame()
        clone._fields = dict(self._fields)
        clone._types = dict(self._types)
        return clone

    def to_dict(self) -> dict[str, Any]:
        return dict(self._fields)

    def __getitem__(self, name: str) -> Any:
        return self._fields[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.put(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return list(self._fields.items()) == list(other._fields.items())

    def __repr__(self) -> str:
        return f"Frame({self._fields!r})"
