"""
Symbol table used for template substitution across a job run.
"""

from typing import Any


class SymbolTable(dict[str, Any]):
    """
    Mapping of symbol name to scalar value.

    A plain dict with a few conveniences; the whole job shares one
    instance through its TransformContext.
    """

    def get_string(self, name: str, default: str = "") -> str:
        value = self.get(name)
        return default if value is None else str(value)

    def merge(self, values: dict[str, Any] | None) -> "SymbolTable":
        """Copy values into this table, overwriting existing symbols."""
        if values:
            self.update(values)
        return self
