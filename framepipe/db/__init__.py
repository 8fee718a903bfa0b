"""
Database support: SQL dialects and the relational connection collaborator.
"""

from .dialect import (
    Dialect,
    DialectRegistry,
    NativeType,
    map_native_value,
    sql_literal,
)

__all__ = [
    "Dialect",
    "DialectRegistry",
    "NativeType",
    "map_native_value",
    "sql_literal",
]
