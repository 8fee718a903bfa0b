"""
SQL dialects for the databases the engine can target.

Each database product is described by two read-only maps: abstract field
types to native column types, and command names to statement templates.
Statements are produced by rendering those templates against a symbol
table, so supporting another product means registering another Dialect,
never touching the rendering code.
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import IntEnum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from framepipe.core.models import ColumnSpec
from framepipe.core.symbols import SymbolTable
from framepipe.core.template import render
from framepipe.observability.logger import get_logger

logger = get_logger(__name__)

# Symbols the templates expect to find
TABLE_NAME_SYM = "tableName"
DB_SCHEMA_SYM = "schemaName"
FIELD_DEFINITIONS_SYM = "fielddefinitions"
FIELD_NAMES_SYM = "fieldnames"
FIELD_VALUES_SYM = "fieldvalues"
FIELD_MAP_SYM = "fieldmap"
CONDITION_SYM = "condition"
INDEX_NAME_SYM = "indexName"
INDEX_COLUMNS_SYM = "indexColumns"
COLUMN_NAME_SYM = "columnName"
COLUMN_TYPE_SYM = "columnType"

# Commands
CREATE = "create"
GRANT = "grant"
INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
TRUNCATE = "truncate"
SELECT = "select"
ALTER_COLUMN = "column_change"
TABLE_EXISTS = "table_exists"
CREATE_INDEX = "create_index"

# Products
ORACLE = "Oracle"
MYSQL = "MySQL"
H2 = "H2"
POSTGRESQL = "PostgreSQL"
SQLITE = "SQLite"

DEFAULT = "DEFAULT"
LENGTH_TOKEN = "#"


class NativeType(IntEnum):
    """Wire type codes reported by database drivers for result columns."""

    NUMERIC = 2
    DECIMAL = 3
    INTEGER = 4
    SMALLINT = 5
    FLOAT = 6
    REAL = 7
    DOUBLE = 8
    DATE = 91
    TIME = 92
    TIMESTAMP = 93
    OTHER = 1111


class Dialect(BaseModel):
    """
    Type and syntax maps of one database product.

    Type map keys are normalized to upper case; a DEFAULT entry is
    mandatory and is used for any tag the map does not know.
    """

    model_config = ConfigDict(frozen=True)

    product: str
    type_map: Mapping[str, str]
    syntax_map: Mapping[str, str]

    @field_validator("type_map", mode="after")
    @classmethod
    def normalize_types(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType({k.upper(): t for k, t in v.items()})

    @field_validator("syntax_map", mode="after")
    @classmethod
    def freeze_syntax(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(v))

    @model_validator(mode="after")
    def require_default(self) -> "Dialect":
        if DEFAULT not in self.type_map:
            raise ValueError(f"Dialect '{self.product}' has no {DEFAULT} type")
        return self

    def native_type(self, column: ColumnSpec) -> str:
        """
        Resolve the native column type for an abstract column.

        Unknown or blank tags fall back to the DEFAULT type with a debug
        diagnostic. Length placeholders take the column length.
        """
        native = None
        if column.type and column.type.strip():
            native = self.type_map.get(column.type.strip().upper())

        if not native:
            native = self.type_map[DEFAULT]
            logger.debug(
                f"{self.product}: no native type for '{column.type}' on column "
                f"'{column.name}', using default '{native}'"
            )

        if LENGTH_TOKEN in native:
            native = native.replace(LENGTH_TOKEN, str(column.length))
        return native

    def template(self, command: str) -> str | None:
        """Raw template for a command; None when missing or blank."""
        text = self.syntax_map.get(command)
        return text if text and text.strip() else None


class DialectRegistry:
    """
    Immutable registry of dialects keyed by product identifier.

    Built once (usually via ``DialectRegistry.default()``) and handed to
    whatever needs to generate SQL.
    """

    def __init__(self, dialects: Iterable[Dialect]):
        self._dialects = MappingProxyType({d.product: d for d in dialects})

    @classmethod
    def default(cls) -> "DialectRegistry":
        return cls(builtin_dialects())

    @property
    def products(self) -> list[str]:
        return sorted(self._dialects)

    def get(self, product: str) -> Dialect | None:
        return self._dialects.get(product)

    def __contains__(self, product: object) -> bool:
        return product in self._dialects

    def render_command(
        self,
        product: str,
        command: str,
        symbols: Mapping[str, Any] | None = None
    ) -> str | None:
        """
        Retrieve the statement for a command of a database product.

        Args:
            product: Database product identifier (e.g. "H2")
            command: Command name (e.g. "insert")
            symbols: Symbols used to resolve the template; when None the
                raw template is returned for inspection

        Returns:
            The statement, or None if the product or command is unknown
        """
        dialect = self._dialects.get(product)
        if dialect is None:
            return None

        text = dialect.template(command)
        if text is None:
            return None

        if symbols is None:
            return text
        return render(text, symbols)

    def render_create_table(
        self,
        product: str,
        columns: Iterable[ColumnSpec],
        symbols: SymbolTable | None = None
    ) -> str | None:
        """
        Generate the CREATE TABLE statement for the given columns.

        The joined column definitions are placed into the symbol table
        under ``fielddefinitions`` before the create template is rendered.

        Args:
            product: Database product identifier
            columns: Column specifications, in table order
            symbols: Symbol table holding at least the table name; a fresh
                table is used when None

        Returns:
            The CREATE statement, or None if the product is not registered
        """
        dialect = self._dialects.get(product)
        if dialect is None:
            logger.error(f"Could not find type definitions for '{product}' database")
            return None

        definitions = ", ".join(
            f"{column.name} {dialect.native_type(column)}" for column in columns
        )

        if symbols is None:
            symbols = SymbolTable()
        symbols[FIELD_DEFINITIONS_SYM] = definitions

        return self.render_command(product, CREATE, symbols)


def map_native_value(value: Any, native_type_code: int) -> Any:
    """
    Normalize a driver value into a frame field value.

    NUMERIC/DECIMAL/FLOAT/REAL/DOUBLE become floats, INTEGER/SMALLINT ints,
    DATE/TIME/TIMESTAMP datetimes; any other code yields ``str(value)``.
    None always maps to None.
    """
    if value is None:
        return None

    if native_type_code in (NativeType.NUMERIC, NativeType.DECIMAL,
                            NativeType.FLOAT, NativeType.REAL, NativeType.DOUBLE):
        return float(value)
    if native_type_code in (NativeType.INTEGER, NativeType.SMALLINT):
        return int(value)
    if native_type_code in (NativeType.DATE, NativeType.TIME, NativeType.TIMESTAMP):
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, time):
            return datetime.combine(date(1970, 1, 1), value)
        return datetime.fromisoformat(str(value))
    return str(value)


def sql_literal(value: Any) -> str:
    """
    Render a Python value as a SQL literal for generated DML.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "'1'" if value else "'0'"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        text = value.isoformat(sep=" ") if isinstance(value, datetime) else value.isoformat()
    else:
        text = str(value)
    return "'" + text.replace("'", "''") + "'"


def check_identifier(name: str) -> str:
    """Validate a bare SQL identifier (optionally schema-qualified)."""
    parts = name.split(".")
    if not name or not all(p and (p[0].isalpha() or p[0] == "_") and
                           all(c.isalnum() or c == "_" for c in p) for p in parts):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def _table(schema: bool) -> str:
    if schema:
        return f"[#${DB_SCHEMA_SYM}#].[#${TABLE_NAME_SYM}#]"
    return f"[#${TABLE_NAME_SYM}#]"


def _syntax(schema: bool, alter: str, grant: str = "", exists: str = "") -> dict[str, str]:
    table = _table(schema)
    return {
        CREATE: f"CREATE TABLE {table} ( [#${FIELD_DEFINITIONS_SYM}#] )",
        GRANT: grant,
        INSERT: f"INSERT INTO {table} ( [#${FIELD_NAMES_SYM}#] ) VALUES ( [#${FIELD_VALUES_SYM}#] )",
        UPDATE: f"UPDATE {table} SET [#${FIELD_MAP_SYM}#] WHERE [#${CONDITION_SYM}#]",
        DELETE: f"DELETE FROM {table} WHERE [#${CONDITION_SYM}#]",
        TRUNCATE: f"TRUNCATE TABLE {table}",
        SELECT: f"SELECT [#${FIELD_NAMES_SYM}#] FROM {table} WHERE [#${CONDITION_SYM}#]",
        ALTER_COLUMN: alter.replace("{table}", table),
        CREATE_INDEX: f"CREATE INDEX [#${INDEX_NAME_SYM}#] ON {table} ( [#${INDEX_COLUMNS_SYM}#] )",
        TABLE_EXISTS: exists,
    }


def builtin_dialects() -> list[Dialect]:
    """Dialects shipped with the engine."""
    column_change = f"[#${COLUMN_NAME_SYM}#] [#${COLUMN_TYPE_SYM}#]"

    mysql = Dialect(
        product=MYSQL,
        type_map={
            "STR": "VARCHAR(#)", "BOL": "TINYINT",
            "S8": "TINYINT", "U8": "TINYINT",
            "S16": "INTEGER", "U16": "INTEGER",
            "S32": "INTEGER", "U32": "INTEGER",
            "S64": "INTEGER", "U64": "INTEGER",
            "DBL": "DOUBLE", "FLT": "DOUBLE",
            DEFAULT: "VARCHAR(#)",
        },
        syntax_map=_syntax(
            schema=True,
            alter="ALTER TABLE {table} MODIFY " + column_change,
            exists=(
                f"SELECT table_name FROM information_schema.tables "
                f"WHERE table_schema = '[#${DB_SCHEMA_SYM}#]' AND table_name = '[#${TABLE_NAME_SYM}#]'"
            ),
        ),
    )

    oracle = Dialect(
        product=ORACLE,
        type_map={
            "STR": "VARCHAR2(#)", "BOL": "NUMBER(1)",
            "S8": "NUMBER(8)", "U8": "NUMBER(8)",
            "S16": "NUMBER(10)", "U16": "NUMBER(10)",
            "S32": "NUMBER", "U32": "NUMBER",
            "S64": "NUMBER", "U64": "NUMBER",
            "DBL": "NUMBER", "FLT": "NUMBER",
            "DAT": "TIMESTAMP",
            DEFAULT: "VARCHAR2(#)",
        },
        syntax_map=_syntax(
            schema=True,
            alter="ALTER TABLE {table} MODIFY " + column_change,
            grant=f"GRANT SELECT,REFERENCES ON {_table(True)} TO PUBLIC",
            exists=(
                f"SELECT table_name FROM all_tables "
                f"WHERE owner = UPPER('[#${DB_SCHEMA_SYM}#]') AND table_name = UPPER('[#${TABLE_NAME_SYM}#]')"
            ),
        ),
    )

    h2 = Dialect(
        product=H2,
        type_map={
            "STR": "VARCHAR(#)", "BOL": "BOOLEAN",
            "S8": "TINYINT", "U8": "TINYINT",
            "S16": "SMALLINT", "U16": "SMALLINT",
            "S32": "INTEGER", "U32": "INTEGER",
            "S64": "BIGINT", "U64": "BIGINT",
            "DBL": "DOUBLE", "FLT": "REAL",
            "DAT": "TIMESTAMP",
            DEFAULT: "VARCHAR(#)",
        },
        syntax_map=_syntax(
            schema=False,
            alter="ALTER TABLE {table} ALTER COLUMN " + column_change,
            exists=(
                f"SELECT table_name FROM information_schema.tables "
                f"WHERE UPPER(table_name) = UPPER('[#${TABLE_NAME_SYM}#]')"
            ),
        ),
    )

    postgresql = Dialect(
        product=POSTGRESQL,
        type_map={
            "STR": "VARCHAR(#)", "BOL": "BOOLEAN",
            "S8": "SMALLINT", "U8": "SMALLINT",
            "S16": "SMALLINT", "U16": "INTEGER",
            "S32": "INTEGER", "U32": "BIGINT",
            "S64": "BIGINT", "U64": "NUMERIC(20)",
            "DBL": "DOUBLE PRECISION", "FLT": "REAL",
            "DAT": "TIMESTAMP",
            DEFAULT: "TEXT",
        },
        syntax_map=_syntax(
            schema=False,
            alter="ALTER TABLE {table} ALTER COLUMN [#$" + COLUMN_NAME_SYM + "#] TYPE [#$" + COLUMN_TYPE_SYM + "#]",
            grant=f"GRANT SELECT ON {_table(False)} TO PUBLIC",
            exists=(
                f"SELECT table_name FROM information_schema.tables "
                f"WHERE table_name = LOWER('[#${TABLE_NAME_SYM}#]')"
            ),
        ),
    )

    sqlite = Dialect(
        product=SQLITE,
        type_map={
            "STR": "VARCHAR(#)", "BOL": "INTEGER",
            "S8": "INTEGER", "U8": "INTEGER",
            "S16": "INTEGER", "U16": "INTEGER",
            "S32": "INTEGER", "U32": "INTEGER",
            "S64": "INTEGER", "U64": "INTEGER",
            "DBL": "REAL", "FLT": "REAL",
            "DAT": "TIMESTAMP",
            DEFAULT: "TEXT",
        },
        syntax_map={
            **_syntax(
                schema=False,
                alter="",
                exists=(
                    f"SELECT name FROM sqlite_master "
                    f"WHERE type = 'table' AND name = '[#${TABLE_NAME_SYM}#]'"
                ),
            ),
            # no TRUNCATE in SQLite
            TRUNCATE: f"DELETE FROM {_table(False)}",
        },
    )

    return [mysql, oracle, h2, postgresql, sqlite]
