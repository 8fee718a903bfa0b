"""
Frame writers.
"""

import csv
from typing import Any

from pydantic import Field

from framepipe.context.transform_context import TransformContext
from framepipe.core.exceptions import ConfigError, WriteError
from framepipe.core.frame import FieldType, Frame
from framepipe.core.models import ColumnSpec
from framepipe.core.symbols import SymbolTable
from framepipe.db import dialect as sql
from framepipe.db.dialect import DialectRegistry, check_identifier, sql_literal
from framepipe.observability.logger import get_logger

from .base import ComponentConfig, FrameWriter
from .readers import resolve_path

logger = get_logger(__name__)


class CSVWriterConfig(ComponentConfig):
    path: str
    header: bool = True
    delimiter: str = ","
    encoding: str = "utf-8"
    append: bool = False


class CSVWriter(FrameWriter):
    """
    Writes frames as CSV rows. The first frame fixes the column order;
    later frames are written in that order, with missing fields empty.
    """

    config_model = CSVWriterConfig

    def __init__(self, config: dict[str, Any] | None = None):
        self._file = None
        self._writer = None
        self._columns: list[str] | None = None
        super().__init__(config)

    def open(self, context: TransformContext) -> None:
        super().open(context)
        path = resolve_path(self.settings.path, context)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(path, "a" if self.settings.append else "w", newline="", encoding=self.settings.encoding)
        self._writer = csv.writer(self._file, delimiter=self.settings.delimiter)
        logger.info(f"Writing frames to {path}")

    def write(self, frame: Frame, context: TransformContext) -> None:
        if self._writer is None:
            raise WriteError("CSV writer is not open")

        if self._columns is None:
            self._columns = frame.field_names
            if self.settings.header:
                self._writer.writerow(self._columns)

        row = []
        for name in self._columns:
            value = frame.get(name)
            row.append("" if value is None else FieldType.STR.convert(value))
        try:
            self._writer.writerow(row)
        except OSError as e:
            raise WriteError(f"Could not write CSV row: {e}") from e

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None


class DatabaseWriterConfig(ComponentConfig):
    """
    Attributes:
        table: Target table
        schema: Schema for dialects that qualify table names
        product: Dialect product; defaults to the connection's product
        auto_create: Create the table from the first frame when absent
        string_length: Length used for string columns of created tables
        connection: psycopg connection settings (host, port, database,
            user, password); environment defaults apply
    """

    table: str
    schema_name: str | None = Field(None, alias="schema")
    product: str | None = None
    auto_create: bool = False
    string_length: int = Field(255, gt=0)
    connection: dict[str, Any] = Field(default_factory=dict)


class DatabaseWriter(FrameWriter):
    """
    Inserts frames into a table with statements rendered from the
    dialect's ``insert`` template.
    """

    config_model = DatabaseWriterConfig

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        connection=None,
        registry: DialectRegistry | None = None,
    ):
        self.connection = connection
        self.registry = registry or DialectRegistry.default()
        self._table_checked = False
        super().__init__(config)

    def configure(self, config):
        super().configure(config)
        try:
            check_identifier(self.settings.table)
            if self.settings.schema_name:
                check_identifier(self.settings.schema_name)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    @property
    def product(self) -> str | None:
        return self.settings.product or getattr(self.connection, "product", None)

    def _symbols(self, **values: Any) -> SymbolTable:
        symbols = SymbolTable({sql.TABLE_NAME_SYM: self.settings.table})
        if self.settings.schema_name:
            symbols[sql.DB_SCHEMA_SYM] = self.settings.schema_name
        symbols.update(values)
        return symbols

    def open(self, context: TransformContext) -> None:
        super().open(context)
        if self.connection is None:
            from framepipe.db.connection import DatabaseConnectionPool

            self.connection = DatabaseConnectionPool(**self.settings.connection)
        if self.product not in self.registry:
            raise ConfigError(f"No SQL dialect registered for database product '{self.product}'")
        self.connection.open()

    def _ensure_table(self, frame: Frame) -> None:
        self._table_checked = True
        if not self.settings.auto_create:
            return

        exists = self.registry.render_command(self.product, sql.TABLE_EXISTS, self._symbols())
        if exists and self.connection.query(exists):
            return

        columns = []
        for name in frame.field_names:
            field_type = frame.get_type(name)
            columns.append(ColumnSpec(
                name=check_identifier(name),
                type=field_type.name if field_type else None,
                length=self.settings.string_length,
            ))
        create = self.registry.render_create_table(self.product, columns, self._symbols())
        logger.info(f"Creating table '{self.settings.table}'")
        self.connection.execute(create)

    def write(self, frame: Frame, context: TransformContext) -> None:
        try:
            if not self._table_checked:
                self._ensure_table(frame)

            statement = self.registry.render_command(self.product, sql.INSERT, self._symbols(**{
                sql.FIELD_NAMES_SYM: ", ".join(check_identifier(n) for n in frame.field_names),
                sql.FIELD_VALUES_SYM: ", ".join(sql_literal(frame.get(n)) for n in frame.field_names),
            }))
            self.connection.execute(statement)
        except WriteError:
            raise
        except Exception as e:
            raise WriteError(f"Insert into '{self.settings.table}' failed: {e}") from e

    def close(self) -> None:
        if self.connection is not None:
            self.connection.close()
