"""
Transform context whose symbol table survives between runs.

Symbols are stored one row per (job name, attribute key) in a relational
table, so a job can pick up where its previous run left off on any host
that can reach the database.

Known limitation: there is no locking or versioning. Two runs under the
same job name each load their own snapshot on open(), and whichever
closes last overwrites the other's updates. Callers that cannot tolerate
lost updates must serialize runs per job name.
"""

from pathlib import Path
from typing import Any

from framepipe.core.exceptions import ConfigError
from framepipe.core.frame import FieldType
from framepipe.core.models import ColumnSpec
from framepipe.core.symbols import SymbolTable
from framepipe.db import dialect as sql
from framepipe.db.connection import RelationalConnection
from framepipe.db.dialect import DialectRegistry, check_identifier, sql_literal
from framepipe.observability.logger import get_logger

from .transform_context import JOB_DIR_SYM, JOB_NAME_SYM, RUN_START_SYM, WORK_DIR_SYM, TransformContext

logger = get_logger(__name__)

DEFAULT_TABLE = "fp_context"
RUN_COUNT_SYM = "run_count"
LAST_RUN_SYM = "last_run"

CONTEXT_COLUMNS = (
    ColumnSpec(name="job_name", type="STR", length=128),
    ColumnSpec(name="attribute_key", type="STR", length=128),
    ColumnSpec(name="attribute_value", type="STR", length=2048),
    ColumnSpec(name="value_type", type="S32"),
)

# Derived from the job definition on every run, never persisted
TRANSIENT_SYMBOLS = frozenset({
    JOB_NAME_SYM,
    JOB_DIR_SYM,
    WORK_DIR_SYM,
    sql.FIELD_DEFINITIONS_SYM,
})


class DatabaseContext(TransformContext):
    """
    TransformContext persisted in a relational table.

    Table layout:
    - job_name: name of the job owning the value
    - attribute_key: symbol name
    - attribute_value: symbol value rendered as text
    - value_type: FieldType tag used to restore the value
    """

    def __init__(
        self,
        name: str,
        connection: RelationalConnection,
        product: str | None = None,
        registry: DialectRegistry | None = None,
        table: str = DEFAULT_TABLE,
        schema: str | None = None,
        reset: dict[str, Any] | None = None,
        symbols: dict[str, Any] | None = None,
        job_dir: str | Path | None = None,
        work_dir: str | Path | None = None,
    ):
        """
        Args:
            name: Job name; keys every persisted row
            connection: Relational connection collaborator
            product: Dialect product (defaults to the connection's product)
            registry: Dialect registry (defaults to the built-in dialects)
            table: Backing table name
            schema: Schema name for dialects that qualify table names
            reset: Values that override persisted symbols on every open
            symbols: Initial symbols, overridden by persisted values
        """
        super().__init__(name, symbols=symbols, job_dir=job_dir, work_dir=work_dir)
        self.connection = connection
        self.registry = registry or DialectRegistry.default()
        self.product = product or getattr(connection, "product", None)
        try:
            self.table = check_identifier(table)
            self.schema = check_identifier(schema) if schema else None
        except ValueError as e:
            raise ConfigError(str(e)) from e
        self.reset = dict(reset or {})

        if self.product not in self.registry:
            raise ConfigError(f"No SQL dialect registered for database product '{self.product}'")

    def _table_symbols(self, **values: Any) -> SymbolTable:
        symbols = SymbolTable({sql.TABLE_NAME_SYM: self.table})
        if self.schema:
            symbols[sql.DB_SCHEMA_SYM] = self.schema
        symbols.update(values)
        return symbols

    def _statement(self, command: str, **values: Any) -> str:
        statement = self.registry.render_command(self.product, command, self._table_symbols(**values))
        if statement is None:
            raise ConfigError(f"Dialect '{self.product}' does not support '{command}'")
        return statement

    # -- lifecycle -------------------------------------------------------

    def open(self) -> None:
        """
        Connect, make sure the backing table exists, then load this job's
        persisted symbols followed by any reset values.
        """
        if self.is_open:
            return

        self.connection.open()
        try:
            self._verify_table()
            loaded = self._load()
        except BaseException:
            self.connection.close()
            raise
        self.symbols.update(loaded)

        if RUN_START_SYM in loaded:
            self.symbols[LAST_RUN_SYM] = loaded[RUN_START_SYM]
        previous = loaded.get(RUN_COUNT_SYM)
        self.symbols[RUN_COUNT_SYM] = (previous if isinstance(previous, int) else 0) + 1

        if self.reset:
            logger.info(f"Resetting {len(self.reset)} symbol(s) for job '{self.name}'")
            self.symbols.update(self.reset)

        logger.info(
            f"Loaded {len(loaded)} persisted symbol(s) for job '{self.name}'",
            extra={"job_name": self.name, "table": self.table},
        )
        super().open()

    def close(self) -> None:
        """Write every persistable symbol back, then release the connection."""
        if not self.is_open:
            return
        try:
            written = self._persist()
            logger.info(
                f"Persisted {written} symbol(s) for job '{self.name}'",
                extra={"job_name": self.name, "table": self.table},
            )
        finally:
            self.connection.close()
            super().close()

    # -- table management ------------------------------------------------

    def _verify_table(self) -> None:
        rows = self.connection.query(self._statement(sql.TABLE_EXISTS))
        if rows:
            return

        logger.info(f"Creating context table '{self.table}'")
        create = self.registry.render_create_table(self.product, CONTEXT_COLUMNS, self._table_symbols())
        self.connection.execute(create)

        index = self.registry.render_command(
            self.product,
            sql.CREATE_INDEX,
            self._table_symbols(**{
                sql.INDEX_NAME_SYM: f"{self.table.split('.')[-1]}_job_key_idx",
                sql.INDEX_COLUMNS_SYM: "job_name, attribute_key",
            }),
        )
        if index:
            self.connection.execute(index)

    def _load(self) -> dict[str, Any]:
        rows = self.connection.query(self._statement(
            sql.SELECT,
            **{
                sql.FIELD_NAMES_SYM: "attribute_key, attribute_value, value_type",
                sql.CONDITION_SYM: f"job_name = {sql_literal(self.name)}",
            },
        ))

        values: dict[str, Any] = {}
        for row in rows:
            row = {k.lower(): v for k, v in row.items()}
            key = row["attribute_key"]
            values[key] = self._decode(key, row["attribute_value"], row["value_type"])
        return values

    @staticmethod
    def _decode(key: str, text: Any, tag: Any) -> Any:
        try:
            field_type = FieldType(int(tag))
        except (TypeError, ValueError):
            logger.warning(f"Unknown type tag {tag!r} for symbol '{key}', keeping text")
            return text
        try:
            return field_type.convert(text)
        except (TypeError, ValueError) as e:
            logger.warning(f"Could not restore symbol '{key}' as {field_type.name}: {e}")
            return text

    def _persistable(self) -> list[tuple[str, Any, FieldType]]:
        items = []
        for key, value in self.symbols.items():
            if key in TRANSIENT_SYMBOLS:
                continue
            try:
                field_type = FieldType.of(value)
            except TypeError:
                logger.debug(f"Symbol '{key}' is not a scalar, not persisted")
                continue
            items.append((key, value, field_type))
        return items

    def _persist(self) -> int:
        job = sql_literal(self.name)
        count = 0
        for key, value, field_type in self._persistable():
            text = FieldType.STR.convert(value)
            updated = self.connection.execute(self._statement(
                sql.UPDATE,
                **{
                    sql.FIELD_MAP_SYM: f"attribute_value = {sql_literal(text)}, value_type = {int(field_type)}",
                    sql.CONDITION_SYM: f"job_name = {job} AND attribute_key = {sql_literal(key)}",
                },
            ))
            if updated < 1:
                self.connection.execute(self._statement(
                    sql.INSERT,
                    **{
                        sql.FIELD_NAMES_SYM: "job_name, attribute_key, attribute_value, value_type",
                        sql.FIELD_VALUES_SYM: ", ".join([
                            job, sql_literal(key), sql_literal(text), str(int(field_type)),
                        ]),
                    },
                ))
            count += 1
        return count
