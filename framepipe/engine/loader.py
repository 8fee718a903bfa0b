"""
Job configuration loading.

Reads a YAML job definition and builds a configured TransformEngine.

Expected YAML format:
```yaml
job:
  name: nightly-import
  symbols:
    region: EU
  context:
    type: database          # or "memory" (default)
    product: PostgreSQL
    table: fp_context
    reset:
      batch: 0
  reader:
    class: csv
    path: "input/[#$region#].csv"
    types: {amount: DBL}
  filters:
    - class: reject
      field: status
      equals: deleted
  validators:
    - class: required
      field: id
      halt_on_fail: true
  transformers:
    - class: set
      field: region
      value: "[#$region#]"
  mapper:
    fields: {id: ID, amount: AMOUNT, region: REGION}
  writers:
    - class: csv
      path: output/out.csv
  preprocess:
    - class: set_symbol
      symbol: batch
      value: "[#$run_count#]"
  postprocess:
    - class: stamp_symbol
      symbol: last_success
```

``class`` is either a short name from the registries below or the dotted
path of a plugin class.
"""

import importlib
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from framepipe.components import (
    AcceptFilter,
    Cast,
    CSVReader,
    CSVWriter,
    DatabaseWriter,
    DefaultFrameMapper,
    FrameListReader,
    RangeValidator,
    RegexValidator,
    RejectFilter,
    RenameField,
    RequiredFieldValidator,
    SetField,
    SetSymbol,
    StampSymbol,
    TypeValidator,
)
from framepipe.components.base import (
    Component,
    FrameFilter,
    FrameMapper,
    FrameReader,
    FrameTransform,
    FrameValidator,
    FrameWriter,
    TransformTask,
)
from framepipe.context.listener import ContextListener
from framepipe.context.transform_context import TransformContext
from framepipe.core.exceptions import ConfigError
from framepipe.db.dialect import DialectRegistry

from .pipeline import TransformEngine

READER_REGISTRY = {"csv": CSVReader, "frames": FrameListReader}
FILTER_REGISTRY = {"accept": AcceptFilter, "reject": RejectFilter}
VALIDATOR_REGISTRY = {
    "required": RequiredFieldValidator,
    "regex": RegexValidator,
    "range": RangeValidator,
    "type": TypeValidator,
}
TRANSFORMER_REGISTRY = {"set": SetField, "cast": Cast, "rename": RenameField}
MAPPER_REGISTRY = {"default": DefaultFrameMapper}
WRITER_REGISTRY = {"csv": CSVWriter, "database": DatabaseWriter}
TASK_REGISTRY = {"set_symbol": SetSymbol, "stamp_symbol": StampSymbol}


class ContextConfig(BaseModel):
    """Which context the job runs with and how it is persisted."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["memory", "database"] = "memory"
    product: str | None = None
    table: str = "fp_context"
    schema_name: str | None = Field(None, alias="schema")
    reset: dict[str, Any] = Field(default_factory=dict)
    connection: dict[str, Any] = Field(default_factory=dict)


class JobConfig(BaseModel):
    """A complete job definition."""

    name: str = Field(..., min_length=1)
    job_dir: str | None = None
    work_dir: str | None = None
    symbols: dict[str, Any] = Field(default_factory=dict)
    context: ContextConfig = Field(default_factory=ContextConfig)
    reader: dict[str, Any] | None = None
    filters: list[dict[str, Any]] = Field(default_factory=list)
    validators: list[dict[str, Any]] = Field(default_factory=list)
    transformers: list[dict[str, Any]] = Field(default_factory=list)
    mapper: dict[str, Any] | None = None
    writers: list[dict[str, Any]] = Field(default_factory=list)
    preprocess: list[dict[str, Any]] = Field(default_factory=list)
    postprocess: list[dict[str, Any]] = Field(default_factory=list)


def resolve_class(name: str, registry: dict[str, type], base: type) -> type:
    """Look up a short component name, or import a dotted class path."""
    cls = registry.get(name.lower())
    if cls is None:
        if "." not in name:
            raise ConfigError(f"Unknown component '{name}'. Known: {', '.join(sorted(registry))}")
        module_name, _, class_name = name.rpartition(".")
        try:
            cls = getattr(importlib.import_module(module_name), class_name)
        except (ImportError, AttributeError) as e:
            raise ConfigError(f"Cannot load component class '{name}': {e}") from e

    if not (isinstance(cls, type) and issubclass(cls, base)):
        raise ConfigError(f"'{name}' is not a {base.__name__}")
    return cls


def build_component(
    spec: dict[str, Any],
    registry: dict[str, type],
    base: type,
    default: str | None = None,
) -> Component:
    spec = dict(spec)
    name = spec.pop("class", default)
    if not name:
        raise ConfigError(f"{base.__name__} configuration is missing 'class'")
    cls = resolve_class(str(name), registry, base)
    component = cls()
    component.configure(spec)
    return component


class JobConfigLoader:
    """
    Loads a job definition from a YAML file.
    """

    def __init__(self, config_path: str | Path):
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Job configuration file not found: {config_path}")

    def load(self) -> JobConfig:
        """
        Parse the job definition.

        Raises:
            ConfigError: If the YAML is invalid or misses required settings
        """
        with open(self.config_path) as f:
            try:
                document = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not isinstance(document, dict) or "job" not in document:
            raise ConfigError("Configuration file must contain a 'job' section")

        return parse_job(document["job"])

    def build(self, **kwargs) -> TransformEngine:
        return build_engine(self.load(), **kwargs)


def parse_job(data: dict[str, Any]) -> JobConfig:
    try:
        return JobConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid job definition: {e}") from e


def build_context(
    config: JobConfig,
    connection=None,
    registry: DialectRegistry | None = None,
) -> TransformContext:
    if config.context.type == "memory":
        return TransformContext(
            config.name,
            symbols=config.symbols,
            job_dir=config.job_dir,
            work_dir=config.work_dir,
        )

    from framepipe.context.database_context import DatabaseContext

    if connection is None:
        from framepipe.db.connection import DatabaseConnectionPool

        try:
            connection = DatabaseConnectionPool(**config.context.connection)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid context connection settings: {e}") from e

    return DatabaseContext(
        config.name,
        connection=connection,
        product=config.context.product,
        registry=registry,
        table=config.context.table,
        schema=config.context.schema_name,
        reset=config.context.reset,
        symbols=config.symbols,
        job_dir=config.job_dir,
        work_dir=config.work_dir,
    )


def build_engine(
    config: JobConfig,
    connection=None,
    registry: DialectRegistry | None = None,
    listeners: list[ContextListener] | None = None,
) -> TransformEngine:
    """
    Build a configured engine from a job definition.

    Args:
        config: Parsed job definition
        connection: Relational connection for a database context; built
            from the context's connection settings when None
        registry: Dialect registry for SQL generation
        listeners: Listeners to register on the engine
    """
    engine = TransformEngine(context=build_context(config, connection, registry))

    if config.reader is not None:
        engine.set_reader(build_component(config.reader, READER_REGISTRY, FrameReader))
    for spec in config.filters:
        engine.add_filter(build_component(spec, FILTER_REGISTRY, FrameFilter))
    for spec in config.validators:
        engine.add_validator(build_component(spec, VALIDATOR_REGISTRY, FrameValidator))
    for spec in config.transformers:
        engine.add_transformer(build_component(spec, TRANSFORMER_REGISTRY, FrameTransform))
    if config.mapper is not None:
        engine.set_mapper(build_component(config.mapper, MAPPER_REGISTRY, FrameMapper, default="default"))
    for spec in config.writers:
        engine.add_writer(build_component(spec, WRITER_REGISTRY, FrameWriter))
    for spec in config.preprocess:
        engine.add_preprocess_task(build_component(spec, TASK_REGISTRY, TransformTask))
    for spec in config.postprocess:
        engine.add_postprocess_task(build_component(spec, TASK_REGISTRY, TransformTask))

    for listener in listeners or []:
        engine.add_listener(listener)
    return engine
