"""
Component contract shared by every pluggable pipeline stage.

All stages follow the same lifecycle:

    configure(config) -> open(context) -> process(...) repeatedly -> close()

The engine only ever talks to these base types.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError

from framepipe.context.transaction_context import TransactionContext
from framepipe.context.transform_context import TransformContext
from framepipe.core.exceptions import ConfigError
from framepipe.core.frame import Frame


class ComponentConfig(BaseModel):
    """Settings every component accepts. Subclasses add their own."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = None
    description: str | None = None


class Component(ABC):
    """
    Base of every pipeline stage.

    ``configure()`` validates the raw configuration against the class's
    ``config_model`` and raises ConfigError on missing or invalid
    attributes.
    """

    config_model: ClassVar[type[ComponentConfig]] = ComponentConfig

    def __init__(self, config: dict[str, Any] | None = None):
        self.config: dict[str, Any] = {}
        self.settings: ComponentConfig = self.config_model.model_construct()
        self.context: TransformContext | None = None
        self._validated = False
        if config is not None:
            self.configure(config)

    def configure(self, config: dict[str, Any]) -> None:
        self.config = dict(config or {})
        self.settings = self._validate(self.config)
        self._validated = True

    def _validate(self, config: dict[str, Any]) -> ComponentConfig:
        try:
            return self.config_model.model_validate(config)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration for {type(self).__name__}: {e}") from e

    @property
    def name(self) -> str:
        return getattr(self.settings, "name", None) or type(self).__name__

    def open(self, context: TransformContext) -> None:
        # Components built without a config still have mandatory attributes
        if not self._validated:
            self.settings = self._validate(self.config)
            self._validated = True
        self.context = context

    def close(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FrameReader(Component):
    """Source of frames. ``read()`` returns None at end of stream."""

    @abstractmethod
    def read(self, context: TransformContext) -> Frame | None:
        ...

    @property
    def eof(self) -> bool:
        return False


class FrameFilter(Component):
    """
    Decides whether a frame enters the pipeline.

    The first filter whose condition matches decides: accept filters let
    the frame through, reject filters drop it.
    """

    accepts: ClassVar[bool] = True

    @abstractmethod
    def matches(self, txn: TransactionContext) -> bool:
        ...


class FrameValidator(Component):
    """Checks a frame; returns False (after notifying listeners) on failure."""

    @abstractmethod
    def process(self, txn: TransactionContext) -> bool:
        ...


class FrameTransform(Component):
    """Modifies the fields of a frame."""

    @abstractmethod
    def process(self, frame: Frame, context: TransformContext) -> Frame:
        ...


class FrameMapper(Component):
    """Builds the target frame of a transaction from its source frame."""

    @abstractmethod
    def process(self, txn: TransactionContext) -> None:
        ...


class FrameWriter(Component):
    """Destination of frames. Raises WriteError when a frame cannot be written."""

    @abstractmethod
    def write(self, frame: Frame, context: TransformContext) -> None:
        ...


class TransformTask(Component):
    """Unit of work run before or after the frame loop."""

    @abstractmethod
    def execute(self, context: TransformContext) -> None:
        ...
