"""
Frame readers.
"""

import csv
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator

from framepipe.context.transform_context import TransformContext
from framepipe.core.exceptions import ConfigError, ReadError
from framepipe.core.frame import FieldType, Frame
from framepipe.core.template import render
from framepipe.observability.logger import get_logger

from .base import ComponentConfig, FrameReader

logger = get_logger(__name__)


def resolve_path(path: str, context: TransformContext) -> Path:
    """Render symbols in a configured path; relative paths live in the work directory."""
    resolved = Path(render(path, context.symbols))
    if not resolved.is_absolute():
        resolved = context.work_dir / resolved
    return resolved


class CSVReaderConfig(ComponentConfig):
    """
    Attributes:
        path: File to read; may reference symbols
        header: First row holds the field names
        delimiter: Field delimiter
        encoding: File encoding
        types: Field name -> FieldType tag used to convert the raw text
    """

    path: str
    header: bool = True
    delimiter: str = ","
    encoding: str = "utf-8"
    types: dict[str, str] = Field(default_factory=dict)

    @field_validator("types")
    @classmethod
    def known_types(cls, v: dict[str, str]) -> dict[str, str]:
        for tag in v.values():
            FieldType.from_name(tag)
        return v


class CSVReader(FrameReader):
    """
    Reads one frame per CSV row. Without a header, fields are named
    ``field1``, ``field2``, ...

    A row that cannot be converted raises ReadError for that row only.
    """

    config_model = CSVReaderConfig

    def __init__(self, config: dict[str, Any] | None = None):
        self._file = None
        self._rows = None
        self._names: list[str] | None = None
        self._line = 0
        self._eof = False
        self._types: dict[str, FieldType] = {}
        super().__init__(config)

    def configure(self, config):
        super().configure(config)
        self._types = {name: FieldType.from_name(tag) for name, tag in self.settings.types.items()}

    def open(self, context: TransformContext) -> None:
        super().open(context)
        path = resolve_path(self.settings.path, context)
        if not path.exists():
            raise ConfigError(f"CSV input not found: {path}")

        self._file = open(path, newline="", encoding=self.settings.encoding)
        self._rows = csv.reader(self._file, delimiter=self.settings.delimiter)
        if self.settings.header:
            self._names = next(self._rows, None) or []
            self._line = 1
        logger.info(f"Reading frames from {path}")

    @property
    def eof(self) -> bool:
        return self._eof

    def read(self, context: TransformContext) -> Frame | None:
        if self._rows is None or self._eof:
            return None

        row = next(self._rows, None)
        if row is None:
            self._eof = True
            return None
        self._line += 1

        names = self._names or [f"field{i}" for i in range(1, len(row) + 1)]
        if self._names and len(row) != len(names):
            raise ReadError(f"Line {self._line}: expected {len(names)} fields, got {len(row)}")

        frame = Frame()
        for name, text in zip(names, row):
            field_type = self._types.get(name)
            try:
                if field_type is None:
                    frame.put(name, text)
                else:
                    frame.put(name, text if text != "" else None, field_type)
            except (TypeError, ValueError) as e:
                raise ReadError(f"Line {self._line}: field '{name}': {e}") from e
        return frame

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._rows = None


class FrameListConfig(ComponentConfig):
    frames: list[dict[str, Any]] = Field(default_factory=list)


class FrameListReader(FrameReader):
    """Reads frames from an in-memory list (or the ``frames`` setting)."""

    config_model = FrameListConfig

    def __init__(self, frames: list[Frame | dict[str, Any]] | None = None, config: dict[str, Any] | None = None):
        self._frames: list[Frame] = []
        self._index = 0
        super().__init__(config)
        if frames is not None:
            self._load(frames)

    def _load(self, records: list[Frame | dict[str, Any]]) -> None:
        self._frames = [f if isinstance(f, Frame) else Frame(f) for f in records]
        self._index = 0

    def configure(self, config):
        super().configure(config)
        self._load(self.settings.frames)

    @property
    def eof(self) -> bool:
        return self._index >= len(self._frames)

    def read(self, context: TransformContext) -> Frame | None:
        if self.eof:
            return None
        frame = self._frames[self._index]
        self._index += 1
        return frame.copy()
