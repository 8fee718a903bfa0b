"""
Pipeline components: the shared contract and the shipped implementations.
"""

from .base import (
    Component,
    ComponentConfig,
    FrameFilter,
    FrameMapper,
    FrameReader,
    FrameTransform,
    FrameValidator,
    FrameWriter,
    TransformTask,
)
from .filters import AcceptFilter, RejectFilter
from .mapper import DefaultFrameMapper
from .readers import CSVReader, FrameListReader
from .tasks import AbstractTransformTask, SetSymbol, StampSymbol
from .transformers import Cast, RenameField, SetField
from .validators import RangeValidator, RegexValidator, RequiredFieldValidator, TypeValidator
from .writers import CSVWriter, DatabaseWriter

__all__ = [
    "AbstractTransformTask",
    "AcceptFilter",
    "CSVReader",
    "CSVWriter",
    "Cast",
    "Component",
    "ComponentConfig",
    "DatabaseWriter",
    "DefaultFrameMapper",
    "FrameFilter",
    "FrameListReader",
    "FrameMapper",
    "FrameReader",
    "FrameTransform",
    "FrameValidator",
    "FrameWriter",
    "RangeValidator",
    "RegexValidator",
    "RejectFilter",
    "RenameField",
    "RequiredFieldValidator",
    "SetField",
    "SetSymbol",
    "StampSymbol",
    "TransformTask",
    "TypeValidator",
]
