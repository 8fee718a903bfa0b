"""
Frame transformers.
"""

from typing import Any

from pydantic import field_validator

from framepipe.context.transform_context import TransformContext
from framepipe.core.exceptions import ConfigError
from framepipe.core.frame import FieldType, Frame
from framepipe.core.template import render

from .base import ComponentConfig, FrameTransform


class SetFieldConfig(ComponentConfig):
    field: str
    value: Any = None


class SetField(FrameTransform):
    """
    Sets a field to a value. String values are templates resolved against
    the job's symbol table, so ``"[#$run_start#]"`` stamps every frame.
    """

    config_model = SetFieldConfig

    def process(self, frame: Frame, context: TransformContext) -> Frame:
        value = self.settings.value
        if isinstance(value, str):
            value = render(value, context.symbols)
        frame.put(self.settings.field, value)
        return frame


class CastConfig(ComponentConfig):
    field: str
    type: str

    @field_validator("type")
    @classmethod
    def known_type(cls, v: str) -> str:
        FieldType.from_name(v)
        return v


class Cast(FrameTransform):
    """Converts a field to another field type; absent fields are left alone."""

    config_model = CastConfig

    def configure(self, config):
        super().configure(config)
        self.target_type = FieldType.from_name(self.settings.type)

    def process(self, frame: Frame, context: TransformContext) -> Frame:
        if frame.contains(self.settings.field):
            frame.put(self.settings.field, frame.get(self.settings.field), self.target_type)
        return frame


class RenameConfig(ComponentConfig):
    field: str
    to: str


class RenameField(FrameTransform):
    """Renames a field, moving it to the end of the frame."""

    config_model = RenameConfig

    def configure(self, config):
        super().configure(config)
        if self.settings.field == self.settings.to:
            raise ConfigError("RenameField source and target names are identical")

    def process(self, frame: Frame, context: TransformContext) -> Frame:
        if frame.contains(self.settings.field):
            field_type = frame.get_type(self.settings.field)
            value = frame.remove(self.settings.field)
            frame.put(self.settings.to, value)
            if field_type is not None and frame.get_type(self.settings.to) != field_type:
                frame.put(self.settings.to, value, field_type)
        return frame
