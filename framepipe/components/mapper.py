"""
Default frame mapper.
"""

from pydantic import Field

from framepipe.context.transaction_context import TransactionContext
from framepipe.core.frame import Frame

from .base import ComponentConfig, FrameMapper


class MapperConfig(ComponentConfig):
    """
    Attributes:
        fields: Ordered source field -> target field names. When empty the
            whole source frame is copied.
    """

    fields: dict[str, str] = Field(default_factory=dict)


class DefaultFrameMapper(FrameMapper):
    """
    Builds the target frame by copying mapped fields in mapping order,
    renamed to their target names. Unmapped source fields are dropped and
    missing source fields are skipped.
    """

    config_model = MapperConfig

    def process(self, txn: TransactionContext) -> None:
        source = txn.source_frame
        mapping = self.settings.fields

        if not mapping:
            txn.target_frame = source.copy()
            return

        target = Frame()
        for source_name, target_name in mapping.items():
            if source.contains(source_name):
                target.put(target_name, source.get(source_name), source.get_type(source_name))
        txn.target_frame = target
