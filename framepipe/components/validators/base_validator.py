"""
Base validator shared by all frame validators.

Concrete validators implement ``check()`` and raise ValidationFailure; the
base class turns that into a listener notification and, when the
validator is configured with ``halt_on_fail``, a sticky context error.
"""

from abc import abstractmethod
from typing import Any, ClassVar

from pydantic import Field

from framepipe.components.base import ComponentConfig, FrameValidator
from framepipe.context.transaction_context import TransactionContext
from framepipe.core.exceptions import ValidationFailure
from framepipe.core.frame import Frame


class ValidatorConfig(ComponentConfig):
    """
    Settings common to every validator.

    Attributes:
        field: Name of the field to validate (mandatory)
        description: Message reported instead of the generated one
        halt_on_fail: Escalate a failure to a sticky context error
    """

    field: str = Field(..., min_length=1)
    halt_on_fail: bool = False


class AbstractValidator(FrameValidator):
    """
    Abstract base class for all validators.

    Failures are reported but non-fatal unless ``halt_on_fail`` is set.
    """

    config_model = ValidatorConfig
    rule_type: ClassVar[str] = "validator"

    @property
    def field_name(self) -> str:
        return self.settings.field

    @property
    def description(self) -> str | None:
        return self.settings.description

    @property
    def halt_on_fail(self) -> bool:
        return self.settings.halt_on_fail

    @abstractmethod
    def check(self, value: Any, frame: Frame) -> None:
        """
        Validate a value against this rule.

        Args:
            value: The field value (None if missing)
            frame: The entire frame, for context-dependent rules

        Raises:
            ValidationFailure: If validation fails
        """

    def process(self, txn: TransactionContext) -> bool:
        frame = txn.source_frame
        try:
            self.check(frame.get(self.field_name), frame)
        except ValidationFailure as e:
            self.fail(txn, self.field_name, self.description or self._default_message(e))
            return False
        return True

    def _default_message(self, failure: ValidationFailure) -> str:
        return f"{type(self).__name__} validation of '{self.field_name}' failed: {failure.message}"

    def fail(self, txn: TransactionContext, field: str, message: str | None = None) -> None:
        """
        Report a failed validation of ``field``.

        Listeners receive the message (the configured description, or a
        generated one naming this validator and the field). The context
        error is set only when this validator halts on failure.
        """
        if not message:
            message = self.description or f"{type(self).__name__} validation of '{field}' failed"
        txn.fire_validation_failed(self, message)
        if self.halt_on_fail:
            txn.set_error(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(field={self.settings.field!r}, halt={self.settings.halt_on_fail})"
