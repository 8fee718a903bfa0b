"""
Pre- and post-process tasks.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Any

from pydantic import Field, model_validator
from simpleeval import InvalidExpression, SimpleEval

from framepipe.context.transform_context import TransformContext
from framepipe.core.exceptions import JobError, TaskError
from framepipe.core.template import render
from framepipe.observability.logger import get_logger

from .base import ComponentConfig, TransformTask

logger = get_logger(__name__)


class TaskConfig(ComponentConfig):
    """
    Attributes:
        enabled: Skip the task when false
        halt_on_error: A TaskError fails the job (JobError) instead of
            only being logged
    """

    enabled: bool = True
    halt_on_error: bool = True


class AbstractTransformTask(TransformTask):
    """
    Base of the shipped tasks. Subclasses implement ``perform_task()`` and
    raise TaskError when they cannot complete.
    """

    config_model = TaskConfig

    def execute(self, context: TransformContext) -> None:
        if not self.settings.enabled:
            logger.debug(f"Task {self.name} is disabled, skipping")
            return

        try:
            self.perform_task(context)
        except TaskError as e:
            message = f"Task {self.name} failed: {e}"
            if self.settings.halt_on_error:
                context.set_error(message)
                raise JobError(message) from e
            logger.warning(message)

    @abstractmethod
    def perform_task(self, context: TransformContext) -> None:
        ...


class SetSymbolConfig(TaskConfig):
    """
    Attributes:
        symbol: Name of the symbol to set
        value: Static value; strings are templates resolved against the
            current symbols
        evaluate: Expression evaluated when no value is given; symbols
            are available as names and the result must be a number or
            a boolean
    """

    symbol: str = Field(..., min_length=1)
    value: Any = None
    evaluate: str | None = None

    @model_validator(mode="after")
    def value_or_expression(self) -> "SetSymbolConfig":
        if _blank(self.value) and _blank(self.evaluate):
            raise ValueError("SetSymbol requires one of: value, evaluate")
        return self


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class SetSymbol(AbstractTransformTask):
    """
    Sets a symbol in the job's symbol table, either to a static value or to
    the result of evaluating an expression:

        - class: set_symbol
          symbol: threshold
          evaluate: "run_count * 2.5"

    Numeric results are stored as floats, boolean results as booleans.
    """

    config_model = SetSymbolConfig

    def perform_task(self, context: TransformContext) -> None:
        value = self.settings.value
        if _blank(value):
            value = self._evaluate(self.settings.evaluate, context)
        elif isinstance(value, str):
            value = render(value, context.symbols)
        context.set_symbol(self.settings.symbol, value)
        logger.debug(f"Set symbol '{self.settings.symbol}' to {value!r}")

    def _evaluate(self, expression: str, context: TransformContext) -> float | bool:
        evaluator = SimpleEval(names=dict(context.symbols))
        try:
            result = evaluator.eval(expression)
        except (InvalidExpression, SyntaxError, ArithmeticError, TypeError, ValueError) as e:
            raise TaskError(f"Could not evaluate '{expression}': {e}") from e

        if isinstance(result, bool):
            return result
        if isinstance(result, (int, float)):
            return float(result)
        raise TaskError(f"Expression '{expression}' is neither numeric nor boolean: {result!r}")


class StampSymbolConfig(TaskConfig):
    symbol: str = Field(..., min_length=1)
    format: str | None = None


class StampSymbol(AbstractTransformTask):
    """
    Records the current time in a symbol, as a datetime or formatted with
    ``format`` (strftime syntax). Paired with a persisted context this
    remembers when a job last finished.
    """

    config_model = StampSymbolConfig

    def perform_task(self, context: TransformContext) -> None:
        now = datetime.now()
        fmt = self.settings.format
        context.set_symbol(self.settings.symbol, now.strftime(fmt) if fmt else now)
