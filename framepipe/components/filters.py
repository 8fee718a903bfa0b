"""
Frame filters.

Filters keep unwanted frames out of the pipeline entirely; a rejected
frame is never validated, transformed or written. The engine applies them
in order and the first one whose condition matches decides, which allows a
few accept filters followed by a catch-all reject filter.
"""

import re
from typing import Any

from pydantic import model_validator

from framepipe.context.transaction_context import TransactionContext
from framepipe.core.template import render

from .base import ComponentConfig, FrameFilter


class FilterConfig(ComponentConfig):
    """
    Condition on a single field. With no field the filter matches every
    frame (a catch-all).

    Attributes:
        field: Field to test
        equals: Matches when the field's text equals this value; may
            reference symbols, e.g. "[#$region#]"
        pattern: Matches when the field's text matches this regex
        missing: Matches when the field is absent or null
    """

    field: str | None = None
    equals: Any = None
    pattern: str | None = None
    missing: bool = False

    @model_validator(mode="after")
    def one_condition(self) -> "FilterConfig":
        conditions = [self.equals is not None, self.pattern is not None, self.missing]
        if sum(conditions) > 1:
            raise ValueError("Use only one of: equals, pattern, missing")
        if self.field is None and any(conditions):
            raise ValueError("A filter condition requires 'field'")
        if self.field is not None and not any(conditions):
            raise ValueError("A filter on a field requires one of: equals, pattern, missing")
        return self


class FieldConditionFilter(FrameFilter):
    """Evaluates the configured field condition against the source frame."""

    config_model = FilterConfig
    _regex: re.Pattern | None = None

    def configure(self, config):
        super().configure(config)
        self._regex = re.compile(self.settings.pattern) if self.settings.pattern else None

    def matches(self, txn: TransactionContext) -> bool:
        s = self.settings
        if s.field is None:
            return True

        value = txn.source_frame.get(s.field)
        if s.missing:
            return value is None
        if value is None:
            return False
        if self._regex is not None:
            return self._regex.search(str(value)) is not None

        expected = render(s.equals, txn.symbols) if isinstance(s.equals, str) else s.equals
        if isinstance(expected, str):
            return str(value) == expected
        return value == expected


class AcceptFilter(FieldConditionFilter):
    """Lets matching frames through, skipping any later filters."""

    accepts = True


class RejectFilter(FieldConditionFilter):
    """Drops matching frames."""

    accepts = False
