"""
Template renderer.

Templates reference symbols with the ``[#$name#]`` placeholder syntax.
Placeholders whose symbol is absent (or None) render as an empty string.
"""

import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

PLACEHOLDER = re.compile(r"\[#\$([A-Za-z0-9_.\-]+)#\]")


def _format(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render(template: str, symbols: Mapping[str, Any] | None) -> str:
    """
    Resolve every placeholder in the template against the symbols.

    Args:
        template: Text containing ``[#$name#]`` placeholders
        symbols: Symbol values; None renders every placeholder empty

    Returns:
        The rendered text
    """
    if not template:
        return ""
    table = symbols or {}
    return PLACEHOLDER.sub(lambda m: _format(table.get(m.group(1))), template)


def placeholders(template: str) -> list[str]:
    """List the symbol names a template references, in order of appearance."""
    return PLACEHOLDER.findall(template or "")
