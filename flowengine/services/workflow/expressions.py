"""Expression evaluation over the workflow context.

Expressions are ``{{path.to.value}}`` spans inside parameter strings. A
path is split on dots and walked through nested mappings (and lists, by
numeric index). There is no arithmetic or function call support; an
expression is only a lookup.

Missing data never raises. A span whose path cannot be resolved is
replaced by an empty string, so a partially populated context does not
abort unrelated evaluations.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

EXPRESSION_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

_MISSING = object()


def is_expression(value: Any) -> bool:
    """Return True if ``value`` is a string containing a ``{{...}}`` span."""
    return isinstance(value, str) and EXPRESSION_PATTERN.search(value) is not None


def resolve_path(path: str, context: Mapping[str, Any]) -> Any:
    """Walk ``context`` along a dotted ``path``.

    Returns:
        The value found, or ``""`` if any segment is missing.
    """
    current: Any = context
    for segment in path.strip().split("."):
        segment = segment.strip()
        if isinstance(current, BaseModel):
            current = current.model_dump()
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
        elif isinstance(current, Sequence) and not isinstance(current, str | bytes):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                current = _MISSING
        else:
            current = _MISSING
        if current is _MISSING:
            return ""
    return current


def evaluate(expression: Any, context: Mapping[str, Any]) -> Any:
    """Resolve every ``{{path}}`` span in ``expression``.

    A string consisting of exactly one span evaluates to the raw value at
    that path, keeping its type. Otherwise each span is rendered as text
    and substituted in place. Non-strings and strings without spans are
    returned unchanged.

    Example:
        >>> evaluate("{{a.b}}", {"a": {"b": 5}})
        5
        >>> evaluate("x{{a}}y", {"a": "Z"})
        'xZy'
        >>> evaluate("{{missing}}", {})
        ''
    """
    if not isinstance(expression, str):
        return expression

    whole = EXPRESSION_PATTERN.fullmatch(expression)
    if whole is not None:
        return resolve_path(whole.group(1), context)

    def _substitute(match: re.Match[str]) -> str:
        value = resolve_path(match.group(1), context)
        return "" if value is None else _to_text(value)

    return EXPRESSION_PATTERN.sub(_substitute, expression)


def evaluate_parameters(parameters: Mapping[str, Any], context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new parameter map with every string leaf evaluated.

    Nested mappings and lists are processed recursively. Other values pass
    through unchanged. The input mapping is not modified.
    """
    return {key: _evaluate_value(value, context) for key, value in parameters.items()}


def _evaluate_value(value: Any, context: Mapping[str, Any]) -> Any:
    if isinstance(value, str):
        return evaluate(value, context)
    if isinstance(value, Mapping):
        return evaluate_parameters(value, context)
    if isinstance(value, list):
        return [_evaluate_value(item, context) for item in value]
    return value


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


__all__ = [
    "EXPRESSION_PATTERN",
    "evaluate",
    "evaluate_parameters",
    "is_expression",
    "resolve_path",
]
