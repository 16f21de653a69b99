"""Translation of ``where`` mappings into Django ``Q`` objects.

A ``where`` mapping pairs a field with either a literal (equality) or a
``(field, operator, value)`` triple::

    {"status": "active", "age": ["age", ">", 18]}

Each entry becomes one condition; entries are applied in mapping order and
combined with AND.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Mapping, Tuple

from django.db import models
from django.db.models import Q

from modules.core.exceptions import InvalidCondition, UnsupportedOperator

OPERATOR_LOOKUPS: Dict[str, str] = {
    "=": "exact",
    "==": "exact",
    ">": "gt",
    ">=": "gte",
    "<": "lt",
    "<=": "lte",
    "in": "in",
    "between": "range",
    "like": "iregex",
}

NEGATED_OPERATORS: Dict[str, str] = {
    "!=": "=",
    "<>": "=",
    "not in": "in",
    "not like": "like",
}


def like_to_regex(pattern: str) -> str:
    """Convert a SQL ``LIKE`` pattern (``%`` and ``_`` wildcards) to a regex."""
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(r"[\s\S]*")
        elif char == "_":
            parts.append(r"[\s\S]")
        else:
            parts.append(re.escape(char))
    return "^" + "".join(parts) + "$"


def lookup_for(operator: str) -> Tuple[str, bool]:
    """Return ``(lookup, negated)`` for a comparison operator."""
    normalized = " ".join(str(operator).lower().split())
    negated = normalized in NEGATED_OPERATORS
    if negated:
        normalized = NEGATED_OPERATORS[normalized]
    try:
        return OPERATOR_LOOKUPS[normalized], negated
    except KeyError:
        raise UnsupportedOperator(operator) from None


def build_condition(field: str, operator: str, value: Any) -> Q:
    lookup, negated = lookup_for(operator)
    if lookup == "iregex":
        value = like_to_regex(str(value))
    elif lookup == "range":
        value = tuple(value)
        if len(value) != 2:
            raise InvalidCondition(
                f"'between' on {field!r} expects two bounds, got {len(value)}"
            )
    condition = Q(**{f"{field}__{lookup}": value})
    return ~condition if negated else condition


def parse_where(where: Mapping[str, Any]) -> Iterable[Q]:
    """Yield one ``Q`` per entry of ``where``, in mapping order."""
    for field, value in where.items():
        if isinstance(value, (list, tuple)):
            if len(value) != 3:
                raise InvalidCondition(
                    f"Condition for {field!r} must be (field, operator, value), "
                    f"got {len(value)} items"
                )
            field, operator, value = value
            yield build_condition(field, operator, value)
        else:
            yield Q(**{field: value})


def apply_conditions(queryset: models.QuerySet, where: Mapping[str, Any]) -> models.QuerySet:
    for condition in parse_where(where):
        queryset = queryset.filter(condition)
    return queryset
