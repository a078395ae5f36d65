from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple

from ..errors import InvalidFilter, InvalidOrder
from .naming import ensure_identifier

# Comparison operators accepted by filter(); values are always bound, never inlined.
ALLOWED_OPERATORS: Tuple[str, ...] = ('=', '!=', '<>', '<', '>', '<=', '>=')

DIRECTIONS: Tuple[str, ...] = ('asc', 'desc')


@dataclass(frozen=True)
class FilterClause:
    column: str
    operator: str
    value: Any


@dataclass(frozen=True)
class OrderClause:
    column: str
    direction: str = 'asc'


def normalize_operator(operator: Any) -> str:
    op = str(operator).strip().lower()
    if op not in ALLOWED_OPERATORS:
        raise InvalidFilter(
            f"Operator '{operator}' is not allowed. Use one of: {', '.join(ALLOWED_OPERATORS)}."
        )
    return op


def make_filter(column: str, operator: Any, value: Any) -> FilterClause:
    return FilterClause(ensure_identifier(column, 'column'), normalize_operator(operator), value)


def make_order(column: str, direction: Any = 'asc') -> OrderClause:
    col = ensure_identifier(column, 'column')
    d = str(getattr(direction, 'value', direction) or '').strip().lower()
    if d not in DIRECTIONS:
        raise InvalidOrder(f"Direction must be either asc or desc, got '{direction}'.")
    return OrderClause(col, d)


__all__ = [
    'ALLOWED_OPERATORS',
    'DIRECTIONS',
    'FilterClause',
    'OrderClause',
    'normalize_operator',
    'make_filter',
    'make_order',
]
