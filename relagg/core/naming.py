from __future__ import annotations

import re
from typing import Iterable, List

from ..errors import InvalidRequest, UnsafeIdentifier

__all__ = [
    'WILDCARD',
    'SAFE_IDENTIFIER',
    'is_safe_identifier',
    'ensure_identifier',
    'ensure_relation_name',
    'ensure_columns',
    'qualify',
]

WILDCARD = '*'

SAFE_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_.]*$')


def is_safe_identifier(name: str) -> bool:
    return bool(SAFE_IDENTIFIER.match(name or ''))


def ensure_identifier(name: str, kind: str = 'column') -> str:
    """Return ``name`` stripped, or raise when blank or unsafe."""
    name = (name or '').strip() if isinstance(name, str) else name
    if not isinstance(name, str) or name == '':
        raise InvalidRequest(f"{kind.capitalize()} name cannot be empty.")
    if not is_safe_identifier(name):
        raise UnsafeIdentifier(name, kind)
    return name


def ensure_relation_name(name: str) -> str:
    name = ensure_identifier(name, 'relation')
    if '.' in name:
        raise InvalidRequest(
            f"Nested relations are not supported. Received: '{name}'. "
            "Register each relation of the root entity separately."
        )
    return name


def ensure_columns(columns: Iterable[str] | str, relation: str) -> List[str] | str:
    """Validate a requested column list; the wildcard passes through as ``'*'``."""
    if isinstance(columns, str):
        columns = [columns]
    cols = list(columns or [])
    if not cols:
        raise InvalidRequest(f"Columns for relation '{relation}' cannot be empty.")
    if WILDCARD in cols:
        if len(cols) > 1:
            raise InvalidRequest(
                f"Wildcard '*' for relation '{relation}' cannot be combined with explicit columns."
            )
        return WILDCARD
    out: List[str] = []
    for c in cols:
        c = ensure_identifier(c, 'column')
        if c not in out:
            out.append(c)
    return out


def qualify(column: str, alias: str) -> str:
    """Prefix ``column`` with ``alias`` unless it is already qualified."""
    if '.' in column:
        return column
    return f"{alias}.{column}"
