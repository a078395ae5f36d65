from __future__ import annotations

from typing import Any, List, Optional

from .relations import mapper_for


def columns_from_model(entity: Any) -> List[str]:
    """Column names declared on a mapped class, without touching the database.

    Primary key columns come first, then every other mapped column in table
    order; timestamp and soft-delete columns are ordinary mapped columns and
    are included. Returns an empty list for unmapped handles.
    """
    mapper = mapper_for(entity)
    if mapper is None:
        return []
    out: List[str] = [c.name for c in mapper.primary_key]
    for col in mapper.columns:
        # column_property() expressions have no physical table column
        if getattr(col, 'table', None) is None or not hasattr(col, 'name'):
            continue
        if col.name not in out:
            out.append(col.name)
    return out


def static_columns(entity: Any, table: str, config: Any) -> Optional[List[str]]:
    """Wildcard discovery steps that need no schema round trip.

    1. static metadata of the related mapped class
    2. the configured per-table column cache
    """
    cols = columns_from_model(entity)
    if cols:
        return cols
    cached = config.columns_for(table) if config is not None else None
    if cached:
        return cached
    return None


__all__ = ['columns_from_model', 'static_columns']
