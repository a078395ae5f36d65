from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy.sql import Select

from ..adapters.base import SqlGenerator
from ..core.filters import FilterClause, OrderClause
from ..core.naming import qualify
from ..errors import InvalidRequest

# Statement assembly helpers. Values are always bound positionally with "?".


def compile_wheres(filters: Sequence[FilterClause], alias: str) -> Tuple[str, List[Any]]:
    clauses: List[str] = []
    bindings: List[Any] = []
    for f in filters:
        clauses.append(f"{qualify(f.column, alias)} {f.operator.upper()} ?")
        bindings.append(f.value)
    return ' AND '.join(clauses), bindings


def compile_orders(orders: Sequence[OrderClause], alias: str) -> str:
    return ', '.join(f"{qualify(o.column, alias)} {o.direction.upper()}" for o in orders)


def render_base_query(base_query: Any, generator: SqlGenerator) -> Tuple[str, List[Any]]:
    """Render a base subquery as ``(sql, bindings)``.

    Accepts a SQLAlchemy ``Select`` (compiled for the generator's dialect with
    positional binds) or an already rendered ``(sql, bindings)`` pair.
    """
    if isinstance(base_query, Select):
        compiled = base_query.compile(
            dialect=generator.sqlalchemy_dialect(),
            compile_kwargs={'render_postcompile': True},
        )
        params = compiled.params
        order = compiled.positiontup or []
        return str(compiled), [params[name] for name in order]
    if isinstance(base_query, str):
        return base_query, []
    if isinstance(base_query, (tuple, list)) and len(base_query) == 2 and isinstance(base_query[0], str):
        sql, bindings = base_query
        return sql, list(bindings or ())
    raise InvalidRequest(f"Unsupported base query {base_query!r}; pass a Select or (sql, bindings).")


def assemble_select(
    select_list: str,
    source: str,
    joins: str = '',
    where: str = '',
    order_by: str = '',
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    offset_only_limit: Optional[int] = None,
) -> str:
    sql = f"SELECT {select_list} FROM {source}"
    if joins:
        sql += "\n" + joins
    if where:
        sql += "\nWHERE " + where
    if order_by:
        sql += "\nORDER BY " + order_by
    if limit is None and offset is not None and offset_only_limit is not None:
        limit = offset_only_limit
    if limit is not None:
        sql += f"\nLIMIT {int(limit)}"
    if offset is not None:
        sql += f"\nOFFSET {int(offset)}"
    return sql


__all__ = ['compile_wheres', 'compile_orders', 'render_base_query', 'assemble_select']
