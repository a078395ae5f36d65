"""Execution and schema-introspection facades over SQLAlchemy binds.

Compiled aggregated SQL uses positional ``?`` placeholders. The facades
rewrite them to named binds and run the statement through ``text()`` so every
driver paramstyle works. They also answer column listings for wildcard
resolution: ``list_columns`` per table, ``list_columns_batch`` with one
catalog query for many tables.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import inspect as sa_inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession
from sqlalchemy.orm import Session

from .adapters import dialect_name_of
from .errors import InvalidRequest

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


def to_named_binds(sql: str, bindings: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """Rewrite ``?`` placeholders outside quoted text to ``:p0, :p1, ...``.

    A placeholder followed by ``:`` (a Postgres ``::TYPE`` cast) is wrapped as
    ``(:pN)`` so ``text()`` still recognises the bind.
    """
    values = list(bindings or ())
    out: List[str] = []
    params: Dict[str, Any] = {}
    quote: Optional[str] = None
    idx = 0
    for pos, ch in enumerate(sql):
        if quote is not None:
            out.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"', '`'):
            quote = ch
            out.append(ch)
            continue
        if ch == '?':
            if idx >= len(values):
                raise InvalidRequest(f"SQL has more placeholders than the {len(values)} bindings supplied.")
            name = f"p{idx}"
            params[name] = values[idx]
            if sql[pos + 1:pos + 2] == ':':
                out.append(f"(:{name})")
            else:
                out.append(f":{name}")
            idx += 1
            continue
        out.append(ch)
    if idx != len(values):
        raise InvalidRequest(f"SQL has {idx} placeholders but {len(values)} bindings were supplied.")
    return ''.join(out), params


def split_table(table: str) -> Tuple[Optional[str], str]:
    if '.' in table:
        schema, name = table.split('.', 1)
        return schema, name
    return None, table


def _columns_of(conn: Connection, table: str) -> List[str]:
    schema, name = split_table(table)
    return [c['name'] for c in sa_inspect(conn).get_columns(name, schema=schema)]


def _columns_of_many(conn: Connection, tables: Sequence[str]) -> Dict[str, List[str]]:
    insp = sa_inspect(conn)
    by_schema: Dict[Optional[str], List[str]] = OrderedDict()
    for t in tables:
        schema, name = split_table(t)
        by_schema.setdefault(schema, []).append(name)
    out: Dict[str, List[str]] = {}
    for schema, names in by_schema.items():
        found = insp.get_multi_columns(schema=schema, filter_names=names)
        for (sch, tname), cols in found.items():
            key = f"{sch}.{tname}" if schema else tname
            out[key] = [c['name'] for c in cols]
    return out


class SessionExecutor:
    """Sync facade for an ``Engine``, ``Connection`` or ``Session``."""

    is_async = False

    def __init__(self, bind: Engine | Connection | Session):
        self.bind = bind

    @property
    def dialect_name(self) -> str:
        return dialect_name_of(self.bind)

    def _run(self, fn: Callable[[Connection], Any]) -> Any:
        if isinstance(self.bind, Engine):
            with self.bind.connect() as conn:
                return fn(conn)
        if isinstance(self.bind, Session):
            return fn(self.bind.connection())
        return fn(self.bind)

    def execute(self, sql: str, bindings: Sequence[Any] = ()) -> List[Row]:
        stmt, params = to_named_binds(sql, bindings)
        logger.debug("relagg: executing %s with %r", stmt, params)
        return self._run(lambda conn: [dict(m) for m in conn.execute(text(stmt), params).mappings()])

    def list_columns(self, table: str) -> List[str]:
        return self._run(lambda conn: _columns_of(conn, table))

    def list_columns_batch(self, tables: Sequence[str]) -> Dict[str, List[str]]:
        return self._run(lambda conn: _columns_of_many(conn, tables))


class AsyncSessionExecutor:
    """Async facade for an ``AsyncEngine``, ``AsyncConnection`` or ``AsyncSession``."""

    is_async = True

    def __init__(self, bind: AsyncEngine | AsyncConnection | AsyncSession):
        self.bind = bind

    @property
    def dialect_name(self) -> str:
        return dialect_name_of(self.bind)

    async def _run_sync(self, fn: Callable[[Connection], Any]) -> Any:
        if isinstance(self.bind, AsyncEngine):
            async with self.bind.connect() as conn:
                return await conn.run_sync(fn)
        if isinstance(self.bind, AsyncSession):
            return await self.bind.run_sync(lambda s: fn(s.connection()))
        return await self.bind.run_sync(fn)

    async def execute(self, sql: str, bindings: Sequence[Any] = ()) -> List[Row]:
        stmt, params = to_named_binds(sql, bindings)
        logger.debug("relagg: executing %s with %r", stmt, params)
        if isinstance(self.bind, AsyncEngine):
            async with self.bind.connect() as conn:
                result = await conn.execute(text(stmt), params)
                return [dict(m) for m in result.mappings()]
        result = await self.bind.execute(text(stmt), params)
        return [dict(m) for m in result.mappings()]

    async def list_columns(self, table: str) -> List[str]:
        return await self._run_sync(lambda conn: _columns_of(conn, table))

    async def list_columns_batch(self, tables: Sequence[str]) -> Dict[str, List[str]]:
        return await self._run_sync(lambda conn: _columns_of_many(conn, tables))


def executor_for(bind: Any) -> SessionExecutor | AsyncSessionExecutor:
    """Pick the facade matching a bind's sync/async flavour."""
    if isinstance(bind, (SessionExecutor, AsyncSessionExecutor)):
        return bind
    if isinstance(bind, (AsyncEngine, AsyncConnection, AsyncSession)):
        return AsyncSessionExecutor(bind)
    return SessionExecutor(bind)


__all__ = [
    'Row',
    'SessionExecutor',
    'AsyncSessionExecutor',
    'executor_for',
    'to_named_binds',
    'split_table',
]
