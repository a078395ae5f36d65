from __future__ import annotations

import inspect as _pyinspect
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .adapters import SqlGenerator, get_generator
from .config import AggregationConfig, get_config
from .core.columns import static_columns
from .core.filters import FilterClause, OrderClause, make_filter, make_order
from .core.hydration import resolve_hydrator
from .core.naming import WILDCARD, ensure_columns, ensure_relation_name
from .core.relations import RelationMetadata, RelationResolver, table_name_for
from .core.requests import MODE_KINDS, RelationRequest, RequestMode
from .errors import (
    DuplicateRelation,
    InvalidPagination,
    InvalidRequest,
    LimitExceeded,
    TooManyRelations,
    UnsupportedRelationKind,
)
from .execution import executor_for
from .sql.builders import assemble_select, compile_orders, compile_wheres, render_base_query

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class Page:
    items: List[Any]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1

    @property
    def has_more(self) -> bool:
        return self.page < self.last_page


class AggregatedQuery:
    """Fluent builder compiling relation aggregations into one SQL statement.

    Single-object relations become a LEFT JOIN plus a NULL-guarded JSON object,
    collections and counts become correlated subqueries so root rows are never
    multiplied. Every registration call validates eagerly; ``compile_sql`` is
    idempotent.

    Example:
        rows = (
            AggregatedQuery(Partner, dialect='pgsql', executor=session)
            .add_single_relation('profile', ['id', 'name'])
            .add_collection_relation('promocodes', ['id', 'code'])
            .add_count('promocodes')
            .filter('status', 'active')
            .order_by('name')
            .limit(20)
            .get()
        )

    Instances are request-scoped and not safe to share between threads/tasks.
    """

    def __init__(
        self,
        root_type: Any,
        *,
        dialect: str | None = None,
        executor: Any = None,
        introspector: Any = None,
        generator: SqlGenerator | None = None,
        resolver: RelationResolver | None = None,
        base_query: Any = None,
        config: AggregationConfig | None = None,
        base_alias: str = 'base',
    ):
        self.root_type = root_type
        self.config = config or get_config()
        self.base_alias = base_alias
        self.base_table = table_name_for(root_type)
        self.executor = executor_for(executor) if executor is not None else None
        self.introspector = introspector if introspector is not None else self.executor
        if generator is None:
            if dialect is None:
                if self.executor is None:
                    raise InvalidRequest("Either a dialect, a generator or an executor is required.")
                dialect = self.executor.dialect_name
                logger.info("relagg: detected database dialect %s", dialect)
            generator = get_generator(dialect, base_alias, supported=self.config.supported_dialects)
        self.generator = generator
        self.resolver = resolver or RelationResolver()
        self.base_query = base_query
        self.relations: List[RelationRequest] = []
        self.filters: List[FilterClause] = []
        self.orders: List[OrderClause] = []
        self.limit_value: Optional[int] = None
        self.offset_value: Optional[int] = None
        self.warnings: List[str] = []
        # instance-owned; never shared between queries
        self._metadata_cache: Dict[str, RelationMetadata] = {}
        self._column_listings: Dict[str, List[str]] = {}
        self._wildcards_resolved = False

    @classmethod
    def for_bind(cls, root_type: Any, bind: Any, **kwargs: Any) -> 'AggregatedQuery':
        """Query bound to a SQLAlchemy engine/connection/session; dialect is detected."""
        return cls(root_type, executor=bind, **kwargs)

    # ---- relation registration -------------------------------------------------
    def add_single_relation(self, name: str, columns: Iterable[str] | str = WILDCARD) -> 'AggregatedQuery':
        """Attach a belongs-to-one / has-one relation as a nested JSON object."""
        return self._register(name, RequestMode.SINGLE, columns)

    def add_collection_relation(self, name: str, columns: Iterable[str] | str = WILDCARD) -> 'AggregatedQuery':
        """Attach a has-many relation as a JSON array (``[]`` when empty)."""
        return self._register(name, RequestMode.COLLECTION, columns)

    def add_count(self, name: str) -> 'AggregatedQuery':
        """Attach ``<name>_count`` for a has-many relation."""
        return self._register(name, RequestMode.COUNT, None)

    def _register(self, name: str, mode: RequestMode, columns: Any) -> 'AggregatedQuery':
        name = ensure_relation_name(name)
        cols: Any = []
        if mode is not RequestMode.COUNT:
            cols = ensure_columns(columns, name)
            if cols == WILDCARD:
                self._soft_violation(
                    f"Using SELECT * for relation '{name}' may expose sensitive data "
                    "and increase payload size. Consider selecting specific columns.",
                    InvalidRequest,
                    self.config.strict_mode,
                )
        metadata = self._resolve(name)
        allowed = MODE_KINDS[mode]
        if metadata.kind not in allowed:
            raise UnsupportedRelationKind(
                f"Relation '{name}' is {metadata.kind.value}; {mode.value} requires "
                f"{' or '.join(k.value for k in allowed)}."
            )
        request = RelationRequest(name=name, mode=mode, metadata=metadata, columns=cols)
        if any(r.output_key == request.output_key for r in self.relations):
            raise DuplicateRelation(f"Relation output '{request.output_key}' is already registered.")
        total = len(self.relations) + 1
        if total > self.config.max_relations:
            self._soft_violation(
                f"Query contains {total} relations, which exceeds the recommended "
                f"maximum of {self.config.max_relations}. This may cause performance degradation.",
                TooManyRelations,
                self.config.strict_mode,
            )
        self.relations.append(request)
        self._wildcards_resolved = False
        return self

    def _resolve(self, name: str) -> RelationMetadata:
        md = self._metadata_cache.get(name)
        if md is None:
            md = self.resolver.resolve(self.root_type, name)
            self._metadata_cache[name] = md
        return md

    def _soft_violation(self, message: str, exc_type: type, strict: bool) -> None:
        if strict:
            raise exc_type(message)
        self.warnings.append(message)
        if self.config.log_fallbacks:
            logger.warning("relagg: %s", message)

    # ---- filters, ordering, paging ---------------------------------------------
    def filter(self, column: str, operator: Any, value: Any = _MISSING) -> 'AggregatedQuery':
        """``filter('status', 'active')`` or ``filter('created_at', '>=', t)``."""
        if value is _MISSING:
            operator, value = '=', operator
        self.filters.append(make_filter(column, operator, value))
        return self

    def order_by(self, column: str, direction: Any = 'asc') -> 'AggregatedQuery':
        self.orders.append(make_order(column, direction))
        return self

    def limit(self, n: int) -> 'AggregatedQuery':
        self.limit_value = self._check_limit(n, 'Limit')
        return self

    def offset(self, n: int) -> 'AggregatedQuery':
        self.offset_value = self._check_non_negative(n, 'Offset')
        return self

    def _check_non_negative(self, n: Any, label: str) -> int:
        if isinstance(n, bool) or not isinstance(n, int) or n < 0:
            raise InvalidPagination(f"{label} must be a non-negative integer, got {n!r}.")
        return n

    def _check_limit(self, n: Any, label: str) -> int:
        n = self._check_non_negative(n, label)
        if n > self.config.max_limit:
            self._soft_violation(
                f"Query limit ({n}) exceeds recommended maximum ({self.config.max_limit}). "
                "This may cause performance issues.",
                LimitExceeded,
                self.config.strict_limit_validation,
            )
        return n

    # ---- wildcard resolution ---------------------------------------------------
    def _pending_wildcards(self) -> List[RelationRequest]:
        pending: List[RelationRequest] = []
        for req in self.relations:
            if not req.is_wildcard:
                continue
            table = req.metadata.related_table
            cols = self._column_listings.get(table) or static_columns(req.metadata.related_type, table, self.config)
            if cols:
                self._column_listings[table] = cols
                req.resolve_columns(cols)
            else:
                pending.append(req)
        return pending

    def _tables_to_introspect(self, pending: Sequence[RelationRequest]) -> List[str]:
        if pending and self.introspector is None:
            raise InvalidRequest(
                f"Cannot resolve wildcard columns for table '{pending[0].metadata.related_table}': "
                "no schema introspector configured."
            )
        tables: List[str] = []
        for req in pending:
            if req.metadata.related_table not in tables:
                tables.append(req.metadata.related_table)
        return tables

    def _apply_listings(self, pending: Sequence[RelationRequest]) -> None:
        for req in pending:
            req.resolve_columns(self._column_listings.get(req.metadata.related_table) or [])
        self._wildcards_resolved = True

    def _resolve_wildcards(self) -> None:
        if self._wildcards_resolved:
            return
        pending = self._pending_wildcards()
        tables = self._tables_to_introspect(pending)
        if tables:
            if self.generator.batch_introspection:
                listings = self._sync_call(self.introspector.list_columns_batch, tables)
                self._column_listings.update({t: list(c) for t, c in listings.items()})
            else:
                for t in tables:
                    self._column_listings[t] = list(self._sync_call(self.introspector.list_columns, t))
        self._apply_listings(pending)

    async def _aresolve_wildcards(self) -> None:
        if self._wildcards_resolved:
            return
        pending = self._pending_wildcards()
        tables = self._tables_to_introspect(pending)
        if tables:
            if self.generator.batch_introspection:
                listings = await _maybe_await(self.introspector.list_columns_batch(tables))
                self._column_listings.update({t: list(c) for t, c in listings.items()})
            else:
                for t in tables:
                    self._column_listings[t] = list(await _maybe_await(self.introspector.list_columns(t)))
        self._apply_listings(pending)

    @staticmethod
    def _sync_call(fn, *args):
        result = fn(*args)
        if _pyinspect.isawaitable(result):
            close = getattr(result, 'close', None)
            if close is not None:
                close()
            raise InvalidRequest("The configured facade is async; use the a* variants (acompile_sql, aget, ...).")
        return result

    # ---- compilation -------------------------------------------------------------
    def compile_sql(self) -> Tuple[str, List[Any]]:
        """Return ``(sql, bindings)``; repeated calls yield identical SQL."""
        self._resolve_wildcards()
        return self._build(self.limit_value, self.offset_value)

    async def acompile_sql(self) -> Tuple[str, List[Any]]:
        await self._aresolve_wildcards()
        return self._build(self.limit_value, self.offset_value)

    def to_sql(self) -> str:
        return self.compile_sql()[0]

    def _source(self) -> Tuple[str, List[Any]]:
        if self.base_query is None:
            return f"{self.base_table} {self.base_alias}", []
        sql, bindings = render_base_query(self.base_query, self.generator)
        return f"({sql}) {self.base_alias}", bindings

    def _build(self, limit: Optional[int], offset: Optional[int]) -> Tuple[str, List[Any]]:
        source, bindings = self._source()
        where, where_bindings = compile_wheres(self.filters, self.base_alias)
        paged = self.base_query is None
        sql = assemble_select(
            self.generator.build_select_list([f"{self.base_alias}.*"], self.relations),
            source,
            joins=self.generator.build_join_list(self.relations),
            where=where,
            order_by=compile_orders(self.orders, self.base_alias) if paged else '',
            limit=limit if paged else None,
            offset=offset if paged else None,
            offset_only_limit=self.generator.offset_only_limit,
        )
        logger.debug("relagg: compiled %s", sql)
        return sql, bindings + where_bindings

    def _build_count(self) -> Tuple[str, List[Any]]:
        source, bindings = self._source()
        where, where_bindings = compile_wheres(self.filters, self.base_alias)
        single = [r for r in self.relations if r.mode is RequestMode.SINGLE]
        sql = assemble_select('COUNT(*) AS aggregate', source, joins=self.generator.build_join_list(single), where=where)
        return sql, bindings + where_bindings

    def get_bindings(self) -> List[Any]:
        return self._build(self.limit_value, self.offset_value)[1]

    # ---- execution -----------------------------------------------------------
    def _require_executor(self, want_async: bool):
        if self.executor is None:
            raise InvalidRequest("No executor configured; pass executor= or use AggregatedQuery.for_bind().")
        if bool(getattr(self.executor, 'is_async', False)) != want_async:
            hint = 'aget/afirst/apaginate' if self.executor.is_async else 'get/first/paginate'
            raise InvalidRequest(f"Executor flavour does not match this call; use {hint}.")
        return self.executor

    def _hydrate(self, rows: List[Dict[str, Any]], hydrator: Any) -> List[Any]:
        h = resolve_hydrator(hydrator if hydrator is not None else self.config.default_hydrator)
        return h.hydrate(rows, self.relations, self.root_type)

    def get(self, hydrator: Any = None) -> List[Any]:
        executor = self._require_executor(False)
        sql, bindings = self.compile_sql()
        return self._hydrate(executor.execute(sql, bindings), hydrator)

    def first(self, hydrator: Any = None) -> Any:
        items = self.get(hydrator)
        return items[0] if items else None

    async def aget(self, hydrator: Any = None) -> List[Any]:
        executor = self._require_executor(True)
        sql, bindings = await self.acompile_sql()
        return self._hydrate(await executor.execute(sql, bindings), hydrator)

    async def afirst(self, hydrator: Any = None) -> Any:
        items = await self.aget(hydrator)
        return items[0] if items else None

    def _page_window(self, page: Any, per_page: Any) -> Tuple[int, int]:
        if self.base_query is not None:
            raise InvalidPagination("Cannot paginate over a base query; the base query owns its paging.")
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise InvalidPagination(f"Page must be a positive integer, got {page!r}.")
        if isinstance(per_page, bool) or not isinstance(per_page, int) or per_page < 1:
            raise InvalidPagination(f"Per-page must be a positive integer, got {per_page!r}.")
        self._check_limit(per_page, 'Per-page')
        return per_page, (page - 1) * per_page

    def paginate(self, page: int = 1, per_page: int = 15, hydrator: Any = None) -> Page:
        """Run a COUNT(*) companion query, then fetch one page."""
        limit, offset = self._page_window(page, per_page)
        executor = self._require_executor(False)
        self._resolve_wildcards()
        count_sql, count_bindings = self._build_count()
        total = _scalar_count(executor.execute(count_sql, count_bindings))
        sql, bindings = self._build(limit, offset)
        items = self._hydrate(executor.execute(sql, bindings), hydrator)
        return Page(items=items, total=total, page=page, per_page=per_page)

    async def apaginate(self, page: int = 1, per_page: int = 15, hydrator: Any = None) -> Page:
        limit, offset = self._page_window(page, per_page)
        executor = self._require_executor(True)
        await self._aresolve_wildcards()
        count_sql, count_bindings = self._build_count()
        total = _scalar_count(await executor.execute(count_sql, count_bindings))
        sql, bindings = self._build(limit, offset)
        items = self._hydrate(await executor.execute(sql, bindings), hydrator)
        return Page(items=items, total=total, page=page, per_page=per_page)


def _scalar_count(rows: List[Dict[str, Any]]) -> int:
    if not rows:
        return 0
    return int(next(iter(rows[0].values())) or 0)


async def _maybe_await(value: Any) -> Any:
    if _pyinspect.isawaitable(value):
        return await value
    return value


__all__ = ['AggregatedQuery', 'Page']
