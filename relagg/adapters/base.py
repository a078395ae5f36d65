from __future__ import annotations

from typing import Any, List, Sequence

from ..core.relations import RelationKind, RelationMetadata
from ..core.requests import RelationRequest, RequestMode
from ..errors import UnsupportedJoinKind


class SqlGenerator:
    """Dialect SQL generator contract.

    Structure and NULL/empty guards are shared; dialects only name the JSON
    object constructor, the JSON array aggregate and the empty-array literal.
    ``batch_introspection`` tells the query whether wildcard columns of all
    pending tables may be fetched with a single catalog query.
    """
    name = 'base'
    json_object_fn = ''
    json_array_agg_fn = ''
    empty_array_literal = ''
    batch_introspection = False
    # LIMIT emitted when only an offset is set; None when OFFSET may stand alone
    offset_only_limit: Any = None

    def __init__(self, base_alias: str = 'base'):
        self.base_alias = base_alias

    # ---- JSON primitives -----------------------------------------------------
    def json_object(self, source: str, columns: Sequence[str]) -> str:
        pairs = ', '.join(f"'{c}', {source}.{c}" for c in columns)
        return f"{self.json_object_fn}({pairs})"

    def json_array_agg(self, expr: str) -> str:
        return f"{self.json_array_agg_fn}({expr})"

    def json_array_coalesce(self, expr: str) -> str:
        return f"COALESCE({expr}, {self.empty_array_literal})"

    # ---- relation fragments --------------------------------------------------
    def single_object_expr(self, metadata: RelationMetadata, columns: Sequence[str], output_key: str) -> str:
        """Example: CASE WHEN profile.id IS NULL THEN NULL ELSE JSON_OBJECT('id', profile.id) END AS profile"""
        alias = metadata.related_alias
        return (
            f"CASE WHEN {alias}.{metadata.primary_key} IS NULL THEN NULL "
            f"ELSE {self.json_object(alias, columns)} END AS {output_key}"
        )

    def collection_expr(self, metadata: RelationMetadata, columns: Sequence[str], output_key: str) -> str:
        table = metadata.related_table
        agg = self.json_array_coalesce(self.json_array_agg(self.json_object(table, columns)))
        return f"(SELECT {agg} FROM {table} WHERE {self._correlation(metadata)}) AS {output_key}"

    def count_expr(self, metadata: RelationMetadata, output_key: str) -> str:
        table = metadata.related_table
        return f"(SELECT COUNT(*) FROM {table} WHERE {self._correlation(metadata)}) AS {output_key}"

    def _correlation(self, metadata: RelationMetadata) -> str:
        table = metadata.related_table
        return f"{table}.{metadata.foreign_key} = {self.base_alias}.{metadata.local_key}"

    # ---- clause builders -----------------------------------------------------
    def build_select_list(self, root_columns: Sequence[str], requests: Sequence[RelationRequest]) -> str:
        selects: List[str] = list(root_columns)
        for req in requests:
            if req.mode is RequestMode.SINGLE:
                selects.append(self.single_object_expr(req.metadata, req.columns, req.output_key))
            elif req.mode is RequestMode.COLLECTION:
                selects.append(self.collection_expr(req.metadata, req.columns, req.output_key))
            elif req.mode is RequestMode.COUNT:
                selects.append(self.count_expr(req.metadata, req.output_key))
        return ",\n       ".join(selects)

    def build_join_list(self, requests: Sequence[RelationRequest]) -> str:
        """One LEFT JOIN per single-object request; collections and counts use subqueries."""
        clauses: List[str] = []
        for req in requests:
            if req.mode is not RequestMode.SINGLE:
                continue
            md = req.metadata
            alias = md.related_alias
            if md.kind is RelationKind.BELONGS_TO_ONE:
                on = f"{alias}.{md.owner_key} = {self.base_alias}.{md.foreign_key}"
            elif md.kind is RelationKind.HAS_ONE:
                on = f"{alias}.{md.foreign_key} = {self.base_alias}.{md.local_key}"
            else:
                raise UnsupportedJoinKind(
                    f"Relation kind '{md.kind.value}' of '{req.name}' is not supported for JSON joins."
                )
            clauses.append(f"LEFT JOIN {md.related_table} {alias} ON {on}")
        return "\n".join(clauses)

    # ---- SQLAlchemy integration ----------------------------------------------
    def sqlalchemy_dialect(self) -> Any:
        """SQLAlchemy dialect used to render a base ``Select`` with positional binds."""
        raise NotImplementedError
