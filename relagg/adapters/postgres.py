from __future__ import annotations

from .base import SqlGenerator


class PostgresGenerator(SqlGenerator):
    name = 'pgsql'
    json_object_fn = 'json_build_object'
    json_array_agg_fn = 'json_agg'
    empty_array_literal = "'[]'::json"
    batch_introspection = True

    def sqlalchemy_dialect(self):
        from sqlalchemy.dialects import postgresql
        return postgresql.dialect(paramstyle='qmark')
