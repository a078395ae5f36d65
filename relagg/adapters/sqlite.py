from __future__ import annotations

from .base import SqlGenerator


class SQLiteGenerator(SqlGenerator):
    """SQLite 3.38+ JSON1 functions.

    ``json_group_array`` already yields ``[]`` over zero rows, the COALESCE
    is kept so the statement shape matches the other dialects.
    """
    name = 'sqlite'
    json_object_fn = 'json_object'
    json_array_agg_fn = 'json_group_array'
    empty_array_literal = 'json_array()'
    batch_introspection = False
    offset_only_limit = -1

    def sqlalchemy_dialect(self):
        from sqlalchemy.dialects import sqlite
        return sqlite.dialect(paramstyle='qmark')
