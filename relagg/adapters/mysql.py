from __future__ import annotations

from .base import SqlGenerator


class MySQLGenerator(SqlGenerator):
    name = 'mysql'
    json_object_fn = 'JSON_OBJECT'
    json_array_agg_fn = 'JSON_ARRAYAGG'
    empty_array_literal = 'JSON_ARRAY()'
    # information_schema lookups are issued per table
    batch_introspection = False
    offset_only_limit = 18446744073709551615

    def sqlalchemy_dialect(self):
        from sqlalchemy.dialects import mysql
        return mysql.dialect(paramstyle='qmark')
