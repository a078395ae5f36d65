import logging
from types import SimpleNamespace

import pytest

from relagg.adapters import (
    GENERATORS,
    MySQLGenerator,
    PostgresGenerator,
    SQLiteGenerator,
    SqlGenerator,
    canonical_dialect,
    dialect_name_of,
    get_generator,
    register_generator,
)
from relagg.errors import UnsupportedDialect


@pytest.mark.parametrize("dialect,cls", [
    ("mysql", MySQLGenerator),
    ("mariadb", MySQLGenerator),
    ("mysql+pymysql", MySQLGenerator),
    ("pgsql", PostgresGenerator),
    ("postgresql", PostgresGenerator),
    ("postgresql+asyncpg", PostgresGenerator),
    ("sqlite", SQLiteGenerator),
    ("sqlite+aiosqlite", SQLiteGenerator),
])
def test_get_generator_matrix(dialect, cls):
    g = get_generator(dialect)
    assert isinstance(g, cls)
    assert g.base_alias == 'base'


def test_unknown_dialect_is_rejected():
    with pytest.raises(UnsupportedDialect, match="mssql"):
        get_generator('mssql')


def test_configured_dialects_restrict_factory():
    with pytest.raises(UnsupportedDialect, match="disabled"):
        get_generator('postgresql', supported=('mysql',))
    assert isinstance(get_generator('postgres', supported=('pgsql',)), PostgresGenerator)


def test_canonical_dialect():
    assert canonical_dialect(' PostgreSQL+psycopg ') == 'pgsql'
    assert canonical_dialect('oracle') is None


def test_dialect_name_of_engine_like_objects():
    engine = SimpleNamespace(dialect=SimpleNamespace(name='postgresql'))
    assert dialect_name_of(engine) == 'postgresql'
    async_engine = SimpleNamespace(sync_engine=SimpleNamespace(dialect=SimpleNamespace(name='sqlite')))
    assert dialect_name_of(async_engine) == 'sqlite'
    session = SimpleNamespace(get_bind=lambda: engine)
    assert dialect_name_of(session) == 'postgresql'


def test_dialect_name_of_real_binds(engine, db_session):
    assert dialect_name_of(engine) == engine.dialect.name
    assert dialect_name_of(db_session) == engine.dialect.name


def test_register_generator_adds_dialect(caplog):
    class DuckGenerator(SqlGenerator):
        name = 'duck'
        json_object_fn = 'json_object'
        json_array_agg_fn = 'list'
        empty_array_literal = "'[]'"

    try:
        with caplog.at_level(logging.INFO, logger='relagg.adapters'):
            register_generator('duck', DuckGenerator, 'duckdb')
        g = get_generator('duckdb', base_alias='b')
        assert isinstance(g, DuckGenerator)
        assert g.base_alias == 'b'
        assert "DuckGenerator" in caplog.text
    finally:
        GENERATORS.pop('duck', None)
        from relagg.adapters import _ALIASES
        _ALIASES.pop('duck', None)
        _ALIASES.pop('duckdb', None)


@pytest.mark.parametrize("cls,name", [
    (MySQLGenerator, 'mysql'),
    (PostgresGenerator, 'postgresql'),
    (SQLiteGenerator, 'sqlite'),
])
def test_sqlalchemy_dialect_is_positional(cls, name):
    d = cls().sqlalchemy_dialect()
    assert d.name == name
    assert d.paramstyle == 'qmark'


def test_base_generator_has_no_sqlalchemy_dialect():
    with pytest.raises(NotImplementedError):
        SqlGenerator().sqlalchemy_dialect()
