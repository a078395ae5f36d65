import pytest

from relagg import AggregatedQuery, AggregationConfig
from relagg.errors import InvalidRequest
from tests.models import Partner


class CountingIntrospector:
    """Records catalog round trips."""

    def __init__(self, tables):
        self.tables = tables
        self.single_calls = []
        self.batch_calls = []

    def list_columns(self, table):
        self.single_calls.append(table)
        return list(self.tables.get(table, []))

    def list_columns_batch(self, tables):
        self.batch_calls.append(list(tables))
        return {t: list(self.tables[t]) for t in tables if t in self.tables}


class AsyncIntrospector(CountingIntrospector):
    async def list_columns(self, table):
        return super().list_columns(table)

    async def list_columns_batch(self, tables):
        return super().list_columns_batch(tables)


TABLES = {
    'regions': ['code', 'title'],
    'partner_notes': ['id', 'partner_id', 'body'],
}


def test_mapped_relation_resolves_without_round_trip():
    spy = CountingIntrospector(TABLES)
    sql, _ = AggregatedQuery(Partner, dialect='mysql', introspector=spy).add_single_relation('profile').compile_sql()
    assert "JSON_OBJECT('id', profile.id, 'name', profile.name, 'avatar', profile.avatar)" in sql
    assert spy.single_calls == []
    assert spy.batch_calls == []


def test_mapped_collection_includes_timestamp_columns():
    sql, _ = AggregatedQuery(Partner, dialect='mysql').add_collection_relation('promocodes').compile_sql()
    assert (
        "JSON_OBJECT('id', promocodes.id, 'partner_id', promocodes.partner_id, 'code', promocodes.code, "
        "'created_at', promocodes.created_at, 'deleted_at', promocodes.deleted_at)"
    ) in sql


def test_column_cache_from_config():
    config = AggregationConfig(column_cache={'regions': ['code', 'title']})
    sql, _ = AggregatedQuery(Partner, dialect='mysql', config=config).add_single_relation('region').compile_sql()
    assert "CASE WHEN region.code IS NULL THEN NULL ELSE JSON_OBJECT('code', region.code, 'title', region.title) END" in sql
    assert "LEFT JOIN regions region ON region.code = base.region_code" in sql


def test_per_table_introspection_for_mysql():
    spy = CountingIntrospector(TABLES)
    query = (
        AggregatedQuery(Partner, dialect='mysql', introspector=spy)
        .add_single_relation('region')
        .add_collection_relation('notes')
    )
    sql, _ = query.compile_sql()
    assert spy.single_calls == ['regions', 'partner_notes']
    assert spy.batch_calls == []
    assert "JSON_OBJECT('id', notes.id, 'partner_id', notes.partner_id, 'body', notes.body)" not in sql
    assert "JSON_OBJECT('id', partner_notes.id, 'partner_id', partner_notes.partner_id, 'body', partner_notes.body)" in sql


def test_batched_introspection_for_postgres():
    spy = CountingIntrospector(TABLES)
    query = (
        AggregatedQuery(Partner, dialect='pgsql', introspector=spy)
        .add_single_relation('region')
        .add_collection_relation('notes')
    )
    sql, _ = query.compile_sql()
    assert spy.batch_calls == [['regions', 'partner_notes']]
    assert spy.single_calls == []
    assert "json_build_object('code', region.code, 'title', region.title)" in sql


def test_resolution_happens_once_per_query():
    spy = CountingIntrospector(TABLES)
    query = AggregatedQuery(Partner, dialect='mysql', introspector=spy).add_single_relation('region')
    first = query.compile_sql()
    second = query.compile_sql()
    assert first == second
    assert spy.single_calls == ['regions']


def test_listings_are_reused_for_later_registrations():
    spy = CountingIntrospector(TABLES)
    query = AggregatedQuery(Partner, dialect='mysql', introspector=spy).add_collection_relation('notes')
    query.compile_sql()
    query.add_count('notes')
    query.compile_sql()
    assert spy.single_calls == ['partner_notes']


def test_listings_are_not_shared_between_queries():
    spy = CountingIntrospector(TABLES)
    AggregatedQuery(Partner, dialect='mysql', introspector=spy).add_single_relation('region').compile_sql()
    AggregatedQuery(Partner, dialect='mysql', introspector=spy).add_single_relation('region').compile_sql()
    assert spy.single_calls == ['regions', 'regions']


def test_explicit_columns_skip_introspection():
    spy = CountingIntrospector(TABLES)
    AggregatedQuery(Partner, dialect='mysql', introspector=spy).add_single_relation('region', ['title']).compile_sql()
    assert spy.single_calls == []


def test_missing_introspector_is_an_error():
    query = AggregatedQuery(Partner, dialect='mysql').add_single_relation('region')
    with pytest.raises(InvalidRequest, match="regions"):
        query.compile_sql()


def test_empty_listing_is_an_error():
    spy = CountingIntrospector({})
    query = AggregatedQuery(Partner, dialect='mysql', introspector=spy).add_single_relation('region')
    with pytest.raises(InvalidRequest, match="region"):
        query.compile_sql()


def test_async_introspector_needs_async_compile():
    query = AggregatedQuery(Partner, dialect='mysql', introspector=AsyncIntrospector(TABLES))
    query.add_single_relation('region')
    with pytest.raises(InvalidRequest, match="async"):
        query.compile_sql()


async def test_async_compile_with_async_introspector():
    spy = AsyncIntrospector(TABLES)
    query = AggregatedQuery(Partner, dialect='pgsql', introspector=spy).add_single_relation('region').add_collection_relation('notes')
    sql, _ = await query.acompile_sql()
    assert spy.batch_calls == [['regions', 'partner_notes']]
    assert "json_build_object('code', region.code, 'title', region.title)" in sql


async def test_async_compile_accepts_sync_introspector():
    spy = CountingIntrospector(TABLES)
    sql, _ = await AggregatedQuery(Partner, dialect='mysql', introspector=spy).add_single_relation('region').acompile_sql()
    assert "JSON_OBJECT('code', region.code, 'title', region.title)" in sql


def test_async_introspector_returning_plain_awaitable():
    class Pending:
        def __await__(self):
            return iter(())

    class PendingIntrospector:
        def list_columns(self, table):
            return Pending()

    query = AggregatedQuery(Partner, dialect='mysql', introspector=PendingIntrospector()).add_single_relation('region')
    with pytest.raises(InvalidRequest, match="async"):
        query.compile_sql()
