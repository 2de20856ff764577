# tests/test_catalog.py
import pytest

from dbdump.catalog import (
    ColumnDescriptor, ColumnResolver, TableSpec, build_table_specs,
    get_current_schema, parse_table_name, resolve_columns
)
from dbdump.exceptions import InvalidIdentifier


class TestParseTableName:
    """Test splitting of table references."""

    def test_qualified(self):
        assert parse_table_name('SCHEMA2.PRODUCTS', 'APP') == ('SCHEMA2', 'PRODUCTS')

    def test_qualified_is_upper_cased(self):
        assert parse_table_name('schema2.products', 'APP') == ('SCHEMA2', 'PRODUCTS')

    def test_unqualified_uses_default_schema(self):
        assert parse_table_name('orders', 'app') == ('APP', 'ORDERS')

    def test_surrounding_whitespace(self):
        assert parse_table_name('  ORDERS ', 'APP') == ('APP', 'ORDERS')

    @pytest.mark.parametrize('identifier', ['A.B.C', 'A..B', 'X.Y.Z.W', '', '.'])
    def test_invalid(self, identifier):
        with pytest.raises(InvalidIdentifier):
            parse_table_name(identifier, 'APP')

    def test_invalid_message_names_identifier(self):
        with pytest.raises(InvalidIdentifier, match="A.B.C"):
            parse_table_name('A.B.C', 'APP')


class TestTableSpec:
    """Test TableSpec construction."""

    def test_parse_keeps_configured_name(self):
        table = TableSpec.parse('schema2.products', 'APP')
        assert table.qualified_name == 'schema2.products'
        assert table.schema == 'SCHEMA2'
        assert table.name == 'PRODUCTS'
        assert table.is_qualified

    def test_blank_clauses_become_none(self):
        table = TableSpec.parse('ORDERS', 'APP', '', '')
        assert table.where_clause is None
        assert table.order_by_clause is None
        assert not table.is_qualified

    def test_build_table_specs_lookup_ignores_case(self):
        tables = build_table_specs(
            ['orders', 'SCHEMA2.PRODUCTS'], 'APP',
            where_by_table={'ORDERS': "WHERE STATUS = 'OPEN'"},
            order_by_by_table={'SCHEMA2.PRODUCTS': 'ORDER BY SKU', 'ORDERS': '  '}
        )
        assert [t.qualified_name for t in tables] == ['orders', 'SCHEMA2.PRODUCTS']
        assert tables[0].where_clause == "WHERE STATUS = 'OPEN'"
        assert tables[0].order_by_clause is None
        assert tables[1].where_clause is None
        assert tables[1].order_by_clause == 'ORDER BY SKU'

    def test_build_table_specs_rejects_bad_reference(self):
        with pytest.raises(InvalidIdentifier):
            build_table_specs(['ORDERS', 'A.B.C'], 'APP')


class TestOracleCatalog:
    """Test catalog lookups against the fake Oracle connection."""

    def test_current_schema(self, oracle_db):
        assert get_current_schema(oracle_db.cursor()) == 'APP'

    def test_current_schema_unknown(self, oracle_db, oracle_connection):
        oracle_connection.schema = None
        assert get_current_schema(oracle_db.cursor()) == 'UNKNOWN'

    def test_resolve_unqualified(self, oracle_db, oracle_connection):
        columns = resolve_columns(oracle_db.cursor(), 'orders', 'APP')
        assert columns == [
            ColumnDescriptor('ID', 'NUMBER'),
            ColumnDescriptor('NAME', 'VARCHAR2'),
            ColumnDescriptor('CREATED', 'DATE'),
        ]
        sql, params = oracle_connection.executed[-1]
        assert 'ALL_TAB_COLUMNS' in sql
        assert params == {'owner': 'APP', 'table_name': 'ORDERS'}

    def test_resolve_qualified(self, oracle_db, oracle_connection):
        columns = resolve_columns(oracle_db.cursor(), 'SCHEMA2.PRODUCTS', 'APP')
        assert [c.name for c in columns] == ['SKU', 'PRICE', 'UPDATED_AT']
        assert oracle_connection.executed[-1][1] == {'owner': 'SCHEMA2', 'table_name': 'PRODUCTS'}

    def test_missing_table_is_empty(self, oracle_db):
        assert resolve_columns(oracle_db.cursor(), 'NOPE', 'APP') == []

    def test_order_is_stable(self, oracle_db):
        resolver = ColumnResolver(oracle_db.cursor())
        assert resolver.resolve('ORDERS', 'APP') == resolver.resolve('ORDERS', 'APP')

    def test_invalid_identifier_skips_query(self, oracle_db, oracle_connection):
        resolver = ColumnResolver(oracle_db.cursor())
        with pytest.raises(InvalidIdentifier):
            resolver.resolve('A.B.C', 'APP')
        assert oracle_connection.executed == []


class TestSqliteCatalog:
    """Test catalog lookups against SQLite."""

    def test_current_schema(self, sqlite_db):
        assert get_current_schema(sqlite_db.cursor()) == 'main'

    def test_resolve(self, sqlite_db):
        columns = resolve_columns(sqlite_db.cursor(), 'characters', 'main')
        assert [(c.name, c.declared_type) for c in columns] == [
            ('id', 'INTEGER'), ('name', 'TEXT'), ('nation', 'TEXT'),
            ('height', 'REAL'), ('portrait', 'BLOB')
        ]

    def test_resolve_missing(self, sqlite_db):
        assert resolve_columns(sqlite_db.cursor(), 'avatar_state', 'main') == []

    def test_unsupported_server_type(self, sqlite_db):
        sqlite_db.server_type = 'unknown'
        with pytest.raises(ValueError, match="No catalog queries"):
            get_current_schema(sqlite_db.cursor())
