# tests/conftest.py
"""
Shared test fixtures and configuration for pytest.
"""

import copy
import datetime as dt
import logging
import os
import re
import types
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

from dbdump.database import Database
from dbdump.defaults import settings

TEST_ENCRYPTION_KEY = 'GaT5shW41hOGz7O1tVcFuigUgletbdD5qVaG0p30oDg='


# Set test config file and encryption key for all tests
@pytest.fixture(autouse=True)
def setup_test_config():
    """Use tests/test.yml and a fixed encryption key; restore global settings afterwards."""
    from dbdump.config import set_config_file

    saved_settings = copy.deepcopy(settings)
    test_config = Path(__file__).parent / 'test.yml'

    with patch.dict(os.environ, {'DBDUMP_ENCRYPTION_KEY': TEST_ENCRYPTION_KEY}):
        set_config_file(str(test_config))
        yield

    settings.clear()
    settings.update(saved_settings)


@pytest.fixture
def reset_logging():
    """Close handlers added by setup_logging() so log files are released."""
    yield
    from dbdump.logging_utils import shutdown_logging
    shutdown_logging()
    logging.getLogger().setLevel(logging.WARNING)


class FakeOracleCursor:
    """
    Minimal stand-in for an oracledb cursor.

    Answers the current-schema query, the ALL_TAB_COLUMNS lookup and plain
    ``SELECT ... FROM <table>`` statements from the owning connection's data.
    """

    def __init__(self, connection):
        self.connection = connection
        self.description = None
        self.arraysize = 100
        self.closed = False
        self._rows = []

    def _result(self, names, rows):
        self.description = [(name, None, None, None, None, None, None) for name in names]
        self._rows = list(rows)

    def execute(self, sql, params=()):
        self.connection.executed.append((sql, params))
        if 'SYS_CONTEXT' in sql:
            self._result(['SCHEMA'], [(self.connection.schema,)])
        elif 'ALL_TAB_COLUMNS' in sql:
            key = (params['owner'], params['table_name'])
            columns = self.connection.tables.get(key, {}).get('columns', [])
            self._result(['COLUMN_NAME', 'DATA_TYPE'], columns)
        else:
            match = re.search(r'\bFROM\s+(\S+)', sql)
            parts = match.group(1).replace('"', '').upper().split('.')
            key = (parts[0], parts[1]) if len(parts) == 2 else (self.connection.schema, parts[0])
            if key not in self.connection.tables:
                raise self.connection.error(f'ORA-00942: table or view does not exist: {match.group(1)}')
            table = self.connection.tables[key]
            self._result([c[0] for c in table['columns']], table['rows'])

    def fetchone(self):
        if not self._rows:
            return None
        return self._rows.pop(0)

    def fetchmany(self, size=None):
        size = size or self.arraysize
        rows, self._rows = self._rows[:size], self._rows[size:]
        return rows

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def close(self):
        self.closed = True


class FakeOracleConnection:
    """Holds the catalog and table rows of a fake Oracle schema."""

    error = RuntimeError

    def __init__(self, schema='APP'):
        self.schema = schema
        self.tables = {}
        self.executed = []
        self.outputtypehandler = None
        self.closed = False

    def add_table(self, owner, name, columns, rows=()):
        """columns: list of (name, data_type) in column order."""
        self.tables[(owner, name)] = {'columns': list(columns), 'rows': list(rows)}

    def cursor(self):
        return FakeOracleCursor(self)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_oracle_interface():
    """Module-like namespace that identifies itself as oracledb."""
    return types.SimpleNamespace(__name__='oracledb', paramstyle='named',
                                 DB_TYPE_NUMBER=object(), DatabaseError=RuntimeError)


@pytest.fixture
def oracle_connection():
    """Fake Oracle schema APP with ORDERS, and SCHEMA2 with PRODUCTS."""
    connection = FakeOracleConnection('APP')
    connection.add_table('APP', 'ORDERS',
                         [('ID', 'NUMBER'), ('NAME', 'VARCHAR2'), ('CREATED', 'DATE')],
                         [(Decimal('1'), "O'Brien", dt.datetime(2024, 1, 15, 10, 30))])
    connection.add_table('SCHEMA2', 'PRODUCTS',
                         [('SKU', 'VARCHAR2'), ('PRICE', 'NUMBER'), ('UPDATED_AT', 'TIMESTAMP(6)')],
                         [('AANG-01', Decimal('19.99'), dt.datetime(2024, 3, 1, 8, 0, 0, 123456)),
                          ('KATARA-02', None, None)])
    return connection


@pytest.fixture
def oracle_db(oracle_connection, fake_oracle_interface):
    """Database wrapper around the fake Oracle connection."""
    return Database(oracle_connection, fake_oracle_interface, 'ORCLPDB1')


@pytest.fixture
def sqlite_db():
    """In-memory SQLite database with a few Avatar-themed tables."""
    from dbdump.database import sqlite

    db = sqlite(':memory:')
    cursor = db.cursor()
    cursor.execute("""
                   CREATE TABLE characters
                   (
                       id       INTEGER PRIMARY KEY,
                       name     TEXT NOT NULL,
                       nation   TEXT,
                       height   REAL,
                       portrait BLOB
                   )
                   """)
    cursor.execute("""
                   INSERT INTO characters (id, name, nation, height, portrait)
                   VALUES (1, 'Aang', 'Air Nomads', 1.37, X'CAFE'),
                          (2, 'Katara', 'Water Tribe', 1.6, NULL),
                          (3, 'Zuko', 'Fire Nation', 1.83, NULL),
                          (4, 'Toph''s Badger', 'Earth Kingdom', NULL, NULL)
                   """)
    cursor.execute("CREATE TABLE nations (name TEXT, element TEXT)")
    cursor.execute("""
                   INSERT INTO nations (name, element)
                   VALUES ('Fire Nation', 'fire'),
                          ('Water Tribe', 'water')
                   """)
    db.commit()
    yield db
    db.close()
