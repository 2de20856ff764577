# dbdump/catalog.py
"""
Table references and column metadata read from the database catalog.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .exceptions import InvalidIdentifier

logger = logging.getLogger(__name__)

__all__ = ['TableSpec', 'ColumnDescriptor', 'ColumnResolver', 'CATALOG_QUERIES',
           'parse_table_name', 'build_table_specs', 'resolve_columns', 'get_current_schema']

# Catalog SQL per server type. Column queries take :owner and :table_name and
# must return (column name, declared type) in the table's column order.
CATALOG_QUERIES = {
    'oracle': {
        'current_schema': "SELECT SYS_CONTEXT('USERENV','CURRENT_SCHEMA') FROM dual",
        'columns': (
            "SELECT COLUMN_NAME, DATA_TYPE "
            "FROM ALL_TAB_COLUMNS "
            "WHERE OWNER = :owner AND TABLE_NAME = :table_name "
            "ORDER BY COLUMN_ID"
        ),
    },
    'sqlite': {
        'current_schema': "SELECT 'main'",
        'columns': (
            "SELECT name, type "
            "FROM pragma_table_info(:table_name, :owner) "
            "ORDER BY cid"
        ),
    },
}


@dataclass(frozen=True)
class ColumnDescriptor:
    """A column as the catalog reports it."""
    name: str
    declared_type: str


@dataclass(frozen=True)
class TableSpec:
    """
    One table to export.

    Attributes
    ----------
    qualified_name : str
        The reference as configured, ``NAME`` or ``SCHEMA.NAME``
    schema : str
        Owning schema, upper-cased
    name : str
        Table name, upper-cased
    where_clause : str, optional
        Trusted SQL fragment appended to the SELECT, e.g. ``WHERE STATUS = 'OPEN'``
    order_by_clause : str, optional
        Trusted SQL fragment appended after the WHERE fragment
    """
    qualified_name: str
    schema: str
    name: str
    where_clause: Optional[str] = None
    order_by_clause: Optional[str] = None

    @property
    def is_qualified(self) -> bool:
        return '.' in self.qualified_name

    @classmethod
    def parse(cls, qualified_name: str, default_schema: str,
              where_clause: Optional[str] = None,
              order_by_clause: Optional[str] = None) -> 'TableSpec':
        schema, name = parse_table_name(qualified_name, default_schema)
        return cls(qualified_name.strip(), schema, name,
                   where_clause or None, order_by_clause or None)


def parse_table_name(identifier: str, default_schema: str) -> Tuple[str, str]:
    """
    Split ``NAME`` or ``SCHEMA.NAME`` into an upper-cased (schema, table) pair.

    Unqualified names belong to ``default_schema``.

    Raises:
        InvalidIdentifier: if the identifier has more than one separator

    Example
    -------
    ::
        >>> parse_table_name('schema2.products', 'APP')
        ('SCHEMA2', 'PRODUCTS')
        >>> parse_table_name('ORDERS', 'app')
        ('APP', 'ORDERS')
    """
    parts = [part.strip() for part in identifier.split('.') if part.strip()]
    if identifier.count('.') > 1 or not parts:
        raise InvalidIdentifier(identifier)
    if len(parts) == 2:
        return parts[0].upper(), parts[1].upper()
    return (default_schema or '').upper(), parts[0].upper()


def _lookup(clauses: Optional[Dict[str, str]], table_name: str) -> Optional[str]:
    if not clauses:
        return None
    value = clauses.get(table_name.strip().upper())
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def build_table_specs(tables: List[str], default_schema: str,
                      where_by_table: Optional[Dict[str, str]] = None,
                      order_by_by_table: Optional[Dict[str, str]] = None) -> List[TableSpec]:
    """
    Turn configured table references into TableSpecs, in configured order.

    The clause maps must be keyed by upper-cased table reference, exactly as
    :class:`dbdump.config.ExportConfig` stores them.
    """
    return [
        TableSpec.parse(table, default_schema,
                        _lookup(where_by_table, table),
                        _lookup(order_by_by_table, table))
        for table in tables
    ]


def _queries_for(cursor) -> dict:
    server_type = getattr(cursor.connection, 'server_type', 'oracle')
    try:
        return CATALOG_QUERIES[server_type]
    except KeyError:
        raise ValueError(f"No catalog queries for database type '{server_type}'")


def get_current_schema(cursor) -> str:
    """Return the schema unqualified names resolve to for this session."""
    cursor.execute(_queries_for(cursor)['current_schema'])
    row = cursor.fetchone()
    if row is None or row[0] is None:
        return 'UNKNOWN'
    return str(row[0])


class ColumnResolver:
    """
    Looks up column metadata with one prepared catalog statement that is
    reused for every table of a run.

    Example
    -------
    ::

        resolver = ColumnResolver(db.cursor())
        columns = resolver.resolve('SCHEMA2.PRODUCTS', 'APP')
    """

    def __init__(self, cursor):
        self.cursor = cursor
        self.statement = cursor.prepare(_queries_for(cursor)['columns'])

    def resolve(self, identifier: str, default_schema: str) -> List[ColumnDescriptor]:
        """
        Return the columns of a table in catalog order.

        An empty list means the table does not exist or is not visible to the
        connected user; deciding whether that is an error is up to the caller.

        Raises:
            InvalidIdentifier: if the identifier has more than one separator
        """
        owner, table_name = parse_table_name(identifier, default_schema)
        self.statement.execute({'owner': owner, 'table_name': table_name})
        columns = [ColumnDescriptor(str(name), str(data_type or ''))
                   for name, data_type in self.cursor.fetchall()]
        logger.debug(f"{owner}.{table_name}: {len(columns)} columns")
        return columns


def resolve_columns(cursor, identifier: str, default_schema: str) -> List[ColumnDescriptor]:
    """One-off column lookup. See :meth:`ColumnResolver.resolve`."""
    return ColumnResolver(cursor).resolve(identifier, default_schema)
