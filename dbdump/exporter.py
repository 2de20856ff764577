# dbdump/exporter.py
"""
Table export: resolve columns, stream rows, write INSERT scripts.

``export_table`` handles one table against an already open text stream;
``ExportRunner`` walks the configured tables in order and decides which file
each one goes to.
"""

import datetime as dt
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, TextIO

from .catalog import ColumnDescriptor, ColumnResolver, TableSpec, build_table_specs, get_current_schema
from .defaults import settings
from .exceptions import NoColumnsFound
from .utils import quote_identifier, sanitize_filename, timestamp
from .writers import InsertWriter

logger = logging.getLogger(__name__)

__all__ = ['ExportResult', 'ExportRunner', 'export_table', 'build_select', 'render_table_name',
           'write_file_header', 'run_export']

BANNER = '-' * 80


@dataclass(frozen=True)
class ExportResult:
    """Rows written for one table, and where."""
    table_name: str
    rows_exported: int
    path: Optional[str] = None


def render_table_name(table: TableSpec, quote_identifiers: bool = False) -> str:
    """
    Table reference used in the SELECT and after INSERT INTO.

    Unquoted, the reference is written as configured. Quoted, it is rebuilt
    from the resolved upper-case parts and keeps a schema prefix only if the
    configured reference had one.
    """
    if not quote_identifiers:
        return table.qualified_name
    if table.is_qualified:
        return f'{quote_identifier(table.schema)}.{quote_identifier(table.name)}'
    return quote_identifier(table.name)


def build_select(table: TableSpec, columns: List[ColumnDescriptor], quote_identifiers: bool = False) -> str:
    """
    SELECT listing every column in catalog order, plus the table's WHERE and
    ORDER BY fragments appended verbatim.
    """
    select_cols = ', '.join(quote_identifier(c.name, quote_identifiers) for c in columns)
    sql = f'SELECT {select_cols} FROM {render_table_name(table, quote_identifiers)}'
    if table.where_clause:
        sql += ' ' + table.where_clause
    if table.order_by_clause:
        sql += ' ' + table.order_by_clause
    return sql


def write_file_header(file_obj: TextIO, title: str, when: dt.datetime = None) -> None:
    """Comment block that opens every generated script."""
    generated = timestamp(settings.get('header_timestamp_format', '%Y-%m-%d %H:%M:%S'), when)
    file_obj.write(f'-- Export INSERT for: {title}\n')
    file_obj.write(f'-- Generated: {generated}\n')
    file_obj.write('\n')


def export_table(db,
                 table: TableSpec,
                 file_obj: TextIO,
                 default_schema: str,
                 quote_identifiers: bool = False,
                 commit_every: int = 500,
                 resolver: Optional[ColumnResolver] = None) -> int:
    """
    Export one table as INSERT statements into an open text stream.

    Args:
        db: Database connection
        table: Table to export
        file_obj: Destination stream; left open
        default_schema: Schema for unqualified table names
        quote_identifiers: Double-quote table and column identifiers
        commit_every: Rows between ``-- COMMIT;`` markers, 0 disables them
        resolver: Column resolver to reuse; one is created if omitted

    Returns:
        Number of rows written

    Raises:
        NoColumnsFound: if the catalog reports no columns for the table
        InvalidIdentifier: if the table reference has more than one separator
    """
    if resolver is None:
        resolver = ColumnResolver(db.cursor())
    columns = resolver.resolve(table.qualified_name, default_schema)
    if not columns:
        raise NoColumnsFound(table.qualified_name, table.schema)

    sql = build_select(table, columns, quote_identifiers)
    logger.debug(f"Reading {table.qualified_name}: {sql}")

    with db.cursor() as cursor:
        cursor.execute(sql)
        writer = InsertWriter(cursor, file_obj,
                              render_table_name(table, quote_identifiers),
                              columns,
                              quote_identifiers=quote_identifiers,
                              commit_every=commit_every)
        rows = writer.write()

    logger.info(f"{table.qualified_name}: rows exported = {rows}")
    return rows


class ExportRunner:
    """
    Export every configured table, one at a time, in configured order.

    With ``one_file_per_table`` each table gets
    ``<SCHEMA>_<TABLE>_<timestamp>.sql``; otherwise all tables share
    ``export_all_tables_<timestamp>.sql`` with a banner before each table.
    The first failure stops the run. Files already written are kept.

    Example
    -------
    ::

        config = load_export_config()
        with connect(config.connection) as db:
            results = ExportRunner(db, config).run()
    """

    def __init__(self, db, config):
        """
        Args:
            db: Open Database connection
            config: ExportConfig with tables, clauses and layout options
        """
        self.db = db
        self.config = config
        self.output_dir = Path(config.output_dir)
        self.default_schema = None
        self._resolver = None

    def _file_timestamp(self) -> str:
        return timestamp(settings.get('file_timestamp_format', '%Y%m%d_%H%M%S'))

    def _open(self, path: Path) -> TextIO:
        # utf-8 without BOM, \n line endings on every platform
        return open(path, 'w', encoding='utf-8', newline='')

    def _export(self, table: TableSpec, file_obj: TextIO) -> int:
        return export_table(self.db, table, file_obj, self.default_schema,
                            quote_identifiers=self.config.quote_identifiers,
                            commit_every=self.config.commit_every,
                            resolver=self._resolver)

    def _export_to_own_file(self, table: TableSpec) -> ExportResult:
        file_name = f'{sanitize_filename(f"{table.schema}.{table.name}")}_{self._file_timestamp()}.sql'
        path = self.output_dir / file_name
        with self._open(path) as file_obj:
            write_file_header(file_obj, table.qualified_name)
            rows = self._export(table, file_obj)
        logger.info(f"Created: {path}")
        return ExportResult(table.qualified_name, rows, str(path))

    def _export_to_one_file(self, tables: List[TableSpec]) -> List[ExportResult]:
        path = self.output_dir / f'export_all_tables_{self._file_timestamp()}.sql'
        results = []
        with self._open(path) as file_obj:
            write_file_header(file_obj, 'ALL TABLES')
            for table in tables:
                file_obj.write('\n')
                file_obj.write(BANNER + '\n')
                file_obj.write(f'-- TABLE: {table.qualified_name}\n')
                file_obj.write(BANNER + '\n')
                rows = self._export(table, file_obj)
                results.append(ExportResult(table.qualified_name, rows, str(path)))
        logger.info(f"Created: {path}")
        return results

    def run(self) -> List[ExportResult]:
        """
        Run the export.

        Returns:
            One ExportResult per table, in configured order
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)

        cursor = self.db.cursor()
        self.default_schema = get_current_schema(cursor)
        logger.info(f"Connected to {self.db}. Current schema: {self.default_schema}")
        logger.info(f"Output: {self.output_dir.resolve()}")

        tables = build_table_specs(self.config.tables, self.default_schema,
                                   self.config.where_by_table, self.config.order_by_by_table)
        self._resolver = ColumnResolver(cursor)

        if self.config.one_file_per_table:
            results = [self._export_to_own_file(table) for table in tables]
        else:
            results = self._export_to_one_file(tables)

        logger.info(f"Export completed. {len(results)} tables, "
                    f"{sum(r.rows_exported for r in results)} rows.")
        return results


def run_export(db, config) -> List[ExportResult]:
    """Convenience wrapper around ``ExportRunner(db, config).run()``."""
    return ExportRunner(db, config).run()
