# dbdump/writers/insert.py
"""
Writer that renders rows as SQL INSERT statements.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, TextIO, Union

from .base import BaseWriter
from ..catalog import ColumnDescriptor
from ..literals import encode
from ..utils import quote_identifier

logger = logging.getLogger(__name__)

COMMIT_MARKER = '-- COMMIT;'


class InsertWriter(BaseWriter):
    """
    Render each row as ``INSERT INTO <table> (<cols>) VALUES (<literals>);``.

    The column list is rendered once from ``columns`` and reused for every
    row; row values must be in the same order. A commented-out commit marker
    is written every ``commit_every`` rows and once more after the last row,
    so the block always ends on a checkpoint even when it has no rows.

    Example
    -------
    ::

        columns = [ColumnDescriptor('ID', 'NUMBER'), ColumnDescriptor('NAME', 'VARCHAR2')]
        writer = InsertWriter([(1, "O'Brien")], 'orders.sql', 'ORDERS', columns)
        writer.write()
        # INSERT INTO ORDERS (ID, NAME) VALUES (1, 'O''Brien');
        #
        # -- COMMIT;
    """

    def __init__(self,
                 data: Iterable,
                 file: Optional[Union[str, Path, TextIO]],
                 table: str,
                 columns: List[ColumnDescriptor],
                 quote_identifiers: bool = False,
                 commit_every: int = 0,
                 encoding: str = 'utf-8'):
        """
        Args:
            data: Cursor or iterable of row sequences aligned with ``columns``
            file: Output path, open text stream, or None for stdout
            table: Table reference written after INSERT INTO, already rendered
            columns: Column metadata in SELECT order
            quote_identifiers: Double-quote column names
            commit_every: Rows between commit markers; 0 disables them
            encoding: Encoding used when ``file`` is a path
        """
        super().__init__(data, file, encoding)
        if not columns:
            raise ValueError("InsertWriter needs at least one column")
        self.table = table
        self.columns = list(columns)
        self.quote_identifiers = quote_identifiers
        self.commit_every = max(int(commit_every or 0), 0)
        self.column_list = ', '.join(quote_identifier(c.name, quote_identifiers) for c in self.columns)
        self._declared_types = [c.declared_type for c in self.columns]

    def format_row(self, row) -> str:
        """Render one row as a complete INSERT statement (no line break)."""
        if len(row) != len(self._declared_types):
            raise ValueError(
                f"Row has {len(row)} values but {self.table} has {len(self._declared_types)} columns"
            )
        literals = ', '.join(encode(value, declared_type)
                             for value, declared_type in zip(row, self._declared_types))
        return f'INSERT INTO {self.table} ({self.column_list}) VALUES ({literals});'

    def _write_data(self, file_obj) -> None:
        for row in self.data_iterator:
            file_obj.write(self.format_row(row))
            file_obj.write('\n')
            self._row_num += 1
            if self.commit_every and self._row_num % self.commit_every == 0:
                file_obj.write(COMMIT_MARKER + '\n')
        file_obj.write('\n' + COMMIT_MARKER + '\n')


def to_inserts(data,
               file: Optional[Union[str, Path, TextIO]],
               table: str,
               columns: List[ColumnDescriptor],
               quote_identifiers: bool = False,
               commit_every: int = 0) -> int:
    """
    Write rows as INSERT statements.

    Returns:
        Number of rows written

    Example:
        cursor.execute("SELECT ID, NAME FROM ORDERS")
        to_inserts(cursor, 'orders.sql', 'ORDERS', columns, commit_every=500)
    """
    writer = InsertWriter(data, file, table, columns,
                          quote_identifiers=quote_identifiers,
                          commit_every=commit_every)
    return writer.write()
