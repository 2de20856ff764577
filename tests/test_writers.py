# tests/test_writers.py
import datetime as dt
import io

import pytest

from dbdump.catalog import ColumnDescriptor
from dbdump.writers import InsertWriter, to_inserts, COMMIT_MARKER

ORDER_COLUMNS = [
    ColumnDescriptor('ID', 'NUMBER'),
    ColumnDescriptor('NAME', 'VARCHAR2'),
    ColumnDescriptor('CREATED', 'DATE'),
]


class TestInsertWriter:
    """Test INSERT statement rendering and commit markers."""

    def test_format_row(self):
        writer = InsertWriter([], io.StringIO(), 'ORDERS', ORDER_COLUMNS)
        row = (1, "O'Brien", dt.datetime(2024, 1, 15, 10, 30))
        assert writer.format_row(row) == (
            "INSERT INTO ORDERS (ID, NAME, CREATED) VALUES "
            "(1, 'O''Brien', TO_DATE('2024-01-15 10:30:00','YYYY-MM-DD HH24:MI:SS'));"
        )

    def test_quoted_columns(self):
        columns = [ColumnDescriptor('ORDER', 'NUMBER'), ColumnDescriptor('odd"name', 'VARCHAR2')]
        writer = InsertWriter([], io.StringIO(), '"APP"."ORDERS"', columns, quote_identifiers=True)
        assert writer.format_row((1, 'x')) == \
            'INSERT INTO "APP"."ORDERS" ("ORDER", "odd""name") VALUES (1, \'x\');'

    def test_row_length_mismatch(self):
        writer = InsertWriter([], io.StringIO(), 'ORDERS', ORDER_COLUMNS)
        with pytest.raises(ValueError, match='2 values'):
            writer.format_row((1, 'Zuko'))

    def test_no_columns(self):
        with pytest.raises(ValueError):
            InsertWriter([], io.StringIO(), 'ORDERS', [])

    def test_no_data(self):
        with pytest.raises(ValueError, match='No data'):
            InsertWriter(None, io.StringIO(), 'ORDERS', ORDER_COLUMNS)

    def test_empty_data_writes_final_marker_only(self):
        buffer = io.StringIO()
        rows = InsertWriter([], buffer, 'ORDERS', ORDER_COLUMNS, commit_every=500).write()
        assert rows == 0
        assert buffer.getvalue() == '\n' + COMMIT_MARKER + '\n'

    def test_commit_markers(self):
        """1523 rows with commit_every=500: markers after 500, 1000, 1500 and one final."""
        columns = [ColumnDescriptor('ID', 'NUMBER')]
        buffer = io.StringIO()
        rows = InsertWriter(((i,) for i in range(1, 1524)), buffer, 'T', columns,
                            commit_every=500).write()

        lines = buffer.getvalue().split('\n')
        assert rows == 1523
        assert lines.count(COMMIT_MARKER) == 4
        marker_positions = [i for i, line in enumerate(lines) if line == COMMIT_MARKER]
        assert lines[marker_positions[0] - 1] == 'INSERT INTO T (ID) VALUES (500);'
        assert lines[marker_positions[1] - 1] == 'INSERT INTO T (ID) VALUES (1000);'
        assert lines[marker_positions[2] - 1] == 'INSERT INTO T (ID) VALUES (1500);'
        assert lines[-3:] == ['', COMMIT_MARKER, '']
        assert lines[-4] == 'INSERT INTO T (ID) VALUES (1523);'

    def test_commit_every_zero_disables_intermediate_markers(self):
        columns = [ColumnDescriptor('ID', 'NUMBER')]
        buffer = io.StringIO()
        InsertWriter([(i,) for i in range(10)], buffer, 'T', columns, commit_every=0).write()
        assert buffer.getvalue().count(COMMIT_MARKER) == 1

    def test_rows_written_in_order(self):
        buffer = io.StringIO()
        data = [(2, 'Katara', None), (1, 'Aang', None)]
        InsertWriter(data, buffer, 'ORDERS', ORDER_COLUMNS).write()
        lines = buffer.getvalue().splitlines()
        assert lines[0].endswith("(2, 'Katara', NULL);")
        assert lines[1].endswith("(1, 'Aang', NULL);")

    def test_stream_left_open(self):
        buffer = io.StringIO()
        InsertWriter([], buffer, 'ORDERS', ORDER_COLUMNS).write()
        assert not buffer.closed

    def test_write_to_path(self, tmp_path):
        path = tmp_path / 'orders.sql'
        rows = to_inserts([(1, 'Aang', None)], path, 'ORDERS', ORDER_COLUMNS, commit_every=1)
        assert rows == 1
        content = path.read_text(encoding='utf-8')
        assert content == (
            "INSERT INTO ORDERS (ID, NAME, CREATED) VALUES (1, 'Aang', NULL);\n"
            f"{COMMIT_MARKER}\n"
            f"\n{COMMIT_MARKER}\n"
        )

    def test_write_to_stdout(self, capsys):
        InsertWriter([(7, 'Iroh', None)], None, 'ORDERS', ORDER_COLUMNS).write()
        assert "VALUES (7, 'Iroh', NULL);" in capsys.readouterr().out

    def test_row_count_property(self):
        writer = InsertWriter([(1, 'a', None), (2, 'b', None)], io.StringIO(), 'ORDERS', ORDER_COLUMNS)
        writer.write()
        assert writer.row_count == 2

    def test_error_propagates(self):
        def broken_rows():
            yield (1, 'Appa', None)
            raise RuntimeError('ORA-03113: end-of-file on communication channel')

        with pytest.raises(RuntimeError, match='ORA-03113'):
            InsertWriter(broken_rows(), io.StringIO(), 'ORDERS', ORDER_COLUMNS).write()
