"""
Writers that turn query results into SQL script text.

Example
-------
::
    from dbdump.writers import to_inserts

    cursor.execute("SELECT ID, NAME FROM ORDERS")
    to_inserts(cursor, 'orders.sql', 'ORDERS', columns, commit_every=500)
"""

from .base import BaseWriter
from .insert import InsertWriter, to_inserts, COMMIT_MARKER

__all__ = ['BaseWriter', 'InsertWriter', 'to_inserts', 'COMMIT_MARKER']
