# dbdump/utils.py
"""
Utility functions for dbdump.
"""

import re
import datetime as dt
from typing import Tuple

# Characters that are not allowed in file names on at least one common platform
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


class ParamStyle:
    """
    SQL parameter placeholder styles for different database drivers.

    - QMARK: Question mark placeholders (?, ?) - SQLite, ODBC
    - NUMERIC: Numeric placeholders (:1, :2) - Oracle
    - NAMED: Named placeholders (:name, :email) - Oracle
    - FORMAT: Printf-style (%s, %s) - MySQL (MySQLdb)
    - PYFORMAT: Python format (%(name)s) - psycopg2, pymysql

    Example
    -------
    ::
        >>> ParamStyle.get_placeholder('qmark')
        '?'
        >>> ParamStyle.get_placeholder('named')
        ':1'
    """
    QMARK = 'qmark'         # id = ?
    NUMERIC = 'numeric'     # id = :1
    NAMED = 'named'         # id = :id  also :1 for positional
    FORMAT = 'format'       # id = %s
    PYFORMAT = 'pyformat'   # id = %(id)s also %s for positional
    DEFAULT = NAMED

    @classmethod
    def positional_styles(cls):
        """ Parameter styles where parameters must be in properly ordered tuple instead of dict"""
        return (cls.QMARK, cls.NUMERIC, cls.FORMAT)

    @classmethod
    def get_placeholder(cls, paramstyle: str) -> str:
        if paramstyle == cls.QMARK:
            return '?'
        elif paramstyle == cls.FORMAT:
            return '%s'
        elif paramstyle in (cls.NUMERIC, cls.NAMED):
            return ':1'
        elif paramstyle == cls.PYFORMAT:
            return '%s'
        return ''


def process_sql_parameters(sql: str, paramstyle: str) -> Tuple[str, Tuple[str, ...]]:
    """
    Process SQL parameters according to the specified paramstyle.
    Always extracts parameter names; converts SQL format if needed.

    Parameters:
        sql: The SQL query string containing named parameters in the format ':name'.
        paramstyle: The desired parameter style for the resulting SQL string.

    Returns:
        A tuple containing the processed SQL query string and a tuple of all named parameters
        extracted in the order in which they appear in the original query.

    Raises:
        ValueError: If the provided paramstyle is not supported.
    """
    param_names = tuple(re.findall(r':(\w+)', sql))

    if paramstyle == ParamStyle.NAMED:
        return sql, param_names
    elif paramstyle == ParamStyle.PYFORMAT:
        return re.sub(r':(\w+)', r'%(\1)s', sql), param_names
    elif paramstyle == ParamStyle.QMARK:
        return re.sub(r':(\w+)', '?', sql), param_names
    elif paramstyle == ParamStyle.FORMAT:
        return re.sub(r':(\w+)', '%s', sql), param_names
    elif paramstyle == ParamStyle.NUMERIC:
        counter = iter(range(1, len(param_names) + 1))
        new_sql = re.sub(r':(\w+)', lambda m: f':{next(counter)}', sql)
        return new_sql, param_names
    else:
        raise ValueError(f"Unsupported paramstyle: {paramstyle}")


def quote_identifier(identifier: str, quote: bool = True) -> str:
    """
    Render one identifier for generated SQL.

    Unquoted identifiers are returned as-is and the target database folds
    their case. Quoted identifiers are wrapped in double quotes with embedded
    double quotes doubled.

    Example
    -------
    ::
        >>> quote_identifier('ORDER', True)
        '"ORDER"'
        >>> quote_identifier('odd"name', True)
        '"odd""name"'
        >>> quote_identifier('ORDERS', False)
        'ORDERS'
    """
    if not quote:
        return identifier
    return '"' + identifier.replace('"', '""') + '"'


def sanitize_filename(name: str) -> str:
    """
    Make a table reference usable as part of a file name.

    Characters illegal in file names become underscores, and so do dots, so
    that ``SCHEMA.TABLE`` does not look like a file with an extension.
    """
    return _INVALID_FILENAME_CHARS.sub('_', name).replace('.', '_')


def timestamp(fmt: str, when: dt.datetime = None) -> str:
    """Format ``when`` (default: now) with a strftime pattern of digits only."""
    return (when or dt.datetime.now()).strftime(fmt)
