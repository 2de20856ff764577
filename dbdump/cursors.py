# dbdump/cursors.py
"""
Cursor wrapper that delegates to the driver cursor and adds named bind
variable conversion and forward-only iteration.
"""

import logging
from typing import List, Any, Optional, Iterator

from .utils import ParamStyle, process_sql_parameters
from .defaults import settings

logger = logging.getLogger(__name__)
__all__ = ['Cursor', 'PreparedStatement']


class PreparedStatement:
    """
    A SQL statement with its parameter mapping resolved once for the cursor's
    paramstyle. The statement can then be executed repeatedly with different
    bind variables, e.g. one catalog lookup per exported table.
    """

    def __init__(self, cursor, query: str):
        """
        Args:
            cursor: The cursor that will execute this statement
            query: SQL using ``:name`` placeholders
        """
        self.cursor = cursor
        self.sql, self.param_names = process_sql_parameters(query, cursor.paramstyle)

    def __iter__(self):
        return self.cursor.__iter__()

    def __next__(self):
        return self.cursor.__next__()

    def execute(self, bind_vars: dict) -> Any:
        """
        Execute the prepared statement with the given parameters.

        Args:
            bind_vars: Dictionary of named parameters
        """
        try:
            params = self.cursor._prepare_params(self.param_names, bind_vars)
            return self.cursor.execute(self.sql, params)
        except Exception:
            logger.error(
                f"Error executing prepared statement\n"
                f"Transformed SQL: {self.sql}\n"
                f"Parameters: {bind_vars}"
            )
            raise

    def __getattr__(self, key: str):
        """Delegate attribute access to underlying cursor."""
        return getattr(self.cursor, key)


class Cursor:
    """
    Cursor that returns rows as tuples, in the order the query produced them.

    Wraps a driver cursor: anything not defined here (``description``,
    ``arraysize``, ``outputtypehandler``, ``close`` ...) is delegated to it.
    Iterating the cursor fetches one row at a time, so a whole table is never
    held in memory.

    Example
    -------
    ::

        cursor = db.cursor()
        cursor.execute("SELECT id, name FROM orders")
        for row in cursor:
            order_id, name = row
    """
    _local_attrs = ['connection', 'debug', 'placeholder', 'paramstyle', '_cursor']

    def __init__(self,
                 connection,
                 arraysize: Optional[int] = None,
                 debug: Optional[bool] = False,
                 **kwargs):
        """
        Args:
            connection: Database wrapper (or raw DB-API connection with an ``interface``)
            arraysize: Rows fetched per round trip. Defaults to settings['fetch_array_size']
            debug: Log every statement and its bind variables at DEBUG level
            **kwargs: Passed to the driver's ``cursor()``
        """
        self.connection = connection
        self.debug = debug
        try:
            if hasattr(self.connection, '_connection'):
                self._cursor = self.connection._connection.cursor(**kwargs)
            else:
                self._cursor = self.connection.cursor(**kwargs)
        except Exception as e:
            raise TypeError(f'First argument must be a database connection object: {e}')

        self.paramstyle = getattr(self.connection.interface, 'paramstyle', ParamStyle.DEFAULT)
        self.placeholder = ParamStyle.get_placeholder(self.paramstyle)

        if arraysize is None:
            arraysize = settings.get('fetch_array_size', 1000)
        if hasattr(self._cursor, 'arraysize'):
            self._cursor.arraysize = arraysize

    def __getattr__(self, key: str) -> Any:
        """Delegate attribute access to underlying cursor."""
        return getattr(self._cursor, key)

    def __setattr__(self, key: str, value: Any) -> None:
        """Set attributes on this cursor or delegate to underlying cursor."""
        if key in self._local_attrs:
            self.__dict__[key] = value
        else:
            setattr(self._cursor, key, value)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __iter__(self) -> Iterator:
        if self._cursor.description is None:
            raise Exception('Query has not been run or did not succeed.')
        return self

    def __next__(self) -> Any:
        row = self._cursor.fetchone()
        if row is None:
            raise StopIteration
        return tuple(row)

    def _prepare_params(self, param_names: tuple, bind_vars: dict) -> Any:
        """
        Convert dict parameters to format required by cursor's paramstyle.

        Returns:
            Tuple for positional styles, dict for named styles
        """
        missing = set(param_names) - set(bind_vars.keys())
        if missing:
            logger.info(f"Parameters not provided, defaulting to None: {', '.join(sorted(missing))}")
        if self.paramstyle in ParamStyle.positional_styles():
            return tuple(bind_vars.get(name) for name in param_names)
        return {name: bind_vars.get(name) for name in param_names}

    def columns(self) -> List[str]:
        """Return column names of the last query, as the database reported them."""
        if not self._cursor.description:
            return []
        return [c[0] for c in self._cursor.description]

    def execute(self, query: str, bind_vars=()) -> None:
        """Execute a database query."""
        if self.debug:
            logger.debug(f'Query:\n{query}')
            logger.debug(f'Bind vars:\n{bind_vars}')
        self._cursor.execute(query, bind_vars)

    def prepare(self, query: str) -> PreparedStatement:
        """Prepare a ``:name`` style query for repeated execution."""
        return PreparedStatement(self, query)

    def selectinto(self, query: str, bind_vars=()) -> Any:
        """Execute query that must return exactly one row."""
        self.execute(query, bind_vars)
        rows = self._cursor.fetchmany(2)

        if len(rows) == 0:
            raise self.connection.interface.DatabaseError('No Data Found.')
        elif len(rows) > 1:
            raise self.connection.interface.DatabaseError(
                'selectinto() must return one and only one row.'
            )
        return tuple(rows[0])

    def fetchone(self) -> Optional[tuple]:
        row = self._cursor.fetchone()
        return tuple(row) if row is not None else None

    def fetchall(self) -> List[tuple]:
        return [tuple(row) for row in self._cursor.fetchall()]
