# dbdump/database.py
"""
Database connection wrapper that provides a uniform interface
to the supported source database adapters.
"""

import decimal
import importlib
import importlib.util
import os
import logging
from typing import Any, Optional, List

from .cursors import Cursor
from .utils import ParamStyle

logger = logging.getLogger(__name__)


DRIVERS = {
    # Oracle Drivers
    'oracledb': {
        'database_type': 'oracle',
        'priority': 11,
        'param_map': {'database': 'service_name'},
        'required_params': [{'dsn', 'user'}, {'host', 'port', 'database', 'user'}],
        'optional_params': {'password', 'mode', 'events', 'purity', 'cclass', 'tag', 'matchanytag',
                            'config_dir', 'wallet_location', 'wallet_password'},
        'connection_method': 'dsn',
        'default_port': 1521
    },
    'cx_Oracle': {
        'database_type': 'oracle',
        'priority': 12,
        'param_map': {'database': 'service_name'},
        'required_params': [{'dsn', 'user'}, {'host', 'port', 'database', 'user'}],
        'optional_params': {'password', 'mode', 'events', 'purity', 'cclass', 'tag', 'matchanytag',
                            'encoding', 'nencoding', 'edition', 'appcontext'},
        'connection_method': 'dsn',
        'default_port': 1521
    },

    # SQLite Driver
    'sqlite3': {
        'database_type': 'sqlite',
        'priority': 1,
        'param_map': {},
        'required_params': [{'database'}],
        'optional_params': {'timeout', 'detect_types', 'isolation_level', 'check_same_thread',
                            'cached_statements', 'uri'},
        'connection_method': 'kwargs'
    }
}


def get_drivers_for_database(db_type: str, valid_only: bool = True) -> List[str]:
    """
    Get the drivers known for a database type, best first.

    Parameters:
        db_type (str): The type of database for which to retrieve drivers.
        valid_only (bool): Only include drivers that are importable (default is True).

    Returns:
        List[str]: Driver names sorted by priority.
    """
    available_drivers = []
    for driver_name, info in DRIVERS.items():
        if info['database_type'] != db_type:
            continue
        if valid_only and importlib.util.find_spec(driver_name) is None:
            continue
        available_drivers.append(driver_name)
    available_drivers.sort(key=lambda d: DRIVERS[d]['priority'])
    return available_drivers


def get_params_for_database(db_type: str, driver: str = None) -> set:
    """Get all valid parameters for a database type from DRIVERS metadata."""
    valid_params = set()
    for driver_name, driver_info in DRIVERS.items():
        if driver_info['database_type'] == db_type:
            if driver and driver_name != driver:
                continue
            for param_set in driver_info['required_params']:
                valid_params.update(param_set)
            valid_params.update(driver_info.get('optional_params', set()))
    return valid_params


def get_supported_db_types() -> set:
    """Get all supported database types."""
    return {info['database_type'] for info in DRIVERS.values()}


def validate_connection_params(driver_name: str, **params) -> dict:
    """
    Validate connection parameters against driver requirements.

    Args:
        driver_name: Name of the database driver
        **params: Connection parameters

    Returns:
        Dict of validated parameters with extras removed and names mapped
        to what the driver expects

    Raises:
        ValueError: If required parameters are missing
    """
    if driver_name not in DRIVERS:
        raise ValueError(f"Unknown driver: {driver_name}")

    driver_info = DRIVERS[driver_name]

    if 'port' not in params and driver_info.get('default_port'):
        params['port'] = driver_info['default_port']

    if not any(required_set.issubset(params.keys()) for required_set in driver_info['required_params']):
        raise ValueError(f"Missing required parameters. Need one of: {driver_info['required_params']}")

    param_map = driver_info.get('param_map', {})
    all_valid_params = set()
    for req_set in driver_info['required_params']:
        all_valid_params.update(req_set)
    all_valid_params.update(driver_info.get('optional_params', set()))

    return {param_map.get(key, key): value for key, value in params.items() if key in all_valid_params}


def number_as_decimal(interface):
    """
    Build an Oracle output type handler that fetches NUMBER columns as Decimal.

    Without it the driver turns non-integral numbers into floats, which cannot
    hold every NUMBER exactly.
    """
    number_type = getattr(interface, 'DB_TYPE_NUMBER', None)

    def handler(cursor, name, default_type, size, precision, scale):
        if number_type is not None and default_type is number_type:
            return cursor.var(decimal.Decimal, arraysize=cursor.arraysize)
        return None

    return handler


class Database:
    """
    Database connection wrapper that provides uniform interface
    across different database adapters.

    Attributes not defined here are delegated to the driver connection, so
    ``commit()``, ``close()`` and friends work as usual.
    """

    _local_attrs = ['_connection', 'server_type', 'database_name', 'interface', 'placeholder']

    def __init__(self, connection, interface, database_name: Optional[str] = None):
        """
        Initialize Database wrapper.

        Args:
            connection: Underlying database connection object
            interface: Database adapter module (oracledb, cx_Oracle, sqlite3)
            database_name: Name of the database
        """
        self._connection = connection
        self.interface = interface
        self.database_name = database_name

        paramstyle = getattr(interface, 'paramstyle', ParamStyle.DEFAULT)
        self.placeholder = ParamStyle.get_placeholder(paramstyle)

        if interface.__name__ in DRIVERS:
            self.server_type = DRIVERS[interface.__name__]['database_type']
        else:
            self.server_type = 'unknown'

        if self.server_type == 'oracle':
            self._connection.outputtypehandler = number_as_decimal(interface)

    def __getattr__(self, key: str) -> Any:
        """Delegate attribute access to underlying connection."""
        return getattr(self._connection, key)

    def __setattr__(self, key: str, value: Any) -> None:
        """Set attributes locally or delegate to connection."""
        if key in self._local_attrs:
            self.__dict__[key] = value
        else:
            setattr(self._connection, key, value)

    def __str__(self) -> str:
        if self.database_name:
            return f'Database({self.database_name}:{self.server_type})'
        return f'Database({self.server_type})'

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def cursor(self, **kwargs) -> Cursor:
        """
        Create a cursor.

        Args:
            **kwargs: Passed to :class:`Cursor` (``arraysize``, ``debug``)
        """
        return Cursor(self, **kwargs)

    @classmethod
    def create(cls, db_type: str, driver: str = None, **kwargs) -> 'Database':
        """
        Factory method to create database connections.

        Args:
            db_type: Database type ('oracle' or 'sqlite')
            driver: Specific driver module to use instead of the preferred one
            **kwargs: Connection parameters

        Returns:
            Database instance
        """
        db_driver = None
        driver_name = None
        if driver:
            if driver not in DRIVERS:
                raise ValueError(f"Unknown driver: {driver}")
            if DRIVERS[driver]['database_type'] != db_type:
                raise ValueError(f"Driver '{driver}' is not compatible with database type '{db_type}'")
            try:
                db_driver = importlib.import_module(driver)
                driver_name = driver
            except ImportError:
                logger.warning(f"Driver '{driver}' not available, falling back to default")

        if db_driver is None:
            for candidate in get_drivers_for_database(db_type):
                try:
                    db_driver = importlib.import_module(candidate)
                    driver_name = candidate
                    break
                except ImportError:
                    pass

        if db_driver is None:
            raise ImportError(f"No database driver found for database type '{db_type}'")

        params = validate_connection_params(driver_name, **kwargs)
        database_name = kwargs.get('database')

        method = DRIVERS[driver_name]['connection_method']
        if method == 'dsn':
            if 'dsn' not in params:
                host = params.pop('host', 'localhost')
                port = params.pop('port', DRIVERS[driver_name].get('default_port'))
                service_name = params.pop('service_name', None)
                params['dsn'] = db_driver.makedsn(host, port, service_name=service_name)
            else:
                params.pop('port', None)
            connection = db_driver.connect(**params)
        else:
            params.pop('port', None)
            connection = db_driver.connect(**params)

        logger.debug(f"Connected with {driver_name}")
        return cls(connection, db_driver, database_name)


def oracle(user: str, password: Optional[str] = None, database: str = None,
           host: Optional[str] = None, port: int = 1521, driver: str = None, **kwargs) -> Database:
    """Create Oracle connection."""
    return Database.create('oracle', user=user, password=password, database=database,
                           host=host, port=port, driver=driver, **kwargs)


def sqlite(database: str, **kwargs) -> Database:
    """Create SQLite connection."""
    import sqlite3

    connection = sqlite3.connect(database, **kwargs)
    return Database(connection, sqlite3, os.path.basename(database))
