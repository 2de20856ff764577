# dbdump/__init__.py
"""
DBDump - database tables to SQL INSERT scripts

Reads tables from an Oracle (or SQLite) database and writes them out as
plain INSERT statements that can be replayed elsewhere:

- One script per table, or one combined script for all tables
- Per-table WHERE and ORDER BY fragments
- Optional double-quoted identifiers
- Commented-out ``-- COMMIT;`` checkpoints every N rows
- YAML-based configuration with password encryption
- Timestamped audit log of every run

Basic usage::

    import dbdump

    config = dbdump.load_export_config('dbdump.yml')
    with dbdump.connect(config.connection) as db:
        for result in dbdump.run_export(db, config):
            print(result.table_name, result.rows_exported)

Direct connections:
    from dbdump.database import oracle

    db = oracle(user='exporter', password='pass', host='db.example.com', database='ORCLPDB1')
"""

__version__ = '0.1.0'

from .database import Database
from .config import connect, set_config_file, load_export_config, ExportConfig
from .cursors import Cursor
from .exceptions import ExportError, ConfigError, InvalidIdentifier, NoColumnsFound
from .exporter import ExportRunner, ExportResult, export_table, run_export
from .literals import encode
from .logging_utils import setup_logging
from . import writers

__all__ = [
    'connect',
    'config',
    'load_export_config',
    'set_config_file',
    'ExportConfig',
    'Database',
    'Cursor',
    'ExportRunner',
    'ExportResult',
    'export_table',
    'run_export',
    'encode',
    'ExportError',
    'ConfigError',
    'InvalidIdentifier',
    'NoColumnsFound',
    'writers',
    'setup_logging',
]
