# dbdump/cli.py

import argparse
import getpass
import logging

from . import config
from .exporter import run_export
from .logging_utils import setup_logging, errors_logged, shutdown_logging

logger = logging.getLogger(__name__)


def _export_overrides(args) -> dict:
    """Map parsed options onto ExportConfig field names. Options not given stay None."""
    return {
        'connection': args.connection,
        'output_dir': args.output_dir,
        'tables': ','.join(args.tables) if args.tables else None,
        'quote_identifiers': args.quote_identifiers,
        'one_file_per_table': args.one_file_per_table,
        'commit_every': args.commit_every,
    }


def export(args) -> int:
    """
    Run an export and return the process exit code: 0 on success, 1 on any failure.

    Configuration problems are reported before logging is set up, so no log
    file is left behind for a run that never connected.
    """
    try:
        export_config = config.load_export_config(args.config, _export_overrides(args))
    except (OSError, ValueError) as e:
        logging.basicConfig(format='%(levelname)s: %(message)s')
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging('export', log_dir=export_config.output_dir, level=args.log_level)
    try:
        logger.info(f"Connecting to '{export_config.connection}'")
        with config.connect(export_config.connection, config_file=args.config) as db:
            run_export(db, export_config)
    except Exception as e:
        logger.exception(f"Export failed: {e}")
        return 1
    finally:
        log_path = errors_logged()
        shutdown_logging()
    if log_path:
        return 1
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog='dbdump', description='Export database tables as SQL INSERT scripts')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # export
    export_parser = subparsers.add_parser('export', help='Export the configured tables')
    export_parser.add_argument('--config', '-c', help='Config file path')
    export_parser.add_argument('--connection', help='Connection name from the config file')
    export_parser.add_argument('--output-dir', '-o', dest='output_dir', help='Directory for scripts and the log')
    export_parser.add_argument('--tables', '-t', nargs='+',
                               help="Tables to export, e.g. ORDERS SCHEMA2.PRODUCTS (commas also work)")
    export_parser.add_argument('--quote-identifiers', dest='quote_identifiers', action='store_true',
                               default=None, help='Double-quote table and column names')
    export_parser.add_argument('--no-quote-identifiers', dest='quote_identifiers', action='store_false',
                               help='Write table and column names as configured')
    export_parser.add_argument('--one-file-per-table', dest='one_file_per_table', action='store_true',
                               default=None, help='Write one script per table')
    export_parser.add_argument('--combined', dest='one_file_per_table', action='store_false',
                               help='Write all tables into one script')
    export_parser.add_argument('--commit-every', type=int, dest='commit_every',
                               help='Rows between commit markers, 0 to disable')
    export_parser.add_argument('--log-level', dest='log_level', default=None,
                               choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                               help='Console and log file level')

    # generate-key
    subparsers.add_parser('generate-key', help='Generate encryption key')

    # store-key
    key_parser = subparsers.add_parser('store-key',
                                       help='Store encryption key in system keyring (generate if not provided)')
    key_parser.add_argument('key', nargs='?', default=None,
                            help='Encryption key to store. If omitted, a new key is generated and stored.')
    key_parser.add_argument('--force', action='store_true',
                            help='Overwrite existing encryption key in system keyring')

    # encrypt-password
    pwd_parser = subparsers.add_parser('encrypt-password', help='Encrypt a password')
    pwd_parser.add_argument('password', nargs='?', help='Password to encrypt')

    # encrypt-config
    encrypt_parser = subparsers.add_parser('encrypt-config', help='Encrypt passwords in config file')
    encrypt_parser.add_argument('config_file', nargs='?', default='dbdump.yml', help='Config file path')

    args = parser.parse_args(argv)

    if args.command == 'export':
        return export(args)

    logging.basicConfig(level=logging.INFO, format='%(message)s')
    try:
        if args.command == 'generate-key':
            print(config.generate_encryption_key())
        elif args.command == 'store-key':
            config.store_key(args.key, force=args.force)
        elif args.command == 'encrypt-password':
            password = args.password or getpass.getpass('Password: ')
            print(config.encrypt_password(password))
        elif args.command == 'encrypt-config':
            config.encrypt_config_file(args.config_file)
    except (OSError, ValueError) as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
