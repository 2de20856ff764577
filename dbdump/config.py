# dbdump/config.py
"""
Configuration management for export runs.

Reads a YAML file holding global settings, named database connections (with
optional password encryption) and the ``export`` section describing which
tables to dump and how. Environment variables and command-line options
override the file.
"""

import os
import logging
from copy import deepcopy
from dataclasses import dataclass, field, fields
from pathlib import Path
from textwrap import dedent
from typing import Dict, Any, Optional, List, Mapping

from .defaults import settings
from .database import Database, get_params_for_database
from .exceptions import ConfigError

try:
    import yaml
except ImportError:
    raise ImportError("PyYAML is required. Install with: pip install PyYAML")

try:
    from cryptography.fernet import Fernet
    HAS_CRYPTO = True
except ImportError:
    HAS_CRYPTO = False

try:
    import keyring
    HAS_KEYRING = True
except ImportError:
    HAS_KEYRING = False

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_VAR = 'DBDUMP_ENCRYPTION_KEY'
KEYRING_SERVICE = 'dbdump'

_TRUE_STRINGS = {'true', 'yes', 'y', 'on', '1'}
_FALSE_STRINGS = {'false', 'no', 'n', 'off', '0'}


def parse_bool(value: Any, fallback: bool) -> bool:
    """Parse a config/env/CLI boolean, returning ``fallback`` when it cannot be read."""
    if isinstance(value, bool):
        return value
    if value is None:
        return fallback
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return fallback


def parse_int(value: Any, fallback: int) -> int:
    """Parse an integer, returning ``fallback`` when it cannot be read."""
    if isinstance(value, bool) or value is None:
        return fallback
    try:
        return int(str(value).strip())
    except ValueError:
        return fallback


def _string_list(value: Any) -> List[str]:
    """Tables may be a YAML list or a comma separated string. Blank entries are dropped."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(',')
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def _clause_map(value: Optional[Mapping]) -> Dict[str, str]:
    """Upper-case the table keys so lookups ignore case. Blank clauses are dropped."""
    if not value:
        return {}
    return {str(k).strip().upper(): str(v).strip()
            for k, v in value.items() if v is not None and str(v).strip()}


@dataclass
class ExportConfig:
    """
    Everything an export run needs besides the connection itself.

    Attributes
    ----------
    connection : str
        Name of a connection in the ``connections`` section
    output_dir : str
        Directory for the generated scripts and the run log
    quote_identifiers : bool
        Double-quote every table and column identifier
    one_file_per_table : bool
        One script per table, or one combined script
    commit_every : int
        Rows between ``-- COMMIT;`` markers, 0 disables them
    tables : list of str
        ``TABLE`` or ``SCHEMA.TABLE`` references, exported in this order
    where_by_table, order_by_by_table : dict
        Trusted SQL fragments keyed by upper-cased table reference
    """
    connection: Optional[str] = None
    output_dir: str = field(default_factory=lambda: settings.get('output_dir', 'export_sql'))
    quote_identifiers: bool = field(default_factory=lambda: settings.get('quote_identifiers', False))
    one_file_per_table: bool = field(default_factory=lambda: settings.get('one_file_per_table', True))
    commit_every: int = field(default_factory=lambda: settings.get('commit_every', 500))
    tables: List[str] = field(default_factory=list)
    where_by_table: Dict[str, str] = field(default_factory=dict)
    order_by_by_table: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.tables = _string_list(self.tables)
        self.where_by_table = _clause_map(self.where_by_table)
        self.order_by_by_table = _clause_map(self.order_by_by_table)
        if self.commit_every < 0:
            self.commit_every = 0

    @classmethod
    def from_mapping(cls, section: Optional[Mapping]) -> 'ExportConfig':
        """Build from the ``export`` section of the YAML file."""
        section = section or {}
        defaults = cls()
        return cls(
            connection=section.get('connection') or None,
            output_dir=section.get('output_dir') or defaults.output_dir,
            quote_identifiers=parse_bool(section.get('quote_identifiers'), defaults.quote_identifiers),
            one_file_per_table=parse_bool(section.get('one_file_per_table'), defaults.one_file_per_table),
            commit_every=parse_int(section.get('commit_every'), defaults.commit_every),
            tables=section.get('tables'),
            where_by_table=section.get('where'),
            order_by_by_table=section.get('order_by'),
        )

    def apply_environment(self, environ: Optional[Mapping[str, str]] = None,
                          prefix: Optional[str] = None) -> 'ExportConfig':
        """
        Override from environment variables, e.g. ``DBDUMP_OUTPUT_DIR``.

        Recognized: CONNECTION, OUTPUT_DIR, QUOTE_IDENTIFIERS, ONE_FILE_PER_TABLE,
        COMMIT_EVERY and TABLES (comma separated). Empty values are ignored.
        """
        environ = os.environ if environ is None else environ
        prefix = prefix or settings.get('env_prefix', 'DBDUMP_')

        def env(name):
            value = environ.get(prefix + name)
            return value if value is not None and value.strip() else None

        if env('CONNECTION'):
            self.connection = env('CONNECTION').strip()
        if env('OUTPUT_DIR'):
            self.output_dir = env('OUTPUT_DIR').strip()
        self.quote_identifiers = parse_bool(env('QUOTE_IDENTIFIERS'), self.quote_identifiers)
        self.one_file_per_table = parse_bool(env('ONE_FILE_PER_TABLE'), self.one_file_per_table)
        self.commit_every = max(parse_int(env('COMMIT_EVERY'), self.commit_every), 0)
        if env('TABLES'):
            self.tables = _string_list(env('TABLES'))
        return self

    def apply_overrides(self, overrides: Optional[Mapping[str, Any]] = None) -> 'ExportConfig':
        """Override from command-line options. Keys are field names; None means not given."""
        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown export options: {sorted(unknown)}")

        for key, value in overrides.items():
            if value is None:
                continue
            if key in ('quote_identifiers', 'one_file_per_table'):
                value = parse_bool(value, getattr(self, key))
            elif key == 'commit_every':
                value = max(parse_int(value, self.commit_every), 0)
            elif key == 'tables':
                value = _string_list(value)
                if not value:
                    continue
            elif key in ('where_by_table', 'order_by_by_table'):
                value = {**getattr(self, key), **_clause_map(value)}
            elif isinstance(value, str):
                value = value.strip().strip('"')
                if not value:
                    continue
            setattr(self, key, value)
        return self

    def validate(self) -> 'ExportConfig':
        """
        Raises:
            ConfigError: if no connection is named or no tables are configured
        """
        if not self.connection:
            raise ConfigError("No connection configured. Set export.connection or use --connection.")
        if not self.tables:
            raise ConfigError("No tables configured. Set export.tables or use --tables.")
        return self


def _ensure_sample_config():
    """Copy the sample config to ~/.config if the user has no config yet."""
    import shutil

    user_config_dir = Path.home() / '.config'
    user_config_file = user_config_dir / 'dbdump.yml'
    if user_config_file.exists():
        return

    sample_config = Path(__file__).parent / 'dbdump_sample.yml'
    sample_target = user_config_dir / 'dbdump_sample.yml'
    if not sample_config.exists() or sample_target.exists():
        return

    try:
        user_config_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy(sample_config, sample_target)
        logger.info(f"Created sample config at {sample_target}")
    except OSError as e:
        logger.debug(f"Could not create sample config: {e}")


class ConfigManager:
    """
    Manage dbdump configuration from YAML files.

    Configuration File Structure
    ----------------------------
    ::

        # dbdump.yml
        settings:
          fetch_array_size: 1000
          logging:
            level: INFO

        connections:
          warehouse:
            type: oracle
            host: db.example.com
            database: ORCLPDB1
            user: exporter
            encrypted_password: gAAAAABh...

        export:
          connection: warehouse
          output_dir: export_sql
          tables: [ORDERS, SCHEMA2.PRODUCTS]
          where:
            ORDERS: "WHERE STATUS = 'OPEN'"
          order_by:
            ORDERS: "ORDER BY ID"

    Configuration Locations
    -----------------------
    1. File specified in config_file parameter
    2. ``./dbdump.yml`` or ``./dbdump.yaml``
    3. ``~/.config/dbdump.yml`` or ``~/.config/dbdump.yaml``

    If no config is found, a sample is copied to ``~/.config/dbdump_sample.yml``
    and FileNotFoundError is raised.

    Notes
    -----
    * Connections require a 'type' (oracle, sqlite) or a 'driver'
    * Encrypted passwords require DBDUMP_ENCRYPTION_KEY or a key in the system keyring
    * Passwords of the form ``${VAR_NAME}`` are read from the environment
    """

    def __init__(self, config_file: Optional[str] = None):
        """
        Args:
            config_file: Path to YAML config file. If None, searches the standard locations.

        Raises:
            FileNotFoundError: If no config file found in any search location
            ValueError: If config file is invalid or malformed
        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        self._fernet = None
        self._apply_settings()

    def _find_config_file(self, config_file: Optional[str]) -> Path:
        if config_file:
            path = Path(config_file)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_file}")
            return path

        candidates = [
            Path("dbdump.yml"),
            Path("dbdump.yaml"),
            Path.home() / ".config" / "dbdump.yml",
            Path.home() / ".config" / "dbdump.yaml"
        ]
        for candidate in candidates:
            if candidate.exists():
                return candidate

        _ensure_sample_config()
        raise FileNotFoundError(
            "No config file found. Looked in: " +
            ", ".join(str(c) for c in candidates)
        )

    def _load_config(self) -> Dict[str, Any]:
        """Load and validate configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Failed to load config file {self.config_file}: {e}")

        if not isinstance(config, dict):
            raise ValueError(f"Invalid config file {self.config_file}.")

        for name, conn in (config.get('connections') or {}).items():
            if not isinstance(conn, dict) or ('type' not in conn and 'driver' not in conn):
                raise ValueError(f"Invalid connection '{name}' in {self.config_file}: 'type' or 'driver' is required")

        if 'settings' in config and not isinstance(config['settings'], dict):
            raise ValueError(f"Invalid config file {self.config_file}: 'settings' must be a dictionary")

        export = config.get('export')
        if export is not None:
            if not isinstance(export, dict):
                raise ValueError(f"Invalid config file {self.config_file}: 'export' must be a dictionary")
            if 'tables' in export and not isinstance(export['tables'], (list, str, type(None))):
                raise ValueError(f"Invalid config file {self.config_file}: 'export.tables' must be a list")
            for key in ('where', 'order_by'):
                if export.get(key) is not None and not isinstance(export[key], dict):
                    raise ValueError(f"Invalid config file {self.config_file}: 'export.{key}' must be a dictionary")

        logger.info(f"Loaded config from {self.config_file}")
        return config

    def _apply_settings(self) -> None:
        """Merge the file's settings into the global settings."""
        config_settings = deepcopy(self.config.get('settings') or {})
        logging_settings = config_settings.pop('logging', None)
        settings.update(config_settings)
        if isinstance(logging_settings, dict):
            settings['logging'] = {**settings.get('logging', {}), **logging_settings}

    def get_setting(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value from the config.

        Args:
            key: Setting key (supports dot notation like 'logging.level')
            default: Default value if key not found
        """
        value = self.config.get('settings') or {}
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def export_config(self) -> ExportConfig:
        """The ``export`` section as an ExportConfig (no env/CLI overrides applied)."""
        return ExportConfig.from_mapping(self.config.get('export'))

    def _get_encryption_key(self) -> bytes:
        """Get encryption key from environment variable or keyring."""
        key_str = os.environ.get(ENCRYPTION_KEY_VAR)
        if key_str:
            logger.debug(f"Using {ENCRYPTION_KEY_VAR} from environment")
            return key_str.encode()

        if HAS_KEYRING:
            try:
                key_str = keyring.get_password(KEYRING_SERVICE, 'encryption_key')
            except Exception as e:
                logger.warning(f"Keyring access failed: {e}")
                key_str = None
            if key_str:
                logger.debug("Using encryption key from keyring")
                return key_str.encode()

        if not HAS_CRYPTO:
            raise ValueError("Encryption not available. Install cryptography package to enable encryption.")
        if HAS_KEYRING:
            msg = dedent("""\
            Encryption key not found in environment or keyring.
            Run: `dbdump store-key` to generate and store a new encryption key in the keyring.
            """)
        else:
            msg = dedent(f"""\
            Encryption key not found in environment or keyring.
            Run `dbdump generate-key` to generate a new encryption key
            then store it in the {ENCRYPTION_KEY_VAR} environment variable.""")
        raise ValueError(msg)

    def _get_fernet(self) -> 'Fernet':
        if self._fernet is None:
            if not HAS_CRYPTO:
                raise ValueError("Encryption not available. Install cryptography package to enable encryption.")
            self._fernet = Fernet(self._get_encryption_key())
        return self._fernet

    def decrypt_password(self, encrypted_password: str) -> str:
        """Decrypt an encrypted password."""
        try:
            return self._get_fernet().decrypt(encrypted_password.encode()).decode()
        except Exception as e:
            raise ValueError(f"Failed to decrypt password: {e}")

    def encrypt_password(self, password: str) -> str:
        """Encrypt a password for storage."""
        try:
            return self._get_fernet().encrypt(password.encode()).decode()
        except Exception as e:
            raise ValueError(f"Failed to encrypt password: {e}")

    def get_connection_config(self, name: str) -> Dict[str, Any]:
        """Get configuration for a named connection, with its password resolved."""
        connections = self.config.get('connections') or {}

        if name not in connections:
            raise ValueError(
                f"Connection '{name}' not found in config. "
                f"Available connections: {list(connections.keys())}"
            )

        config = dict(connections[name])

        if 'encrypted_password' in config:
            config['password'] = self.decrypt_password(config.pop('encrypted_password'))

        password = config.get('password')
        if isinstance(password, str) and password.startswith('${') and password.endswith('}'):
            env_var = password[2:-1]
            config['password'] = os.environ.get(env_var)
            if config['password'] is None:
                raise ValueError(f"Environment variable {env_var} not set")

        return config

    def list_connections(self) -> list:
        """List all available connection names."""
        return list((self.config.get('connections') or {}).keys())


# Global config manager instance
_config_manager: Optional[ConfigManager] = None


def _get_manager(config_file: Optional[str] = None) -> ConfigManager:
    global _config_manager
    if config_file:
        return ConfigManager(config_file)
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def set_config_file(config_file: str) -> None:
    """Set the configuration file to use globally."""
    global _config_manager
    _config_manager = ConfigManager(config_file)


def load_export_config(config_file: Optional[str] = None,
                       overrides: Optional[Mapping[str, Any]] = None,
                       environ: Optional[Mapping[str, str]] = None) -> ExportConfig:
    """
    Build the effective ExportConfig: file, then environment, then ``overrides``.

    Args:
        config_file: Optional path to config file
        overrides: Command-line values keyed by ExportConfig field name
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated ExportConfig

    Example:
        config = load_export_config('dbdump.yml', {'output_dir': '/tmp/dump'})
    """
    config = _get_manager(config_file).export_config()
    config.apply_environment(environ)
    config.apply_overrides(overrides)
    return config.validate()


def connect(name: str, password: str = None, config_file: Optional[str] = None) -> Database:
    """
    Connect to a named database from configuration.

    Args:
        name: Connection name from config file
        password: Optional password if not stored in config
        config_file: Optional path to config file

    Returns:
        Database connection instance

    Example:
        with connect('warehouse') as db:
            cursor = db.cursor()
    """
    config = _get_manager(config_file).get_connection_config(name)
    if password:
        config['password'] = password
    info = {key: val for key, val in config.items() if key != 'password'}
    logger.debug(f"Connecting to database {name} with config: {info}")

    db_type = config.pop('type', None) or settings.get('default_db_type', 'oracle')
    driver = config.pop('driver', None)

    allowed_params = get_params_for_database(db_type)
    config = {key: val for key, val in config.items() if key in allowed_params}

    return Database.create(db_type, driver=driver, **config)


def _valid_fernet(key: str) -> bool:
    try:
        Fernet(key.encode())
        return True
    except Exception:
        return False


def _generate_encryption_key() -> str:
    return Fernet.generate_key().decode()


def generate_encryption_key() -> str:
    """
    Generate a random encryption key.

    Store the key in the DBDUMP_ENCRYPTION_KEY environment variable or in the
    system keyring with ``dbdump store-key <key>``.

    Returns:
        str: A randomly generated encryption key.
    """
    if not HAS_CRYPTO:
        raise ValueError("Encryption not available. Install cryptography package to enable encryption.")
    key = _generate_encryption_key()
    if HAS_KEYRING:
        logger.info("Key generated.  Store in system keyring with `dbdump store-key [your key]`")
    else:
        logger.info(f"Key generated.  Store in {ENCRYPTION_KEY_VAR} environment variable")
    return key


def store_key(key: Optional[str] = None, force: bool = False) -> str:
    """Store an encryption key (generated if not given) in the system keyring."""
    if not HAS_CRYPTO:
        raise ValueError("Encryption not available. Install cryptography package to enable encryption.")
    if not HAS_KEYRING:
        raise ValueError("Keyring not available. Install keyring package to store key in system keyring.")

    try:
        current_key = keyring.get_password(KEYRING_SERVICE, "encryption_key")
    except Exception:
        current_key = None

    if current_key and not force:
        raise ValueError("Encryption key already stored in system keyring. Use --force to overwrite.")
    if current_key:
        logger.warning("Encryption key already stored in system keyring. Overwriting!")

    if key is None:
        key = _generate_encryption_key()
    elif not _valid_fernet(key):
        raise ValueError("Invalid encryption key. Must be 32 url-safe base64-encoded bytes.")

    try:
        keyring.set_password(KEYRING_SERVICE, "encryption_key", key)
    except Exception as e:
        raise ValueError(f"Failed to store encryption key in system keyring: {e}")
    logger.info("Stored encryption key in system keyring")
    return key


def encrypt_password(password: str, encryption_key: Optional[str] = None) -> str:
    """
    Encrypt a password for the ``encrypted_password`` field of a connection.

    Args:
        password: Password to encrypt
        encryption_key: Optional key. If None, uses DBDUMP_ENCRYPTION_KEY or the keyring

    Returns:
        str: Encrypted password
    """
    if encryption_key:
        if not HAS_CRYPTO:
            raise ValueError("Encryption not available. Install cryptography package to enable encryption.")
        return Fernet(encryption_key.encode()).encrypt(password.encode()).decode()

    temp_config = ConfigManager.__new__(ConfigManager)
    temp_config._fernet = None
    return temp_config.encrypt_password(password)


def encrypt_config_file(filename: str) -> int:
    """
    Replace every plain ``password`` of the connections in a config file with
    an ``encrypted_password``. ``${VAR}`` references are left alone.

    Returns:
        Number of passwords encrypted
    """
    with open(filename, encoding='utf-8') as fp:
        config = yaml.safe_load(fp) or {}

    changes = 0
    for name, conn in (config.get('connections') or {}).items():
        password = conn.get('password')
        if not password or (isinstance(password, str) and password.startswith('${')):
            continue
        conn['encrypted_password'] = encrypt_password(str(password))
        del conn['password']
        changes += 1

    if changes:
        with open(filename, 'w', encoding='utf-8') as fp:
            yaml.safe_dump(config, fp, default_flow_style=False, sort_keys=False)
        logger.info(f"Encrypted {changes} passwords in {filename}")
    else:
        logger.info(f"No passwords to encrypt in {filename}")
    return changes
