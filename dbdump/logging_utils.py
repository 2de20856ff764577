# dbdump/logging_utils.py
"""
Audit logging for export runs.

Every run gets its own timestamped log file (``export_YYYYMMDD_HHMMSS.log``)
next to the exported scripts, and the same lines go to the console: normal
messages on stdout, errors on stderr.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from .defaults import settings

logger = logging.getLogger(__name__)

# Module-level state for error tracking
_error_handler: Optional['ErrorCountHandler'] = None
_main_log_path: Optional[str] = None
_error_log_path: Optional[str] = None
_split_errors: bool = False


class ErrorCountHandler(logging.Handler):
    """Custom handler that counts ERROR and CRITICAL level messages and lazily creates error log."""

    def __init__(self, error_log_path: Optional[str] = None, formatter: Optional[logging.Formatter] = None):
        super().__init__()
        self.error_count = 0
        self.error_log_path = error_log_path
        self.formatter = formatter
        self._error_file_handler = None

    def emit(self, record):
        """Count errors and lazily create error log file on first error."""
        if record.levelno < logging.ERROR:
            return
        self.error_count += 1

        if self.error_log_path and self._error_file_handler is None:
            try:
                self._error_file_handler = logging.FileHandler(self.error_log_path, encoding='utf-8')
                self._error_file_handler.setLevel(logging.ERROR)
                if self.formatter:
                    self._error_file_handler.setFormatter(self.formatter)
                # appended to the root handlers, so it still sees the current record
                logging.getLogger().addHandler(self._error_file_handler)
            except OSError as e:
                logger.warning(f"Failed to create error log file: {e}")


class _BelowLevelFilter(logging.Filter):
    """Pass only records below a level, so stdout and stderr do not both print errors."""

    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record) -> bool:
        return record.levelno < self.level


def setup_logging(
    script_name: str = 'export',
    log_dir: Optional[str] = None,
    level: Optional[str] = None,
    split_errors: Optional[bool] = None,
    console: Optional[bool] = None
) -> Tuple[str, Optional[str]]:
    """
    Configure the root logger for an export run.

    Creates log files with pattern: {script_name}_{datetime}.log
    Optionally creates separate error log: {script_name}_{datetime}_error.log

    Args:
        script_name: Base name for log files
        log_dir: Directory for log files (defaults to settings['logging']['directory'],
            then to the export output directory)
        level: Logging level string - DEBUG, INFO, WARNING, ERROR
        split_errors: Create separate error log file
        console: Also log to stdout/stderr

    Returns:
        Tuple of (log_file_path, error_log_path or None)

    Example
    -------
    ::
        from dbdump.logging_utils import setup_logging

        log_file, _ = setup_logging('export', log_dir='export_sql')
    """
    logging_config = settings.get('logging', {})

    log_dir = log_dir or logging_config.get('directory') or settings.get('output_dir', 'export_sql')
    level = (level or logging_config.get('level', 'INFO')).upper()
    split_errors = split_errors if split_errors is not None else logging_config.get('split_errors', False)
    console = console if console is not None else logging_config.get('console', True)

    log_format = logging_config.get('format', '%(asctime)s [%(levelname)s] %(name)s: %(message)s')
    timestamp_format = logging_config.get('timestamp_format', '%Y-%m-%d %H:%M:%S')
    filename_format = logging_config.get('filename_format', '%Y%m%d_%H%M%S')

    log_dir_path = Path(log_dir)
    log_dir_path.mkdir(parents=True, exist_ok=True)

    if filename_format:
        stamp = datetime.now().strftime(filename_format)
        log_file = log_dir_path / f"{script_name}_{stamp}.log"
        error_file = log_dir_path / f"{script_name}_{stamp}_error.log" if split_errors else None
    else:
        log_file = log_dir_path / f"{script_name}.log"
        error_file = log_dir_path / f"{script_name}_error.log" if split_errors else None

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))

    # Remove existing handlers to avoid duplicates
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format, datefmt=timestamp_format)

    global _error_handler
    _error_handler = ErrorCountHandler(
        error_log_path=str(error_file) if error_file else None,
        formatter=formatter
    )
    _error_handler.setLevel(logging.ERROR)
    root_logger.addHandler(_error_handler)

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if console:
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(getattr(logging, level))
        stdout_handler.addFilter(_BelowLevelFilter(logging.ERROR))
        stdout_handler.setFormatter(formatter)
        root_logger.addHandler(stdout_handler)

        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.ERROR)
        stderr_handler.setFormatter(formatter)
        root_logger.addHandler(stderr_handler)

    logging.info(f"Log: {log_file.resolve()}")
    if error_file:
        logging.info(f"Error log will be created at: {error_file} (if errors occur)")

    global _main_log_path, _error_log_path, _split_errors
    _main_log_path = str(log_file)
    _error_log_path = str(error_file) if error_file else None
    _split_errors = bool(split_errors)

    return (str(log_file), str(error_file) if error_file else None)


def errors_logged() -> Optional[str]:
    """
    Check if any ERROR or CRITICAL messages were logged during this run.

    Returns
    -------
    str or None
        Path to error log (if split_errors=True) or main log (if split_errors=False)
        when errors were logged. None if no errors were logged or
        setup_logging() was not called.
    """
    if _error_handler is None:
        logger.warning("errors_logged() called but setup_logging() was not called")
        return None

    if _error_handler.error_count == 0:
        return None

    if _split_errors and _error_log_path:
        return _error_log_path
    return _main_log_path


def shutdown_logging() -> None:
    """Flush and close every handler on the root logger so log files are complete."""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        handler.flush()
        handler.close()
        root_logger.removeHandler(handler)
