# dbdump/writers/base.py
"""
Base class for writers with common file handling and row iteration.
"""

import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional, TextIO, Tuple, Union

logger = logging.getLogger(__name__)


class BaseWriter(ABC):
    """
    Abstract base class for dbdump writers.

    A writer consumes an iterable of rows (usually a cursor) exactly once and
    renders it to a text destination. The destination may be a path, an open
    text stream shared with other writers, or None for stdout.

    Parameters
    ----------
    data
        Rows to write: a cursor or any iterable of sequences
    file : str, Path or text stream, optional
        Output destination. Paths are opened (and closed) by the writer;
        open streams are written to and left open for the caller.
    encoding : str, default 'utf-8'
        Encoding used when the writer opens a path itself

    Notes
    -----
    Subclasses must implement ``_write_data()``.
    """

    def __init__(self,
                 data: Iterable,
                 file: Optional[Union[str, Path, TextIO]] = None,
                 encoding: str = 'utf-8'):
        if data is None:
            raise ValueError("No data to export")
        self.data_iterator = iter(data)
        self.file = file
        self.encoding = encoding
        self._row_num = 0

    @property
    def row_count(self) -> int:
        """ Returns the number of rows written."""
        return self._row_num

    @property
    def destination(self) -> str:
        if self.file is None:
            return 'stdout'
        if isinstance(self.file, (str, Path)):
            return str(self.file)
        return getattr(self.file, 'name', '<stream>')

    def _get_file_handle(self) -> Tuple[TextIO, bool]:
        """
        Get file handle, returning stdout if file is None.

        Returns:
            Tuple of (file_obj, should_close)
        """
        if self.file is None:
            return sys.stdout, False
        if isinstance(self.file, (str, Path)):
            return open(self.file, 'w', encoding=self.encoding, newline=''), True
        return self.file, False

    @abstractmethod
    def _write_data(self, file_obj) -> None:
        """
        Write the actual data. Subclasses implement format-specific logic.

        Args:
            file_obj: File object to write to
        """

    def write(self) -> int:
        """
        Main entry point for writing data.

        Returns:
            Number of rows written
        """
        file_obj, should_close = self._get_file_handle()
        try:
            self._write_data(file_obj)
            file_obj.flush()
            logger.debug(f"Wrote {self._row_num} rows to {self.destination}")
            return self._row_num
        except Exception as e:
            logger.error(f"Error writing data to {self.destination}: {e}")
            raise
        finally:
            if should_close:
                file_obj.close()
