# dbdump/literals.py
"""
Conversion of fetched column values into SQL literals.

Every value a driver hands back is first classified into a :class:`ValueKind`
and then rendered by the single renderer registered for that kind. The output
targets Oracle syntax: ``TO_DATE``/``TO_TIMESTAMP`` for temporal values,
``HEXTORAW`` for binary data and ``1``/``0`` for booleans.

Example
-------
::

    >>> encode("O'Brien", 'VARCHAR2')
    "'O''Brien'"
    >>> encode(datetime(2024, 1, 15, 10, 30), 'DATE')
    "TO_DATE('2024-01-15 10:30:00','YYYY-MM-DD HH24:MI:SS')"
    >>> encode(None, 'NUMBER')
    'NULL'
"""

import datetime as dt
import math
from decimal import Decimal
from typing import Any, Callable, Dict

__all__ = ['ValueKind', 'classify', 'encode']

DATE_MASK = 'YYYY-MM-DD HH24:MI:SS'
TIMESTAMP_MASK = 'YYYY-MM-DD HH24:MI:SS.FF7'


class ValueKind:
    """
    Semantic categories of fetched values.

    - NULL: SQL NULL
    - TEXT: character data (VARCHAR2, CHAR, CLOB...)
    - BOOLEAN: true/false
    - INTEGER: integral numbers of any width
    - DECIMAL: exact numbers (NUMBER fetched as Decimal)
    - FLOAT: binary floating point (BINARY_DOUBLE, BINARY_FLOAT)
    - DATE: a point in time rendered to the second
    - TIMESTAMP: a point in time rendered with fractional seconds
    - BINARY: raw bytes (RAW, BLOB)
    - OTHER: anything else, rendered as quoted text
    """
    NULL = 'null'
    TEXT = 'text'
    BOOLEAN = 'boolean'
    INTEGER = 'integer'
    DECIMAL = 'decimal'
    FLOAT = 'float'
    DATE = 'date'
    TIMESTAMP = 'timestamp'
    BINARY = 'binary'
    OTHER = 'other'

    @classmethod
    def values(cls):
        return [getattr(cls, attr) for attr in dir(cls)
                if not attr.startswith('_') and attr.isupper()]


def _read_lob(value: Any) -> Any:
    """Return the content of a LOB locator, or the value unchanged."""
    if hasattr(value, 'read') and callable(value.read):
        return value.read()
    return value


def classify(value: Any, declared_type: str = '') -> str:
    """
    Decide which :class:`ValueKind` a fetched value belongs to.

    Args:
        value: Value as returned by the driver (LOB handles must already be read)
        declared_type: Catalog data type of the column, e.g. ``DATE`` or ``TIMESTAMP(6)``

    Returns:
        One of the ValueKind constants
    """
    if value is None:
        return ValueKind.NULL
    # bool is a subclass of int, so it has to be tested first
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, Decimal):
        return ValueKind.DECIMAL
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, (dt.datetime, dt.date)):
        if (declared_type or '').strip().upper().startswith('TIMESTAMP'):
            return ValueKind.TIMESTAMP
        return ValueKind.DATE
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BINARY
    return ValueKind.OTHER


def _quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def _as_datetime(value) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return value
    return dt.datetime(value.year, value.month, value.day)


def _format_seconds(value: dt.datetime) -> str:
    # explicit fields: strftime('%Y') does not zero pad years below 1000 everywhere
    return (f'{value.year:04d}-{value.month:02d}-{value.day:02d} '
            f'{value.hour:02d}:{value.minute:02d}:{value.second:02d}')


def _render_null(value) -> str:
    return 'NULL'


def _render_text(value) -> str:
    return _quote(value)


def _render_boolean(value) -> str:
    return '1' if value else '0'


def _render_integer(value) -> str:
    return str(int(value))


def _render_decimal(value: Decimal) -> str:
    if value.is_nan():
        return 'BINARY_DOUBLE_NAN'
    if value.is_infinite():
        return '-BINARY_DOUBLE_INFINITY' if value.is_signed() else 'BINARY_DOUBLE_INFINITY'
    return format(value, 'f')


def _render_float(value: float) -> str:
    if math.isnan(value):
        return 'BINARY_DOUBLE_NAN'
    if math.isinf(value):
        return '-BINARY_DOUBLE_INFINITY' if value < 0 else 'BINARY_DOUBLE_INFINITY'
    # repr() is the shortest string that parses back to the same double
    return repr(value)


def _render_date(value) -> str:
    return f"TO_DATE('{_format_seconds(_as_datetime(value))}','{DATE_MASK}')"


def _render_timestamp(value) -> str:
    value = _as_datetime(value)
    # Python keeps microseconds; FF7 wants seven digits
    fraction = f'{value.microsecond:06d}0'
    return f"TO_TIMESTAMP('{_format_seconds(value)}.{fraction}','{TIMESTAMP_MASK}')"


def _render_binary(value) -> str:
    return f"HEXTORAW('{bytes(value).hex().upper()}')"


def _render_other(value) -> str:
    return _quote(str(value))


RENDERERS: Dict[str, Callable[[Any], str]] = {
    ValueKind.NULL: _render_null,
    ValueKind.TEXT: _render_text,
    ValueKind.BOOLEAN: _render_boolean,
    ValueKind.INTEGER: _render_integer,
    ValueKind.DECIMAL: _render_decimal,
    ValueKind.FLOAT: _render_float,
    ValueKind.DATE: _render_date,
    ValueKind.TIMESTAMP: _render_timestamp,
    ValueKind.BINARY: _render_binary,
    ValueKind.OTHER: _render_other,
}

_missing = set(ValueKind.values()) - set(RENDERERS)
if _missing:
    raise RuntimeError(f"No literal renderer registered for: {sorted(_missing)}")


def encode(value: Any, declared_type: str = '') -> str:
    """
    Convert one column value into SQL literal text.

    Args:
        value: Value as returned by the driver. LOB handles are read first.
        declared_type: Catalog data type of the column the value came from

    Returns:
        Literal text that reproduces the value when parsed by the target database
    """
    value = _read_lob(value)
    return RENDERERS[classify(value, declared_type)](value)
