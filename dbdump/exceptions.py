# dbdump/exceptions.py
"""Errors raised by dbdump itself. Driver errors are never wrapped."""


class ExportError(Exception):
    """Base class for dbdump failures."""


class ConfigError(ExportError, ValueError):
    """Configuration is missing something the export cannot run without."""


class InvalidIdentifier(ExportError, ValueError):
    """A table reference has more than one schema separator."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Invalid table name: '{identifier}'. Use 'TABLE' or 'SCHEMA.TABLE'.")


class NoColumnsFound(ExportError):
    """The catalog returned no columns for a table."""

    def __init__(self, table_name: str, schema: str = None):
        self.table_name = table_name
        self.schema = schema
        where = f" (schema {schema})" if schema else ''
        super().__init__(
            f"No columns found for {table_name}{where}. "
            "Check the table name and its casing, the schema, and that the "
            "connected user has privileges to see the table."
        )
