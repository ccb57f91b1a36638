"""
Exception hierarchy for Cross-Database Dumper.
"""

from typing import Optional


class DumpError(Exception):
    """Base class for all dump errors."""


class IntrospectionError(DumpError):
    """Schema, foreign key or index metadata could not be read for a table."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class UnsupportedConstructError(DumpError):
    """A column type or default has no known translation."""

    def __init__(self, message: str, construct: Optional[str] = None):
        super().__init__(message)
        self.construct = construct


class ValueConversionError(DumpError):
    """A single value could not be rendered faithfully."""

    def __init__(self, message: str, fallback: str = 'NULL'):
        super().__init__(message)
        self.fallback = fallback
