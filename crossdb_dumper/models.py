"""
Data models and enums for Cross-Database Dumper.
"""

import fnmatch
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Any


class Dialect(Enum):
    """Supported SQL dialects (used both as dump source and target)."""
    SQLITE = "sqlite"
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"

    @classmethod
    def parse(cls, value: "Dialect | str") -> "Dialect":
        """Accept a Dialect or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class ConflictMode(Enum):
    """How generated INSERTs behave when a row already exists on the target."""
    FAIL = "fail"
    IGNORE = "ignore"
    REPLACE = "replace"


class WarningKind(Enum):
    """Non-fatal conditions recorded while generating a dump."""
    CYCLE = "cycle"
    UNSUPPORTED_CONSTRUCT = "unsupported_construct"
    VALUE_FALLBACK = "value_fallback"
    UNPREFIXED_KEY = "unprefixed_key"
    SKIPPED_VIEW = "skipped_view"


@dataclass
class ColumnInfo:
    """Database column metadata."""
    name: str
    type: str
    max_length: Optional[int] = None
    nullable: bool = True
    is_primary_key: bool = False
    is_unique: bool = False
    default: Any = None
    is_auto_increment: bool = False


@dataclass
class ForeignKeyInfo:
    """A (possibly composite) foreign key from `table` to `referenced_table`."""
    name: Optional[str]
    table: str
    columns: list[str]
    referenced_table: str
    referenced_columns: list[str]
    on_delete: Optional[str] = None
    on_update: Optional[str] = None


@dataclass
class IndexInfo:
    """Secondary index metadata. A None column is an expression part."""
    name: str
    table: str
    columns: list[Optional[str]]
    is_unique: bool = False


@dataclass
class ViewInfo:
    """View name and its SELECT body (without the CREATE VIEW prefix)."""
    name: str
    definition: str


@dataclass
class TableSchema:
    """Everything the exporter needs to know about one table."""
    name: str
    columns: list[ColumnInfo]
    primary_key: list[str] = field(default_factory=list)
    unique_constraints: list[list[str]] = field(default_factory=list)
    foreign_keys: list[ForeignKeyInfo] = field(default_factory=list)
    indexes: list[IndexInfo] = field(default_factory=list)

    @property
    def column_names(self) -> list[str]:
        return [col.name for col in self.columns]

    @property
    def column_map(self) -> dict[str, ColumnInfo]:
        return {col.name: col for col in self.columns}

    def get_column(self, name: str) -> Optional[ColumnInfo]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    @property
    def auto_increment_column(self) -> Optional[ColumnInfo]:
        for col in self.columns:
            if col.is_auto_increment:
                return col
        return None


@dataclass
class DumpWarning:
    """A single diagnostic entry."""
    kind: WarningKind
    message: str
    table: Optional[str] = None
    column: Optional[str] = None


@dataclass
class DumpDiagnostics:
    """Collects non-fatal conditions alongside a successful dump."""
    warnings: list[DumpWarning] = field(default_factory=list)

    def add(
        self,
        kind: WarningKind,
        message: str,
        table: Optional[str] = None,
        column: Optional[str] = None
    ) -> DumpWarning:
        warning = DumpWarning(kind=kind, message=message, table=table, column=column)
        self.warnings.append(warning)
        logging.warning(message)
        return warning

    def of_kind(self, kind: WarningKind) -> list[DumpWarning]:
        return [w for w in self.warnings if w.kind == kind]

    def __len__(self) -> int:
        return len(self.warnings)

    def __bool__(self) -> bool:
        return bool(self.warnings)


@dataclass
class TableStats:
    """Statistics for a single table dump."""
    table: str
    rows_dumped: int = 0
    insert_statements: int = 0


@dataclass
class DumpStats:
    """Overall dump statistics."""
    source: str = ""
    target: str = ""
    tables: list[TableStats] = field(default_factory=list)
    total_tables: int = 0
    total_rows: int = 0
    files: list[str] = field(default_factory=list)
    diagnostics: DumpDiagnostics = field(default_factory=DumpDiagnostics)


@dataclass
class DumpOptions:
    """Merged settings for one dump invocation."""
    tables: Optional[list[str]] = None
    exclude_tables: list[str] = field(default_factory=list)
    include_schema: bool = True
    include_header: bool = True
    chunk_size: int = 100
    conflict_mode: ConflictMode = ConflictMode.FAIL

    OPTION_KEYS = (
        'tables', 'exclude_tables', 'include_schema',
        'include_header', 'chunk_size', 'conflict_mode'
    )

    def __post_init__(self):
        if isinstance(self.conflict_mode, str):
            self.conflict_mode = ConflictMode(self.conflict_mode.lower())
        if isinstance(self.tables, str):
            self.tables = None if self.tables == '*' else [
                t.strip() for t in self.tables.split(',') if t.strip()
            ]
        if not self.tables:
            self.tables = None
        if self.chunk_size is None or int(self.chunk_size) < 0:
            raise ValueError(f"chunk_size must be >= 0, got {self.chunk_size}")
        self.chunk_size = int(self.chunk_size)

    @classmethod
    def from_configs(cls, *layers: dict[str, Any]) -> "DumpOptions":
        """
        Create DumpOptions by merging config layers; later layers win.

        Keys whose value is None are treated as unset.
        """
        settings = {}
        for layer in layers:
            for key in cls.OPTION_KEYS:
                if layer.get(key) is not None:
                    settings[key] = layer[key]
        return cls(**settings)

    def is_excluded(self, table: str) -> bool:
        """Check a table name against the exclusion patterns."""
        for pattern in self.exclude_tables:
            if fnmatch.fnmatch(table, pattern):
                logging.debug(f"Table '{table}' excluded by pattern '{pattern}'")
                return True
        return False
