"""
tablescan - format-agnostic table-scan reader.

Reads the data files of a table (Avro, Parquet, ORC) and turns every row into
a record of the table's logical schema, whatever format the file was written
in:

- Schema reconciliation by field id, with name-based fallback and
  schema-evolution defaults
- Partition constants and metadata columns (`_file`, `_pos`)
- Row filters with statistics-based pushdown
- A bounded scan driver with parallel reads and per-split retries
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from tablescan.config import Settings, get_settings
from tablescan.converter import RecordConverter
from tablescan.decoders import FormatDecoder, available_formats, get_decoder, register_decoder
from tablescan.domain import FileFormat, FileSplit, NestedField, Record, Schema
from tablescan.errors import (
    CorruptDataError,
    ResourceError,
    TableScanError,
    TypeMismatchError,
    UnresolvedFieldError,
    UnsupportedFormatError,
)
from tablescan.reader import ReaderFunction, ReaderState, SplitReader
from tablescan.reconciler import FieldMapping, map_physical, resolve
from tablescan.scan import BoundedScan, ScanResult, SplitFailure
from tablescan.utils.logging import configure_logging, get_logger
from tablescan.utils.profiler import ProfileStats, profile_block

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "FileFormat",
    "FileSplit",
    "NestedField",
    "Record",
    "Schema",
    # Reading
    "ReaderFunction",
    "ReaderState",
    "SplitReader",
    "BoundedScan",
    "ScanResult",
    "SplitFailure",
    # Building blocks
    "FieldMapping",
    "map_physical",
    "resolve",
    "RecordConverter",
    "FormatDecoder",
    "available_formats",
    "get_decoder",
    "register_decoder",
    # Errors
    "TableScanError",
    "UnresolvedFieldError",
    "UnsupportedFormatError",
    "CorruptDataError",
    "TypeMismatchError",
    "ResourceError",
    # Logging
    "configure_logging",
    "get_logger",
    # Profiling
    "ProfileStats",
    "profile_block",
]
