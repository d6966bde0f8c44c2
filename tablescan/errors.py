"""
Error hierarchy for the table-scan reader.

Distinguishes the failure kinds a scan driver needs to act on:

1. Binding failures raised before any I/O (unknown fields, unsupported formats)
2. Per-split data failures (corrupt bytes, values that do not fit the schema)
3. Resource failures (the file could not be opened or read)

Residual-filter rejection and schema-evolution defaults are expected outcomes
and never surface as errors.
"""

from __future__ import annotations

from typing import Optional


class TableScanError(Exception):
    """
    Base class for every error raised by the reader.

    Parameters
    ----------
    message : str
        Human-readable description.
    path : str, optional
        Data file the error relates to, when known.
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        if path:
            message = f"{message} (file: {path})"
        super().__init__(message)


class UnresolvedFieldError(TableScanError):
    """
    A projected or filtered field does not exist in the table schema, or a
    required field is missing from a data file with no default to fill it.

    Always raised before any row is produced.
    """

    def __init__(self, field: object, message: Optional[str] = None, path: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message or f"Cannot find field {field!r} in schema", path=path)


class UnsupportedFormatError(TableScanError):
    """The split's format tag has no registered decoder."""

    def __init__(self, file_format: object, path: Optional[str] = None) -> None:
        self.file_format = file_format
        super().__init__(f"No decoder registered for format {file_format!s}", path=path)


class CorruptDataError(TableScanError):
    """
    A decoder found malformed bytes.

    Fatal for the current split only; sibling splits are unaffected.
    """


class TypeMismatchError(TableScanError):
    """
    A physical column or value is incompatible with the declared logical type.

    Fatal for the current split; rows are never skipped silently.
    """

    def __init__(self, field: object, message: str, path: Optional[str] = None) -> None:
        self.field = field
        super().__init__(f"Field {field!r}: {message}", path=path)


class ResourceError(TableScanError):
    """I/O failure while opening or reading a data file."""


__all__ = [
    "TableScanError",
    "UnresolvedFieldError",
    "UnsupportedFormatError",
    "CorruptDataError",
    "TypeMismatchError",
    "ResourceError",
]
