"""
Format decoder contract.

Every file format plugs in through the same two pieces:

- `FormatDecoder`: stateless; `open(split, file_io)` acquires the file stream,
  reads only the header/footer and returns a handle.
- `DecoderHandle`: a single-pass cursor over one split. It exposes the file's
  `physical_schema`, accepts a column selection and a best-effort pushdown
  filter through `select`, yields physical records (tuples aligned to the
  selected columns) through `next`, and releases the stream on `close`.

Handles translate library failures into `CorruptDataError` (malformed bytes)
or `ResourceError` (the OS failed to read), and never skip rows silently.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable, Dict, Iterator, Mapping, Optional, Sequence, Tuple, TypeVar

from tablescan.config import get_settings
from tablescan.domain.split import FileFormat, FileSplit
from tablescan.domain.types import PrimitiveType
from tablescan.errors import CorruptDataError, ResourceError, TableScanError
from tablescan.expressions import BooleanExpression
from tablescan.infrastructure.file_io import FileIO
from tablescan.utils.logging import get_logger

log = get_logger(__name__)

PhysicalRecord = Tuple[Any, ...]

T = TypeVar("T")


@dataclass(frozen=True)
class PhysicalColumn:
    """
    One top-level column as stored in a data file.

    `field_type` is None when the file uses an encoding with no logical
    counterpart; reading such a column is a type mismatch.
    """

    position: int
    name: str
    field_id: Optional[int]
    field_type: Optional[PrimitiveType]
    required: bool = False


@dataclass(frozen=True)
class PhysicalSchema:
    """
    The writer schema of one data file.
    """

    columns: Tuple[PhysicalColumn, ...]

    @property
    def has_field_ids(self) -> bool:
        return any(column.field_id is not None for column in self.columns)

    def find_by_id(self, field_id: int) -> Optional[PhysicalColumn]:
        for column in self.columns:
            if column.field_id == field_id:
                return column
        return None

    def find_by_name(self, name: str, case_sensitive: bool = True) -> Optional[PhysicalColumn]:
        if not case_sensitive:
            name = name.lower()
        for column in self.columns:
            candidate = column.name if case_sensitive else column.name.lower()
            if candidate == name:
                return column
        return None

    def __len__(self) -> int:
        return len(self.columns)


class DecoderHandle(abc.ABC):
    """
    Cursor over the physical records of one split.

    Subclasses implement `_read_physical_schema` and `_iter_rows`; this base
    class owns the stream, the lifecycle and the error translation.
    """

    # Exceptions a format library raises for malformed input.
    corrupt_errors: Tuple[type, ...] = (ValueError, EOFError)

    def __init__(self, split: FileSplit, stream: BinaryIO, batch_size: int) -> None:
        self.split = split
        self.batch_size = batch_size
        self.row_position = -1
        self._stream = stream
        self._columns: Optional[Tuple[int, ...]] = None
        self._row_filter: Optional[BooleanExpression] = None
        self._field_columns: Dict[str, int] = {}
        self._rows: Optional[Iterator[Tuple[int, PhysicalRecord]]] = None
        self._closed = False
        self.physical_schema: PhysicalSchema = self._guard(self._read_physical_schema)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def columns(self) -> Tuple[int, ...]:
        """Physical positions materialized in each record."""
        if self._columns is None:
            return tuple(column.position for column in self.physical_schema.columns)
        return self._columns

    def select(
        self,
        columns: Sequence[int],
        row_filter: Optional[BooleanExpression] = None,
        field_columns: Optional[Mapping[str, int]] = None,
    ) -> None:
        """
        Restrict the columns to materialize and offer a pushdown filter.

        Parameters
        ----------
        columns : sequence[int]
            Physical positions, in the order records should carry them.
        row_filter : BooleanExpression, optional
            Filter the decoder may use to skip blocks of rows. Best-effort:
            rows it lets through are filtered again by the reader.
        field_columns : mapping[str, int], optional
            Physical position of each field name referenced by `row_filter`.
        """
        if self._rows is not None:
            raise RuntimeError("select() must be called before the first record is read")
        self._columns = tuple(columns)
        self._row_filter = row_filter
        self._field_columns = dict(field_columns or {})

    def __iter__(self) -> "DecoderHandle":
        return self

    def __next__(self) -> PhysicalRecord:
        if self._closed:
            raise StopIteration
        if self._rows is None:
            self._rows = self._iter_rows(self.columns)
        position, record = self._guard(next, self._rows)
        self.row_position = position
        return record

    def close(self) -> None:
        """
        Release the stream. Safe to call at any point and more than once.
        """
        if self._closed:
            return
        self._closed = True
        try:
            if self._rows is not None and hasattr(self._rows, "close"):
                self._rows.close()
            self._release()
        finally:
            self._stream.close()
            log.debug(
                "Decoder handle closed",
                extra={"path": self.split.path, "row_position": self.row_position},
            )

    def __enter__(self) -> "DecoderHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _guard(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return fn(*args)
        except TableScanError:
            raise
        except OSError as exc:
            # OS-level failures carry an errno; format libraries report bad
            # bytes as errno-less IOErrors.
            if exc.errno is not None:
                raise ResourceError(f"I/O failure while decoding: {exc}", path=self.split.path) from exc
            raise CorruptDataError(f"Malformed data: {exc}", path=self.split.path) from exc
        except self.corrupt_errors as exc:
            raise CorruptDataError(f"Malformed data: {exc}", path=self.split.path) from exc

    def _release(self) -> None:
        """Close format-library objects; the stream itself is closed by `close`."""

    @abc.abstractmethod
    def _read_physical_schema(self) -> PhysicalSchema:
        raise NotImplementedError

    @abc.abstractmethod
    def _iter_rows(self, columns: Tuple[int, ...]) -> Iterator[Tuple[int, PhysicalRecord]]:
        """Yield (row position, record) pairs carrying only `columns`, in file order."""
        raise NotImplementedError


class FormatDecoder(abc.ABC):
    """
    Decoder for one file format.

    Subclasses set `file_format` and `handle_class`.
    """

    file_format: FileFormat
    handle_class: type

    def open(self, split: FileSplit, file_io: FileIO, batch_size: Optional[int] = None) -> DecoderHandle:
        """
        Open `split` and read its metadata.

        Raises
        ------
        ResourceError
            If the file cannot be opened.
        CorruptDataError
            If the header/footer cannot be decoded.
        """
        effective_batch_size = batch_size or get_settings().batch_size
        stream = file_io.new_input(split.path).open()
        try:
            handle = self.handle_class(split, stream, effective_batch_size)
        except BaseException:
            stream.close()
            raise
        log.debug(
            "Decoder handle opened",
            extra={"path": split.path, "format": str(self.file_format), "columns": len(handle.physical_schema)},
        )
        return handle

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


__all__ = [
    "PhysicalRecord",
    "PhysicalColumn",
    "PhysicalSchema",
    "DecoderHandle",
    "FormatDecoder",
]
