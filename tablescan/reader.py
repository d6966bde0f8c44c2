"""
Reader function: turns one file split into a lazy stream of records.

A `ReaderFunction` is configured once per scan (table schema, projection,
filters, storage) and binds everything it can before touching any file.
`read(split)` returns a `SplitReader`, a single-pass cursor that:

1. opens the split's decoder on first use and reads the file schema,
2. maps the read schema onto the physical columns,
3. pushes the filters down to the decoder,
4. converts every physical record and re-checks the filters,
5. releases the file as soon as it is exhausted, fails or is closed.

Errors are not recovered from here: the decoder is closed and the error
propagates to whoever drives the scan.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from tablescan.config import get_settings
from tablescan.converter import RecordConverter
from tablescan.decoders import DecoderHandle, FormatDecoder, get_decoder
from tablescan.domain.record import Record
from tablescan.domain.schema import FILE_PATH, METADATA_COLUMNS, Schema
from tablescan.domain.split import FileFormat, FileSplit
from tablescan.errors import UnsupportedFormatError
from tablescan.expressions import BooleanExpression, RowFilter, bind_filters, filter_references, pushdown_expression
from tablescan.infrastructure.file_io import FileIO, LocalFileIO
from tablescan.reconciler import map_physical, resolve
from tablescan.utils.logging import get_logger

log = get_logger(__name__)


class ReaderState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    CLOSED = "closed"


_TERMINAL_STATES = (ReaderState.EXHAUSTED, ReaderState.FAILED, ReaderState.CLOSED)


class ReaderFunction:
    """
    Reads file splits of one table into records of the projected schema.

    Parameters
    ----------
    table_schema : Schema
        Current logical schema of the table.
    projection : iterable[int], optional
        Field ids to read, including metadata column ids. None or empty reads
        every table field.
    filters : sequence of BooleanExpression or callable
        Row filters; a record is emitted only when all of them pass. Expressions
        may reference fields outside the projection.
    file_io : FileIO, optional
        Storage access; defaults to the local filesystem.
    name_mapping : mapping[str, int], optional
        Physical column name → field id, for files written without ids.
    case_sensitive : bool, optional
        Name matching mode; defaults to `TABLESCAN_CASE_SENSITIVE`.
    batch_size : int, optional
        Rows decoded per batch by columnar decoders; defaults to `TABLESCAN_BATCH_SIZE`.
    decoders : mapping[FileFormat, FormatDecoder], optional
        Decoders to use instead of the registered ones.

    Raises
    ------
    UnresolvedFieldError
        If the projection or a filter names an unknown field.
    """

    def __init__(
        self,
        table_schema: Schema,
        projection: Optional[Iterable[int]] = None,
        filters: Sequence[RowFilter] = (),
        file_io: Optional[FileIO] = None,
        name_mapping: Optional[Mapping[str, int]] = None,
        case_sensitive: Optional[bool] = None,
        batch_size: Optional[int] = None,
        decoders: Optional[Mapping[FileFormat, FormatDecoder]] = None,
    ) -> None:
        settings = get_settings()
        self.table_schema = table_schema
        self.case_sensitive = settings.case_sensitive if case_sensitive is None else case_sensitive
        self.batch_size = batch_size or settings.batch_size
        self.file_io = file_io or LocalFileIO()
        self.name_mapping = dict(name_mapping) if name_mapping else None
        self._decoders = dict(decoders) if decoders else {}

        self.read_schema = resolve(table_schema, projection)

        # Filters may name metadata columns as well as table fields.
        bindable = Schema(
            *table_schema.fields,
            *[field for field_id, field in METADATA_COLUMNS.items() if table_schema.find_field_or_none(field_id) is None],
            schema_id=table_schema.schema_id,
        )
        self.filters: List[RowFilter] = bind_filters(list(filters), bindable, self.case_sensitive)
        self._expressions = [f for f in self.filters if isinstance(f, BooleanExpression)]
        self._callables: List[Callable[[Record], Any]] = [
            f for f in self.filters if not isinstance(f, BooleanExpression)
        ]
        self.pushdown = pushdown_expression(self.filters)

        # Filter-only fields are scanned along with the projection, then dropped.
        extra = [
            bindable.find_field(name)
            for name in sorted(filter_references(self.filters))
            if self.read_schema.find_field_or_none(name) is None
        ]
        self.scan_schema = (
            Schema(*self.read_schema.fields, *extra, schema_id=self.read_schema.schema_id) if extra else self.read_schema
        )

    def decoder_for(self, split: FileSplit) -> FormatDecoder:
        decoder = self._decoders.get(split.file_format)
        if decoder is not None:
            return decoder
        try:
            return get_decoder(split.file_format)
        except UnsupportedFormatError:
            raise UnsupportedFormatError(split.file_format, path=split.path) from None

    def read(self, split: FileSplit) -> "SplitReader":
        """
        Reader over the records of `split`. Nothing is opened until the first record is requested.

        Raises
        ------
        UnsupportedFormatError
            If no decoder handles the split's format.
        """
        return SplitReader(self, split, self.decoder_for(split))

    __call__ = read

    def project(self, scanned: Record) -> Optional[Record]:
        """
        Output record for a scanned record, or None when a filter rejects it.

        Expressions are checked on the scanned record before the output record
        is built; opaque callables see the output record.
        """
        for expression in self._expressions:
            if not expression.evaluate(scanned):
                return None
        output = scanned.select(self.read_schema)
        for predicate in self._callables:
            if not predicate(output):
                return None
        return output

    def __repr__(self) -> str:
        return (
            f"ReaderFunction(read_schema={self.read_schema}, filters={len(self.filters)}, "
            f"case_sensitive={self.case_sensitive})"
        )


class SplitReader:
    """
    Single-pass cursor over the records of one split.

    States: IDLE → READING → EXHAUSTED, or FAILED / CLOSED. Once in a terminal
    state, `next` raises StopIteration; reading the split again needs a fresh
    `ReaderFunction.read(split)`.
    """

    def __init__(self, function: ReaderFunction, split: FileSplit, decoder: FormatDecoder) -> None:
        self.function = function
        self.split = split
        self.decoder = decoder
        self.state = ReaderState.IDLE
        self.rows_scanned = 0
        self.rows_emitted = 0
        self._handle: Optional[DecoderHandle] = None
        self._converter: Optional[RecordConverter] = None

    def _open(self) -> None:
        function = self.function
        split = self.split
        self._handle = self.decoder.open(split, function.file_io, function.batch_size)

        constants = dict(split.partition)
        if function.scan_schema.find_field_or_none(FILE_PATH.field_id) is not None:
            constants.setdefault(FILE_PATH.field_id, split.path)

        mapping = map_physical(
            function.scan_schema,
            self._handle.physical_schema,
            constants=constants,
            name_mapping=function.name_mapping,
            case_sensitive=function.case_sensitive,
            path=split.path,
        )
        self._handle.select(mapping.physical_columns, function.pushdown, mapping.physical_positions())
        self._converter = RecordConverter(mapping, function.scan_schema, path=split.path)
        self.state = ReaderState.READING
        log.debug(
            "Split opened",
            extra={"path": split.path, "format": str(split.file_format), "columns": len(mapping.physical_columns)},
        )

    def __iter__(self) -> "SplitReader":
        return self

    def __next__(self) -> Record:
        if self.state in _TERMINAL_STATES:
            raise StopIteration
        try:
            if self.state is ReaderState.IDLE:
                self._open()
            while True:
                physical = next(self._handle)
                self.rows_scanned += 1
                scanned = self._converter.convert(physical, self._handle.row_position)
                output = self.function.project(scanned)
                if output is not None:
                    self.rows_emitted += 1
                    return output
        except StopIteration:
            self._finish(ReaderState.EXHAUSTED)
            raise
        except BaseException:
            self._finish(ReaderState.FAILED)
            raise

    def _finish(self, state: ReaderState) -> None:
        self.state = state
        if self._handle is not None:
            self._handle.close()
        log.debug(
            "Split finished",
            extra={
                "path": self.split.path,
                "state": state.value,
                "rows_scanned": self.rows_scanned,
                "rows": self.rows_emitted,
            },
        )

    def close(self) -> None:
        """Release the file. Idempotent; has no effect after the split is exhausted or failed."""
        if self.state in _TERMINAL_STATES:
            return
        self._finish(ReaderState.CLOSED)

    def __enter__(self) -> "SplitReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SplitReader(path={self.split.path!r}, state={self.state.value})"


__all__ = ["ReaderFunction", "ReaderState", "SplitReader"]
