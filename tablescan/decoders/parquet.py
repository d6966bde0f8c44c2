"""
Parquet decoder: columnar, with an embedded schema and per row-group
statistics.

Rows are decoded lazily, one row group at a time in `batch_size` batches. Two
kinds of row groups are skipped without decoding them:

- row groups that start outside the split's byte range, so that the splits
  of one file partition its rows;
- row groups whose column statistics prove the pushdown filter cannot match.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

import pyarrow.parquet as pq

from tablescan.decoders.abstract import DecoderHandle, FormatDecoder, PhysicalRecord, PhysicalSchema
from tablescan.decoders.arrow import ARROW_CORRUPT_ERRORS, physical_schema, to_python
from tablescan.domain.split import FileFormat
from tablescan.expressions import ColumnStats
from tablescan.utils.logging import get_logger

log = get_logger(__name__)


def _row_group_start(row_group: pq.RowGroupMetaData) -> int:
    first = row_group.column(0)
    if first.has_dictionary_page and first.dictionary_page_offset:
        return first.dictionary_page_offset
    return first.data_page_offset


class _ParquetHandle(DecoderHandle):
    corrupt_errors = ARROW_CORRUPT_ERRORS

    def _read_physical_schema(self) -> PhysicalSchema:
        self._file = pq.ParquetFile(self._stream)
        return physical_schema(self._file.schema_arrow)

    def _column_stats(self, row_group: pq.RowGroupMetaData, name: str) -> Optional[ColumnStats]:
        position = self._field_columns.get(name)
        if position is None or position >= row_group.num_columns:
            return None
        statistics = row_group.column(position).statistics
        if statistics is None:
            return None
        has_min_max = statistics.has_min_max
        return ColumnStats(
            lower=statistics.min if has_min_max else None,
            upper=statistics.max if has_min_max else None,
            null_count=statistics.null_count if statistics.has_null_count else None,
            value_count=row_group.num_rows,
        )

    def _planned_row_groups(self) -> List[Tuple[int, int]]:
        """(row group index, position of its first row) for every row group to decode."""
        metadata = self._file.metadata
        planned = []
        first_row = 0
        for index in range(metadata.num_row_groups):
            row_group = metadata.row_group(index)
            in_split = row_group.num_columns == 0 or self.split.contains_offset(_row_group_start(row_group))
            if in_split and (
                self._row_filter is None
                or self._row_filter.might_match(lambda name, rg=row_group: self._column_stats(rg, name))
            ):
                planned.append((index, first_row))
            elif in_split:
                log.debug(
                    "Row group pruned by statistics",
                    extra={"path": self.split.path, "row_group": index, "rows": row_group.num_rows},
                )
            first_row += row_group.num_rows
        return planned

    def _iter_rows(self, columns: Tuple[int, ...]) -> Iterator[Tuple[int, PhysicalRecord]]:
        names = [self.physical_schema.columns[position].name for position in columns]
        for index, first_row in self._planned_row_groups():
            position = first_row
            if not names:
                for _ in range(self._file.metadata.row_group(index).num_rows):
                    yield position, ()
                    position += 1
                continue
            for batch in self._file.iter_batches(batch_size=self.batch_size, row_groups=[index], columns=names):
                values = [
                    to_python(batch.column(batch.schema.get_field_index(name)), name, self.split.path) for name in names
                ]
                for row in zip(*values):
                    yield position, row
                    position += 1


class ParquetDecoder(FormatDecoder):
    """Decoder for Parquet files."""

    file_format = FileFormat.PARQUET
    handle_class = _ParquetHandle


__all__ = ["ParquetDecoder"]
