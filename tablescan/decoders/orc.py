"""
ORC decoder: columnar, schema in the file footer, read one stripe at a time.

Files written through pyarrow carry no field ids, so columns are matched by
name mapping or by name. No statistics pushdown is done.
"""

from __future__ import annotations

from typing import Iterator, Tuple

from pyarrow import orc

from tablescan.decoders.abstract import DecoderHandle, FormatDecoder, PhysicalRecord, PhysicalSchema
from tablescan.decoders.arrow import ARROW_CORRUPT_ERRORS, physical_schema, to_python
from tablescan.domain.split import FileFormat
from tablescan.utils.logging import get_logger

log = get_logger(__name__)


class _OrcHandle(DecoderHandle):
    corrupt_errors = ARROW_CORRUPT_ERRORS

    def _read_physical_schema(self) -> PhysicalSchema:
        self._file = orc.ORCFile(self._stream)
        return physical_schema(self._file.schema)

    def _iter_rows(self, columns: Tuple[int, ...]) -> Iterator[Tuple[int, PhysicalRecord]]:
        if self.split.start > 0:
            log.debug("ORC split does not start the file; nothing to read", extra={"path": self.split.path})
            return
        names = [self.physical_schema.columns[position].name for position in columns]
        # Row counts per stripe are only known after reading at least one column.
        probe = names or [column.name for column in self.physical_schema.columns[:1]] or None
        position = 0
        for stripe in range(self._file.nstripes):
            batch = self._file.read_stripe(stripe, columns=probe)
            if not names:
                for _ in range(batch.num_rows):
                    yield position, ()
                    position += 1
                continue
            values = [
                to_python(batch.column(batch.schema.get_field_index(name)), name, self.split.path) for name in names
            ]
            for row in zip(*values):
                yield position, row
                position += 1


class OrcDecoder(FormatDecoder):
    """Decoder for ORC files."""

    file_format = FileFormat.ORC
    handle_class = _OrcHandle


__all__ = ["OrcDecoder"]
