"""
Pytest configuration for the table-scan reader.

Provides fixtures for:
- The reference table schema (`data`, `id`, `dt`)
- Data files written in every format through `scripts.generate_data`
- A FileIO that tracks every stream it opens, for leak checks
- Settings isolation (the settings cache is cleared around each test)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Sequence

import pytest

from scripts import generate_data
from tablescan.config import get_settings
from tablescan.domain.schema import Schema, optional_field, required_field
from tablescan.domain.split import FileSplit
from tablescan.domain.types import LongType, StringType
from tablescan.infrastructure.file_io import FileIO, InputFile, LocalFileIO

FORMATS = ("avro", "parquet", "orc")

# Field ids of the reference table.
DATA_ID = 1
ID_ID = 2
DT_ID = 3

PARTITION_VALUE = "2020-03-20"


class TrackingFileIO(FileIO):
    """Local FileIO that remembers every stream it hands out."""

    def __init__(self) -> None:
        self._delegate = LocalFileIO()
        self.streams: List[BinaryIO] = []

    def new_input(self, location: str) -> InputFile:
        outer = self
        inner = self._delegate.new_input(location)

        class _Tracked(InputFile):
            def length(self) -> int:
                return inner.length()

            def exists(self) -> bool:
                return inner.exists()

            def open(self) -> BinaryIO:
                stream = inner.open()
                outer.streams.append(stream)
                return stream

        return _Tracked(location)

    @property
    def open_streams(self) -> int:
        return sum(1 for stream in self.streams if not stream.closed)


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Clear the cached settings so env overrides made by a test stay local to it."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def table_schema() -> Schema:
    """Table partitioned by identity on `dt`; `dt` is not stored in data files."""
    return Schema(
        required_field(DATA_ID, "data", StringType()),
        required_field(ID_ID, "id", LongType()),
        optional_field(DT_ID, "dt", StringType()),
    )


@pytest.fixture
def file_schema(table_schema: Schema) -> Schema:
    """Columns physically written to the data files."""
    return table_schema.select_ids([DATA_ID, ID_ID])


@pytest.fixture
def sample_rows() -> List[Dict[str, Any]]:
    return [{"data": f"row-{i}", "id": i} for i in range(10)]


@pytest.fixture
def tracking_io() -> TrackingFileIO:
    return TrackingFileIO()


@pytest.fixture
def write_data_file(tmp_path: Path) -> Callable[..., Path]:
    """Write rows under a schema to `<tmp>/<name>.<fmt>`."""

    def _write(fmt: str, schema: Schema, rows: Sequence[Dict[str, Any]], name: str = "data") -> Path:
        return generate_data.write_file(tmp_path / f"{name}.{fmt}", schema, rows)

    return _write


@pytest.fixture(params=FORMATS)
def fmt(request) -> str:
    return request.param


@pytest.fixture
def partitioned_split(fmt: str, file_schema: Schema, sample_rows, write_data_file) -> FileSplit:
    """A split over the sample rows with the `dt` partition value supplied out of band."""
    path = write_data_file(fmt, file_schema, sample_rows)
    return FileSplit.for_file(str(path), partition={DT_ID: PARTITION_VALUE})
