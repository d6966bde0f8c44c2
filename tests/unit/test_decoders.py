from __future__ import annotations

import io

import pyarrow.parquet as pq
import pytest

import tablescan.decoders as decoders_module
from tablescan.decoders import (
    DecoderHandle,
    FormatDecoder,
    ParquetDecoder,
    PhysicalColumn,
    PhysicalSchema,
    available_formats,
    get_decoder,
    register_decoder,
)
from tablescan.decoders.parquet import _row_group_start
from tablescan.domain import FileFormat, FileSplit, LongType, StringType
from tablescan.errors import CorruptDataError, ResourceError, UnsupportedFormatError
from tablescan.expressions import GreaterThanOrEqual

ROWS = 10
PRUNED_ROWS = 100
ROW_GROUP_SIZE = 10


def _raise_errno_less_os_error():
    raise OSError("bad page header")


def _open(path, tracking_io, **split_kwargs) -> DecoderHandle:
    split = FileSplit.for_file(str(path), **split_kwargs)
    return get_decoder(split.file_format).open(split, tracking_io, batch_size=4)


class TestPhysicalSchema:
    def test_columns_types_and_ids(self, fmt, file_schema, sample_rows, write_data_file, tracking_io):
        path = write_data_file(fmt, file_schema, sample_rows)

        with _open(path, tracking_io) as handle:
            columns = handle.physical_schema.columns

        assert [column.name for column in columns] == ["data", "id"]
        assert [column.field_type for column in columns] == [StringType(), LongType()]
        if fmt == "orc":
            assert not handle.physical_schema.has_field_ids
        else:
            assert [column.field_id for column in columns] == [1, 2]
            assert all(column.required for column in columns)

    def test_find_by_name(self):
        schema = PhysicalSchema(columns=(PhysicalColumn(0, "Data", None, StringType()),))
        assert schema.find_by_name("Data") is not None
        assert schema.find_by_name("data") is None
        assert schema.find_by_name("data", case_sensitive=False).position == 0
        assert schema.find_by_id(1) is None


class TestIteration:
    def test_reads_every_row_in_file_order(self, fmt, file_schema, sample_rows, write_data_file, tracking_io):
        path = write_data_file(fmt, file_schema, sample_rows)

        with _open(path, tracking_io) as handle:
            rows = []
            positions = []
            for row in handle:
                rows.append(row)
                positions.append(handle.row_position)

        assert rows == [(row["data"], row["id"]) for row in sample_rows]
        assert positions == list(range(ROWS))

    def test_select_restricts_and_orders_columns(self, fmt, file_schema, sample_rows, write_data_file, tracking_io):
        path = write_data_file(fmt, file_schema, sample_rows)

        with _open(path, tracking_io) as handle:
            handle.select([1, 0])
            rows = list(handle)

        assert rows[3] == (3, "row-3")

    def test_empty_selection_yields_one_empty_tuple_per_row(
        self, fmt, file_schema, sample_rows, write_data_file, tracking_io
    ):
        path = write_data_file(fmt, file_schema, sample_rows)

        with _open(path, tracking_io) as handle:
            handle.select([])
            rows = list(handle)

        assert rows == [()] * ROWS

    def test_select_after_first_row_is_rejected(self, fmt, file_schema, sample_rows, write_data_file, tracking_io):
        path = write_data_file(fmt, file_schema, sample_rows)

        with _open(path, tracking_io) as handle:
            next(handle)
            with pytest.raises(RuntimeError):
                handle.select([0])

    def test_close_is_idempotent_and_releases_stream(
        self, fmt, file_schema, sample_rows, write_data_file, tracking_io
    ):
        path = write_data_file(fmt, file_schema, sample_rows)
        handle = _open(path, tracking_io)
        next(handle)

        handle.close()
        handle.close()

        assert handle.closed
        assert tracking_io.open_streams == 0
        with pytest.raises(StopIteration):
            next(handle)

    def test_whole_file_formats_skip_splits_past_the_start(self, file_schema, sample_rows, write_data_file, tracking_io):
        for fmt in ("avro", "orc"):
            path = write_data_file(fmt, file_schema, sample_rows)
            with _open(path, tracking_io, start=4) as handle:
                assert list(handle) == []


class TestParquetPushdown:
    @pytest.fixture
    def parquet_path(self, tmp_path, file_schema):
        from scripts import generate_data

        rows = [{"data": f"row-{i}", "id": i} for i in range(PRUNED_ROWS)]
        return generate_data.write_parquet(tmp_path / "groups.parquet", file_schema, rows, row_group_size=ROW_GROUP_SIZE)

    def test_row_groups_outside_filter_are_skipped(self, parquet_path, tracking_io):
        with _open(parquet_path, tracking_io) as handle:
            handle.select([1], GreaterThanOrEqual("id", 95), {"id": 1})
            rows = list(handle)
            last_position = handle.row_position

        # Only the last row group can hold ids >= 95; the reader drops ids 90-94.
        assert rows == [(i,) for i in range(90, PRUNED_ROWS)]
        assert last_position == PRUNED_ROWS - 1

    def test_byte_ranges_partition_the_rows(self, parquet_path, tracking_io):
        metadata = pq.ParquetFile(str(parquet_path)).metadata
        boundary = _row_group_start(metadata.row_group(3))

        with _open(parquet_path, tracking_io, start=0, length=boundary) as first:
            head = [row[1] for row in first]
        with _open(parquet_path, tracking_io, start=boundary) as second:
            tail = [row[1] for row in second]

        assert head == list(range(30))
        assert tail == list(range(30, PRUNED_ROWS))


class TestErrors:
    def test_corrupt_file_raises_corrupt_data_error(self, fmt, tmp_path, tracking_io):
        path = tmp_path / f"garbage.{fmt}"
        path.write_bytes(b"definitely not a data file " * 20)

        with pytest.raises(CorruptDataError, match="garbage"):
            _open(path, tracking_io)
        assert tracking_io.open_streams == 0

    def test_missing_file_raises_resource_error(self, fmt, tmp_path, tracking_io):
        with pytest.raises(ResourceError):
            _open(tmp_path / f"missing.{fmt}", tracking_io)

    def test_guard_classifies_os_errors(self):
        class _Handle(DecoderHandle):
            def _read_physical_schema(self):
                return PhysicalSchema(columns=())

            def _iter_rows(self, columns):
                raise OSError(5, "Input/output error")
                yield  # pragma: no cover

        handle = _Handle(FileSplit.for_file("f.avro"), io.BytesIO(), batch_size=1)
        with pytest.raises(ResourceError):
            next(handle)
        with pytest.raises(CorruptDataError):
            handle._guard(_raise_errno_less_os_error)


class TestRegistry:
    def test_lookup_by_tag(self):
        assert isinstance(get_decoder(FileFormat.PARQUET), ParquetDecoder)
        assert isinstance(get_decoder("PARQUET"), ParquetDecoder)

    @pytest.mark.parametrize("tag", ["puffin", "metadata", "csv"])
    def test_unknown_formats_are_unsupported(self, tag):
        with pytest.raises(UnsupportedFormatError):
            get_decoder(tag)

    def test_register_decoder(self, monkeypatch):
        class PuffinDecoder(FormatDecoder):
            file_format = FileFormat.PUFFIN
            handle_class = DecoderHandle

        monkeypatch.setattr(decoders_module, "_REGISTRY", dict(decoders_module._REGISTRY))
        decoder = PuffinDecoder()
        register_decoder("puffin", decoder)

        assert get_decoder(FileFormat.PUFFIN) is decoder
        assert FileFormat.PUFFIN in available_formats()
