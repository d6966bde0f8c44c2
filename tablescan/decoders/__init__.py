"""
Format decoders and the registry that dispatches them by file format tag.

Each decoder module is independent of the others; the registry is the only
place that knows all of them. Additional formats plug in through
`register_decoder`.
"""

from __future__ import annotations

from typing import Dict, List, Union

from tablescan.decoders.abstract import (
    DecoderHandle,
    FormatDecoder,
    PhysicalColumn,
    PhysicalRecord,
    PhysicalSchema,
)
from tablescan.decoders.avro import AvroDecoder
from tablescan.decoders.orc import OrcDecoder
from tablescan.decoders.parquet import ParquetDecoder
from tablescan.domain.split import FileFormat
from tablescan.errors import UnsupportedFormatError

_REGISTRY: Dict[FileFormat, FormatDecoder] = {
    FileFormat.AVRO: AvroDecoder(),
    FileFormat.PARQUET: ParquetDecoder(),
    FileFormat.ORC: OrcDecoder(),
}


def _as_format(file_format: Union[FileFormat, str]) -> FileFormat:
    try:
        return FileFormat(file_format.lower() if isinstance(file_format, str) else file_format)
    except ValueError as exc:
        raise UnsupportedFormatError(file_format) from exc


def register_decoder(file_format: Union[FileFormat, str], decoder: FormatDecoder) -> None:
    """Register (or replace) the decoder used for `file_format`."""
    _REGISTRY[_as_format(file_format)] = decoder


def get_decoder(file_format: Union[FileFormat, str]) -> FormatDecoder:
    """
    Decoder registered for `file_format`.

    Raises
    ------
    UnsupportedFormatError
        If no decoder handles the format.
    """
    decoder = _REGISTRY.get(_as_format(file_format))
    if decoder is None:
        raise UnsupportedFormatError(file_format)
    return decoder


def available_formats() -> List[FileFormat]:
    return sorted(_REGISTRY, key=lambda fmt: fmt.value)


__all__ = [
    "DecoderHandle",
    "FormatDecoder",
    "PhysicalColumn",
    "PhysicalRecord",
    "PhysicalSchema",
    "AvroDecoder",
    "OrcDecoder",
    "ParquetDecoder",
    "register_decoder",
    "get_decoder",
    "available_formats",
]
