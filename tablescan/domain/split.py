"""
File splits: the unit of work handed to a reader.

Splits are produced by an external planner. The reader trusts the declared
format tag and partition values and only borrows the split for one read.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePath
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator


class FileFormat(str, Enum):
    """
    Format tag of a data file.

    METADATA and PUFFIN files can appear in table listings but have no row
    decoder; reading them raises `UnsupportedFormatError`.
    """

    AVRO = "avro"
    PARQUET = "parquet"
    ORC = "orc"
    METADATA = "metadata"
    PUFFIN = "puffin"

    @classmethod
    def from_path(cls, path: str) -> "FileFormat":
        """
        Infer the format from the file extension.

        Raises
        ------
        ValueError
            If the extension does not name a known format.
        """
        suffix = PurePath(path).suffix.lstrip(".").lower()
        if suffix == "json":
            return cls.METADATA
        try:
            return cls(suffix)
        except ValueError:
            raise ValueError(f"Cannot infer file format from path: {path}") from None

    def __str__(self) -> str:
        return self.value


class FileSplit(BaseModel):
    """
    Reference to one data file (or a byte range of it) plus the values the
    planner supplies out of band.

    `partition` maps field ids to constant values for columns that are not
    stored in the file (e.g. identity partition columns).
    """

    path: str = Field(..., min_length=1, description="Location of the data file.")
    file_format: FileFormat = Field(..., description="Declared format tag.")
    start: int = Field(0, ge=0, description="First byte of the split.")
    length: Optional[int] = Field(None, gt=0, description="Byte length; None reads to the end.")
    schema_id: Optional[int] = Field(None, description="Schema the file was written under.")
    partition: Dict[int, Any] = Field(default_factory=dict)
    record_count: Optional[int] = Field(None, ge=0)
    file_size_in_bytes: Optional[int] = Field(None, ge=0)

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def _check_range(self) -> "FileSplit":
        if self.file_size_in_bytes is not None and self.start > self.file_size_in_bytes:
            raise ValueError("Split start is past the end of the file")
        return self

    @classmethod
    def for_file(
        cls,
        path: str,
        file_format: Optional[FileFormat] = None,
        partition: Optional[Dict[int, Any]] = None,
        **kwargs: Any,
    ) -> "FileSplit":
        """Split covering a whole file, inferring the format from its extension when omitted."""
        return cls(
            path=str(path),
            file_format=file_format or FileFormat.from_path(str(path)),
            partition=partition or {},
            **kwargs,
        )

    @property
    def end(self) -> Optional[int]:
        if self.length is None:
            return None
        return self.start + self.length

    def contains_offset(self, offset: int) -> bool:
        """Whether a block starting at `offset` belongs to this split."""
        if offset < self.start:
            return False
        return self.end is None or offset < self.end

    def __hash__(self) -> int:
        return hash((self.path, self.file_format, self.start, self.length))


__all__ = ["FileFormat", "FileSplit"]
