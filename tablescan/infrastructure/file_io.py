"""
File I/O abstraction for the table-scan reader.

Decoders never open paths themselves: they ask a `FileIO` for an `InputFile`
and open a binary stream from it. This keeps storage concerns (local disk,
object stores, encryption) outside the decoders and lets tests track every
stream that was opened and closed.

Opening failures surface as `ResourceError`; the caller owns the returned
stream and must close it.
"""

from __future__ import annotations

import abc
import os
from pathlib import Path
from typing import BinaryIO

from tablescan.errors import ResourceError
from tablescan.utils.logging import get_logger

log = get_logger(__name__)


class InputFile(abc.ABC):
    """
    A readable file location.
    """

    def __init__(self, location: str) -> None:
        self.location = location

    @abc.abstractmethod
    def length(self) -> int:
        """Size of the file in bytes."""
        raise NotImplementedError

    @abc.abstractmethod
    def exists(self) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    def open(self) -> BinaryIO:
        """
        Open a seekable binary stream.

        Raises
        ------
        ResourceError
            If the file cannot be opened.
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.location!r})"


class FileIO(abc.ABC):
    """
    Factory of input files for a storage backend.
    """

    @abc.abstractmethod
    def new_input(self, location: str) -> InputFile:
        raise NotImplementedError


def _local_path(location: str) -> Path:
    if location.startswith("file://"):
        location = location[len("file://") :]
    return Path(location)


class LocalInputFile(InputFile):
    """Input file on the local filesystem (plain paths or file:// URIs)."""

    def length(self) -> int:
        try:
            return os.path.getsize(_local_path(self.location))
        except OSError as exc:
            raise ResourceError(f"Cannot stat file: {exc}", path=self.location) from exc

    def exists(self) -> bool:
        return _local_path(self.location).is_file()

    def open(self) -> BinaryIO:
        try:
            stream = _local_path(self.location).open("rb")
        except OSError as exc:
            raise ResourceError(f"Cannot open file: {exc}", path=self.location) from exc
        log.debug("Opened input stream", extra={"path": self.location})
        return stream


class LocalFileIO(FileIO):
    """
    FileIO over the local filesystem.
    """

    def new_input(self, location: str) -> InputFile:
        return LocalInputFile(location)


__all__ = [
    "InputFile",
    "FileIO",
    "LocalInputFile",
    "LocalFileIO",
]
