"""
Infrastructure package for the table-scan reader.

Centralizes storage access concerns (input files, stream lifecycle). Keep this
layer focused on I/O and resource management, decoupled from decoding and
schema logic.
"""

from tablescan.infrastructure.file_io import FileIO, InputFile, LocalFileIO, LocalInputFile

__all__ = [
    "FileIO",
    "InputFile",
    "LocalFileIO",
    "LocalInputFile",
]
