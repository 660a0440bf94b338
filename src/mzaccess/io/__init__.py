"""
I/O module for reading mass spectrometry data.

This module provides:

Readers:
- MGFReader: Read MGF peak list files
- MzMLReader: Read mzML/mzXML files

Convenience functions:
- read_mgf(): Load MGF to MSRun
- read_mzml(): Load mzML to MSRun

Capability interfaces:
- SpectrumReader: Sequential reading and file-level queries
- ScanSource: Random reads by native ID or position
- RandomAccessScanIterator: Reposition iteration by ID, position or time

Indexing and errors:
- OffsetIndex: Native ID to byte offset map
- ScanAccessError, ScanNotFoundError, ScanIOError

Registry:
- ReaderRegistry: Format detection and reader selection
- detect_format(): Detect file format from path
- FileFormat: Enum of supported formats
"""

from .base import SpectrumReader, ScanSource, RandomAccessScanIterator
from .exceptions import ScanAccessError, ScanNotFoundError, ScanIOError
from .offset_index import OffsetIndex
from .registry import ReaderRegistry, detect_format, FileFormat
from .readers import (
    MGFReader,
    MGFParserOptions,
    MGFParserState,
    MGFError,
    MGFParseError,
    MzMLReader,
    read_mgf,
    read_mzml,
)

__all__ = [
    # Capabilities
    "SpectrumReader",
    "ScanSource",
    "RandomAccessScanIterator",
    # Readers
    "MGFReader",
    "MzMLReader",
    # Convenience functions
    "read_mgf",
    "read_mzml",
    # MGF decoder
    "MGFParserOptions",
    "MGFParserState",
    "MGFError",
    "MGFParseError",
    # Indexing and errors
    "OffsetIndex",
    "ScanAccessError",
    "ScanNotFoundError",
    "ScanIOError",
    # Registry
    "ReaderRegistry",
    "detect_format",
    "FileFormat",
]
