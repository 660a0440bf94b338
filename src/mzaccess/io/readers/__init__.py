"""
Spectrum file readers.

This module provides readers for the supported mass spectrometry file
formats. Both implement the same random-access contract:

- MGFReader: MGF peak list files (line-driven decoder, raw pre-scan index)
- MzMLReader: mzML and mzXML files (pyteomics)

Convenience functions:
- read_mgf(): Load an MGF file into MSRun
- read_mzml(): Load an mzML file into MSRun
"""

from .mgf import (
    MGFReader,
    MGFParserOptions,
    MGFParserState,
    MGFError,
    MGFParseError,
    read_mgf,
)
from .mzml import MzMLReader, read_mzml

__all__ = [
    # Readers
    "MGFReader",
    "MzMLReader",
    # Convenience functions
    "read_mgf",
    "read_mzml",
    # MGF decoder options, states and faults
    "MGFParserOptions",
    "MGFParserState",
    "MGFError",
    "MGFParseError",
]
