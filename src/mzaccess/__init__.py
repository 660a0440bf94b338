"""
mzaccess: sequential and random access to mass spectrometry spectra.

Spectra are read from MGF peak lists or mzML/mzXML files into a shared
record model (:mod:`mzaccess.core`). Every reader (:mod:`mzaccess.io`)
exposes the same contract: iteration, lookup by native ID, position or
retention time, and repositioning of iteration without decoding.
"""

from .core import (
    MSRun,
    Polarity,
    Precursor,
    SignalContinuity,
    Spectrum,
    SpectrumDescription,
)
from .io import (
    MGFReader,
    MzMLReader,
    OffsetIndex,
    ReaderRegistry,
    ScanIOError,
    ScanNotFoundError,
    read_mgf,
    read_mzml,
)

__version__ = "0.1.0"

__all__ = [
    "MSRun",
    "Polarity",
    "Precursor",
    "SignalContinuity",
    "Spectrum",
    "SpectrumDescription",
    "MGFReader",
    "MzMLReader",
    "OffsetIndex",
    "ReaderRegistry",
    "ScanIOError",
    "ScanNotFoundError",
    "read_mgf",
    "read_mzml",
]
