"""
Core data structures for mzaccess.

This module provides the record model shared by every reader:

- Spectrum: A decoded spectrum, description plus peak list
- SpectrumDescription: Identity, acquisition and precursor metadata
- Precursor / SelectedIon: Precursor ion information for MSn spectra
- Acquisition / ScanEvent: Acquisition events and their start times
- CentroidPeak / PeakSet: Peaks and the append-only container holding them
- MSRun: Spectra from one file, in file order
- RunMetadata: Run-level metadata

Enums for categorical metadata:
- Polarity: Ion polarity (positive/negative)
- SignalContinuity: Data mode (profile/centroid)
- ActivationType: Fragmentation method
"""

from .scan_metadata import (
    Acquisition,
    ActivationType,
    Polarity,
    Precursor,
    ScanEvent,
    SelectedIon,
    SignalContinuity,
    SpectrumDescription,
)
from .peaks import CentroidPeak, PeakSet
from .spectrum import Spectrum
from .run import MSRun, RunMetadata

__all__ = [
    # Main classes
    "Spectrum",
    "SpectrumDescription",
    "Precursor",
    "SelectedIon",
    "Acquisition",
    "ScanEvent",
    "CentroidPeak",
    "PeakSet",
    "MSRun",
    "RunMetadata",
    # Enums
    "Polarity",
    "SignalContinuity",
    "ActivationType",
]
