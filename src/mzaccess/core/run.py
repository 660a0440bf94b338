"""
MSRun: a collection of spectra read from a single file.

This module defines the MSRun class that holds decoded spectra in file
order together with run-level metadata such as the source file and the
format it was read from.
"""

from dataclasses import dataclass, field
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Optional, overload

import numpy as np
from numpy.typing import NDArray

from .spectrum import Spectrum
from .scan_metadata import Polarity, SignalContinuity


@dataclass(frozen=True, slots=True)
class RunMetadata:
    """
    Run-level metadata.

    Attributes:
        source_file: Path to the original source file.
        file_format: Name of the format the run was read from.
        instrument_model: Instrument model name, when the format records it.
        software_version: Acquisition software version.
        extras: Additional format-specific metadata.
    """
    source_file: Optional[Path] = None
    file_format: Optional[str] = None
    instrument_model: Optional[str] = None
    software_version: Optional[str] = None
    extras: dict = field(default_factory=dict)

    @property
    def source_filename(self) -> Optional[str]:
        """Return just the filename from source_file."""
        return self.source_file.name if self.source_file else None


class MSRun(Sequence[Spectrum]):
    """
    Spectra from one file, in file order, with run metadata.

    The run implements the Sequence protocol over spectra in the order they
    were read, and keeps a native ID lookup alongside.

    Example:
        >>> from mzaccess.core import MSRun, Spectrum, SpectrumDescription
        >>> run = MSRun([
        ...     Spectrum(SpectrumDescription(id="scan=1", ms_level=1)),
        ...     Spectrum(SpectrumDescription(id="scan=2")),
        ... ])
        >>> len(run)
        2
        >>> run.get_by_id("scan=2").ms_level
        2
    """

    def __init__(
        self,
        spectra: Optional[list[Spectrum]] = None,
        metadata: Optional[RunMetadata] = None,
    ):
        self._spectra: list[Spectrum] = []
        self._id_index: dict[str, int] = {}  # native id -> list index
        self.metadata = metadata or RunMetadata()

        for spectrum in spectra or ():
            self.add_spectrum(spectrum)

    def add_spectrum(self, spectrum: Spectrum) -> None:
        """
        Append a spectrum to the end of the run.

        A later spectrum with the same native ID replaces the earlier one
        in the ID lookup; both stay in the sequence.
        """
        self._id_index[spectrum.native_id] = len(self._spectra)
        self._spectra.append(spectrum)

    # -------------------------------------------------------------------------
    # Sequence protocol implementation
    # -------------------------------------------------------------------------

    @overload
    def __getitem__(self, index: int) -> Spectrum: ...

    @overload
    def __getitem__(self, index: slice) -> list[Spectrum]: ...

    def __getitem__(self, index: int | slice) -> Spectrum | list[Spectrum]:
        """Get spectrum by position (file order)."""
        return self._spectra[index]

    def __len__(self) -> int:
        return len(self._spectra)

    def __iter__(self) -> Iterator[Spectrum]:
        return iter(self._spectra)

    def __contains__(self, item: object) -> bool:
        """Check if a spectrum or native ID is in the run."""
        if isinstance(item, str):
            return item in self._id_index
        if isinstance(item, Spectrum):
            return item.native_id in self._id_index
        return False

    # -------------------------------------------------------------------------
    # Access methods
    # -------------------------------------------------------------------------

    def get_by_id(self, native_id: str) -> Spectrum:
        """
        Get spectrum by native ID.

        Raises:
            KeyError: If the ID is not in the run.
        """
        if native_id not in self._id_index:
            raise KeyError(f"Spectrum {native_id!r} not found in run")
        return self._spectra[self._id_index[native_id]]

    def get_by_rt(self, retention_time: float, tolerance: float = 0.0) -> list[Spectrum]:
        """
        Get spectra within ``tolerance`` seconds of a retention time.

        Spectra without a start time are never returned.
        """
        return [
            spec for spec in self._spectra
            if spec.retention_time is not None
            and abs(spec.retention_time - retention_time) <= tolerance
        ]

    def get_rt_range(self, rt_start: float, rt_end: float) -> list[Spectrum]:
        """Get spectra whose start time lies in ``[rt_start, rt_end]``."""
        return [
            spec for spec in self._spectra
            if spec.retention_time is not None
            and rt_start <= spec.retention_time <= rt_end
        ]

    def iter_ms_level(self, ms_level: int) -> Iterator[Spectrum]:
        for spectrum in self._spectra:
            if spectrum.ms_level == ms_level:
                yield spectrum

    def get_ms_level_counts(self) -> dict[int, int]:
        """
        Count spectra per MS level.

        Returns:
            Dictionary mapping MS level to count.
        """
        counts: dict[int, int] = {}
        for spec in self._spectra:
            level = spec.ms_level
            counts[level] = counts.get(level, 0) + 1
        return counts

    # -------------------------------------------------------------------------
    # Properties and statistics
    # -------------------------------------------------------------------------

    @property
    def native_ids(self) -> list[str]:
        """All native IDs in file order."""
        return [spec.native_id for spec in self._spectra]

    @property
    def retention_times(self) -> NDArray[np.float64]:
        """Array of start times in seconds, NaN where a spectrum has none."""
        return np.array([
            spec.retention_time if spec.retention_time is not None else np.nan
            for spec in self._spectra
        ], dtype=np.float64)

    @property
    def rt_range(self) -> Optional[tuple[float, float]]:
        """(min_rt, max_rt) in seconds, or None if no spectrum has a time."""
        rts = self.retention_times
        rts = rts[~np.isnan(rts)]
        if rts.size == 0:
            return None
        return float(rts.min()), float(rts.max())

    def summary(self) -> dict:
        """
        Generate a summary of the run.

        Returns:
            Dictionary with run statistics.
        """
        summary = {
            'n_spectra': len(self),
            'ms_level_counts': self.get_ms_level_counts(),
            'rt_range_seconds': self.rt_range,
        }
        if self.metadata.source_file:
            summary['source_file'] = str(self.metadata.source_file)
        if self.metadata.file_format:
            summary['file_format'] = self.metadata.file_format
        return summary

    def filter(
        self,
        ms_level: Optional[int] = None,
        rt_range: Optional[tuple[float, float]] = None,
        polarity: Optional[Polarity] = None,
        signal_continuity: Optional[SignalContinuity] = None,
    ) -> 'MSRun':
        """
        Create a new MSRun with filtered spectra.

        Args:
            ms_level: Keep only spectra with this MS level.
            rt_range: Keep spectra within (rt_min, rt_max) in seconds.
            polarity: Keep only spectra with this polarity.
            signal_continuity: Keep only spectra with this representation.

        Returns:
            New MSRun with filtered spectra (metadata is preserved).
        """
        filtered = self._spectra

        if ms_level is not None:
            filtered = [s for s in filtered if s.ms_level == ms_level]

        if rt_range is not None:
            rt_min, rt_max = rt_range
            filtered = [
                s for s in filtered
                if s.retention_time is not None and rt_min <= s.retention_time <= rt_max
            ]

        if polarity is not None:
            filtered = [s for s in filtered if s.description.polarity == polarity]

        if signal_continuity is not None:
            filtered = [
                s for s in filtered
                if s.description.signal_continuity == signal_continuity
            ]

        return MSRun(spectra=filtered, metadata=self.metadata)

    def __repr__(self) -> str:
        ms_counts = self.get_ms_level_counts()
        ms_str = ", ".join(f"MS{k}:{v}" for k, v in sorted(ms_counts.items()))

        rt_range = self.rt_range
        rt_str = f"RT {rt_range[0]:.1f}-{rt_range[1]:.1f}s" if rt_range else "no RT"

        source = ""
        if self.metadata.source_filename:
            source = f", source={self.metadata.source_filename}"

        return f"MSRun({len(self)} spectra, {ms_str}, {rt_str}{source})"
