"""
Core spectrum representation for mzaccess.

This module defines the Spectrum class, the record produced by every reader:
a :class:`SpectrumDescription` and the :class:`PeakSet` decoded alongside it.
"""

import copy
from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .peaks import CentroidPeak, PeakSet
from .scan_metadata import Precursor, SignalContinuity, SpectrumDescription

if TYPE_CHECKING:
    import torch


@dataclass(slots=True)
class Spectrum:
    """
    A single decoded mass spectrum.

    Peaks are held in the order they were read from the source. For
    centroid data they are discrete peaks; profile data read from an XML
    source is held point by point in the same container.

    Attributes:
        description: Identity, acquisition and precursor metadata.
        peaks: The peak list, in source order.

    Example:
        >>> spectrum = Spectrum()
        >>> spectrum.peaks.append(CentroidPeak(100.0, 1000.0))
        >>> spectrum.peaks.append(CentroidPeak(200.0, 2500.0))
        >>> spectrum.n_points
        2
        >>> spectrum.mz_range
        (100.0, 200.0)
    """
    description: SpectrumDescription = field(default_factory=SpectrumDescription)
    peaks: PeakSet = field(default_factory=PeakSet)

    @property
    def mz(self) -> NDArray[np.float64]:
        """m/z values of the peaks."""
        return self.peaks.mz

    @property
    def intensity(self) -> NDArray[np.float32]:
        """Intensities of the peaks."""
        return self.peaks.intensity

    @property
    def n_points(self) -> int:
        """Number of data points in the spectrum."""
        return len(self.peaks)

    @property
    def is_empty(self) -> bool:
        """Check if spectrum has no data points."""
        return self.n_points == 0

    @property
    def mz_range(self) -> tuple[float, float]:
        """
        Return (min_mz, max_mz) tuple.

        Peaks are not assumed to be sorted.

        Raises:
            ValueError: If spectrum is empty.
        """
        if self.is_empty:
            raise ValueError("Cannot get mz_range of empty spectrum")
        mz = self.mz
        return float(mz.min()), float(mz.max())

    @property
    def total_intensity(self) -> float:
        """Sum of all intensities."""
        return float(np.sum(self.intensity, dtype=np.float64))

    @property
    def base_peak_index(self) -> int:
        """Index of the most intense peak."""
        if self.is_empty:
            raise ValueError("Cannot get base_peak_index of empty spectrum")
        return int(np.argmax(self.intensity))

    @property
    def base_peak(self) -> CentroidPeak:
        """The most intense peak."""
        return self.peaks[self.base_peak_index]

    @property
    def is_profile(self) -> bool:
        return self.description.signal_continuity == SignalContinuity.PROFILE

    @property
    def is_centroid(self) -> bool:
        return self.description.signal_continuity == SignalContinuity.CENTROID

    @property
    def ms_level(self) -> int:
        return self.description.ms_level

    @property
    def native_id(self) -> str:
        return self.description.id

    @property
    def index(self) -> Optional[int]:
        return self.description.index

    @property
    def retention_time(self) -> Optional[float]:
        """Start time in seconds of the first acquisition event, if any."""
        return self.description.start_time

    @property
    def precursor(self) -> Optional[Precursor]:
        return self.description.precursor

    def copy(self) -> 'Spectrum':
        """Create a copy with its own peak list and annotation mapping."""
        return Spectrum(copy.deepcopy(self.description), PeakSet(self.peaks))

    def _with_mask(self, mask: NDArray[np.bool_]) -> 'Spectrum':
        result = self.copy()
        result.peaks = PeakSet(p for p, keep in zip(self.peaks, mask) if keep)
        return result

    def slice_mz(self, mz_min: float, mz_max: float) -> 'Spectrum':
        """
        Return a new spectrum containing only peaks within the m/z range.

        Args:
            mz_min: Minimum m/z value (inclusive).
            mz_max: Maximum m/z value (inclusive).

        Returns:
            New Spectrum with filtered peaks, in their original order.
        """
        mz = self.mz
        return self._with_mask((mz >= mz_min) & (mz <= mz_max))

    def filter_by_intensity(
        self,
        min_intensity: Optional[float] = None,
        max_intensity: Optional[float] = None,
        relative: bool = False
    ) -> 'Spectrum':
        """
        Filter peaks by intensity threshold.

        Args:
            min_intensity: Minimum intensity (inclusive).
            max_intensity: Maximum intensity (inclusive).
            relative: If True, thresholds are relative to base peak (0-1).

        Returns:
            New Spectrum with filtered peaks.
        """
        intensity = self.intensity
        if relative and not self.is_empty:
            base = float(intensity.max())
            if min_intensity is not None:
                min_intensity = min_intensity * base
            if max_intensity is not None:
                max_intensity = max_intensity * base

        mask = np.ones(self.n_points, dtype=bool)
        if min_intensity is not None:
            mask &= intensity >= min_intensity
        if max_intensity is not None:
            mask &= intensity <= max_intensity
        return self._with_mask(mask)

    def to_torch(
        self,
        dtype: Optional['torch.dtype'] = None,
        device: Optional[str] = None
    ) -> tuple['torch.Tensor', 'torch.Tensor']:
        """
        Convert the peak list to PyTorch tensors.

        Args:
            dtype: PyTorch dtype (default: torch.float32).
            device: Device to place tensors on.

        Returns:
            Tuple of (mz_tensor, intensity_tensor).
        """
        import torch

        if dtype is None:
            dtype = torch.float32

        mz_tensor = torch.from_numpy(self.mz).to(dtype=dtype)
        intensity_tensor = torch.from_numpy(self.intensity).to(dtype=dtype)

        if device is not None:
            mz_tensor = mz_tensor.to(device)
            intensity_tensor = intensity_tensor.to(device)

        return mz_tensor, intensity_tensor

    @classmethod
    def from_torch(
        cls,
        mz: 'torch.Tensor',
        intensity: 'torch.Tensor',
        description: Optional[SpectrumDescription] = None
    ) -> 'Spectrum':
        """Create a Spectrum from PyTorch tensors."""
        return cls(
            description=description or SpectrumDescription(),
            peaks=PeakSet.from_arrays(
                mz.detach().cpu().numpy().astype(np.float64),
                intensity.detach().cpu().numpy().astype(np.float32),
            ),
        )

    def __len__(self) -> int:
        """Return number of data points."""
        return self.n_points

    def __repr__(self) -> str:
        if self.is_empty:
            mz_range_str = "empty"
        else:
            mz_min, mz_max = self.mz_range
            mz_range_str = f"m/z {mz_min:.2f}-{mz_max:.2f}"

        rt = self.retention_time
        rt_str = f"RT={rt:.2f}s" if rt is not None else "RT=?"
        return (
            f"Spectrum(id={self.native_id!r}, "
            f"MS{self.ms_level}, "
            f"{rt_str}, "
            f"{self.n_points} points, "
            f"{mz_range_str})"
        )
