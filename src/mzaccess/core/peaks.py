"""
Peak containers.

Peaks are kept in the order they were appended. Nothing here sorts by m/z;
callers that need m/z order should sort downstream.
"""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import overload

import numpy as np
from numpy.typing import NDArray

from .scan_metadata import as_float32


@dataclass(slots=True)
class CentroidPeak:
    """A centroided peak, m/z at double and intensity at single precision."""
    mz: float
    intensity: float

    def __post_init__(self) -> None:
        self.intensity = as_float32(self.intensity)


class PeakSet(Sequence[CentroidPeak]):
    """
    An append-only list of :class:`CentroidPeak` in insertion order.

    Example:
        >>> peaks = PeakSet()
        >>> peaks.append(CentroidPeak(100.5, 250.25))
        >>> peaks.mz
        array([100.5])
    """

    __slots__ = ('_peaks',)

    def __init__(self, peaks: Iterable[CentroidPeak] = ()):
        self._peaks: list[CentroidPeak] = list(peaks)

    @classmethod
    def from_arrays(cls, mz: Iterable[float], intensity: Iterable[float]) -> 'PeakSet':
        """Build a peak set from parallel m/z and intensity sequences."""
        return cls(CentroidPeak(float(m), float(i)) for m, i in zip(mz, intensity))

    def append(self, peak: CentroidPeak) -> None:
        self._peaks.append(peak)

    @overload
    def __getitem__(self, index: int) -> CentroidPeak: ...

    @overload
    def __getitem__(self, index: slice) -> 'PeakSet': ...

    def __getitem__(self, index: int | slice) -> 'CentroidPeak | PeakSet':
        if isinstance(index, slice):
            return PeakSet(self._peaks[index])
        return self._peaks[index]

    def __len__(self) -> int:
        return len(self._peaks)

    def __iter__(self) -> Iterator[CentroidPeak]:
        return iter(self._peaks)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PeakSet):
            return self._peaks == other._peaks
        return NotImplemented

    @property
    def mz(self) -> NDArray[np.float64]:
        """m/z values as a float64 array."""
        return np.fromiter((p.mz for p in self._peaks), dtype=np.float64, count=len(self._peaks))

    @property
    def intensity(self) -> NDArray[np.float32]:
        """Intensities as a float32 array."""
        return np.fromiter((p.intensity for p in self._peaks), dtype=np.float32, count=len(self._peaks))

    def __repr__(self) -> str:
        return f"PeakSet({len(self)} peaks)"
