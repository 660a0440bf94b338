"""
Capability interfaces shared by all spectrum readers.

Each file format backend implements these interfaces on its own, with its
own parser state and its own stream. Nothing is inherited but the contract.

- SpectrumReader: open/close, sequential iteration and file-level queries
- ScanSource: random reads by native ID or position, reset, index access
- RandomAccessScanIterator: reposition sequential iteration by ID,
  position or time without decoding
"""

import io
from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO, ClassVar, Optional, Union

from ..core.spectrum import Spectrum
from .offset_index import OffsetIndex

PathOrStream = Union[str, Path, BinaryIO]


class SpectrumReader(ABC):
    """
    Abstract base class for spectrum file readers.

    A reader is constructed from a path or from an already-open binary
    stream. Paths are checked up front and opened by :meth:`open` (or the
    ``with`` statement). Streams are opened as soon as the reader is
    constructed and are never closed by it.
    """

    # Class-level attributes
    format_name: ClassVar[str]  # e.g., "MGF", "mzML"
    supported_extensions: ClassVar[list[str]]  # e.g., [".mgf"]

    def __init__(self, source: PathOrStream):
        self.path: Optional[Path] = None
        self._stream: Optional[BinaryIO] = None
        if isinstance(source, (str, Path)):
            self.path = Path(source)
            self._validate_path()
        else:
            if isinstance(source, io.TextIOBase):
                raise TypeError(
                    f"{self.__class__.__name__} requires a binary stream, "
                    f"got text stream {source!r}"
                )
            self._stream = source

    def _validate_path(self) -> None:
        """Validate file exists and has correct extension."""
        if not self.path.exists():
            raise FileNotFoundError(f"File not found: {self.path}")

        suffix = self.path.suffix.lower()
        if suffix not in self.supported_extensions:
            raise ValueError(
                f"Unsupported extension {suffix} for {self.format_name} reader. "
                f"Expected: {self.supported_extensions}"
            )

    @property
    def source_name(self) -> str:
        if self.path is not None:
            return str(self.path)
        return getattr(self._stream, 'name', '<stream>')

    @classmethod
    @abstractmethod
    def is_available(cls) -> bool:
        """
        Check if this reader's dependencies are available.

        Returns False if required libraries are not installed.
        """
        ...

    @classmethod
    def get_installation_instructions(cls) -> str:
        """Return instructions for installing this reader's dependencies."""
        return "See documentation for installation instructions."

    @abstractmethod
    def open(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @abstractmethod
    def __iter__(self) -> Iterator[Spectrum]:
        """Iterate over spectra from the current position onwards."""
        ...

    @abstractmethod
    def __len__(self) -> int:
        """Total number of indexed spectra."""
        ...

    def iter_ms_level(self, ms_level: int) -> Iterator[Spectrum]:
        """Iterate over spectra of a specific MS level."""
        for spectrum in self:
            if spectrum.ms_level == ms_level:
                yield spectrum

    @abstractmethod
    def get_ms_level_counts(self) -> dict[int, int]:
        """Return count of spectra per MS level."""
        ...

    @property
    @abstractmethod
    def run_metadata(self) -> dict:
        """
        File-level metadata.

        Expected keys (when available):
        - source_file: str
        - file_format: str
        - instrument_model: str
        - software_version: str
        """
        ...


class ScanSource(ABC):
    """Random reads that leave the sequential read position untouched."""

    @abstractmethod
    def get_spectrum_by_id(self, native_id: str) -> Optional[Spectrum]:
        """
        Read the spectrum with the given native ID.

        Raises:
            ScanNotFoundError: If the ID is not in the index.
        """
        ...

    @abstractmethod
    def get_spectrum_by_index(self, index: int) -> Optional[Spectrum]:
        """
        Read the spectrum at a 0-based position.

        Raises:
            ScanNotFoundError: If the position is out of range.
        """
        ...

    @abstractmethod
    def reset(self) -> 'ScanSource':
        """Return the stream to the beginning."""
        ...

    @abstractmethod
    def get_index(self) -> OffsetIndex:
        """Return the offset index, warning if it was never built."""
        ...

    def __getitem__(self, key: int | str) -> Optional[Spectrum]:
        if isinstance(key, str):
            return self.get_spectrum_by_id(key)
        return self.get_spectrum_by_index(key)


class RandomAccessScanIterator(ABC):
    """Reposition sequential iteration without decoding anything."""

    @abstractmethod
    def start_from_id(self, native_id: str) -> 'RandomAccessScanIterator':
        """
        Continue iteration from the spectrum with the given native ID.

        Raises:
            ScanNotFoundError: If the ID is not in the index.
            ScanIOError: If the stream could not be repositioned.
        """
        ...

    @abstractmethod
    def start_from_index(self, index: int) -> 'RandomAccessScanIterator':
        """Continue iteration from the spectrum at a 0-based position."""
        ...

    @abstractmethod
    def start_from_time(self, time: float) -> 'RandomAccessScanIterator':
        """Continue iteration from the spectrum acquired nearest ``time`` seconds."""
        ...
