"""
mzML file reader using pyteomics.

This module provides the MzMLReader class for reading mzML and mzXML files,
the standard open formats for mass spectrometry data interchange. It exposes
the same random-access contract as the MGF reader, on top of the byte offset
index pyteomics builds for indexed XML files.
"""

import logging
import re
from collections.abc import Iterator
from pathlib import Path
from typing import ClassVar, Optional

import numpy as np

from ..base import PathOrStream, RandomAccessScanIterator, ScanSource, SpectrumReader
from ..exceptions import ScanIOError, ScanNotFoundError
from ..offset_index import OffsetIndex
from ..registry import FileFormat, ReaderRegistry
from ...core import (
    ActivationType,
    MSRun,
    PeakSet,
    Polarity,
    Precursor,
    RunMetadata,
    ScanEvent,
    SelectedIon,
    SignalContinuity,
    Spectrum,
    SpectrumDescription,
)


logger = logging.getLogger(__name__)


# Mapping of CV terms to ActivationType
_ACTIVATION_MAP: dict[str, ActivationType] = {
    'collision-induced dissociation': ActivationType.CID,
    'cid': ActivationType.CID,
    'beam-type collision-induced dissociation': ActivationType.HCD,
    'hcd': ActivationType.HCD,
    'electron transfer dissociation': ActivationType.ETD,
    'etd': ActivationType.ETD,
    'electron capture dissociation': ActivationType.ECD,
    'ecd': ActivationType.ECD,
    'ultraviolet photodissociation': ActivationType.UVPD,
    'uvpd': ActivationType.UVPD,
    'infrared multiphoton dissociation': ActivationType.IRMPD,
    'irmpd': ActivationType.IRMPD,
}

# Scalar CV params copied into annotations when present
_ANNOTATION_KEYS = (
    'filter string',
    'total ion current',
    'base peak m/z',
    'base peak intensity',
    'lowest observed m/z',
    'highest observed m/z',
)


def _parse_activation_type(activation_info: dict) -> ActivationType:
    """Parse activation type from mzML activation dictionary."""
    for key in activation_info:
        key_lower = key.lower()
        if key_lower in _ACTIVATION_MAP:
            return _ACTIVATION_MAP[key_lower]
    return ActivationType.UNKNOWN


def _parse_polarity(spectrum_data: dict) -> Polarity:
    """Parse polarity from mzML (or mzXML) spectrum dictionary."""
    if 'positive scan' in spectrum_data or spectrum_data.get('polarity') == '+':
        return Polarity.POSITIVE
    if 'negative scan' in spectrum_data or spectrum_data.get('polarity') == '-':
        return Polarity.NEGATIVE
    return Polarity.UNKNOWN


def _parse_signal_continuity(spectrum_data: dict) -> SignalContinuity:
    """Parse profile/centroid mode from the spectrum dictionary."""
    if 'profile spectrum' in spectrum_data:
        return SignalContinuity.PROFILE
    if 'centroid spectrum' in spectrum_data or spectrum_data.get('centroided') in (True, '1'):
        return SignalContinuity.CENTROID
    return SignalContinuity.UNKNOWN


def _to_seconds(value) -> float:
    """Convert a pyteomics time value to seconds, honouring its unit."""
    unit = getattr(value, 'unit_info', None)
    seconds = float(value)
    if unit in ('minute', 'min', 'UO:0000031'):
        seconds *= 60.0
    return seconds


def _first(value):
    """Unwrap a pyteomics list-or-element value."""
    if isinstance(value, list):
        return value[0] if value else {}
    return value


@ReaderRegistry.register(FileFormat.MZML, FileFormat.MZXML)
class MzMLReader(SpectrumReader, ScanSource, RandomAccessScanIterator):
    """
    Reader for mzML and mzXML files using pyteomics.

    Random access goes through the byte offset index pyteomics reads from
    (or builds for) the file. Sequential iteration walks that index from a
    cursor, so ``start_from_*`` repositions iteration the same way it does
    for :class:`~mzaccess.io.readers.mgf.MGFReader`.

    Example:
        >>> with MzMLReader("sample.mzML") as reader:
        ...     for spectrum in reader:
        ...         print(spectrum.native_id, spectrum.ms_level)
        ...
        ...     # Random access
        ...     spec = reader.get_spectrum_by_index(100)
    """

    format_name: ClassVar[str] = "mzML"
    supported_extensions: ClassVar[list[str]] = ['.mzml', '.mzxml']

    def __init__(self, source: PathOrStream, is_mzxml: Optional[bool] = None):
        """
        Initialize the mzML reader.

        Args:
            source: Path to an mzML or mzXML file, or a binary stream. Streams
                are opened immediately; paths are opened by :meth:`open`.
            is_mzxml: Force the mzXML parser. Inferred from the path's
                extension when not given.
        """
        super().__init__(source)
        if is_mzxml is None:
            is_mzxml = self.path is not None and self.path.suffix.lower() == '.mzxml'
        self._is_mzxml = is_mzxml
        self._reader = None
        self.index = OffsetIndex("spectrum")
        self._cursor = 0
        self._run_metadata: Optional[dict] = None
        if self._stream is not None:
            self.open()

    @classmethod
    def is_available(cls) -> bool:
        """Check if pyteomics is installed."""
        try:
            import pyteomics.mzml
            import pyteomics.mzxml
            return True
        except ImportError:
            return False

    @classmethod
    def get_installation_instructions(cls) -> str:
        """Return installation instructions for pyteomics."""
        return (
            "Install pyteomics:\n"
            "  pip install pyteomics\n"
            "  # or with lxml for better performance:\n"
            "  pip install pyteomics lxml"
        )

    def open(self) -> None:
        """Open the file and load its offset index."""
        if self._reader is not None:
            return
        source = self._stream if self._stream is not None else str(self.path)
        try:
            if self._is_mzxml:
                from pyteomics import mzxml
                self._reader = mzxml.MzXML(source, use_index=True)
            else:
                from pyteomics import mzml
                self._reader = mzml.MzML(source, use_index=True)
        except OSError as err:
            raise ScanIOError(f"Failed to open {self.source_name}") from err
        self.build_index()

    def close(self) -> None:
        """Close the file."""
        if self._reader is not None:
            self._reader.close()
            self._reader = None

    def _require_open(self) -> None:
        if self._reader is None:
            raise RuntimeError("Reader not opened. Use 'with' context manager.")

    # -------------------------------------------------------------------------
    # Indexing
    # -------------------------------------------------------------------------

    def build_index(self) -> int:
        """
        Copy pyteomics' spectrum offsets into the reader's offset index.

        Returns:
            Number of entries indexed.
        """
        self._require_open()
        self.index.clear()

        # pyteomics index can contain multiple types (spectrum, chromatogram)
        offsets = self._reader.index
        tag = 'scan' if self._is_mzxml else 'spectrum'
        if tag in offsets:
            offsets = offsets[tag]
        for native_id, offset in offsets.items():
            self.index.insert(native_id, int(offset))

        self.index.init = True
        if self.index.is_empty():
            logger.warning("An index was built but no entries were found in %s", self.source_name)
        else:
            logger.debug("Indexed %d spectra in %s", len(self.index), self.source_name)
        return len(self.index)

    def get_index(self) -> OffsetIndex:
        if not self.index.init:
            logger.warning("Attempting to use an uninitialized offset index on MzMLReader")
        return self.index

    def _time_at(self, position: int) -> float:
        # spectra without a start time sort first
        rt = self._read_position(position).retention_time
        return rt if rt is not None else 0.0

    def _position_of_time(self, time: float) -> Optional[int]:
        """
        Position of the spectrum nearest ``time`` seconds, earlier on ties.

        Binary search over start times, assuming spectra are stored in
        acquisition order.
        """
        n = len(self.get_index())
        if n == 0:
            return None
        lo, hi = 0, n
        while lo < hi:
            mid = (lo + hi) // 2
            if self._time_at(mid) < time:
                lo = mid + 1
            else:
                hi = mid
        if lo == n:
            return n - 1
        if lo > 0 and time - self._time_at(lo - 1) <= self._time_at(lo) - time:
            return lo - 1
        return lo

    # -------------------------------------------------------------------------
    # Sequential access
    # -------------------------------------------------------------------------

    def __iter__(self) -> Iterator[Spectrum]:
        """Iterate over spectra from the current cursor onwards."""
        self._require_open()
        while self._cursor < len(self.index):
            position = self._cursor
            self._cursor += 1
            yield self._read_position(position)

    def __len__(self) -> int:
        """Total number of spectra in the file."""
        return len(self.index)

    def get_ms_level_counts(self) -> dict[int, int]:
        """Return count of spectra per MS level."""
        self._require_open()
        counts: dict[int, int] = {}
        for position in range(len(self.index)):
            level = self._read_position(position).ms_level
            counts[level] = counts.get(level, 0) + 1
        return counts

    # -------------------------------------------------------------------------
    # Random access
    # -------------------------------------------------------------------------

    def _read_position(self, position: int) -> Spectrum:
        native_id, _offset = self.index.get_by_position(position)
        try:
            spectrum_data = self._reader.get_by_id(native_id)
        except KeyError as err:
            raise ScanNotFoundError(native_id) from err
        except OSError as err:
            raise ScanIOError(f"Failed to read {native_id!r} from {self.source_name}") from err
        return self._parse_spectrum(spectrum_data, position)

    def get_spectrum_by_id(self, native_id: str) -> Optional[Spectrum]:
        self._require_open()
        position = self.get_index().position_of(native_id)
        if position is None:
            raise ScanNotFoundError(native_id)
        return self._read_position(position)

    def get_spectrum_by_index(self, index: int) -> Optional[Spectrum]:
        self._require_open()
        if self.get_index().get_by_position(index) is None:
            raise ScanNotFoundError(index)
        return self._read_position(index)

    def get_spectrum_by_time(self, time: float) -> Optional[Spectrum]:
        self._require_open()
        position = self._position_of_time(time)
        if position is None:
            raise ScanNotFoundError(time)
        return self._read_position(position)

    def reset(self) -> 'MzMLReader':
        """Return iteration to the first spectrum."""
        self._require_open()
        self._reader.reset()
        self._cursor = 0
        return self

    def _start_from(self, position: Optional[int], key: object) -> 'MzMLReader':
        if position is None:
            raise ScanNotFoundError(key)
        self._cursor = position
        return self

    def start_from_id(self, native_id: str) -> 'MzMLReader':
        self._require_open()
        return self._start_from(self.get_index().position_of(native_id), native_id)

    def start_from_index(self, index: int) -> 'MzMLReader':
        self._require_open()
        if self.get_index().get_by_position(index) is None:
            raise ScanNotFoundError(index)
        return self._start_from(index, index)

    def start_from_time(self, time: float) -> 'MzMLReader':
        self._require_open()
        return self._start_from(self._position_of_time(time), time)

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    def _parse_spectrum(self, spectrum_data: dict, index: int) -> Spectrum:
        """
        Parse a pyteomics spectrum dictionary into a Spectrum object.

        Args:
            spectrum_data: Dictionary from pyteomics.
            index: Position in file (0-based).

        Returns:
            Parsed Spectrum object.
        """
        native_id = spectrum_data.get('id', str(spectrum_data.get('num', '')))
        ms_level = int(spectrum_data.get('ms level', spectrum_data.get('msLevel', 1)))

        description = SpectrumDescription(
            id=native_id,
            index=index,
            ms_level=ms_level,
            signal_continuity=_parse_signal_continuity(spectrum_data),
            polarity=_parse_polarity(spectrum_data),
        )

        scan_event = self._parse_scan_event(spectrum_data)
        if scan_event is not None:
            description.acquisition.scans.append(scan_event)

        if ms_level > 1:
            description.precursor = self._parse_precursor(spectrum_data)

        for key in _ANNOTATION_KEYS:
            if key in spectrum_data:
                description.annotate(key, str(spectrum_data[key]))

        mz = np.asarray(spectrum_data.get('m/z array', ()), dtype=np.float64)
        intensity = np.asarray(spectrum_data.get('intensity array', ()), dtype=np.float32)
        return Spectrum(description, PeakSet.from_arrays(mz, intensity))

    def _parse_scan_event(self, spectrum_data: dict) -> Optional[ScanEvent]:
        """Parse the first scan of the scan list (or the mzXML retention time)."""
        scans = spectrum_data.get('scanList', {}).get('scan', [])
        if scans:
            scan_info = _first(scans)
            event = ScanEvent()
            if 'scan start time' in scan_info:
                event.start_time = _to_seconds(scan_info['scan start time'])
            if 'ion injection time' in scan_info:
                event.injection_time = float(scan_info['ion injection time'])
            window = _first(scan_info.get('scanWindowList', {}).get('scanWindow', []))
            if window:
                event.scan_window_lower = window.get('scan window lower limit')
                event.scan_window_upper = window.get('scan window upper limit')
            return event

        rt = spectrum_data.get('retentionTime')
        if rt is None:
            return None
        if isinstance(rt, str):
            # ISO 8601 duration: PT60.5S
            match = re.match(r'PT([\d.]+)([SM])', rt)
            if not match:
                return None
            seconds = float(match.group(1))
            if match.group(2) == 'M':
                seconds *= 60.0
            return ScanEvent(start_time=seconds)
        return ScanEvent(start_time=_to_seconds(rt))

    def _parse_precursor(self, spectrum_data: dict) -> Optional[Precursor]:
        """Parse precursor information from spectrum data."""
        precursors = spectrum_data.get('precursorList', {}).get('precursor', [])
        if not precursors:
            return self._parse_mzxml_precursor(spectrum_data)

        prec = _first(precursors)
        ion = _first(prec.get('selectedIonList', {}).get('selectedIon', []))
        mz = ion.get('selected ion m/z') if ion else None
        if mz is None:
            return None

        charge = ion.get('charge state')
        intensity = ion.get('peak intensity')
        isolation = prec.get('isolationWindow', {})
        iso_lower = isolation.get('isolation window lower offset')
        iso_upper = isolation.get('isolation window upper offset')
        activation = prec.get('activation', {})
        collision_energy = activation.get('collision energy')

        return Precursor(
            ion=SelectedIon(
                mz=float(mz),
                intensity=float(intensity) if intensity is not None else 0.0,
                charge=int(charge) if charge is not None else None,
            ),
            isolation_window_lower=float(iso_lower) if iso_lower is not None else None,
            isolation_window_upper=float(iso_upper) if iso_upper is not None else None,
            activation_type=_parse_activation_type(activation),
            collision_energy=float(collision_energy) if collision_energy is not None else None,
            precursor_id=prec.get('spectrumRef'),
        )

    def _parse_mzxml_precursor(self, spectrum_data: dict) -> Optional[Precursor]:
        prec = _first(spectrum_data.get('precursorMz', []))
        if not prec or 'precursorMz' not in prec:
            return None
        charge = prec.get('precursorCharge')
        return Precursor(
            ion=SelectedIon(
                mz=float(prec['precursorMz']),
                intensity=float(prec.get('precursorIntensity', 0.0)),
                charge=int(charge) if charge is not None else None,
            ),
            activation_type=_ACTIVATION_MAP.get(
                str(prec.get('activationMethod', '')).lower(), ActivationType.UNKNOWN
            ),
        )

    # -------------------------------------------------------------------------
    # File-level metadata
    # -------------------------------------------------------------------------

    @property
    def run_metadata(self) -> dict:
        """
        File-level metadata from the mzML header.

        Returns:
            Dictionary with instrument, software, and file info.
        """
        if self._run_metadata is not None:
            return self._run_metadata

        metadata: dict = {
            'source_file': self.source_name,
            'file_format': 'mzXML' if self._is_mzxml else self.format_name,
        }

        if self._reader is not None and not self._is_mzxml:
            for inst in self._reader.iterfind('instrumentConfigurationList/instrumentConfiguration'):
                if 'instrument model' in inst:
                    metadata['instrument_model'] = inst.get('instrument model')
                break
            for soft in self._reader.iterfind('softwareList/software'):
                metadata['software_version'] = soft.get('version', '')
                break
            self._reader.reset()

        self._run_metadata = metadata
        return metadata

    def to_run(self) -> MSRun:
        """
        Load the entire file into an MSRun object.

        This loads all spectra into memory. For large files,
        consider iterating directly instead.
        """
        self._require_open()
        spectra = [self._read_position(i) for i in range(len(self.index))]

        run_meta_dict = self.run_metadata
        run_metadata = RunMetadata(
            source_file=self.path,
            file_format=run_meta_dict['file_format'],
            instrument_model=run_meta_dict.get('instrument_model'),
            software_version=run_meta_dict.get('software_version'),
        )
        return MSRun(spectra=spectra, metadata=run_metadata)


def read_mzml(path: Path | str) -> MSRun:
    """
    Convenience function to read an mzML file into an MSRun.

    Args:
        path: Path to mzML or mzXML file.

    Returns:
        MSRun containing all spectra.

    Example:
        >>> run = read_mzml("sample.mzML")
        >>> print(f"Loaded {len(run)} spectra")
    """
    with MzMLReader(path) as reader:
        return reader.to_run()
