"""
MGF (Mascot Generic Format) reader.

This module provides the MGFReader class, which decodes ``BEGIN IONS`` /
``END IONS`` blocks one at a time with a line-driven state machine, and
supports random access by native ID (the ``TITLE`` value), by position
and by retention time through a byte offset index built by a raw pre-scan
of the file.
"""

import io
import logging
import re
from bisect import bisect_left
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import ClassVar, Literal, NoReturn, Optional

from ..base import PathOrStream, RandomAccessScanIterator, ScanSource, SpectrumReader
from ..exceptions import ScanIOError, ScanNotFoundError
from ..offset_index import OffsetIndex
from ..registry import FileFormat, ReaderRegistry
from ...core import (
    CentroidPeak,
    MSRun,
    PeakSet,
    Precursor,
    RunMetadata,
    SelectedIon,
    Spectrum,
    SpectrumDescription,
)


logger = logging.getLogger(__name__)


BEGIN_IONS = "BEGIN IONS"
END_IONS = "END IONS"

PEAK_SEPARATOR = re.compile(r"\s+")


class MGFParserState(Enum):
    """States of the record decoder."""
    START = auto()
    FILE_HEADER = auto()   # before the first record of a file read from byte 0
    SCAN_HEADERS = auto()
    PEAKS = auto()
    BETWEEN = auto()
    DONE = auto()
    ERROR = auto()


class MGFError(Enum):
    """Decode-time fault kinds."""
    NO_ERROR = auto()
    MALFORMED_PEAK_LINE = auto()
    MALFORMED_HEADER_LINE = auto()
    TOO_MANY_COLUMNS_FOR_PEAK_LINE = auto()  # raised for too few columns
    IO_ERROR = auto()


class MGFParseError(ValueError):
    """
    A line could not be decoded.

    Attributes:
        error: The fault kind.
        line: The offending line, stripped.
        spectrum_id: TITLE of the record being decoded, if already seen.
    """

    def __init__(self, error: MGFError, line: str, spectrum_id: str = ""):
        self.error = error
        self.line = line
        self.spectrum_id = spectrum_id
        message = f"{error.name} while parsing {line!r}"
        if spectrum_id:
            message += f" in spectrum {spectrum_id!r}"
        super().__init__(message)


@dataclass
class MGFParserOptions:
    """
    Options controlling how MGF files are decoded.

    Attributes:
        encoding: Text encoding of the file.
        on_error: ``"raise"`` propagates :class:`MGFParseError`; ``"skip"``
            logs it, drops the offending record and continues with the next.
        headers_before_peaks: Test for ``KEY=VALUE`` before testing for a
            peak line, so keys starting with a digit are read as headers.
        warn_between_records: Log content found between records.
        buffer_size: Read buffer size for files opened by path.
    """
    encoding: str = 'utf-8'
    on_error: Literal['raise', 'skip'] = 'raise'
    headers_before_peaks: bool = False
    warn_between_records: bool = False
    buffer_size: int = io.DEFAULT_BUFFER_SIZE

    def __post_init__(self) -> None:
        if self.on_error not in ('raise', 'skip'):
            raise ValueError(f"on_error must be 'raise' or 'skip', got {self.on_error!r}")


def _parse_charge(token: str) -> int:
    """Parse ``2``, ``+2``, ``2+`` or ``2-`` as a signed charge."""
    if token.endswith('+'):
        return int(token[:-1])
    if token.endswith('-'):
        return -int(token[:-1])
    return int(token)


@ReaderRegistry.register(FileFormat.MGF)
class MGFReader(SpectrumReader, ScanSource, RandomAccessScanIterator):
    """
    Reader for MGF peak list files.

    Spectra are read sequentially by iterating over the reader, or randomly
    by native ID, position or time once the offset index is built. Random
    reads restore the stream position and decoder state afterwards, so they
    can be interleaved with iteration.

    A reader instance and its stream must only be used from one thread at
    a time.

    Example:
        >>> with MGFReader("sample.mgf") as reader:
        ...     for spectrum in reader:
        ...         print(spectrum.native_id, spectrum.precursor.mz)
        ...
        ...     # Random access
        ...     spec = reader.get_spectrum_by_id("scan=42")
        ...     spec = reader[3]
    """

    format_name: ClassVar[str] = "MGF"
    supported_extensions: ClassVar[list[str]] = ['.mgf']

    def __init__(
        self,
        source: PathOrStream,
        use_index: bool = True,
        options: Optional[MGFParserOptions] = None,
    ):
        """
        Initialize the MGF reader.

        Args:
            source: Path to an MGF file, or a binary stream. Streams are
                opened immediately; paths are opened by :meth:`open`.
            use_index: Build the offset index when the reader is opened.
            options: Decoding options.
        """
        super().__init__(source)
        self.options = options or MGFParserOptions()
        self.use_index = use_index
        self.handle: Optional[io.BufferedIOBase] = None
        self.state = MGFParserState.START
        self.error = MGFError.NO_ERROR
        self.index = OffsetIndex("spectrum")
        self.file_header: dict[str, str] = {}
        self._header_scanned = False
        self._owns_handle = False
        self._time_index: list[tuple[float, int]] = []  # (start time, offset), sorted
        self._times: list[float] = []
        self._offset_positions: dict[int, int] = {}
        self._next_position: Optional[int] = 0
        if self._stream is not None:
            self.open()

    @classmethod
    def is_available(cls) -> bool:
        return True

    # -------------------------------------------------------------------------
    # Stream management
    # -------------------------------------------------------------------------

    def open(self) -> None:
        """Open the file if needed and build the index if requested."""
        if self.handle is not None:
            return
        if self._stream is not None:
            self.handle = self._stream
        else:
            self.handle = open(self.path, 'rb', buffering=self.options.buffer_size)
            self._owns_handle = True

        seekable = self.handle.seekable()
        if seekable and self._tell() == 0:
            self.state = MGFParserState.FILE_HEADER

        if self.use_index:
            if seekable:
                self.build_index()
            else:
                logger.warning("Cannot index %s, the stream is not seekable", self.source_name)

    def close(self) -> None:
        if self.handle is not None and self._owns_handle:
            self.handle.close()
        self.handle = None
        self._owns_handle = False

    def _require_open(self) -> None:
        if self.handle is None:
            raise RuntimeError("Reader not opened. Use 'with' context manager.")

    def _tell(self) -> int:
        try:
            return self.handle.tell()
        except (OSError, ValueError) as err:
            self.error = MGFError.IO_ERROR
            raise ScanIOError(f"Failed to get stream position of {self.source_name}") from err

    def seek(self, offset: int) -> int:
        """Move the stream to a byte offset."""
        self._require_open()
        try:
            return self.handle.seek(offset)
        except (OSError, ValueError) as err:
            self.error = MGFError.IO_ERROR
            raise ScanIOError(
                f"Failed to seek to byte {offset} in {self.source_name}", offset
            ) from err

    def _readline(self) -> bytes:
        try:
            return self.handle.readline()
        except (OSError, ValueError) as err:
            self.state = MGFParserState.ERROR
            self.error = MGFError.IO_ERROR
            raise ScanIOError(f"Failed to read from {self.source_name}") from err

    @contextmanager
    def _preserved_position(self):
        """Restore stream position and decoder state on exit."""
        position = self._tell()
        saved = (self.state, self.error, self._next_position)
        try:
            yield
        finally:
            self.state, self.error, self._next_position = saved
            self.seek(position)

    # -------------------------------------------------------------------------
    # Record decoding
    # -------------------------------------------------------------------------

    def new_spectrum(self) -> Spectrum:
        """Make an empty spectrum with the defaults for this format."""
        return Spectrum(SpectrumDescription(), PeakSet())

    def _fault(self, error: MGFError, line: str, spectrum: Spectrum) -> NoReturn:
        self.state = MGFParserState.ERROR
        self.error = error
        raise MGFParseError(error, line, spectrum.description.id)

    def _append_peak(self, line: str, spectrum: Spectrum) -> bool:
        """Append the peak on ``line`` if it is a peak line."""
        if not '0' <= line[0] <= '9':
            return False
        parts = PEAK_SEPARATOR.split(line)
        if len(parts) < 2:
            self._fault(MGFError.TOO_MANY_COLUMNS_FOR_PEAK_LINE, line, spectrum)
        try:
            mz = float(parts[0])
            intensity = float(parts[1])
        except ValueError:
            self._fault(MGFError.MALFORMED_PEAK_LINE, line, spectrum)
        spectrum.peaks.append(CentroidPeak(mz, intensity))
        return True

    def _parse_pepmass(self, value: str, line: str, spectrum: Spectrum) -> Precursor:
        parts = value.split()
        try:
            mz = float(parts[0])
            intensity = float(parts[1]) if len(parts) > 1 else 0.0
            charge = _parse_charge(parts[2]) if len(parts) > 2 else None
        except (ValueError, IndexError):
            self._fault(MGFError.MALFORMED_HEADER_LINE, line, spectrum)
        return Precursor(ion=SelectedIon(mz, intensity, charge))

    def _apply_header(self, line: str, spectrum: Spectrum) -> None:
        key, value = line.split('=', 1)
        description = spectrum.description
        if key == 'TITLE':
            description.id = value
        elif key == 'RTINSECONDS':
            try:
                start_time = float(value)
            except ValueError:
                self._fault(MGFError.MALFORMED_HEADER_LINE, line, spectrum)
            description.acquisition.first_scan().start_time = start_time
        elif key == 'PEPMASS':
            description.precursor = self._parse_pepmass(value, line, spectrum)
        else:
            description.annotate(key, value)

    def _handle_start(self, line: str) -> bool:
        if line == BEGIN_IONS:
            self.state = MGFParserState.SCAN_HEADERS
        return True

    def _handle_file_header(self, line: str) -> bool:
        if line == BEGIN_IONS:
            self.state = MGFParserState.SCAN_HEADERS
        elif '=' in line:
            key, value = line.split('=', 1)
            self.file_header[key.lower()] = value
        return True

    def _collect_header_line(self, raw: bytes, file_header: dict[str, str]) -> None:
        line = raw.decode(self.options.encoding, errors='replace').strip()
        if '=' in line:
            key, value = line.split('=', 1)
            file_header[key.lower()] = value

    def _handle_between(self, line: str) -> bool:
        if line == BEGIN_IONS:
            self.state = MGFParserState.SCAN_HEADERS
        elif self.options.warn_between_records:
            logger.warning("Discarding content between records in %s: %r", self.source_name, line)
        return True

    def _handle_scan_header(self, line: str, spectrum: Spectrum) -> bool:
        if self.options.headers_before_peaks and '=' in line:
            self._apply_header(line, spectrum)
            return True
        if self._append_peak(line, spectrum):
            self.state = MGFParserState.PEAKS
            return True
        if line == END_IONS:
            self.state = MGFParserState.BETWEEN
            return False
        if '=' in line:
            self._apply_header(line, spectrum)
            return True
        self._fault(MGFError.MALFORMED_HEADER_LINE, line, spectrum)

    def _handle_peak(self, line: str, spectrum: Spectrum) -> bool:
        if self._append_peak(line, spectrum):
            return True
        if line == END_IONS:
            self.state = MGFParserState.BETWEEN
            return False
        self._fault(MGFError.MALFORMED_PEAK_LINE, line, spectrum)

    def _handle_line(self, line: str, spectrum: Spectrum) -> bool:
        state = self.state
        if state == MGFParserState.START:
            return self._handle_start(line)
        elif state == MGFParserState.FILE_HEADER:
            return self._handle_file_header(line)
        elif state == MGFParserState.BETWEEN:
            return self._handle_between(line)
        elif state == MGFParserState.SCAN_HEADERS:
            return self._handle_scan_header(line, spectrum)
        elif state == MGFParserState.PEAKS:
            return self._handle_peak(line, spectrum)
        raise RuntimeError(f"Cannot decode a line in state {state.name}")

    def _read_record(self, spectrum: Spectrum, single: bool = False) -> tuple[int, bool]:
        """
        Decode one record into ``spectrum``.

        With ``single`` set, a record skipped under the ``skip`` policy ends
        the read instead of moving on to the next record.

        Returns:
            Bytes consumed, and whether a ``BEGIN IONS`` line was seen for
            the record that was returned.
        """
        if self.state in (MGFParserState.DONE, MGFParserState.ERROR):
            self.state = MGFParserState.START
        self.error = MGFError.NO_ERROR

        consumed = 0
        started = False
        encoding = self.options.encoding
        while True:
            raw = self._readline()
            if not raw:
                if self.state in (MGFParserState.SCAN_HEADERS, MGFParserState.PEAKS):
                    logger.warning(
                        "End of %s reached inside a record, missing %r",
                        self.source_name, END_IONS,
                    )
                self.state = MGFParserState.DONE
                break
            consumed += len(raw)
            line = raw.decode(encoding, errors='replace').strip()
            if not line:
                continue
            try:
                keep_reading = self._handle_line(line, spectrum)
            except MGFParseError as err:
                if self.options.on_error == 'raise':
                    raise
                logger.warning("Skipping malformed record in %s: %s", self.source_name, err)
                if single:
                    self.state = MGFParserState.BETWEEN
                    return consumed, False
                spectrum.description = SpectrumDescription()
                spectrum.peaks = PeakSet()
                started = False
                self.state = MGFParserState.BETWEEN
                continue
            if self.state in (MGFParserState.SCAN_HEADERS, MGFParserState.PEAKS):
                started = True
            if not keep_reading:
                break
        return consumed, started

    def read_into(self, spectrum: Spectrum) -> int:
        """
        Decode the next record into ``spectrum``.

        Returns:
            The number of bytes consumed. Zero means the end of the stream
            was reached before another record began; blank lines or stray
            content read on the way there are not counted.

        Raises:
            MGFParseError: On a malformed line, when ``on_error`` is ``"raise"``.
            ScanIOError: If the stream could not be read.
        """
        self._require_open()
        consumed, started = self._read_record(spectrum)
        return consumed if started else 0

    def read_next(self) -> Optional[Spectrum]:
        """Read the next spectrum from the file, or None at the end."""
        self._require_open()
        spectrum = self.new_spectrum()
        _consumed, started = self._read_record(spectrum)
        if not started:
            return None
        spectrum.description.index = self._next_position
        if self._next_position is not None:
            self._next_position += 1
        return spectrum

    def __iter__(self) -> Iterator[Spectrum]:
        """Iterate over spectra from the current stream position onwards."""
        while True:
            spectrum = self.read_next()
            if spectrum is None:
                return
            yield spectrum

    def __next__(self) -> Spectrum:
        spectrum = self.read_next()
        if spectrum is None:
            raise StopIteration
        return spectrum

    def __len__(self) -> int:
        """Number of spectra in the offset index."""
        return len(self.index)

    # -------------------------------------------------------------------------
    # Indexing
    # -------------------------------------------------------------------------

    def build_index(self) -> int:
        """
        Build the offset index with a raw pre-scan of the whole file.

        Every ``BEGIN IONS`` line followed by a ``TITLE=`` line is indexed
        under the title. The first ``RTINSECONDS=`` of each record is kept
        for time lookups. ``KEY=VALUE`` lines before the first record are
        collected into :attr:`file_header`. Record bodies are not validated.
        The stream position is restored afterwards.

        Returns:
            Number of bytes scanned.
        """
        self._require_open()
        self.index.clear()
        time_index: list[tuple[float, int]] = []
        encoding = self.options.encoding

        offset = 0
        last_start = 0
        found_start = False
        in_header = True
        record_start: Optional[int] = None
        file_header: dict[str, str] = {}

        with self._preserved_position():
            self.seek(0)
            while True:
                raw = self._readline()
                if not raw:
                    break
                if raw.startswith(b"BEGIN IONS"):
                    in_header = False
                    found_start = True
                    last_start = offset
                    record_start = offset
                elif found_start and raw.startswith(b"TITLE="):
                    try:
                        native_id = raw[6:].decode(encoding).rstrip()
                    except UnicodeDecodeError:
                        logger.warning("Undecodable title at byte %d of %s", offset, self.source_name)
                    else:
                        self.index.insert(native_id, last_start)
                    found_start = False
                elif record_start is not None and raw.startswith(b"RTINSECONDS="):
                    try:
                        time_index.append((float(raw[12:].decode("ascii")), record_start))
                    except ValueError:
                        logger.debug("Unparsable retention time at byte %d of %s", offset, self.source_name)
                    record_start = None
                elif raw.startswith(b"END IONS"):
                    record_start = None
                elif in_header:
                    self._collect_header_line(raw, file_header)
                offset += len(raw)

        self.file_header = file_header
        self._header_scanned = True
        time_index.sort()
        self._time_index = time_index
        self._times = [time for time, _offset in time_index]
        self._offset_positions = {offset: i for i, (_id, offset) in enumerate(self.index)}
        self.index.init = True
        if self.index.is_empty():
            logger.warning("An index was built but no entries were found in %s", self.source_name)
        else:
            logger.debug("Indexed %d spectra over %d bytes of %s", len(self.index), offset, self.source_name)
        return offset

    def _scan_file_header(self) -> None:
        """Collect the file header without building the index."""
        file_header: dict[str, str] = {}
        with self._preserved_position():
            self.seek(0)
            while True:
                raw = self._readline()
                if not raw or raw.startswith(b"BEGIN IONS"):
                    break
                self._collect_header_line(raw, file_header)
        self.file_header = file_header
        self._header_scanned = True

    def get_index(self) -> OffsetIndex:
        if not self.index.init:
            logger.warning("Attempting to use an uninitialized offset index on MGFReader")
        return self.index

    def _offset_of_id(self, native_id: str) -> Optional[int]:
        return self.get_index().get(native_id)

    def _offset_of_index(self, index: int) -> Optional[int]:
        entry = self.get_index().get_by_position(index)
        if entry is None:
            return None
        return entry[1]

    def _offset_of_time(self, time: float) -> Optional[int]:
        """Offset of the record whose start time is nearest ``time``, earlier on ties."""
        if not self._times:
            return None
        i = bisect_left(self._times, time)
        if i == len(self._times):
            return self._time_index[-1][1]
        if i > 0 and time - self._times[i - 1] <= self._times[i] - time:
            i -= 1
        return self._time_index[i][1]

    # -------------------------------------------------------------------------
    # Random access
    # -------------------------------------------------------------------------

    def _read_at(self, offset: int) -> Optional[Spectrum]:
        with self._preserved_position():
            self.seek(offset)
            self.state = MGFParserState.START
            spectrum = self.new_spectrum()
            _consumed, started = self._read_record(spectrum, single=True)
        if not started:
            return None
        spectrum.description.index = self._offset_positions.get(offset)
        return spectrum

    def get_spectrum_by_id(self, native_id: str) -> Optional[Spectrum]:
        """
        Read the spectrum whose TITLE is ``native_id``.

        The stream position is the same after the call as before it.

        Raises:
            ScanNotFoundError: If the ID is not in the index.
        """
        self._require_open()
        offset = self._offset_of_id(native_id)
        if offset is None:
            raise ScanNotFoundError(native_id)
        return self._read_at(offset)

    def get_spectrum_by_index(self, index: int) -> Optional[Spectrum]:
        """Read the spectrum at 0-based position ``index`` in the file."""
        self._require_open()
        offset = self._offset_of_index(index)
        if offset is None:
            raise ScanNotFoundError(index)
        return self._read_at(offset)

    def get_spectrum_by_time(self, time: float) -> Optional[Spectrum]:
        """Read the spectrum whose start time is nearest ``time`` seconds."""
        self._require_open()
        offset = self._offset_of_time(time)
        if offset is None:
            raise ScanNotFoundError(time)
        return self._read_at(offset)

    def reset(self) -> 'MGFReader':
        """
        Return the stream to the beginning.

        The decoder state is left alone. A reader stopped between records,
        at the end of the file or after a fault starts the next read from
        the beginning of a record.
        """
        self.seek(0)
        self._next_position = 0
        return self

    def _start_from(self, offset: Optional[int], key: object) -> 'MGFReader':
        if offset is None:
            raise ScanNotFoundError(key)
        self.seek(offset)
        self._next_position = self._offset_positions.get(offset)
        return self

    def start_from_id(self, native_id: str) -> 'MGFReader':
        self._require_open()
        return self._start_from(self._offset_of_id(native_id), native_id)

    def start_from_index(self, index: int) -> 'MGFReader':
        self._require_open()
        return self._start_from(self._offset_of_index(index), index)

    def start_from_time(self, time: float) -> 'MGFReader':
        self._require_open()
        return self._start_from(self._offset_of_time(time), time)

    # -------------------------------------------------------------------------
    # Whole-file queries
    # -------------------------------------------------------------------------

    def _read_all(self) -> list[Spectrum]:
        with self._preserved_position():
            self.seek(0)
            self.state = MGFParserState.FILE_HEADER
            self._next_position = 0
            spectra = list(self)
        return spectra

    def get_ms_level_counts(self) -> dict[int, int]:
        """Return count of spectra per MS level."""
        self._require_open()
        counts: dict[int, int] = {}
        for spectrum in self._read_all():
            level = spectrum.ms_level
            counts[level] = counts.get(level, 0) + 1
        return counts

    @property
    def run_metadata(self) -> dict:
        """
        File-level metadata.

        ``file_header`` holds the ``KEY=VALUE`` lines found before the first
        record, keys lower-cased.
        """
        if not self._header_scanned and self.handle is not None and self.handle.seekable():
            self._scan_file_header()
        return {
            'source_file': self.source_name,
            'file_format': self.format_name,
            'file_header': dict(self.file_header),
        }

    def to_run(self) -> MSRun:
        """
        Load the entire file into an MSRun object.

        This reads from the beginning of the file and leaves the current
        position untouched.
        """
        self._require_open()
        spectra = self._read_all()
        run_metadata = RunMetadata(
            source_file=self.path,
            file_format=self.format_name,
            extras={'file_header': dict(self.file_header)},
        )
        return MSRun(spectra=spectra, metadata=run_metadata)


def read_mgf(path: Path | str, options: Optional[MGFParserOptions] = None) -> MSRun:
    """
    Convenience function to read an MGF file into an MSRun.

    Example:
        >>> run = read_mgf("sample.mgf")
        >>> print(f"Loaded {len(run)} spectra")
    """
    with MGFReader(path, use_index=False, options=options) as reader:
        return reader.to_run()
