import io
import logging

import pytest

from mzaccess.core import Polarity, SignalContinuity
from mzaccess.io import (
    MGFError,
    MGFParseError,
    MGFParserOptions,
    MGFParserState,
    MGFReader,
    read_mgf,
)


def read_all(data: bytes, **kwargs):
    reader = MGFReader(io.BytesIO(data), **kwargs)
    return reader, list(reader)


def test_sequential_count_matches_blocks(small_mgf_stream):
    reader = MGFReader(small_mgf_stream)
    spectra = list(reader)
    assert [s.native_id for s in spectra] == ["A", "B"]
    assert [s.index for s in spectra] == [0, 1]
    assert reader.state == MGFParserState.DONE
    assert reader.read_next() is None


def test_header_fields(small_mgf_stream):
    first = next(iter(MGFReader(small_mgf_stream)))
    description = first.description
    assert description.id == "A"
    assert description.start_time == 10.5
    assert len(description.acquisition) == 1
    assert description.annotations == {"charge": "2+"}
    assert first.precursor.mz == 500.5
    assert first.precursor.ion.intensity == 1000.0
    assert first.precursor.charge == 2


def test_pepmass_without_charge(small_mgf_stream):
    spectra = list(MGFReader(small_mgf_stream))
    ion = spectra[1].precursor.ion
    assert ion.mz == 600.25
    assert ion.intensity == 2000.0
    assert ion.charge is None


def test_pepmass_variants():
    data = (
        b"BEGIN IONS\nPEPMASS=500.5\nEND IONS\n"
        b"BEGIN IONS\nPEPMASS=500.5 10 3+\nEND IONS\n"
        b"BEGIN IONS\nPEPMASS=500.5 10 2-\nEND IONS\n"
    )
    _, spectra = read_all(data)
    assert spectra[0].precursor.ion.intensity == 0.0
    assert spectra[0].precursor.charge is None
    assert spectra[1].precursor.charge == 3
    assert spectra[2].precursor.charge == -2


@pytest.mark.parametrize("line", [b"100.5\t250.25", b"100.5   250.25", b"100.5 250.25 extra 1"])
def test_peak_line_separators(line):
    _, spectra = read_all(b"BEGIN IONS\n" + line + b"\nEND IONS\n")
    peak = spectra[0].peaks[0]
    assert peak.mz == 100.5
    assert peak.intensity == 250.25


def test_peaks_keep_file_order(small_mgf_stream):
    first = next(iter(MGFReader(small_mgf_stream)))
    assert first.mz.tolist() == [100.5, 200.25]
    assert first.intensity.dtype.name == "float32"

    _, spectra = read_all(b"BEGIN IONS\n300 1\n100 2\n200 3\nEND IONS\n")
    assert spectra[0].mz.tolist() == [300.0, 100.0, 200.0]


def test_empty_block_has_defaults():
    _, spectra = read_all(b"BEGIN IONS\nEND IONS\n")
    assert len(spectra) == 1
    spectrum = spectra[0]
    assert spectrum.is_empty
    assert spectrum.native_id == ""
    assert spectrum.ms_level == 2
    assert spectrum.description.signal_continuity == SignalContinuity.CENTROID
    assert spectrum.description.polarity == Polarity.UNKNOWN
    assert spectrum.precursor is None
    assert spectrum.retention_time is None


def test_empty_block_does_not_swallow_next_record():
    _, spectra = read_all(b"BEGIN IONS\nEND IONS\nBEGIN IONS\nTITLE=next\nEND IONS\n")
    assert [s.native_id for s in spectra] == ["", "next"]


def test_zero_byte_input(caplog):
    with caplog.at_level(logging.WARNING, logger="mzaccess.io.readers.mgf"):
        reader, spectra = read_all(b"")
    assert spectra == []
    assert reader.error == MGFError.NO_ERROR
    assert reader.index.init
    assert len(reader.index) == 0
    assert "no entries were found" in caplog.text


def test_read_into_reports_bytes_consumed():
    data = b"BEGIN IONS\nTITLE=x\nEND IONS\n"
    reader = MGFReader(io.BytesIO(data))
    spectrum = reader.new_spectrum()
    assert reader.read_into(spectrum) == len(data)
    assert spectrum.native_id == "x"
    assert reader.read_into(reader.new_spectrum()) == 0


def test_blank_lines_and_crlf():
    data = b"\r\nBEGIN IONS\r\n\r\nTITLE=crlf\r\n  100.0 5.0  \r\n\r\nEND IONS\r\n\r\n\r\n"
    reader, spectra = read_all(data)
    assert len(spectra) == 1
    assert spectra[0].native_id == "crlf"
    assert spectra[0].mz.tolist() == [100.0]
    assert reader.index.keys() == ["crlf"]


def test_annotations_lowercased_last_write_wins():
    _, spectra = read_all(b"BEGIN IONS\nCHARGE=2+\nScans=7\nCHARGE=3+\nEND IONS\n")
    assert spectra[0].description.annotations == {"charge": "3+", "scans": "7"}


def test_title_value_kept_verbatim():
    _, spectra = read_all(b"BEGIN IONS\nTITLE=run1.5.5.2 File:\"x=y\"\nEND IONS\n")
    assert spectra[0].native_id == 'run1.5.5.2 File:"x=y"'


def test_file_header_collected(small_mgf_stream):
    reader = MGFReader(small_mgf_stream)
    list(reader)
    assert reader.run_metadata["file_header"] == {"mass": "Monoisotopic"}
    assert reader.run_metadata["file_format"] == "MGF"


@pytest.mark.parametrize(
    "body, error",
    [
        (b"TITLE=X\nnot a header\n", MGFError.MALFORMED_HEADER_LINE),
        (b"100.0 1.0\nbar\n", MGFError.MALFORMED_PEAK_LINE),
        (b"100.0 abc\n", MGFError.MALFORMED_PEAK_LINE),
        (b"100.0\n", MGFError.TOO_MANY_COLUMNS_FOR_PEAK_LINE),
        (b"RTINSECONDS=soon\n", MGFError.MALFORMED_HEADER_LINE),
        (b"PEPMASS=heavy\n", MGFError.MALFORMED_HEADER_LINE),
    ],
)
def test_faults_are_raised(body, error):
    reader = MGFReader(io.BytesIO(b"BEGIN IONS\n" + body + b"END IONS\n"))
    with pytest.raises(MGFParseError) as excinfo:
        reader.read_next()
    assert excinfo.value.error == error
    assert reader.state == MGFParserState.ERROR
    assert reader.error == error


def test_fault_is_recoverable_by_caller():
    data = (
        b"BEGIN IONS\nTITLE=bad\n100.0 1.0\nbar\nEND IONS\n"
        b"BEGIN IONS\nTITLE=good\nEND IONS\n"
    )
    reader = MGFReader(io.BytesIO(data))
    with pytest.raises(MGFParseError):
        reader.read_next()
    assert reader.read_next().native_id == "good"
    assert reader.read_next() is None


def test_skip_policy(caplog):
    data = (
        b"BEGIN IONS\nTITLE=bad\n100.0 1.0\nbar\n200.0 1.0\nEND IONS\n"
        b"BEGIN IONS\nTITLE=good\n300.0 1.0\nEND IONS\n"
    )
    with caplog.at_level(logging.WARNING, logger="mzaccess.io.readers.mgf"):
        _, spectra = read_all(data, options=MGFParserOptions(on_error="skip"))
    assert [s.native_id for s in spectra] == ["good"]
    assert spectra[0].mz.tolist() == [300.0]
    assert "Skipping malformed record" in caplog.text


def test_digit_key_is_a_peak_line_by_default():
    reader = MGFReader(io.BytesIO(b"BEGIN IONS\n1KEY=5\nEND IONS\n"))
    with pytest.raises(MGFParseError) as excinfo:
        reader.read_next()
    assert excinfo.value.error == MGFError.TOO_MANY_COLUMNS_FOR_PEAK_LINE


def test_headers_before_peaks_option():
    options = MGFParserOptions(headers_before_peaks=True)
    _, spectra = read_all(b"BEGIN IONS\n1KEY=5\n100 1\nEND IONS\n", options=options)
    assert spectra[0].description.annotations == {"1key": "5"}
    assert spectra[0].n_points == 1


def test_between_records_garbage(caplog):
    data = b"BEGIN IONS\nTITLE=a\nEND IONS\nstray text\nBEGIN IONS\nTITLE=b\nEND IONS\n"
    _, spectra = read_all(data)
    assert len(spectra) == 2
    assert "stray text" not in caplog.text

    options = MGFParserOptions(warn_between_records=True)
    with caplog.at_level(logging.WARNING, logger="mzaccess.io.readers.mgf"):
        _, spectra = read_all(data, options=options)
    assert len(spectra) == 2
    assert "stray text" in caplog.text


def test_truncated_record_is_returned(caplog):
    with caplog.at_level(logging.WARNING, logger="mzaccess.io.readers.mgf"):
        _, spectra = read_all(b"BEGIN IONS\nTITLE=T\n100 1")
    assert len(spectra) == 1
    assert spectra[0].mz.tolist() == [100.0]
    assert "inside a record" in caplog.text


def test_invalid_options():
    with pytest.raises(ValueError):
        MGFParserOptions(on_error="ignore")


def test_text_stream_rejected():
    with pytest.raises(TypeError):
        MGFReader(io.StringIO("BEGIN IONS\nEND IONS\n"))


def test_path_reader(small_mgf_path):
    reader = MGFReader(small_mgf_path)
    with pytest.raises(RuntimeError):
        reader.read_next()
    with reader:
        assert len(reader) == 2
        assert [s.native_id for s in reader] == ["A", "B"]
    assert reader.handle is None


def test_path_validation(tmp_path):
    with pytest.raises(FileNotFoundError):
        MGFReader(tmp_path / "missing.mgf")
    other = tmp_path / "data.txt"
    other.write_bytes(b"")
    with pytest.raises(ValueError):
        MGFReader(other)


def test_read_mgf(small_mgf_path):
    run = read_mgf(small_mgf_path)
    assert len(run) == 2
    assert run.native_ids == ["A", "B"]
    assert run.metadata.file_format == "MGF"
    assert run.metadata.extras["file_header"] == {"mass": "Monoisotopic"}
    assert run.get_by_id("B").precursor.mz == 600.25


def test_iter_ms_level(small_mgf_stream):
    reader = MGFReader(small_mgf_stream)
    assert [s.native_id for s in reader.iter_ms_level(2)] == ["A", "B"]
    reader.reset()
    assert list(reader.iter_ms_level(1)) == []


def test_file_header_reported_before_reading(small_mgf_stream):
    reader = MGFReader(small_mgf_stream)
    assert reader.run_metadata["file_header"] == {"mass": "Monoisotopic"}
    assert reader.read_next().native_id == "A"


def test_file_header_without_index():
    data = b"MASS=Monoisotopic\nCHARGE=2+\nBEGIN IONS\nTITLE=A\nEND IONS\n"
    reader = MGFReader(io.BytesIO(data), use_index=False)
    assert reader.run_metadata["file_header"] == {"mass": "Monoisotopic", "charge": "2+"}
    assert [s.native_id for s in reader] == ["A"]


def test_read_into_ignores_trailing_blank_lines():
    reader = MGFReader(io.BytesIO(b"BEGIN IONS\nTITLE=x\nEND IONS\n\n\n"))
    count = 0
    while reader.read_into(reader.new_spectrum()) != 0:
        count += 1
    assert count == 1
