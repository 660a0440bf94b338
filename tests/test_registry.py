import pytest

from mzaccess.io import FileFormat, MGFReader, MzMLReader, ReaderRegistry, detect_format


@pytest.mark.parametrize(
    "name, expected",
    [
        ("run.mgf", FileFormat.MGF),
        ("RUN.MGF", FileFormat.MGF),
        ("run.mzML", FileFormat.MZML),
        ("run.mzXML", FileFormat.MZXML),
        ("run.raw", FileFormat.UNKNOWN),
    ],
)
def test_detect_format(name, expected):
    assert detect_format(name) == expected


def test_get_reader_for_mgf(small_mgf_path):
    reader = ReaderRegistry.get_reader(small_mgf_path)
    assert isinstance(reader, MGFReader)
    assert reader.handle is None
    with reader:
        assert reader.index.keys() == ["A", "B"]


def test_get_reader_for_mzxml(tmp_path):
    path = tmp_path / "run.mzXML"
    path.write_bytes(b"")
    reader = ReaderRegistry.get_reader(path)
    assert isinstance(reader, MzMLReader)
    assert reader._is_mzxml


def test_get_reader_unknown_format(tmp_path):
    with pytest.raises(RuntimeError):
        ReaderRegistry.get_reader(tmp_path / "run.raw")


def test_list_available():
    available = ReaderRegistry.list_available()
    assert available["MGF"] is True
    assert set(available) >= {"MGF", "MZML", "MZXML"}
