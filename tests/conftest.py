import io
from pathlib import Path

import pytest


SMALL_MGF = b"""MASS=Monoisotopic
BEGIN IONS
TITLE=A
RTINSECONDS=10.5
PEPMASS=500.5 1000.0 2
CHARGE=2+
100.5\t250.25
200.25 500.5
END IONS

BEGIN IONS
TITLE=B
RTINSECONDS=20.0
PEPMASS=600.25 2000.0
150.0   300.0
END IONS
"""


@pytest.fixture
def small_mgf_bytes() -> bytes:
    return SMALL_MGF


@pytest.fixture
def small_mgf_stream() -> io.BytesIO:
    return io.BytesIO(SMALL_MGF)


@pytest.fixture
def small_mgf_path(tmp_path: Path) -> Path:
    path = tmp_path / "small.mgf"
    path.write_bytes(SMALL_MGF)
    return path


class FlakyStream(io.BytesIO):
    """A BytesIO whose seeks can be made to fail."""

    fail_seek = False

    def seek(self, *args, **kwargs):
        if self.fail_seek:
            raise OSError("device went away")
        return super().seek(*args, **kwargs)


@pytest.fixture
def flaky_stream() -> FlakyStream:
    return FlakyStream(SMALL_MGF)
