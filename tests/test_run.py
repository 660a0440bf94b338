import math

import pytest

from mzaccess.core import (
    MSRun,
    Polarity,
    RunMetadata,
    Spectrum,
    SpectrumDescription,
)


def make_spectrum(native_id, ms_level=2, start_time=None, polarity=Polarity.UNKNOWN):
    description = SpectrumDescription(id=native_id, ms_level=ms_level, polarity=polarity)
    if start_time is not None:
        description.acquisition.first_scan().start_time = start_time
    return Spectrum(description)


@pytest.fixture
def run() -> MSRun:
    return MSRun(
        [
            make_spectrum("s1", ms_level=1, start_time=1.0, polarity=Polarity.POSITIVE),
            make_spectrum("s2", start_time=2.0),
            make_spectrum("s3"),
            make_spectrum("s4", start_time=4.0),
        ],
        metadata=RunMetadata(file_format="MGF"),
    )


def test_sequence_protocol(run):
    assert len(run) == 4
    assert run[0].native_id == "s1"
    assert [s.native_id for s in run[1:3]] == ["s2", "s3"]
    assert "s3" in run
    assert "s9" not in run
    assert run.native_ids == ["s1", "s2", "s3", "s4"]


def test_get_by_id(run):
    assert run.get_by_id("s2").retention_time == 2.0
    with pytest.raises(KeyError):
        run.get_by_id("s9")


def test_retention_times(run):
    times = run.retention_times
    assert times[0] == 1.0
    assert math.isnan(times[2])
    assert run.rt_range == (1.0, 4.0)
    assert MSRun([make_spectrum("x")]).rt_range is None


def test_rt_queries(run):
    assert [s.native_id for s in run.get_by_rt(2.1, tolerance=0.2)] == ["s2"]
    assert [s.native_id for s in run.get_rt_range(1.5, 4.0)] == ["s2", "s4"]


def test_ms_levels(run):
    assert run.get_ms_level_counts() == {1: 1, 2: 3}
    assert [s.native_id for s in run.iter_ms_level(1)] == ["s1"]


def test_filter_keeps_metadata(run):
    filtered = run.filter(ms_level=2, rt_range=(0.0, 3.0))
    assert filtered.native_ids == ["s2"]
    assert filtered.metadata.file_format == "MGF"
    assert run.filter(polarity=Polarity.POSITIVE).native_ids == ["s1"]


def test_duplicate_ids_keep_both(run):
    run.add_spectrum(make_spectrum("s1", start_time=9.0))
    assert len(run) == 5
    assert run.get_by_id("s1").retention_time == 9.0


def test_summary(run):
    summary = run.summary()
    assert summary["n_spectra"] == 4
    assert summary["file_format"] == "MGF"
    assert "source_file" not in summary
    assert "MS1:1, MS2:3" in repr(run)
