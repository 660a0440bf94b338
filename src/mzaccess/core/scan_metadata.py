"""
Spectrum descriptions for decoded MS records.

This module defines the description half of a decoded record: identity,
acquisition stage, signal representation, the selected precursor ion and
the acquisition events, plus a flat mapping of free-form annotations.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional

import numpy as np


class Polarity(Enum):
    """Ion polarity mode."""
    POSITIVE = auto()
    NEGATIVE = auto()
    UNKNOWN = auto()


class SignalContinuity(Enum):
    """Spectrum data representation type."""
    CENTROID = auto()
    PROFILE = auto()
    UNKNOWN = auto()


class ActivationType(Enum):
    """Fragmentation/activation method for MS2+ scans."""
    CID = auto()      # Collision-Induced Dissociation
    HCD = auto()      # Higher-energy Collisional Dissociation
    ETD = auto()      # Electron Transfer Dissociation
    ECD = auto()      # Electron Capture Dissociation
    UVPD = auto()     # Ultraviolet Photodissociation
    IRMPD = auto()    # Infrared Multiphoton Dissociation
    UNKNOWN = auto()


def as_float32(value: float) -> float:
    """Round a value to single precision, returned as a Python float."""
    return float(np.float32(value))


@dataclass(slots=True)
class SelectedIon:
    """
    The ion selected for fragmentation.

    Attributes:
        mz: Selected ion m/z.
        intensity: Selected ion intensity, stored at single precision.
        charge: Charge state (None if unknown).
    """
    mz: float = 0.0
    intensity: float = 0.0
    charge: Optional[int] = None

    def __post_init__(self) -> None:
        self.intensity = as_float32(self.intensity)


@dataclass(slots=True)
class Precursor:
    """
    Precursor ion information for MS2+ spectra.

    Only :attr:`ion` is populated from MGF files; the remaining fields are
    filled when the source format carries them.

    Attributes:
        ion: The selected ion.
        isolation_window_lower: Lower offset of isolation window in Da.
        isolation_window_upper: Upper offset of isolation window in Da.
        activation_type: Fragmentation method used.
        collision_energy: Collision energy value.
        precursor_id: Native ID of the spectrum the ion was selected from.
    """
    ion: SelectedIon = field(default_factory=SelectedIon)
    isolation_window_lower: Optional[float] = None
    isolation_window_upper: Optional[float] = None
    activation_type: ActivationType = ActivationType.UNKNOWN
    collision_energy: Optional[float] = None
    precursor_id: Optional[str] = None

    @property
    def mz(self) -> float:
        return self.ion.mz

    @property
    def charge(self) -> Optional[int]:
        return self.ion.charge

    @property
    def isolation_window_width(self) -> Optional[float]:
        """Total isolation window width in Da."""
        if self.isolation_window_lower is not None and self.isolation_window_upper is not None:
            return self.isolation_window_lower + self.isolation_window_upper
        return None


@dataclass(slots=True)
class ScanEvent:
    """
    A single acquisition event.

    Attributes:
        start_time: Scan start time in seconds.
        injection_time: Ion injection time in milliseconds.
        scan_window_lower: Lower m/z limit of scan range.
        scan_window_upper: Upper m/z limit of scan range.
    """
    start_time: float = 0.0
    injection_time: Optional[float] = None
    scan_window_lower: Optional[float] = None
    scan_window_upper: Optional[float] = None


@dataclass(slots=True)
class Acquisition:
    """Ordered acquisition events for one spectrum."""
    scans: list[ScanEvent] = field(default_factory=list)

    def first_scan(self) -> ScanEvent:
        """Return the first scan event, adding an empty one if there is none."""
        if not self.scans:
            self.scans.append(ScanEvent())
        return self.scans[0]

    @property
    def start_time(self) -> Optional[float]:
        if not self.scans:
            return None
        return self.scans[0].start_time

    def __len__(self) -> int:
        return len(self.scans)


@dataclass(slots=True)
class SpectrumDescription:
    """
    Everything known about a spectrum except its peaks.

    The defaults describe a record from a peak list file: a centroided
    MS2 spectrum with unknown polarity.

    Attributes:
        id: Native identifier of the spectrum in its source file.
        index: 0-based position of the spectrum in its source, when known.
        ms_level: MS level (1 for MS1, 2 for MS2, etc.).
        signal_continuity: Profile or centroid mode.
        polarity: Ion polarity mode.
        precursor: Precursor information for MSn scans.
        acquisition: Acquisition events, at least one once a time is known.
        annotations: Free-form key/value pairs, keys lower-cased.
    """
    id: str = ""
    index: Optional[int] = None
    ms_level: int = 2
    signal_continuity: SignalContinuity = SignalContinuity.CENTROID
    polarity: Polarity = Polarity.UNKNOWN
    precursor: Optional[Precursor] = None
    acquisition: Acquisition = field(default_factory=Acquisition)
    annotations: dict[str, str] = field(default_factory=dict)

    def annotate(self, key: str, value: str) -> None:
        """Store an annotation under its lower-cased key, replacing any earlier value."""
        self.annotations[key.lower()] = value

    @property
    def start_time(self) -> Optional[float]:
        """Start time in seconds of the first acquisition event, if any."""
        return self.acquisition.start_time

    @property
    def is_ms1(self) -> bool:
        return self.ms_level == 1

    @property
    def is_msn(self) -> bool:
        return self.ms_level > 1
