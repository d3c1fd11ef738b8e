"""Device capability ports.

The sequencer and routines only talk to these abstract ports, so a run can
be driven by the UART stimulus and a real photometer, by the emulated
panel, or by deterministic fakes in tests.

Failures are reported by raising the port's exception type; a port never
returns a success flag.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class HardwareError(Exception):
    """Base exception for all device port errors."""

    pass


class StimulusError(HardwareError):
    """The stimulus driver could not render the requested colour."""

    pass


class MeasurementError(HardwareError):
    """The photometer failed to take a reading."""

    pass


class RegisterEngineError(HardwareError):
    """The gamma register engine rejected its inputs or failed."""

    pass


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Reading:
    """One photometer reading of the current display state.

    Parameters
    ----------
    luminance : float
        Lv in cd/m^2.
    x, y : float
        CIE 1931 chromaticity.
    cct : float | None
        Correlated colour temperature (K).
    duv : float | None
        Distance from the Planckian locus.
    """

    luminance: float
    x: float
    y: float
    cct: float | None = None
    duv: float | None = None


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------


class StimulusPort(ABC):
    """Renders a full-screen colour on the display under test."""

    @abstractmethod
    def set_color(self, red: int, green: int, blue: int) -> None:
        """Fill the panel with ``(red, green, blue)``, 8 bits each.

        Raises
        ------
        StimulusError
            If the colour could not be applied.
        """

    def __enter__(self) -> StimulusPort:
        return self

    def __exit__(self, *args: Any) -> None:
        return None


class PhotometerPort(ABC):
    """Takes photometric readings of whatever the panel shows now."""

    @abstractmethod
    def measure(self) -> Reading:
        """Take one reading.

        Raises
        ------
        MeasurementError
            If the instrument failed to measure.
        """

    def __enter__(self) -> PhotometerPort:
        return self

    def __exit__(self, *args: Any) -> None:
        return None


class GammaRegisterEngine(ABC):
    """Vendor gamma-voltage engine (opaque).

    Converts 16 gamma taps plus 16 measured luminances into panel
    gamma/VCOM register values.  Calls must happen in the order
    ``load_vcom`` → ``load_gamma_taps`` → ``calculate_voltages`` →
    ``load_luminance`` → ``read_registers``.
    """

    @abstractmethod
    def load_vcom(self, vcm: int, vrh: int) -> None:
        ...

    @abstractmethod
    def load_gamma_taps(self, taps: list[int]) -> None:
        ...

    @abstractmethod
    def calculate_voltages(self) -> None:
        ...

    @abstractmethod
    def load_luminance(self, values: list[float]) -> None:
        ...

    @abstractmethod
    def read_registers(self) -> list[int]:
        ...


class StimulusFanout(StimulusPort):
    """Forwards every colour change to several stimulus ports in order.

    Used when the panel is driven over UART while an emulated photometer
    needs to know what is on screen.  The first failure propagates and the
    remaining ports are not updated.
    """

    def __init__(self, *ports: StimulusPort) -> None:
        if not ports:
            raise ValueError("StimulusFanout needs at least one port")
        self.ports = ports

    def set_color(self, red: int, green: int, blue: int) -> None:
        for port in self.ports:
            port.set_color(red, green, blue)
