"""Fit and verdict containers produced by the analysis engines.

Every verdict carries the numbers it was decided on so that a report never
shows a bare PASS/FAIL.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from panel_gamma.models.samples import Channel, Sample


@dataclass(frozen=True)
class FitResult:
    """Best-fit power law for one channel.

    Parameters
    ----------
    channel : Channel
        Channel the series belongs to.
    actual_gamma : float | None
        Fitted exponent, ``None`` when the channel is unfittable.
    rms_error : float | None
        Unweighted RMS of normalised residuals, ``None`` when unfittable.
    y_black, y_white : float | None
        Normalisation anchors (cd/m^2).
    point_count : int
        Number of ``gray > 0`` points that entered the fit.
    reason : str
        Why the channel is unfittable; empty when fitted.
    """

    channel: Channel
    actual_gamma: float | None
    rms_error: float | None
    y_black: float | None
    y_white: float | None
    point_count: int
    reason: str = ""

    @property
    def fittable(self) -> bool:
        return self.actual_gamma is not None


@dataclass(frozen=True)
class GammaVerdict:
    """PASS/FAIL of one channel against the target gamma."""

    channel: Channel
    passed: bool
    actual_gamma: float | None
    rms_error: float | None
    target_gamma: float
    tolerance: float
    reason: str = ""

    @property
    def deviation(self) -> float | None:
        """``|actual - target|``, ``None`` when unfittable."""
        if self.actual_gamma is None:
            return None
        return abs(self.actual_gamma - self.target_gamma)

    @property
    def result(self) -> str:
        return "PASS" if self.passed else "FAIL"


@dataclass(frozen=True)
class WhitePointWindow:
    """Rectangular CIE 1931 xy acceptance window for a SKU (inclusive)."""

    sku: str
    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def contains(self, x: float, y: float) -> bool:
        return (
            self.x_min <= x <= self.x_max
            and self.y_min <= y <= self.y_max
        )


class WhitePointOutcome(str, enum.Enum):
    """Outcome of the white-point check.

    Only ``PASS`` passes.  ``SKU_NOT_FOUND`` and ``NO_WHITE_SAMPLES`` mean
    the check could not be applied and count as failures.
    """

    PASS = "PASS"
    FAIL = "FAIL"
    SKU_NOT_FOUND = "SKU_NOT_FOUND"
    NO_WHITE_SAMPLES = "NO_WHITE_SAMPLES"


@dataclass(frozen=True)
class WhitePointVerdict:
    """White-point check of the brightest White-channel sample."""

    sku: str
    outcome: WhitePointOutcome
    sample: Sample | None = None
    window: WhitePointWindow | None = None

    @property
    def passed(self) -> bool:
        return self.outcome is WhitePointOutcome.PASS

    @property
    def applicable(self) -> bool:
        return self.outcome in (WhitePointOutcome.PASS, WhitePointOutcome.FAIL)


@dataclass(frozen=True)
class RunVerdict:
    """Overall result of one calibration run."""

    channels: tuple[GammaVerdict, ...]
    white_point: WhitePointVerdict | None = None

    @property
    def passed(self) -> bool:
        if not self.channels:
            return False
        if not all(v.passed for v in self.channels):
            return False
        if self.white_point is not None and not self.white_point.passed:
            return False
        return True
