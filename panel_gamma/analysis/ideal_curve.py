"""Point-by-point comparison of a measured gray sweep with an ideal curve.

This is the older acceptance check used on the single-channel line: every
measured level must be within a relative tolerance of
``(gray/255)^gamma * l_max``.  It is stricter at the dark end than the
fitted-gamma check and is kept as an optional report.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from panel_gamma.models.samples import GRAY_MAX, MalformedInput

logger = logging.getLogger(__name__)

# The comparison is only meaningful on a full production sweep
MIN_CURVE_POINTS = 16

# Used when every measured value is 0 (panel dark or photometer unplugged)
FALLBACK_L_MAX = 250.0


@dataclass(frozen=True)
class CurvePoint:
    gray: int
    measured: float
    ideal: float
    relative_error: float
    passed: bool


@dataclass(frozen=True)
class IdealCurveReport:
    """Per-point comparison and overall verdict."""

    gamma: float
    tolerance: float
    l_max: float
    points: tuple[CurvePoint, ...]

    @property
    def passed(self) -> bool:
        return all(p.passed for p in self.points)

    @property
    def worst(self) -> CurvePoint:
        return max(self.points, key=lambda p: p.relative_error)


def ideal_luminance(gray: int, gamma: float, l_max: float) -> float:
    """Ideal luminance at *gray*, truncated to 3 decimals."""
    value = (gray / GRAY_MAX) ** gamma * l_max
    return math.trunc(value * 1000.0) / 1000.0


def compare_to_ideal_curve(
    grays: Sequence[int],
    luminances: Sequence[float],
    gamma: float = 2.2,
    tolerance: float = 0.1,
    l_max: float | None = None,
) -> IdealCurveReport:
    """Compare measured luminances with the ideal power-law curve.

    Parameters
    ----------
    grays : Sequence[int]
        Gray levels, in measurement order.
    luminances : Sequence[float]
        Measured luminance per gray level (cd/m^2).
    gamma : float
        Exponent of the ideal curve.
    tolerance : float
        Maximum relative error per point (0.1 = 10 %).
    l_max : float | None
        Luminance at gray 255.  Defaults to the largest measured value, or
        ``FALLBACK_L_MAX`` if that is 0.

    Returns
    -------
    IdealCurveReport

    Raises
    ------
    MalformedInput
        If fewer than 16 points are given or the sequences differ in length.
    """
    if len(grays) != len(luminances):
        raise MalformedInput(
            f"grays ({len(grays)}) and luminances ({len(luminances)}) "
            "differ in length"
        )
    if len(luminances) < MIN_CURVE_POINTS:
        raise MalformedInput(
            f"Ideal-curve comparison needs >= {MIN_CURVE_POINTS} points, "
            f"got {len(luminances)}"
        )

    if l_max is None:
        peak = max(luminances)
        l_max = peak if peak != 0 else FALLBACK_L_MAX

    points = []
    for gray, measured in zip(grays, luminances):
        ideal = ideal_luminance(gray, gamma, l_max)
        error = abs(measured - ideal) / (ideal if ideal != 0 else 1.0)
        points.append(CurvePoint(
            gray=gray,
            measured=measured,
            ideal=ideal,
            relative_error=error,
            passed=error <= tolerance,
        ))
        logger.debug(
            "Gray %3d: measured=%.2f ideal=%.2f error=%.1f%%",
            gray, measured, ideal, error * 100.0,
        )

    report = IdealCurveReport(
        gamma=gamma, tolerance=tolerance, l_max=l_max, points=tuple(points),
    )
    logger.info(
        "Ideal-curve comparison (gamma %.2f, Lmax %.2f): %s",
        gamma, l_max, "PASS" if report.passed else "FAIL",
    )
    return report
