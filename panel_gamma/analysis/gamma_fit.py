"""Gamma fitting engine.

Fits the normalised luminance response of each channel to ``L = V^gamma``
by exhaustive search over a fixed gamma grid.

For a channel series with anchors ``Yb`` (black) and ``Yw`` (white) and
every point with ``gray > 0``::

    V = gray / 255
    L = (Lv - Yb) / (Yw - Yb)
    gamma* = argmin_g  sum_i (w_i * (V_i^g - L_i))^2
    rms    = sqrt(mean_i (V_i^gamma* - L_i)^2)          # unweighted

Weights grow with gray level so that the noisy, nearly-black end of the
curve barely moves the fit.  The search is exhaustive, so the result does
not depend on a starting point, and the first minimum wins on ties.

Everything here is pure: no I/O, no exceptions for unfittable data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from panel_gamma.models.results import FitResult
from panel_gamma.models.samples import (
    GRAY_MAX,
    MIN_FIT_POINTS,
    ChannelSeries,
    Sample,
    group_by_channel,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Weighting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WeightBucket:
    """Weight applied to every gray level ``<= max_gray`` not already
    covered by a lower bucket."""

    max_gray: int
    weight: float


DEFAULT_WEIGHTS: tuple[WeightBucket, ...] = (
    WeightBucket(max_gray=15, weight=0.001),
    WeightBucket(max_gray=47, weight=0.1),
    WeightBucket(max_gray=127, weight=0.5),
    WeightBucket(max_gray=255, weight=1.0),
)


def weight_for(
    gray: int, buckets: Sequence[WeightBucket] = DEFAULT_WEIGHTS,
) -> float:
    """Return the fit weight of *gray*.

    Raises
    ------
    ValueError
        If no bucket covers *gray*.
    """
    for bucket in buckets:
        if gray <= bucket.max_gray:
            return bucket.weight
    raise ValueError(f"No weight bucket covers gray level {gray}")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FitSettings:
    """Search grid and weighting for the fit.

    The defaults give 2501 candidates ``1.000, 1.001, ..., 3.500``.
    """

    gamma_min: float = 1.0
    gamma_max: float = 3.5
    step: float = 0.001
    weights: tuple[WeightBucket, ...] = field(default=DEFAULT_WEIGHTS)

    def __post_init__(self) -> None:
        if self.step <= 0:
            raise ValueError(f"step must be > 0, got {self.step}")
        if self.gamma_min >= self.gamma_max:
            raise ValueError(
                f"gamma_min ({self.gamma_min}) must be < gamma_max "
                f"({self.gamma_max})"
            )
        if not self.weights:
            raise ValueError("At least one weight bucket is required")

    def candidates(self) -> np.ndarray:
        """Candidate exponents in ascending order, both ends included."""
        count = int(round((self.gamma_max - self.gamma_min) / self.step))
        return np.linspace(self.gamma_min, self.gamma_max, count + 1)


# ---------------------------------------------------------------------------
# Fitting
# ---------------------------------------------------------------------------


def _unfittable(series: ChannelSeries, points: int, reason: str) -> FitResult:
    logger.warning("Channel %s unfittable: %s", series.channel.value, reason)
    return FitResult(
        channel=series.channel,
        actual_gamma=None,
        rms_error=None,
        y_black=series.y_black,
        y_white=series.y_white,
        point_count=points,
        reason=reason,
    )


def fit_channel(
    series: ChannelSeries, settings: FitSettings | None = None,
) -> FitResult:
    """Fit one channel series.

    Parameters
    ----------
    series : ChannelSeries
        Samples of a single channel.
    settings : FitSettings | None
        Grid and weights; defaults when None.

    Returns
    -------
    FitResult
        ``actual_gamma`` and ``rms_error`` are None when the series is
        unfittable; ``reason`` then says why.
    """
    settings = settings or FitSettings()

    usable = [s for s in series.samples if s.gray > 0]
    if len(usable) < MIN_FIT_POINTS:
        return _unfittable(
            series,
            len(usable),
            f"needs >= {MIN_FIT_POINTS} points above gray 0, got {len(usable)}",
        )

    y_black = series.y_black
    y_white = series.y_white
    span = y_white - y_black
    if not np.isfinite(span) or span <= 0:
        return _unfittable(
            series,
            len(usable),
            f"no luminance range (Y_white - Y_black = {span:.6g})",
        )

    v = np.array([s.gray for s in usable], dtype=np.float64) / GRAY_MAX
    lum = (np.array([s.luminance for s in usable], dtype=np.float64) - y_black) / span
    w = np.array([weight_for(s.gray, settings.weights) for s in usable])

    gammas = settings.candidates()
    # (candidates, points)
    pred = np.power(v[np.newaxis, :], gammas[:, np.newaxis])
    cost = np.sum((w * (pred - lum)) ** 2, axis=1)
    if not np.all(np.isfinite(cost)):
        return _unfittable(series, len(usable), "non-finite luminance in series")
    # argmin returns the first index on ties
    best = int(np.argmin(cost))
    gamma = float(gammas[best])

    rms = float(np.sqrt(np.mean((pred[best] - lum) ** 2)))

    logger.debug(
        "Channel %s: gamma=%.3f rms=%.4f (%d points)",
        series.channel.value, gamma, rms, len(usable),
    )
    return FitResult(
        channel=series.channel,
        actual_gamma=gamma,
        rms_error=rms,
        y_black=y_black,
        y_white=y_white,
        point_count=len(usable),
    )


def fit_all(
    samples: Sequence[Sample], settings: FitSettings | None = None,
) -> list[FitResult]:
    """Group *samples* by channel and fit each group.

    Channels appear in the order they were first acquired.
    """
    return [fit_channel(series, settings) for series in group_by_channel(samples)]
