"""Validation engine: turn fits and white samples into verdicts.

* Gamma: a channel passes iff it was fittable and
  ``|actual - target| <= tolerance``.
* White point: the brightest White-channel sample must lie inside the
  SKU's inclusive xy window.  A missing SKU or an absent White channel is a
  failure with its own outcome, never a pass.
* Run: AND of every channel verdict and the white-point verdict, if one
  was requested.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from panel_gamma.analysis.gamma_fit import FitSettings, fit_all
from panel_gamma.models.results import (
    FitResult,
    GammaVerdict,
    RunVerdict,
    WhitePointOutcome,
    WhitePointVerdict,
    WhitePointWindow,
)
from panel_gamma.models.samples import Channel, MalformedInput, Sample

logger = logging.getLogger(__name__)

# Grid exponents carry float rounding (e.g. 2.3000000000000003)
_TOLERANCE_EPS = 1e-9


# ---------------------------------------------------------------------------
# Gamma
# ---------------------------------------------------------------------------


def judge_gamma(
    fit: FitResult, target_gamma: float, tolerance: float,
) -> GammaVerdict:
    """Judge one fit against the target gamma."""
    if not fit.fittable:
        return GammaVerdict(
            channel=fit.channel,
            passed=False,
            actual_gamma=None,
            rms_error=None,
            target_gamma=target_gamma,
            tolerance=tolerance,
            reason=f"unfittable: {fit.reason}",
        )

    deviation = abs(fit.actual_gamma - target_gamma)
    passed = deviation <= tolerance + _TOLERANCE_EPS
    reason = "" if passed else (
        f"|{fit.actual_gamma:.3f} - {target_gamma:.3f}| = {deviation:.3f} "
        f"> {tolerance:.3f}"
    )
    return GammaVerdict(
        channel=fit.channel,
        passed=passed,
        actual_gamma=fit.actual_gamma,
        rms_error=fit.rms_error,
        target_gamma=target_gamma,
        tolerance=tolerance,
        reason=reason,
    )


# ---------------------------------------------------------------------------
# White point
# ---------------------------------------------------------------------------


def _sku_key(sku: str) -> str:
    return sku.strip().casefold()


class WhitePointSpecTable:
    """Per-SKU white-point windows.

    Lookup is exact after trimming whitespace and ignoring case.  When the
    same SKU is listed twice the first entry is kept.
    """

    def __init__(self, windows: Iterable[WhitePointWindow] = ()) -> None:
        self._windows: dict[str, WhitePointWindow] = {}
        for window in windows:
            key = _sku_key(window.sku)
            if key in self._windows:
                logger.warning(
                    "Duplicate white-point entry for SKU %r ignored", window.sku,
                )
                continue
            self._windows[key] = window

    def __len__(self) -> int:
        return len(self._windows)

    def lookup(self, sku: str) -> WhitePointWindow | None:
        return self._windows.get(_sku_key(sku))


def brightest_white(samples: Sequence[Sample]) -> Sample | None:
    """Return the White-channel sample with the highest luminance.

    The first acquired sample wins when several share the maximum.
    """
    best: Sample | None = None
    for sample in samples:
        if sample.channel is not Channel.W:
            continue
        if best is None or sample.luminance > best.luminance:
            best = sample
    return best


def check_white_point(
    samples: Sequence[Sample], table: WhitePointSpecTable, sku: str,
) -> WhitePointVerdict:
    """Check the brightest White sample against *sku*'s window."""
    sample = brightest_white(samples)
    if sample is None:
        logger.warning("White-point check: no W samples acquired")
        return WhitePointVerdict(
            sku=sku, outcome=WhitePointOutcome.NO_WHITE_SAMPLES,
        )

    window = table.lookup(sku)
    if window is None:
        logger.warning("White-point check: SKU %r not in spec table", sku)
        return WhitePointVerdict(
            sku=sku, outcome=WhitePointOutcome.SKU_NOT_FOUND, sample=sample,
        )

    inside = window.contains(sample.x, sample.y)
    outcome = WhitePointOutcome.PASS if inside else WhitePointOutcome.FAIL
    logger.info(
        "White point %s: gray=%d x=%.4f y=%.4f window x[%.4f, %.4f] "
        "y[%.4f, %.4f]",
        outcome.value, sample.gray, sample.x, sample.y,
        window.x_min, window.x_max, window.y_min, window.y_max,
    )
    return WhitePointVerdict(
        sku=sku, outcome=outcome, sample=sample, window=window,
    )


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationReport:
    """Fits plus the verdict derived from them."""

    fits: tuple[FitResult, ...]
    verdict: RunVerdict

    @property
    def passed(self) -> bool:
        return self.verdict.passed


def validate_run(
    samples: Sequence[Sample],
    target_gamma: float,
    tolerance: float,
    *,
    settings: FitSettings | None = None,
    spec_table: WhitePointSpecTable | None = None,
    sku: str | None = None,
) -> ValidationReport:
    """Fit every channel in *samples* and judge the run.

    Parameters
    ----------
    samples : Sequence[Sample]
        Samples of one run, any channel mix.
    target_gamma : float
        Nominal exponent.
    tolerance : float
        Allowed ``|actual - target|``.
    settings : FitSettings | None
        Fit grid and weights.
    spec_table : WhitePointSpecTable | None
        When given, the white-point check is run against *sku*.
    sku : str | None
        Panel SKU for the white-point lookup.

    Returns
    -------
    ValidationReport

    Raises
    ------
    MalformedInput
        If *samples* is empty.
    """
    if not samples:
        raise MalformedInput("Cannot validate an empty sample set")
    if tolerance < 0:
        raise ValueError(f"tolerance must be >= 0, got {tolerance}")

    fits = fit_all(samples, settings)
    verdicts = tuple(judge_gamma(f, target_gamma, tolerance) for f in fits)
    for v in verdicts:
        logger.info(
            "Channel %s: gamma=%s rms=%s -> %s",
            v.channel.value,
            "N/A" if v.actual_gamma is None else f"{v.actual_gamma:.3f}",
            "N/A" if v.rms_error is None else f"{v.rms_error:.4f}",
            v.result,
        )

    white = None
    if spec_table is not None:
        white = check_white_point(samples, spec_table, sku or "")

    verdict = RunVerdict(channels=verdicts, white_point=white)
    logger.info("Run verdict: %s", "PASS" if verdict.passed else "FAIL")
    return ValidationReport(fits=tuple(fits), verdict=verdict)
