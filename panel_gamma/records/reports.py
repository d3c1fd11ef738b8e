"""Result reports written at the end of a run.

    gamma_curve.csv       fit/validation summary block
    targetxy_result.csv   white-point check
    gamma_compare.csv     measured vs ideal curve (single mode, optional)

Unfittable channels and not-applicable white-point checks are still written,
with ``N/A`` (or blank) evidence, so a report row exists for every verdict.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from src.utils import fs

from panel_gamma.analysis.ideal_curve import IdealCurveReport
from panel_gamma.models.results import FitResult, GammaVerdict, WhitePointVerdict
from panel_gamma.records.tables import render_csv

logger = logging.getLogger(__name__)

SUMMARY_BEGIN = "--- Summary ---"
SUMMARY_END = "--- End Summary ---"
SUMMARY_COLUMNS = "Channel,ActualGamma,RmsError,Result,Y_black,Y_white"
WHITE_POINT_HEADER = [
    "SKU", "Gray", "Lv", "x", "y", "x_min", "x_max", "y_min", "y_max", "Result",
]
NOT_AVAILABLE = "N/A"


def _num(value: float | None, pattern: str) -> str:
    return NOT_AVAILABLE if value is None else format(value, pattern)


def format_fit_summary(
    fits: Sequence[FitResult],
    verdicts: Sequence[GammaVerdict],
    target_gamma: float,
    tolerance: float,
) -> str:
    """Render the summary block of ``gamma_curve.csv``."""
    by_channel = {v.channel: v for v in verdicts}
    lines = [
        SUMMARY_BEGIN,
        f"TargetGamma,{target_gamma:g}",
        f"Tolerance,{tolerance:g}",
        SUMMARY_COLUMNS,
    ]
    for fit in fits:
        verdict = by_channel.get(fit.channel)
        result = verdict.result if verdict is not None else "FAIL"
        lines.append(",".join((
            fit.channel.value,
            _num(fit.actual_gamma, ".3f"),
            _num(fit.rms_error, ".6f"),
            result,
            _num(fit.y_black, ".4f"),
            _num(fit.y_white, ".4f"),
        )))
    lines.append(SUMMARY_END)
    return "\n".join(lines) + "\n"


def write_fit_summary(
    path: str | Path,
    fits: Sequence[FitResult],
    verdicts: Sequence[GammaVerdict],
    target_gamma: float,
    tolerance: float,
) -> None:
    fs.atomic_write_text(
        path, format_fit_summary(fits, verdicts, target_gamma, tolerance),
    )
    logger.info("Saved gamma summary to %s", path)


def write_white_point_summary(path: str | Path, verdict: WhitePointVerdict) -> None:
    """Write ``targetxy_result.csv``; missing evidence is left blank."""
    sample = verdict.sample
    window = verdict.window

    def f4(value: float | None) -> str:
        return "" if value is None else f"{value:.4f}"

    row = [
        verdict.sku,
        "" if sample is None else sample.gray,
        f4(None if sample is None else sample.luminance),
        f4(None if sample is None else sample.x),
        f4(None if sample is None else sample.y),
        f4(None if window is None else window.x_min),
        f4(None if window is None else window.x_max),
        f4(None if window is None else window.y_min),
        f4(None if window is None else window.y_max),
        verdict.outcome.value,
    ]
    fs.atomic_write_text(path, render_csv(WHITE_POINT_HEADER, [row]))
    logger.info("Saved white-point result to %s", path)


def write_ideal_curve(path: str | Path, report: IdealCurveReport) -> None:
    """Write ``gamma_compare.csv`` for plotting measured vs ideal."""
    header = ["GrayLevel", "Measured", f"IdealGamma{report.gamma:g}"]
    rows = (
        (p.gray, format(p.measured, ".15g"), format(p.ideal, ".15g"))
        for p in report.points
    )
    fs.atomic_write_text(path, render_csv(header, rows))
    logger.info("Saved ideal-curve comparison to %s", path)
