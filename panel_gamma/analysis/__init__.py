"""Gamma fitting and validation engines."""

from panel_gamma.analysis.gamma_fit import (
    DEFAULT_WEIGHTS,
    FitSettings,
    WeightBucket,
    fit_all,
    fit_channel,
    weight_for,
)
from panel_gamma.analysis.ideal_curve import IdealCurveReport, compare_to_ideal_curve
from panel_gamma.analysis.validation import (
    ValidationReport,
    WhitePointSpecTable,
    check_white_point,
    judge_gamma,
    validate_run,
)

__all__ = [
    "DEFAULT_WEIGHTS",
    "FitSettings",
    "IdealCurveReport",
    "ValidationReport",
    "WeightBucket",
    "WhitePointSpecTable",
    "check_white_point",
    "compare_to_ideal_curve",
    "fit_all",
    "fit_channel",
    "judge_gamma",
    "validate_run",
    "weight_for",
]
