"""End-to-end calibration routine and its console summary."""

from panel_gamma.calibration.routines import (
    CalibrationOutcome,
    format_calibration_summary,
    run_gamma_calibration,
)

__all__ = [
    "CalibrationOutcome",
    "format_calibration_summary",
    "run_gamma_calibration",
]
