"""CSV records read and written by a calibration run."""

from panel_gamma.records.registers import (
    read_gamma_taps,
    read_vcom,
    write_register_values,
)
from panel_gamma.records.reports import (
    format_fit_summary,
    write_fit_summary,
    write_ideal_curve,
    write_white_point_summary,
)
from panel_gamma.records.tables import (
    read_gray_plan,
    read_samples,
    read_spec_table,
    write_gray_plan,
    write_multi_samples,
    write_single_samples,
)

__all__ = [
    "format_fit_summary",
    "read_gamma_taps",
    "read_gray_plan",
    "read_samples",
    "read_spec_table",
    "read_vcom",
    "write_fit_summary",
    "write_gray_plan",
    "write_ideal_curve",
    "write_multi_samples",
    "write_register_values",
    "write_single_samples",
    "write_white_point_summary",
]
