"""Gray-level sweep acquisition."""

from panel_gamma.acquisition.sequencer import (
    AcquisitionCancelled,
    AcquisitionFailure,
    AcquisitionResult,
    Sequencer,
    SweepMode,
    format_brightness,
)

__all__ = [
    "AcquisitionCancelled",
    "AcquisitionFailure",
    "AcquisitionResult",
    "Sequencer",
    "SweepMode",
    "format_brightness",
]
