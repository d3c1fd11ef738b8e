"""Measurement and verdict data containers."""

from panel_gamma.models.results import (
    FitResult,
    GammaVerdict,
    RunVerdict,
    WhitePointOutcome,
    WhitePointVerdict,
    WhitePointWindow,
)
from panel_gamma.models.samples import (
    MIN_FIT_POINTS,
    MULTI_CHANNEL_ORDER,
    Channel,
    ChannelSeries,
    GrayLevel,
    MalformedInput,
    Sample,
    group_by_channel,
    stimulus_rgb,
    validate_gray_plan,
)

__all__ = [
    "MIN_FIT_POINTS",
    "MULTI_CHANNEL_ORDER",
    "Channel",
    "ChannelSeries",
    "FitResult",
    "GammaVerdict",
    "GrayLevel",
    "MalformedInput",
    "RunVerdict",
    "Sample",
    "WhitePointOutcome",
    "WhitePointVerdict",
    "WhitePointWindow",
    "group_by_channel",
    "stimulus_rgb",
    "validate_gray_plan",
]
