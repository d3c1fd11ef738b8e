"""Measurement data containers.

A run produces an ordered sequence of :class:`Sample` objects; the fitting
engine consumes them grouped into one :class:`ChannelSeries` per channel.
Everything here is immutable once constructed.

Gray levels are 8-bit stimulus values, luminance is in cd/m^2 and
chromaticity is CIE 1931 ``(x, y)``.
"""

from __future__ import annotations

import enum
import logging
import math
from collections import Counter
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

GRAY_MIN = 0
GRAY_MAX = 255

# A power law needs at least two levels above black
MIN_FIT_POINTS = 2


class MalformedInput(ValueError):
    """Input is below the minimum a run needs; the run must abort."""

    pass


class Channel(str, enum.Enum):
    """Stimulus axis under test."""

    GRAY = "GRAY"
    R = "R"
    G = "G"
    B = "B"
    W = "W"

    @classmethod
    def parse(cls, value: str | Channel) -> Channel:
        """Case-insensitive lookup; raises ``ValueError`` on unknown names."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper()
        try:
            return cls(key)
        except ValueError:
            raise ValueError(
                f"Unknown channel {value!r}. "
                f"Expected one of {[c.value for c in cls]}"
            ) from None


# Fixed visitation order for multi-channel sweeps
MULTI_CHANNEL_ORDER: tuple[Channel, ...] = (
    Channel.R, Channel.G, Channel.B, Channel.W,
)


def stimulus_rgb(channel: Channel, gray: int) -> tuple[int, int, int]:
    """Return the ``(R, G, B)`` drive levels for *channel* at *gray*.

    ``GRAY`` and ``W`` replicate the level on all components; a primary
    drives only its own component.
    """
    if channel in (Channel.GRAY, Channel.W):
        return (gray, gray, gray)
    if channel is Channel.R:
        return (gray, 0, 0)
    if channel is Channel.G:
        return (0, gray, 0)
    return (0, 0, gray)


@dataclass(frozen=True, slots=True)
class Sample:
    """One photometer observation.

    Parameters
    ----------
    channel : Channel
        Stimulus axis that was driven.
    gray : int
        Stimulus level, 0-255.
    luminance : float
        Lv in cd/m^2, ``>= 0``.
    x, y : float
        CIE 1931 chromaticity.
    cct : float | None
        Correlated colour temperature (K), when the photometer reports it.
    duv : float | None
        Distance from the Planckian locus.
    """

    channel: Channel
    gray: int
    luminance: float
    x: float
    y: float
    cct: float | None = None
    duv: float | None = None

    def __post_init__(self) -> None:
        if not GRAY_MIN <= self.gray <= GRAY_MAX:
            raise ValueError(
                f"gray must be in [{GRAY_MIN}, {GRAY_MAX}], got {self.gray}"
            )
        for name in ("luminance", "x", "y"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite, got {getattr(self, name)}")
        if self.luminance < 0:
            raise ValueError(
                f"luminance must be >= 0, got {self.luminance}"
            )


@dataclass(frozen=True, slots=True)
class GrayLevel:
    """Entry of the operator's gray-level plan.

    ``brightness`` is kept verbatim (e.g. ``"123.45f"``) because the table
    is round-tripped into panel bring-up sources.
    """

    gray: int
    brightness: str = ""


def validate_gray_plan(plan: list[GrayLevel] | tuple[GrayLevel, ...]) -> None:
    """Reject a plan that cannot produce a fittable sweep.

    Raises
    ------
    MalformedInput
        If the plan is empty, has a level outside [0, 255], or has fewer
        than ``MIN_FIT_POINTS`` levels above 0.
    """
    if not plan:
        raise MalformedInput("Gray-level plan is empty")
    bad = [g.gray for g in plan if not GRAY_MIN <= g.gray <= GRAY_MAX]
    if bad:
        raise MalformedInput(
            f"Gray levels must be in [{GRAY_MIN}, {GRAY_MAX}], got {bad}"
        )
    usable = sum(1 for g in plan if g.gray > GRAY_MIN)
    if usable < MIN_FIT_POINTS:
        raise MalformedInput(
            f"Gray-level plan needs >= {MIN_FIT_POINTS} levels above 0, "
            f"got {usable}"
        )


@dataclass(frozen=True)
class ChannelSeries:
    """Samples of one channel, ordered by gray level.

    Use :meth:`from_samples` to build one; ordering is stable so duplicate
    levels keep their acquisition order.
    """

    channel: Channel
    samples: tuple[Sample, ...] = field(default_factory=tuple)

    @classmethod
    def from_samples(
        cls, channel: Channel, samples: list[Sample] | tuple[Sample, ...],
    ) -> ChannelSeries:
        picked = [s for s in samples if s.channel is channel]
        picked.sort(key=lambda s: s.gray)
        series = cls(channel=channel, samples=tuple(picked))
        dupes = series.duplicate_grays
        if dupes:
            logger.warning(
                "Channel %s has duplicate gray levels %s; black/white "
                "luminance uses their mean",
                channel.value,
                dupes,
            )
        return series

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def grays(self) -> list[int]:
        return [s.gray for s in self.samples]

    @property
    def luminances(self) -> list[float]:
        return [s.luminance for s in self.samples]

    @property
    def duplicate_grays(self) -> list[int]:
        counts = Counter(self.grays)
        return sorted(g for g, n in counts.items() if n > 1)

    def _mean_at(self, gray: int) -> float | None:
        values = [s.luminance for s in self.samples if s.gray == gray]
        if not values:
            return None
        return sum(values) / len(values)

    @property
    def y_black(self) -> float | None:
        """Luminance at gray 0, else the series minimum."""
        if not self.samples:
            return None
        at_zero = self._mean_at(GRAY_MIN)
        return at_zero if at_zero is not None else min(self.luminances)

    @property
    def y_white(self) -> float | None:
        """Luminance at gray 255, else the series maximum."""
        if not self.samples:
            return None
        at_full = self._mean_at(GRAY_MAX)
        return at_full if at_full is not None else max(self.luminances)


def group_by_channel(samples: list[Sample] | tuple[Sample, ...]) -> list[ChannelSeries]:
    """Split *samples* into per-channel series, in first-seen channel order."""
    order: list[Channel] = []
    for s in samples:
        if s.channel not in order:
            order.append(s.channel)
    return [ChannelSeries.from_samples(ch, samples) for ch in order]
