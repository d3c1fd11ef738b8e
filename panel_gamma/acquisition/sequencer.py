"""Acquisition sequencer: drive a gray-level sweep and capture samples.

Each cycle is strictly ordered:

    1. set the stimulus colour
    2. wait the fixed settle delay (ordering barrier, not a rate limit)
    3. take one photometer reading
    4. append the Sample

There is no overlap between cycles and no stability check on the reading;
the settle delay is fixed by configuration.

Single-channel mode drives ``R=G=B=gray`` and records the observed
luminance back into the gray-level plan.  Multi-channel mode sweeps the
whole plan once per channel in the fixed order R, G, B, W.

A collaborator failure aborts the run (``AcquisitionFailure``) unless
``max_retries`` is raised above its default of 0.  Setting the optional
cancel event stops the sweep at the next cycle boundary or during the
settle delay; the interrupted cycle's partial sample is discarded.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Sequence

from panel_gamma.hardware.ports import (
    HardwareError,
    MeasurementError,
    PhotometerPort,
    Reading,
    StimulusPort,
)
from panel_gamma.models.samples import (
    MULTI_CHANNEL_ORDER,
    Channel,
    GrayLevel,
    Sample,
    stimulus_rgb,
    validate_gray_plan,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class AcquisitionFailure(Exception):
    """A stimulus or measurement failure aborted the sweep.

    Attributes
    ----------
    index : int
        Position in the visitation order of the failed cycle.
    channel : Channel
        Channel being driven.
    gray : int
        Gray level being driven.
    samples : tuple[Sample, ...]
        Samples completed before the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        index: int,
        channel: Channel,
        gray: int,
        samples: tuple[Sample, ...] = (),
    ) -> None:
        super().__init__(message)
        self.index = index
        self.channel = channel
        self.gray = gray
        self.samples = samples


class AcquisitionCancelled(Exception):
    """The sweep was cancelled; ``samples`` holds only complete cycles."""

    def __init__(self, message: str, samples: tuple[Sample, ...] = ()) -> None:
        super().__init__(message)
        self.samples = samples


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


class SweepMode(str, enum.Enum):
    """``single``: composite gray only.  ``multi``: R, G, B, W in turn."""

    SINGLE = "single"
    MULTI = "multi"


def _sample_from_reading(channel: Channel, gray: int, reading: Reading) -> Sample:
    """Build a Sample; an unusable reading counts as a measurement failure."""
    try:
        return Sample(
            channel=channel,
            gray=gray,
            luminance=reading.luminance,
            x=reading.x,
            y=reading.y,
            cct=reading.cct,
            duv=reading.duv,
        )
    except ValueError as exc:
        raise MeasurementError(f"Invalid reading: {exc}") from exc


def format_brightness(luminance: float) -> str:
    """Format a luminance the way the operator's gray-level table stores it."""
    return f"{luminance:.2f}f"


@dataclass(frozen=True)
class AcquisitionResult:
    """Output of one sweep.

    Parameters
    ----------
    mode : SweepMode
        Sweep mode that produced the samples.
    samples : tuple[Sample, ...]
        One sample per visited (channel, gray), in visitation order.
    gray_plan : tuple[GrayLevel, ...] | None
        Single mode only: the input plan with each entry's brightness
        replaced by the luminance observed for it.
    """

    mode: SweepMode
    samples: tuple[Sample, ...]
    gray_plan: tuple[GrayLevel, ...] | None = None


# ---------------------------------------------------------------------------
# Sequencer
# ---------------------------------------------------------------------------


class Sequencer:
    """Drives one stimulus/photometer pair through a sweep.

    Parameters
    ----------
    stimulus : StimulusPort
        Display driver (already opened by the caller).
    photometer : PhotometerPort
        Measuring instrument (already opened by the caller).
    settle_delay_s : float
        Fixed wait between a stimulus change and its capture.
    max_retries : int
        Extra attempts per cycle after a collaborator failure (0 = abort
        on the first failure).
    retry_backoff_s : float
        Base wait before a retry; doubles with each further attempt.
    cancel_event : threading.Event | None
        When set, the sweep stops with ``AcquisitionCancelled``.
    """

    def __init__(
        self,
        stimulus: StimulusPort,
        photometer: PhotometerPort,
        settle_delay_s: float = 0.1,
        max_retries: int = 0,
        retry_backoff_s: float = 0.5,
        cancel_event: threading.Event | None = None,
    ) -> None:
        if settle_delay_s < 0:
            raise ValueError(f"settle_delay_s must be >= 0, got {settle_delay_s}")
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self.stimulus = stimulus
        self.photometer = photometer
        self.settle_delay_s = settle_delay_s
        self.max_retries = max_retries
        self.retry_backoff_s = retry_backoff_s
        self.cancel_event = cancel_event

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    @staticmethod
    def visits(
        plan: Sequence[GrayLevel], mode: SweepMode,
    ) -> list[tuple[Channel, int]]:
        """Return the (channel, gray) pairs in the order they are visited."""
        if mode is SweepMode.SINGLE:
            return [(Channel.GRAY, g.gray) for g in plan]
        return [(ch, g.gray) for ch in MULTI_CHANNEL_ORDER for g in plan]

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def run(
        self,
        plan: Sequence[GrayLevel | int],
        mode: SweepMode = SweepMode.SINGLE,
    ) -> AcquisitionResult:
        """Run the sweep.

        Parameters
        ----------
        plan : Sequence[GrayLevel | int]
            Gray levels in operator order (unsorted and non-contiguous
            plans are fine).
        mode : SweepMode
            Single- or multi-channel sweep.

        Returns
        -------
        AcquisitionResult

        Raises
        ------
        MalformedInput
            If the plan cannot produce a fittable sweep.
        AcquisitionFailure
            If a collaborator fails and retries are exhausted.
        AcquisitionCancelled
            If the cancel event is set.
        """
        mode = SweepMode(mode)
        levels = tuple(
            p if isinstance(p, GrayLevel) else GrayLevel(gray=int(p))
            for p in plan
        )
        validate_gray_plan(levels)

        visits = self.visits(levels, mode)
        logger.info(
            "Starting %s sweep: %d levels, %d cycles, settle %.0f ms",
            mode.value,
            len(levels),
            len(visits),
            self.settle_delay_s * 1000.0,
        )

        samples: list[Sample] = []
        for index, (channel, gray) in enumerate(visits):
            self._check_cancelled(samples)
            sample = self._acquire_cycle(index, channel, gray, samples)
            samples.append(sample)
            logger.debug(
                "[%d] %s gray=%d Lv=%.2f x=%.4f y=%.4f",
                index, channel.value, gray, sample.luminance, sample.x, sample.y,
            )

        updated_plan = None
        if mode is SweepMode.SINGLE:
            updated_plan = tuple(
                GrayLevel(gray=lvl.gray, brightness=format_brightness(s.luminance))
                for lvl, s in zip(levels, samples)
            )

        logger.info("Sweep complete: %d samples", len(samples))
        return AcquisitionResult(
            mode=mode, samples=tuple(samples), gray_plan=updated_plan,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _acquire_cycle(
        self,
        index: int,
        channel: Channel,
        gray: int,
        done: list[Sample],
    ) -> Sample:
        """One set → settle → measure cycle, with optional retries."""
        red, green, blue = stimulus_rgb(channel, gray)
        last_exc: HardwareError | None = None

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                backoff = self.retry_backoff_s * (2 ** (attempt - 1))
                logger.warning(
                    "Retrying cycle %d (%s gray=%d), attempt %d/%d in %.2f s",
                    index, channel.value, gray,
                    attempt + 1, self.max_retries + 1, backoff,
                )
                self._wait(backoff, done)
            try:
                self.stimulus.set_color(red, green, blue)
                self._wait(self.settle_delay_s, done)
                reading = self.photometer.measure()
                sample = _sample_from_reading(channel, gray, reading)
            except HardwareError as exc:
                logger.error(
                    "Cycle %d (%s gray=%d) failed: %s",
                    index, channel.value, gray, exc,
                )
                last_exc = exc
                continue
            return sample

        raise AcquisitionFailure(
            f"Acquisition failed at cycle {index} "
            f"({channel.value} gray={gray}): {last_exc}",
            index=index,
            channel=channel,
            gray=gray,
            samples=tuple(done),
        ) from last_exc

    def _check_cancelled(self, done: list[Sample]) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            logger.warning("Sweep cancelled after %d samples", len(done))
            raise AcquisitionCancelled(
                f"Sweep cancelled after {len(done)} samples",
                samples=tuple(done),
            )

    def _wait(self, seconds: float, done: list[Sample]) -> None:
        """Sleep *seconds*; wake early and raise if the sweep is cancelled."""
        if self.cancel_event is None:
            if seconds > 0:
                time.sleep(seconds)
            return
        if self.cancel_event.wait(seconds):
            self._check_cancelled(done)
