"""Emulated panel + photometer for dry runs and tests.

Stands in for both device ports when no photometer is attached.  The
emulator remembers the last colour it was asked to show and reports a
reading consistent with it:

    Lv = black_level + l_max * sum_c share_c * (level_c / 255) ** gamma

with chromaticity jittered inside the nominal white window
``x ∈ [0.30, 0.32]``, ``y ∈ [0.32, 0.34]``, T ≈ 6500 K ± 200 and
duv ∈ [0, 0.01).  A seeded numpy ``Generator`` keeps runs reproducible.
"""

from __future__ import annotations

import logging

import numpy as np

from panel_gamma.hardware.ports import (
    MeasurementError,
    PhotometerPort,
    Reading,
    StimulusError,
    StimulusPort,
)

logger = logging.getLogger(__name__)

# Relative luminance contributed by each primary at full drive
DEFAULT_PRIMARY_SHARE = (0.2126, 0.7152, 0.0722)


class EmulatedPanel(StimulusPort, PhotometerPort):
    """Deterministic panel/photometer pair.

    Parameters
    ----------
    l_max : float
        White luminance at full drive (cd/m^2).
    gamma : float
        Native response exponent of the emulated panel.
    black_level : float
        Luminance floor added to every reading (cd/m^2).
    noise : float
        Relative 1-sigma luminance noise (0 disables it).
    seed : int | None
        Seed for the chromaticity / noise generator.
    primary_share : tuple[float, float, float]
        Share of ``l_max`` produced by R, G and B at full drive.
    fail_at : int | None
        Zero-based measurement index that raises ``MeasurementError``.
    fail_stimulus_at : int | None
        Zero-based ``set_color`` call index that raises ``StimulusError``.
    """

    def __init__(
        self,
        l_max: float = 250.0,
        gamma: float = 2.2,
        black_level: float = 0.0,
        noise: float = 0.0,
        seed: int | None = 0,
        primary_share: tuple[float, float, float] = DEFAULT_PRIMARY_SHARE,
        fail_at: int | None = None,
        fail_stimulus_at: int | None = None,
    ) -> None:
        if l_max <= 0:
            raise ValueError(f"l_max must be > 0, got {l_max}")
        self.l_max = l_max
        self.gamma = gamma
        self.black_level = black_level
        self.noise = noise
        self.primary_share = primary_share
        self.fail_at = fail_at
        self.fail_stimulus_at = fail_stimulus_at

        self._rng = np.random.default_rng(seed)
        self._rgb: tuple[int, int, int] = (0, 0, 0)
        self.measure_count = 0
        self.stimulus_count = 0
        self.history: list[tuple[int, int, int]] = []

    @property
    def displayed(self) -> tuple[int, int, int]:
        """Colour currently shown."""
        return self._rgb

    def set_color(self, red: int, green: int, blue: int) -> None:
        index = self.stimulus_count
        self.stimulus_count += 1
        if self.fail_stimulus_at is not None and index == self.fail_stimulus_at:
            raise StimulusError(f"Emulated stimulus failure at call {index}")
        self._rgb = (red, green, blue)
        self.history.append(self._rgb)

    def luminance_for(self, rgb: tuple[int, int, int]) -> float:
        """Noise-free luminance the emulator reports for *rgb*."""
        levels = np.asarray(rgb, dtype=np.float64) / 255.0
        share = np.asarray(self.primary_share, dtype=np.float64)
        if np.allclose(levels, levels[0]):
            # Neutral drive always reaches l_max at full level
            share = share / share.sum()
        return float(
            self.black_level
            + self.l_max * np.sum(share * np.power(levels, self.gamma))
        )

    def measure(self) -> Reading:
        index = self.measure_count
        self.measure_count += 1
        if self.fail_at is not None and index == self.fail_at:
            raise MeasurementError(f"Emulated measurement failure at {index}")

        lv = self.luminance_for(self._rgb)
        if self.noise > 0:
            lv = max(0.0, lv * (1.0 + self._rng.normal(0.0, self.noise)))

        reading = Reading(
            luminance=lv,
            x=0.30 + self._rng.random() * 0.02,
            y=0.32 + self._rng.random() * 0.02,
            cct=float(6500 + self._rng.integers(-200, 200)),
            duv=self._rng.random() * 0.01,
        )
        logger.debug("Emulated reading for %s: Lv=%.3f", self._rgb, lv)
        return reading
