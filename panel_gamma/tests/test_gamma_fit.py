"""Tests for the gamma fitting engine.

Covers power-law recovery, unfittable series, the weight buckets, the
dark-vs-bright sensitivity the weighting is there for, grid behaviour and
determinism.
"""

from __future__ import annotations

import logging

import numpy as np
import pytest

from panel_gamma.analysis.gamma_fit import (
    DEFAULT_WEIGHTS,
    FitSettings,
    WeightBucket,
    fit_all,
    fit_channel,
    weight_for,
)
from panel_gamma.models.samples import Channel, ChannelSeries, Sample


L_MAX = 250.0
SENSITIVITY_GRAYS = [0, 8, 16, 32, 64, 96, 128, 160, 192, 224, 255]


def power_law_samples(
    grays: list[int],
    gamma: float = 2.2,
    channel: Channel = Channel.GRAY,
    l_max: float = L_MAX,
    black: float = 0.0,
) -> list[Sample]:
    return [
        Sample(
            channel=channel,
            gray=g,
            luminance=black + l_max * (g / 255.0) ** gamma,
            x=0.31,
            y=0.33,
        )
        for g in grays
    ]


def series_of(samples: list[Sample], channel: Channel = Channel.GRAY) -> ChannelSeries:
    return ChannelSeries.from_samples(channel, samples)


def perturb(samples: list[Sample], gray: int, delta: float) -> list[Sample]:
    return [
        Sample(s.channel, s.gray, s.luminance + delta, s.x, s.y)
        if s.gray == gray else s
        for s in samples
    ]


# ---------------------------------------------------------------------------
# Power-law recovery
# ---------------------------------------------------------------------------


class TestPowerLawRecovery:
    @pytest.mark.parametrize("gamma", [1.8, 2.2, 2.4, 3.0])
    def test_exact_power_law_recovered(self, gamma: float) -> None:
        grays = list(range(0, 256, 16)) + [255]
        fit = fit_channel(series_of(power_law_samples(grays, gamma)))
        assert fit.fittable
        assert fit.actual_gamma == pytest.approx(gamma, abs=1e-6)
        assert fit.rms_error == pytest.approx(0.0, abs=1e-6)

    def test_black_offset_is_normalised_away(self) -> None:
        grays = [0, 32, 64, 128, 192, 255]
        fit = fit_channel(series_of(power_law_samples(grays, 2.2, black=0.4)))
        assert fit.actual_gamma == pytest.approx(2.2, abs=1e-6)
        assert fit.y_black == pytest.approx(0.4)
        assert fit.y_white == pytest.approx(L_MAX + 0.4)

    def test_five_level_sweep(self) -> None:
        fit = fit_channel(series_of(power_law_samples([0, 64, 128, 192, 255])))
        assert fit.actual_gamma == pytest.approx(2.2, abs=0.001)
        assert fit.point_count == 4

    def test_unsorted_input_is_ordered(self) -> None:
        grays = [255, 0, 128, 64, 192]
        series = series_of(power_law_samples(grays))
        assert series.grays == [0, 64, 128, 192, 255]
        assert fit_channel(series).actual_gamma == pytest.approx(2.2, abs=1e-6)

    def test_missing_anchor_levels_use_extremes(self) -> None:
        samples = power_law_samples([64, 128, 192, 224])
        fit = fit_channel(series_of(samples))
        assert fit.fittable
        assert fit.y_black == pytest.approx(min(s.luminance for s in samples))
        assert fit.y_white == pytest.approx(max(s.luminance for s in samples))


# ---------------------------------------------------------------------------
# Unfittable series
# ---------------------------------------------------------------------------


class TestUnfittable:
    def test_flat_channel(self) -> None:
        samples = [
            Sample(Channel.R, g, 100.0, 0.31, 0.33) for g in (0, 64, 128, 255)
        ]
        fit = fit_channel(series_of(samples, Channel.R))
        assert not fit.fittable
        assert fit.actual_gamma is None
        assert fit.rms_error is None
        assert "range" in fit.reason

    def test_inverted_channel(self) -> None:
        samples = [
            Sample(Channel.G, 0, 200.0, 0.31, 0.33),
            Sample(Channel.G, 128, 100.0, 0.31, 0.33),
            Sample(Channel.G, 255, 50.0, 0.31, 0.33),
        ]
        fit = fit_channel(series_of(samples, Channel.G))
        assert not fit.fittable

    def test_single_point_above_black(self) -> None:
        fit = fit_channel(series_of(power_law_samples([0, 128])))
        assert not fit.fittable
        assert fit.point_count == 1
        assert "2 points" in fit.reason

    def test_empty_series(self) -> None:
        fit = fit_channel(ChannelSeries(channel=Channel.B))
        assert not fit.fittable
        assert fit.point_count == 0
        assert fit.y_black is None and fit.y_white is None

    def test_unfittable_does_not_raise_in_fit_all(self) -> None:
        good = power_law_samples([0, 64, 128, 255], channel=Channel.R)
        flat = [Sample(Channel.G, g, 5.0, 0.3, 0.3) for g in (0, 128, 255)]
        fits = fit_all(good + flat)
        assert [f.channel for f in fits] == [Channel.R, Channel.G]
        assert fits[0].fittable
        assert not fits[1].fittable

    def test_nan_luminance_is_unfittable(self) -> None:
        samples = power_law_samples([0, 64, 128, 192, 255])
        # Sample rejects NaN, so corrupt one after construction
        object.__setattr__(samples[2], "luminance", float("nan"))
        fit = fit_channel(series_of(samples))
        assert not fit.fittable
        assert fit.actual_gamma is None
        assert fit.rms_error is None
        assert "non-finite" in fit.reason

    def test_infinite_white_is_unfittable(self) -> None:
        samples = power_law_samples([0, 64, 128, 192, 255])
        object.__setattr__(samples[-1], "luminance", float("inf"))
        fit = fit_channel(series_of(samples))
        assert not fit.fittable
        assert "range" in fit.reason


class TestSampleChecks:
    @pytest.mark.parametrize("field, value", [
        ("luminance", float("nan")),
        ("luminance", float("inf")),
        ("x", float("nan")),
        ("y", float("-inf")),
    ])
    def test_non_finite_rejected(self, field: str, value: float) -> None:
        values = {"luminance": 10.0, "x": 0.31, "y": 0.33, field: value}
        with pytest.raises(ValueError, match="finite"):
            Sample(Channel.GRAY, 128, **values)

    def test_negative_luminance_rejected(self) -> None:
        with pytest.raises(ValueError, match=">= 0"):
            Sample(Channel.GRAY, 0, -0.01, 0.31, 0.33)


# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------


class TestWeights:
    @pytest.mark.parametrize("gray, expected", [
        (0, 0.001), (15, 0.001),
        (16, 0.1), (47, 0.1),
        (48, 0.5), (127, 0.5),
        (128, 1.0), (255, 1.0),
    ])
    def test_bucket_edges(self, gray: int, expected: float) -> None:
        assert weight_for(gray) == expected

    def test_weights_non_decreasing(self) -> None:
        weights = [weight_for(g) for g in range(256)]
        assert all(a <= b for a, b in zip(weights, weights[1:]))

    def test_uncovered_gray_raises(self) -> None:
        with pytest.raises(ValueError, match="No weight bucket"):
            weight_for(200, (WeightBucket(max_gray=127, weight=1.0),))

    def test_dark_error_barely_moves_fit(self) -> None:
        base = power_law_samples(SENSITIVITY_GRAYS)
        ref = fit_channel(series_of(base)).actual_gamma
        dark = fit_channel(series_of(perturb(base, 8, 5.0))).actual_gamma
        assert abs(dark - ref) <= 0.001 + 1e-9

    def test_bright_error_moves_fit(self) -> None:
        base = power_law_samples(SENSITIVITY_GRAYS)
        ref = fit_channel(series_of(base)).actual_gamma
        dark = fit_channel(series_of(perturb(base, 8, 5.0))).actual_gamma
        bright = fit_channel(series_of(perturb(base, 192, 5.0))).actual_gamma
        # Extra light in the upper mid-tones lowers the exponent
        assert bright < ref
        assert abs(bright - ref) > 0.02
        assert abs(bright - ref) > abs(dark - ref)

    def test_custom_buckets_change_result(self) -> None:
        base = perturb(power_law_samples(SENSITIVITY_GRAYS), 32, 10.0)
        flat = FitSettings(weights=(WeightBucket(max_gray=255, weight=1.0),))
        weighted = fit_channel(series_of(base)).actual_gamma
        unweighted = fit_channel(series_of(base), flat).actual_gamma
        assert abs(unweighted - 2.2) > abs(weighted - 2.2)


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------


class TestGrid:
    def test_default_grid(self) -> None:
        gammas = FitSettings().candidates()
        assert len(gammas) == 2501
        assert gammas[0] == pytest.approx(1.0)
        assert gammas[-1] == pytest.approx(3.5)
        assert np.all(np.diff(gammas) > 0)

    def test_first_minimum_wins(self) -> None:
        # Every candidate gives zero cost when all usable points sit at V=1
        samples = [
            Sample(Channel.W, 0, 0.0, 0.31, 0.33),
            Sample(Channel.W, 255, 250.0, 0.31, 0.33),
            Sample(Channel.W, 255, 250.0, 0.31, 0.33),
        ]
        fit = fit_channel(series_of(samples, Channel.W))
        assert fit.actual_gamma == pytest.approx(1.0)

    def test_result_clamped_to_range(self) -> None:
        settings = FitSettings(gamma_min=1.0, gamma_max=2.0, step=0.001)
        fit = fit_channel(series_of(power_law_samples([0, 64, 128, 255], 2.6)), settings)
        assert fit.actual_gamma == pytest.approx(2.0)

    def test_invalid_settings(self) -> None:
        with pytest.raises(ValueError):
            FitSettings(step=0.0)
        with pytest.raises(ValueError):
            FitSettings(gamma_min=3.0, gamma_max=2.0)

    def test_defaults_match_bucket_table(self) -> None:
        assert [b.max_gray for b in DEFAULT_WEIGHTS] == [15, 47, 127, 255]


# ---------------------------------------------------------------------------
# Determinism and duplicates
# ---------------------------------------------------------------------------


class TestDeterminism:
    def test_fit_is_idempotent(self) -> None:
        samples = perturb(power_law_samples(SENSITIVITY_GRAYS), 96, 3.0)
        assert fit_all(samples) == fit_all(samples)

    def test_duplicate_levels_averaged_for_anchors(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        samples = power_law_samples([0, 64, 128, 255]) + [
            Sample(Channel.GRAY, 255, 260.0, 0.31, 0.33),
        ]
        with caplog.at_level(logging.WARNING):
            fit = fit_channel(series_of(samples))
        assert fit.y_white == pytest.approx((250.0 + 260.0) / 2)
        assert fit.point_count == 4
        assert "duplicate gray levels" in caplog.text
