"""Tests for the validation engine: gamma verdicts, white point, run verdict."""

from __future__ import annotations

import pytest

from panel_gamma.analysis.validation import (
    WhitePointSpecTable,
    brightest_white,
    check_white_point,
    judge_gamma,
    validate_run,
)
from panel_gamma.models.results import (
    FitResult,
    RunVerdict,
    WhitePointOutcome,
    WhitePointWindow,
)
from panel_gamma.models.samples import Channel, MalformedInput, Sample


WINDOW = WhitePointWindow(sku="P102", x_min=0.30, x_max=0.32, y_min=0.32, y_max=0.34)


def fit(gamma: float | None, channel: Channel = Channel.GRAY) -> FitResult:
    return FitResult(
        channel=channel,
        actual_gamma=gamma,
        rms_error=None if gamma is None else 0.01,
        y_black=0.0,
        y_white=250.0,
        point_count=4,
        reason="" if gamma is not None else "no luminance range",
    )


def white(gray: int, lv: float, x: float = 0.31, y: float = 0.33) -> Sample:
    return Sample(channel=Channel.W, gray=gray, luminance=lv, x=x, y=y)


def sweep(channel: Channel, gamma: float = 2.2) -> list[Sample]:
    return [
        Sample(channel, g, 250.0 * (g / 255.0) ** gamma, 0.31, 0.33)
        for g in (0, 64, 128, 192, 255)
    ]


@pytest.fixture
def table() -> WhitePointSpecTable:
    return WhitePointSpecTable([WINDOW])


# ---------------------------------------------------------------------------
# Gamma verdict
# ---------------------------------------------------------------------------


class TestJudgeGamma:
    def test_within_tolerance(self) -> None:
        v = judge_gamma(fit(2.25), target_gamma=2.2, tolerance=0.1)
        assert v.passed
        assert v.result == "PASS"
        assert v.deviation == pytest.approx(0.05)

    def test_outside_tolerance(self) -> None:
        v = judge_gamma(fit(2.35), target_gamma=2.2, tolerance=0.1)
        assert not v.passed
        assert v.actual_gamma == pytest.approx(2.35)
        assert "0.150" in v.reason

    def test_boundary_is_inclusive(self) -> None:
        # 2.3 on the fit grid is not exactly representable
        v = judge_gamma(fit(1.0 + 1300 * 0.001), target_gamma=2.2, tolerance=0.1)
        assert v.passed

    def test_unfittable_always_fails(self) -> None:
        v = judge_gamma(fit(None), target_gamma=2.2, tolerance=10.0)
        assert not v.passed
        assert v.deviation is None
        assert "unfittable" in v.reason

    def test_verdict_carries_evidence(self) -> None:
        v = judge_gamma(fit(2.1), target_gamma=2.2, tolerance=0.3)
        assert v.target_gamma == 2.2
        assert v.tolerance == 0.3
        assert v.rms_error == pytest.approx(0.01)


# ---------------------------------------------------------------------------
# Spec table
# ---------------------------------------------------------------------------


class TestSpecTable:
    def test_lookup_trims_and_ignores_case(self, table: WhitePointSpecTable) -> None:
        assert table.lookup("  p102 ") == WINDOW
        assert table.lookup("P102") is not None

    def test_lookup_is_exact(self, table: WhitePointSpecTable) -> None:
        assert table.lookup("P10") is None
        assert table.lookup("P1021") is None

    def test_first_duplicate_kept(self) -> None:
        other = WhitePointWindow("p102", 0.0, 1.0, 0.0, 1.0)
        table = WhitePointSpecTable([WINDOW, other])
        assert len(table) == 1
        assert table.lookup("P102") is WINDOW


# ---------------------------------------------------------------------------
# White point
# ---------------------------------------------------------------------------


class TestWhitePoint:
    def test_brightest_white_sample_used(self, table: WhitePointSpecTable) -> None:
        samples = [
            white(128, 50.0, x=0.40),
            white(255, 250.0, x=0.31),
            Sample(Channel.R, 255, 300.0, 0.64, 0.33),
        ]
        verdict = check_white_point(samples, table, "P102")
        assert verdict.outcome is WhitePointOutcome.PASS
        assert verdict.sample.gray == 255
        assert verdict.window == WINDOW

    def test_first_of_equal_maxima_wins(self) -> None:
        a = white(200, 100.0, x=0.301)
        b = white(255, 100.0, x=0.319)
        assert brightest_white([a, b]) is a

    def test_x_outside_window_flips_to_fail(self, table: WhitePointSpecTable) -> None:
        inside = check_white_point([white(255, 250.0, x=0.3199)], table, "P102")
        outside = check_white_point([white(255, 250.0, x=0.3201)], table, "P102")
        assert inside.passed
        assert outside.outcome is WhitePointOutcome.FAIL
        assert not outside.passed
        assert outside.applicable

    def test_window_edges_inclusive(self, table: WhitePointSpecTable) -> None:
        for x, y in [(0.30, 0.32), (0.32, 0.34)]:
            assert check_white_point([white(255, 1.0, x=x, y=y)], table, "P102").passed

    def test_sku_not_found(self, table: WhitePointSpecTable) -> None:
        verdict = check_white_point([white(255, 250.0)], table, "NOPE")
        assert verdict.outcome is WhitePointOutcome.SKU_NOT_FOUND
        assert not verdict.passed
        assert not verdict.applicable
        assert verdict.sample is not None

    def test_no_white_samples(self, table: WhitePointSpecTable) -> None:
        verdict = check_white_point(sweep(Channel.R), table, "P102")
        assert verdict.outcome is WhitePointOutcome.NO_WHITE_SAMPLES
        assert not verdict.passed
        assert verdict.outcome is not WhitePointOutcome.FAIL


# ---------------------------------------------------------------------------
# Run verdict
# ---------------------------------------------------------------------------


class TestValidateRun:
    def test_empty_sample_set_rejected(self) -> None:
        with pytest.raises(MalformedInput):
            validate_run([], 2.2, 0.1)

    def test_single_mode_pass(self) -> None:
        report = validate_run(sweep(Channel.GRAY), 2.2, 0.1)
        assert report.passed
        assert report.verdict.white_point is None
        assert report.fits[0].actual_gamma == pytest.approx(2.2, abs=0.001)

    def test_multi_mode_all_channels(self, table: WhitePointSpecTable) -> None:
        samples = [s for ch in (Channel.R, Channel.G, Channel.B, Channel.W)
                   for s in sweep(ch)]
        report = validate_run(samples, 2.2, 0.3, spec_table=table, sku="P102")
        assert [v.channel for v in report.verdict.channels] == [
            Channel.R, Channel.G, Channel.B, Channel.W,
        ]
        assert report.verdict.white_point.passed
        assert report.passed

    def test_one_bad_channel_fails_run(self) -> None:
        samples = sweep(Channel.R) + sweep(Channel.G, gamma=2.8)
        report = validate_run(samples, 2.2, 0.3)
        results = {v.channel: v.passed for v in report.verdict.channels}
        assert results == {Channel.R: True, Channel.G: False}
        assert not report.passed

    def test_white_point_failure_fails_run(self, table: WhitePointSpecTable) -> None:
        samples = sweep(Channel.W)
        report = validate_run(samples, 2.2, 0.3, spec_table=table, sku="MISSING")
        assert all(v.passed for v in report.verdict.channels)
        assert report.verdict.white_point.outcome is WhitePointOutcome.SKU_NOT_FOUND
        assert not report.passed

    def test_unfittable_channel_fails_run_without_raising(self) -> None:
        flat = [Sample(Channel.B, g, 1.0, 0.15, 0.06) for g in (0, 128, 255)]
        report = validate_run(sweep(Channel.R) + flat, 2.2, 0.3)
        assert not report.passed
        assert report.verdict.channels[1].actual_gamma is None

    def test_nan_reading_never_passes(self) -> None:
        samples = sweep(Channel.GRAY)
        object.__setattr__(samples[2], "luminance", float("nan"))
        # A NaN cost would pick the first grid value, 1.0
        report = validate_run(samples, 1.05, 0.1)
        verdict = report.verdict.channels[0]
        assert not verdict.passed
        assert verdict.actual_gamma is None
        assert not report.passed

    def test_idempotent(self, table: WhitePointSpecTable) -> None:
        samples = sweep(Channel.W, gamma=2.3)
        first = validate_run(samples, 2.2, 0.3, spec_table=table, sku="P102")
        second = validate_run(samples, 2.2, 0.3, spec_table=table, sku="P102")
        assert first == second

    def test_empty_run_verdict_never_passes(self) -> None:
        assert not RunVerdict(channels=()).passed
