"""Calibration routine: one full gamma / white-point run.

The routine ties the pieces together in production order:

    1. Read the operator's gray-level plan.
    2. Sweep it (single or multi mode) and save the sample table; in single
       mode the observed luminance is written back into the plan.
    3. Fit every channel, judge it against the target gamma and, in multi
       mode, check the white point against the SKU window.
    4. Write the summary reports.
    5. Optionally compare with the ideal curve and compute panel gamma
       registers (single mode).

Device ports are passed in already opened; the caller owns their
lifetime.  The routine returns a :class:`CalibrationOutcome` and never
prints; ``format_calibration_summary`` renders it for the console.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from panel_gamma import records
from panel_gamma.acquisition.sequencer import AcquisitionResult, Sequencer, SweepMode
from panel_gamma.analysis.ideal_curve import (
    MIN_CURVE_POINTS,
    IdealCurveReport,
    compare_to_ideal_curve,
)
from panel_gamma.analysis.validation import ValidationReport, validate_run
from panel_gamma.configs.loader import StationConfig
from panel_gamma.hardware.ports import GammaRegisterEngine, PhotometerPort, StimulusPort
from panel_gamma.hardware.register_engine import GAMMA_TAP_COUNT, compute_gamma_registers
from panel_gamma.models.samples import MalformedInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationOutcome:
    """Everything a run produced.

    ``passed`` reflects the gamma and white-point verdicts only.  The
    ideal-curve comparison is reported alongside but does not gate the run.
    """

    mode: SweepMode
    sku: str
    acquisition: AcquisitionResult
    report: ValidationReport
    ideal_curve: IdealCurveReport | None = None
    registers: tuple[int, ...] | None = None
    files: dict[str, Path] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.report.passed


def run_gamma_calibration(
    stimulus: StimulusPort,
    photometer: PhotometerPort,
    config: StationConfig,
    *,
    mode: SweepMode | str = SweepMode.SINGLE,
    work_dir: str | Path = ".",
    sku: str | None = None,
    target_gamma: float | None = None,
    tolerance: float | None = None,
    ideal_curve: bool = False,
    register_engine: GammaRegisterEngine | None = None,
    cancel_event: threading.Event | None = None,
) -> CalibrationOutcome:
    """Run one calibration and write its records into *work_dir*.

    Parameters
    ----------
    stimulus : StimulusPort
        Opened display driver.
    photometer : PhotometerPort
        Opened photometer.
    config : StationConfig
        Station configuration.
    mode : SweepMode | str
        ``"single"`` or ``"multi"``.
    work_dir : str | Path
        Directory holding the plan and receiving the records.
    sku : str | None
        Overrides ``validation.sku`` for the white-point check.
    target_gamma, tolerance : float | None
        Override the configured acceptance limits.
    ideal_curve : bool
        Also compare the single-mode sweep with the ideal curve.
    register_engine : GammaRegisterEngine | None
        When given (single mode), compute gamma registers from the sweep.
    cancel_event : threading.Event | None
        Set it to stop the sweep.

    Returns
    -------
    CalibrationOutcome

    Raises
    ------
    MalformedInput
        If the plan, the sweep or the register inputs are below minimum.
    AcquisitionFailure, AcquisitionCancelled
        From the sweep.
    FileNotFoundError
        If the plan, (multi mode) the spec table or (with a register
        engine) the VCOM/tap files are missing.  All inputs are read and
        checked before the first stimulus.
    """
    mode = SweepMode(mode)
    work_dir = Path(work_dir)
    files = config.files
    sku = config.validation.sku if sku is None else sku
    target = config.validation.target_gamma if target_gamma is None else target_gamma
    tol = (
        config.validation.tolerance.for_mode(mode) if tolerance is None
        else tolerance
    )
    written: dict[str, Path] = {}

    logger.info(
        "Calibration run: mode=%s sku=%r target=%.3f tolerance=%.3f",
        mode.value, sku, target, tol,
    )

    # -- inputs -------------------------------------------------------------
    plan_path = work_dir / files.gray_plan
    header, plan = records.read_gray_plan(plan_path)

    spec_table = None
    if mode is SweepMode.MULTI:
        spec_table = records.read_spec_table(work_dir / config.validation.spec_table)

    # Single-mode extras are checked before the panel is driven
    vcom = taps = None
    if mode is SweepMode.SINGLE:
        if ideal_curve and len(plan) < MIN_CURVE_POINTS:
            raise MalformedInput(
                f"Ideal-curve comparison needs >= {MIN_CURVE_POINTS} gray levels, "
                f"plan has {len(plan)}"
            )
        if register_engine is not None:
            if len(plan) < GAMMA_TAP_COUNT:
                raise MalformedInput(
                    f"Register computation needs >= {GAMMA_TAP_COUNT} gray levels, "
                    f"plan has {len(plan)}"
                )
            vcom = records.read_vcom(work_dir / files.vcom)
            taps = records.read_gamma_taps(work_dir / files.gamma_taps)
            if len(taps) < GAMMA_TAP_COUNT:
                raise MalformedInput(
                    f"Need >= {GAMMA_TAP_COUNT} gamma taps, got {len(taps)}"
                )

    # -- acquisition --------------------------------------------------------
    sequencer = Sequencer(
        stimulus,
        photometer,
        settle_delay_s=config.acquisition.settle_delay_s.for_mode(mode),
        max_retries=config.acquisition.max_retries,
        retry_backoff_s=config.acquisition.retry_backoff_s,
        cancel_event=cancel_event,
    )
    acquisition = sequencer.run(plan, mode)

    if mode is SweepMode.SINGLE:
        samples_path = work_dir / files.single_samples
        records.write_single_samples(samples_path, acquisition.samples)
        records.write_gray_plan(plan_path, acquisition.gray_plan, header=header)
        written["gray_plan"] = plan_path
    else:
        samples_path = work_dir / files.multi_samples
        records.write_multi_samples(samples_path, acquisition.samples)
    written["samples"] = samples_path

    # -- fitting & validation -----------------------------------------------
    report = validate_run(
        acquisition.samples,
        target,
        tol,
        settings=config.fitting,
        spec_table=spec_table,
        sku=sku,
    )
    summary_path = work_dir / files.gamma_summary
    records.write_fit_summary(
        summary_path, report.fits, report.verdict.channels, target, tol,
    )
    written["gamma_summary"] = summary_path

    if report.verdict.white_point is not None:
        wp_path = work_dir / files.white_point_summary
        records.write_white_point_summary(wp_path, report.verdict.white_point)
        written["white_point_summary"] = wp_path

    # -- optional single-mode extras ----------------------------------------
    curve = None
    registers = None
    if mode is SweepMode.SINGLE:
        grays = [s.gray for s in acquisition.samples]
        luminances = [s.luminance for s in acquisition.samples]

        if ideal_curve:
            curve = compare_to_ideal_curve(
                grays,
                luminances,
                gamma=target,
                tolerance=config.validation.ideal_curve_tolerance,
            )
            curve_path = work_dir / files.ideal_curve
            records.write_ideal_curve(curve_path, curve)
            written["ideal_curve"] = curve_path

        if register_engine is not None:
            registers = tuple(
                compute_gamma_registers(register_engine, vcom, taps, luminances)
            )
            reg_path = work_dir / files.register_output
            records.write_register_values(reg_path, registers)
            written["register_output"] = reg_path
    elif ideal_curve or register_engine is not None:
        logger.warning(
            "Ideal-curve comparison and register computation only apply to "
            "single mode; skipped"
        )

    return CalibrationOutcome(
        mode=mode,
        sku=sku,
        acquisition=acquisition,
        report=report,
        ideal_curve=curve,
        registers=registers,
        files=written,
    )


# ---------------------------------------------------------------------------
# Console summary
# ---------------------------------------------------------------------------


def _num(value: float | None, pattern: str) -> str:
    return "N/A" if value is None else format(value, pattern)


def format_calibration_summary(outcome: CalibrationOutcome) -> str:
    """Format a run outcome as a human-readable summary.

    Every verdict is printed with the numbers it was decided on.
    """
    verdict = outcome.report.verdict
    fits = {f.channel: f for f in outcome.report.fits}
    lines = ["=" * 60, "  GAMMA CALIBRATION RESULTS", "=" * 60]
    lines.append(f"  Mode: {outcome.mode.value}   Samples: "
                 f"{len(outcome.acquisition.samples)}")
    if verdict.channels:
        first = verdict.channels[0]
        lines.append(
            f"  Target gamma: {first.target_gamma:.2f} "
            f"(tolerance +/-{first.tolerance:.2f})"
        )
    lines.append("-" * 60)
    lines.append("  Channel  Gamma    RMS        Y_black    Y_white    Result")
    for v in verdict.channels:
        fit = fits.get(v.channel)
        lines.append(
            f"  {v.channel.value:<7}  {_num(v.actual_gamma, '.3f'):<7}  "
            f"{_num(v.rms_error, '.6f'):<9}  "
            f"{_num(fit.y_black if fit else None, '.4f'):<9}  "
            f"{_num(fit.y_white if fit else None, '.4f'):<9}  {v.result}"
        )
        if v.reason:
            lines.append(f"           {v.reason}")

    wp = verdict.white_point
    if wp is not None:
        lines.append("-" * 60)
        lines.append(f"  White point (SKU {wp.sku or '<none>'}): {wp.outcome.value}")
        if wp.sample is not None:
            s = wp.sample
            lines.append(
                f"    brightest W: gray={s.gray} Lv={s.luminance:.2f} "
                f"x={s.x:.4f} y={s.y:.4f}"
            )
        if wp.window is not None:
            w = wp.window
            lines.append(
                f"    window: x=[{w.x_min:.4f}, {w.x_max:.4f}] "
                f"y=[{w.y_min:.4f}, {w.y_max:.4f}]"
            )

    if outcome.ideal_curve is not None:
        curve = outcome.ideal_curve
        worst = curve.worst
        lines.append("-" * 60)
        lines.append(
            f"  Ideal curve (gamma {curve.gamma:.2f}, Lmax {curve.l_max:.2f}): "
            f"{'PASS' if curve.passed else 'FAIL'}"
        )
        lines.append(
            f"    worst: gray={worst.gray} measured={worst.measured:.2f} "
            f"ideal={worst.ideal:.2f} error={worst.relative_error * 100:.1f}%"
        )

    if outcome.registers is not None:
        lines.append("-" * 60)
        lines.append(
            "  Gamma registers: "
            + " ".join(f"{v:X}" for v in outcome.registers)
        )

    lines.append("=" * 60)
    lines.append(f"  FINAL RESULT: {'PASS' if outcome.passed else 'FAIL'}")
    lines.append("=" * 60)
    return "\n".join(lines)
