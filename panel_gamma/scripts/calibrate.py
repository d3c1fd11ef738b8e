#!/usr/bin/env python3
"""Calibration entry point.

Usage::

    python -m panel_gamma.scripts.calibrate --port COM5                # single mode
    python -m panel_gamma.scripts.calibrate --mode multi --sku P102    # R/G/B/W + white point
    python -m panel_gamma.scripts.calibrate --emulate --ideal-curve    # dry run, no fixture
    python -m panel_gamma.scripts.calibrate --registers                # + gamma registers

Records are read from and written to ``--work-dir`` (default: current
directory).  Exit code is 0 when the run passes and 1 on FAIL or error.
Ctrl-C stops the sweep at the next cycle boundary.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import signal
import sys
import threading
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from src.utils.logging_config import (
    install_excepthook,
    pop_context,
    push_context,
    setup_logging,
)

from panel_gamma.acquisition.sequencer import (
    AcquisitionCancelled,
    AcquisitionFailure,
    SweepMode,
)
from panel_gamma.calibration.routines import (
    format_calibration_summary,
    run_gamma_calibration,
)
from panel_gamma.configs.loader import ConfigError, StationConfig, load_config
from panel_gamma.hardware.emulator import EmulatedPanel
from panel_gamma.hardware.plugins import PluginError, create_driver
from panel_gamma.hardware.ports import (
    GammaRegisterEngine,
    HardwareError,
    PhotometerPort,
    StimulusFanout,
    StimulusPort,
)
from panel_gamma.hardware.serial_stimulus import SerialStimulus
from panel_gamma.models.samples import MalformedInput

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Panel gamma / white-point calibration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", "-c", type=str, help="Config file path")
    parser.add_argument("--port", "-p", type=str,
                        help="Fixture serial port (overrides config)")
    parser.add_argument("--mode", choices=[m.value for m in SweepMode],
                        default=SweepMode.SINGLE.value,
                        help="single: gray sweep; multi: R/G/B/W sweep "
                        "with white-point check (default: single)")
    parser.add_argument("--sku", type=str,
                        help="Panel SKU for the white-point window")
    parser.add_argument("--target-gamma", type=float,
                        help="Target gamma (default from config, 2.2)")
    parser.add_argument("--tolerance", type=float,
                        help="Allowed |gamma - target| (default from config)")
    parser.add_argument("--work-dir", type=str, default=".",
                        help="Directory holding the plan and records")
    parser.add_argument("--emulate", action="store_true",
                        help="Use the emulated panel and photometer "
                        "(no fixture needed)")
    parser.add_argument("--ideal-curve", action="store_true",
                        help="Also compare with the ideal curve "
                        "(single mode, >= 16 levels)")
    parser.add_argument("--registers", action="store_true",
                        help="Compute gamma registers with the configured "
                        "engine (single mode)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging")
    return parser


def _emulator(config: StationConfig) -> EmulatedPanel:
    emu = config.photometer.emulator
    return EmulatedPanel(
        l_max=emu.l_max,
        gamma=emu.gamma,
        black_level=emu.black_level,
        noise=emu.noise,
        seed=emu.seed,
    )


def open_devices(
    args: argparse.Namespace,
    config: StationConfig,
    stack: contextlib.ExitStack,
) -> tuple[StimulusPort, PhotometerPort]:
    """Create and enter the stimulus/photometer pair for this run.

    Everything entered on *stack* is released when the stack closes, on
    every exit path.
    """
    if args.emulate:
        logger.warning("Emulation mode: readings are synthetic")
        panel = stack.enter_context(_emulator(config))
        return panel, panel

    conn = config.connection
    uart = SerialStimulus(
        port=args.port or conn.port,
        baudrate=conn.baudrate,
        timeout=conn.timeout_s,
        open_attempts=conn.open_attempts,
        open_interval=conn.open_interval_s,
        read_ack=conn.read_ack,
        backlight_brightness=conn.backlight_brightness,
    )
    stack.enter_context(uart)

    if config.photometer.driver.emulated:
        logger.warning("Photometer is emulated: readings are synthetic")
        panel = stack.enter_context(_emulator(config))
        return StimulusFanout(uart, panel), panel

    photometer = create_driver(
        config.photometer.driver.driver,
        PhotometerPort,
        **config.photometer.driver.options,
    )
    stack.enter_context(photometer)
    return uart, photometer


def load_register_engine(config: StationConfig) -> GammaRegisterEngine:
    engine = config.register_engine
    if not engine.enabled:
        raise ConfigError(
            "--registers needs register_engine.driver set in the config"
        )
    return create_driver(engine.driver, GammaRegisterEngine, **engine.options)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (ConfigError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    log = config.logging
    setup_logging(
        log_level="DEBUG" if args.verbose else log.level,
        log_file=log.file or None,
        json=log.json,
        rotate=(
            {"mode": "size", "max_bytes": 5_000_000, "backup_count": 5}
            if log.rotate else None
        ),
        quiet_libs=["serial"],
        context={"app": "calibrate"},
    )
    install_excepthook()
    push_context(mode=args.mode, sku=args.sku or config.validation.sku)

    cancel = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda *_: cancel.set())

    try:
        register_engine = load_register_engine(config) if args.registers else None
        with contextlib.ExitStack() as stack:
            stimulus, photometer = open_devices(args, config, stack)
            outcome = run_gamma_calibration(
                stimulus,
                photometer,
                config,
                mode=args.mode,
                work_dir=args.work_dir,
                sku=args.sku,
                target_gamma=args.target_gamma,
                tolerance=args.tolerance,
                ideal_curve=args.ideal_curve,
                register_engine=register_engine,
                cancel_event=cancel,
            )
        print(format_calibration_summary(outcome))
        for name, path in outcome.files.items():
            logger.info("%s -> %s", name, path)
        return 0 if outcome.passed else 1

    except AcquisitionCancelled as exc:
        print(f"\nCalibration cancelled by operator ({len(exc.samples)} samples).")
        return 1
    except AcquisitionFailure as exc:
        logger.error(
            "Acquisition aborted at cycle %d (%s gray=%d): %s",
            exc.index, exc.channel.value, exc.gray, exc.__cause__,
        )
        return 1
    except (MalformedInput, ConfigError, PluginError, HardwareError,
            FileNotFoundError, ValueError) as exc:
        logger.error("Calibration error: %s", exc)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        pop_context(keys=["mode", "sku"])


if __name__ == "__main__":
    sys.exit(main())
