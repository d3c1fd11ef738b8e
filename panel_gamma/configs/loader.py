"""Configuration loader for the calibration station.

Loads and validates ``station.yaml`` into typed, frozen dataclasses.
Transport settings, settle delays, fit grid, weights and acceptance limits
all come from the config; the defaults shipped alongside this module
reproduce the production line's values.

Per-mode values (settle delay, tolerance) are stored as one field per
mode and picked with ``for_mode``.

Usage::

    from panel_gamma.configs.loader import load_config
    cfg = load_config()                       # default path
    cfg = load_config("/custom/station.yaml") # explicit path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from src.utils.fs import load_yaml

from panel_gamma.acquisition.sequencer import SweepMode
from panel_gamma.analysis.gamma_fit import FitSettings, WeightBucket
from panel_gamma.models.samples import GRAY_MAX

logger = logging.getLogger(__name__)

EMULATED_DRIVER = "emulated"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PerMode:
    """A value that differs between single- and multi-channel sweeps."""

    single: float
    multi: float

    def for_mode(self, mode: SweepMode | str) -> float:
        return self.single if SweepMode(mode) is SweepMode.SINGLE else self.multi


@dataclass(frozen=True)
class ConnectionConfig:
    """Fixture UART settings."""

    port: str
    baudrate: int
    timeout_s: float
    open_attempts: int
    open_interval_s: float
    read_ack: bool = False
    backlight_brightness: int = 255


@dataclass(frozen=True)
class EmulatorConfig:
    """Parameters of the built-in emulated panel/photometer."""

    l_max: float = 250.0
    gamma: float = 2.2
    black_level: float = 0.0
    noise: float = 0.0
    seed: int = 0


@dataclass(frozen=True)
class DriverConfig:
    """External driver selected by import path."""

    driver: str
    options: dict[str, Any]

    @property
    def emulated(self) -> bool:
        return self.driver == EMULATED_DRIVER

    @property
    def enabled(self) -> bool:
        return bool(self.driver)


@dataclass(frozen=True)
class PhotometerConfig:
    driver: DriverConfig
    emulator: EmulatorConfig


@dataclass(frozen=True)
class AcquisitionConfig:
    """Sweep timing and failure handling."""

    settle_delay_s: PerMode
    max_retries: int = 0
    retry_backoff_s: float = 0.5


@dataclass(frozen=True)
class ValidationConfig:
    """Acceptance limits."""

    target_gamma: float
    tolerance: PerMode
    sku: str
    spec_table: str
    ideal_curve_tolerance: float = 0.1


@dataclass(frozen=True)
class FilesConfig:
    """Record file names, relative to the run's working directory."""

    gray_plan: str = "graylevels.csv"
    single_samples: str = "measurements.csv"
    multi_samples: str = "measured_rgbw.csv"
    gamma_summary: str = "gamma_curve.csv"
    white_point_summary: str = "targetxy_result.csv"
    ideal_curve: str = "gamma_compare.csv"
    vcom: str = "vcom.csv"
    gamma_taps: str = "gamma.csv"
    register_output: str = "gamma_out.csv"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file: str = ""
    json: bool = False
    rotate: bool = False


@dataclass(frozen=True)
class StationConfig:
    """Top-level station configuration."""

    connection: ConnectionConfig
    photometer: PhotometerConfig
    register_engine: DriverConfig
    acquisition: AcquisitionConfig
    fitting: FitSettings
    validation: ValidationConfig
    files: FilesConfig
    logging: LoggingConfig


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _parse_per_mode(name: str, raw: Any) -> PerMode:
    """Accept ``{single: a, multi: b}`` or one number for both modes."""
    if isinstance(raw, dict):
        return PerMode(single=float(raw["single"]), multi=float(raw["multi"]))
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return PerMode(single=float(raw), multi=float(raw))
    raise ConfigError(
        f"{name} must be a number or a {{single, multi}} mapping, got {raw!r}"
    )


def _parse_driver(name: str, data: dict[str, Any] | None) -> DriverConfig:
    data = data or {}
    options = data.get("options") or {}
    if not isinstance(options, dict):
        raise ConfigError(f"{name}.options must be a mapping, got {type(options)}")
    return DriverConfig(driver=str(data.get("driver") or ""), options=dict(options))


def _parse_weights(raw: Any) -> tuple[WeightBucket, ...]:
    if not isinstance(raw, list) or not raw:
        raise ConfigError("fitting.weights must be a non-empty list")
    buckets = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ConfigError(f"fitting.weights[{i}] must be a mapping")
        buckets.append(WeightBucket(
            max_gray=int(entry["max_gray"]), weight=float(entry["weight"]),
        ))
    return tuple(buckets)


def _parse_fitting(data: dict[str, Any]) -> FitSettings:
    defaults = FitSettings()
    weights = (
        _parse_weights(data["weights"]) if "weights" in data else defaults.weights
    )
    return FitSettings(
        gamma_min=float(data.get("gamma_min", defaults.gamma_min)),
        gamma_max=float(data.get("gamma_max", defaults.gamma_max)),
        step=float(data.get("step", defaults.step)),
        weights=weights,
    )


def _validate_config(cfg: StationConfig) -> None:
    """Validate cross-field consistency.

    Raises
    ------
    ConfigError
        On any invalid combination.
    """
    # -- Weight buckets ----------------------------------------------------
    weights = cfg.fitting.weights
    for prev, cur in zip(weights, weights[1:]):
        if cur.max_gray <= prev.max_gray:
            raise ConfigError(
                f"Weight buckets must have increasing max_gray: "
                f"{prev.max_gray} then {cur.max_gray}"
            )
        if cur.weight < prev.weight:
            raise ConfigError(
                f"Weights must be non-decreasing with gray level: "
                f"{prev.weight} then {cur.weight}"
            )
    if weights[-1].max_gray < GRAY_MAX:
        raise ConfigError(
            f"Last weight bucket must cover gray {GRAY_MAX}, "
            f"got max_gray={weights[-1].max_gray}"
        )
    if any(b.weight <= 0 for b in weights):
        raise ConfigError("Weights must be > 0")

    # -- Fit grid vs acceptance --------------------------------------------
    fit = cfg.fitting
    if not fit.gamma_min < cfg.validation.target_gamma < fit.gamma_max:
        raise ConfigError(
            f"target_gamma {cfg.validation.target_gamma} outside the fit "
            f"range ({fit.gamma_min}, {fit.gamma_max})"
        )
    for mode in SweepMode:
        tol = cfg.validation.tolerance.for_mode(mode)
        if tol <= 0:
            raise ConfigError(f"{mode.value} tolerance must be > 0, got {tol}")
        if fit.step > tol / 10.0:
            raise ConfigError(
                f"Fit step {fit.step} too coarse for {mode.value} tolerance "
                f"{tol} (must be <= {tol / 10.0:g})"
            )
    if cfg.validation.ideal_curve_tolerance <= 0:
        raise ConfigError("ideal_curve_tolerance must be > 0")

    # -- Timing ------------------------------------------------------------
    for mode in SweepMode:
        delay = cfg.acquisition.settle_delay_s.for_mode(mode)
        if delay <= 0:
            raise ConfigError(
                f"{mode.value} settle_delay_s must be > 0, got {delay}"
            )
    if cfg.acquisition.max_retries < 0:
        raise ConfigError(
            f"max_retries must be >= 0, got {cfg.acquisition.max_retries}"
        )
    if cfg.acquisition.retry_backoff_s < 0:
        raise ConfigError("retry_backoff_s must be >= 0")

    # -- Connection --------------------------------------------------------
    c = cfg.connection
    if c.timeout_s <= 0:
        raise ConfigError(f"timeout_s must be > 0, got {c.timeout_s}")
    if c.open_attempts < 1:
        raise ConfigError(
            f"open_attempts must be >= 1, got {c.open_attempts}"
        )
    if not 0 <= c.backlight_brightness <= 255:
        raise ConfigError(
            f"backlight_brightness must be in [0, 255], "
            f"got {c.backlight_brightness}"
        )

    # -- Emulator ----------------------------------------------------------
    emu = cfg.photometer.emulator
    if emu.l_max <= 0:
        raise ConfigError(f"emulator.l_max must be > 0, got {emu.l_max}")
    if emu.gamma <= 0:
        raise ConfigError(f"emulator.gamma must be > 0, got {emu.gamma}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> StationConfig:
    """Load and validate station configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``station.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    StationConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field is missing or fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    if path is None:
        path = Path(__file__).parent / "station.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    data: dict[str, Any] = load_yaml(path)
    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")

    try:
        # -- connection -----------------------------------------------------
        conn = data["connection"]
        connection = ConnectionConfig(
            port=str(conn["port"]),
            baudrate=int(conn.get("baudrate", 115200)),
            timeout_s=float(conn.get("timeout_s", 1.0)),
            open_attempts=int(conn.get("open_attempts", 3)),
            open_interval_s=float(conn.get("open_interval_s", 1.0)),
            read_ack=bool(conn.get("read_ack", False)),
            backlight_brightness=int(conn.get("backlight_brightness", 255)),
        )

        # -- photometer -----------------------------------------------------
        ph = data.get("photometer") or {}
        emu = ph.get("emulator") or {}
        photometer = PhotometerConfig(
            driver=_parse_driver("photometer", {
                "driver": ph.get("driver", EMULATED_DRIVER),
                "options": ph.get("options"),
            }),
            emulator=EmulatorConfig(
                l_max=float(emu.get("l_max", 250.0)),
                gamma=float(emu.get("gamma", 2.2)),
                black_level=float(emu.get("black_level", 0.0)),
                noise=float(emu.get("noise", 0.0)),
                seed=int(emu.get("seed", 0)),
            ),
        )

        register_engine = _parse_driver(
            "register_engine", data.get("register_engine"),
        )

        # -- acquisition ----------------------------------------------------
        acq = data["acquisition"]
        acquisition = AcquisitionConfig(
            settle_delay_s=_parse_per_mode(
                "acquisition.settle_delay_s", acq["settle_delay_s"],
            ),
            max_retries=int(acq.get("max_retries", 0)),
            retry_backoff_s=float(acq.get("retry_backoff_s", 0.5)),
        )

        # -- fitting --------------------------------------------------------
        fitting = _parse_fitting(data.get("fitting") or {})

        # -- validation -----------------------------------------------------
        val = data["validation"]
        validation = ValidationConfig(
            target_gamma=float(val.get("target_gamma", 2.2)),
            tolerance=_parse_per_mode("validation.tolerance", val["tolerance"]),
            sku=str(val.get("sku") or ""),
            spec_table=str(val.get("spec_table", "targetxy.csv")),
            ideal_curve_tolerance=float(val.get("ideal_curve_tolerance", 0.1)),
        )

        # -- files / logging ------------------------------------------------
        files = FilesConfig(**{k: str(v) for k, v in (data.get("files") or {}).items()})
        log = data.get("logging") or {}
        logging_cfg = LoggingConfig(
            level=str(log.get("level", "INFO")).upper(),
            file=str(log.get("file") or ""),
            json=bool(log.get("json", False)),
            rotate=bool(log.get("rotate", False)),
        )

        config = StationConfig(
            connection=connection,
            photometer=photometer,
            register_engine=register_engine,
            acquisition=acquisition,
            fitting=fitting,
            validation=validation,
            files=files,
            logging=logging_cfg,
        )

        _validate_config(config)
        logger.info("Configuration loaded successfully")
        return config

    except KeyError as exc:
        raise ConfigError(
            f"Missing required configuration key: {exc}"
        ) from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Invalid configuration value: {exc}"
        ) from exc
