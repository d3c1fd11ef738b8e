"""Tests for station configuration loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from src.utils.fs import atomic_yaml_dump, load_yaml

from panel_gamma.acquisition.sequencer import SweepMode
from panel_gamma.analysis.gamma_fit import DEFAULT_WEIGHTS
from panel_gamma.configs.loader import ConfigError, PerMode, load_config

DEFAULT_YAML = Path(__file__).resolve().parent.parent / "configs" / "station.yaml"


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[Callable[[dict[str, Any]], None]], Path]:
    """Copy the shipped config, apply *mutate* and return the new path."""
    def _write(mutate: Callable[[dict[str, Any]], None]) -> Path:
        data = load_yaml(DEFAULT_YAML)
        mutate(data)
        path = tmp_path / "station.yaml"
        atomic_yaml_dump(data, path)
        return path
    return _write


class TestDefaultConfig:
    def test_loads(self) -> None:
        cfg = load_config()
        assert cfg.connection.baudrate == 115200
        assert cfg.validation.target_gamma == 2.2
        assert cfg.fitting.weights == DEFAULT_WEIGHTS
        assert cfg.fitting.step == 0.001
        assert cfg.photometer.driver.emulated
        assert not cfg.register_engine.enabled

    def test_per_mode_values(self) -> None:
        cfg = load_config()
        assert cfg.acquisition.settle_delay_s.for_mode(SweepMode.SINGLE) == 0.1
        assert cfg.acquisition.settle_delay_s.for_mode("multi") == 0.05
        assert cfg.validation.tolerance.for_mode(SweepMode.SINGLE) == 0.1
        assert cfg.validation.tolerance.for_mode(SweepMode.MULTI) == 0.3

    def test_no_retry_by_default(self) -> None:
        assert load_config().acquisition.max_retries == 0

    def test_file_names(self) -> None:
        files = load_config().files
        assert files.gray_plan == "graylevels.csv"
        assert files.multi_samples == "measured_rgbw.csv"
        assert files.register_output == "gamma_out.csv"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")


class TestValidation:
    def test_scalar_per_mode(self, write_config) -> None:
        def mutate(d):
            d["validation"]["tolerance"] = 0.2
        cfg = load_config(write_config(mutate))
        assert cfg.validation.tolerance == PerMode(0.2, 0.2)

    def test_missing_key(self, write_config) -> None:
        def mutate(d):
            del d["acquisition"]
        with pytest.raises(ConfigError, match="acquisition"):
            load_config(write_config(mutate))

    def test_bad_value(self, write_config) -> None:
        def mutate(d):
            d["connection"]["baudrate"] = "fast"
        with pytest.raises(ConfigError, match="Invalid"):
            load_config(write_config(mutate))

    def test_decreasing_weights_rejected(self, write_config) -> None:
        def mutate(d):
            d["fitting"]["weights"][1]["weight"] = 0.0005
        with pytest.raises(ConfigError, match="non-decreasing"):
            load_config(write_config(mutate))

    def test_buckets_must_cover_255(self, write_config) -> None:
        def mutate(d):
            d["fitting"]["weights"] = d["fitting"]["weights"][:3]
        with pytest.raises(ConfigError, match="cover gray 255"):
            load_config(write_config(mutate))

    def test_grid_too_coarse_for_tolerance(self, write_config) -> None:
        def mutate(d):
            d["fitting"]["step"] = 0.02
        with pytest.raises(ConfigError, match="too coarse"):
            load_config(write_config(mutate))

    def test_target_outside_grid(self, write_config) -> None:
        def mutate(d):
            d["validation"]["target_gamma"] = 4.0
        with pytest.raises(ConfigError, match="outside the fit range"):
            load_config(write_config(mutate))

    def test_zero_settle_rejected(self, write_config) -> None:
        def mutate(d):
            d["acquisition"]["settle_delay_s"]["multi"] = 0
        with pytest.raises(ConfigError, match="settle_delay_s"):
            load_config(write_config(mutate))

    def test_unknown_files_key(self, write_config) -> None:
        def mutate(d):
            d["files"]["extra"] = "x.csv"
        with pytest.raises(ConfigError):
            load_config(write_config(mutate))

    def test_plugin_driver_options(self, write_config) -> None:
        def mutate(d):
            d["photometer"]["driver"] = "vendor.ca200:open_meter"
            d["photometer"]["options"] = {"channel": 1}
        cfg = load_config(write_config(mutate))
        assert not cfg.photometer.driver.emulated
        assert cfg.photometer.driver.options == {"channel": 1}
