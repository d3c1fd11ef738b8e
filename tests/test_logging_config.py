"""Test unified logging configuration.

Tests for src.utils.logging_config:
    - setup_logging is idempotent (no duplicated handlers)
    - File output in human and JSON formats carries context fields
    - push_context / pop_context
    - quiet_libs raises library log levels
    - Unknown rotation mode is rejected

Run:
    pytest tests/test_logging_config.py -v
"""

import json
import logging
import logging.handlers
from pathlib import Path

import pytest

from src.utils import logging_config
from src.utils.logging_config import pop_context, push_context, setup_logging


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(False)
    pop_context()


def _flush():
    for handler in logging.getLogger().handlers:
        handler.flush()


# ============================================================================
# SETUP
# ============================================================================

def test_setup_logging_idempotent(tmp_path: Path):
    log_file = tmp_path / "calibrate.log"
    first = setup_logging("INFO", str(log_file), to_stderr=False)
    second = setup_logging("INFO", str(log_file), to_stderr=False)
    assert len(first["handlers"]) == 1
    root = logging.getLogger()
    assert second["handlers"][0] in root.handlers
    assert first["handlers"][0] not in root.handlers


def test_human_file_format_with_context(tmp_path: Path):
    log_file = tmp_path / "logs" / "calibrate.log"
    setup_logging("DEBUG", str(log_file), to_stderr=False,
                  context={"app": "calibrate"})
    push_context(mode="multi", sku="P102")
    logging.getLogger("panel_gamma.test").info("Sweep started")
    _flush()

    line = log_file.read_text().strip().splitlines()[-1]
    assert "| INFO" in line
    assert "app=calibrate mode=multi sku=P102 |" in line
    assert line.endswith("Sweep started")


def test_json_file_format(tmp_path: Path):
    log_file = tmp_path / "calibrate.jsonl"
    setup_logging("INFO", str(log_file), json=True, to_stderr=False,
                  context={"app": "calibrate"})
    logging.getLogger("panel_gamma.test").warning("Gray %d unreadable", 128)
    _flush()

    record = json.loads(log_file.read_text().strip().splitlines()[-1])
    assert record["lvl"] == "WARNING"
    assert record["msg"] == "Gray 128 unreadable"
    assert record["app"] == "calibrate"
    assert record["name"] == "panel_gamma.test"


def test_level_filters(tmp_path: Path):
    log_file = tmp_path / "calibrate.log"
    setup_logging("WARNING", str(log_file), to_stderr=False)
    logging.getLogger("panel_gamma.test").info("hidden")
    _flush()
    assert "hidden" not in log_file.read_text()


def test_size_rotation_handler(tmp_path: Path):
    info = setup_logging(
        "INFO", str(tmp_path / "r.log"), to_stderr=False,
        rotate={"mode": "size", "max_bytes": 1000, "backup_count": 2},
    )
    handler = info["handlers"][0]
    assert isinstance(handler, logging.handlers.RotatingFileHandler)
    assert handler.maxBytes == 1000


def test_unknown_rotation_mode(tmp_path: Path):
    with pytest.raises(ValueError, match="rotation mode"):
        setup_logging("INFO", str(tmp_path / "r.log"), to_stderr=False,
                      rotate={"mode": "weekly"})


def test_quiet_libs():
    setup_logging("DEBUG", to_stderr=False, quiet_libs=["serial"])
    assert logging.getLogger("serial").level == logging.WARNING


# ============================================================================
# CONTEXT
# ============================================================================

def test_pop_context_keys():
    push_context(app="calibrate", sku="P102")
    pop_context(keys=["sku"])
    assert logging_config._context_var.get() == {"app": "calibrate"}
    pop_context()
    assert logging_config._context_var.get() == {}
