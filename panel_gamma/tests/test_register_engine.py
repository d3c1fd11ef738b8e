"""Tests for driving the gamma register engine."""

from __future__ import annotations

import pytest

from panel_gamma.hardware.ports import GammaRegisterEngine, RegisterEngineError
from panel_gamma.hardware.register_engine import (
    GAMMA_TAP_COUNT,
    VcomSetting,
    compute_gamma_registers,
)
from panel_gamma.models.samples import MalformedInput


class RecordingEngine(GammaRegisterEngine):
    """Records every call; returns *result* from ``read_registers``."""

    def __init__(self, result: list[int] | None = None) -> None:
        self.calls: list[tuple] = []
        self.result = [0x10, 0x20, 0x1F3] if result is None else result

    def load_vcom(self, vcm: int, vrh: int) -> None:
        self.calls.append(("vcom", vcm, vrh))

    def load_gamma_taps(self, taps: list[int]) -> None:
        self.calls.append(("taps", list(taps)))

    def calculate_voltages(self) -> None:
        self.calls.append(("voltages",))

    def load_luminance(self, values: list[float]) -> None:
        self.calls.append(("luminance", list(values)))

    def read_registers(self) -> list[int]:
        self.calls.append(("read",))
        return self.result


VCOM = VcomSetting(vcm=0x3A, vrh=0x1F)
TAPS = list(range(100, 120))
LUMS = [float(i) for i in range(20)]


class TestComputeRegisters:
    def test_call_order(self) -> None:
        engine = RecordingEngine()
        compute_gamma_registers(engine, VCOM, TAPS, LUMS)
        assert [c[0] for c in engine.calls] == [
            "vcom", "taps", "voltages", "luminance", "read",
        ]
        assert engine.calls[0] == ("vcom", 0x3A, 0x1F)

    def test_only_first_sixteen_used(self) -> None:
        engine = RecordingEngine()
        compute_gamma_registers(engine, VCOM, TAPS, LUMS)
        assert engine.calls[1][1] == TAPS[:GAMMA_TAP_COUNT]
        assert engine.calls[3][1] == LUMS[:GAMMA_TAP_COUNT]

    def test_returns_engine_values(self) -> None:
        result = compute_gamma_registers(RecordingEngine([1, 2, 3]), VCOM, TAPS, LUMS)
        assert result == [1, 2, 3]

    def test_too_few_taps(self) -> None:
        engine = RecordingEngine()
        with pytest.raises(MalformedInput, match="taps"):
            compute_gamma_registers(engine, VCOM, TAPS[:15], LUMS)
        assert engine.calls == []

    def test_too_few_luminances(self) -> None:
        engine = RecordingEngine()
        with pytest.raises(MalformedInput, match="luminance"):
            compute_gamma_registers(engine, VCOM, TAPS, LUMS[:10])
        assert engine.calls == []

    def test_empty_result(self) -> None:
        with pytest.raises(RegisterEngineError):
            compute_gamma_registers(RecordingEngine([]), VCOM, TAPS, LUMS)
