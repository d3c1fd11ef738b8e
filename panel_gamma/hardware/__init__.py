"""
Hardware communication module.

Provides the device capability ports, the fixture UART stimulus driver, an
emulated panel/photometer pair, the vendor register-engine workflow and
driver plug-in loading.
"""

from panel_gamma.hardware.emulator import EmulatedPanel
from panel_gamma.hardware.ports import (
    GammaRegisterEngine,
    HardwareError,
    MeasurementError,
    PhotometerPort,
    Reading,
    RegisterEngineError,
    StimulusError,
    StimulusFanout,
    StimulusPort,
)
from panel_gamma.hardware.serial_stimulus import SerialStimulus

__all__ = [
    "EmulatedPanel",
    "GammaRegisterEngine",
    "HardwareError",
    "MeasurementError",
    "PhotometerPort",
    "Reading",
    "RegisterEngineError",
    "SerialStimulus",
    "StimulusError",
    "StimulusFanout",
    "StimulusPort",
]
