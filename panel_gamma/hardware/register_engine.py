"""Gamma register computation through the vendor engine.

The engine itself is opaque (see :class:`GammaRegisterEngine`); this module
only enforces its input contract and call order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from panel_gamma.hardware.ports import GammaRegisterEngine, RegisterEngineError
from panel_gamma.models.samples import MalformedInput

logger = logging.getLogger(__name__)

# The engine consumes exactly this many taps and luminance values
GAMMA_TAP_COUNT = 16


@dataclass(frozen=True)
class VcomSetting:
    """VCOM / VRH register pair loaded before the gamma taps."""

    vcm: int
    vrh: int


def compute_gamma_registers(
    engine: GammaRegisterEngine,
    vcom: VcomSetting,
    taps: list[int],
    luminances: list[float],
) -> list[int]:
    """Drive *engine* through one register computation.

    Parameters
    ----------
    engine : GammaRegisterEngine
        Vendor engine port.
    vcom : VcomSetting
        VCOM parameters.
    taps : list[int]
        Gamma tap register values; only the first 16 are used.
    luminances : list[float]
        Measured luminance per tap (cd/m^2); only the first 16 are used.

    Returns
    -------
    list[int]
        Register values reported by the engine.

    Raises
    ------
    MalformedInput
        If fewer than 16 taps or 16 luminance values are supplied.
    RegisterEngineError
        If the engine returns no register values.
    """
    if len(taps) < GAMMA_TAP_COUNT:
        raise MalformedInput(
            f"Need >= {GAMMA_TAP_COUNT} gamma taps, got {len(taps)}"
        )
    if len(luminances) < GAMMA_TAP_COUNT:
        raise MalformedInput(
            f"Need >= {GAMMA_TAP_COUNT} luminance values, "
            f"got {len(luminances)}"
        )

    engine.load_vcom(vcom.vcm, vcom.vrh)
    logger.debug("VCOM loaded: VCM=0x%X VRH=0x%X", vcom.vcm, vcom.vrh)

    engine.load_gamma_taps(list(taps[:GAMMA_TAP_COUNT]))
    # Voltages must be computed after the taps and before the luminances
    engine.calculate_voltages()
    engine.load_luminance([float(v) for v in luminances[:GAMMA_TAP_COUNT]])

    registers = list(engine.read_registers())
    if not registers:
        raise RegisterEngineError("Gamma register engine returned no values")
    logger.info("Gamma register computation returned %d values", len(registers))
    return registers
