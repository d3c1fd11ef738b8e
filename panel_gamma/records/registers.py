"""Register files for the gamma register engine.

    vcom.csv       header, then ``VCM,VRH`` in hex on the first data line
    gamma.csv      Index,Value   (Value in hex)
    gamma_out.csv  Index,Value   (Value in upper-case hex, no prefix)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from src.utils import fs

from panel_gamma.hardware.register_engine import VcomSetting
from panel_gamma.models.samples import MalformedInput
from panel_gamma.records.tables import read_csv_rows, render_csv

logger = logging.getLogger(__name__)

REGISTER_HEADER = ["Index", "Value"]


def _hex(text: str, where: str) -> int:
    try:
        return int(text.strip(), 16)
    except ValueError:
        raise MalformedInput(f"{where}: {text!r} is not a hex value") from None


def read_vcom(path: str | Path) -> VcomSetting:
    """Read the VCM/VRH pair from the first data line."""
    _, rows = read_csv_rows(path)
    if not rows:
        raise MalformedInput(f"{path} has no data line")
    line_no, cells = rows[0]
    if len(cells) < 2:
        raise MalformedInput(f"{path}:{line_no}: expected VCM,VRH")
    where = f"{path}:{line_no}"
    return VcomSetting(vcm=_hex(cells[0], where), vrh=_hex(cells[1], where))


def read_gamma_taps(path: str | Path) -> list[int]:
    """Read the tap register values (second column, hex) in file order."""
    _, rows = read_csv_rows(path)
    taps = []
    for line_no, cells in rows:
        if len(cells) < 2:
            raise MalformedInput(f"{path}:{line_no}: expected Index,Value")
        taps.append(_hex(cells[1], f"{path}:{line_no}"))
    logger.info("Loaded %d gamma taps from %s", len(taps), path)
    return taps


def write_register_values(path: str | Path, values: Sequence[int]) -> None:
    fs.atomic_write_text(
        path,
        render_csv(REGISTER_HEADER, ((i, f"{v:X}") for i, v in enumerate(values))),
    )
    logger.info("Saved %d register values to %s", len(values), path)
