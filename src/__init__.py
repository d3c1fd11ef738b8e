"""Shared station utilities for the panel gamma calibration tooling.

Architecture layers (strict one-way dependency):
    panel_gamma/scripts/ → panel_gamma/{calibration,acquisition,analysis,hardware,records}/ → src/utils/

Key invariants:
    - Gray levels are 8-bit stimulus values [0, 255]
    - Luminance in cd/m^2, chromaticity in CIE 1931 xy
    - YAML for station config, CSV for operator tables and run records
"""

__version__ = "1.0.0"
