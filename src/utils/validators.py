"""Row schema validation for operator-supplied calibration tables.

Provides centralized validation for every CSV record the station reads,
using pydantic:
    - Gray-level plan rows (graylevels.csv): gray 0-255, prior brightness
    - White-point spec rows (targetxy.csv): SKU window in CIE 1931 xy
    - Sample table rows (measurements.csv / measured_rgbw.csv)

All readers must go through ``validate_row`` so that a malformed table fails
fast with an actionable message (file, line number, offending field).

Units:
    - Gray: 8-bit stimulus level [0, 255]
    - Luminance: cd/m^2
    - Chromaticity: CIE 1931 x, y in [0, 1]

Usage:
    from src.utils import validators

    row = validators.validate_row(
        validators.WhitePointSpecRow, raw, source="targetxy.csv", line=2,
    )
"""

from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

RowT = TypeVar("RowT", bound=BaseModel)


# ============================================================================
# GRAY-LEVEL PLAN
# ============================================================================

class GrayLevelRow(BaseModel):
    """One entry of the operator's gray-level plan."""
    gray: int = Field(..., ge=0, le=255, description="Stimulus level (0-255)")
    brightness: str = Field(default="", description="Prior measured brightness, verbatim")

    @field_validator('brightness', mode='before')
    @classmethod
    def strip_brightness(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()


# ============================================================================
# WHITE-POINT SPEC TABLE
# ============================================================================

class WhitePointSpecRow(BaseModel):
    """Rectangular white-point window for one SKU (CIE 1931 xy)."""
    sku: str = Field(..., min_length=1, description="SKU name")
    x_min: float = Field(..., ge=0.0, le=1.0)
    x_max: float = Field(..., ge=0.0, le=1.0)
    y_min: float = Field(..., ge=0.0, le=1.0)
    y_max: float = Field(..., ge=0.0, le=1.0)

    @field_validator('sku', mode='before')
    @classmethod
    def strip_sku(cls, v: Any) -> str:
        return str(v).strip()

    @model_validator(mode='after')
    def validate_window(self) -> 'WhitePointSpecRow':
        if self.x_min > self.x_max:
            raise ValueError(f"x_min ({self.x_min}) must be <= x_max ({self.x_max})")
        if self.y_min > self.y_max:
            raise ValueError(f"y_min ({self.y_min}) must be <= y_max ({self.y_max})")
        return self


# ============================================================================
# SAMPLE TABLE
# ============================================================================

class SampleRow(BaseModel):
    """One photometer observation from a sample table."""
    channel: str = Field(default="GRAY", min_length=1)
    gray: int = Field(..., ge=0, le=255)
    luminance: float = Field(..., ge=0.0, description="Lv in cd/m^2")
    x: float
    y: float
    cct: Optional[float] = Field(default=None, description="Correlated colour temperature (K)")
    duv: Optional[float] = None

    @field_validator('luminance', mode='before')
    @classmethod
    def strip_float_suffix(cls, v: Any) -> Any:
        # Brightness tables carry C-style float literals ("123.45f")
        if isinstance(v, str):
            return v.strip().rstrip('fF')
        return v

    @field_validator('channel', mode='before')
    @classmethod
    def normalise_channel(cls, v: Any) -> str:
        return str(v).strip().upper()

    @field_validator('cct', 'duv', mode='before')
    @classmethod
    def empty_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


# ============================================================================
# PUBLIC API
# ============================================================================

def validate_row(
    model: Type[RowT],
    raw: Dict[str, Any],
    *,
    source: Union[str, Path] = "<memory>",
    line: Optional[int] = None,
) -> RowT:
    """Validate one raw record against *model*.

    Parameters
    ----------
    model : Type[BaseModel]
        Row schema (``GrayLevelRow``, ``WhitePointSpecRow``, ``SampleRow``)
    raw : dict
        Field name → raw (usually string) value
    source : Union[str, Path]
        File the record came from, for the error message
    line : int, optional
        1-based line number in *source*

    Returns
    -------
    BaseModel
        Validated row

    Raises
    ------
    ValueError
        If validation fails (with file, line and field in the message)
    """
    try:
        return model(**raw)
    except ValidationError as e:
        where = f"{source}:{line}" if line is not None else str(source)
        raise ValueError(f"Invalid {model.__name__} at {where}: {e}") from e
