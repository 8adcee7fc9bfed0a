# cvd_units.py
# Unit conversion for the CVD risk engines.
#
# All functions are total: None in -> None out, same-unit and unknown unit pairs
# return the value unchanged so callers can detect the no-op themselves.

import math
from typing import Iterable, Optional

MGDL_PER_MMOLL_CHOL = 38.67      # cholesterol (TC / HDL / LDL)
LPA_NMOLL_PER_MGDL = 2.5         # estimated; true factor depends on isoform size
CM_PER_INCH = 2.54
KG_PER_LB = 0.45359237

MGDL = "mg/dL"
MMOLL = "mmol/L"
NMOLL = "nmol/L"

_UNIT_ALIASES = {
    "mg/dl": MGDL,
    "mgdl": MGDL,
    "mmol/l": MMOLL,
    "mmol": MMOLL,
    "nmol/l": NMOLL,
    "nmol": NMOLL,
}


def canonical_unit(unit: Optional[str]) -> Optional[str]:
    """Map loose unit spellings ('MG/DL', 'mmol') onto the canonical labels."""
    if unit is None:
        return None
    key = str(unit).strip().lower().replace(" ", "")
    return _UNIT_ALIASES.get(key, str(unit).strip())


# ----------------------------
# Lipids
# ----------------------------
def convert_cholesterol(value: Optional[float], from_unit: str, to_unit: str) -> Optional[float]:
    if value is None:
        return None
    src, dst = canonical_unit(from_unit), canonical_unit(to_unit)
    v = float(value)
    if src == dst:
        return v
    if src == MGDL and dst == MMOLL:
        return v / MGDL_PER_MMOLL_CHOL
    if src == MMOLL and dst == MGDL:
        return v * MGDL_PER_MMOLL_CHOL
    return v


def convert_lpa(value: Optional[float], from_unit: str, to_unit: str) -> Optional[float]:
    """
    mg/dL -> nmol/L multiplies by 2.5; nmol/L -> mg/dL divides by 2.5
    (equivalent to multiplying by 0.4). A mg/dL -> nmol/L -> mg/dL round trip
    returns the input exactly when x * 2.5 is exact in binary floating point
    (integers and halves, for example); otherwise it agrees to within float
    rounding.
    """
    if value is None:
        return None
    src, dst = canonical_unit(from_unit), canonical_unit(to_unit)
    v = float(value)
    if src == dst:
        return v
    if src == MGDL and dst == NMOLL:
        return v * LPA_NMOLL_PER_MGDL
    if src == NMOLL and dst == MGDL:
        return v / LPA_NMOLL_PER_MGDL
    return v


# ----------------------------
# Anthropometrics
# ----------------------------
def height_to_cm(feet: Optional[float], inches: Optional[float]) -> Optional[float]:
    if feet is None and inches is None:
        return None
    return (float(feet or 0) * 12 + float(inches or 0)) * CM_PER_INCH


def weight_to_kg(pounds: Optional[float]) -> Optional[float]:
    if pounds is None:
        return None
    return float(pounds) * KG_PER_LB


def calculate_bmi(height_cm: Optional[float], weight_kg: Optional[float]) -> Optional[float]:
    if not height_cm or not weight_kg:
        return None
    height_m = float(height_cm) / 100.0
    return float(weight_kg) / (height_m * height_m)


# ----------------------------
# Blood pressure variability
# ----------------------------
def sample_standard_deviation(readings: Iterable[float]) -> Optional[float]:
    """Sample SD (n-1 denominator). None when fewer than two readings."""
    vals = [float(r) for r in readings]
    if len(vals) < 2:
        return None
    mean = sum(vals) / len(vals)
    ss = sum((v - mean) ** 2 for v in vals)
    return math.sqrt(ss / (len(vals) - 1))
