# cvd_modifiers.py
# Lp(a) post-test risk modifier and 10-year risk categories.
#
# Lp(a) bands follow Willeit P, et al. Lancet 2018;392:1311-1320, expressed as
# a piecewise-linear multiplier on the base 10-year risk.

from enum import Enum
from typing import Optional, Tuple

LPA_ELEVATED_MGDL = 50.0

# (lower mg/dL, upper mg/dL, modifier at lower bound, slope per mg/dL)
LPA_BANDS: Tuple[Tuple[float, float, float, float], ...] = (
    (30.0, 50.0, 1.0, 0.3 / 20),
    (50.0, 100.0, 1.3, 0.3 / 50),
    (100.0, 200.0, 1.6, 0.4 / 100),
    (200.0, 300.0, 2.0, 1.0 / 100),
)
LPA_FLOOR_MGDL = 30.0
LPA_CEILING_MGDL = 300.0
LPA_MAX_MODIFIER = 3.0

MODERATE_RISK_PCT = 10.0
HIGH_RISK_PCT = 20.0


class RiskCategory(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


def lpa_modifier(lpa_mgdl: Optional[float]) -> float:
    """Multiplier in [1.0, 3.0]; absent Lp(a) is neutral (1.0)."""
    if lpa_mgdl is None:
        return 1.0
    v = float(lpa_mgdl)
    if v < LPA_FLOOR_MGDL:
        return 1.0
    if v >= LPA_CEILING_MGDL:
        return LPA_MAX_MODIFIER
    for lo, hi, base, slope in LPA_BANDS:
        if lo <= v < hi:
            return base + (v - lo) * slope
    return 1.0


def lpa_is_elevated(lpa_mgdl: Optional[float]) -> bool:
    return lpa_mgdl is not None and float(lpa_mgdl) >= LPA_ELEVATED_MGDL


def apply_modifier(base_risk: float, modifier: float) -> float:
    return max(0.0, min(100.0, base_risk * modifier))


def categorize(risk_pct: float) -> RiskCategory:
    if risk_pct < MODERATE_RISK_PCT:
        return RiskCategory.LOW
    if risk_pct < HIGH_RISK_PCT:
        return RiskCategory.MODERATE
    return RiskCategory.HIGH
