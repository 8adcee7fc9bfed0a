# cvd_framingham.py
# Framingham general CVD risk (D'Agostino 2008, log-linear form with intercept).
#
# Inputs are expected pre-validated and already in mmol/L for cholesterol.
# Nothing here re-checks the log domain: a non-positive age, TC, HDL or SBP
# raises from math.log and that propagates to the caller.

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

FRAMINGHAM_AGE_RANGE: Tuple[int, int] = (30, 74)


@dataclass(frozen=True)
class FraminghamCoefficients:
    ln_age: float
    ln_tc: float
    ln_hdl: float
    ln_sbp_untreated: float
    ln_sbp_treated: float
    smoker: float
    diabetes: float
    constant: float
    s0: float


FRAMINGHAM_MALE = FraminghamCoefficients(
    ln_age=3.11296,
    ln_tc=1.12370,
    ln_hdl=-0.93263,
    ln_sbp_untreated=1.93303,
    ln_sbp_treated=1.99881,
    smoker=0.65451,
    diabetes=0.57367,
    constant=-23.9802,
    s0=0.88431,
)

FRAMINGHAM_FEMALE = FraminghamCoefficients(
    ln_age=2.72107,
    ln_tc=1.20904,
    ln_hdl=-0.70833,
    ln_sbp_untreated=2.76157,
    ln_sbp_treated=2.82263,
    smoker=0.52873,
    diabetes=0.69154,
    constant=-26.1931,
    s0=0.94833,
)


def coefficients_for(male: bool) -> FraminghamCoefficients:
    return FRAMINGHAM_MALE if male else FRAMINGHAM_FEMALE


def framingham_linear_predictor(
    male: bool,
    age: float,
    tc_mmol: float,
    hdl_mmol: float,
    sbp: float,
    bp_treated: bool,
    smoker: bool,
    diabetes: bool,
) -> float:
    c = coefficients_for(male)
    ln_sbp_coef = c.ln_sbp_treated if bp_treated else c.ln_sbp_untreated

    lp = 0.0
    lp += c.ln_age * math.log(age)
    lp += c.ln_tc * math.log(tc_mmol)
    lp += c.ln_hdl * math.log(hdl_mmol)
    lp += ln_sbp_coef * math.log(sbp)
    if smoker:
        lp += c.smoker
    if diabetes:
        lp += c.diabetes
    return lp + c.constant


def framingham_10y_risk(
    male: bool,
    age: float,
    tc_mmol: float,
    hdl_mmol: float,
    sbp: float,
    bp_treated: bool,
    smoker: bool,
    diabetes: bool,
) -> float:
    """Return the 10-year CVD risk as a percentage in [0, 100]."""
    lp = framingham_linear_predictor(male, age, tc_mmol, hdl_mmol, sbp, bp_treated, smoker, diabetes)
    s0 = coefficients_for(male).s0
    risk = 1.0 - s0 ** math.exp(lp)
    pct = max(0.0, min(100.0, risk * 100.0))
    logger.debug("Framingham lp=%.5f risk=%.3f%%", lp, pct)
    return pct


# Heart age: the age at which a reference patient with ideal modifiable
# factors (TC 4.0, HDL 1.5 mmol/L, SBP 110 untreated, no smoking, no
# diabetes) reaches the same 10-year risk.
HEART_AGE_REFERENCE = {"tc_mmol": 4.0, "hdl_mmol": 1.5, "sbp": 110.0}
HEART_AGE_SEARCH: Tuple[float, float] = (20.0, 90.0)
HEART_AGE_BOUNDS: Tuple[int, int] = (20, 95)
HEART_AGE_MAX_ITERATIONS = 25
HEART_AGE_TOLERANCE = 0.0005  # risk proportion, not percent


def _clamp_age(age: float) -> int:
    lo, hi = HEART_AGE_BOUNDS
    return max(lo, min(hi, int(math.floor(age + 0.5))))


def framingham_heart_age(male: bool, risk_pct: float, age: Optional[float] = None) -> int:
    """Bisect for the reference-patient age whose risk matches ``risk_pct``.

    A risk below 0.01% (or NaN) carries no signal; the chronological ``age``
    is returned when given, else the lower bound. The result is rounded
    half-up and bounded to HEART_AGE_BOUNDS.
    """
    target = risk_pct / 100.0
    if math.isnan(target) or target < 0.0001:
        logger.debug("Heart age: risk %.4f%% too low to estimate", risk_pct)
        return _clamp_age(age if age is not None else HEART_AGE_BOUNDS[0])

    lo, hi = HEART_AGE_SEARCH
    estimate = age if age is not None else (lo + hi) / 2
    iterations = 0
    while iterations < HEART_AGE_MAX_ITERATIONS and hi - lo > 0.1:
        test_age = (lo + hi) / 2
        test_risk = framingham_10y_risk(
            male, test_age, HEART_AGE_REFERENCE["tc_mmol"], HEART_AGE_REFERENCE["hdl_mmol"],
            HEART_AGE_REFERENCE["sbp"], False, False, False,
        ) / 100.0
        if abs(test_risk - target) < HEART_AGE_TOLERANCE:
            estimate = test_age
            break
        if test_risk < target:
            lo = test_age
        else:
            hi = test_age
        estimate = (lo + hi) / 2
        iterations += 1

    logger.debug("Heart age: risk=%.3f%% estimate=%.3f after %d steps", risk_pct, estimate, iterations)
    return _clamp_age(estimate)
