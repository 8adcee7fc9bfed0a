# cvd_comparison.py
# Reconcile a Framingham and a QRISK3 result for the same patient.
#
# percent difference = |a - b| / mean(a, b) * 100 on modified risk
#   <10 similar, [10,30) moderate difference, >=30 substantial difference
# The governing (treatment) risk is always the higher estimate, never an average.

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from cvd_modifiers import RiskCategory, categorize

logger = logging.getLogger(__name__)

SIMILAR_PCT = 10.0
MODERATE_PCT = 30.0


class Agreement(str, Enum):
    SIMILAR = "similar"
    MODERATE = "moderate difference"
    SUBSTANTIAL = "substantial difference"


@dataclass(frozen=True)
class ComparisonResult:
    frs_result: Any
    qrisk_result: Any
    absolute_difference: float
    percent_difference: float
    agreement: Agreement
    governing_risk: float
    governing_category: RiskCategory
    higher_algorithm: Optional[str]
    interpretation: str


def classify_agreement(percent_difference: float) -> Agreement:
    if percent_difference < SIMILAR_PCT:
        return Agreement.SIMILAR
    if percent_difference < MODERATE_PCT:
        return Agreement.MODERATE
    return Agreement.SUBSTANTIAL


def percent_difference(a: float, b: float) -> float:
    mean = (a + b) / 2.0
    if mean == 0:
        return 0.0
    return abs(a - b) / mean * 100.0


def _algo_key(result: Any) -> str:
    algo = result.algorithm
    return getattr(algo, "value", algo)


def _interpretation(frs: float, qrisk: float, agreement: Agreement, governing: float,
                    category: RiskCategory) -> str:
    if agreement is Agreement.SIMILAR:
        text = (f"The Framingham Risk Score and QRISK3 provide similar risk estimates "
                f"({frs:.1f}% vs {qrisk:.1f}%), suggesting a consistent risk assessment.")
    elif agreement is Agreement.MODERATE:
        text = (f"There is a moderate difference between the Framingham Risk Score ({frs:.1f}%) "
                f"and QRISK3 ({qrisk:.1f}%). This may be due to the additional factors considered in "
                f"QRISK3 or differences in the underlying populations used to develop these scores.")
    else:
        text = (f"There is a substantial difference between the Framingham Risk Score ({frs:.1f}%) "
                f"and QRISK3 ({qrisk:.1f}%). This significant variation suggests that the additional "
                f"factors considered in QRISK3 (such as ethnicity, family history, or medical conditions) "
                f"may have a major impact on this individual's risk assessment.")

    if frs > qrisk:
        text += (" The Framingham Risk Score gives a higher risk estimate, which may be more "
                 "conservative for treatment decisions.")
    elif qrisk > frs:
        text += (" QRISK3 gives a higher risk estimate, which may account for additional risk "
                 "factors not captured in the Framingham score.")
    else:
        text += " Both scores give the same risk estimate."

    text += (f" Based on the higher risk score of {governing:.1f}%, this patient falls into the "
             f"{category.value} risk category for treatment considerations.")
    return text


def compare(a: Any, b: Any) -> ComparisonResult:
    """
    Compare two RiskResults computed by different algorithms.
    Argument order does not matter; results are sorted into Framingham / QRISK3.
    """
    key_a, key_b = _algo_key(a), _algo_key(b)
    if key_a == key_b:
        raise ValueError(f"compare() needs results from two different algorithms, got {key_a!r} twice")

    if key_a == "framingham":
        frs, qrisk = a, b
    else:
        frs, qrisk = b, a

    f_risk = frs.modified_risk
    q_risk = qrisk.modified_risk
    diff = abs(f_risk - q_risk)
    pct = percent_difference(f_risk, q_risk)
    agreement = classify_agreement(pct)
    governing = max(f_risk, q_risk)
    category = categorize(governing)

    if f_risk > q_risk:
        higher = _algo_key(frs)
    elif q_risk > f_risk:
        higher = _algo_key(qrisk)
    else:
        higher = None

    logger.debug("Comparison: frs=%.2f qrisk=%.2f pct=%.1f (%s)", f_risk, q_risk, pct, agreement.value)

    return ComparisonResult(
        frs_result=frs,
        qrisk_result=qrisk,
        absolute_difference=diff,
        percent_difference=pct,
        agreement=agreement,
        governing_risk=governing,
        governing_category=category,
        higher_algorithm=higher,
        interpretation=_interpretation(f_risk, q_risk, agreement, governing, category),
    )
