# cvd_recommendations.py
# CCS 2021 dyslipidemia treatment recommendations.
#
# Decision tree (top-down, modified 10-year risk):
#   High (>=20%):     high-intensity statin; ezetimibe if LDL >=1.8; PCSK9i if LDL >=2.5;
#                     Lp(a) >=50 mg/dL adds an aggressive-target note
#   Moderate (10-20): statin on LDL >=3.5 or diabetes with age >=40, else consider;
#                     ezetimibe if LDL >=2.0
#   Low (<10%):       LDL >=5.0 -> consider statin + FH genetic testing; else no pharmacotherapy
# Lifestyle statements are always appended.
#
# Every populated slot carries a RecommendationReason; rationale and evidence
# are looked up by that tag, never by matching the recommendation text.
#
# The PCSK9 gate compares the same pre-treatment LDL against 2.5 mmol/L; no
# post-ezetimibe LDL is simulated.

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from cvd_modifiers import RiskCategory, categorize
from cvd_trace import Trace, add_trace

logger = logging.getLogger(__name__)

EZETIMIBE_HIGH_RISK_LDL = 1.8
PCSK9_HIGH_RISK_LDL = 2.5
STATIN_MODERATE_RISK_LDL = 3.5
EZETIMIBE_MODERATE_RISK_LDL = 2.0
FH_SUSPECT_LDL = 5.0
DIABETES_STATIN_AGE = 40

LDL_TARGET_HIGH_RISK = 1.8
LDL_TARGET_DEFAULT = 2.0

REFERENCES: Tuple[str, ...] = (
    "Pearson GJ, et al. 2021 Canadian Cardiovascular Society Guidelines for the Management of "
    "Dyslipidemia for the Prevention of Cardiovascular Disease in Adults. Can J Cardiol. 2021;37(8):1129-1150.",
    "Anderson TJ, et al. 2016 Canadian Cardiovascular Society Guidelines for the Management of "
    "Dyslipidemia for the Prevention of Cardiovascular Disease in the Adult. Can J Cardiol. 2016;32(11):1263-1282.",
)

NON_PHARMACOLOGICAL: Tuple[str, ...] = (
    "Reinforce therapeutic lifestyle changes including Mediterranean or DASH diet",
    "Encourage regular physical activity (150+ minutes/week of moderate activity)",
    "Smoking cessation for all smokers",
)


class Evidence(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"

    @property
    def label(self) -> str:
        return f"{self.value.capitalize()}-Quality Evidence"


class RecommendationReason(str, Enum):
    HIGH_INTENSITY_INDICATED = "high_intensity_indicated"
    EZETIMIBE_HIGH_RISK = "ezetimibe_high_risk"
    PCSK9_HIGH_RISK = "pcsk9_high_risk"
    LPA_AGGRESSIVE_TARGET = "lpa_aggressive_target"
    LDL_THRESHOLD_STATIN = "ldl_threshold_statin"
    DIABETES_AGE_THRESHOLD = "diabetes_age_threshold"
    MODERATE_STATIN_CONSIDER = "moderate_statin_consider"
    EZETIMIBE_MODERATE_RISK = "ezetimibe_moderate_risk"
    FH_LDL_STATIN = "fh_ldl_statin"
    FH_GENETIC_TESTING = "fh_genetic_testing"
    PHARMACOTHERAPY_NOT_RECOMMENDED = "pharmacotherapy_not_recommended"
    LIFESTYLE = "lifestyle"


_EZETIMIBE_RATIONALE = (
    "CCS Guidelines recommend adding ezetimibe for patients not at target despite maximum tolerated "
    "statin therapy. Ezetimibe typically provides an additional 15-25% reduction in LDL-C.",
    Evidence.HIGH,
)

RATIONALES = {
    RecommendationReason.HIGH_INTENSITY_INDICATED: (
        "CCS Guidelines recommend high-intensity statin therapy for patients with LDL-C ≥3.5 mmol/L, "
        "established ASCVD, or high cardiovascular risk. High-intensity statin therapy is associated with "
        "≥50% reduction in LDL-C.",
        Evidence.HIGH,
    ),
    RecommendationReason.EZETIMIBE_HIGH_RISK: _EZETIMIBE_RATIONALE,
    RecommendationReason.EZETIMIBE_MODERATE_RISK: _EZETIMIBE_RATIONALE,
    RecommendationReason.PCSK9_HIGH_RISK: (
        "CCS Guidelines recommend considering PCSK9 inhibitors for patients with established ASCVD, FH, or "
        "high cardiovascular risk who have not achieved target LDL-C despite maximum tolerated statin and "
        "ezetimibe therapy. PCSK9 inhibitors typically reduce LDL-C by an additional 50-60%. For High Risk "
        "patients, more aggressive LDL-C lowering provides additional benefit (CCS Guidelines 2021).",
        Evidence.HIGH,
    ),
    RecommendationReason.LPA_AGGRESSIVE_TARGET: (
        "CCS Guidelines recognize elevated Lp(a) (≥50 mg/dL or ≥100 nmol/L) as an independent risk factor "
        "warranting more aggressive LDL-C targets and family screening.",
        Evidence.MODERATE,
    ),
    RecommendationReason.LDL_THRESHOLD_STATIN: (
        "CCS Guidelines recommend statin therapy for intermediate-risk patients with LDL-C ≥3.5 mmol/L "
        "to achieve a ≥30% reduction in LDL-C.",
        Evidence.MODERATE,
    ),
    RecommendationReason.DIABETES_AGE_THRESHOLD: (
        "CCS Guidelines recommend statin therapy for most patients with diabetes aged ≥40 years, "
        "a statin-indicated condition independent of the calculated risk score.",
        Evidence.HIGH,
    ),
    RecommendationReason.MODERATE_STATIN_CONSIDER: (
        "CCS Guidelines recommend moderate-intensity statin therapy for intermediate risk patients "
        "to achieve 30-50% reduction in LDL-C.",
        Evidence.MODERATE,
    ),
    RecommendationReason.FH_LDL_STATIN: (
        "CCS Guidelines recommend statin therapy for LDL-C ≥5.0 mmol/L irrespective of the calculated "
        "risk score, since risk engines underestimate risk in familial hypercholesterolemia.",
        Evidence.HIGH,
    ),
    RecommendationReason.FH_GENETIC_TESTING: (
        "LDL-C ≥5.0 mmol/L may indicate familial hypercholesterolemia, which requires specific "
        "management and family screening.",
        Evidence.HIGH,
    ),
    RecommendationReason.PHARMACOTHERAPY_NOT_RECOMMENDED: (
        "CCS Guidelines recommend pharmacotherapy only for specific indications in low-risk patients, "
        "emphasizing lifestyle modifications as primary preventive strategy.",
        Evidence.HIGH,
    ),
    RecommendationReason.LIFESTYLE: (
        "CCS Guidelines emphasize that lifestyle modifications should be prescribed in all patients, "
        "including nutritional counseling and regular physical activity, independent of pharmacologic therapy.",
        Evidence.HIGH,
    ),
}


@dataclass(frozen=True)
class Recommendation:
    text: str
    reason: RecommendationReason
    rationale: str
    evidence: Evidence


@dataclass(frozen=True)
class RecommendationSet:
    risk_category: RiskCategory
    statin_change: Optional[Recommendation]
    ezetimibe_change: Optional[Recommendation]
    pcsk9_change: Optional[Recommendation]
    other_changes: Tuple[Recommendation, ...]
    non_pharmacological: Tuple[str, ...]
    non_pharmacological_rationale: str
    non_pharmacological_evidence: Evidence
    has_elevated_lpa: bool
    ldl_target: float
    at_ldl_target: Optional[bool]
    gap_to_ldl_target: Optional[float]
    references: Tuple[str, ...] = REFERENCES


def _rec(text: str, reason: RecommendationReason) -> Recommendation:
    rationale, evidence = RATIONALES[reason]
    return Recommendation(text=text, reason=reason, rationale=rationale, evidence=evidence)


def recommend(
    risk_pct: float,
    ldl_mmol: Optional[float] = None,
    has_diabetes: bool = False,
    age: Optional[int] = None,
    lpa_elevated: bool = False,
    trace: Optional[Trace] = None,
) -> RecommendationSet:
    """
    Build the CCS recommendation set for a modified 10-year risk percentage.
    `ldl_mmol` None skips every LDL-gated branch; `age` None skips the
    diabetes/age statin indication.
    """
    category = categorize(risk_pct)
    statin: Optional[Recommendation] = None
    ezetimibe: Optional[Recommendation] = None
    pcsk9: Optional[Recommendation] = None
    other: List[Recommendation] = []

    ldl_known = ldl_mmol is not None

    if category is RiskCategory.HIGH:
        statin = _rec("High-intensity statin therapy is strongly recommended",
                      RecommendationReason.HIGH_INTENSITY_INDICATED)
        add_trace(trace, "Rec_high_statin", risk_pct, "High-intensity statin")

        if ldl_known and ldl_mmol >= EZETIMIBE_HIGH_RISK_LDL:
            ezetimibe = _rec("Add ezetimibe if LDL-C remains ≥1.8 mmol/L despite maximum statin",
                             RecommendationReason.EZETIMIBE_HIGH_RISK)
            add_trace(trace, "Rec_high_ezetimibe", ldl_mmol, "LDL-C ≥1.8 mmol/L")

            if ldl_mmol >= PCSK9_HIGH_RISK_LDL:
                pcsk9 = _rec(
                    "Consider PCSK9 inhibitor if LDL-C remains ≥2.5 mmol/L despite maximum tolerated "
                    "statin plus ezetimibe",
                    RecommendationReason.PCSK9_HIGH_RISK,
                )
                add_trace(trace, "Rec_high_pcsk9", ldl_mmol, "LDL-C ≥2.5 mmol/L (pre-treatment value reused)")

        if lpa_elevated:
            other.append(_rec("More aggressive LDL-C targets may be beneficial with elevated Lp(a)",
                              RecommendationReason.LPA_AGGRESSIVE_TARGET))
            add_trace(trace, "Rec_high_lpa", True, "Elevated Lp(a) note")

    elif category is RiskCategory.MODERATE:
        if ldl_known and ldl_mmol >= STATIN_MODERATE_RISK_LDL:
            statin = _rec("Statin therapy recommended as LDL-C ≥3.5 mmol/L",
                          RecommendationReason.LDL_THRESHOLD_STATIN)
        elif has_diabetes and age is not None and age >= DIABETES_STATIN_AGE:
            statin = _rec("Statin therapy recommended for diabetes patients ≥40 years",
                          RecommendationReason.DIABETES_AGE_THRESHOLD)
        else:
            statin = _rec("Consider moderate to high-intensity statin therapy",
                          RecommendationReason.MODERATE_STATIN_CONSIDER)
        add_trace(trace, "Rec_moderate_statin", statin.reason.value, statin.text)

        if ldl_known and ldl_mmol >= EZETIMIBE_MODERATE_RISK_LDL:
            ezetimibe = _rec("Consider adding ezetimibe if LDL-C remains ≥2.0 mmol/L despite statin",
                             RecommendationReason.EZETIMIBE_MODERATE_RISK)
            add_trace(trace, "Rec_moderate_ezetimibe", ldl_mmol, "LDL-C ≥2.0 mmol/L")

    else:
        if ldl_known and ldl_mmol >= FH_SUSPECT_LDL:
            statin = _rec("Consider statin therapy as LDL-C ≥5.0 mmol/L", RecommendationReason.FH_LDL_STATIN)
            other.append(_rec("Consider referral for genetic testing for familial hypercholesterolemia",
                              RecommendationReason.FH_GENETIC_TESTING))
            add_trace(trace, "Rec_low_fh", ldl_mmol, "LDL-C ≥5.0 mmol/L: statin + FH testing")
        else:
            statin = _rec("Pharmacotherapy generally not recommended",
                          RecommendationReason.PHARMACOTHERAPY_NOT_RECOMMENDED)
            add_trace(trace, "Rec_low_none", risk_pct, "Lifestyle only")

    target = LDL_TARGET_HIGH_RISK if category is RiskCategory.HIGH else LDL_TARGET_DEFAULT
    at_target = (ldl_mmol < target) if ldl_known else None
    gap = (ldl_mmol - target) if ldl_known else None

    lifestyle_rationale, lifestyle_evidence = RATIONALES[RecommendationReason.LIFESTYLE]
    logger.debug("Recommendations for %.2f%% (%s): statin=%s", risk_pct, category.value, statin.reason.value)

    return RecommendationSet(
        risk_category=category,
        statin_change=statin,
        ezetimibe_change=ezetimibe,
        pcsk9_change=pcsk9,
        other_changes=tuple(other),
        non_pharmacological=NON_PHARMACOLOGICAL,
        non_pharmacological_rationale=lifestyle_rationale,
        non_pharmacological_evidence=lifestyle_evidence,
        has_elevated_lpa=lpa_elevated,
        ldl_target=target,
        at_ldl_target=at_target,
        gap_to_ldl_target=gap,
    )


def format_recommendations(recs: RecommendationSet) -> List[Tuple[str, str, str, str]]:
    """
    Ordered display rows: (heading, text, rationale, evidence label).
    Mirrors the recommendation panel: statin, ezetimibe, PCSK9, additional, lifestyle.
    """
    rows: List[Tuple[str, str, str, str]] = []

    if recs.statin_change:
        r = recs.statin_change
        rows.append(("Statin Therapy", r.text, r.rationale, r.evidence.label))

    if recs.ezetimibe_change:
        r = recs.ezetimibe_change
        rationale = r.rationale
        if recs.at_ldl_target is False and recs.gap_to_ldl_target is not None:
            rationale += f" Current LDL-C is {recs.gap_to_ldl_target:.2f} mmol/L above target."
        rows.append(("Ezetimibe", r.text, rationale, r.evidence.label))

    if recs.pcsk9_change:
        r = recs.pcsk9_change
        rows.append(("PCSK9 Inhibitor", r.text, r.rationale, r.evidence.label))

    for r in recs.other_changes:
        rows.append(("Additional Recommendations", r.text, r.rationale, r.evidence.label))

    if recs.non_pharmacological:
        rows.append((
            "Non-Pharmacological Therapy",
            "; ".join(recs.non_pharmacological),
            recs.non_pharmacological_rationale,
            recs.non_pharmacological_evidence.label,
        ))
    return rows
