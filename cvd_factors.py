# cvd_factors.py
# Contributing risk factors shown alongside a 10-year risk estimate.
# Order matters for display: demographics, lifestyle, vitals, lipids,
# diabetes, family history, conditions, medications, Lp(a).

from dataclasses import dataclass
from enum import Enum
from typing import List, Mapping, Optional, Tuple


class Impact(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass(frozen=True)
class ContributingFactor:
    name: str
    impact: Impact
    description: str


# (flag key, name, impact, description); male_only flags skipped for women
_CONDITION_FACTORS: Tuple[Tuple[str, str, Impact, str], ...] = (
    ("af", "Atrial fibrillation", Impact.HIGH, "Atrial fibrillation substantially increases stroke risk"),
    ("renal", "Chronic kidney disease", Impact.HIGH, "CKD stages 3-5 significantly increases CVD risk"),
    ("ra", "Rheumatoid arthritis", Impact.MODERATE, "Rheumatoid arthritis increases CVD risk"),
    ("sle", "Systemic lupus erythematosus", Impact.MODERATE, "SLE increases CVD risk"),
    ("migraine", "Migraine", Impact.LOW, "Migraine slightly increases stroke risk"),
    ("semi", "Severe mental illness", Impact.LOW, "Severe mental illness slightly increases CVD risk"),
    ("impotence", "Erectile dysfunction", Impact.MODERATE,
     "Erectile dysfunction is associated with increased CVD risk in men"),
)

_MEDICATION_FACTORS: Tuple[Tuple[str, str, Impact, str], ...] = (
    ("atypical_antipsychotics", "Atypical antipsychotics", Impact.LOW,
     "Atypical antipsychotics slightly increase CVD risk"),
    ("corticosteroids", "Corticosteroids", Impact.MODERATE, "Regular corticosteroid use increases CVD risk"),
)

_SMOKING_IMPACT = {1: None, 2: Impact.LOW, 3: Impact.MODERATE, 4: Impact.HIGH}


def contributing_factors(
    age: float,
    male: bool,
    smoking_category: int = 0,
    bmi: Optional[float] = None,
    sbp: Optional[float] = None,
    chol_ratio: Optional[float] = None,
    diabetes: str = "none",
    family_history: bool = False,
    flags: Optional[Mapping[str, bool]] = None,
    lpa_mgdl: Optional[float] = None,
) -> Tuple[ContributingFactor, ...]:
    flags = flags or {}
    out: List[ContributingFactor] = []

    if age >= 65:
        out.append(ContributingFactor("Advanced age", Impact.HIGH, "Age is a strong independent risk factor for CVD"))
    elif age >= 55:
        out.append(ContributingFactor("Age", Impact.MODERATE, "Age is a significant risk factor for CVD"))

    # ex-smokers (category 1) are not listed
    smoke_impact = _SMOKING_IMPACT.get(smoking_category)
    if smoke_impact is not None:
        out.append(ContributingFactor("Smoking", smoke_impact, "Smoking significantly increases CVD risk"))

    if bmi is not None:
        if bmi >= 30:
            out.append(ContributingFactor("Obesity", Impact.MODERATE, "BMI ≥30 kg/m² increases CVD risk"))
        elif bmi >= 25:
            out.append(ContributingFactor("Overweight", Impact.LOW, "BMI 25-29.9 kg/m² slightly increases CVD risk"))

    if sbp is not None:
        if sbp >= 160:
            out.append(ContributingFactor(
                "Severe hypertension", Impact.HIGH, "Systolic BP ≥160 mmHg significantly increases CVD risk"))
        elif sbp >= 140:
            out.append(ContributingFactor("Hypertension", Impact.MODERATE, "Systolic BP 140-159 mmHg increases CVD risk"))

    if chol_ratio is not None:
        if chol_ratio >= 6:
            out.append(ContributingFactor(
                "Poor cholesterol ratio", Impact.HIGH, "Total:HDL cholesterol ratio ≥6 significantly increases risk"))
        elif chol_ratio >= 4.5:
            out.append(ContributingFactor(
                "Elevated cholesterol ratio", Impact.MODERATE, "Total:HDL cholesterol ratio 4.5-5.9 increases risk"))

    if diabetes == "type1":
        out.append(ContributingFactor("Type 1 diabetes", Impact.HIGH, "Type 1 diabetes significantly increases CVD risk"))
    elif diabetes == "type2":
        out.append(ContributingFactor("Type 2 diabetes", Impact.HIGH, "Type 2 diabetes significantly increases CVD risk"))

    if family_history:
        out.append(ContributingFactor(
            "Family history of CVD", Impact.MODERATE, "Premature CVD in first-degree relative increases risk"))

    for key, name, impact, desc in _CONDITION_FACTORS:
        if key == "impotence" and not male:
            continue
        if flags.get(key):
            out.append(ContributingFactor(name, impact, desc))

    for key, name, impact, desc in _MEDICATION_FACTORS:
        if flags.get(key):
            out.append(ContributingFactor(name, impact, desc))

    if lpa_mgdl is not None:
        if lpa_mgdl >= 180:
            out.append(ContributingFactor("Very high Lp(a)", Impact.HIGH, "Lp(a) ≥180 mg/dL substantially increases CVD risk"))
        elif lpa_mgdl >= 50:
            out.append(ContributingFactor("Elevated Lp(a)", Impact.MODERATE, "Lp(a) ≥50 mg/dL increases CVD risk"))
        elif lpa_mgdl >= 30:
            out.append(ContributingFactor("Borderline Lp(a)", Impact.LOW, "Lp(a) 30-49 mg/dL slightly increases CVD risk"))

    return tuple(out)
