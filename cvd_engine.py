# cvd_engine.py
# CVD risk engine: Framingham + QRISK3 10-year risk, Lp(a) modifier,
# CCS 2021 recommendations and cross-algorithm comparison.
#
# Flow:
#   profile -> unit normalisation (lipids to mmol/L, Lp(a) to mg/dL, BMI, SBP SD)
#           -> Framingham and/or QRISK3 base risk
#           -> Lp(a) modifier -> category
#           -> recommendations on the governing (highest) modified risk
#           -> comparison when both algorithms ran
#
# Rule trace:
#     - trace: list of rule firings with values + effects (see cvd_trace.add_trace)
# Confidence:
#     - ages outside an algorithm's validated range are still scored; evaluate()
#       flags them as reducedConfidence and logs a warning
# Errors:
#     - MissingInputError when a required field is absent (or QRISK3 has no BMI source)
#     - log of a non-positive value is a caller contract violation and is not caught

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Mapping, Optional, Tuple, Union

from cvd_comparison import ComparisonResult, compare
from cvd_factors import ContributingFactor, contributing_factors
from cvd_framingham import FRAMINGHAM_AGE_RANGE, framingham_10y_risk, framingham_heart_age
from cvd_modifiers import (
    RiskCategory,
    apply_modifier,
    categorize,
    lpa_is_elevated,
    lpa_modifier,
)
from cvd_qrisk3 import QRISK3_AGE_RANGE, ethnicity_code, qrisk3_10y_risk, smoking_code
from cvd_recommendations import RecommendationSet, recommend
from cvd_trace import Trace, add_trace
from cvd_units import (
    MGDL,
    MMOLL,
    NMOLL,
    calculate_bmi,
    canonical_unit,
    convert_cholesterol,
    convert_lpa,
    height_to_cm,
    sample_standard_deviation,
    weight_to_kg,
)

logger = logging.getLogger(__name__)

VERSION = {
    "engine": "cvd-risk v1.0",
    "framingham": "Framingham 10y CVD (sex-specific log model, lipids in mmol/L)",
    "qrisk3": "QRISK3-2017 (Hippisley-Cox 2017)",
    "lpa": "Lp(a) piecewise modifier (Willeit 2018)",
    "recommendations": "CCS Dyslipidemia Guidelines 2021",
}

REQUIRED_FIELDS: Tuple[str, ...] = ("age", "sex", "sbp", "total_chol", "hdl")

BMI_OVERRIDE_TOLERANCE = 0.1
MIN_SBP_READINGS = 3


# ----------------------------
# Enums + errors
# ----------------------------
class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"

    @classmethod
    def parse(cls, value: Any) -> "Sex":
        if isinstance(value, cls):
            return value
        s = str(value).strip().lower()
        if s in ("m", "male"):
            return cls.MALE
        if s in ("f", "female"):
            return cls.FEMALE
        raise ValueError(f"Unrecognised sex: {value!r}")


class DiabetesStatus(str, Enum):
    NONE = "none"
    TYPE1 = "type1"
    TYPE2 = "type2"

    @classmethod
    def parse(cls, value: Any) -> "DiabetesStatus":
        # a bare True is read as type 2, the common case
        if isinstance(value, cls):
            return value
        if value is None or value is False:
            return cls.NONE
        if value is True:
            return cls.TYPE2
        s = str(value).strip().lower().replace(" ", "").replace("_", "")
        if s in ("type1", "t1", "1"):
            return cls.TYPE1
        if s in ("type2", "t2", "2", "yes", "true"):
            return cls.TYPE2
        return cls.NONE


class Algorithm(str, Enum):
    FRAMINGHAM = "framingham"
    QRISK3 = "qrisk3"


class MissingInputError(ValueError):
    def __init__(self, missing: List[str], context: str = "calculation"):
        self.missing = list(missing)
        super().__init__(f"Missing required input(s) for {context}: {', '.join(self.missing)}")


_TRUE_STRINGS = ("true", "yes", "y", "1")
_FALSE_STRINGS = ("false", "no", "n", "0", "")


def parse_bool(value: Any) -> bool:
    """Read a yes/no field that may arrive as a bool, a number or a form string."""
    if value is None:
        return False
    if isinstance(value, str):
        s = value.strip().lower()
        if s in _TRUE_STRINGS:
            return True
        if s in _FALSE_STRINGS:
            return False
        raise ValueError(f"Cannot read {value!r} as yes/no")
    return bool(value)


# ----------------------------
# Patient profile
# ----------------------------
@dataclass(frozen=True)
class PatientProfile:
    age: int
    sex: Sex
    sbp: float
    total_chol: float
    hdl: float
    total_chol_unit: str = MMOLL
    hdl_unit: str = MMOLL
    ldl: Optional[float] = None
    ldl_unit: str = MMOLL
    sbp_readings: Tuple[float, ...] = ()
    sbp_sd: Optional[float] = None
    bp_treated: bool = False
    smoker: bool = False
    smoking_category: int = 0
    diabetes: DiabetesStatus = DiabetesStatus.NONE
    family_history: bool = False
    lpa: Optional[float] = None
    lpa_unit: str = MGDL
    atrial_fibrillation: bool = False
    rheumatoid_arthritis: bool = False
    chronic_kidney_disease: bool = False
    migraine: bool = False
    sle: bool = False
    severe_mental_illness: bool = False
    erectile_dysfunction: bool = False
    corticosteroids: bool = False
    atypical_antipsychotics: bool = False
    ethnicity: Any = None
    bmi: Optional[float] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    townsend: float = 0.0

    @property
    def male(self) -> bool:
        return self.sex is Sex.MALE

    @property
    def has_diabetes(self) -> bool:
        return self.diabetes is not DiabetesStatus.NONE

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PatientProfile":
        """
        Build a profile from the loose dict the host page collects.
        Extra keys: height_ft/height_in and weight_lb are converted to metric.
        """
        missing = [k for k in REQUIRED_FIELDS if data.get(k) is None]
        if missing:
            raise MissingInputError(missing, "patient profile")

        def opt_float(k):
            v = data.get(k)
            return None if v is None else float(v)

        def flag(k):
            return parse_bool(data.get(k))

        height_cm = opt_float("height_cm")
        if height_cm is None and data.get("height_ft") is not None:
            height_cm = height_to_cm(data.get("height_ft"), data.get("height_in") or 0)
        weight_kg = opt_float("weight_kg")
        if weight_kg is None and data.get("weight_lb") is not None:
            weight_kg = weight_to_kg(data.get("weight_lb"))

        # smoker (bool) and smoking_category (0-4) fill each other in
        smoker_raw = data.get("smoker")
        cat_raw = data.get("smoking_category")
        smoking_category = smoking_code(cat_raw) if cat_raw is not None else smoking_code(parse_bool(smoker_raw))
        smoker = parse_bool(smoker_raw) if smoker_raw is not None else smoking_category >= 2

        return cls(
            age=int(data["age"]),
            sex=Sex.parse(data["sex"]),
            sbp=float(data["sbp"]),
            total_chol=float(data["total_chol"]),
            hdl=float(data["hdl"]),
            total_chol_unit=canonical_unit(data.get("total_chol_unit") or MMOLL),
            hdl_unit=canonical_unit(data.get("hdl_unit") or MMOLL),
            ldl=opt_float("ldl"),
            ldl_unit=canonical_unit(data.get("ldl_unit") or MMOLL),
            sbp_readings=tuple(float(r) for r in (data.get("sbp_readings") or ())),
            sbp_sd=opt_float("sbp_sd"),
            bp_treated=flag("bp_treated"),
            smoker=smoker,
            smoking_category=smoking_category,
            diabetes=DiabetesStatus.parse(data.get("diabetes")),
            family_history=flag("family_history"),
            lpa=opt_float("lpa"),
            lpa_unit=canonical_unit(data.get("lpa_unit") or MGDL),
            atrial_fibrillation=flag("atrial_fibrillation"),
            rheumatoid_arthritis=flag("rheumatoid_arthritis"),
            chronic_kidney_disease=flag("chronic_kidney_disease"),
            migraine=flag("migraine"),
            sle=flag("sle"),
            severe_mental_illness=flag("severe_mental_illness"),
            erectile_dysfunction=flag("erectile_dysfunction"),
            corticosteroids=flag("corticosteroids"),
            atypical_antipsychotics=flag("atypical_antipsychotics"),
            ethnicity=data.get("ethnicity"),
            bmi=opt_float("bmi"),
            height_cm=height_cm,
            weight_kg=weight_kg,
            townsend=float(data.get("townsend") or 0.0),
        )


@dataclass(frozen=True)
class RiskResult:
    base_risk: float
    lpa_modifier: float
    modified_risk: float
    risk_category: RiskCategory
    algorithm: Algorithm
    contributing_factors: Tuple[ContributingFactor, ...] = field(default_factory=tuple)


# ----------------------------
# Normalisation helpers
# ----------------------------
def lipids_mmol(profile: PatientProfile, trace: Optional[Trace] = None) -> Dict[str, Optional[float]]:
    out = {
        "total_chol": convert_cholesterol(profile.total_chol, profile.total_chol_unit, MMOLL),
        "hdl": convert_cholesterol(profile.hdl, profile.hdl_unit, MMOLL),
        "ldl": convert_cholesterol(profile.ldl, profile.ldl_unit, MMOLL),
    }
    converted = [k for k, unit in (("total_chol", profile.total_chol_unit), ("hdl", profile.hdl_unit),
                                   ("ldl", profile.ldl_unit))
                 if out[k] is not None and canonical_unit(unit) == MGDL]
    if converted:
        add_trace(trace, "Units_lipids", converted, "Converted mg/dL -> mmol/L (÷38.67)")
    return out


def lpa_mgdl(profile: PatientProfile) -> Optional[float]:
    return convert_lpa(profile.lpa, profile.lpa_unit, MGDL)


def lpa_info(profile: PatientProfile, trace: Optional[Trace] = None) -> Dict[str, Any]:
    if profile.lpa is None:
        return {"present": False, "modifier": 1.0, "elevated": False}

    mg = lpa_mgdl(profile)
    modifier = lpa_modifier(mg)
    elevated = lpa_is_elevated(mg)
    add_trace(
        trace,
        "Lp(a)_modifier",
        value=f"{profile.lpa} {profile.lpa_unit}",
        effect=f"{mg:.1f} mg/dL -> modifier {modifier:.2f}; elevated={elevated} (conversion est 1 mg/dL≈2.5 nmol/L)",
    )
    return {
        "present": True,
        "raw_value": profile.lpa,
        "raw_unit": profile.lpa_unit,
        "mgdl": round(mg, 1),
        "nmolL": round(convert_lpa(mg, MGDL, NMOLL), 1),
        "modifier": modifier,
        "elevated": elevated,
        "conversion_note": "Estimated conversion only; true conversion depends on isoform size.",
    }


def resolve_bmi(profile: PatientProfile, trace: Optional[Trace] = None) -> Optional[float]:
    """Height + weight wins over a typed BMI; a disagreement >0.1 kg/m² is traced and logged."""
    derived = calculate_bmi(profile.height_cm, profile.weight_kg)
    if derived is None:
        return profile.bmi

    add_trace(trace, "BMI_derived", round(derived, 1), "BMI from height and weight")
    if profile.bmi is not None and abs(profile.bmi - derived) > BMI_OVERRIDE_TOLERANCE:
        add_trace(trace, "BMI_override", profile.bmi, f"Entered BMI replaced by derived {derived:.1f}")
        logger.warning("Entered BMI %.1f differs from height/weight BMI %.1f; using derived value",
                       profile.bmi, derived)
    return derived


def resolve_sbp_sd(profile: PatientProfile, trace: Optional[Trace] = None) -> float:
    if profile.sbp_sd is not None:
        return float(profile.sbp_sd)
    if len(profile.sbp_readings) >= MIN_SBP_READINGS:
        sd = sample_standard_deviation(profile.sbp_readings)
        add_trace(trace, "SBP_sd_derived", round(sd, 2), f"SD of {len(profile.sbp_readings)} readings")
        return sd
    return 0.0


def framingham_smoker(profile: PatientProfile) -> bool:
    return profile.smoker or profile.smoking_category >= 2


def qrisk3_smoking(profile: PatientProfile) -> int:
    if profile.smoking_category:
        return profile.smoking_category
    return smoking_code(profile.smoker)


def qrisk3_flags(profile: PatientProfile) -> Dict[str, bool]:
    return {
        "af": profile.atrial_fibrillation,
        "atypical_antipsychotics": profile.atypical_antipsychotics,
        "corticosteroids": profile.corticosteroids,
        "impotence": profile.erectile_dysfunction and profile.male,
        "migraine": profile.migraine,
        "ra": profile.rheumatoid_arthritis,
        "renal": profile.chronic_kidney_disease,
        "semi": profile.severe_mental_illness,
        "sle": profile.sle,
        "treated_hyp": profile.bp_treated,
        "type1": profile.diabetes is DiabetesStatus.TYPE1,
        "type2": profile.diabetes is DiabetesStatus.TYPE2,
        "fh_cvd": profile.family_history,
    }


def qrisk3_missing_inputs(profile: PatientProfile) -> List[str]:
    if profile.bmi is None and (profile.height_cm is None or profile.weight_kg is None):
        return ["bmi (or height_cm + weight_kg)"]
    return []


def _finish(base: float, lpa: Optional[float], algorithm: Algorithm,
            factors: Tuple[ContributingFactor, ...], trace: Optional[Trace]) -> RiskResult:
    modifier = lpa_modifier(lpa)
    modified = apply_modifier(base, modifier)
    category = categorize(modified)
    add_trace(trace, f"{algorithm.value}_risk", round(modified, 2),
              f"base {base:.2f}% × Lp(a) {modifier:.2f} -> {category.value}")
    return RiskResult(
        base_risk=base,
        lpa_modifier=modifier,
        modified_risk=modified,
        risk_category=category,
        algorithm=algorithm,
        contributing_factors=factors,
    )


# ----------------------------
# Per-algorithm calculations
# ----------------------------
def calculate_framingham(profile: PatientProfile, trace: Optional[Trace] = None) -> RiskResult:
    lipids = lipids_mmol(profile, trace)
    smoker = framingham_smoker(profile)
    base = framingham_10y_risk(
        profile.male,
        profile.age,
        lipids["total_chol"],
        lipids["hdl"],
        profile.sbp,
        profile.bp_treated,
        smoker,
        profile.has_diabetes,
    )
    add_trace(trace, "Framingham_base", round(base, 2), "Framingham 10y base risk (%)")

    lpa = lpa_mgdl(profile)
    factors = contributing_factors(
        age=profile.age,
        male=profile.male,
        smoking_category=qrisk3_smoking(profile) if smoker else 0,
        sbp=profile.sbp,
        chol_ratio=lipids["total_chol"] / lipids["hdl"],
        diabetes=profile.diabetes.value,
        lpa_mgdl=lpa,
    )
    return _finish(base, lpa, Algorithm.FRAMINGHAM, factors, trace)


def calculate_qrisk3(profile: PatientProfile, trace: Optional[Trace] = None) -> RiskResult:
    missing = qrisk3_missing_inputs(profile)
    if missing:
        raise MissingInputError(missing, "QRISK3")

    lipids = lipids_mmol(profile, trace)
    bmi = resolve_bmi(profile, trace)
    sbp_sd = resolve_sbp_sd(profile, trace)
    smoking = qrisk3_smoking(profile)
    ethnicity = ethnicity_code(profile.ethnicity)
    flags = qrisk3_flags(profile)
    ratio = lipids["total_chol"] / lipids["hdl"]

    base = qrisk3_10y_risk(
        male=profile.male,
        age=profile.age,
        bmi=bmi,
        chol_ratio=ratio,
        sbp=profile.sbp,
        sbp_sd=sbp_sd,
        townsend=profile.townsend,
        ethnicity=ethnicity,
        smoking=smoking,
        flags=flags,
    )
    add_trace(trace, "QRISK3_base", round(base, 2), f"QRISK3 10y base risk (%); ethnicity={ethnicity}, smoking={smoking}")

    lpa = lpa_mgdl(profile)
    factors = contributing_factors(
        age=profile.age,
        male=profile.male,
        smoking_category=smoking,
        bmi=bmi,
        sbp=profile.sbp,
        chol_ratio=ratio,
        diabetes=profile.diabetes.value,
        family_history=profile.family_history,
        flags=flags,
        lpa_mgdl=lpa,
    )
    return _finish(base, lpa, Algorithm.QRISK3, factors, trace)


_CALCULATORS = {
    Algorithm.FRAMINGHAM: (calculate_framingham, FRAMINGHAM_AGE_RANGE, "Framingham"),
    Algorithm.QRISK3: (calculate_qrisk3, QRISK3_AGE_RANGE, "QRISK3"),
}


def age_confidence(algorithm: Algorithm, age: int, trace: Optional[Trace] = None) -> Optional[str]:
    _, (lo, hi), label = _CALCULATORS[algorithm]
    if lo <= age <= hi:
        return None
    note = f"{label} is validated for ages {lo}-{hi}; estimate at age {age} has reduced confidence."
    add_trace(trace, f"{label}_age_out_of_range", age, note)
    logger.warning(note)
    return note


# ----------------------------
# Public API
# ----------------------------
def evaluate(
    profile: Union[PatientProfile, Mapping[str, Any]],
    algorithms: Tuple[str, ...] = ("framingham", "qrisk3"),
) -> Dict[str, Any]:
    if not isinstance(profile, PatientProfile):
        profile = PatientProfile.from_dict(profile)

    trace: List[Dict[str, Any]] = []
    add_trace(trace, "Engine_start", VERSION["engine"], "Begin evaluation")

    results: Dict[str, Dict[str, Any]] = {}
    not_calculated: Dict[str, List[str]] = {}

    for name in algorithms:
        algo = Algorithm(name)
        calc, _, label = _CALCULATORS[algo]
        if algo is Algorithm.QRISK3:
            missing = qrisk3_missing_inputs(profile)
            if missing:
                add_trace(trace, "QRISK3_missing_inputs", missing, "QRISK3 not calculated")
                not_calculated[algo.value] = missing
                continue
        note = age_confidence(algo, profile.age, trace)
        results[algo.value] = {
            "result": calc(profile, trace),
            "reducedConfidence": note is not None,
            "confidenceNote": note,
        }
        if algo is Algorithm.FRAMINGHAM:
            entry = results[algo.value]
            entry["heartAge"] = framingham_heart_age(profile.male, entry["result"].base_risk, profile.age)
            add_trace(trace, "Framingham_heart_age", entry["heartAge"], "Age of an ideal-profile patient with the same base risk")

    lpa = lpa_info(profile, trace)
    comparison: Optional[ComparisonResult] = None
    governing: Optional[float] = None
    recs: Optional[RecommendationSet] = None

    if len(results) == 2:
        comparison = compare(results["framingham"]["result"], results["qrisk3"]["result"])
        governing = comparison.governing_risk
        add_trace(trace, "Comparison", round(comparison.percent_difference, 1),
                  f"{comparison.agreement.value}; governing {governing:.1f}%")
    elif results:
        governing = next(iter(results.values()))["result"].modified_risk

    if governing is not None:
        ldl = lipids_mmol(profile)["ldl"]
        recs = recommend(
            governing,
            ldl_mmol=ldl,
            has_diabetes=profile.has_diabetes,
            age=profile.age,
            lpa_elevated=bool(lpa.get("elevated")),
            trace=trace,
        )

    out = {
        "version": VERSION,
        "results": results,
        "notCalculated": not_calculated,
        "governingRisk": governing,
        "governingCategory": categorize(governing) if governing is not None else None,
        "comparison": comparison,
        "recommendations": recs,
        "lpaInfo": lpa,
        "trace": trace,
    }

    add_trace(trace, "Engine_end", VERSION["engine"], "Evaluation complete")
    return out


_LABELS = {"framingham": "Framingham Risk Score", "qrisk3": "QRISK3"}


def render_quick_text(profile: PatientProfile, out: Dict[str, Any]) -> str:
    lines = []
    lines.append(f"CVD Risk {out['version']['engine']} — Quick Reference")
    lines.append(f"{profile.age} y {profile.sex.value}; SBP {profile.sbp:g} mmHg"
                 f"{' (treated)' if profile.bp_treated else ''}")

    for key, entry in out["results"].items():
        r: RiskResult = entry["result"]
        line = (f"{_LABELS[key]} (10-year CVD risk): {r.modified_risk:.1f}% ({r.risk_category.value})")
        if r.lpa_modifier != 1.0:
            line += f" — base {r.base_risk:.1f}% × Lp(a) {r.lpa_modifier:.2f}"
        lines.append(line)
        if entry.get("reducedConfidence"):
            lines.append(f"  Note: {entry['confidenceNote']}")
        if entry.get("heartAge") is not None:
            lines.append(f"  Heart age: {entry['heartAge']} y")

    for key, missing in out.get("notCalculated", {}).items():
        lines.append(f"{_LABELS[key]} (10-year CVD risk): not calculated (missing {', '.join(missing[:3])})")

    comp: Optional[ComparisonResult] = out.get("comparison")
    if comp is not None:
        lines.append(f"Comparison: {comp.agreement.value} ({comp.percent_difference:.1f}% apart); "
                     f"governing risk {comp.governing_risk:.1f}% ({comp.governing_category.value})")

    lpa = out.get("lpaInfo", {})
    if lpa.get("present"):
        lines.append(f"Lp(a): {lpa['raw_value']:g} {lpa['raw_unit']} (≈{lpa['mgdl']} mg/dL); "
                     f"modifier {lpa['modifier']:.2f}{'; elevated' if lpa['elevated'] else ''}")

    recs: Optional[RecommendationSet] = out.get("recommendations")
    if recs is not None:
        lines.append("")
        lines.append("Recommendations (CCS 2021)")
        for slot in (recs.statin_change, recs.ezetimibe_change, recs.pcsk9_change):
            if slot is not None:
                lines.append(f"• {slot.text}")
        for other in recs.other_changes:
            lines.append(f"• {other.text}")

        if recs.gap_to_ldl_target is not None:
            ldl = recs.ldl_target + recs.gap_to_ldl_target
            status = "at target" if recs.at_ldl_target else f"{recs.gap_to_ldl_target:.2f} above target"
            lines.append(f"LDL-C: {ldl:.2f} mmol/L → target <{recs.ldl_target} mmol/L ({status})")
        else:
            lines.append(f"LDL-C target <{recs.ldl_target} mmol/L (LDL-C not entered)")

        lines.append("Lifestyle: " + " / ".join(recs.non_pharmacological))
    return "\n".join(lines)
