import random
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cvd_engine import (
    Algorithm,
    DiabetesStatus,
    MissingInputError,
    PatientProfile,
    Sex,
    calculate_framingham,
    calculate_qrisk3,
    evaluate,
    parse_bool,
    render_quick_text,
    resolve_bmi,
    resolve_sbp_sd,
)
from cvd_modifiers import RiskCategory


BASE = {
    "age": 60,
    "sex": "male",
    "sbp": 150,
    "bp_treated": False,
    "smoker": False,
    "diabetes": False,
    "total_chol": 6.0,
    "hdl": 1.0,
}


def _profile(**overrides) -> PatientProfile:
    d = dict(BASE)
    d.update(overrides)
    return PatientProfile.from_dict(d)


def _rand_patient(rng: random.Random) -> dict:
    """Clinically bounded synthetic profiles."""

    def maybe(value, p: float = 0.7):
        return value if rng.random() < p else None

    mgdl = rng.random() < 0.5
    return {
        "age": rng.randint(25, 90),
        "sex": rng.choice(["M", "F"]),
        "sbp": rng.randint(95, 200),
        "bp_treated": rng.random() < 0.4,
        "smoking_category": rng.randint(0, 4),
        "diabetes": rng.choice(["none", "type1", "type2"]),
        "total_chol": rng.uniform(130, 320) if mgdl else rng.uniform(3.2, 8.5),
        "total_chol_unit": "mg/dL" if mgdl else "mmol/L",
        "hdl": rng.uniform(28, 95) if mgdl else rng.uniform(0.7, 2.5),
        "hdl_unit": "mg/dL" if mgdl else "mmol/L",
        "ldl": maybe(rng.uniform(1.0, 6.5)),
        "lpa": maybe(rng.randint(5, 400), 0.5),
        "lpa_unit": rng.choice(["mg/dL", "nmol/L"]),
        "family_history": rng.random() < 0.2,
        "atrial_fibrillation": rng.random() < 0.1,
        "rheumatoid_arthritis": rng.random() < 0.1,
        "chronic_kidney_disease": rng.random() < 0.1,
        "migraine": rng.random() < 0.1,
        "erectile_dysfunction": rng.random() < 0.1,
        "ethnicity": rng.choice([None, "white", "indian", "black_african", "chinese", 9]),
        "bmi": maybe(round(rng.uniform(18, 42), 1), 0.8),
        "townsend": rng.uniform(-5, 8),
    }


def test_scenario_male_60_framingham():
    r = calculate_framingham(_profile())
    assert r.algorithm is Algorithm.FRAMINGHAM
    assert r.base_risk == pytest.approx(17.7679, abs=0.01)
    assert r.lpa_modifier == 1.0
    assert r.modified_risk == r.base_risk
    assert r.risk_category is RiskCategory.MODERATE


def test_scenario_lpa_120_mgdl():
    plain = calculate_framingham(_profile())
    r = calculate_framingham(_profile(lpa=120, lpa_unit="mg/dL"))
    assert r.base_risk == plain.base_risk
    assert r.lpa_modifier == pytest.approx(1.68)
    assert r.modified_risk == pytest.approx(plain.base_risk * 1.68)
    assert r.risk_category is RiskCategory.HIGH


def test_lpa_in_nmol_is_converted():
    r = calculate_framingham(_profile(lpa=300, lpa_unit="nmol/L"))
    assert r.lpa_modifier == pytest.approx(1.68)


def test_mgdl_lipids_match_mmol():
    mmol = calculate_framingham(_profile())
    mg = calculate_framingham(_profile(total_chol=6.0 * 38.67, total_chol_unit="mg/dL", hdl=38.67, hdl_unit="MG/DL"))
    assert mg.base_risk == pytest.approx(mmol.base_risk, rel=1e-9)


def test_missing_required_fields_raise():
    d = dict(BASE)
    del d["hdl"]
    d["sbp"] = None
    with pytest.raises(MissingInputError) as exc:
        PatientProfile.from_dict(d)
    assert set(exc.value.missing) == {"hdl", "sbp"}
    assert isinstance(exc.value, ValueError)


def test_qrisk3_without_bmi_source_raises():
    with pytest.raises(MissingInputError):
        calculate_qrisk3(_profile())


def test_evaluate_without_bmi_reports_qrisk3_not_calculated():
    out = evaluate(_profile())
    assert set(out["results"]) == {"framingham"}
    assert "qrisk3" in out["notCalculated"]
    assert out["comparison"] is None
    assert out["governingRisk"] == out["results"]["framingham"]["result"].modified_risk
    assert any(t["rule"] == "QRISK3_missing_inputs" for t in out["trace"])


def test_bmi_from_height_weight_overrides_manual():
    p = _profile(height_cm=180, weight_kg=81, bmi=30.0)
    trace = []
    assert resolve_bmi(p, trace) == pytest.approx(25.0)
    assert [t["rule"] for t in trace] == ["BMI_derived", "BMI_override"]

    trace = []
    resolve_bmi(_profile(height_cm=180, weight_kg=81, bmi=25.05), trace)
    assert [t["rule"] for t in trace] == ["BMI_derived"]

    assert resolve_bmi(_profile(bmi=27.5)) == 27.5


def test_imperial_height_weight():
    p = _profile(height_ft=5, height_in=10, weight_lb=180)
    assert p.height_cm == pytest.approx(177.8)
    assert p.weight_kg == pytest.approx(81.6466, abs=1e-3)


def test_sbp_sd_from_readings():
    assert resolve_sbp_sd(_profile(sbp_readings=[120, 130, 140])) == pytest.approx(10.0)
    assert resolve_sbp_sd(_profile(sbp_readings=[120, 130])) == 0.0
    assert resolve_sbp_sd(_profile(sbp_readings=[120, 130, 140], sbp_sd=6.5)) == 6.5


def test_smoker_and_category_fill_each_other():
    assert _profile(smoker=True).smoking_category == 2
    assert _profile(smoker=None, smoking_category=3).smoker is True
    assert _profile(smoker=None, smoking_category=1).smoker is False
    assert _profile(diabetes=True).diabetes is DiabetesStatus.TYPE2
    assert _profile(sex="F").sex is Sex.FEMALE


def test_reduced_confidence_outside_age_range():
    out = evaluate(_profile(age=80, bmi=26.0))
    assert out["results"]["framingham"]["reducedConfidence"] is True
    assert out["results"]["qrisk3"]["reducedConfidence"] is False
    assert out["results"]["framingham"]["result"].base_risk > 0

    out = evaluate(_profile(age=22, bmi=26.0))
    assert out["results"]["qrisk3"]["reducedConfidence"] is True


def test_both_algorithms_compare_and_govern_on_max():
    out = evaluate(_profile(bmi=28.0, ldl=3.2, lpa=80))
    frs = out["results"]["framingham"]["result"].modified_risk
    q = out["results"]["qrisk3"]["result"].modified_risk
    assert out["governingRisk"] == max(frs, q)
    assert out["comparison"].governing_risk == max(frs, q)
    assert out["recommendations"].risk_category is out["governingCategory"]
    assert out["recommendations"].has_elevated_lpa is True


def test_trace_brackets_evaluation():
    out = evaluate(_profile(bmi=26.0))
    rules = [t["rule"] for t in out["trace"]]
    assert rules[0] == "Engine_start"
    assert rules[-1] == "Engine_end"
    for t in out["trace"]:
        assert set(t) == {"rule", "value", "effect"}


def test_single_algorithm_evaluation():
    out = evaluate(_profile(), algorithms=("framingham",))
    assert set(out["results"]) == {"framingham"}
    assert out["notCalculated"] == {}


def test_determinism_property_style_randomized():
    rng = random.Random(7)
    for _ in range(80):
        d = _rand_patient(rng)
        p = PatientProfile.from_dict(d)
        assert calculate_framingham(p) == calculate_framingham(p)
        if p.bmi is not None:
            assert calculate_qrisk3(p) == calculate_qrisk3(p)
        a, b = evaluate(d), evaluate(d)
        assert a["governingRisk"] == b["governingRisk"]
        assert a["recommendations"] == b["recommendations"]
        assert a["trace"] == b["trace"]


def test_schema_no_drift_randomized():
    rng = random.Random(23)
    for _ in range(80):
        d = _rand_patient(rng)
        out = evaluate(d)
        assert {"version", "results", "notCalculated", "governingRisk", "governingCategory",
                "comparison", "recommendations", "lpaInfo", "trace"} <= set(out)
        for entry in out["results"].values():
            r = entry["result"]
            assert 0.0 <= r.base_risk <= 100.0
            assert 1.0 <= r.lpa_modifier <= 3.0
            assert 0.0 <= r.modified_risk <= 100.0
            assert r.modified_risk >= r.base_risk or r.modified_risk == 100.0
        if len(out["results"]) == 2:
            assert out["comparison"] is not None
        assert out["recommendations"] is not None
        assert out["recommendations"].statin_change is not None


def test_render_quick_text():
    p = _profile(bmi=27.0, ldl=3.0, lpa=120)
    text = render_quick_text(p, evaluate(p))
    assert "Quick Reference" in text
    assert "Framingham Risk Score (10-year CVD risk)" in text
    assert "QRISK3 (10-year CVD risk)" in text
    assert "Comparison:" in text
    assert "Recommendations (CCS 2021)" in text
    assert "target <1.8 mmol/L" in text


def test_framingham_entry_carries_heart_age():
    out = evaluate(_profile(bmi=26.0))
    # base risk 17.8% is above the ideal-profile risk at 90
    assert out["results"]["framingham"]["heartAge"] == 90
    assert "heartAge" not in out["results"]["qrisk3"]
    assert any(t["rule"] == "Framingham_heart_age" and t["value"] == 90 for t in out["trace"])

    ideal = evaluate(_profile(age=55, total_chol=4.0, hdl=1.5, sbp=110), algorithms=("framingham",))
    assert ideal["results"]["framingham"]["heartAge"] == 55
    assert "Heart age: 55 y" in render_quick_text(_profile(age=55, total_chol=4.0, hdl=1.5, sbp=110), ideal)


def test_string_flags_from_forms_are_parsed():
    p = _profile(bp_treated="false", smoker="no", family_history="0", atrial_fibrillation="",
                 migraine="yes", sle="TRUE", corticosteroids="1", chronic_kidney_disease=" Y ")
    assert p.bp_treated is False
    assert p.smoker is False
    assert p.smoking_category == 0
    assert p.family_history is False
    assert p.atrial_fibrillation is False
    assert p.migraine is True
    assert p.sle is True
    assert p.corticosteroids is True
    assert p.chronic_kidney_disease is True
    assert calculate_framingham(_profile(bp_treated="false")) == calculate_framingham(_profile(bp_treated=False))


def test_parse_bool_rejects_unreadable_strings():
    assert parse_bool(None) is False
    assert parse_bool(1) is True
    with pytest.raises(ValueError):
        parse_bool("sometimes")
    with pytest.raises(ValueError):
        _profile(smoker="maybe")
