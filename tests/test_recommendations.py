import random
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cvd_modifiers import RiskCategory
from cvd_recommendations import (
    NON_PHARMACOLOGICAL,
    RATIONALES,
    Evidence,
    RecommendationReason as R,
    format_recommendations,
    recommend,
)


def _slots(recs):
    return [s for s in (recs.statin_change, recs.ezetimibe_change, recs.pcsk9_change) if s is not None] + list(
        recs.other_changes
    )


def test_high_risk_full_escalation():
    trace = []
    recs = recommend(24.0, ldl_mmol=3.0, lpa_elevated=True, trace=trace)
    assert recs.risk_category is RiskCategory.HIGH
    assert recs.statin_change.reason is R.HIGH_INTENSITY_INDICATED
    assert recs.statin_change.text == "High-intensity statin therapy is strongly recommended"
    assert recs.ezetimibe_change.reason is R.EZETIMIBE_HIGH_RISK
    assert recs.pcsk9_change.reason is R.PCSK9_HIGH_RISK
    assert [r.reason for r in recs.other_changes] == [R.LPA_AGGRESSIVE_TARGET]
    rules = [t["rule"] for t in trace]
    assert rules == ["Rec_high_statin", "Rec_high_ezetimibe", "Rec_high_pcsk9", "Rec_high_lpa"]


def test_high_risk_ldl_between_gates():
    recs = recommend(20.0, ldl_mmol=2.0)
    assert recs.ezetimibe_change is not None
    assert recs.pcsk9_change is None
    assert recs.other_changes == ()


def test_high_risk_without_ldl_skips_ldl_branches():
    recs = recommend(35.0)
    assert recs.statin_change.reason is R.HIGH_INTENSITY_INDICATED
    assert recs.ezetimibe_change is None and recs.pcsk9_change is None
    assert recs.at_ldl_target is None and recs.gap_to_ldl_target is None
    assert recs.ldl_target == 1.8


def test_moderate_ldl_threshold_wins_over_diabetes():
    recs = recommend(15.0, ldl_mmol=3.5, has_diabetes=True, age=55)
    assert recs.statin_change.reason is R.LDL_THRESHOLD_STATIN
    assert recs.ezetimibe_change.reason is R.EZETIMIBE_MODERATE_RISK


def test_moderate_diabetes_age_threshold():
    recs = recommend(12.0, ldl_mmol=2.5, has_diabetes=True, age=40)
    assert recs.statin_change.reason is R.DIABETES_AGE_THRESHOLD
    assert recs.statin_change.text == "Statin therapy recommended for diabetes patients ≥40 years"


def test_moderate_diabetes_under_40_or_unknown_age_is_generic():
    assert recommend(12.0, ldl_mmol=1.5, has_diabetes=True, age=39).statin_change.reason is R.MODERATE_STATIN_CONSIDER
    assert recommend(12.0, ldl_mmol=1.5, has_diabetes=True).statin_change.reason is R.MODERATE_STATIN_CONSIDER


def test_moderate_low_ldl_no_ezetimibe():
    recs = recommend(10.0, ldl_mmol=1.9)
    assert recs.ezetimibe_change is None
    assert recs.ldl_target == 2.0
    assert recs.at_ldl_target is True
    assert recs.gap_to_ldl_target == pytest.approx(-0.1)


def test_low_risk_fh_branch():
    recs = recommend(6.0, ldl_mmol=5.0)
    assert recs.statin_change.reason is R.FH_LDL_STATIN
    assert [r.reason for r in recs.other_changes] == [R.FH_GENETIC_TESTING]
    assert "genetic testing" in recs.other_changes[0].text


def test_low_risk_lpa_does_not_add_note():
    recs = recommend(6.0, ldl_mmol=3.0, lpa_elevated=True)
    assert recs.other_changes == ()
    assert recs.has_elevated_lpa is True


def test_lifestyle_always_present_in_fixed_order():
    for risk in (1.0, 15.0, 30.0):
        recs = recommend(risk)
        assert recs.non_pharmacological == NON_PHARMACOLOGICAL
        assert recs.non_pharmacological[0].startswith("Reinforce therapeutic lifestyle changes")
        assert recs.non_pharmacological_evidence is Evidence.HIGH


def test_rationale_follows_reason_tag():
    for reason in R:
        assert reason in RATIONALES
    recs = recommend(24.0, ldl_mmol=3.0, lpa_elevated=True)
    for rec in _slots(recs):
        rationale, evidence = RATIONALES[rec.reason]
        assert rec.rationale == rationale
        assert rec.evidence is evidence
    assert recs.other_changes[0].evidence is Evidence.MODERATE


def test_coupling_property_randomized():
    rng = random.Random(17)
    for _ in range(500):
        risk = rng.uniform(0, 60)
        ldl = rng.choice([None, round(rng.uniform(0.8, 7.0), 2)])
        recs = recommend(
            risk,
            ldl_mmol=ldl,
            has_diabetes=rng.random() < 0.3,
            age=rng.choice([None, rng.randint(25, 85)]),
            lpa_elevated=rng.random() < 0.3,
        )
        assert recs.statin_change is not None
        assert recs.non_pharmacological

        if recs.risk_category is RiskCategory.HIGH and ldl is not None and ldl >= 2.5:
            assert recs.ezetimibe_change is not None
            assert recs.pcsk9_change is not None
        if recs.pcsk9_change is not None:
            assert recs.risk_category is RiskCategory.HIGH
            assert recs.ezetimibe_change is not None

        if recs.risk_category is RiskCategory.LOW and (ldl is None or ldl < 5.0):
            assert recs.statin_change.reason is R.PHARMACOTHERAPY_NOT_RECOMMENDED
            assert "not recommended" in recs.statin_change.text
            assert all(r.reason is not R.FH_GENETIC_TESTING for r in recs.other_changes)


def test_deterministic():
    a = recommend(18.2, ldl_mmol=3.1, has_diabetes=True, age=61)
    b = recommend(18.2, ldl_mmol=3.1, has_diabetes=True, age=61)
    assert a == b


def test_format_recommendations_rows():
    rows = format_recommendations(recommend(24.0, ldl_mmol=3.0, lpa_elevated=True))
    headings = [r[0] for r in rows]
    assert headings == [
        "Statin Therapy",
        "Ezetimibe",
        "PCSK9 Inhibitor",
        "Additional Recommendations",
        "Non-Pharmacological Therapy",
    ]
    ezetimibe_row = rows[1]
    assert "Current LDL-C is 1.20 mmol/L above target." in ezetimibe_row[2]
    assert rows[0][3] == "High-Quality Evidence"
    assert rows[3][3] == "Moderate-Quality Evidence"


def test_references_present():
    recs = recommend(5.0)
    assert any("Can J Cardiol. 2021" in ref for ref in recs.references)
