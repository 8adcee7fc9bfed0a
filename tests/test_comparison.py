import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cvd_comparison import Agreement, classify_agreement, compare, percent_difference
from cvd_engine import Algorithm, RiskResult
from cvd_modifiers import RiskCategory, categorize


def _result(algo: Algorithm, risk: float) -> RiskResult:
    return RiskResult(
        base_risk=risk,
        lpa_modifier=1.0,
        modified_risk=risk,
        risk_category=categorize(risk),
        algorithm=algo,
    )


def test_fifteen_vs_twenty_two_is_substantial():
    comp = compare(_result(Algorithm.FRAMINGHAM, 15.0), _result(Algorithm.QRISK3, 22.0))
    assert comp.absolute_difference == pytest.approx(7.0)
    assert comp.percent_difference == pytest.approx(7.0 / 18.5 * 100)
    assert comp.percent_difference == pytest.approx(37.84, abs=0.01)
    assert comp.agreement is Agreement.SUBSTANTIAL
    assert comp.governing_risk == 22.0
    assert comp.governing_category is RiskCategory.HIGH
    assert comp.higher_algorithm == "qrisk3"
    assert "QRISK3 gives a higher risk estimate" in comp.interpretation
    assert "falls into the high risk category" in comp.interpretation


def test_argument_order_does_not_matter():
    a = compare(_result(Algorithm.QRISK3, 22.0), _result(Algorithm.FRAMINGHAM, 15.0))
    b = compare(_result(Algorithm.FRAMINGHAM, 15.0), _result(Algorithm.QRISK3, 22.0))
    assert a.frs_result.algorithm is Algorithm.FRAMINGHAM
    assert a.percent_difference == b.percent_difference
    assert a.interpretation == b.interpretation


def test_governing_is_max_never_average():
    comp = compare(_result(Algorithm.FRAMINGHAM, 12.0), _result(Algorithm.QRISK3, 8.0))
    assert comp.governing_risk == 12.0
    assert comp.governing_category is RiskCategory.MODERATE
    assert comp.higher_algorithm == "framingham"
    assert "The Framingham Risk Score gives a higher risk estimate" in comp.interpretation


def test_similar_and_moderate_classes():
    assert compare(_result(Algorithm.FRAMINGHAM, 10.0), _result(Algorithm.QRISK3, 10.5)).agreement is Agreement.SIMILAR
    assert compare(_result(Algorithm.FRAMINGHAM, 10.0), _result(Algorithm.QRISK3, 12.0)).agreement is Agreement.MODERATE


@pytest.mark.parametrize(
    "pct, agreement",
    [(0.0, Agreement.SIMILAR), (9.99, Agreement.SIMILAR), (10.0, Agreement.MODERATE),
     (29.99, Agreement.MODERATE), (30.0, Agreement.SUBSTANTIAL)],
)
def test_agreement_boundaries(pct, agreement):
    assert classify_agreement(pct) is agreement


def test_equal_and_zero_risks():
    assert percent_difference(0.0, 0.0) == 0.0
    comp = compare(_result(Algorithm.FRAMINGHAM, 7.0), _result(Algorithm.QRISK3, 7.0))
    assert comp.higher_algorithm is None
    assert comp.agreement is Agreement.SIMILAR
    assert "same risk estimate" in comp.interpretation


def test_same_algorithm_rejected():
    with pytest.raises(ValueError):
        compare(_result(Algorithm.QRISK3, 10.0), _result(Algorithm.QRISK3, 12.0))
