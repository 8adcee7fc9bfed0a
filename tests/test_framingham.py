import math
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cvd_framingham import (
    FRAMINGHAM_FEMALE,
    FRAMINGHAM_MALE,
    framingham_10y_risk,
    framingham_heart_age,
    framingham_linear_predictor,
)


def _reference(c, age, tc, hdl, sbp, treated, smoker, dm):
    lp = (c.ln_age * math.log(age) + c.ln_tc * math.log(tc) + c.ln_hdl * math.log(hdl)
          + (c.ln_sbp_treated if treated else c.ln_sbp_untreated) * math.log(sbp)
          + (c.smoker if smoker else 0.0) + (c.diabetes if dm else 0.0) + c.constant)
    return 100.0 * (1.0 - c.s0 ** math.exp(lp))


def test_male_60_reference_value():
    # hand-computed: L = 0.464439, risk = 100 * (1 - 0.88431^exp(L))
    risk = framingham_10y_risk(True, 60, 6.0, 1.0, 150, False, False, False)
    assert risk == pytest.approx(17.7679, abs=0.01)
    assert framingham_linear_predictor(True, 60, 6.0, 1.0, 150, False, False, False) == pytest.approx(0.464439, abs=1e-5)


def test_female_treated_smoker_reference_value():
    risk = framingham_10y_risk(False, 55, 5.5, 1.4, 130, True, True, False)
    assert risk == pytest.approx(11.1565, abs=0.01)


def test_matches_closed_form_for_both_sexes():
    for c, male in ((FRAMINGHAM_MALE, True), (FRAMINGHAM_FEMALE, False)):
        for treated in (False, True):
            for smoker in (False, True):
                for dm in (False, True):
                    got = framingham_10y_risk(male, 52, 5.2, 1.3, 138, treated, smoker, dm)
                    assert got == pytest.approx(_reference(c, 52, 5.2, 1.3, 138, treated, smoker, dm), rel=1e-12)


def test_smoking_and_diabetes_raise_risk():
    base = framingham_10y_risk(True, 60, 6.0, 1.0, 150, False, False, False)
    both = framingham_10y_risk(True, 60, 6.0, 1.0, 150, False, True, True)
    assert both == pytest.approx(48.7298, abs=0.01)
    assert both > base


def test_treated_sbp_uses_treated_coefficient():
    untreated = framingham_10y_risk(False, 60, 5.0, 1.2, 140, False, False, False)
    treated = framingham_10y_risk(False, 60, 5.0, 1.2, 140, True, False, False)
    assert treated > untreated


def test_risk_is_bounded():
    assert 0.0 <= framingham_10y_risk(False, 30, 3.0, 2.5, 100, False, False, False) <= 100.0
    assert 0.0 <= framingham_10y_risk(True, 90, 12.0, 0.5, 220, True, True, True) <= 100.0


def test_non_positive_log_input_is_not_caught():
    with pytest.raises(ValueError):
        framingham_10y_risk(True, 60, 0.0, 1.0, 150, False, False, False)


@pytest.mark.parametrize("male", [True, False])
@pytest.mark.parametrize("age", [40, 45, 50, 55, 60, 65, 70, 75, 80])
def test_heart_age_of_reference_patient_is_own_age(male, age):
    risk = framingham_10y_risk(male, age, 4.0, 1.5, 110, False, False, False)
    assert framingham_heart_age(male, risk) == age


def test_heart_age_older_than_chronological_for_risky_profile():
    risk = framingham_10y_risk(True, 50, 6.5, 0.9, 160, True, True, False)
    assert framingham_heart_age(True, risk, age=50) > 50


def test_heart_age_is_bounded():
    # below the reference risk at 20, above it at 90
    assert framingham_heart_age(True, 0.05) == 20
    assert framingham_heart_age(False, 60.0) == 90
    # too low to estimate: falls back to the chronological age, clamped
    assert framingham_heart_age(True, 0.0, age=47) == 47
    assert framingham_heart_age(True, 0.0, age=99) == 95
    assert framingham_heart_age(False, 0.0) == 20
