# app.py
# ============================================================
# CVD Risk: Streamlit page with:
# - Patient form with unit selectors (mmol/L or mg/dL, Lp(a) mg/dL or nmol/L)
# - Metric or imperial height/weight (BMI derived when both present)
# - Framingham + QRISK3 side by side, Lp(a) modifier, comparison
# - CCS 2021 recommendations with rationale and evidence
# ============================================================

from __future__ import annotations

from typing import Any, Dict

import streamlit as st

from cvd_engine import VERSION, MissingInputError, PatientProfile, evaluate, render_quick_text
from cvd_output_adapter import generate_risk_output
from cvd_recommendations import format_recommendations
from cvd_units import MGDL, MMOLL, NMOLL
from ui_components import render_risk_bar


# ============================================================
# Styling
# ============================================================

st.set_page_config(page_title="CVD Risk", layout="wide")

st.markdown(
    """
<style>
html, body, [class*="css"] {
  font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Inter, "Helvetica Neue", Arial, sans-serif;
  color: #111827;
}

.smallcaps {
  font-variant: all-small-caps;
  letter-spacing: 0.06em;
  color: rgba(17,24,39,0.72);
}

.card {
  background: #ffffff;
  border: 1px solid rgba(17,24,39,0.12);
  border-radius: 16px;
  padding: 16px;
}

.muted {
  color: rgba(17,24,39,0.65);
  font-size: 0.92rem;
}

.badge {
  display: inline-block;
  padding: 2px 10px;
  border-radius: 999px;
  border: 1px solid rgba(17,24,39,0.14);
  font-size: 0.82rem;
  margin-right: 6px;
}

.badge-warn {
  background: rgba(245,158,11,0.10);
  border-color: rgba(245,158,11,0.25);
}

pre {
  white-space: pre-wrap !important;
  word-wrap: break-word !important;
}
</style>
""",
    unsafe_allow_html=True,
)

ETHNICITY_OPTIONS = [
    "white", "indian", "pakistani", "bangladeshi", "other_asian",
    "black_caribbean", "black_african", "chinese", "other", "not_recorded",
]
SMOKING_OPTIONS = {"Non-smoker": 0, "Ex-smoker": 1, "Light (<10/day)": 2, "Moderate (10-19/day)": 3, "Heavy (20+/day)": 4}
DIABETES_OPTIONS = {"None": "none", "Type 1": "type1", "Type 2": "type2"}


def build_profile_data(form: Dict[str, Any]) -> Dict[str, Any]:
    """Map form widgets onto the dict shape PatientProfile.from_dict() accepts."""
    data = dict(form)
    if data.pop("height_system") == "imperial":
        data.pop("height_cm", None)
        data.pop("weight_kg", None)
    else:
        for k in ("height_ft", "height_in", "weight_lb"):
            data.pop(k, None)
    if not data.get("use_lpa"):
        data["lpa"] = None
    data.pop("use_lpa", None)
    if not data.get("use_ldl"):
        data["ldl"] = None
    data.pop("use_ldl", None)
    if not data.get("bmi"):
        data["bmi"] = None
    return data


# ============================================================
# UI
# ============================================================

st.markdown(
    f"""
<div class="card">
  <div style="display:flex;justify-content:space-between;align-items:center;gap:12px;">
    <div>
      <div class="smallcaps">CVD Risk</div>
      <div style="font-size:1.35rem;font-weight:700;margin-top:4px;">10-year CVD risk — Framingham + QRISK3 + Lp(a)</div>
      <div class="muted" style="margin-top:4px;">For healthcare professionals. Inputs are assumed validated; the engine does not re-check ranges.</div>
    </div>
    <div style="text-align:right;">
      <span class="badge">Engine {VERSION['engine']}</span>
      <span class="badge">{VERSION['recommendations']}</span>
    </div>
  </div>
</div>
""",
    unsafe_allow_html=True,
)

with st.form("patient_form"):
    left, mid, right = st.columns(3, gap="large")

    with left:
        st.markdown('<div class="smallcaps">Demographics & vitals</div>', unsafe_allow_html=True)
        age = st.number_input("Age (years)", 18, 100, value=60, step=1)
        sex = st.radio("Sex", options=["male", "female"], horizontal=True)
        ethnicity = st.selectbox("Ethnicity (QRISK3)", ETHNICITY_OPTIONS, index=0)
        sbp = st.number_input("Systolic BP (mmHg)", 60, 260, value=140, step=1)
        sbp_sd = st.number_input("SBP standard deviation (0 if unknown)", 0.0, 60.0, value=0.0, step=0.5)
        bp_treated = st.checkbox("On blood pressure treatment")
        height_system = st.radio("Height / weight units", options=["metric", "imperial"], horizontal=True)
        height_cm = st.number_input("Height (cm)", 100.0, 230.0, value=175.0, step=0.5)
        weight_kg = st.number_input("Weight (kg)", 30.0, 250.0, value=80.0, step=0.5)
        height_ft = st.number_input("Height (ft)", 3, 7, value=5, step=1)
        height_in = st.number_input("Height (in)", 0.0, 11.9, value=9.0, step=0.5)
        weight_lb = st.number_input("Weight (lb)", 60.0, 550.0, value=176.0, step=1.0)
        bmi = st.number_input("BMI (only if height/weight unknown; 0 = not entered)", 0.0, 80.0, value=0.0, step=0.1)
        townsend = st.number_input("Townsend deprivation score", -8.0, 12.0, value=0.0, step=0.1)

    with mid:
        st.markdown('<div class="smallcaps">Lipids & Lp(a)</div>', unsafe_allow_html=True)
        chol_unit = st.radio("Cholesterol units", options=[MMOLL, MGDL], horizontal=True)
        total_chol = st.number_input("Total cholesterol", 0.5, 600.0, value=6.0, step=0.1)
        hdl = st.number_input("HDL cholesterol", 0.1, 300.0, value=1.0, step=0.1)
        use_ldl = st.checkbox("LDL cholesterol known", value=True)
        ldl = st.number_input("LDL cholesterol", 0.1, 500.0, value=3.5, step=0.1)
        use_lpa = st.checkbox("Lp(a) known")
        lpa_unit = st.radio("Lp(a) units", options=[MGDL, NMOLL], horizontal=True)
        lpa = st.number_input("Lp(a)", 0.0, 1000.0, value=30.0, step=1.0)

    with right:
        st.markdown('<div class="smallcaps">History & conditions</div>', unsafe_allow_html=True)
        smoking_label = st.selectbox("Smoking status", list(SMOKING_OPTIONS), index=0)
        diabetes_label = st.radio("Diabetes", options=list(DIABETES_OPTIONS), horizontal=True)
        family_history = st.checkbox("Angina/heart attack in 1st-degree relative <60")
        atrial_fibrillation = st.checkbox("Atrial fibrillation")
        rheumatoid_arthritis = st.checkbox("Rheumatoid arthritis")
        chronic_kidney_disease = st.checkbox("Chronic kidney disease (stage 3-5)")
        migraine = st.checkbox("Migraine")
        sle = st.checkbox("Systemic lupus erythematosus")
        severe_mental_illness = st.checkbox("Severe mental illness")
        erectile_dysfunction = st.checkbox("Erectile dysfunction (men)")
        corticosteroids = st.checkbox("Regular corticosteroids")
        atypical_antipsychotics = st.checkbox("Atypical antipsychotics")

    submitted = st.form_submit_button("Calculate risk", type="primary", use_container_width=True)

if submitted:
    smoking_category = SMOKING_OPTIONS[smoking_label]
    form = {
        "age": age, "sex": sex, "ethnicity": ethnicity,
        "sbp": sbp, "sbp_sd": sbp_sd or None, "bp_treated": bp_treated,
        "height_system": height_system, "height_cm": height_cm, "weight_kg": weight_kg,
        "height_ft": height_ft, "height_in": height_in, "weight_lb": weight_lb,
        "bmi": bmi, "townsend": townsend,
        "total_chol": total_chol, "total_chol_unit": chol_unit,
        "hdl": hdl, "hdl_unit": chol_unit,
        "use_ldl": use_ldl, "ldl": ldl, "ldl_unit": chol_unit,
        "use_lpa": use_lpa, "lpa": lpa, "lpa_unit": lpa_unit,
        "smoking_category": smoking_category, "smoker": smoking_category >= 2,
        "diabetes": DIABETES_OPTIONS[diabetes_label],
        "family_history": family_history,
        "atrial_fibrillation": atrial_fibrillation,
        "rheumatoid_arthritis": rheumatoid_arthritis,
        "chronic_kidney_disease": chronic_kidney_disease,
        "migraine": migraine, "sle": sle,
        "severe_mental_illness": severe_mental_illness,
        "erectile_dysfunction": erectile_dysfunction,
        "corticosteroids": corticosteroids,
        "atypical_antipsychotics": atypical_antipsychotics,
    }

    try:
        profile = PatientProfile.from_dict(build_profile_data(form))
        result = evaluate(profile)
        st.session_state["last_profile"] = profile
        st.session_state["last_result"] = result
        st.session_state["last_output_text"] = render_quick_text(profile, result)
        st.session_state["last_report"] = generate_risk_output(result)
    except MissingInputError as e:
        st.error(f"Missing input: {', '.join(e.missing)}")
    except ValueError as e:
        st.error(f"Engine error: {e}")


# ============================================================
# Output area
# ============================================================

st.markdown('<div class="card">', unsafe_allow_html=True)
st.markdown('<div class="smallcaps">Output</div>', unsafe_allow_html=True)

last_output = st.session_state.get("last_output_text")
last_result = st.session_state.get("last_result")
last_report = st.session_state.get("last_report")

if last_output:
    if last_result["governingCategory"] is not None:
        st.markdown(
            render_risk_bar(last_result["governingCategory"], last_result["governingRisk"]),
            unsafe_allow_html=True,
        )

    for key, entry in last_report["results"].items():
        if entry["reducedConfidence"]:
            st.markdown(f'<span class="badge badge-warn">{entry["confidenceNote"]}</span>', unsafe_allow_html=True)

    st.markdown("#### Clinical summary")
    st.code(last_output)

    if last_report["comparison"]:
        st.markdown("#### Framingham vs QRISK3")
        st.markdown(last_report["comparison"]["interpretation"])

    if last_result["recommendations"] is not None:
        st.markdown("#### Treatment recommendations (CCS 2021)")
        for heading, text, rationale, evidence in format_recommendations(last_result["recommendations"]):
            st.markdown(f"**{heading}**: {text}")
            st.markdown(f'<div class="muted">{rationale} <i>{evidence}</i></div>', unsafe_allow_html=True)

        st.markdown("#### References")
        for ref in last_report["references"]:
            st.markdown(f"- {ref}")

    with st.expander("Contributing factors"):
        for key, entry in last_report["results"].items():
            st.markdown(f"**{key}**")
            for f in entry["contributingFactors"]:
                st.markdown(f"- {f['name']} ({f['impact']}): {f['description']}")

    with st.expander("Debug: rule trace"):
        st.json(last_result["trace"])

    with st.expander("Debug: output contract"):
        st.json(last_report)

else:
    st.markdown('<div class="muted">Fill in the form and click <b>Calculate risk</b> to generate output.</div>', unsafe_allow_html=True)

st.markdown("</div>", unsafe_allow_html=True)
