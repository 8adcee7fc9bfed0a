# cvd_output_adapter.py
# Output adapter: converts the evaluate() result into a camelCase contract
# for the display / export / EMR layers.

from typing import Any, Dict, List, Optional

from cvd_recommendations import format_recommendations


def _fmt_num(x: Optional[float], unit: str = "", dp: int = 0) -> Optional[str]:
    if x is None:
        return None
    v = float(x)
    if dp == 0:
        v = int(round(v))
    else:
        v = round(v, dp)
    return f"{v} {unit}".strip() if unit else f"{v}"


def _fmt_pct(x: Optional[float]) -> Optional[str]:
    if x is None:
        return None
    return f"{round(float(x), 1)}%"


def _trigger(code: str, label: str, value: Optional[str] = None, detail: Optional[str] = None, severity: str = "moderate") -> Dict[str, Any]:
    out = {"code": code, "label": label, "severity": severity}
    if value is not None: out["value"] = value
    if detail is not None: out["detail"] = detail
    return out


def _plan_item(kind: str, text: str, reason: str, rationale: str, evidence: str) -> Dict[str, Any]:
    return {"kind": kind, "text": text, "reason": reason, "rationale": rationale, "evidence": evidence}


def _risk_result(entry: Dict[str, Any]) -> Dict[str, Any]:
    r = entry["result"]
    return {
        "algorithm": r.algorithm.value,
        "baseRisk": round(r.base_risk, 2),
        "lpaModifier": round(r.lpa_modifier, 3),
        "modifiedRisk": round(r.modified_risk, 2),
        "riskCategory": r.risk_category.value,
        "reducedConfidence": bool(entry.get("reducedConfidence")),
        "confidenceNote": entry.get("confidenceNote"),
        "heartAge": entry.get("heartAge"),
        "contributingFactors": [
            {"name": f.name, "impact": f.impact.value, "description": f.description}
            for f in r.contributing_factors
        ],
    }


def generate_risk_output(engine_out: Dict[str, Any]) -> Dict[str, Any]:
    """
    CamelCase risk report built from cvd_engine.evaluate() output.
    Algorithms that did not run are listed under notCalculated; recommendations
    and comparison are None when there was nothing to base them on.
    """
    results = {k: _risk_result(v) for k, v in engine_out.get("results", {}).items()}
    governing = engine_out.get("governingRisk")
    category = engine_out.get("governingCategory")
    lpa = engine_out.get("lpaInfo") or {}
    recs = engine_out.get("recommendations")
    comp = engine_out.get("comparison")

    # Triggers (short, stable codes)
    triggers: List[Dict[str, Any]] = []
    if governing is not None:
        if governing >= 20:
            triggers.append(_trigger("CVD10Y_HIGH", "10-year CVD risk high", _fmt_pct(governing), "≥20% on the higher estimate.", "high"))
        elif governing >= 10:
            triggers.append(_trigger("CVD10Y_INT", "10-year CVD risk intermediate", _fmt_pct(governing), "10-19.9% on the higher estimate.", "moderate"))
    if lpa.get("elevated"):
        triggers.append(_trigger("LPA_ELEV", "Lp(a) elevated", _fmt_num(lpa.get("mgdl"), "mg/dL"), "Independent risk enhancer; modifier applied.", "moderate"))
    if comp is not None and comp.agreement.value == "substantial difference":
        triggers.append(_trigger("SCORE_DISAGREE", "Scores disagree", _fmt_pct(comp.percent_difference), "Framingham and QRISK3 differ by ≥30%.", "moderate"))
    for key, entry in results.items():
        if entry["reducedConfidence"]:
            triggers.append(_trigger(f"{key.upper()}_AGE_RANGE", "Age outside validated range", key, entry["confidenceNote"], "low"))
    if not triggers:
        triggers.append(_trigger("NO_MAJOR", "No major triggers detected", None, "Based on provided inputs.", "low"))

    plan: List[Dict[str, Any]] = []
    ldl_target = None
    if recs is not None:
        kinds = (("statin", recs.statin_change), ("ezetimibe", recs.ezetimibe_change), ("pcsk9", recs.pcsk9_change))
        for kind, rec in kinds:
            if rec is not None:
                plan.append(_plan_item(kind, rec.text, rec.reason.value, rec.rationale, rec.evidence.value))
        for rec in recs.other_changes:
            plan.append(_plan_item("other", rec.text, rec.reason.value, rec.rationale, rec.evidence.value))
        for text in recs.non_pharmacological:
            plan.append(_plan_item("lifestyle", text, "lifestyle", recs.non_pharmacological_rationale,
                                   recs.non_pharmacological_evidence.value))
        ldl_target = {
            "target": f"<{recs.ldl_target} mmol/L",
            "atTarget": recs.at_ldl_target,
            "gap": None if recs.gap_to_ldl_target is None else round(recs.gap_to_ldl_target, 2),
        }

    comparison = None
    if comp is not None:
        comparison = {
            "absoluteDifference": round(comp.absolute_difference, 2),
            "percentDifference": round(comp.percent_difference, 1),
            "agreement": comp.agreement.value,
            "governingRisk": round(comp.governing_risk, 2),
            "governingCategory": comp.governing_category.value,
            "higherAlgorithm": comp.higher_algorithm,
            "interpretation": comp.interpretation,
        }

    title = "CVD RISK — SUMMARY"
    if governing is not None:
        summary_line = f"10-year CVD risk {_fmt_pct(governing)} ({category.value} risk)."
    else:
        summary_line = "10-year CVD risk not calculated."

    # Markdown
    markdown = f"{title}\n{summary_line}\n\nTriggers:\n" + "\n".join(
        [f"- {t['label']}{': ' + t['value'] if t.get('value') else ''}" for t in triggers]
    )
    if results:
        markdown += "\n\nScores:\n" + "\n".join(
            [f"- {k}: {_fmt_pct(v['modifiedRisk'])} ({v['riskCategory']})"
             + (f"; heart age {v['heartAge']} y" if v['heartAge'] is not None else "")
             for k, v in results.items()]
        )
    if comparison is not None:
        markdown += f"\n\nComparison:\n{comparison['interpretation']}"
    if recs is not None:
        markdown += "\n\nPlan:\n" + "\n".join(
            [f"- {heading}: {text} ({evidence})" for heading, text, _, evidence in format_recommendations(recs)]
        )

    return {
        "title": title,
        "summaryLine": summary_line,
        "governingRisk": None if governing is None else round(governing, 2),
        "governingCategory": None if category is None else category.value,
        "results": results,
        "notCalculated": dict(engine_out.get("notCalculated", {})),
        "triggers": triggers,
        "plan": plan,
        "ldlTarget": ldl_target,
        "comparison": comparison,
        "lpa": {
            "present": bool(lpa.get("present")),
            "mgdl": lpa.get("mgdl"),
            "nmolL": lpa.get("nmolL"),
            "modifier": lpa.get("modifier", 1.0),
            "elevated": bool(lpa.get("elevated")),
        },
        "references": list(recs.references) if recs is not None else [],
        "markdown": markdown,
    }
