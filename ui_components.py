# ui_components.py

from typing import Optional

_SEGMENTS = (
    ("low", "Low", "<10%"),
    ("moderate", "Moderate", "10–19.9%"),
    ("high", "High", "≥20%"),
)


def render_risk_bar(category: str, risk_pct: Optional[float] = None) -> str:
    """
    3-step CCS risk bar (low / moderate / high) with the active segment highlighted.
    `category` is a RiskCategory or its string value.
    """
    active_key = str(getattr(category, "value", category) or "").lower()

    segs = []
    for key, label, band in _SEGMENTS:
        active = (key == active_key)
        segs.append(f"""
        <div style="
            flex:1;
            padding:10px 10px;
            border:1px solid rgba(31,41,55,0.18);
            border-radius:12px;
            background:{'rgba(31,41,55,0.06)' if active else '#fff'};
            font-weight:{'800' if active else '600'};
            text-align:center;
            font-size:0.88rem;
        ">
          {label}
          <div style="font-weight:600; font-size:0.78rem; color:rgba(31,41,55,0.70); margin-top:2px;">
            {band}
          </div>
        </div>
        """)

    pct = f" <span style='font-weight:700; color:rgba(31,41,55,0.70)'>({risk_pct:.1f}%)</span>" if risk_pct is not None else ""
    return f"""
    <div style="margin-top:8px; margin-bottom:10px;">
      <div style="font-weight:900; font-size:1.0rem; margin-bottom:6px;">
        10-year CVD risk{pct}
      </div>
      <div style="display:flex; gap:8px;">
        {''.join(segs)}
      </div>
    </div>
    """
