# cvd_qrisk3.py
# QRISK3-2017 10-year CVD risk (Hippisley-Cox J, et al. BMJ 2017;357:j2099).
#
# The coefficient tables below are the published model, term for term. The
# centring constants are part of the model: changing any of them changes the
# score, so they are not tunables.
#
# Female age transforms: (age/10)^-2 and (age/10)^1
# Male age transforms:   (age/10)^-1 and (age/10)^3
# BMI transforms (both): (bmi/10)^-2 and (bmi/10)^-2 * ln(bmi/10)

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

QRISK3_AGE_RANGE: Tuple[int, int] = (25, 84)

ETHNICITY_CODES = MappingProxyType({
    "not_recorded": 0,
    "white": 1,
    "indian": 2,
    "pakistani": 3,
    "bangladeshi": 4,
    "other_asian": 5,
    "black_caribbean": 6,
    "black_african": 7,
    "chinese": 8,
    "other": 9,
})

SMOKING_CODES = MappingProxyType({
    "non": 0,
    "ex": 1,
    "light": 2,
    "moderate": 3,
    "heavy": 4,
})

# Boolean covariates, in the order the published code sums them.
FLAG_NAMES: Tuple[str, ...] = (
    "af",
    "atypical_antipsychotics",
    "corticosteroids",
    "impotence",
    "migraine",
    "ra",
    "renal",
    "semi",
    "sle",
    "treated_hyp",
    "type1",
    "type2",
    "fh_cvd",
)


@dataclass(frozen=True)
class QRisk3Coefficients:
    s0: float
    age_powers: Tuple[float, float]
    ethnicity: Tuple[float, ...]
    smoking: Tuple[float, ...]
    centre: Mapping[str, float]
    continuous: Mapping[str, float]
    flags: Mapping[str, float]
    # interactions with age_1 / age_2: smoking codes 1..4 then named covariates
    age_1_smoking: Tuple[float, float, float, float]
    age_1_terms: Mapping[str, float]
    age_2_smoking: Tuple[float, float, float, float]
    age_2_terms: Mapping[str, float]


QRISK3_FEMALE = QRisk3Coefficients(
    s0=0.988876402378082,
    age_powers=(-2.0, 1.0),
    ethnicity=(
        0.0,
        0.0,
        0.28040314332995425,
        0.56298994142075398,
        0.29590000851116516,
        0.072785379877982545,
        -0.17072135508857317,
        -0.39371043314874971,
        -0.32632495283530272,
        -0.17127056883241784,
    ),
    smoking=(
        0.0,
        0.13386833786546262,
        0.56200858012438537,
        0.66749593377502547,
        0.84948177644830847,
    ),
    centre=MappingProxyType({
        "age_1": 0.053274843841791,
        "age_2": 4.332503318786621,
        "bmi_1": 0.154946178197861,
        "bmi_2": 0.144462317228317,
        "rati": 3.476326465606690,
        "sbp": 123.130012512207030,
        "sbps5": 9.002537727355957,
        "town": 0.392308831214905,
    }),
    continuous=MappingProxyType({
        "age_1": -8.1388109247726188,
        "age_2": 0.79733376689699098,
        "bmi_1": 0.29236092275460052,
        "bmi_2": -4.1513300213837665,
        "rati": 0.15338035820802554,
        "sbp": 0.013131488407103424,
        "sbps5": 0.0078894541014586095,
        "town": 0.077223790588590108,
    }),
    flags=MappingProxyType({
        "af": 1.5923354969269663,
        "atypical_antipsychotics": 0.25237642070115557,
        "corticosteroids": 0.59520725304601851,
        "impotence": 0.0,
        "migraine": 0.301267260870345,
        "ra": 0.21364803435181942,
        "renal": 0.65194569493845833,
        "semi": 0.12555308058820178,
        "sle": 0.75880938654267693,
        "treated_hyp": 0.50931593683423004,
        "type1": 1.7267977510537347,
        "type2": 1.0688773244615468,
        "fh_cvd": 0.45445319020896213,
    }),
    age_1_smoking=(
        -4.7057161785851891,
        -2.7430383403573337,
        -0.86608088829392182,
        0.90241562369710648,
    ),
    age_1_terms=MappingProxyType({
        "af": 19.938034889546561,
        "corticosteroids": -0.98408045235936281,
        "migraine": 1.7634979587872999,
        "renal": -3.5874047731694114,
        "sle": 19.690303738638292,
        "treated_hyp": 11.872809733921812,
        "type1": -1.2444332714320747,
        "type2": 6.8652342000009599,
        "bmi_1": 23.802623412141742,
        "bmi_2": -71.184947692087007,
        "fh_cvd": 0.99467807940435127,
        "sbp": 0.034131842338615485,
        "town": -1.0301180802035639,
    }),
    age_2_smoking=(
        -0.075589244643193026,
        -0.11951192874867074,
        -0.10366306397571923,
        -0.13991853591718389,
    ),
    age_2_terms=MappingProxyType({
        "af": -0.076182651011162505,
        "corticosteroids": -0.12005364946742472,
        "migraine": -0.065586917898699859,
        "renal": -0.22688873086442507,
        "sle": 0.077347949679016273,
        "treated_hyp": 0.00096857823588174436,
        "type1": -0.28724064624488949,
        "type2": -0.097112252590695489,
        "bmi_1": 0.52369958933664429,
        "bmi_2": 0.045744190122323759,
        "fh_cvd": -0.076885051698423038,
        "sbp": -0.0015082501423272358,
        "town": -0.031593414674962329,
    }),
)

QRISK3_MALE = QRisk3Coefficients(
    s0=0.977268040180206,
    age_powers=(-1.0, 3.0),
    ethnicity=(
        0.0,
        0.0,
        0.27719248760308279,
        0.47446360714931268,
        0.52961729919689371,
        0.035100159186299017,
        -0.35807899669327919,
        -0.4005648523216514,
        -0.41522792889830173,
        -0.26321348134749967,
    ),
    smoking=(
        0.0,
        0.19128222863388983,
        0.55241588192645552,
        0.63835053027506072,
        0.78983819881858019,
    ),
    centre=MappingProxyType({
        "age_1": 0.234766781330109,
        "age_2": 77.284080505371094,
        "bmi_1": 0.149176135659218,
        "bmi_2": 0.141913309693336,
        "rati": 4.300998687744141,
        "sbp": 128.571578979492190,
        "sbps5": 8.756621360778809,
        "town": 0.526304900646210,
    }),
    continuous=MappingProxyType({
        "age_1": -17.839781666005575,
        "age_2": 0.0022964880605765492,
        "bmi_1": 2.4562776660536358,
        "bmi_2": -8.3011122314711354,
        "rati": 0.17340196856327111,
        "sbp": 0.012910126542553305,
        "sbps5": 0.010251914291290456,
        "town": 0.033268201277287295,
    }),
    flags=MappingProxyType({
        "af": 0.88209236928054657,
        "atypical_antipsychotics": 0.13046879855173513,
        "corticosteroids": 0.45485399750445543,
        "impotence": 0.22251859086705383,
        "migraine": 0.25584178074159913,
        "ra": 0.20970658013956567,
        "renal": 0.71853261288274384,
        "semi": 0.12133039882047164,
        "sle": 0.4401572174457522,
        "treated_hyp": 0.51659871082695474,
        "type1": 1.2343425521675175,
        "type2": 0.85942071430932221,
        "fh_cvd": 0.54055469009390156,
    }),
    age_1_smoking=(
        -0.21011133933516346,
        0.75268676447503191,
        0.99315887556405791,
        2.1331163414389076,
    ),
    age_1_terms=MappingProxyType({
        "af": 3.4896675530623207,
        "corticosteroids": 1.1708133653489108,
        "impotence": -1.506400985745431,
        "migraine": 2.3491159871402441,
        "renal": -0.50656716327223694,
        "treated_hyp": 6.5114581098532671,
        "type1": 5.3379864878006531,
        "type2": 3.6461817406221311,
        "bmi_1": 31.004952956033886,
        "bmi_2": -111.29157184391643,
        "fh_cvd": 2.7808628508531887,
        "sbp": 0.018858524469865853,
        "town": -0.1007554870063731,
    }),
    age_2_smoking=(
        -0.00049854870275326121,
        -0.00079875633317385414,
        -0.00083706184266251296,
        -0.00078400319155637289,
    ),
    age_2_terms=MappingProxyType({
        "af": -0.00034995608340636049,
        "corticosteroids": -0.0002496045095297166,
        "impotence": -0.0011058218441227373,
        "migraine": 0.00019896446041478631,
        "renal": -0.0018325930166498813,
        "treated_hyp": 0.00063838053104165013,
        "type1": 0.0006409780808752897,
        "type2": -0.00024695695588868315,
        "bmi_1": 0.0050380102356322029,
        "bmi_2": -0.013074483002524319,
        "fh_cvd": -0.00024791809907396037,
        "sbp": -0.000012718741915884570,
        "town": -0.000093299642323272888,
    }),
)


def coefficients_for(male: bool) -> QRisk3Coefficients:
    return QRISK3_MALE if male else QRISK3_FEMALE


def ethnicity_code(ethnicity) -> int:
    """Unknown or missing ethnicity falls back to white (code 1)."""
    if ethnicity is None:
        return 1
    if isinstance(ethnicity, int) and not isinstance(ethnicity, bool):
        return ethnicity if 0 <= ethnicity <= 9 else 1
    key = str(ethnicity).strip().lower().replace(" ", "_").replace("-", "_")
    return ETHNICITY_CODES.get(key, 1)


def smoking_code(smoking) -> int:
    """Accept an int 0-4 or one of the SMOKING_CODES names; anything else is 0."""
    if isinstance(smoking, bool):
        return 2 if smoking else 0
    if isinstance(smoking, int):
        return smoking if 0 <= smoking <= 4 else 0
    return SMOKING_CODES.get(str(smoking).strip().lower(), 0)


def _transformed(c: QRisk3Coefficients, age: float, bmi: float, rati: float, sbp: float, sbps5: float, town: float):
    dage = age / 10.0
    dbmi = bmi / 10.0
    raw = {
        "age_1": dage ** c.age_powers[0],
        "age_2": dage ** c.age_powers[1],
        "bmi_1": dbmi ** -2.0,
        "bmi_2": (dbmi ** -2.0) * math.log(dbmi),
        "rati": rati,
        "sbp": sbp,
        "sbps5": sbps5,
        "town": town,
    }
    return {k: v - c.centre[k] for k, v in raw.items()}


def qrisk3_linear_predictor(
    male: bool,
    age: float,
    bmi: float,
    chol_ratio: float,
    sbp: float,
    sbp_sd: float,
    townsend: float,
    ethnicity: int,
    smoking: int,
    flags: Mapping[str, bool],
) -> float:
    c = coefficients_for(male)
    x = _transformed(c, age, bmi, chol_ratio, sbp, sbp_sd, townsend)
    b = {name: (1.0 if flags.get(name) else 0.0) for name in FLAG_NAMES}
    if not male:
        b["impotence"] = 0.0

    a = 0.0
    a += c.ethnicity[ethnicity]
    a += c.smoking[smoking]

    for name, coef in c.continuous.items():
        a += x[name] * coef
    for name in FLAG_NAMES:
        a += b[name] * c.flags[name]

    covariates = {**b, **x}
    for age_key, smoke_terms, terms in (
        ("age_1", c.age_1_smoking, c.age_1_terms),
        ("age_2", c.age_2_smoking, c.age_2_terms),
    ):
        age_x = x[age_key]
        if smoking >= 1:
            a += age_x * smoke_terms[smoking - 1]
        for name, coef in terms.items():
            a += age_x * covariates[name] * coef
    return a


def qrisk3_10y_risk(
    male: bool,
    age: float,
    bmi: float,
    chol_ratio: float,
    sbp: float,
    sbp_sd: float = 0.0,
    townsend: float = 0.0,
    ethnicity: int = 1,
    smoking: int = 0,
    flags: Optional[Mapping[str, bool]] = None,
) -> float:
    """Return the QRISK3 10-year CVD risk as a percentage."""
    a = qrisk3_linear_predictor(
        male, age, bmi, chol_ratio, sbp, sbp_sd, townsend, ethnicity, smoking, flags or {}
    )
    s0 = coefficients_for(male).s0
    pct = 100.0 * (1.0 - s0 ** math.exp(a))
    logger.debug("QRISK3 a=%.5f risk=%.3f%%", a, pct)
    return pct
