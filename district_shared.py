from __future__ import annotations

import math, re
from pathlib import Path
from typing import Iterable, List

import pandas as pd

# ---------------- Paths ----------------
DATA_DIR = Path("./data")
OUTPUT_DIR = Path("./output")
CACHE_DIR = DATA_DIR / "cache"

# ---------------- Run configuration ----------------
# Overridable from the command line (generate_report.py --year / --vintage / --cola-source)
DEFAULT_YEAR = 2017
DEFAULT_VINTAGE = "ccd-2017"
DEFAULT_COLA_SOURCE = DATA_DIR / "district_cola.csv"

# Urban Institute Education Data API
URBAN_API = "https://educationdata.urban.org/api/v1"
API_LEVEL = "school-districts"
API_SOURCE = "ccd"
API_TIMEOUT = 120  # seconds per page

# Windows reserved device names (case-insensitive)
_WINDOWS_RESERVED_NAMES = {
    'con', 'prn', 'aux', 'nul',
    'com1', 'com2', 'com3', 'com4', 'com5', 'com6', 'com7', 'com8', 'com9',
    'lpt1', 'lpt2', 'lpt3', 'lpt4', 'lpt5', 'lpt6', 'lpt7', 'lpt8', 'lpt9'
}

def make_safe_filename(name: str) -> str:
    """
    Convert a report or state label to a safe filename component.

    Args:
        name: The original label (e.g. "Revenue by % Black (COLA)")

    Returns:
        A filename-safe string with no reserved device names
    """
    if not name:
        return "unnamed"

    safe = name.replace(" ", "_")
    safe = safe.replace("-", "_")
    safe = safe.replace("(", "")
    safe = safe.replace(")", "")
    safe = safe.replace("%", "pct")
    safe = safe.replace("≤", "le")
    safe = safe.replace("≥", "ge")
    safe = re.sub(r'[<>/\\:*?"|+]', "_", safe)

    safe = safe.encode('ascii', 'ignore').decode('ascii')

    stem = safe.split('.')[0].lower()
    if stem in _WINDOWS_RESERVED_NAMES:
        safe = f"file_{safe}"

    return safe or "unnamed"

# ---------------- Coded categorical labels ----------------
# Codes used by the CCD enrollment endpoints
RACE_LABELS = {
    1: "White",
    2: "Black",
    3: "Hispanic",
    4: "Asian",
    5: "American Indian or Alaska Native",
    6: "Native Hawaiian or other Pacific Islander",
    7: "Two or more races",
    8: "Nonresident alien",
    9: "Unknown",
    20: "Other",
    99: "Total",
}
SEX_LABELS = {
    1: "Male",
    2: "Female",
    3: "Another gender",
    4: "Gender unknown",
    9: "Unknown",
    99: "Total",
}
GRADE_LABELS = {
    -1: "Pre-K",
    0: "Kindergarten",
    **{g: f"Grade {g}" for g in range(1, 13)},
    13: "Grade 13",
    14: "Adult Education",
    15: "Ungraded",
    99: "Total",
}
CODED_COLUMNS = {"race": RACE_LABELS, "sex": SEX_LABELS, "grade": GRADE_LABELS}

TOTAL_LABEL = "Total"
RACE_COLUMNS = [lbl for code, lbl in sorted(RACE_LABELS.items())]

# FIPS -> postal abbreviation, used when the directory is unavailable
STATE_ABBR = {
    1: "AL", 2: "AK", 4: "AZ", 5: "AR", 6: "CA", 8: "CO", 9: "CT", 10: "DE",
    11: "DC", 12: "FL", 13: "GA", 15: "HI", 16: "ID", 17: "IL", 18: "IN",
    19: "IA", 20: "KS", 21: "KY", 22: "LA", 23: "ME", 24: "MD", 25: "MA",
    26: "MI", 27: "MN", 28: "MS", 29: "MO", 30: "MT", 31: "NE", 32: "NV",
    33: "NH", 34: "NJ", 35: "NM", 36: "NY", 37: "NC", 38: "ND", 39: "OH",
    40: "OK", 41: "OR", 42: "PA", 44: "RI", 45: "SC", 46: "SD", 47: "TN",
    48: "TX", 49: "UT", 50: "VT", 51: "VA", 53: "WA", 54: "WV", 55: "WI",
    56: "WY", 60: "AS", 66: "GU", 69: "MP", 72: "PR", 78: "VI",
}

# ---------------- Finance schema ----------------
FINANCE_COLUMNS = [
    "rev_total",
    "rev_fed_total",
    "rev_state_total",
    "rev_local_total",
    "rev_state_outlay_capital_debt",
    "rev_local_prop_sale",
    "payments_charter_schools",
]

ADJUSTED_COLUMNS = [
    "adjusted_fed",
    "adjusted_state",
    "adjusted_local",
    "adjusted_total",
    "adjusted_state_local",
]

# Revenue by source, bottom to top for stacked charts
SOURCE_COLUMNS = {
    "Federal": "adjusted_fed_cola",
    "State": "adjusted_state_cola",
    "Local": "adjusted_local_cola",
}

# ---------------- Concentration and bins ----------------
CONCENTRATION_HIGH = 75.0
CONCENTRATION_LOW = 25.0
NOT_CONCENTRATED = "NotConcentrated"

BIN_EDGES = list(range(0, 101, 10))
BIN_LABELS = BIN_EDGES[1:]

# ---------------- Unified palette (Okabe–Ito) ----------------
CONCENTRATION_COLORS = {
    "black":    "#0072B2",  # blue
    "nonwhite": "#009E73",  # bluish green
    "white":    "#E69F00",  # orange
    NOT_CONCENTRATED: "#BBBBBB",
}
SOURCE_COLORS = {
    "Federal": "#CC79A7",  # reddish purple
    "State":   "#56B4E9",  # sky blue
    "Local":   "#F0E442",  # yellow
}
BIN_BAR_COLOR = "#1b6ca8"
SCATTER_COLOR = "#8fbcd4"


# ---------------- Schema checks ----------------
def require_columns(df: pd.DataFrame, columns: Iterable[str], what: str) -> None:
    """Raise ValueError naming any of `columns` missing from `df`."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"{what} is missing required columns: {', '.join(missing)}")

def normalize_leaid(s: pd.Series) -> pd.Series:
    """LEA ids are 7-digit strings; the API sometimes returns them as numbers. Missing ids stay NaN."""
    out = s.astype(str).str.strip().str.replace(r"\.0$", "", regex=True)
    present = s.notna() & (out != "")
    return out.str.zfill(7).where(present)

def state_label(fips) -> str:
    try:
        return STATE_ABBR.get(int(fips), str(fips))
    except (TypeError, ValueError):
        return str(fips)

# ---------------- Weighted reductions ----------------
def weighted_per_pupil(revenue: pd.Series, enrollment: pd.Series) -> float:
    """sum(revenue) / sum(enrollment); NaN when there are no pupils."""
    den = float(enrollment.sum())
    if den <= 0:
        return float("nan")
    return float(revenue.sum()) / den

def pct_difference(value: float, baseline: float) -> float:
    """Percent difference of `value` relative to `baseline`."""
    if baseline is None or baseline != baseline or baseline == 0:
        return float("nan")
    return (value - baseline) / baseline * 100.0

# ---------------- Formatting ----------------
def fmt_dollars(v: float) -> str:
    if v is None or (isinstance(v, float) and math.isnan(v)): return "—"
    return f"${v:,.0f}"

def fmt_count(v: float) -> str:
    if v is None or (isinstance(v, float) and math.isnan(v)): return "—"
    return f"{v:,.0f}"

def fmt_pct(v: float, signed: bool = True) -> str:
    """Format a value already expressed in percent (12.3 -> '+12.3%')."""
    if v is None or (isinstance(v, float) and math.isnan(v)): return "—"
    return f"{v:+.1f}%" if signed else f"{v:.1f}%"

def _nice_ceiling(x: float, step: int) -> float:
    if x <= 0: return step
    return math.ceil(x / step) * step

def compute_dollar_ylim(tables: List[pd.DataFrame], column: str, pad: float = 1.05, step: int = 1000) -> float:
    tops = []
    for t in tables:
        if t is None or t.empty or column not in t.columns: continue
        vals = pd.to_numeric(t[column], errors="coerce").dropna()
        if not vals.empty: tops.append(float(vals.max()))
    if not tops: return step
    return _nice_ceiling(max(tops) * pad, step)

