"""
Revenue adjustments applied to raw district finance rows.

Adjusted revenue removes money that does not pay for the current operation
of the district's own schools:
- state capital outlay and debt service revenue
- local revenue from sale of property
- payments to charter schools, allocated across sources by revenue share

Every adjusted field is a function of its own row only.

NOTE: the charter deduction from federal revenue uses the *state* revenue
share (pct_state), not pct_fed. This matches the published methodology's
arithmetic and is kept as-is; pct_fed is still computed and carried in the
output so the difference can be audited.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from district_shared import FINANCE_COLUMNS, require_columns


def revenue_shares(finance: pd.DataFrame) -> pd.DataFrame:
    """
    Share of total revenue from each source, from unadjusted totals.

    Rows with rev_total == 0 get NaN shares (not inf, not 0), so every
    adjusted figure for that row is NaN and the row is removed later by the
    linker's missing-value drop.
    """
    total = finance["rev_total"].where(finance["rev_total"] != 0, np.nan)
    return pd.DataFrame({
        "pct_local": finance["rev_local_total"] / total,
        "pct_state": finance["rev_state_total"] / total,
        "pct_fed": finance["rev_fed_total"] / total,
    }, index=finance.index)


def adjust_revenue(finance: pd.DataFrame) -> pd.DataFrame:
    """
    Derive adjusted revenue fields from raw finance rows.

    Args:
        finance: One row per district with FINANCE_COLUMNS

    Returns:
        New DataFrame: the input columns plus pct_local, pct_state, pct_fed,
        adjusted_fed, adjusted_state, adjusted_local, adjusted_total,
        adjusted_state_local
    """
    require_columns(finance, FINANCE_COLUMNS, "finance data")
    out = finance.copy()
    charter = out["payments_charter_schools"]

    shares = revenue_shares(out)
    out["pct_local"] = shares["pct_local"]
    out["pct_state"] = shares["pct_state"]
    out["pct_fed"] = shares["pct_fed"]

    out["adjusted_state"] = out["rev_state_total"] - out["rev_state_outlay_capital_debt"]
    out["adjusted_local"] = out["rev_local_total"] - out["rev_local_prop_sale"]

    out["adjusted_local"] = out["adjusted_local"] - charter * out["pct_local"]
    out["adjusted_state"] = out["adjusted_state"] - charter * out["pct_state"]
    out["adjusted_fed"] = out["rev_fed_total"] - charter * out["pct_state"]

    out["adjusted_total"] = out["adjusted_fed"] + out["adjusted_state"] + out["adjusted_local"]
    out["adjusted_state_local"] = out["adjusted_state"] + out["adjusted_local"]
    return out
