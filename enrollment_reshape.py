"""
Reshape long enrollment-by-race rows into one row per district.

The API returns one row per district x race x sex x grade. Only the
sex == "Total" and grade == "Total" strata are kept so cross-tab rows are
not counted twice; each race label then becomes a column of summed
enrollment. Races a district does not report are 0; a reported race whose
count is missing stays NaN. Every known race label is always present as a
column.
"""

from __future__ import annotations

import pandas as pd

from district_shared import RACE_COLUMNS, TOTAL_LABEL, require_columns


def total_strata(enrollment: pd.DataFrame) -> pd.DataFrame:
    """Rows for the all-sexes, all-grades stratum."""
    mask = (
        (enrollment["sex"].astype(str).str.strip() == TOTAL_LABEL) &
        (enrollment["grade"].astype(str).str.strip() == TOTAL_LABEL)
    )
    return enrollment[mask]


def reshape_enrollment(enrollment: pd.DataFrame) -> pd.DataFrame:
    """
    Pivot labeled enrollment rows to wide format.

    Args:
        enrollment: Long rows with leaid, fips, race, sex, grade, enrollment
                    (race/sex/grade already labeled, see education_data.add_labels)

    Returns:
        DataFrame with columns ['leaid', 'fips'] + RACE_COLUMNS (+ any
        unrecognized race labels), one row per (leaid, fips)
    """
    require_columns(enrollment, ["leaid", "fips", "race", "sex", "grade", "enrollment"], "enrollment data")

    rows = total_strata(enrollment).copy()
    rows["race"] = rows["race"].astype(str).str.strip()
    counts = pd.to_numeric(rows["enrollment"], errors="coerce")
    # negative counts are API missing-data codes
    rows["enrollment"] = counts.where(counts >= 0)

    grouped = rows.groupby(["leaid", "fips", "race"])["enrollment"]
    # a reported race with no usable count stays NaN; an unreported race is 0
    sums = grouped.sum(min_count=1).unstack("race")
    reported = grouped.size().unstack("race")
    wide = sums.mask(reported.isna(), 0)
    extra = [c for c in wide.columns if c not in RACE_COLUMNS]
    wide = wide.reindex(columns=RACE_COLUMNS + sorted(extra), fill_value=0)
    wide.columns.name = None
    return wide.reset_index()
