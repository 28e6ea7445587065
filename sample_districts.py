"""
Small synthetic district tables shared by the test modules.

Districts (leaid):
  0100001  AL, 80% black,   finance + cost-of-living, charter payments
  0100002  AL, 90% white,   finance + cost-of-living
  0600003  CA, mixed,       finance + cost-of-living (cola 1.2)
  0600004  CA, enrollment + cost-of-living only (no finance row)
  0600005  CA, enrollment + finance only (no cost-of-living row)
  0100009  AL, finance only (no enrollment)
"""

import pandas as pd

ENROLLMENT = {
    # leaid: (fips, {race: count})
    "0100001": (1, {"Black": 80, "White": 15, "Hispanic": 5, "Total": 100}),
    "0100002": (1, {"White": 900, "Black": 50, "Hispanic": 50, "Total": 1000}),
    "0600003": (6, {"White": 200, "Black": 100, "Hispanic": 200, "Total": 500}),
    "0600004": (6, {"White": 300, "Hispanic": 100, "Total": 400}),
    "0600005": (6, {"White": 100, "Asian": 100, "Total": 200}),
}

FINANCE = [
    # leaid, fips, total, fed, state, local, state capital, local prop sale, charter
    ("0100001", 1, 1_000_000, 100_000, 500_000, 400_000, 50_000, 10_000, 100_000),
    ("0100002", 1, 10_000_000, 500_000, 4_500_000, 5_000_000, 0, 0, 0),
    ("0600003", 6, 6_000_000, 600_000, 2_400_000, 3_000_000, 0, 0, 0),
    ("0600005", 6, 2_000_000, 200_000, 800_000, 1_000_000, 0, 0, 0),
    ("0100009", 1, 3_000_000, 300_000, 1_200_000, 1_500_000, 0, 0, 0),
]

COLA = {"0100001": 1.0, "0100002": 1.0, "0600003": 1.2, "0600004": 1.0}


def make_finance() -> pd.DataFrame:
    cols = ["leaid", "fips", "rev_total", "rev_fed_total", "rev_state_total", "rev_local_total",
            "rev_state_outlay_capital_debt", "rev_local_prop_sale", "payments_charter_schools"]
    df = pd.DataFrame(FINANCE, columns=cols)
    df["year"] = 2017
    return df


def make_enrollment_long() -> pd.DataFrame:
    rows = []
    for leaid, (fips, counts) in ENROLLMENT.items():
        for race, n in counts.items():
            rows.append({"leaid": leaid, "fips": fips, "year": 2017, "race": race,
                         "sex": "Total", "grade": "Total", "enrollment": n})
    # cross-tab rows that must not be counted
    rows.append({"leaid": "0100001", "fips": 1, "year": 2017, "race": "Black",
                 "sex": "Male", "grade": "Total", "enrollment": 40})
    rows.append({"leaid": "0100002", "fips": 1, "year": 2017, "race": "White",
                 "sex": "Total", "grade": "Grade 1", "enrollment": 75})
    return pd.DataFrame(rows)


def make_cola() -> pd.DataFrame:
    return pd.DataFrame({"leaid": list(COLA), "cola": list(COLA.values())})


def make_directory() -> pd.DataFrame:
    return pd.DataFrame({
        "leaid": ["0100001", "0100002", "0600003", "0600004", "0600005"],
        "fips": [1, 1, 6, 6, 6],
        "lea_name": ["Alpha City", "Bravo County", "Charlie Unified", "Delta Unified", "Echo Unified"],
        "state_location": ["AL", "AL", "CA", "CA", "CA"],
    })


def make_raw() -> dict:
    return {
        "finance": make_finance(),
        "enrollment": make_enrollment_long(),
        "directory": make_directory(),
        "cola": make_cola(),
    }
