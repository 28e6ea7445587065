"""
Data acquisition from the Urban Institute Education Data API.

Fetches the four district-level datasets the revenue analysis needs for one
school year:
1. Finance (CCD F-33 revenue fields)
2. Enrollment by race (long format: one row per district/race/sex/grade)
3. Directory (district names, state codes)
4. Cost-of-living multiplier per district (CSV path or URL)

All requests block sequentially. HTTP and network errors propagate to the
caller; there is no retry. Year and data vintage are always passed in
explicitly, never read from module state.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import requests

from district_shared import (
    URBAN_API, API_LEVEL, API_SOURCE, API_TIMEOUT,
    CODED_COLUMNS, FINANCE_COLUMNS,
    require_columns, normalize_leaid,
)
import cache_manager

# Column aliases accepted in the cost-of-living file
_COLA_ALIASES = {
    "leaid": "leaid", "lea_id": "leaid", "ncesid": "leaid", "district_id": "leaid",
    "cola": "cola", "cola_multiplier": "cola", "col_multiplier": "cola", "multiplier": "cola",
}


def topic_url(topic: str, year: int, subtopic: Optional[str] = None, grade: Optional[str] = None,
              level: str = API_LEVEL, source: str = API_SOURCE) -> str:
    """Build the endpoint URL, e.g. .../school-districts/ccd/enrollment/2017/grade-99/race/"""
    parts = [URBAN_API, level, source, topic, str(year)]
    if grade:
        parts.append(grade)
    if subtopic:
        parts.append(subtopic)
    return "/".join(parts) + "/"


def make_request(url: str, params: Optional[dict] = None, session=None) -> pd.DataFrame:
    """
    Request every page of an endpoint and return the combined results.

    The API answers with {"results": [...], "next": url-or-null}; `next`
    already carries the query string, so params go on the first request only.
    """
    http = session if session is not None else requests
    resp = http.get(url, params=params, timeout=API_TIMEOUT)
    resp.raise_for_status()
    body = resp.json()
    data = list(body.get("results", []))
    pages = 1
    while body.get("next"):
        resp = http.get(body["next"], timeout=API_TIMEOUT)
        resp.raise_for_status()
        body = resp.json()
        data.extend(body.get("results", []))
        pages += 1
    print(f"  [Fetch] {url} -> {len(data)} rows ({pages} page{'s' if pages != 1 else ''})")
    return pd.DataFrame(data)


def missing_codes_to_nan(values: pd.Series) -> pd.Series:
    """Numeric values with the API's negative missing-data codes (-1, -2, -3) as NaN."""
    values = pd.to_numeric(values, errors="coerce")
    return values.where(values >= 0)


def drop_missing_ids(df: pd.DataFrame, what: str) -> pd.DataFrame:
    missing = int(df["leaid"].isna().sum())
    if missing:
        print(f"  [WARN] Dropped {missing} {what} rows without a district id")
        df = df[df["leaid"].notna()].reset_index(drop=True)
    return df


def add_labels(df: pd.DataFrame) -> pd.DataFrame:
    """Replace coded race/sex/grade values with readable labels (99 -> 'Total')."""
    out = df.copy()
    for col, labels in CODED_COLUMNS.items():
        if col not in out.columns:
            continue
        codes = pd.to_numeric(out[col], errors="coerce")
        out[col] = codes.map(labels).fillna(out[col].astype(str))
    return out


def fetch_topic(topic: str, year: int, subtopic: Optional[str] = None,
                grades: Optional[List[str]] = None, filters: Optional[dict] = None,
                labels: bool = False, session=None) -> pd.DataFrame:
    """
    Fetch one topic for one year, keyed by district id.

    Args:
        topic: finance | enrollment | directory
        year: School year (fall year, e.g. 2017 for 2017-18)
        subtopic: Optional breakdown, e.g. "race"
        grades: Grade path segments for enrollment endpoints (e.g. ["grade-99"])
        filters: Optional query filters (e.g. {"fips": 25})
        labels: If True, replace coded categorical values with labels

    Returns:
        DataFrame with a normalized string `leaid` column
    """
    frames = []
    for grade in (grades or [None]):
        url = topic_url(topic, year, subtopic=subtopic, grade=grade)
        frames.append(make_request(url, params=filters, session=session))
    df = pd.concat(frames, ignore_index=True) if len(frames) > 1 else frames[0]

    require_columns(df, ["leaid"], f"{topic} data for {year}")
    df["leaid"] = normalize_leaid(df["leaid"])
    df = drop_missing_ids(df, topic)
    if labels:
        df = add_labels(df)
    return df


def fetch_finance(year: int, filters: Optional[dict] = None, session=None) -> pd.DataFrame:
    df = fetch_topic("finance", year, filters=filters, session=session)
    require_columns(df, ["fips"] + FINANCE_COLUMNS, f"finance data for {year}")
    for c in FINANCE_COLUMNS:
        df[c] = missing_codes_to_nan(df[c])
    return df


def fetch_enrollment_by_race(year: int, grades: Optional[List[str]] = None,
                             filters: Optional[dict] = None, labels: bool = True,
                             session=None) -> pd.DataFrame:
    df = fetch_topic("enrollment", year, subtopic="race", grades=grades or ["grade-99"],
                     filters=filters, labels=labels, session=session)
    require_columns(df, ["fips", "race", "sex", "grade", "enrollment"], f"enrollment data for {year}")
    df["enrollment"] = missing_codes_to_nan(df["enrollment"])
    return df


def fetch_directory(year: int, filters: Optional[dict] = None, session=None) -> pd.DataFrame:
    df = fetch_topic("directory", year, filters=filters, session=session)
    require_columns(df, ["fips"], f"directory data for {year}")
    return df


def fetch_cost_of_living(source) -> pd.DataFrame:
    """
    Read the per-district cost-of-living multipliers.

    Args:
        source: CSV path or URL with a district id column and a multiplier column

    Returns:
        DataFrame with columns ['leaid', 'cola'], one row per district
    """
    print(f"  [Fetch] cost-of-living index from {source}")
    df = pd.read_csv(source, dtype=str)
    df.columns = [str(c).strip() for c in df.columns]
    ren = {}
    for c in df.columns:
        low = c.lower()
        if low in _COLA_ALIASES and _COLA_ALIASES[low] not in ren.values():
            ren[c] = _COLA_ALIASES[low]
    df = df.rename(columns=ren)
    require_columns(df, ["leaid", "cola"], f"cost-of-living data ({source})")

    df = df[["leaid", "cola"]].copy()
    df["leaid"] = normalize_leaid(df["leaid"])
    df = drop_missing_ids(df, "cost-of-living")
    df["cola"] = pd.to_numeric(df["cola"], errors="coerce")

    dupes = int(df["leaid"].duplicated().sum())
    if dupes:
        print(f"  [WARN] {dupes} duplicate district ids in cost-of-living data; keeping first")
        df = df.drop_duplicates(subset="leaid", keep="first")
    return df.reset_index(drop=True)


def fetch_all(year: int, vintage: str, cola_source, force_refetch: bool = False,
              filters: Optional[dict] = None, cache_dir: Path = None,
              session=None) -> Dict[str, pd.DataFrame]:
    """
    Fetch all four datasets for one year.

    The three API datasets go through the download cache; the cost-of-living
    file is always read from `cola_source`.

    Returns:
        Dict with keys 'finance', 'enrollment', 'directory', 'cola'
    """
    cola = fetch_cost_of_living(cola_source)

    # filtered downloads are cached separately from national ones
    key = vintage + "".join(f"_{k}{v}" for k, v in sorted((filters or {}).items()))
    if cache_manager.use_cache(year, key, force_refetch=force_refetch, cache_dir=cache_dir):
        raw = cache_manager.load_from_cache(year, key, cache_dir=cache_dir)
    else:
        print(f"\n[Fetch] Downloading {year} district data (vintage {vintage})...")
        raw = {
            "finance": fetch_finance(year, filters=filters, session=session),
            "enrollment": fetch_enrollment_by_race(year, filters=filters, session=session),
            "directory": fetch_directory(year, filters=filters, session=session),
        }
        cache_manager.save_cache(raw, year, key, cache_dir=cache_dir)
    raw["cola"] = cola
    return raw
