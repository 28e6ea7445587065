"""Test API acquisition against a stubbed HTTP session (no network)."""
import pandas as pd
import pytest
import requests

import cache_manager
from district_shared import normalize_leaid
from education_data import (
    topic_url, make_request, add_labels, fetch_finance, fetch_enrollment_by_race,
    fetch_directory, fetch_cost_of_living, fetch_all,
)
from sample_districts import make_raw


class FakeResponse:
    def __init__(self, body, status=200):
        self.body = body
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.body


class FakeSession:
    """Serves canned pages by URL and records every call."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        return self.pages[url]


class NoNetwork:
    def get(self, *args, **kwargs):
        raise AssertionError("network should not be used")


def test_topic_url():
    url = topic_url("enrollment", 2017, subtopic="race", grade="grade-99")
    assert url == "https://educationdata.urban.org/api/v1/school-districts/ccd/enrollment/2017/grade-99/race/"
    assert topic_url("finance", 2016).endswith("/school-districts/ccd/finance/2016/")


def test_pagination_follows_next():
    first = "http://api/finance/2017/"
    second = "http://api/finance/2017/?page=2&fips=1"
    session = FakeSession({
        first: FakeResponse({"results": [{"leaid": 1}, {"leaid": 2}], "next": second}),
        second: FakeResponse({"results": [{"leaid": 3}], "next": None}),
    })
    df = make_request(first, params={"fips": 1}, session=session)
    assert len(df) == 3
    assert df["leaid"].tolist() == [1, 2, 3]
    # query params only on the first request; `next` carries them afterwards
    assert session.calls == [(first, {"fips": 1}), (second, None)]
    print("✓ Pagination test passed")


def test_http_error_propagates():
    session = FakeSession({"http://api/x/": FakeResponse({}, status=503)})
    with pytest.raises(requests.HTTPError):
        make_request("http://api/x/", session=session)


def test_add_labels():
    df = pd.DataFrame({"race": [1, 2, 99, 42], "sex": [99, 1, 2, 99],
                       "grade": [99, 99, 99, 99], "enrollment": [5, 6, 7, 8]})
    out = add_labels(df)
    assert out["race"].tolist() == ["White", "Black", "Total", "42"]
    assert out["sex"].tolist()[0] == "Total"
    assert (out["grade"] == "Total").all()
    assert out["enrollment"].tolist() == [5, 6, 7, 8]
    assert df["race"].tolist() == [1, 2, 99, 42]
    print("✓ Label mapping test passed")


def test_fetch_finance_normalizes_ids_and_numbers():
    url = topic_url("finance", 2017)
    session = FakeSession({url: FakeResponse({"results": [{
        "leaid": 100001, "fips": 1, "rev_total": "1000", "rev_fed_total": 100,
        "rev_state_total": 500, "rev_local_total": 400, "rev_state_outlay_capital_debt": 0,
        "rev_local_prop_sale": 0, "payments_charter_schools": None,
    }], "next": None})})
    df = fetch_finance(2017, session=session)
    assert df["leaid"].iloc[0] == "0100001"
    assert df["rev_total"].iloc[0] == 1000
    assert pd.isna(df["payments_charter_schools"].iloc[0])


def test_fetch_finance_missing_columns_raises():
    url = topic_url("finance", 2017)
    session = FakeSession({url: FakeResponse({"results": [{"leaid": 1, "fips": 1}], "next": None})})
    with pytest.raises(ValueError, match="rev_total"):
        fetch_finance(2017, session=session)


def test_fetch_enrollment_by_race_labels():
    url = topic_url("enrollment", 2017, subtopic="race", grade="grade-99")
    session = FakeSession({url: FakeResponse({"results": [
        {"leaid": "0100001", "fips": 1, "year": 2017, "race": 2, "sex": 99, "grade": 99, "enrollment": 80},
        {"leaid": "0100001", "fips": 1, "year": 2017, "race": 99, "sex": 99, "grade": 99, "enrollment": 100},
    ], "next": None})})
    df = fetch_enrollment_by_race(2017, session=session)
    assert df["race"].tolist() == ["Black", "Total"]
    assert (df["sex"] == "Total").all()


def test_negative_missing_codes_become_nan():
    url = topic_url("enrollment", 2017, subtopic="race", grade="grade-99")
    session = FakeSession({url: FakeResponse({"results": [
        {"leaid": "0100002", "fips": 1, "year": 2017, "race": 2, "sex": 99, "grade": 99, "enrollment": -2},
        {"leaid": "0100002", "fips": 1, "year": 2017, "race": 1, "sex": 99, "grade": 99, "enrollment": 900},
    ], "next": None})})
    df = fetch_enrollment_by_race(2017, session=session)
    assert pd.isna(df["enrollment"].iloc[0])
    assert df["enrollment"].iloc[1] == 900

    url = topic_url("finance", 2017)
    session = FakeSession({url: FakeResponse({"results": [{
        "leaid": "0100002", "fips": 1, "rev_total": -1, "rev_fed_total": -3,
        "rev_state_total": 500, "rev_local_total": 400, "rev_state_outlay_capital_debt": 0,
        "rev_local_prop_sale": -2, "payments_charter_schools": 0,
    }], "next": None})})
    fin = fetch_finance(2017, session=session)
    for col in ("rev_total", "rev_fed_total", "rev_local_prop_sale"):
        assert pd.isna(fin[col].iloc[0]), col
    assert fin["rev_state_total"].iloc[0] == 500
    assert fin["payments_charter_schools"].iloc[0] == 0
    print("✓ Missing-code cleaning test passed")


def test_normalize_leaid_keeps_missing_ids_missing():
    ids = normalize_leaid(pd.Series([100001, None, "0600003", 600004.0, " "], dtype=object))
    assert ids.iloc[0] == "0100001"
    assert pd.isna(ids.iloc[1])
    assert ids.iloc[2] == "0600003"
    assert ids.iloc[3] == "0600004"
    assert pd.isna(ids.iloc[4])
    assert "0000nan" not in set(ids.dropna())


def test_rows_without_district_id_are_dropped(tmp_path):
    url = topic_url("directory", 2017)
    session = FakeSession({url: FakeResponse({"results": [
        {"leaid": None, "fips": 1}, {"leaid": 100001, "fips": 1},
    ], "next": None})})
    df = fetch_directory(2017, session=session)
    assert df["leaid"].tolist() == ["0100001"]

    path = tmp_path / "cola.csv"
    path.write_text("leaid,cola\n,1.5\n0100001,1.0\n")
    cola = fetch_cost_of_living(path)
    assert cola["leaid"].tolist() == ["0100001"]
    print("✓ Missing district id test passed")


def test_cost_of_living_aliases_and_padding(tmp_path):
    path = tmp_path / "cola.csv"
    path.write_text("NCESID,COLA_Multiplier,name\n100001,1.05,A\n0600003,0.95,C\n100001,2.0,dup\n")
    df = fetch_cost_of_living(path)
    assert list(df.columns) == ["leaid", "cola"]
    assert df["leaid"].tolist() == ["0100001", "0600003"]
    assert df["cola"].tolist() == [1.05, 0.95]
    print("✓ Cost-of-living reader test passed")


def test_cost_of_living_missing_column_raises(tmp_path):
    path = tmp_path / "cola.csv"
    path.write_text("leaid,other\n0100001,1\n")
    with pytest.raises(ValueError, match="cola"):
        fetch_cost_of_living(path)


def test_fetch_all_uses_cache(tmp_path):
    cache_manager.save_cache(make_raw(), 2017, "ccd-2017", cache_dir=tmp_path)
    cola = tmp_path / "cola.csv"
    cola.write_text("leaid,cola\n0100001,1.0\n0100002,1.0\n")
    raw = fetch_all(2017, "ccd-2017", cola, cache_dir=tmp_path, session=NoNetwork())
    assert set(raw) == {"finance", "enrollment", "directory", "cola"}
    assert raw["finance"]["leaid"].iloc[0] == "0100001"
    assert raw["cola"]["leaid"].tolist() == ["0100001", "0100002"]


def test_fetch_all_reads_new_cost_of_living_source(tmp_path):
    cache_manager.save_cache(make_raw(), 2017, "ccd-2017", cache_dir=tmp_path)
    first = tmp_path / "cola_a.csv"
    first.write_text("leaid,cola\n0100001,1.0\n0600003,1.2\n")
    second = tmp_path / "cola_b.csv"
    second.write_text("leaid,cola\n0100001,9.99\n")

    raw = fetch_all(2017, "ccd-2017", first, cache_dir=tmp_path, session=NoNetwork())
    assert raw["cola"]["cola"].tolist() == [1.0, 1.2]
    # same year and vintage, API data still cached, cost-of-living re-read
    raw = fetch_all(2017, "ccd-2017", second, cache_dir=tmp_path, session=NoNetwork())
    assert raw["cola"]["leaid"].tolist() == ["0100001"]
    assert raw["cola"]["cola"].tolist() == [9.99]
    print("✓ Cost-of-living source refresh test passed")


def test_fetch_all_filtered_cache_is_separate(tmp_path):
    cache_manager.save_cache(make_raw(), 2017, "ccd-2017", cache_dir=tmp_path)
    cola = tmp_path / "cola.csv"
    cola.write_text("leaid,cola\n0100001,1.0\n")
    # a filtered run must not read the national cache
    with pytest.raises(AssertionError, match="network"):
        fetch_all(2017, "ccd-2017", cola, filters={"fips": 1},
                  cache_dir=tmp_path, session=NoNetwork())


if __name__ == "__main__":
    print("Running acquisition tests...\n")
    test_pagination_follows_next()
    test_add_labels()
    test_negative_missing_codes_become_nan()
    test_normalize_leaid_keeps_missing_ids_missing()
    print("\n✓ All tests passed!")
