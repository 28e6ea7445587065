"""Test the download cache round trip and cache decisions."""
import pytest

from cache_manager import (
    cache_paths, cache_exists, save_cache, load_from_cache, use_cache,
    clear_cache, get_cache_info,
)
from sample_districts import make_raw


def test_round_trip_keeps_leading_zeros(tmp_path):
    raw = make_raw()
    save_cache(raw, 2017, "ccd-2017", cache_dir=tmp_path)
    assert cache_exists(2017, "ccd-2017", cache_dir=tmp_path)

    back = load_from_cache(2017, "ccd-2017", cache_dir=tmp_path)
    for name in ("finance", "enrollment", "directory"):
        assert len(back[name]) == len(raw[name]), name
        assert back[name]["leaid"].tolist() == raw[name]["leaid"].tolist(), name
    assert back["finance"]["rev_total"].sum() == raw["finance"]["rev_total"].sum()
    print("✓ Cache round trip test passed")


def test_vintage_mismatch_is_a_miss(tmp_path):
    save_cache(make_raw(), 2017, "ccd-2017", cache_dir=tmp_path)
    assert not cache_exists(2017, "ccd-2018", cache_dir=tmp_path)
    assert not cache_exists(2016, "ccd-2017", cache_dir=tmp_path)
    with pytest.raises(FileNotFoundError):
        load_from_cache(2017, "ccd-2018", cache_dir=tmp_path)


def test_use_cache_decisions(tmp_path):
    assert use_cache(2017, "ccd-2017", cache_dir=tmp_path) is False
    save_cache(make_raw(), 2017, "ccd-2017", cache_dir=tmp_path)
    assert use_cache(2017, "ccd-2017", cache_dir=tmp_path) is True
    assert use_cache(2017, "ccd-2017", force_refetch=True, cache_dir=tmp_path) is False
    print("✓ Cache decision test passed")


def test_partial_cache_is_a_miss(tmp_path):
    save_cache(make_raw(), 2017, "ccd-2017", cache_dir=tmp_path)
    cache_paths(2017, "ccd-2017", cache_dir=tmp_path)["directory"].unlink()
    assert not cache_exists(2017, "ccd-2017", cache_dir=tmp_path)


def test_cost_of_living_not_cached(tmp_path):
    save_cache(make_raw(), 2017, "ccd-2017", cache_dir=tmp_path)
    assert "cola" not in cache_paths(2017, "ccd-2017", cache_dir=tmp_path)
    assert "cola" not in load_from_cache(2017, "ccd-2017", cache_dir=tmp_path)
    assert not list(tmp_path.glob("cola_*"))


def test_empty_dataset_round_trips(tmp_path):
    raw = make_raw()
    raw["directory"] = None
    save_cache(raw, 2017, "ccd-2017", cache_dir=tmp_path)
    back = load_from_cache(2017, "ccd-2017", cache_dir=tmp_path)
    assert back["directory"].empty


def test_clear_cache_and_info(tmp_path):
    save_cache(make_raw(), 2017, "ccd-2017", cache_dir=tmp_path)
    info = get_cache_info(2017, "ccd-2017", cache_dir=tmp_path)
    assert info["status"] == "found"
    assert "Vintage: ccd-2017" in info["metadata"]

    clear_cache(cache_dir=tmp_path)
    assert not cache_exists(2017, "ccd-2017", cache_dir=tmp_path)
    assert get_cache_info(2017, "ccd-2017", cache_dir=tmp_path) == {"status": "not_found"}


if __name__ == "__main__":
    import tempfile
    from pathlib import Path

    print("Running cache tests...\n")
    with tempfile.TemporaryDirectory() as d:
        test_round_trip_keeps_leading_zeros(Path(d))
    with tempfile.TemporaryDirectory() as d:
        test_use_cache_decisions(Path(d))
    print("\n✓ All tests passed!")
