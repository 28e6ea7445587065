"""
Download cache for the district revenue analysis.

Raw API downloads (finance, enrollment by race, directory) are saved as CSV
files so repeated report runs do not re-download them.
Cache files are keyed by school year and data vintage; a different vintage
is a cache miss. Pass --force-refetch to bypass the cache.

Usage:
    from cache_manager import use_cache, load_from_cache, save_cache

    if use_cache(year, vintage):
        raw = load_from_cache(year, vintage)
    else:
        raw = download_everything()
        save_cache(raw, year, vintage)
"""

import time
from pathlib import Path
from typing import Dict
import pandas as pd

from district_shared import CACHE_DIR, make_safe_filename

# Datasets held in the cache, one CSV each. The cost-of-living file is
# read fresh on every run and never cached.
DATASETS = ("finance", "enrollment", "directory")

# Columns that must be read back as strings (leading zeros matter)
_STRING_COLUMNS = {"leaid": str}


def cache_paths(year: int, vintage: str, cache_dir: Path = None) -> Dict[str, Path]:
    """Map dataset name (plus 'metadata') to its cache file for one year/vintage."""
    base = Path(cache_dir) if cache_dir is not None else CACHE_DIR
    stem = f"{year}_{make_safe_filename(vintage)}"
    paths = {name: base / f"{name}_{stem}.csv" for name in DATASETS}
    paths["metadata"] = base / f"cache_metadata_{stem}.txt"
    return paths


def cache_exists(year: int, vintage: str, cache_dir: Path = None) -> bool:
    """
    Check if all required cache files exist.

    Returns:
        True if cache is present, False otherwise
    """
    return all(path.exists() for path in cache_paths(year, vintage, cache_dir).values())


def save_cache(raw: Dict[str, pd.DataFrame], year: int, vintage: str, cache_dir: Path = None) -> None:
    """
    Save raw downloads to cache as CSV files.

    Args:
        raw: Dict of dataset name -> DataFrame (keys from DATASETS)
        year: School year the data was fetched for
        vintage: Data vintage identifier
        cache_dir: Optional override of the cache directory
    """
    paths = cache_paths(year, vintage, cache_dir)
    paths["metadata"].parent.mkdir(parents=True, exist_ok=True)

    print("\n[Cache] Saving downloads to cache...")

    for name in DATASETS:
        df = raw.get(name)
        if df is None:
            df = pd.DataFrame()
        df.to_csv(paths[name], index=False)
        print(f"  Saved: {paths[name]} ({len(df)} rows)")

    metadata = f"Cache created: {time.ctime()}\n"
    metadata += f"Year: {year}\n"
    metadata += f"Vintage: {vintage}\n"
    for name in DATASETS:
        n = len(raw[name]) if raw.get(name) is not None else 0
        metadata += f"{name.title()} rows: {n}\n"

    paths["metadata"].write_text(metadata, encoding="utf-8")
    print(f"  Cache saved successfully")


def load_from_cache(year: int, vintage: str, cache_dir: Path = None) -> Dict[str, pd.DataFrame]:
    """
    Load raw downloads from cache CSV files.

    Returns:
        Dict of dataset name -> DataFrame

    Raises:
        FileNotFoundError: If cache files don't exist
    """
    if not cache_exists(year, vintage, cache_dir):
        raise FileNotFoundError(f"Cache files for {year} ({vintage}) not found. Use save_cache() first.")

    print("\n[Cache] Loading downloads from cache...")

    paths = cache_paths(year, vintage, cache_dir)
    raw = {}
    for name in DATASETS:
        try:
            df = pd.read_csv(paths[name], dtype=_STRING_COLUMNS)
        except pd.errors.EmptyDataError:
            df = pd.DataFrame()
        raw[name] = df
        print(f"  Loaded: {paths[name]} ({len(df)} rows)")

    print(f"  Cache loaded successfully")
    return raw


def use_cache(year: int, vintage: str, force_refetch: bool = False, cache_dir: Path = None) -> bool:
    """
    Determine whether to use cached downloads or fetch from the API.

    Args:
        force_refetch: If True, bypass cache and fetch

    Returns:
        True if cache should be used, False if data should be fetched
    """
    if force_refetch:
        print("\n[Cache] Force refetch requested - bypassing cache")
        return False

    if not cache_exists(year, vintage, cache_dir):
        print(f"\n[Cache] No cache found for {year} ({vintage}) - will fetch from source")
        return False

    print(f"\n[Cache] Cache found for {year} ({vintage}) - loading from cache")
    print("  (Use --force-refetch to bypass cache)")
    return True


def clear_cache(cache_dir: Path = None) -> None:
    """Delete every cache file, for all years and vintages."""
    base = Path(cache_dir) if cache_dir is not None else CACHE_DIR
    print("\n[Cache] Clearing cache...")

    if base.exists():
        for path in sorted(base.glob("*")):
            if path.is_file() and path.suffix in (".csv", ".txt"):
                path.unlink()
                print(f"  Deleted: {path}")

    print("  Cache cleared")


def get_cache_info(year: int, vintage: str, cache_dir: Path = None) -> dict:
    """
    Get information about the cache for one year/vintage.

    Returns:
        Dict with cache metadata
    """
    if not cache_exists(year, vintage, cache_dir):
        return {"status": "not_found"}

    metadata_path = cache_paths(year, vintage, cache_dir)["metadata"]
    return {"status": "found", "metadata": metadata_path.read_text(encoding="utf-8")}
