from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd
import requests

from .utils import log, require_columns


ACS_BASE = "https://api.census.gov/data/{year}/acs/acs5"
ACS_TABLE = "B02001"
ACS_FIRST_YEAR = 2009  # first 5-year survey (2005-2009)
ACS_LAST_YEAR = 2019

RENAME: Dict[str, str] = {
    "B02001_001E": "race_total",
    "B02001_002E": "white",
    "B02001_003E": "black",
    "B02001_004E": "amerindian",
    "B02001_005E": "asian",
    "B02001_006E": "pacific_islander",
    "B02001_007E": "one_other_race",
}
TWO_OR_MORE = ["B02001_008E", "B02001_009E", "B02001_010E"]

RACE_COLUMNS: List[str] = [
    "race_total",
    "white",
    "black",
    "amerindian",
    "asian",
    "pacific_islander",
    "one_other_race",
    "mixed_race",
]

ACS_VARS: List[str] = list(RENAME) + TWO_OR_MORE


def resolve_acs_year(year: int, first_year: int = ACS_FIRST_YEAR, last_year: int = ACS_LAST_YEAR) -> int:
    """
    Survey year of the 5-year ACS used for a gridMET year.
    2005-2008 fall back to the 2005-2009 survey; anything older or newer than last_year is an error.
    """
    year = int(year)
    if year <= 2004 or year > last_year:
        raise ValueError(f"Cannot get census data for year {year} using the 5 year ACS survey")
    return max(year, first_year)


def parse_acs_response(rows: List[List[str]]) -> pd.DataFrame:
    """
    Census API JSON (header row + data rows) -> GEOID + RACE_COLUMNS.
    Negative values are Census annotation sentinels and become NaN.
    """
    if not rows:
        return pd.DataFrame(columns=["GEOID", *RACE_COLUMNS])

    header, *data = rows
    df = pd.DataFrame(data, columns=header)
    require_columns(df, ["state", "county", "tract", *ACS_VARS], label="ACS response")

    df["GEOID"] = (
        df["state"].astype(str).str.zfill(2)
        + df["county"].astype(str).str.zfill(3)
        + df["tract"].astype(str).str.zfill(6)
    )
    counts = df[ACS_VARS].apply(pd.to_numeric, errors="coerce")
    counts = counts.where(counts >= 0, np.nan)

    out = counts[list(RENAME)].rename(columns=RENAME)
    out["mixed_race"] = counts[TWO_OR_MORE].sum(axis=1, min_count=1)
    out.insert(0, "GEOID", df["GEOID"])
    return out[["GEOID", *RACE_COLUMNS]].reset_index(drop=True)


def fetch_acs_race(
    year: int,
    state_fips: str = "06",
    counties: Optional[Iterable[str]] = None,
    api_key: Optional[str] = None,
    session: Optional[requests.Session] = None,
    timeout: int = 60,
    sleep_sec: float = 0.5,
) -> pd.DataFrame:
    """
    Query ACS 5-year table B02001 at tract level for one state.
    One request per county when counties are given, otherwise a single county:* request.
    """
    api_key = api_key if api_key is not None else os.getenv("CENSUS_API_KEY", "")
    url = ACS_BASE.format(year=int(year))
    getter = session.get if session is not None else requests.get

    county_list = [str(c).zfill(3) for c in counties] if counties is not None else ["*"]
    frames: List[pd.DataFrame] = []
    for i, county in enumerate(county_list):
        # polite pacing helps when no API key
        if not api_key and i > 0 and sleep_sec > 0:
            time.sleep(sleep_sec)
        params = {
            "get": ",".join(["NAME", *ACS_VARS]),
            "for": "tract:*",
            "in": f"state:{state_fips} county:{county}",
        }
        if api_key:
            params["key"] = api_key
        r = getter(url, params=params, timeout=timeout)
        r.raise_for_status()
        frames.append(parse_acs_response(r.json()))

    out = pd.concat(frames, ignore_index=True).drop_duplicates(subset=["GEOID"])
    log(f"[INFO] ACS {year} {ACS_TABLE}: {len(out):,} tracts (state {state_fips})")
    return out.reset_index(drop=True)


def acs_cache_path(cache_dir: Path, year: int, state_fips: str = "06") -> Path:
    return Path(cache_dir) / f"acs5_{ACS_TABLE}_{state_fips}_{int(year)}.csv"


def load_acs_race(
    year: int,
    cache_dir: Optional[Path] = None,
    state_fips: str = "06",
    last_year: int = ACS_LAST_YEAR,
    **fetch_kwargs,
) -> pd.DataFrame:
    """
    Race counts for the survey year matching a gridMET year.
    Prefer the local CSV cache; else query the API and write the cache.
    """
    survey_year = resolve_acs_year(year, last_year=last_year)
    if survey_year != int(year):
        log(f"[{year}] using the {survey_year} 5 year ACS survey")

    cache = acs_cache_path(cache_dir, survey_year, state_fips) if cache_dir is not None else None
    if cache is not None and cache.exists():
        log(f"[{year}] ACS from cache: {cache.as_posix()}")
        return pd.read_csv(cache, dtype={"GEOID": str})

    df = fetch_acs_race(survey_year, state_fips=state_fips, **fetch_kwargs)
    if cache is not None:
        write_cache(df, cache)
    return df


def write_cache(df: pd.DataFrame, cache: Path) -> Path:
    """
    Write to a per-process .part file and rename it into place.
    Readers in other workers see either no cache file or a complete one.
    """
    cache = Path(cache)
    cache.parent.mkdir(parents=True, exist_ok=True)
    tmp = cache.with_name(f"{cache.name}.{os.getpid()}.part")
    try:
        df.to_csv(tmp, index=False)
        tmp.replace(cache)
    finally:
        if tmp.exists():
            tmp.unlink()
    return cache
