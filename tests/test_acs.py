import numpy as np
import pandas as pd
import pytest
import requests

from gridmet_race.acs import (
    ACS_VARS,
    RACE_COLUMNS,
    acs_cache_path,
    fetch_acs_race,
    load_acs_race,
    parse_acs_response,
    resolve_acs_year,
)

from conftest import FakeResponse, FakeSession


HEADER = ["NAME", *ACS_VARS, "state", "county", "tract"]


def _row(county, tract, counts):
    return [f"Census Tract {tract}", *[str(c) for c in counts], "06", county, tract]


def _payload(*rows):
    return [HEADER, *rows]


@pytest.mark.parametrize(
    "year, expected",
    [(2005, 2009), (2008, 2009), (2009, 2009), (2015, 2015), (2019, 2019)],
)
def test_resolve_acs_year(year, expected):
    assert resolve_acs_year(year) == expected


@pytest.mark.parametrize("year", [2004, 1999, 2020])
def test_resolve_acs_year_out_of_range(year):
    with pytest.raises(ValueError, match=f"Cannot get census data for year {year}"):
        resolve_acs_year(year)


def test_resolve_acs_year_last_year_is_configurable():
    assert resolve_acs_year(2022, last_year=2023) == 2022


def test_parse_acs_response_builds_geoid_and_mixed_race():
    rows = _payload(
        _row("019", "000100", [100, 60, 10, 5, 15, 1, 4, 2, 2, 1]),
        _row("019", "000200", [50, 50, -666666666, 0, 0, 0, 0, 0, 0, 0]),
    )
    out = parse_acs_response(rows)

    assert list(out.columns) == ["GEOID", *RACE_COLUMNS]
    assert list(out["GEOID"]) == ["06019000100", "06019000200"]
    first = out.iloc[0]
    assert first["race_total"] == 100
    assert first["white"] == 60
    assert first["pacific_islander"] == 1
    assert first["mixed_race"] == 5
    assert np.isnan(out.iloc[1]["black"])


def test_fetch_acs_race_requests_one_call_per_county():
    session = FakeSession(
        [
            FakeResponse(_payload(_row("019", "000100", [1] * 10))),
            FakeResponse(_payload(_row("029", "000100", [2] * 10))),
        ]
    )
    out = fetch_acs_race(2015, counties=["19", "029"], api_key="k", session=session)

    assert list(out["GEOID"]) == ["06019000100", "06029000100"]
    assert len(session.calls) == 2
    url, kwargs = session.calls[0]
    assert url == "https://api.census.gov/data/2015/acs/acs5"
    params = kwargs["params"]
    assert params["for"] == "tract:*"
    assert params["in"] == "state:06 county:019"
    assert params["key"] == "k"
    assert "B02001_010E" in params["get"]


def test_fetch_acs_race_all_counties_without_key(monkeypatch):
    monkeypatch.delenv("CENSUS_API_KEY", raising=False)
    session = FakeSession([FakeResponse(_payload(_row("019", "000100", [1] * 10)))])

    fetch_acs_race(2012, session=session)

    params = session.calls[0][1]["params"]
    assert params["in"] == "state:06 county:*"
    assert "key" not in params


def test_fetch_acs_race_http_error_propagates():
    session = FakeSession([FakeResponse(status_code=400)])
    with pytest.raises(requests.HTTPError):
        fetch_acs_race(2012, api_key="k", session=session)


def test_load_acs_race_uses_survey_year_and_cache(tmp_path):
    session = FakeSession([FakeResponse(_payload(_row("019", "000100", [3] * 10)))])

    first = load_acs_race(2007, cache_dir=tmp_path, api_key="k", session=session)
    assert session.calls[0][0].endswith("/2009/acs/acs5")
    assert acs_cache_path(tmp_path, 2009).exists()

    # served from the cache; the session has no responses left
    second = load_acs_race(2008, cache_dir=tmp_path, api_key="k", session=session)
    assert len(session.calls) == 1
    assert second["GEOID"].tolist() == ["06019000100"]
    pd.testing.assert_frame_equal(first, second, check_dtype=False)


def test_cache_is_not_visible_until_fully_written(tmp_path, monkeypatch):
    cache = acs_cache_path(tmp_path, 2009)
    original_to_csv = pd.DataFrame.to_csv
    seen_during_write = []

    def watching_to_csv(self, path, *args, **kwargs):
        seen_during_write.append((cache.exists(), str(path).endswith(".part")))
        return original_to_csv(self, path, *args, **kwargs)

    monkeypatch.setattr(pd.DataFrame, "to_csv", watching_to_csv)
    session = FakeSession([FakeResponse(_payload(_row("019", "000100", [3] * 10)))])

    load_acs_race(2006, cache_dir=tmp_path, api_key="k", session=session)

    assert seen_during_write == [(False, True)]
    assert cache.exists()
    assert list(tmp_path.glob("*.part")) == []


def test_failed_cache_write_leaves_no_cache(tmp_path, monkeypatch):
    def broken_to_csv(self, path, *args, **kwargs):
        with open(path, "w") as fh:
            fh.write("GEOID,race_total\n0601900")
        raise OSError("disk full")

    monkeypatch.setattr(pd.DataFrame, "to_csv", broken_to_csv)
    session = FakeSession([FakeResponse(_payload(_row("019", "000100", [3] * 10)))])

    with pytest.raises(OSError, match="disk full"):
        load_acs_race(2006, cache_dir=tmp_path, api_key="k", session=session)

    assert not acs_cache_path(tmp_path, 2009).exists()
    assert list(tmp_path.glob("*.part")) == []
