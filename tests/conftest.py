from __future__ import annotations

import runpy
from pathlib import Path

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
import xarray as xr
from shapely.geometry import box


TRACT_A = "06019000100"
TRACT_B = "06019000200"

LAT = np.array([0.5, 1.5])
LON = np.array([0.5, 1.5, 2.5, 3.5])


@pytest.fixture
def tracts() -> gpd.GeoDataFrame:
    """Two 2x2-degree tracts side by side, each covering four grid cells."""
    return gpd.GeoDataFrame(
        {"GEOID": [TRACT_A, TRACT_B], "COUNTYFP": ["019", "019"]},
        geometry=[box(0, 0, 2, 2), box(2, 0, 4, 2)],
        crs="EPSG:4326",
    )


def make_grid(values: np.ndarray, times, name: str = "precipitation_amount") -> xr.DataArray:
    return xr.DataArray(
        values,
        dims=("time", "lat", "lon"),
        coords={"time": pd.DatetimeIndex(times), "lat": LAT, "lon": LON},
        name=name,
    )


@pytest.fixture
def grid() -> xr.DataArray:
    day0 = np.array([[1.0, 2.0, 3.0, 4.0], [5.0, 6.0, 7.0, 8.0]])
    return make_grid(np.stack([day0, day0 * 10]), ["2010-01-01", "2010-01-02"])


def write_gridmet_year(path: Path, year: int, value_a: float, value_b: float) -> Path:
    """
    Write a gridMET-shaped file: dims (day, lat, lon), one data variable and a scalar crs.
    Cells inside tract A hold value_a, cells inside tract B hold value_b.
    """
    days = pd.date_range(f"{year}-01-01", f"{year}-12-31", freq="D")
    row = np.array([value_a, value_a, value_b, value_b])
    values = np.broadcast_to(row, (len(days), len(LAT), len(LON))).astype("float32")
    ds = xr.Dataset(
        {
            "precipitation_amount": (("day", "lat", "lon"), values),
            "crs": ((), np.int16(3)),
        },
        coords={"day": days, "lat": LAT[::-1], "lon": LON},
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    ds.to_netcdf(path)
    return path


@pytest.fixture
def acs_counts() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "GEOID": [TRACT_A, TRACT_B],
            "race_total": [150, 300],
            "white": [100, 300],
            "black": [50, 0],
            "amerindian": [0, 0],
            "asian": [0, 0],
            "pacific_islander": [0, 0],
            "one_other_race": [0, 0],
            "mixed_race": [0, 0],
        }
    )


class FakeResponse:
    def __init__(self, payload=None, content: bytes = b"", status_code: int = 200):
        self._payload = payload
        self._content = content
        self.status_code = status_code

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self) -> None:
        import requests

        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self._payload

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self._content), chunk_size):
            yield self._content[i : i + chunk_size]


class FakeSession:
    """Records every get() and answers with the next queued response."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.responses.pop(0)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


SCRIPTS_DIR = Path(__file__).resolve().parents[1] / "scripts"


def load_script(name: str) -> dict:
    """Globals of scripts/<name>.py without running its __main__ block."""
    return runpy.run_path(str(SCRIPTS_DIR / f"{name}.py"), run_name=f"script_{name}")
