from __future__ import annotations

from pathlib import Path
from typing import Optional

import xarray as xr


# gridMET files name the time axis "day"
DIM_RENAMES = {"day": "time", "latitude": "lat", "longitude": "lon"}
GRID_DIMS = ("time", "lat", "lon")


def _standardize(ds: xr.Dataset) -> xr.Dataset:
    renames = {k: v for k, v in DIM_RENAMES.items() if k in ds.dims or k in ds.coords}
    return ds.rename(renames) if renames else ds


def detect_variable(ds: xr.Dataset, preferred: Optional[str] = None) -> str:
    """
    Name of the gridded (time, lat, lon) data variable.
    Skips scalar helpers such as the 'crs' variable that gridMET ships.
    """
    if preferred is not None and preferred in ds.data_vars:
        return preferred

    candidates = [name for name, v in ds.data_vars.items() if set(GRID_DIMS).issubset(v.dims)]
    if len(candidates) != 1:
        raise ValueError(
            f"Expected exactly one (time, lat, lon) variable, found {candidates}. "
            f"Data variables: {list(ds.data_vars)}"
        )
    return str(candidates[0])


def open_gridmet(path: Path, variable: Optional[str] = None) -> xr.DataArray:
    """
    Open one daily gridMET netCDF file and return its variable as an in-memory
    DataArray with dims (time, lat, lon).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"The file {path.as_posix()} does not exist.")

    with xr.open_dataset(path) as ds:
        ds = _standardize(ds)
        name = detect_variable(ds, preferred=variable)
        da = ds[name].transpose(*GRID_DIMS).load()
    da.name = name
    return da
