from __future__ import annotations

from typing import Dict

import geopandas as gpd
import numpy as np
import pandas as pd
import xarray as xr

from .utils import log, require_columns


PERIOD_FREQ: Dict[str, str] = {"year": "Y", "month": "M"}


def cell_tract_lookup(lat: np.ndarray, lon: np.ndarray, tracts: gpd.GeoDataFrame) -> pd.Series:
    """
    Map grid cells to tracts by cell centre.

    Returns a Series indexed by the flat row-major (lat, lon) cell index with the
    GEOID of each tract whose polygon intersects that cell's centre. Cells outside every
    tract are absent. A centre on a shared boundary appears once per tract it touches,
    so the index may repeat.
    """
    lat = np.asarray(lat, dtype=float)
    lon = np.asarray(lon, dtype=float)
    lon2d, lat2d = np.meshgrid(lon, lat)
    flat_lon = lon2d.ravel()
    flat_lat = lat2d.ravel()

    minx, miny, maxx, maxy = tracts.total_bounds
    in_bbox = (flat_lon >= minx) & (flat_lon <= maxx) & (flat_lat >= miny) & (flat_lat <= maxy)
    cells = np.flatnonzero(in_bbox)

    points = gpd.GeoDataFrame(
        {"cell": cells},
        geometry=gpd.points_from_xy(flat_lon[cells], flat_lat[cells]),
        crs=tracts.crs,
    )
    joined = gpd.sjoin(points, tracts[["GEOID", "geometry"]], how="inner", predicate="intersects")
    joined = joined.drop_duplicates(subset=["cell", "GEOID"]).sort_values(["cell", "GEOID"])

    return pd.Series(
        joined["GEOID"].astype(str).to_numpy(),
        index=pd.Index(joined["cell"].to_numpy(dtype=int), name="cell"),
        name="GEOID",
    )


def nearest_cells(lat: np.ndarray, lon: np.ndarray, tracts: gpd.GeoDataFrame) -> pd.Series:
    """
    Flat index of the grid cell nearest each tract's representative point.
    Assumes a regular lat/lon grid, so nearest is taken per axis.
    """
    lat = np.asarray(lat, dtype=float)
    lon = np.asarray(lon, dtype=float)
    pts = tracts.geometry.representative_point()

    i_lat = np.abs(lat[None, :] - pts.y.to_numpy()[:, None]).argmin(axis=1)
    i_lon = np.abs(lon[None, :] - pts.x.to_numpy()[:, None]).argmin(axis=1)
    cells = i_lat * len(lon) + i_lon

    return pd.Series(
        tracts["GEOID"].astype(str).to_numpy(),
        index=pd.Index(cells.astype(int), name="cell"),
        name="GEOID",
    )


def aggregate_to_tracts(
    da: xr.DataArray,
    tracts: gpd.GeoDataFrame,
    fill_empty: bool = False,
) -> pd.DataFrame:
    """
    Spatial mean of a (time, lat, lon) grid within each tract.

    Output is long: time, GEOID, <da.name>. Every tract is present; a tract that
    contains no cell centre is NaN unless fill_empty=True, in which case it takes
    the value of its nearest cell. NaN cells are skipped in the mean.
    """
    require_columns(tracts, ["GEOID", "geometry"], label="tracts")
    name = da.name or "value"
    da = da.transpose("time", "lat", "lon")
    lat = da["lat"].values
    lon = da["lon"].values

    lookup = cell_tract_lookup(lat, lon, tracts)
    geoids = pd.Index(tracts["GEOID"].astype(str).unique(), name="GEOID")

    empty = geoids[~geoids.isin(lookup.unique())]
    if len(empty) > 0:
        if fill_empty:
            small = tracts.loc[tracts["GEOID"].astype(str).isin(empty)]
            lookup = pd.concat([lookup, nearest_cells(lat, lon, small)])
            log(f"[INFO] {len(empty):,} tract(s) contain no cell centre; using nearest cell")
        else:
            log(f"[WARN] {len(empty):,} tract(s) contain no cell centre; values set to NaN")

    values = da.values.reshape(da.sizes["time"], -1)[:, lookup.index.to_numpy()]
    cells = pd.DataFrame(
        values.T,
        index=pd.Index(lookup.to_numpy(), name="GEOID"),
        columns=pd.DatetimeIndex(da["time"].values, name="time"),
    )
    tract_means = cells.groupby(level="GEOID").mean().reindex(geoids)

    out = tract_means.reset_index().melt(id_vars="GEOID", var_name="time", value_name=name)
    out["time"] = pd.to_datetime(out["time"])
    return out[["time", "GEOID", name]].sort_values(["time", "GEOID"]).reset_index(drop=True)


def aggregate_by_period(df: pd.DataFrame, agg_by: str, value_col: str) -> pd.DataFrame:
    """
    Floor time to the start of the year/month and average per (GEOID, period), skipping NaN.
    """
    if agg_by not in PERIOD_FREQ:
        raise ValueError(f"agg_by must be one of {sorted(PERIOD_FREQ)}; got {agg_by!r}")
    require_columns(df, ["time", "GEOID", value_col], label="tract values")

    out = df.copy()
    out["time"] = pd.to_datetime(out["time"]).dt.to_period(PERIOD_FREQ[agg_by]).dt.to_timestamp()
    out = out.groupby(["GEOID", "time"], as_index=False)[value_col].mean()
    return out[["time", "GEOID", value_col]].sort_values(["time", "GEOID"]).reset_index(drop=True)
