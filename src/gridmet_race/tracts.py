from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Optional

import geopandas as gpd

from .utils import log, require_columns


DEFAULT_SHAPEFILE = Path("data/shapefiles/tl_2019_06_tract")

# County FIPS codes (state 06) making up the Central Valley
CENTRAL_VALLEY_COUNTIES: Dict[str, str] = {
    "Fresno": "019",
    "Kern": "029",
    "Kings": "031",
    "Madera": "039",
    "Merced": "047",
    "Mariposa": "043",
    "SanJoaquin": "077",
    "Stanislaus": "099",
    "Tulare": "107",
}


def read_tracts(
    path: Path = DEFAULT_SHAPEFILE,
    counties: Optional[Iterable[str]] = CENTRAL_VALLEY_COUNTIES.values(),
    crs: str = "EPSG:4326",
) -> gpd.GeoDataFrame:
    """
    Read a TIGER census tract shapefile (file or directory), keep GEOID/COUNTYFP/geometry,
    restrict to the given county FIPS codes (None keeps every county) and reproject to crs.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Tract shapefile not found: {path.as_posix()}")

    tracts = gpd.read_file(path)
    require_columns(tracts, ["GEOID", "COUNTYFP"], label="tract shapefile")
    tracts = tracts[["GEOID", "COUNTYFP", "geometry"]].copy()
    tracts["GEOID"] = tracts["GEOID"].astype(str)
    tracts["COUNTYFP"] = tracts["COUNTYFP"].astype(str).str.zfill(3)

    if counties is not None:
        keep = sorted({str(c).zfill(3) for c in counties})
        tracts = tracts.loc[tracts["COUNTYFP"].isin(keep)]
        if tracts.empty:
            raise ValueError(f"No census tracts left after county filter: {keep}")
    elif tracts.empty:
        raise ValueError(f"Tract shapefile is empty: {path.as_posix()}")

    if tracts.crs is None:
        log(f"[WARN] {path.as_posix()} has no CRS; assuming {crs}")
        tracts = tracts.set_crs(crs)
    else:
        tracts = tracts.to_crs(crs)

    log(f"[INFO] tracts loaded: {len(tracts):,} (counties: {tracts['COUNTYFP'].nunique()})")
    return tracts.reset_index(drop=True)
