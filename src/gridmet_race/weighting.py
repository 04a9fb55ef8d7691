from __future__ import annotations

from typing import List, Sequence

import numpy as np
import pandas as pd

from .acs import RACE_COLUMNS
from .utils import require_columns


def weighted_column_names(categories: Sequence[str]) -> List[str]:
    return [f"weighted_{c}" for c in categories]


def population_weighted_means(
    values: pd.DataFrame,
    acs: pd.DataFrame,
    value_col: str,
    categories: Sequence[str] = RACE_COLUMNS,
) -> pd.DataFrame:
    """
    Population-weighted mean of value_col per time period and population group.

    For each category c and period t:
        weighted_c(t) = sum_tracts(value * pop_c) / sum_tracts(pop_c)

    Tract-periods with a missing climate value are dropped before summing, so they
    count in neither numerator nor denominator. Missing counts are treated as zero.
    A zero population total gives NaN.
    """
    categories = list(categories)
    require_columns(values, ["time", "GEOID", value_col], label="tract values")
    require_columns(acs, ["GEOID", *categories], label="ACS table")

    left = values[["time", "GEOID", value_col]].copy()
    left["GEOID"] = left["GEOID"].astype(str)
    right = acs[["GEOID", *categories]].copy()
    right["GEOID"] = right["GEOID"].astype(str)

    merged = left.dropna(subset=[value_col]).merge(right, on="GEOID", how="inner")
    pops = merged[categories].apply(pd.to_numeric, errors="coerce").fillna(0.0)
    numer = pops.mul(merged[value_col], axis=0)

    out_cols = weighted_column_names(categories)
    numer.columns = out_cols
    numer["time"] = merged["time"].to_numpy()
    pops["time"] = merged["time"].to_numpy()

    numer_sum = numer.groupby("time").sum()
    pop_sum = pops.groupby("time").sum()
    pop_sum.columns = out_cols

    result = numer_sum / pop_sum.replace(0, np.nan)
    return result.reset_index().sort_values("time").reset_index(drop=True)[["time", *out_cols]]
