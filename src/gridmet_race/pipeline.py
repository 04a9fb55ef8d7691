from __future__ import annotations

import multiprocessing as mp
import time
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import List, Optional, Tuple

import geopandas as gpd
import pandas as pd

from .acs import ACS_LAST_YEAR, load_acs_race
from .aggregate import PERIOD_FREQ, aggregate_by_period, aggregate_to_tracts
from .download import DEFAULT_DATA_DIR, gridmet_path
from .raster import open_gridmet
from .tracts import CENTRAL_VALLEY_COUNTIES, DEFAULT_SHAPEFILE, read_tracts
from .utils import log
from .weighting import population_weighted_means


DEFAULT_RESULTS_ROOT = Path("data/results/pop_weighted_race")
DEFAULT_ACS_CACHE_DIR = Path("data/acs")


@dataclass(frozen=True)
class RunConfig:
    var_name: str = "pr"
    start_year: int = 2010
    end_year: int = 2015
    agg_by: str = "year"
    parallel: bool = False
    workers: int = 4
    data_dir: Path = DEFAULT_DATA_DIR
    shapefile: Path = DEFAULT_SHAPEFILE
    output_dir: Optional[Path] = None
    acs_cache_dir: Optional[Path] = DEFAULT_ACS_CACHE_DIR
    state_fips: str = "06"
    counties: Optional[Tuple[str, ...]] = tuple(CENTRAL_VALLEY_COUNTIES.values())
    fill_empty_tracts: bool = False
    acs_last_year: int = ACS_LAST_YEAR

    @property
    def years(self) -> List[int]:
        return list(range(self.start_year, self.end_year + 1))

    @property
    def results_dir(self) -> Path:
        if self.output_dir is not None:
            return Path(self.output_dir)
        return DEFAULT_RESULTS_ROOT / self.var_name

    def validate(self) -> None:
        if self.agg_by not in PERIOD_FREQ:
            raise ValueError(f"agg_by must be one of {sorted(PERIOD_FREQ)}; got {self.agg_by!r}")
        if self.start_year > self.end_year:
            raise ValueError(f"start_year ({self.start_year}) is after end_year ({self.end_year})")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1; got {self.workers}")


def output_path(config: RunConfig) -> Path:
    name = f"pop_weighted_{config.var_name}_{config.agg_by}ly_{config.start_year}-{config.end_year}.csv"
    return config.results_dir / name


def perform_aggregation(
    year: int,
    config: RunConfig,
    tracts: gpd.GeoDataFrame,
    acs_df: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    One year of the pipeline: raster -> tract means -> period means -> population-weighted means.
    """
    log(f"[{year}] beginning analysis")

    path = gridmet_path(config.data_dir, config.var_name, year)
    log(f"[{year}] reading gridMET data: {path.as_posix()}")
    da = open_gridmet(path)
    value_col = str(da.name)

    if acs_df is None:
        acs_df = load_acs_race(
            year,
            cache_dir=config.acs_cache_dir,
            state_fips=config.state_fips,
            last_year=config.acs_last_year,
            counties=config.counties,
        )

    log(f"[{year}] aggregating {value_col} by census tract")
    tract_daily = aggregate_to_tracts(da, tracts, fill_empty=config.fill_empty_tracts)

    log(f"[{year}] aggregating by {config.agg_by}")
    tract_period = aggregate_by_period(tract_daily, config.agg_by, value_col)

    log(f"[{year}] computing population weighted {value_col}")
    result = population_weighted_means(tract_period, acs_df, value_col)

    log(f"[{year}] complete ({len(result):,} row(s))")
    return result


def run(
    config: RunConfig,
    tracts: Optional[gpd.GeoDataFrame] = None,
    acs_df: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Run every year serially or on a process pool and concatenate the results.
    acs_df, when given, is used for every year instead of the per-year survey.
    """
    config.validate()
    started = time.perf_counter()

    if tracts is None:
        tracts = read_tracts(config.shapefile, counties=config.counties)

    years = config.years
    log(f"[INFO] running analysis for years: {' '.join(map(str, years))}")
    log(f"[INFO] aggregation period: {config.agg_by}")
    log(f"[INFO] gridMET variable: {config.var_name}")

    worker = partial(perform_aggregation, config=config, tracts=tracts, acs_df=acs_df)
    if config.parallel:
        log(f"[INFO] running analysis in parallel with {config.workers} worker(s)")
        with mp.Pool(processes=config.workers) as pool:
            results = pool.map(worker, years)
    else:
        log("[INFO] running analysis in serial")
        results = [worker(y) for y in years]

    out = pd.concat(results, ignore_index=True).sort_values("time").reset_index(drop=True)
    log(f"[OK] analysis complete in {time.perf_counter() - started:.1f}s")
    return out


def write_results(df: pd.DataFrame, config: RunConfig) -> Path:
    path = output_path(config)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    log(f"[OK] saved output to {path.as_posix()}")
    return path
