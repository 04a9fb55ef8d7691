#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Population-weighted yearly/monthly means of a gridMET variable by ACS race category.

Input (default):
  data/gridMET/<var>/<var>_<year>.nc       (from scripts/download_gridmet.py)
  data/shapefiles/tl_2019_06_tract         (TIGER census tracts, CA)
  ACS 5-year table B02001 via api.census.gov (cached under data/acs/)

Output (default):
  data/results/pop_weighted_race/<var>/pop_weighted_<var>_<agg>ly_<start>-<end>.csv

Definition, per year:
- daily grid -> tract: mean of the cells whose centre falls inside the tract (skip NaN)
- tract daily -> tract per period (year or month): mean (skip NaN)
- per period and race category c:
    weighted_c = sum(value * pop_c) / sum(pop_c)     over tracts with a value

A census API key is needed: https://api.census.gov/data/key_signup.html
Set CENSUS_API_KEY in the environment or in a .env file.

Example:
  python scripts/agg_gridmet_by_race.py --var pr --years 2010-2015 --agg-by month --parallel
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from gridmet_race.acs import ACS_LAST_YEAR
from gridmet_race.download import DEFAULT_DATA_DIR
from gridmet_race.pipeline import DEFAULT_ACS_CACHE_DIR, RunConfig, run, write_results
from gridmet_race.tracts import CENTRAL_VALLEY_COUNTIES, DEFAULT_SHAPEFILE
from gridmet_race.utils import log, parse_list, parse_years


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Population-weighted gridMET means by ACS race category.")

    ap.add_argument("--var", dest="var_name", type=str, default="pr", help="gridMET variable abbreviation.")
    ap.add_argument("--years", type=str, default="2010-2015", help='Single year or inclusive range, e.g. "2010" or "2010-2015".')
    ap.add_argument(
        "--agg-by",
        dest="agg_by",
        choices=["year", "month"],
        default="year",
        help="Temporal scale to aggregate by.",
    )
    ap.add_argument("--parallel", action="store_true", help="Process years on a worker pool.")
    ap.add_argument("--workers", type=int, default=4, help="Worker processes when --parallel is set.")
    ap.add_argument("--data-dir", dest="data_dir", type=Path, default=DEFAULT_DATA_DIR)
    ap.add_argument("--shapefile", type=Path, default=DEFAULT_SHAPEFILE, help="Census tract shapefile.")
    ap.add_argument(
        "--out-dir",
        dest="output_dir",
        type=Path,
        default=None,
        help="Results directory (default: data/results/pop_weighted_race/<var>).",
    )
    ap.add_argument("--acs-cache-dir", dest="acs_cache_dir", type=Path, default=DEFAULT_ACS_CACHE_DIR)
    ap.add_argument("--no-acs-cache", action="store_true", help="Always query the census API.")
    ap.add_argument("--state-fips", dest="state_fips", type=str, default="06")
    ap.add_argument(
        "--counties",
        type=str,
        default=",".join(CENTRAL_VALLEY_COUNTIES.values()),
        help='Comma-separated county FIPS codes, or "all". Default: Central Valley.',
    )
    ap.add_argument(
        "--fill-empty-tracts",
        action="store_true",
        help="Give tracts containing no grid-cell centre the value of their nearest cell.",
    )
    ap.add_argument(
        "--acs-last-year",
        dest="acs_last_year",
        type=int,
        default=ACS_LAST_YEAR,
        help="Latest 5 year ACS survey year to accept.",
    )

    # Notebook-friendly parsing
    args, unknown = ap.parse_known_args()
    is_notebook = ("ipykernel" in sys.modules) or ("google.colab" in sys.modules)
    if unknown:
        if is_notebook:
            log(f"[INFO] Ignoring notebook args: {unknown}")
        else:
            ap.error(f"unrecognized arguments: {' '.join(unknown)}")

    if args.workers < 1:
        ap.error("--workers must be >= 1.")
    if "," in args.years:
        ap.error("--years takes a single year or a range such as 2010-2015, not a list.")
    return args


def build_config(args: argparse.Namespace) -> RunConfig:
    years = parse_years(args.years)
    counties = None if args.counties.strip().lower() == "all" else tuple(parse_list(args.counties))
    return RunConfig(
        var_name=args.var_name,
        start_year=min(years),
        end_year=max(years),
        agg_by=args.agg_by,
        parallel=bool(args.parallel),
        workers=args.workers,
        data_dir=args.data_dir,
        shapefile=args.shapefile,
        output_dir=args.output_dir,
        acs_cache_dir=None if args.no_acs_cache else args.acs_cache_dir,
        state_fips=args.state_fips,
        counties=counties,
        fill_empty_tracts=bool(args.fill_empty_tracts),
        acs_last_year=args.acs_last_year,
    )


def main() -> None:
    load_dotenv()
    args = parse_args()
    config = build_config(args)

    results = run(config)
    write_results(results, config)
    log("[OK] Done.")


if __name__ == "__main__":
    main()
