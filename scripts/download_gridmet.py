#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Download gridMET netCDF files for a list of variables and a range of years.

Files land in <data-dir>/<var>/<var>_<year>.nc, which is where
scripts/agg_gridmet_by_race.py looks for them. Files already on disk are
skipped unless --overwrite is given.

Variable abbreviations: http://www.climatologylab.org/wget-gridmet.html
  pr: precipitation; vs: wind speed; th: wind direction; tmmx: max temperature; ...

Example:
  python scripts/download_gridmet.py --vars pr,vs,th --years 2005-2015
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import requests

from gridmet_race.download import DEFAULT_BASE_URL, DEFAULT_DATA_DIR, download_variable
from gridmet_race.utils import log, parse_list, parse_years


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Download gridMET netCDF files by variable and year.")
    ap.add_argument("--vars", dest="vars", type=str, default="th", help='Comma-separated variables, e.g. "pr,vs,th".')
    ap.add_argument("--years", type=str, default="2005-2015", help='Years: "2005-2015" or "2005,2006".')
    ap.add_argument("--data-dir", dest="data_dir", type=Path, default=DEFAULT_DATA_DIR, help="Download root.")
    ap.add_argument("--base-url", dest="base_url", type=str, default=DEFAULT_BASE_URL, help="gridMET file server.")
    ap.add_argument("--timeout", type=int, default=120, help="Per-request timeout in seconds.")
    ap.add_argument("--overwrite", action="store_true", help="Re-download files that already exist.")

    # Notebook-friendly parsing
    args, unknown = ap.parse_known_args()
    is_notebook = ("ipykernel" in sys.modules) or ("google.colab" in sys.modules)
    if unknown:
        if is_notebook:
            log(f"[INFO] Ignoring notebook args: {unknown}")
        else:
            ap.error(f"unrecognized arguments: {' '.join(unknown)}")

    if not parse_list(args.vars):
        ap.error("--vars must name at least one variable.")
    return args


def main() -> None:
    args = parse_args()
    years = parse_years(args.years)
    var_names = parse_list(args.vars)

    args.data_dir.mkdir(parents=True, exist_ok=True)
    with requests.Session() as session:
        for var_name in var_names:
            download_variable(
                var_name,
                years,
                data_dir=args.data_dir,
                base_url=args.base_url,
                overwrite=args.overwrite,
                session=session,
                timeout=args.timeout,
            )
    log("[OK] Done.")


if __name__ == "__main__":
    try:
        main()
    except requests.HTTPError as e:
        print("HTTP error:", e, file=sys.stderr)
        sys.exit(1)
