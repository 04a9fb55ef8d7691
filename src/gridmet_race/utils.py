from __future__ import annotations

from typing import Iterable, List

import pandas as pd


def log(msg: str) -> None:
    print(msg, flush=True)


def parse_years(years: str) -> List[int]:
    """Accept: '2010-2015' or '2010,2012' or '2010'."""
    s = years.strip()
    if "-" in s:
        a, b = s.split("-", 1)
        a, b = int(a), int(b)
        if a > b:
            a, b = b, a
        return list(range(a, b + 1))
    if "," in s:
        return [int(x.strip()) for x in s.split(",") if x.strip()]
    return [int(s)]


def parse_list(value: str) -> List[str]:
    return [x.strip() for x in value.split(",") if x.strip()]


def require_columns(df: pd.DataFrame, required: Iterable[str], label: str = "input") -> None:
    """
    Raise KeyError listing every required column missing from df.
    """
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise KeyError(f"{label} is missing required column(s): {missing}. Found: {list(df.columns)}")
