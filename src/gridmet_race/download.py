from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

import requests

from .utils import log


DEFAULT_BASE_URL = "https://www.northwestknowledge.net/metdata/data"
DEFAULT_DATA_DIR = Path("data/gridMET")


def gridmet_url(var_name: str, year: int, base_url: str = DEFAULT_BASE_URL) -> str:
    return base_url.rstrip("/") + f"/{var_name}_{int(year)}.nc"


def gridmet_path(data_dir: Path, var_name: str, year: int) -> Path:
    """
    Local path of one gridMET file: <data_dir>/<var>/<var>_<year>.nc
    """
    return Path(data_dir) / var_name / f"{var_name}_{int(year)}.nc"


def download_file(
    url: str,
    dest: Path,
    session: Optional[requests.Session] = None,
    timeout: int = 120,
    chunk_size: int = 1 << 20,
) -> Path:
    """
    Stream url to dest. Writes to a .part file first so an interrupted
    download never leaves a truncated .nc behind.
    """
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(dest.name + ".part")

    getter = session.get if session is not None else requests.get
    try:
        with getter(url, stream=True, timeout=timeout) as r:
            r.raise_for_status()
            with tmp.open("wb") as fh:
                for chunk in r.iter_content(chunk_size=chunk_size):
                    if chunk:
                        fh.write(chunk)
        tmp.replace(dest)
    finally:
        if tmp.exists():
            tmp.unlink()
    return dest


def download_variable(
    var_name: str,
    years: Iterable[int],
    data_dir: Path = DEFAULT_DATA_DIR,
    base_url: str = DEFAULT_BASE_URL,
    overwrite: bool = False,
    session: Optional[requests.Session] = None,
    timeout: int = 120,
) -> List[Path]:
    """
    Download <var>_<year>.nc for every year into <data_dir>/<var>/.
    Existing files are skipped unless overwrite=True.
    """
    years = [int(y) for y in years]
    log(f"[INFO] downloading gridMET variable '{var_name}' for years: {', '.join(map(str, years))}")
    (Path(data_dir) / var_name).mkdir(parents=True, exist_ok=True)

    paths: List[Path] = []
    for year in years:
        dest = gridmet_path(data_dir, var_name, year)
        if dest.exists() and not overwrite:
            log(f"[{year}] exists, skipping -> {dest.as_posix()}")
            paths.append(dest)
            continue
        url = gridmet_url(var_name, year, base_url=base_url)
        log(f"[{year}] {url} -> {dest.as_posix()}")
        paths.append(download_file(url, dest, session=session, timeout=timeout))
    return paths
