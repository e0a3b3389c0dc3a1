#!/usr/bin/env python3
from __future__ import annotations
import json
import re
from pathlib import Path
import pandas as pd

try:
    import geopandas as gpd
except Exception:  # pragma: no cover
    gpd = None

SUPPORTED_GEO = (".shp", ".gpkg", ".geojson", ".json", ".parquet", ".pq")

def mkdir_p(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)

def stdcols(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [
        re.sub(r"_{2,}", "_", re.sub(r"[^\w]+", "_", str(c).strip().lower())).strip("_")
        for c in df.columns
    ]
    return df

def dataset_key(path: Path) -> str:
    return re.sub(r"_{2,}", "_", re.sub(r"[^\w]+", "_", Path(path).stem.lower())).strip("_")

def read_any(path: Path, str_cols=()):
    """Read a table or polygon file by extension.

    Columns listed in ``str_cols`` are kept as strings and only empty cells are NA,
    so region names such as "NA" (Namibia's code) survive a round trip.
    """
    path = Path(path)
    ext = path.suffix.lower()
    if ext in (".csv", ".tsv"):
        sep = "\t" if ext == ".tsv" else ","
        if not str_cols:
            return pd.read_csv(path, sep=sep)
        # only empty cells count as missing so that key names are taken literally
        return pd.read_csv(
            path,
            sep=sep,
            dtype={c: str for c in str_cols},
            keep_default_na=False,
            na_values=[""],
        )
    if ext in (".parquet", ".pq"):
        if gpd is not None:
            try:
                return gpd.read_parquet(path)
            except Exception:
                return pd.read_parquet(path)
        return pd.read_parquet(path)
    if ext in SUPPORTED_GEO:
        if gpd is None:
            raise ImportError("geopandas required to read geospatial file: " + str(path))
        return gpd.read_file(path)
    raise ValueError(f"Unsupported input file type: {path}")

def write_parquet(df: pd.DataFrame, path: Path) -> None:
    mkdir_p(path.parent)
    df.to_parquet(path, index=False)

def write_json(obj, path: Path) -> None:
    path = Path(path)
    mkdir_p(path.parent)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2)

def write_values(df: pd.DataFrame, path: Path) -> Path:
    """Persist a value table: comma-delimited with a header row, or parquet by extension."""
    path = Path(path)
    mkdir_p(path.parent)
    ext = path.suffix.lower()
    if ext == ".csv":
        df.to_csv(path, index=False)
    elif ext in (".parquet", ".pq"):
        df.to_parquet(path, index=False)
    else:
        raise ValueError(f"Unsupported value table type: {path}")
    return path

def read_values(path: Path, key_cols=("region",), str_cols=None) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing value table: {path}")
    if isinstance(key_cols, str):
        key_cols = (key_cols,)
    df = read_any(path, str_cols=tuple(str_cols if str_cols is not None else key_cols))
    if "value" not in df.columns:
        raise ValueError(f"Value table {path} has no 'value' column (columns: {list(df.columns)})")
    missing = [c for c in key_cols if c not in df.columns]
    if missing:
        raise ValueError(f"Value table {path} is missing key column(s): {missing}")
    df["value"] = pd.to_numeric(df["value"], errors="coerce")
    return df
