from __future__ import annotations
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from loguru import logger

from .errors import DuplicateRegionError
from .geometry import get_granularity
from .keys import normalize_keys

TIE_BREAKS = ("error", "first", "last", "mean")

def generate_synthetic_values(
    region_names: Iterable,
    rng_seed=None,
    key_col: str = "region",
    low: float = 0.0,
    high: float = 100.0,
) -> pd.DataFrame:
    """One uniform draw in [low, high] per distinct name, in first-seen order.

    ``rng_seed`` is an int seed or a ``numpy.random.Generator``; the same
    seed always yields the same table.
    """
    if high < low:
        raise ValueError(f"high ({high}) must be >= low ({low})")
    names = pd.Series(list(region_names), dtype="object").dropna().drop_duplicates()
    rng = np.random.default_rng(rng_seed)
    return pd.DataFrame({
        key_col: names.astype("string").values,
        "value": rng.uniform(low, high, size=len(names)),
    })

def key_columns(values: pd.DataFrame, granularity, key_cols: Optional[Sequence[str]] = None) -> List[str]:
    g = get_granularity(granularity)
    if key_cols is not None:
        return list(key_cols)
    return list(g.key_cols) + [c for c in g.optional_key_cols if c in values.columns]

def deduplicate_regions(
    values: pd.DataFrame,
    granularity,
    tie_break: str = "error",
    key_cols: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    if tie_break not in TIE_BREAKS:
        raise ValueError(f"Unknown tie_break {tie_break!r}; expected one of {list(TIE_BREAKS)}")

    g = get_granularity(granularity)
    keys = key_columns(values, g, key_cols)
    missing = [c for c in keys + ["value"] if c not in values.columns]
    if missing:
        raise ValueError(f"Value table missing required column(s): {missing}")

    df = values.copy()
    for c in keys:
        df[c] = normalize_keys(df[c], g.name)
    df["value"] = pd.to_numeric(df["value"], errors="coerce").astype(float)

    no_key = df[keys].isna().any(axis=1)
    if no_key.any():
        logger.warning(f"[values] Dropping {int(no_key.sum())} value row(s) with no region name")
        df = df.loc[~no_key]

    # repeats that agree are harmless
    df = df.drop_duplicates(subset=keys + ["value"])

    conflict = df.duplicated(subset=keys, keep=False)
    if not conflict.any():
        return df.reset_index(drop=True)

    conflicting = df.loc[conflict, keys].drop_duplicates()
    labels = conflicting.astype(str).apply("/".join, axis=1).tolist()
    if tie_break == "error":
        raise DuplicateRegionError(labels)

    logger.warning(f"[values] Resolving {len(labels)} conflicting region key(s) with tie_break={tie_break!r}")
    if tie_break == "mean":
        return df.groupby(keys, sort=False, as_index=False)["value"].mean()
    return df.drop_duplicates(subset=keys, keep=tie_break).reset_index(drop=True)
