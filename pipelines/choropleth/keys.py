from __future__ import annotations
import pandas as pd

from .errors import UnsupportedGranularityError

# Granularities whose provider names are lowercase. Country names keep their
# original casing ("France"), so the world key is never lowercased.
LOWERCASE_GRANULARITIES = ("state", "county")
PASSTHROUGH_GRANULARITIES = ("world",)

def _check(granularity: str) -> str:
    g = str(granularity).strip().lower()
    if g not in LOWERCASE_GRANULARITIES + PASSTHROUGH_GRANULARITIES:
        raise UnsupportedGranularityError(granularity, LOWERCASE_GRANULARITIES + PASSTHROUGH_GRANULARITIES)
    return g

def normalize_key(raw_name, granularity: str):
    g = _check(granularity)
    if raw_name is None or (not isinstance(raw_name, str) and pd.isna(raw_name)):
        return raw_name
    if g in PASSTHROUGH_GRANULARITIES:
        return raw_name
    return str(raw_name).strip().lower()

def normalize_keys(raw: pd.Series, granularity: str) -> pd.Series:
    g = _check(granularity)
    s = raw.astype("string")
    if g in PASSTHROUGH_GRANULARITIES:
        return s
    return s.str.strip().str.lower()
