from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
from loguru import logger

from .errors import IncompleteCoverageWarning, KeyMismatchError
from .geometry import get_granularity
from .keys import normalize_keys
from .values import deduplicate_regions


@dataclass
class JoinReport:
    granularity: str
    key_cols: List[str]
    n_vertices: int
    n_matched_vertices: int
    n_value_rows: int
    unmatched_regions: List[str] = field(default_factory=list)
    unmatched_value_keys: List[str] = field(default_factory=list)

    @property
    def n_unmatched_vertices(self) -> int:
        return self.n_vertices - self.n_matched_vertices

    @property
    def n_unmatched_value_rows(self) -> int:
        return len(self.unmatched_value_keys)

    @property
    def coverage(self) -> float:
        return self.n_matched_vertices / self.n_vertices if self.n_vertices else 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "granularity": self.granularity,
            "key_cols": list(self.key_cols),
            "n_vertices": self.n_vertices,
            "n_matched_vertices": self.n_matched_vertices,
            "n_unmatched_vertices": self.n_unmatched_vertices,
            "n_value_rows": self.n_value_rows,
            "n_unmatched_value_rows": self.n_unmatched_value_rows,
            "coverage": self.coverage,
            "unmatched_regions": list(self.unmatched_regions),
            "unmatched_value_keys": list(self.unmatched_value_keys),
        }


@dataclass
class JoinResult:
    joined: pd.DataFrame
    report: JoinReport


def _labels(df: pd.DataFrame, keys: Sequence[str]) -> List[str]:
    return df[list(keys)].astype(str).apply("/".join, axis=1).tolist()


def _resolve_keys(values: pd.DataFrame, geometry: pd.DataFrame, g, on) -> List[str]:
    allowed = list(g.key_cols) + list(g.optional_key_cols)
    if on is not None:
        on_cols = [on] if isinstance(on, str) else list(on)
        if not set(g.key_cols) <= set(on_cols) or not set(on_cols) <= set(allowed):
            raise KeyMismatchError(
                f"Cannot join {g.name} geometry on {on_cols}: {g.name} geometry is keyed by "
                f"{list(g.key_cols)}" + (f" (optionally with {list(g.optional_key_cols)})" if g.optional_key_cols else "")
            )
    else:
        on_cols = list(g.key_cols) + [c for c in g.optional_key_cols if c in values.columns]

    for c in g.key_cols:
        if c not in geometry.columns or geometry[c].isna().all():
            raise KeyMismatchError(
                f"{g.name} geometry has no usable '{c}' key column; "
                "was geometry for a different granularity passed in?"
            )

    keys = []
    for c in on_cols:
        if c in g.key_cols:
            keys.append(c)
        elif c in geometry.columns and geometry[c].notna().all():
            keys.append(c)
        else:
            logger.warning(f"[join] Ignoring '{c}' key: not populated on every {g.name} geometry vertex")
    return keys


def join_to_geometry(
    values: pd.DataFrame,
    geometry: pd.DataFrame,
    granularity,
    on: Optional[Union[str, Sequence[str]]] = None,
    tie_break: str = "error",
) -> JoinResult:
    """Attach ``value`` to every geometry vertex (geometry-anchored join).

    The output has exactly one row per geometry vertex, in the geometry's
    row order; vertices without a value get NaN. Value rows whose key only
    differs from a geometry key by letter case raise ``KeyMismatchError``.
    """
    g = get_granularity(granularity)
    if "value" in geometry.columns:
        raise ValueError("Geometry table already has a 'value' column")

    keys = _resolve_keys(values, geometry, g, on)

    vals = deduplicate_regions(values, g, tie_break=tie_break, key_cols=keys)[keys + ["value"]]

    geo = geometry.reset_index(drop=True).copy()
    for c in keys:
        geo[c] = normalize_keys(geo[c], g.name)

    # ---------- value rows with no geometry ----------
    geo_keys = geo[keys].dropna().drop_duplicates()
    probe = vals.merge(geo_keys, on=keys, how="left", indicator=True)
    orphans = probe.loc[probe["_merge"] == "left_only", keys]
    unmatched_value_keys = _labels(orphans, keys) if not orphans.empty else []

    if unmatched_value_keys:
        folded = {lab.casefold(): lab for lab in _labels(geo_keys, keys)}
        miscased = [(lab, folded[lab.casefold()]) for lab in unmatched_value_keys if lab.casefold() in folded]
        if miscased:
            sample = ", ".join(f"{a!r} vs {b!r}" for a, b in miscased[:5])
            raise KeyMismatchError(
                f"{len(miscased)} value key(s) differ from {g.name} geometry keys only by case ({sample}); "
                f"{g.name} keys {'are lowercase' if g.lowercase else 'keep their original casing'}"
            )
        logger.warning(
            f"[join] {len(unmatched_value_keys)} value row(s) have no {g.name} geometry and are left out: "
            f"{unmatched_value_keys[:10]}"
        )

    # ---------- geometry-anchored join ----------
    joined = geo.merge(vals, on=keys, how="left", validate="many_to_one", indicator=True)
    if len(joined) != len(geo):
        raise ValueError(
            f"Internal error: join produced {len(joined)} rows for {len(geo)} geometry vertices."
        )
    matched = joined["_merge"] == "both"
    joined = joined.drop(columns="_merge")

    unmatched_regions = (
        _labels(joined.loc[~matched, keys].drop_duplicates(), keys) if (~matched).any() else []
    )
    report = JoinReport(
        granularity=g.name,
        key_cols=keys,
        n_vertices=len(joined),
        n_matched_vertices=int(matched.sum()),
        n_value_rows=len(vals),
        unmatched_regions=unmatched_regions,
        unmatched_value_keys=unmatched_value_keys,
    )

    if report.n_unmatched_vertices:
        msg = (
            f"{report.n_unmatched_vertices} of {report.n_vertices} {g.name} vertices "
            f"({len(unmatched_regions)} region(s)) have no value and will be drawn as missing"
        )
        logger.warning(f"[join] {msg}")
        warnings.warn(msg, IncompleteCoverageWarning, stacklevel=2)

    logger.info(
        f"[join] {g.name}: {report.n_matched_vertices}/{report.n_vertices} vertices matched "
        f"(coverage {report.coverage:.2%}) on {keys}"
    )
    return JoinResult(joined=joined, report=report)
