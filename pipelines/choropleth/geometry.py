#!/usr/bin/env python3
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from loguru import logger

try:
    import geopandas as gpd
except Exception:  # pragma: no cover
    gpd = None

from .errors import UnsupportedGranularityError
from .io import dataset_key, mkdir_p, read_any, stdcols, write_parquet
from .keys import normalize_keys

VERTEX_COLUMNS = ["long", "lat", "group", "order", "region", "subregion"]


@dataclass(frozen=True)
class Granularity:
    name: str
    key_cols: Tuple[str, ...]
    lowercase: bool
    # candidate source columns (after stdcols) for region / subregion names
    region_name_cols: Tuple[str, ...]
    subregion_name_cols: Tuple[str, ...] = ()
    # key columns a value table may add to narrow the match
    optional_key_cols: Tuple[str, ...] = ()
    projection: str = "mercator"


GRANULARITIES: Dict[str, Granularity] = {
    "state": Granularity(
        name="state",
        key_cols=("region",),
        lowercase=True,
        region_name_cols=("region", "name", "state_name", "state", "name_en"),
    ),
    "world": Granularity(
        name="world",
        key_cols=("region",),
        lowercase=False,
        region_name_cols=("region", "name", "admin", "name_long", "country", "sovereignt"),
        projection="quickmap",
    ),
    "county": Granularity(
        name="county",
        key_cols=("subregion",),
        lowercase=True,
        region_name_cols=("region", "state_name", "state"),
        subregion_name_cols=("subregion", "name", "county_name", "county", "namelsad"),
        optional_key_cols=("region",),
    ),
}


def get_granularity(name) -> Granularity:
    if isinstance(name, Granularity):
        return name
    key = str(name).strip().lower()
    if key not in GRANULARITIES:
        raise UnsupportedGranularityError(name, GRANULARITIES)
    return GRANULARITIES[key]


def _pick(cols: Sequence[str], candidates: Sequence[str]) -> Optional[str]:
    for c in candidates:
        if c in cols:
            return c
    return None


def _ring_coords(ring) -> np.ndarray:
    xy = np.asarray(ring.coords)[:, :2]
    # rings come back closed; the renderer closes them itself
    if len(xy) > 1 and np.array_equal(xy[0], xy[-1]):
        xy = xy[:-1]
    return xy


def _polygons(geom):
    if geom is None or geom.is_empty:
        return []
    if geom.geom_type == "Polygon":
        return [geom]
    if geom.geom_type in ("MultiPolygon", "GeometryCollection"):
        out = []
        for part in geom.geoms:
            out.extend(_polygons(part))
        return out
    return []


def _empty_vertex_table() -> pd.DataFrame:
    return pd.DataFrame({
        "long": pd.Series(dtype="float64"),
        "lat": pd.Series(dtype="float64"),
        "group": pd.Series(dtype="int64"),
        "order": pd.Series(dtype="int64"),
        "region": pd.Series(dtype="string"),
        "subregion": pd.Series(dtype="string"),
    })


def fortify(
    gdf,
    region_col: str,
    subregion_col: Optional[str] = None,
    granularity="state",
) -> pd.DataFrame:
    """Explode polygon features into an ordered vertex table.

    Every exterior and interior ring becomes its own ``group``; ``order``
    numbers vertices 1..N across the whole table, so sorting by it restores
    the ring sequence. Names are normalized with the granularity's policy.
    """
    g = get_granularity(granularity)
    if region_col not in gdf.columns:
        raise ValueError(f"Region name column not found: {region_col}")
    if subregion_col is not None and subregion_col not in gdf.columns:
        raise ValueError(f"Subregion name column not found: {subregion_col}")

    longs, lats, groups, regions, subregions = [], [], [], [], []
    group_id = 0
    skipped = 0
    names = gdf[region_col].tolist()
    subnames = gdf[subregion_col].tolist() if subregion_col is not None else [pd.NA] * len(gdf)
    for geom, region, subregion in zip(gdf.geometry, names, subnames):
        polys = _polygons(geom)
        if not polys:
            skipped += 1
            continue
        for poly in polys:
            for ring in [poly.exterior, *poly.interiors]:
                xy = _ring_coords(ring)
                if len(xy) < 3:
                    continue
                group_id += 1
                n = len(xy)
                longs.append(xy[:, 0])
                lats.append(xy[:, 1])
                groups.append(np.full(n, group_id, dtype="int64"))
                regions.extend([region] * n)
                subregions.extend([subregion] * n)

    if skipped:
        logger.warning(f"fortify: skipped {skipped} feature(s) with empty or non-polygon geometry")

    if group_id == 0:
        return _empty_vertex_table()

    out = pd.DataFrame({
        "long": np.concatenate(longs).astype(float),
        "lat": np.concatenate(lats).astype(float),
        "group": np.concatenate(groups),
    })
    out["order"] = np.arange(1, len(out) + 1, dtype="int64")
    out["region"] = normalize_keys(pd.Series(regions, dtype="object"), g.name)
    out["subregion"] = normalize_keys(pd.Series(subregions, dtype="object"), g.name)
    return out[VERTEX_COLUMNS]


def is_vertex_table(df: pd.DataFrame) -> bool:
    return {"long", "lat", "group", "order", "region"} <= set(df.columns)


def validate_geometry(df: pd.DataFrame, granularity) -> pd.DataFrame:
    g = get_granularity(granularity)
    required = ["long", "lat", "group", "order", *g.key_cols]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{g.name} geometry missing columns: {missing}")
    if df.empty:
        raise ValueError(f"{g.name} geometry has no vertices")
    if df[["long", "lat", "group", "order"]].isna().any().any():
        raise ValueError(f"{g.name} geometry has null coordinates, groups or orders")

    # order must increase inside each group, in row order
    step = df.groupby("group", sort=False)["order"].diff()
    if (step.dropna() <= 0).any():
        bad = df.loc[step.fillna(1) <= 0, "group"].unique().tolist()
        raise ValueError(f"{g.name} geometry has out-of-sequence vertex order in group(s): {bad[:10]}")
    return df


def _as_vertex_table(obj, g: Granularity) -> pd.DataFrame:
    if gpd is not None and isinstance(obj, gpd.GeoDataFrame):
        gdf = stdcols(obj)
        region_col = _pick(gdf.columns, g.region_name_cols)
        subregion_col = _pick(gdf.columns, g.subregion_name_cols) if g.subregion_name_cols else None
        if g.subregion_name_cols and subregion_col is None:
            raise ValueError(
                f"{g.name} polygons need a subregion name column; tried {list(g.subregion_name_cols)}"
            )
        if region_col is None:
            if g.subregion_name_cols:
                # counties without a state column still join on subregion
                gdf = gdf.assign(region=pd.NA)
                region_col = "region"
            else:
                raise ValueError(
                    f"{g.name} polygons need a region name column; tried {list(g.region_name_cols)} "
                    f"(available: {list(gdf.columns)[:40]})"
                )
        return fortify(gdf, region_col=region_col, subregion_col=subregion_col, granularity=g.name)

    df = stdcols(pd.DataFrame(obj))
    if not is_vertex_table(df):
        raise ValueError(
            f"{g.name} geometry is neither a polygon layer nor a vertex table "
            f"(columns: {list(df.columns)[:40]})"
        )
    df = df.copy()
    if "subregion" not in df.columns:
        df["subregion"] = pd.NA
    df["long"] = pd.to_numeric(df["long"], errors="coerce").astype(float)
    df["lat"] = pd.to_numeric(df["lat"], errors="coerce").astype(float)
    df["region"] = normalize_keys(df["region"], g.name)
    df["subregion"] = normalize_keys(df["subregion"], g.name)
    extra = [c for c in df.columns if c not in VERTEX_COLUMNS]
    return df[VERTEX_COLUMNS + extra]


def read_geometry(path: Path, granularity) -> pd.DataFrame:
    g = get_granularity(granularity)
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing {g.name} geometry source: {path}")
    logger.info(f"[geometry] Reading {g.name} polygons from {path}")
    obj = read_any(path, str_cols=("region", "subregion") if path.suffix.lower() in (".csv", ".tsv") else ())
    return validate_geometry(_as_vertex_table(obj, g), g)


class GeometryProvider:
    """Serves the full vertex table for a granularity.

    ``sources`` maps granularity names to a file path or to an in-memory
    (Geo)DataFrame. Fortified file sources are cached as parquet under
    ``cache_dir`` when one is given.
    """

    def __init__(self, sources=None, cache_dir: Optional[Path] = None):
        if sources is None:
            from choropleth_maps.config import GEOMETRY_SOURCES
            sources = GEOMETRY_SOURCES
        self.sources = {get_granularity(k).name: v for k, v in dict(sources).items()}
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self._loaded: Dict[str, pd.DataFrame] = {}

    def _cache_path(self, g: Granularity, src: Path) -> Optional[Path]:
        if self.cache_dir is None or not src.exists():
            return None
        # one entry per source file version: location, size and mtime
        st = src.stat()
        tag = hashlib.sha1(f"{src.resolve()}|{st.st_size}|{st.st_mtime_ns}".encode()).hexdigest()[:12]
        return self.cache_dir / f"{g.name}_{dataset_key(src)}_{tag}_vertices.parquet"

    def _load(self, g: Granularity) -> pd.DataFrame:
        if g.name not in self.sources:
            raise FileNotFoundError(f"No geometry source configured for granularity {g.name!r}")
        src = self.sources[g.name]
        if isinstance(src, pd.DataFrame):
            return validate_geometry(_as_vertex_table(src, g), g)

        src = Path(src)
        cache = self._cache_path(g, src)
        if cache is not None and cache.exists():
            logger.info(f"[geometry] Using cached {g.name} vertices: {cache}")
            return validate_geometry(pd.read_parquet(cache), g)

        verts = read_geometry(src, g)
        if cache is not None:
            mkdir_p(cache.parent)
            write_parquet(verts, cache)
            logger.info(f"[geometry] Cached {len(verts)} {g.name} vertices -> {cache}")
        return verts

    def get(self, granularity) -> pd.DataFrame:
        g = get_granularity(granularity)
        if g.name not in self._loaded:
            verts = self._load(g)
            logger.info(
                f"[geometry] {g.name}: {len(verts)} vertices, {verts['group'].nunique()} groups, "
                f"{verts[list(g.key_cols)].drop_duplicates().shape[0]} keys"
            )
            self._loaded[g.name] = verts
        return self._loaded[g.name].copy()
