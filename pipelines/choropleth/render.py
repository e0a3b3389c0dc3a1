#!/usr/bin/env python3
from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple, Union

import matplotlib as mpl
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from loguru import logger
from matplotlib.collections import PolyCollection
from matplotlib.colors import LinearSegmentedColormap

from choropleth_maps.style import StyleConfig

from .geometry import get_granularity
from .io import mkdir_p

PROJECTIONS = ("mercator", "quickmap")
MAX_MERCATOR_LAT = 85.0

REQUIRED_COLUMNS = ["long", "lat", "group", "order", "value"]


def project(long: np.ndarray, lat: np.ndarray, projection: str) -> Tuple[np.ndarray, np.ndarray, float]:
    """Map lon/lat to plot coordinates; returns (x, y, axes aspect).

    ``mercator`` is conformal and suits single-country extents; latitudes are
    clamped so polar rings stay finite. ``quickmap`` keeps degrees and fixes
    the aspect at the middle latitude, which is what world maps need.
    """
    long = np.asarray(long, dtype=float)
    lat = np.asarray(lat, dtype=float)
    if projection == "mercator":
        phi = np.radians(np.clip(lat, -MAX_MERCATOR_LAT, MAX_MERCATOR_LAT))
        y = np.degrees(np.log(np.tan(np.pi / 4 + phi / 2)))
        return long, y, 1.0
    if projection == "quickmap":
        mid = (np.nanmin(lat) + np.nanmax(lat)) / 2.0 if lat.size else 0.0
        # cos() hits zero at the poles; cap the stretch
        aspect = 1.0 / max(np.cos(np.radians(mid)), 0.1)
        return long, lat, float(aspect)
    raise ValueError(f"Unsupported projection {projection!r}; expected one of {list(PROJECTIONS)}")


def build_colormap(style: StyleConfig) -> LinearSegmentedColormap:
    cmap = LinearSegmentedColormap.from_list("choropleth", [style.low, style.mid, style.high], N=256)
    return cmap.with_extremes(bad=style.na_color)


def value_limits(values: np.ndarray, style: StyleConfig) -> Tuple[float, float]:
    if style.limits is not None:
        return float(style.limits[0]), float(style.limits[1])
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return 0.0, 1.0
    vmin, vmax = float(finite.min()), float(finite.max())
    if vmin == vmax:
        vmin, vmax = vmin - 0.5, vmax + 0.5
    return vmin, vmax


def render(
    joined: pd.DataFrame,
    style: Optional[StyleConfig] = None,
    path: Union[str, Path] = "choropleth.png",
    projection: Optional[str] = None,
    granularity=None,
) -> Path:
    """Draw one filled polygon per ``group`` and save the figure to ``path``."""
    style = style or StyleConfig()
    missing = [c for c in REQUIRED_COLUMNS if c not in joined.columns]
    if missing:
        raise ValueError(f"Joined table missing columns for rendering: {missing}")
    if joined.empty:
        raise ValueError("Nothing to render: joined table is empty")

    if projection is None:
        projection = get_granularity(granularity).projection if granularity is not None else "mercator"

    x, y, aspect = project(joined["long"].values, joined["lat"].values, projection)
    frame = pd.DataFrame({
        "x": x,
        "y": y,
        "group": joined["group"].values,
        "order": joined["order"].values,
        "value": joined["value"].astype(float).values,
    })
    frame = frame.sort_values(["group", "order"], kind="stable")

    polys = []
    group_values = []
    for _, g in frame.groupby("group", sort=False):
        if len(g) < 3:
            continue
        polys.append(g[["x", "y"]].to_numpy())
        group_values.append(g["value"].iloc[0])
    if not polys:
        raise ValueError("Nothing to render: no group has three or more vertices")
    group_values = np.asarray(group_values, dtype=float)

    cmap = build_colormap(style)
    vmin, vmax = value_limits(group_values, style)

    fig, ax = plt.subplots(figsize=style.figsize_inches(), dpi=style.dpi)
    coll = PolyCollection(
        polys,
        closed=True,
        cmap=cmap,
        norm=mpl.colors.Normalize(vmin=vmin, vmax=vmax),
        edgecolors=style.edge_color,
        linewidths=style.line_width,
    )
    coll.set_array(np.ma.masked_invalid(group_values))
    ax.add_collection(coll)
    ax.autoscale_view()
    ax.set_aspect(aspect)

    if style.show_axes:
        ax.set_xlabel("long")
        ax.set_ylabel("lat")
    else:
        ax.set_axis_off()

    if style.show_legend:
        cbar = fig.colorbar(coll, ax=ax, shrink=0.7)
        cbar.set_label(style.legend_label)
        cbar.outline.set_linewidth(0.5)  # type: ignore

    if style.title:
        ax.set_title(style.title, loc="left", fontweight="bold")

    path = Path(path)
    mkdir_p(path.parent)
    fig.savefig(path, dpi=style.dpi, facecolor="white", edgecolor="none")
    plt.close(fig)
    logger.info(f"Map saved: {path} ({len(polys)} polygons, projection={projection})")
    return path
