#!/usr/bin/env python3
from __future__ import annotations

import argparse
import warnings
from pathlib import Path
from typing import Dict, Optional

import pandas as pd
from loguru import logger

from choropleth_maps.config import FIGURES_DIR, GEOMETRY_CACHE_DIR, GEOMETRY_SOURCES
from choropleth_maps.style import RunParams, StyleConfig

from .errors import ChoroplethError, IncompleteCoverageWarning
from .geometry import GRANULARITIES, GeometryProvider, get_granularity
from .io import read_values, write_json, write_parquet, write_values
from .join import join_to_geometry
from .render import PROJECTIONS, render
from .values import TIE_BREAKS, generate_synthetic_values

STAGES = ["generate", "join", "render", "all"]

TITLES = {
    "state": "Synthetic values by US state",
    "world": "Synthetic values by country",
    "county": "Synthetic values by US county",
}


def out_paths(out_dir: Path, granularity: str) -> Dict[str, Path]:
    return {
        "values": out_dir / f"{granularity}_values.csv",
        "joined": out_dir / f"{granularity}_joined.parquet",
        "report": out_dir / f"{granularity}_join_report.json",
        "map": out_dir / f"{granularity}_map.png",
    }


def run_granularity(
    granularity: str,
    provider: GeometryProvider,
    out_dir: Path,
    params: Optional[RunParams] = None,
    style: Optional[StyleConfig] = None,
    stage: str = "all",
    values_path: Optional[Path] = None,
    projection: Optional[str] = None,
) -> Dict[str, Path]:
    """Run one example map: values -> join -> PNG, or a single stage of it."""
    g = get_granularity(granularity)
    params = params or RunParams()
    style = style or StyleConfig(title=TITLES[g.name])
    outs = out_paths(Path(out_dir), g.name)
    written: Dict[str, Path] = {}

    if stage == "generate" and values_path is not None:
        raise ValueError("stage=generate writes synthetic values; it cannot reuse a stored value table")

    logger.info(f"========== {g.name}: stage={stage} ==========")

    values = None
    if stage in ("generate", "all") and values_path is None:
        geometry = provider.get(g.name)
        key = g.key_cols[0]
        values = generate_synthetic_values(
            geometry[key].dropna().unique(),
            rng_seed=params.random_seed,
            key_col=key,
            low=params.value_low,
            high=params.value_high,
        )
        written["values"] = write_values(values, outs["values"])
        logger.info(f"[generate] Wrote {len(values)} synthetic {g.name} values -> {outs['values']}")
        if stage == "generate":
            return written

    joined = None
    if stage in ("join", "all"):
        if values is None:
            src = values_path or outs["values"]
            values = read_values(src, key_cols=g.key_cols, str_cols=g.key_cols + g.optional_key_cols)
            logger.info(f"[join] Loaded {len(values)} value rows from {src}")
        geometry = provider.get(g.name)
        with warnings.catch_warnings():
            # coverage gaps are already logged by the join
            warnings.simplefilter("ignore", IncompleteCoverageWarning)
            result = join_to_geometry(values, geometry, g.name, tie_break=params.tie_break)
        joined = result.joined
        write_parquet(joined, outs["joined"])
        write_json(result.report.as_dict(), outs["report"])
        written["joined"] = outs["joined"]
        written["report"] = outs["report"]
        if stage == "join":
            return written

    if stage in ("render", "all"):
        if joined is None:
            if not outs["joined"].exists():
                raise FileNotFoundError(f"Missing joined table (run stage=join first): {outs['joined']}")
            joined = pd.read_parquet(outs["joined"])
        written["map"] = render(joined, style, outs["map"], projection=projection, granularity=g.name)

    return written


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Synthetic choropleth maps: join per-region values to polygons and render them.")
    ap.add_argument("--granularity", default="all", choices=[*GRANULARITIES, "all"])
    ap.add_argument("--stage", default="all", choices=STAGES)
    ap.add_argument("--out-dir", type=Path, default=FIGURES_DIR)
    ap.add_argument("--geometry", type=Path, help="Override the geometry source file (single granularity only).")
    ap.add_argument("--values", type=Path, help="Reuse a stored value table instead of generating one.")
    ap.add_argument("--seed", type=int, default=RunParams().random_seed)
    ap.add_argument("--tie-break", default="error", choices=TIE_BREAKS)
    ap.add_argument("--no-cache", action="store_true", help="Do not cache fortified geometry as parquet.")

    ap.add_argument("--title", default=None)
    ap.add_argument("--projection", default=None, choices=PROJECTIONS)
    ap.add_argument("--width", type=float, default=8.0)
    ap.add_argument("--height", type=float, default=5.0)
    ap.add_argument("--units", default="in", choices=["in", "cm", "mm"])
    ap.add_argument("--dpi", type=int, default=150)
    ap.add_argument("--show-axes", action="store_true")
    ap.add_argument("--no-legend", action="store_true")
    args = ap.parse_args(argv)

    names = list(GRANULARITIES) if args.granularity == "all" else [args.granularity]
    if (args.geometry or args.values) and len(names) > 1:
        ap.error("--geometry/--values need a single --granularity")
    if args.values and args.stage == "generate":
        ap.error("--values cannot be combined with --stage generate")

    sources = dict(GEOMETRY_SOURCES)
    if args.geometry:
        sources[names[0]] = args.geometry
    provider = GeometryProvider(sources, cache_dir=None if args.no_cache else GEOMETRY_CACHE_DIR)
    params = RunParams(random_seed=args.seed, tie_break=args.tie_break)

    for name in names:
        style = StyleConfig(
            title=args.title if args.title is not None else TITLES[name],
            width=args.width,
            height=args.height,
            units=args.units,
            dpi=args.dpi,
            show_axes=args.show_axes,
            show_legend=not args.no_legend,
        )
        try:
            written = run_granularity(
                name,
                provider,
                args.out_dir,
                params=params,
                style=style,
                stage=args.stage,
                values_path=args.values,
                projection=args.projection,
            )
        except (ChoroplethError, FileNotFoundError) as e:
            logger.error(f"{name}: {e}")
            return 1
        for k, p in written.items():
            logger.info(f"  {k}: {p}")

    logger.info(f"Done. stage={args.stage}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
