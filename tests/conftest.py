"""Shared fixtures: tiny vertex tables and polygon layers for each granularity."""

from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import MultiPolygon, Polygon, box


def square(region: str, group: int = 1, start: int = 1, x0: float = 0.0, subregion=pd.NA) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "long": [x0, x0 + 1.0, x0 + 1.0, x0],
            "lat": [30.0, 30.0, 31.0, 31.0],
            "group": [group] * 4,
            "order": list(range(start, start + 4)),
            "region": [region] * 4,
            "subregion": [subregion] * 4,
        }
    )


@pytest.fixture
def texas_square() -> pd.DataFrame:
    return square("texas")


@pytest.fixture
def state_geometry() -> pd.DataFrame:
    return pd.concat(
        [
            square("texas", group=1, start=1, x0=0.0),
            square("ohio", group=2, start=5, x0=2.0),
            square("ohio", group=3, start=9, x0=4.0),
            square("maine", group=4, start=13, x0=6.0),
        ],
        ignore_index=True,
    )


@pytest.fixture
def world_geometry() -> pd.DataFrame:
    return pd.concat(
        [
            square("France", group=1, start=1, x0=0.0),
            square("Germany", group=2, start=5, x0=2.0),
            square("Namibia", group=3, start=9, x0=4.0),
        ],
        ignore_index=True,
    )


@pytest.fixture
def county_geometry() -> pd.DataFrame:
    return pd.concat(
        [
            square("texas", group=1, start=1, x0=0.0, subregion="harris"),
            square("texas", group=2, start=5, x0=2.0, subregion="travis"),
            square("ohio", group=3, start=9, x0=4.0, subregion="franklin"),
        ],
        ignore_index=True,
    )


@pytest.fixture
def state_polygons() -> gpd.GeoDataFrame:
    holed = Polygon(
        [(0, 0), (10, 0), (10, 10), (0, 10)],
        holes=[[(4, 4), (6, 4), (6, 6), (4, 6)]],
    )
    islands = MultiPolygon([box(20, 0, 21, 1), box(22, 0, 23, 1)])
    return gpd.GeoDataFrame(
        {"NAME": ["Texas", "New York"], "geometry": [holed, islands]},
        geometry="geometry",
        crs="EPSG:4326",
    )


@pytest.fixture
def county_polygons() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {
            "NAME": ["Harris", "Travis", "Franklin"],
            "STATE_NAME": ["Texas", "Texas", "Ohio"],
            "geometry": [box(0, 0, 1, 1), box(2, 0, 3, 1), box(4, 0, 5, 1)],
        },
        geometry="geometry",
        crs="EPSG:4326",
    )


@pytest.fixture
def world_polygons() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {
            "name": ["France", "Germany"],
            "geometry": [box(-5, 42, 8, 51), box(6, 47, 15, 55)],
        },
        geometry="geometry",
        crs="EPSG:4326",
    )
