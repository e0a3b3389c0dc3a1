"""Tests for the matplotlib polygon renderer."""

from __future__ import annotations

from pathlib import Path

import matplotlib as mpl
import matplotlib.image as mpimg
import numpy as np
import pandas as pd
import pytest

from choropleth_maps.style import StyleConfig
import pipelines.choropleth.render as render_mod
from pipelines.choropleth.render import build_colormap, project, render, value_limits


def _joined(state_geometry: pd.DataFrame) -> pd.DataFrame:
    values = {"texas": 10.0, "ohio": 90.0}
    return state_geometry.assign(value=state_geometry["region"].map(values).astype(float))


def test_render_writes_png_of_requested_size(tmp_path: Path, state_geometry: pd.DataFrame) -> None:
    style = StyleConfig(title="Test map", width=4, height=3, units="in", dpi=50)

    out = render(_joined(state_geometry), style, tmp_path / "maps" / "state_map.png", granularity="state")

    assert out.exists()
    assert out.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"
    img = mpimg.imread(out)
    assert img.shape[:2] == (150, 200)


def test_render_supports_units_axes_and_no_legend(tmp_path: Path, state_geometry: pd.DataFrame) -> None:
    style = StyleConfig(width=10.16, height=7.62, units="cm", dpi=50, show_axes=True, show_legend=False)
    out = render(_joined(state_geometry), style, tmp_path / "map.png", projection="quickmap")
    h, w = mpimg.imread(out).shape[:2]
    # cm -> inch conversion can land a hair under the exact pixel count
    assert abs(h - 150) <= 1 and abs(w - 200) <= 1


def test_render_all_missing_values(tmp_path: Path, texas_square: pd.DataFrame) -> None:
    out = render(texas_square.assign(value=np.nan), StyleConfig(dpi=30), tmp_path / "empty.png")
    assert out.exists()


def test_render_rejects_bad_input(tmp_path: Path, texas_square: pd.DataFrame) -> None:
    with pytest.raises(ValueError):
        render(texas_square, StyleConfig(), tmp_path / "x.png")
    with pytest.raises(ValueError):
        render(texas_square.assign(value=1.0), StyleConfig(), tmp_path / "x.png", projection="orthographic")
    with pytest.raises(ValueError):
        render(texas_square.assign(value=1.0).iloc[0:0], StyleConfig(), tmp_path / "x.png")


def test_render_follows_vertex_order(tmp_path: Path, texas_square: pd.DataFrame, monkeypatch) -> None:
    seen = []
    real = render_mod.PolyCollection

    def spy(verts, *args, **kwargs):
        seen.extend(np.asarray(v) for v in verts)
        return real(verts, *args, **kwargs)

    monkeypatch.setattr(render_mod, "PolyCollection", spy)
    shuffled = texas_square.assign(value=1.0).iloc[[0, 2, 1, 3]]
    render(shuffled, StyleConfig(dpi=30), tmp_path / "shuffled.png", projection="quickmap")

    assert len(seen) == 1
    assert seen[0].tolist() == [[0.0, 30.0], [1.0, 30.0], [1.0, 31.0], [0.0, 31.0]]


@pytest.mark.filterwarnings("error")
def test_missing_values_use_na_color() -> None:
    style = StyleConfig(na_color="#ff00ff")
    cmap = build_colormap(style)
    assert tuple(cmap(np.ma.masked_invalid([np.nan]))[0]) == pytest.approx(mpl.colors.to_rgba("#ff00ff"))
    assert tuple(cmap(0.0)) == pytest.approx(mpl.colors.to_rgba(style.low))
    assert tuple(cmap(1.0)) == pytest.approx(mpl.colors.to_rgba(style.high))


def test_value_limits() -> None:
    style = StyleConfig()
    assert value_limits(np.array([1.0, np.nan, 5.0]), style) == (1.0, 5.0)
    assert value_limits(np.array([3.0, 3.0]), style) == (2.5, 3.5)
    assert value_limits(np.array([np.nan]), style) == (0.0, 1.0)
    assert value_limits(np.array([1.0, 5.0]), StyleConfig(limits=(0.0, 100.0))) == (0.0, 100.0)


def test_projections() -> None:
    lat = np.array([0.0, 60.0, 90.0])
    long = np.array([10.0, 20.0, 30.0])

    x, y, aspect = project(long, lat, "mercator")
    assert aspect == 1.0
    assert y[0] == pytest.approx(0.0)
    assert np.isfinite(y).all()
    assert y[1] > 60.0

    x, y, aspect = project(long, np.array([50.0, 70.0]), "quickmap")
    assert aspect == pytest.approx(2.0)
    assert y.tolist() == [50.0, 70.0]


def test_style_config_validation() -> None:
    assert StyleConfig(width=25.4, height=50.8, units="mm").figsize_inches() == pytest.approx((1.0, 2.0))
    with pytest.raises(ValueError):
        StyleConfig(units="px")
    with pytest.raises(ValueError):
        StyleConfig(width=0)
    with pytest.raises(ValueError):
        StyleConfig(limits=(5.0, 1.0))
