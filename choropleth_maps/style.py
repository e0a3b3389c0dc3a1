from dataclasses import dataclass
from typing import Optional, Tuple

from .config import DEFAULT_SEED

UNITS_PER_INCH = {
    "in": 1.0,
    "cm": 2.54,
    "mm": 25.4,
}

@dataclass(frozen=True)
class StyleConfig:
    # Three-stop gradient (low -> mid -> high); NaN values use na_color
    low: str = "#f7fbff"
    mid: str = "#6baed6"
    high: str = "#08306b"
    na_color: str = "#d9d9d9"
    edge_color: str = "#ffffff"
    line_width: float = 0.2

    show_axes: bool = False
    show_legend: bool = True
    legend_label: str = "value"
    title: str = ""

    width: float = 8.0
    height: float = 5.0
    units: str = "in"            # "in", "cm" or "mm"
    dpi: int = 150

    # Explicit colour-scale limits; None means the data range
    limits: Optional[Tuple[float, float]] = None

    def __post_init__(self):
        if self.units not in UNITS_PER_INCH:
            raise ValueError(f"Unsupported units: {self.units!r} (expected one of {sorted(UNITS_PER_INCH)})")
        if self.width <= 0 or self.height <= 0:
            raise ValueError("width and height must be positive")
        if self.limits is not None and self.limits[0] > self.limits[1]:
            raise ValueError(f"limits must be (low, high), got {self.limits}")

    def figsize_inches(self) -> Tuple[float, float]:
        per_inch = UNITS_PER_INCH[self.units]
        return self.width / per_inch, self.height / per_inch

@dataclass(frozen=True)
class RunParams:
    random_seed: int = DEFAULT_SEED
    tie_break: str = "error"     # "error", "first", "last" or "mean"
    value_low: float = 0.0
    value_high: float = 100.0
