import os
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

# Load environment variables from .env file if it exists
load_dotenv()

# Paths
PROJ_ROOT = Path(__file__).resolve().parents[1]
logger.info(f"PROJ_ROOT path is: {PROJ_ROOT}")

DATA_DIR = PROJ_ROOT / "data"
RAW_DATA_DIR = DATA_DIR / "raw"
INTERIM_DATA_DIR = DATA_DIR / "interim"
PROCESSED_DATA_DIR = DATA_DIR / "processed"
EXTERNAL_DATA_DIR = DATA_DIR / "external"

REPORTS_DIR = PROJ_ROOT / "reports"
FIGURES_DIR = REPORTS_DIR / "figures"

# Polygon sources, one per granularity. Either a polygon file readable by
# geopandas or an already-fortified vertex table (long/lat/group/order/region).
GEOMETRY_DIR = EXTERNAL_DATA_DIR / "geometry"
GEOMETRY_CACHE_DIR = INTERIM_DATA_DIR / "geometry"

STATE_GEOMETRY = Path(os.getenv("CHOROPLETH_STATE_GEOMETRY", GEOMETRY_DIR / "us_states.geojson"))
WORLD_GEOMETRY = Path(os.getenv("CHOROPLETH_WORLD_GEOMETRY", GEOMETRY_DIR / "world_countries.geojson"))
COUNTY_GEOMETRY = Path(os.getenv("CHOROPLETH_COUNTY_GEOMETRY", GEOMETRY_DIR / "us_counties.geojson"))

GEOMETRY_SOURCES = {
    "state": STATE_GEOMETRY,
    "world": WORLD_GEOMETRY,
    "county": COUNTY_GEOMETRY,
}

DEFAULT_SEED = int(os.getenv("CHOROPLETH_SEED", "42"))

# If tqdm is installed, configure loguru with tqdm.write
# https://github.com/Delgan/loguru/issues/135
try:
    from tqdm import tqdm

    logger.remove(0)
    logger.add(lambda msg: tqdm.write(msg, end=""), colorize=True)
except ModuleNotFoundError:
    pass
