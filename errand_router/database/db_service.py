# errand_router/database/db_service.py

import logging
from contextlib import contextmanager
from functools import lru_cache

import geopandas as gpd
from shapely.errors import ShapelyError
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError

from errand_router.app.core.config import DATABASE_URL
from errand_router.services.errors import BackendUnavailableError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def get_engine(url: str = DATABASE_URL) -> Engine:
    """One engine per database url, created on first use."""
    return create_engine(url, pool_pre_ping=True)


@contextmanager
def connect(engine: Engine):
    """
    Open a connection; driver-level failures surface as BackendUnavailableError.
    """
    try:
        with engine.connect() as conn:
            yield conn
    except DBAPIError as e:
        logger.error("spatial backend query failed: %s", e.orig)
        raise BackendUnavailableError(f"spatial backend unavailable: {e.orig}") from e


def enable_postgis(engine: Engine) -> None:
    with connect(engine) as conn:
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis;"))
        conn.commit()


def read_geodataframe(engine: Engine, sql: str, params: dict | None = None, geom_col: str = "geometry") -> gpd.GeoDataFrame:
    """
    Run a query through read_postgis. Rows with a NULL geometry are dropped
    with a warning; geometry that cannot be decoded is a BackendUnavailableError.
    """
    try:
        with connect(engine) as conn:
            gdf = gpd.read_postgis(text(sql), conn, params=params, geom_col=geom_col)
    except (ShapelyError, ValueError) as e:
        logger.error("could not decode geometry from the spatial backend: %s", e)
        raise BackendUnavailableError(f"spatial backend returned undecodable geometry: {e}") from e

    missing = gdf[geom_col].isna()
    if missing.any():
        logger.warning("dropping %d rows without geometry", missing.sum())
        gdf = gdf[~missing].copy()
    return gdf
