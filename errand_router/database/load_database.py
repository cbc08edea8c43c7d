import logging

import geopandas as gpd

from errand_router.app.core.config import POI_TABLE
from errand_router.database.db_service import get_engine, read_geodataframe
from errand_router.services.poi_service import POI_COLUMNS

logger = logging.getLogger(__name__)


def load_pois_from_db(table: str = POI_TABLE, engine=None) -> gpd.GeoDataFrame | None:
    """Load the POI table from PostGIS as a GeoDataFrame of points in WGS84."""
    engine = engine or get_engine()
    logger.info("loading POIs from PostGIS table %s...", table)

    columns = ", ".join(POI_COLUMNS + ["geometry"])
    pois_gdf = read_geodataframe(engine, f"SELECT {columns} FROM {table} ORDER BY id")

    if pois_gdf.empty:
        logger.error("table %s is empty", table)
        return None

    # the table is stored in WGS84; set it when the column carries no SRID
    if pois_gdf.crs is None:
        pois_gdf.set_crs(epsg=4326, inplace=True)
    elif pois_gdf.crs.to_epsg() != 4326:
        pois_gdf = pois_gdf.to_crs(epsg=4326)

    # ways are polygons; keep a point inside each
    not_points = pois_gdf.geom_type != "Point"
    if not_points.any():
        pois_gdf.loc[not_points, "geometry"] = pois_gdf.loc[not_points].geometry.representative_point()

    logger.info("loaded %d POIs", len(pois_gdf))
    return pois_gdf
