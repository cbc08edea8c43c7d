# errand_router/services/staging_service.py
"""
Moving POI data in and out of CSV files.

WKB is the geometry encoding used for files: a single hex string without
delimiters, spaces or quotes, so it survives any CSV dialect. Loading also
accepts WKT/GeoJSON geometry columns, or separate longitude/latitude
columns that get combined into a point.
"""

import csv
import logging
from pathlib import Path

import geopandas as gpd
import pandas as pd
from shapely.geometry import Point

from .geometry_service import format_geometry, make_point, parse_geometry
from .poi_service import POI_COLUMNS

logger = logging.getLogger(__name__)

# OSM extracts label the category column "shop" and the feature kind "type"
COLUMN_ALIASES = {"shop": "category", "type": "osm_type"}


def read_pois_csv(
    path: str | Path,
    geometry_column: str | None = "geometry",
    lon_column: str | None = None,
    lat_column: str | None = None,
) -> gpd.GeoDataFrame:
    """
    Read a POI CSV into a GeoDataFrame in EPSG:4326.

    Either `geometry_column` holds an encoded geometry (WKB, WKT or
    GeoJSON), or `lon_column`/`lat_column` hold plain coordinates.
    """
    frame = pd.read_csv(path, dtype={"addr_housenumber": str})
    frame = frame.rename(columns={k: v for k, v in COLUMN_ALIASES.items() if v not in frame.columns})

    if "id" not in frame.columns:
        raise ValueError(f"{path}: an 'id' column is required")

    if lon_column and lat_column:
        geometries = [make_point(float(lon), float(lat)) for lon, lat in zip(frame[lon_column], frame[lat_column])]
        frame = frame.drop(columns=[lon_column, lat_column])
    elif geometry_column and geometry_column in frame.columns:
        geometries = [parse_geometry(str(value)) for value in frame[geometry_column]]
        frame = frame.drop(columns=[geometry_column])
    else:
        raise ValueError(f"{path}: no geometry column {geometry_column!r} and no lon/lat columns given")

    # ways are areas, keep one point inside each so every POI has a position
    positions = [g if isinstance(g, Point) else g.representative_point() for g in geometries]

    for column in POI_COLUMNS:
        if column not in frame.columns:
            frame[column] = None

    gdf = gpd.GeoDataFrame(frame[POI_COLUMNS], geometry=positions, crs="EPSG:4326")
    logger.info("read %d POIs from %s", len(gdf), path)
    return gdf


def write_pois_csv(gdf: gpd.GeoDataFrame, path: str | Path, output_format: str = "WKB") -> int:
    """Unload POIs to CSV; longitude and latitude columns are added for points."""
    if gdf.crs is not None and gdf.crs.to_epsg() != 4326:
        gdf = gdf.to_crs(epsg=4326)

    frame = pd.DataFrame(gdf.drop(columns=gdf.geometry.name))
    frame.insert(1, "geometry", [format_geometry(g, output_format) for g in gdf.geometry])
    frame["lon"] = [g.x if isinstance(g, Point) else None for g in gdf.geometry]
    frame["lat"] = [g.y if isinstance(g, Point) else None for g in gdf.geometry]

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False, quoting=csv.QUOTE_NONNUMERIC)
    logger.info("wrote %d POIs to %s", len(frame), path)
    return len(frame)
