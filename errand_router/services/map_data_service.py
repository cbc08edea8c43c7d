# errand_router/services/map_data_service.py

import logging

import geopandas as gpd
from shapely.geometry import LineString, Point, Polygon
from sqlalchemy import text
from sqlalchemy.engine import Engine

from errand_router.database.db_service import connect, read_geodataframe
from errand_router.models import CategoryFilter, PointOfInterest
from .backend import SpatialBackend
from .geometry_service import WGS84_SRID, to_text
from .poi_service import POI_COLUMNS, row_to_poi

logger = logging.getLogger(__name__)

# geography casts make PostGIS measure on the spheroid, in meters
_POINT = "ST_SetSRID(ST_MakePoint(:lon, :lat), 4326)"


# ======================================================================
# Spatial backend backed by a PostGIS table of POIs
# ======================================================================

class PostGISBackend(SpatialBackend):
    """
    Runs every primitive as spatial SQL. The POI table needs the columns
    id, name, category, addr_housenumber, addr_street, osm_type and a
    geometry column in EPSG:4326.
    """

    def __init__(self, engine: Engine, table: str = "pois"):
        if not table.replace("_", "").isalnum():
            raise ValueError(f"invalid table name: {table!r}")
        self.engine = engine
        self.table = table

    def _scalar(self, sql: str, params: dict):
        with connect(self.engine) as conn:
            return conn.execute(text(sql), params).scalar_one()

    def _read_pois(self, sql: str, params: dict) -> gpd.GeoDataFrame:
        return read_geodataframe(self.engine, sql, params)

    def _where(self, category_filter: CategoryFilter) -> tuple[str, dict]:
        # column names come from QUERYABLE_ATTRIBUTES, values are always bound
        clauses = []
        params = {}
        for i, (column, value) in enumerate(category_filter.conditions):
            clauses.append(f"{column} = :f{i}")
            params[f"f{i}"] = value
        return " AND ".join(clauses), params

    @property
    def _columns(self) -> str:
        return ", ".join(POI_COLUMNS + ["geometry"])

    # ------------------------------------------------------------------
    # Measurement primitives
    # ------------------------------------------------------------------

    def distance(self, a: Point, b: Point) -> float:
        return float(self._scalar(
            "SELECT ST_Distance(ST_GeomFromText(:a, 4326)::geography, "
            "ST_GeomFromText(:b, 4326)::geography)",
            {"a": to_text(a), "b": to_text(b)},
        ))

    def within_distance(self, a: Point, b: Point, meters: float) -> bool:
        return bool(self._scalar(
            "SELECT ST_DWithin(ST_GeomFromText(:a, 4326)::geography, "
            "ST_GeomFromText(:b, 4326)::geography, :meters)",
            {"a": to_text(a), "b": to_text(b), "meters": meters},
        ))

    def length(self, line: LineString) -> float:
        return float(self._scalar(
            "SELECT ST_Length(ST_GeomFromText(:g, 4326)::geography)", {"g": to_text(line)}
        ))

    def perimeter(self, polygon: Polygon) -> float:
        return float(self._scalar(
            "SELECT ST_Perimeter(ST_GeomFromText(:g, 4326)::geography)", {"g": to_text(polygon)}
        ))

    def area(self, polygon: Polygon) -> float:
        return abs(float(self._scalar(
            "SELECT ST_Area(ST_GeomFromText(:g, 4326)::geography)", {"g": to_text(polygon)}
        )))

    def contains(self, polygon: Polygon, point: Point) -> bool:
        return bool(self._scalar(
            "SELECT ST_Within(ST_GeomFromText(:p, 4326), ST_GeomFromText(:g, 4326))",
            {"p": to_text(point), "g": to_text(polygon)},
        ))

    # ------------------------------------------------------------------
    # POI reads
    # ------------------------------------------------------------------

    def all_pois(self) -> list[PointOfInterest]:
        gdf = self._read_pois(f"SELECT {self._columns} FROM {self.table} ORDER BY id", {})
        return [row_to_poi(row) for _, row in gdf.iterrows()]

    def query_pois(self, category_filter: CategoryFilter) -> list[PointOfInterest]:
        where, params = self._where(category_filter)
        gdf = self._read_pois(
            f"SELECT {self._columns} FROM {self.table} WHERE {where} ORDER BY id", params
        )
        return [row_to_poi(row) for _, row in gdf.iterrows()]

    def _distance_query(self, category_filter: CategoryFilter, origin: Point, radius: float, suffix: str = ""):
        where, params = self._where(category_filter)
        params.update({"lon": origin.x, "lat": origin.y, "radius": radius})
        sql = f"""
            SELECT {self._columns},
                   ST_Distance(geometry::geography, {_POINT}::geography) AS distance_meters
            FROM {self.table}
            WHERE {where}
              AND ST_DWithin(geometry::geography, {_POINT}::geography, :radius)
            {suffix}
        """
        gdf = self._read_pois(sql, params)
        return [(row_to_poi(row), float(row["distance_meters"])) for _, row in gdf.iterrows()]

    def candidates_within(self, origin: Point, category_filter: CategoryFilter, radius: float):
        return self._distance_query(category_filter, origin, radius)

    def nearest(self, origin: Point, category_filter: CategoryFilter, radius: float):
        rows = self._distance_query(
            category_filter, origin, radius, suffix="ORDER BY distance_meters, id LIMIT 1"
        )
        return rows[0] if rows else None

    def pois_within(self, polygon: Polygon) -> list[PointOfInterest]:
        gdf = self._read_pois(
            f"SELECT {self._columns} FROM {self.table} "
            f"WHERE ST_Within(geometry, ST_GeomFromText(:area, {WGS84_SRID})) ORDER BY id",
            {"area": to_text(polygon)},
        )
        return [row_to_poi(row) for _, row in gdf.iterrows()]
