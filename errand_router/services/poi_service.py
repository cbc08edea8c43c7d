# errand_router/services/poi_service.py

import logging
import math
from typing import Iterable

import geopandas as gpd
import pandas as pd
from geopy.distance import geodesic
from pyproj import CRS, Geod
from shapely.geometry import LineString, Point, Polygon

from errand_router.models import QUERYABLE_ATTRIBUTES, CategoryFilter, PointOfInterest
from .backend import SpatialBackend

logger = logging.getLogger(__name__)

# shortest length of one degree of latitude on the WGS84 ellipsoid (at the equator)
METERS_PER_DEGREE_LAT = 110_574.0
POI_COLUMNS = list(QUERYABLE_ATTRIBUTES)


def _clean(value):
    # pandas hands back NaN for missing text columns
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def row_to_poi(row) -> PointOfInterest:
    geom = row.geometry
    position = geom if isinstance(geom, Point) else geom.representative_point()
    return PointOfInterest(
        id=int(row["id"]),
        position=position,
        name=_clean(row.get("name")),
        category=_clean(row.get("category")),
        addr_housenumber=_clean(row.get("addr_housenumber")),
        addr_street=_clean(row.get("addr_street")),
        osm_type=_clean(row.get("osm_type")),
    )


def pois_to_frame(pois: Iterable[PointOfInterest], crs="EPSG:4326") -> gpd.GeoDataFrame:
    records = []
    geometries = []
    for poi in pois:
        record = poi.to_dict()
        record.pop("lon")
        record.pop("lat")
        records.append(record)
        geometries.append(poi.position)
    frame = pd.DataFrame.from_records(records, columns=POI_COLUMNS)
    return gpd.GeoDataFrame(frame, geometry=geometries, crs=crs)


class InMemoryBackend(SpatialBackend):
    """
    Spatial backend over a GeoDataFrame snapshot of the POI table.

    Geographic CRS (the default, WGS84): distances, lengths and areas are
    geodesic on the WGS84 ellipsoid. Projected CRS: plain planar math in the
    CRS units, which should be meters.
    """

    def __init__(self, pois_gdf: gpd.GeoDataFrame):
        if pois_gdf.crs is None:
            pois_gdf = pois_gdf.set_crs(epsg=4326)
        missing = {"id", "geometry"} - set(pois_gdf.columns)
        if missing:
            raise ValueError(f"POI frame is missing columns: {', '.join(sorted(missing))}")

        self.gdf = pois_gdf
        self.geographic = CRS.from_user_input(pois_gdf.crs).is_geographic
        self.geod = Geod(ellps="WGS84")

    @classmethod
    def from_pois(cls, pois: Iterable[PointOfInterest], crs="EPSG:4326") -> "InMemoryBackend":
        return cls(pois_to_frame(pois, crs=crs))

    # ------------------------------------------------------------------
    # Measurement primitives
    # ------------------------------------------------------------------

    def distance(self, a: Point, b: Point) -> float:
        if self.geographic:
            return geodesic((a.y, a.x), (b.y, b.x)).meters
        return a.distance(b)

    def within_distance(self, a: Point, b: Point, meters: float) -> bool:
        return self.distance(a, b) <= meters

    def length(self, line: LineString) -> float:
        if self.geographic:
            return self.geod.geometry_length(line)
        return line.length

    def perimeter(self, polygon: Polygon) -> float:
        if self.geographic:
            return self.geod.geometry_area_perimeter(polygon)[1]
        return polygon.exterior.length

    def area(self, polygon: Polygon) -> float:
        # pyproj signs the area by ring orientation
        if self.geographic:
            return abs(self.geod.geometry_area_perimeter(polygon)[0])
        return polygon.area

    def contains(self, polygon: Polygon, point: Point) -> bool:
        return polygon.contains(point)

    # ------------------------------------------------------------------
    # POI reads
    # ------------------------------------------------------------------

    def _to_pois(self, frame: gpd.GeoDataFrame) -> list[PointOfInterest]:
        return [row_to_poi(row) for _, row in frame.iterrows()]

    def _filter(self, frame: gpd.GeoDataFrame, category_filter: CategoryFilter) -> gpd.GeoDataFrame:
        mask = pd.Series(True, index=frame.index)
        for column, value in category_filter.conditions:
            if column not in frame.columns:
                return frame.iloc[0:0]
            mask &= frame[column] == value
        return frame[mask]

    def _bounding_box(self, origin: Point, radius: float) -> tuple:
        if not self.geographic:
            return origin.x - radius, origin.y - radius, origin.x + radius, origin.y + radius

        d_lat = radius / METERS_PER_DEGREE_LAT * 1.01
        cos_lat = math.cos(math.radians(min(abs(origin.y) + d_lat, 89.9)))
        d_lon = min(d_lat / cos_lat, 180.0)
        return origin.x - d_lon, origin.y - d_lat, origin.x + d_lon, origin.y + d_lat

    def _boxed(self, origin: Point, radius: float) -> gpd.GeoDataFrame:
        min_x, min_y, max_x, max_y = self._bounding_box(origin, radius)
        if not self.geographic or (min_x >= -180 and max_x <= 180):
            return self.gdf.cx[min_x:max_x, min_y:max_y]
        if max_x - min_x >= 360:
            return self.gdf.cx[-180:180, min_y:max_y]

        # the box crosses the antimeridian, take a slice on each side
        if min_x < -180:
            spans = [(min_x + 360, 180), (-180, max_x)]
        else:
            spans = [(min_x, 180), (-180, max_x - 360)]
        return pd.concat([self.gdf.cx[lo:hi, min_y:max_y] for lo, hi in spans])

    def all_pois(self) -> list[PointOfInterest]:
        return self._to_pois(self.gdf)

    def query_pois(self, category_filter: CategoryFilter) -> list[PointOfInterest]:
        return self._to_pois(self._filter(self.gdf, category_filter))

    def candidates_within(self, origin: Point, category_filter: CategoryFilter, radius: float):
        boxed = self._boxed(origin, radius)
        matched = self._filter(boxed, category_filter)

        candidates = []
        for poi in self._to_pois(matched):
            meters = self.distance(origin, poi.position)
            if meters <= radius:
                candidates.append((poi, meters))

        logger.debug(
            "%d of %d boxed POIs match %s within %.0f m",
            len(candidates), len(boxed), category_filter, radius,
        )
        return candidates

    def pois_within(self, polygon: Polygon) -> list[PointOfInterest]:
        return self._to_pois(self.gdf[self.gdf.within(polygon)])
