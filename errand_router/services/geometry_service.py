# errand_router/services/geometry_service.py

import json
import re
from enum import Enum
from typing import Iterable, Sequence

from shapely import wkb, wkt
from shapely.errors import ShapelyError
from shapely.geometry import (
    GeometryCollection,
    LineString,
    MultiPoint,
    Point,
    Polygon,
    mapping,
    shape,
)
from shapely.geometry.base import BaseGeometry

from .errors import InsufficientPointsError, NotClosedError

WGS84_SRID = 4326

_EWKT_PREFIX = re.compile(r"^\s*SRID=(\d+);", re.IGNORECASE)
_HEX = re.compile(r"^[0-9A-Fa-f]+$")


class GeometryFormat(str, Enum):
    """Output formats accepted for a geography value."""

    GEOJSON = "GEOJSON"
    WKT = "WKT"
    EWKT = "EWKT"
    WKB = "WKB"
    EWKB = "EWKB"


# ======================================================================
# Constructors
# ======================================================================

def make_point(lon: float, lat: float) -> Point:
    """Longitude always comes first."""
    if not (-180 <= lon <= 180 and -90 <= lat <= 90):
        raise ValueError(f"coordinates out of range: lon={lon}, lat={lat}")
    return Point(lon, lat)


def make_line(points: Sequence[Point], close: bool = False) -> LineString:
    """
    Connect the points in order. With close=True the first point is appended
    at the end so the line loops back to where it started.
    """
    if len(points) < 2:
        raise InsufficientPointsError(f"a line needs at least 2 positions, got {len(points)}")

    coords = [(p.x, p.y) for p in points]
    if close and coords[0] != coords[-1]:
        coords.append(coords[0])
    return LineString(coords)


def is_closed(line: LineString) -> bool:
    # exact comparison, a nearly closed line is not closed
    coords = list(line.coords)
    return len(coords) >= 2 and coords[0] == coords[-1]


def make_polygon(line: LineString) -> Polygon:
    if not is_closed(line):
        raise NotClosedError("the path does not end where it starts")
    if len(line.coords) < 4:
        raise InsufficientPointsError(
            f"a polygon ring needs at least 4 positions, got {len(line.coords)}"
        )
    return Polygon(line.coords)


def collect(geometries: Iterable[BaseGeometry]) -> BaseGeometry:
    """
    Aggregate geometries into one value: points become a MULTIPOINT,
    mixed inputs become a GEOMETRYCOLLECTION.
    """
    geometries = list(geometries)
    if geometries and all(isinstance(g, Point) for g in geometries):
        return MultiPoint(geometries)
    return GeometryCollection(geometries)


# ======================================================================
# Format conversions
# ======================================================================

def to_text(geom: BaseGeometry) -> str:
    return wkt.dumps(geom, trim=True)


def from_text(text: str) -> BaseGeometry:
    try:
        return wkt.loads(_EWKT_PREFIX.sub("", text))
    except (ShapelyError, ValueError) as e:
        raise ValueError(f"invalid WKT: {text!r}") from e


def to_wkb(geom: BaseGeometry, srid: int | None = None) -> str:
    if srid is None:
        return wkb.dumps(geom, hex=True)
    return wkb.dumps(geom, hex=True, srid=srid)


def from_wkb(data: str | bytes) -> BaseGeometry:
    try:
        return wkb.loads(data, hex=isinstance(data, str))
    except (ShapelyError, ValueError) as e:
        raise ValueError("invalid WKB") from e


def to_geojson(geom: BaseGeometry) -> dict:
    return mapping(geom)


def from_geojson(data: str | dict) -> BaseGeometry:
    if isinstance(data, str):
        data = json.loads(data)
    try:
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        # accept a Feature as well as a bare geometry
        if data.get("type") == "Feature":
            data = data["geometry"]
        return shape(data)
    except (ShapelyError, ValueError, KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"invalid GeoJSON: {data}") from e


def format_geometry(geom: BaseGeometry, output_format: GeometryFormat | str = GeometryFormat.WKT):
    if not isinstance(output_format, GeometryFormat):
        output_format = GeometryFormat(output_format.upper())

    if output_format is GeometryFormat.GEOJSON:
        return to_geojson(geom)
    if output_format is GeometryFormat.WKT:
        return to_text(geom)
    if output_format is GeometryFormat.EWKT:
        return f"SRID={WGS84_SRID};{to_text(geom)}"
    if output_format is GeometryFormat.WKB:
        return to_wkb(geom)
    return to_wkb(geom, srid=WGS84_SRID)


def parse_geometry(value: str | dict | bytes) -> BaseGeometry:
    """Read any of the supported formats: GeoJSON, (E)WKT or hex/binary (E)WKB."""
    if isinstance(value, dict):
        return from_geojson(value)
    if isinstance(value, bytes):
        return from_wkb(value)

    text = value.strip()
    if not text:
        raise ValueError("empty geometry")
    if text.startswith(("{", "[")):
        return from_geojson(text)
    if _HEX.match(text):
        return from_wkb(text)
    return from_text(text)


def parse_point(value: str | dict | bytes) -> Point:
    geom = parse_geometry(value)
    if not isinstance(geom, Point):
        raise ValueError(f"expected a POINT, got {geom.geom_type}")
    return geom


def unique_positions(line: LineString) -> int:
    return len(set(line.coords))
