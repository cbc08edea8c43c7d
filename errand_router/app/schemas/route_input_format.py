from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Union

from errand_router.app.core.config import DEFAULT_RADIUS_METERS, ORIGIN_LAT, ORIGIN_LON
from errand_router.services.geometry_service import GeometryFormat


class Point(BaseModel):
    """
    a geographic position, stored longitude first
    """
    lon: float = Field(
        ...,
        description="longitude",
        examples=[-73.986226],
        ge=-180,
        le=180
    )
    lat: float = Field(
        ...,
        description="latitude",
        examples=[40.755702],
        ge=-90,
        le=90
    )


def default_origin() -> Point:
    return Point(lon=ORIGIN_LON, lat=ORIGIN_LAT)


class StopInput(BaseModel):
    """
    one errand: equality conditions on POI attributes, e.g. {"category": "coffee"}
    """
    label: str = Field(..., examples=["coffee"])
    filter: Dict[str, Union[str, int]] = Field(..., examples=[{"category": "coffee"}])
    anchor: Optional[str] = Field(
        default=None,
        description="label of another stop to search around instead of the origin"
    )


class NearestRequest(BaseModel):
    origin: Point = Field(default_factory=default_origin)
    filter: Dict[str, Union[str, int]] = Field(..., examples=[{"name": "Best Buy"}])
    radius_meters: float = Field(default=DEFAULT_RADIUS_METERS, gt=0)


class RouteRequest(BaseModel):
    """
    the full request for an errand run
    """
    origin: Point = Field(default_factory=default_origin)
    stops: List[StopInput] = Field(..., min_length=1)
    radius_meters: float = Field(default=DEFAULT_RADIUS_METERS, gt=0)
    close: bool = Field(default=True, description="return to the origin at the end")
    include_shops: bool = Field(default=True, description="list the shops inside the enclosed area")
    output_format: GeometryFormat = GeometryFormat.WKT


class ShopsWithinRequest(BaseModel):
    area: Union[str, Dict[str, Any]] = Field(
        ...,
        description="polygon as WKT, hex WKB or GeoJSON"
    )


class ConvertRequest(BaseModel):
    geometry: Union[str, Dict[str, Any]]
    output_format: GeometryFormat = GeometryFormat.GEOJSON
