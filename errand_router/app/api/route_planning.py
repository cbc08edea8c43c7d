# errand_router/app/api/route_planning.py
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException

from errand_router.app.schemas.route_input_format import (
    NearestRequest,
    RouteRequest,
    ShopsWithinRequest,
)
from errand_router.models import CategoryFilter, PointOfInterest, RoutePlan, StopRequest, StopSelection
from errand_router.services import geometry_service
from errand_router.services.errors import (
    BackendUnavailableError,
    InsufficientPointsError,
    NotClosedError,
)
from errand_router.services.geometry_service import GeometryFormat, format_geometry
from errand_router.services.route_service import RouteComposer

logger = logging.getLogger(__name__)

_composer: Optional[RouteComposer] = None

router = APIRouter()


def init_routes(composer: Optional[RouteComposer]):
    """Attach the composer built in main.py at startup"""
    global _composer
    _composer = composer
    return router


def _get_composer() -> RouteComposer:
    if _composer is None:
        raise HTTPException(status_code=500, detail="POI data is not loaded")
    return _composer


def poi_to_dict(poi: PointOfInterest, output_format=GeometryFormat.WKT) -> dict:
    data = poi.to_dict()
    data["coordinates"] = format_geometry(poi.position, output_format)
    return data


def selection_to_dict(selection: StopSelection, output_format=GeometryFormat.WKT) -> dict:
    return {
        "label": selection.label,
        "filter": selection.category_filter.as_dict(),
        "anchor": selection.anchor,
        "matched": selection.matched,
        "poi": poi_to_dict(selection.poi, output_format) if selection.matched else None,
        "distance_meters": selection.distance_meters,
    }


def plan_to_dict(plan: RoutePlan, output_format=GeometryFormat.WKT) -> dict:
    def fmt(geom):
        return format_geometry(geom, output_format) if geom is not None else None

    return {
        "origin": fmt(plan.origin),
        "stops": [selection_to_dict(s, output_format) for s in plan.selections],
        "multipoint": fmt(geometry_service.collect(plan.positions)),
        "linestring": fmt(plan.path),
        "closed": plan.closed,
        "length_meters": plan.length_meters,
        "polygon": fmt(plan.area),
        "area_square_meters": plan.area_square_meters,
        "perimeter_meters": plan.perimeter_meters,
        "shops_within": [poi_to_dict(poi, output_format) for poi in plan.shops_within],
    }


def _filter_from(conditions: dict) -> CategoryFilter:
    try:
        return CategoryFilter(conditions)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/nearest", summary="Nearest POI matching a filter within a radius")
def nearest_endpoint(request: NearestRequest):
    composer = _get_composer()
    category_filter = _filter_from(request.filter)
    origin = geometry_service.make_point(request.origin.lon, request.origin.lat)

    try:
        selection = composer.select_nearest(origin, category_filter, request.radius_meters)
    except BackendUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    if not selection.matched:
        raise HTTPException(
            status_code=404,
            detail=f"no POI matches {category_filter} within {request.radius_meters:g} m"
        )
    return selection_to_dict(selection)


@router.post("/plan", summary="Plan an errand run from the origin")
def plan_endpoint(request: RouteRequest):
    composer = _get_composer()
    stops = [
        StopRequest(label=stop.label, category_filter=_filter_from(stop.filter), anchor=stop.anchor)
        for stop in request.stops
    ]
    origin = geometry_service.make_point(request.origin.lon, request.origin.lat)

    try:
        plan = composer.plan(
            origin,
            stops,
            request.radius_meters,
            close=request.close,
            include_shops=request.include_shops,
        )
    except (InsufficientPointsError, NotClosedError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BackendUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return plan_to_dict(plan, request.output_format)


@router.post("/shops-within", summary="Shops strictly inside an area")
def shops_within_endpoint(request: ShopsWithinRequest):
    composer = _get_composer()
    try:
        area = geometry_service.parse_geometry(request.area)
        if area.geom_type != "Polygon":
            raise ValueError(f"expected a POLYGON, got {area.geom_type}")
        shops = composer.shops_within(area)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BackendUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {"count": len(shops), "shops": [poi_to_dict(poi) for poi in shops]}
