from fastapi import APIRouter, HTTPException

from errand_router.app.schemas.route_input_format import ConvertRequest
from errand_router.services.geometry_service import format_geometry, parse_geometry

router = APIRouter()


#convert between GeoJSON, WKT, EWKT, WKB and EWKB
@router.post(
    "/convert",
    summary="Convert a geometry to another output format"
)
def convert(request: ConvertRequest):
    try:
        geom = parse_geometry(request.geometry)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "geometry_type": geom.geom_type,
        "output_format": request.output_format.value,
        "geometry": format_geometry(geom, request.output_format)
    }
