import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from errand_router.app.api.geometry import router as geometry_router
from errand_router.app.api.route_planning import init_routes as init_routing_routes
from errand_router.app.core.config import BACKEND, LOG_LEVEL, POI_TABLE
from errand_router.database import db_service, load_database
from errand_router.services.errors import BackendUnavailableError
from errand_router.services.map_data_service import PostGISBackend
from errand_router.services.poi_service import InMemoryBackend
from errand_router.services.route_service import RouteComposer

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# global variables
composer = None


def build_backend():
    """pick the spatial backend from config; None when the POI data cannot be loaded"""
    if BACKEND == "postgis":
        logger.info("querying PostGIS table %s live", POI_TABLE)
        return PostGISBackend(db_service.get_engine(), POI_TABLE)

    logger.info("loading POI snapshot from PostGIS...")
    try:
        pois_gdf = load_database.load_pois_from_db(POI_TABLE)
    except BackendUnavailableError as e:
        logger.error("could not load POIs: %s", e)
        return None
    if pois_gdf is None:
        return None
    return InMemoryBackend(pois_gdf)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """load data at startup"""
    global composer

    logger.info("starting up...")
    backend = build_backend()
    composer = RouteComposer(backend) if backend is not None else None

    if composer:
        logger.info("route composer ready (%s backend)", type(backend).__name__)
    else:
        logger.warning("running without POI data, routing endpoints return 500")

    init_routing_routes(composer)
    logger.info("api ready!")

    yield
    logger.info("shutting down...")


app = FastAPI(
    lifespan=lifespan,
    title="errand router api",
    description="nearest-shop errand routes and geometry format conversion",
    version="1.0.0"
)

app.include_router(
    init_routing_routes(None),
    prefix="/api/v1/routing",
    tags=["routing"]
)
app.include_router(
    geometry_router,
    prefix="/api/v1/geometry",
    tags=["geometry"]
)


@app.get("/health", tags=["health"])
def health_check():
    return {"status": "healthy", "poi_data_loaded": composer is not None}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
