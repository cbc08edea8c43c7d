# test_files/conftest.py
import pytest
from shapely.geometry import Point

from errand_router.models import PointOfInterest
from errand_router.services.poi_service import InMemoryBackend, pois_to_frame
from errand_router.services.route_service import RouteComposer

# Times Square apartment, longitude first
ORIGIN = Point(-73.986226, 40.755702)
BEST_BUY_ID = 1428036403

# a triangle origin -> coffee -> Best Buy has its centroid here
TRIANGLE_CENTROID = (
    (-73.986226 + -73.9880 + -73.98036) / 3,
    (40.755702 + 40.7575 + 40.75523) / 3,
)


def midtown_pois():
    return [
        PointOfInterest(BEST_BUY_ID, Point(-73.98036, 40.75523), "Best Buy", "electronics",
                        "529", "5th Avenue", "node"),
        PointOfInterest(11, Point(-73.9500, 40.7800), "Best Buy", "electronics", osm_type="node"),
        PointOfInterest(12, Point(-73.9875, 40.7540), "Tech Store", "electronics", osm_type="node"),
        PointOfInterest(200, Point(-73.9830, 40.7540), "Wine Cellar", "alcohol",
                        "12", "W 40th Street", "node"),
        PointOfInterest(201, Point(-73.9790, 40.7570), "Spirits Shop", "alcohol", osm_type="node"),
        PointOfInterest(300, Point(-73.9880, 40.7575), "Corner Coffee", "coffee", osm_type="node"),
        PointOfInterest(301, Point(-73.9700, 40.7450), "Far Coffee", "coffee", osm_type="node"),
        PointOfInterest(400, Point(*TRIANGLE_CENTROID), "Book Nook", "books", osm_type="node"),
    ]


@pytest.fixture
def pois():
    return midtown_pois()


@pytest.fixture
def pois_gdf(pois):
    return pois_to_frame(pois)


@pytest.fixture
def backend(pois_gdf):
    return InMemoryBackend(pois_gdf)


@pytest.fixture
def composer(backend):
    return RouteComposer(backend)
