# errand_router/services/backend.py

from abc import ABC, abstractmethod
from typing import Sequence

from shapely.geometry import LineString, Point, Polygon

from errand_router.models import CategoryFilter, PointOfInterest
from . import geometry_service


class SpatialBackend(ABC):
    """
    Everything the route composer needs from the place that stores the POIs:
    distance and containment primitives plus filtered POI reads.
    """

    @abstractmethod
    def distance(self, a: Point, b: Point) -> float:
        """Distance in meters."""

    @abstractmethod
    def within_distance(self, a: Point, b: Point, meters: float) -> bool:
        ...

    @abstractmethod
    def length(self, line: LineString) -> float:
        ...

    @abstractmethod
    def perimeter(self, polygon: Polygon) -> float:
        ...

    @abstractmethod
    def area(self, polygon: Polygon) -> float:
        """Area in square meters, never negative."""

    @abstractmethod
    def contains(self, polygon: Polygon, point: Point) -> bool:
        """True when the point lies strictly inside the polygon."""

    @abstractmethod
    def all_pois(self) -> list[PointOfInterest]:
        ...

    @abstractmethod
    def query_pois(self, category_filter: CategoryFilter) -> list[PointOfInterest]:
        ...

    @abstractmethod
    def candidates_within(
        self, origin: Point, category_filter: CategoryFilter, radius: float
    ) -> list[tuple[PointOfInterest, float]]:
        """
        POIs matching the filter within `radius` meters of `origin`, each
        paired with its exact distance. Order is not guaranteed.
        """

    def nearest(
        self, origin: Point, category_filter: CategoryFilter, radius: float
    ) -> tuple[PointOfInterest, float] | None:
        """Closest candidate; equidistant POIs resolve to the lowest id."""
        candidates = self.candidates_within(origin, category_filter, radius)
        if not candidates:
            return None
        return min(candidates, key=lambda candidate: (candidate[1], candidate[0].id))

    def make_line(self, points: Sequence[Point]) -> LineString:
        return geometry_service.make_line(points)

    def make_polygon(self, line: LineString) -> Polygon:
        return geometry_service.make_polygon(line)

    def pois_within(self, polygon: Polygon) -> list[PointOfInterest]:
        return [poi for poi in self.all_pois() if self.contains(polygon, poi.position)]
