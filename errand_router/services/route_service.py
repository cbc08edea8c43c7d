# errand_router/services/route_service.py
import logging
import math
from typing import Iterable, Optional, Sequence

from shapely.geometry import GeometryCollection, LineString, MultiPoint, Point, Polygon

from errand_router.models import (
    CategoryFilter,
    PointOfInterest,
    RoutePlan,
    StopRequest,
    StopSelection,
)
from . import geometry_service
from .backend import SpatialBackend
from .errors import InsufficientPointsError, NoMatchError, NotClosedError

logger = logging.getLogger(__name__)


def _check_radius(radius: float) -> float:
    if isinstance(radius, bool) or not isinstance(radius, (int, float)):
        raise ValueError(f"radius must be a number, got {radius!r}")
    if not math.isfinite(radius) or radius <= 0:
        raise ValueError(f"radius must be a positive number of meters, got {radius}")
    return float(radius)


class RouteComposer:
    """
    Plans an errand run: nearest POI per category, joined into a path that
    starts (and optionally ends) at the origin.
    """

    def __init__(self, backend: SpatialBackend):
        self.backend = backend

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_nearest(
        self,
        origin: Point,
        category_filter: CategoryFilter,
        radius: float,
        label: Optional[str] = None,
        strict: bool = False,
    ) -> StopSelection:
        radius = _check_radius(radius)
        label = label or str(category_filter)

        found = self.backend.nearest(origin, category_filter, radius)
        if found is None:
            if strict:
                raise NoMatchError(f"no POI matches {category_filter} within {radius:g} m")
            logger.info("no POI matches %s within %g m, stop skipped", category_filter, radius)
            return StopSelection(label=label, category_filter=category_filter)

        poi, meters = found
        return StopSelection(
            label=label,
            category_filter=category_filter,
            poi=poi,
            distance_meters=round(meters, 2),
        )

    def select_stops(self, origin: Point, stops: Sequence[StopRequest], radius: float) -> list[StopSelection]:
        """
        Resolve every stop, in input order. A stop anchored on another stop is
        searched around that stop's match instead of the origin.
        """
        radius = _check_radius(radius)
        by_label = {}
        for stop in stops:
            if stop.label in by_label:
                raise ValueError(f"duplicate stop label: {stop.label!r}")
            by_label[stop.label] = stop

        resolved: dict[str, StopSelection] = {}

        def resolve(stop: StopRequest, visiting: tuple) -> StopSelection:
            if stop.label in resolved:
                return resolved[stop.label]
            if stop.label in visiting:
                raise ValueError(f"stop anchors form a cycle: {' -> '.join(visiting + (stop.label,))}")

            center = origin
            if stop.anchor is not None:
                if stop.anchor not in by_label:
                    raise ValueError(f"stop {stop.label!r} is anchored on unknown stop {stop.anchor!r}")
                anchor = resolve(by_label[stop.anchor], visiting + (stop.label,))
                if not anchor.matched:
                    logger.info("stop %r skipped, its anchor %r found nothing", stop.label, stop.anchor)
                    resolved[stop.label] = StopSelection(
                        label=stop.label, category_filter=stop.category_filter, anchor=stop.anchor
                    )
                    return resolved[stop.label]
                center = anchor.position

            selection = self.select_nearest(center, stop.category_filter, radius, label=stop.label)
            if stop.anchor is not None:
                selection = StopSelection(
                    label=selection.label,
                    category_filter=selection.category_filter,
                    poi=selection.poi,
                    distance_meters=selection.distance_meters,
                    anchor=stop.anchor,
                )
            resolved[stop.label] = selection
            return selection

        return [resolve(stop, ()) for stop in stops]

    # ------------------------------------------------------------------
    # Route and path
    # ------------------------------------------------------------------

    def compose_route(self, origin: Point, selections: Iterable[StopSelection]) -> list[Point]:
        route = [origin]
        route.extend(selection.position for selection in selections if selection.matched)
        return route

    def to_path(self, route: Sequence[Point], close: bool = False) -> LineString:
        if len(route) < 2:
            raise InsufficientPointsError(
                f"a path needs at least 2 positions, the route has {len(route)}"
            )
        return geometry_service.make_line(route, close=close)

    def collect(self, route: Sequence[Point]) -> MultiPoint:
        return geometry_service.collect(route)

    def path_length(self, path: LineString) -> float:
        if len(path.coords) < 2:
            raise InsufficientPointsError("a path needs at least 2 positions")
        return max(self.backend.length(path), 0.0)

    def _require_closed(self, path: LineString) -> None:
        if not geometry_service.is_closed(path):
            first, last = path.coords[0], path.coords[-1]
            raise NotClosedError(f"path starts at {first} but ends at {last}")

    def to_area(self, path: LineString) -> Polygon:
        self._require_closed(path)
        return self.backend.make_polygon(path)

    def enclosed_area(self, path: LineString) -> float:
        self._require_closed(path)
        if len(path.coords) < 4:
            # out and straight back encloses nothing
            return 0.0
        return max(self.backend.area(Polygon(path.coords)), 0.0)

    def perimeter(self, path: LineString) -> float:
        self._require_closed(path)
        if len(path.coords) < 4:
            return self.path_length(path)
        return max(self.backend.perimeter(Polygon(path.coords)), 0.0)

    def shops_within(self, area: Polygon, pois: Optional[Iterable[PointOfInterest]] = None) -> list[PointOfInterest]:
        if pois is None:
            found = self.backend.pois_within(area)
        else:
            found = [poi for poi in pois if self.backend.contains(area, poi.position)]
        return sorted(found, key=lambda poi: poi.id)

    # ------------------------------------------------------------------
    # Full plan
    # ------------------------------------------------------------------

    def plan(
        self,
        origin: Point,
        stops: Sequence[StopRequest],
        radius: float,
        close: bool = True,
        include_shops: bool = True,
    ) -> RoutePlan:
        selections = self.select_stops(origin, stops, radius)
        positions = self.compose_route(origin, selections)
        plan = RoutePlan(origin=origin, selections=selections, positions=positions, closed=False)

        if len(positions) < 2:
            logger.info("nothing matched, the route is only the origin")
            return plan

        plan.path = self.to_path(positions, close=close)
        plan.closed = geometry_service.is_closed(plan.path)
        plan.length_meters = self.path_length(plan.path)

        if plan.closed:
            plan.area_square_meters = self.enclosed_area(plan.path)
            plan.perimeter_meters = self.perimeter(plan.path)
            if len(plan.path.coords) >= 4:
                plan.area = self.to_area(plan.path)
                if include_shops:
                    plan.shops_within = self.shops_within(plan.area)

        logger.info(
            "planned %d of %d stops, %.2f m",
            len(plan.matched), len(selections), plan.length_meters,
        )
        return plan

    def final_plot(self, plan: RoutePlan) -> GeometryCollection:
        """The area polygon plus every shop found inside it, as one collection."""
        if plan.area is None:
            raise NotClosedError("the plan has no enclosed area to plot")
        return GeometryCollection([plan.area] + [poi.position for poi in plan.shops_within])
