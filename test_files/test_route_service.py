# test_files/test_route_service.py
import pytest
from shapely.geometry import LineString, Point, Polygon

from conftest import BEST_BUY_ID, ORIGIN
from errand_router.models import CategoryFilter, PointOfInterest, StopRequest, StopSelection
from errand_router.services.errors import (
    InsufficientPointsError,
    InvalidFilterError,
    NoMatchError,
    NotClosedError,
)
from errand_router.services.geometry_service import unique_positions
from errand_router.services.poi_service import InMemoryBackend
from errand_router.services.route_service import RouteComposer

BEST_BUY = CategoryFilter(category="electronics", name="Best Buy")
ALCOHOL = CategoryFilter(category="alcohol")
COFFEE = CategoryFilter(category="coffee")


# ======================================================================
# select_nearest
# ======================================================================

def test_select_nearest_best_buy(composer):
    selection = composer.select_nearest(ORIGIN, BEST_BUY, 1600)

    assert selection.matched
    assert selection.poi.id == BEST_BUY_ID
    # the other Best Buy is kilometres away
    assert 400 < selection.distance_meters < 600
    assert selection.distance_meters == round(selection.distance_meters, 2)


def test_select_nearest_no_match_is_not_an_error(composer):
    selection = composer.select_nearest(ORIGIN, COFFEE, 100)

    assert not selection.matched
    assert selection.position is None
    assert selection.distance_meters is None


def test_select_nearest_strict_raises(composer):
    with pytest.raises(NoMatchError):
        composer.select_nearest(ORIGIN, CategoryFilter(category="bicycle"), 1600, strict=True)


@pytest.mark.parametrize("radius", [0, -5, float("nan"), float("inf"), "1600", True])
def test_select_nearest_rejects_bad_radius(composer, radius):
    with pytest.raises(ValueError):
        composer.select_nearest(ORIGIN, COFFEE, radius)


def test_select_nearest_radius_is_monotonic(composer):
    radii = [50, 100, 260, 500, 1600, 2000, 5000]
    previous = None
    for radius in radii:
        selection = composer.select_nearest(ORIGIN, COFFEE, radius)
        if previous is not None and previous.matched:
            assert selection.matched
            assert selection.distance_meters <= previous.distance_meters
        previous = selection
    assert previous.poi.id == 300


def test_select_nearest_widening_radius_keeps_the_closest(composer):
    near = composer.select_nearest(ORIGIN, COFFEE, 1600)
    wide = composer.select_nearest(ORIGIN, COFFEE, 5000)
    assert near.poi.id == wide.poi.id == 300


def test_select_nearest_tie_goes_to_lowest_id():
    # planar backend so the two candidates are exactly 100 m away
    pois = [
        PointOfInterest(7, Point(100.0, 0.0), "East Bakery", "bakery"),
        PointOfInterest(3, Point(-100.0, 0.0), "West Bakery", "bakery"),
        PointOfInterest(9, Point(0.0, 500.0), "North Bakery", "bakery"),
    ]
    composer = RouteComposer(InMemoryBackend.from_pois(pois, crs="EPSG:32618"))

    selection = composer.select_nearest(Point(0.0, 0.0), CategoryFilter(category="bakery"), 1000)

    assert selection.poi.id == 3
    assert selection.distance_meters == 100.0


def test_filter_rejects_unknown_attribute():
    with pytest.raises(InvalidFilterError):
        CategoryFilter(opening_hours="24/7")
    with pytest.raises(InvalidFilterError):
        CategoryFilter()


def test_filter_values_follow_column_types(backend):
    assert CategoryFilter(id="1428036403").as_dict() == {"id": BEST_BUY_ID}
    assert CategoryFilter(addr_housenumber=529).as_dict() == {"addr_housenumber": "529"}
    assert [poi.id for poi in backend.query_pois(CategoryFilter(id=str(BEST_BUY_ID)))] == [BEST_BUY_ID]

    for bad_id in ("Best Buy", "12.5", True):
        with pytest.raises(InvalidFilterError):
            CategoryFilter(id=bad_id)


# ======================================================================
# compose_route / to_path
# ======================================================================

def test_compose_route_skips_empty_selections(composer):
    coffee = composer.select_nearest(ORIGIN, COFFEE, 1600)
    nothing = composer.select_nearest(ORIGIN, CategoryFilter(category="bicycle"), 1600)
    best_buy = composer.select_nearest(ORIGIN, BEST_BUY, 1600)

    route = composer.compose_route(ORIGIN, [coffee, nothing, best_buy])

    assert len(route) == 1 + 2
    assert route[0] == ORIGIN
    assert route[1] == coffee.position
    assert route[2] == best_buy.position


def test_compose_route_with_no_matches_is_only_the_origin(composer):
    empty = StopSelection(label="x", category_filter=COFFEE)
    assert composer.compose_route(ORIGIN, [empty, empty]) == [ORIGIN]


def test_to_path_needs_two_positions(composer):
    with pytest.raises(InsufficientPointsError):
        composer.to_path([ORIGIN])
    with pytest.raises(InsufficientPointsError):
        composer.to_path([ORIGIN], close=True)

    path = composer.to_path([ORIGIN, Point(-73.98, 40.75)])
    assert isinstance(path, LineString)
    assert len(path.coords) == 2


def test_to_path_close_returns_to_origin(composer):
    path = composer.to_path([ORIGIN, Point(-73.98, 40.75), Point(-73.99, 40.76)], close=True)
    assert path.coords[0] == path.coords[-1]
    assert len(path.coords) == 4


# ======================================================================
# metrics
# ======================================================================

def test_area_and_perimeter_need_a_closed_path(composer):
    open_path = LineString([(0.0, 0.0), (0.001, 0.0), (0.001, 0.001)])
    with pytest.raises(NotClosedError):
        composer.enclosed_area(open_path)
    with pytest.raises(NotClosedError):
        composer.perimeter(open_path)
    with pytest.raises(NotClosedError):
        composer.to_area(open_path)


def test_nearly_closed_is_not_closed(composer):
    path = LineString([(0.0, 0.0), (0.001, 0.0), (0.001, 0.001), (0.0, 1e-12)])
    with pytest.raises(NotClosedError):
        composer.enclosed_area(path)


def test_closed_path_metrics_are_non_negative(composer):
    # clockwise and counter-clockwise rings give the same area
    ring = [(0.0, 0.0), (0.001, 0.0), (0.001, 0.001), (0.0, 0.001), (0.0, 0.0)]
    ccw = LineString(ring)
    cw = LineString(list(reversed(ring)))

    for path in (ccw, cw):
        area = composer.enclosed_area(path)
        perimeter = composer.perimeter(path)
        assert area > 0
        assert perimeter > 0

    assert composer.enclosed_area(ccw) == pytest.approx(composer.enclosed_area(cw))
    # roughly a 111 m square at the equator
    assert composer.enclosed_area(ccw) == pytest.approx(111.0 * 110.6, rel=0.02)
    assert composer.perimeter(ccw) == pytest.approx(composer.path_length(ccw), rel=1e-6)


def test_out_and_back_encloses_nothing(composer):
    path = LineString([(0.0, 0.0), (0.001, 0.0), (0.0, 0.0)])
    assert composer.enclosed_area(path) == 0.0
    assert composer.perimeter(path) == pytest.approx(composer.path_length(path))
    with pytest.raises(InsufficientPointsError):
        composer.to_area(path)


def test_planar_metrics_use_crs_units():
    composer = RouteComposer(InMemoryBackend.from_pois([], crs="EPSG:32618"))
    square = LineString([(0, 0), (100, 0), (100, 100), (0, 100), (0, 0)])

    assert composer.path_length(square) == 400.0
    assert composer.enclosed_area(square) == 10000.0
    assert composer.perimeter(square) == 400.0


# ======================================================================
# shops_within
# ======================================================================

def test_shops_within_excludes_the_boundary(composer, pois):
    square = Polygon([(0, 0), (1, 0), (1, 1), (0, 1)])
    inside = PointOfInterest(1, Point(0.5, 0.5), "Inside")
    edge = PointOfInterest(2, Point(1.0, 0.5), "Edge")
    corner = PointOfInterest(3, Point(0.0, 0.0), "Corner")
    outside = PointOfInterest(4, Point(2.0, 2.0), "Outside")

    found = composer.shops_within(square, [outside, corner, edge, inside])

    assert [poi.id for poi in found] == [1]


# ======================================================================
# plan
# ======================================================================

def test_best_buy_round_trip(composer):
    """Out to the Best Buy and straight back."""
    plan = composer.plan(ORIGIN, [StopRequest("electronics", BEST_BUY)], 1600)

    assert len(plan.matched) == 1
    selection = plan.selections[0]
    assert selection.distance_meters == round(selection.distance_meters, 2)

    assert plan.closed
    assert unique_positions(plan.path) == 2
    assert plan.length_meters == pytest.approx(2 * selection.distance_meters, abs=0.02)
    assert plan.area_square_meters == 0.0
    assert plan.area is None
    assert plan.shops_within == []


def test_plan_keeps_stop_order_and_finds_shops_inside(composer):
    stops = [
        StopRequest("coffee", COFFEE),
        StopRequest("bike", CategoryFilter(category="bicycle")),
        StopRequest("electronics", BEST_BUY),
    ]

    plan = composer.plan(ORIGIN, stops, 1600)

    assert [s.label for s in plan.selections] == ["coffee", "bike", "electronics"]
    assert [s.label for s in plan.matched] == ["coffee", "electronics"]
    assert plan.positions == [ORIGIN, plan.selections[0].position, plan.selections[2].position]
    assert len(plan.path.coords) == 4
    assert plan.area_square_meters > 0
    assert plan.perimeter_meters == pytest.approx(plan.length_meters, rel=1e-6)
    # the stops themselves sit on the boundary, only the book shop is inside
    assert [poi.id for poi in plan.shops_within] == [400]


def test_plan_without_close_has_no_area(composer):
    stops = [StopRequest("coffee", COFFEE), StopRequest("electronics", BEST_BUY)]
    plan = composer.plan(ORIGIN, stops, 1600, close=False)

    assert not plan.closed
    assert plan.length_meters > 0
    assert plan.area_square_meters is None
    assert plan.perimeter_meters is None


def test_plan_with_nothing_found(composer):
    plan = composer.plan(ORIGIN, [StopRequest("bike", CategoryFilter(category="bicycle"))], 1600)

    assert plan.positions == [ORIGIN]
    assert plan.path is None
    assert plan.length_meters is None


def test_anchored_stop_is_searched_around_its_anchor(composer):
    stops = [
        StopRequest("coffee", COFFEE),
        StopRequest("liquor", ALCOHOL, anchor="electronics"),
        StopRequest("electronics", BEST_BUY),
    ]

    plan = composer.plan(ORIGIN, stops, 1600)
    liquor = plan.selections[1]

    # 200 is closer to the origin, 201 is closer to the Best Buy
    assert composer.select_nearest(ORIGIN, ALCOHOL, 1600).poi.id == 200
    assert liquor.poi.id == 201
    assert liquor.anchor == "electronics"
    assert plan.positions[2] == liquor.position


def test_anchor_without_match_drops_the_dependent_stop(composer):
    stops = [
        StopRequest("bike", CategoryFilter(category="bicycle")),
        StopRequest("liquor", ALCOHOL, anchor="bike"),
    ]
    plan = composer.plan(ORIGIN, stops, 1600)
    assert plan.matched == []


@pytest.mark.parametrize("stops", [
    [StopRequest("a", COFFEE, anchor="b"), StopRequest("b", ALCOHOL, anchor="a")],
    [StopRequest("a", COFFEE, anchor="missing")],
    [StopRequest("a", COFFEE), StopRequest("a", ALCOHOL)],
])
def test_plan_rejects_bad_anchors(composer, stops):
    with pytest.raises(ValueError):
        composer.plan(ORIGIN, stops, 1600)


def test_final_plot_collects_area_and_shops(composer):
    plan = composer.plan(ORIGIN, [StopRequest("coffee", COFFEE), StopRequest("electronics", BEST_BUY)], 1600)
    plot = composer.final_plot(plan)

    assert plot.geom_type == "GeometryCollection"
    assert len(plot.geoms) == 2
    assert plot.geoms[0].geom_type == "Polygon"


def test_collect_makes_a_multipoint(composer):
    multipoint = composer.collect([ORIGIN, Point(-73.98, 40.75)])
    assert multipoint.geom_type == "MultiPoint"
    assert len(multipoint.geoms) == 2
