"""Shared data structures for route planning.

Positions are shapely ``Point`` objects in longitude/latitude order, the
same convention the spatial backend uses for ``POINT(lon lat)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from shapely.geometry import LineString, Point, Polygon

from errand_router.services.errors import InvalidFilterError

# Attributes a filter may compare against; they map one to one onto POI table columns
QUERYABLE_ATTRIBUTES = ("id", "name", "category", "addr_housenumber", "addr_street", "osm_type")


@dataclass(frozen=True)
class PointOfInterest:
    """A named, categorized location (an OSM shop)."""

    id: int
    position: Point
    name: Optional[str] = None
    category: Optional[str] = None  # the OSM "shop" tag, e.g. "coffee"
    addr_housenumber: Optional[str] = None
    addr_street: Optional[str] = None
    osm_type: Optional[str] = None  # "node" or "way"

    @property
    def lon(self) -> float:
        return self.position.x

    @property
    def lat(self) -> float:
        return self.position.y

    def attribute(self, name: str):
        return getattr(self, name)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "addr_housenumber": self.addr_housenumber,
            "addr_street": self.addr_street,
            "osm_type": self.osm_type,
            "lon": self.lon,
            "lat": self.lat,
        }


def _coerce(attribute: str, value):
    # id is an integer column, every other queryable attribute is text
    if attribute == "id":
        if isinstance(value, bool):
            raise InvalidFilterError(f"id must be an integer, got {value!r}")
        try:
            return int(value) if isinstance(value, int) else int(str(value).strip())
        except ValueError:
            raise InvalidFilterError(f"id must be an integer, got {value!r}") from None
    return str(value)


@dataclass(frozen=True)
class CategoryFilter:
    """Equality predicate over POI attributes, all conditions must hold."""

    conditions: tuple

    def __init__(self, conditions=None, **kwargs):
        merged = dict(conditions or {})
        merged.update(kwargs)
        if not merged:
            raise InvalidFilterError("a filter needs at least one condition")
        unknown = sorted(set(merged) - set(QUERYABLE_ATTRIBUTES))
        if unknown:
            raise InvalidFilterError(
                f"cannot filter on {', '.join(unknown)}; "
                f"queryable attributes are {', '.join(QUERYABLE_ATTRIBUTES)}"
            )
        coerced = {key: _coerce(key, value) for key, value in merged.items()}
        object.__setattr__(self, "conditions", tuple(sorted(coerced.items())))

    def as_dict(self) -> dict:
        return dict(self.conditions)

    def matches(self, poi: PointOfInterest) -> bool:
        return all(poi.attribute(key) == value for key, value in self.conditions)

    def __str__(self) -> str:
        return " and ".join(f"{key} = {value!r}" for key, value in self.conditions)


@dataclass(frozen=True)
class StopSelection:
    """Result of one nearest-POI search; ``poi`` is None when nothing matched."""

    label: str
    category_filter: CategoryFilter
    poi: Optional[PointOfInterest] = None
    distance_meters: Optional[float] = None
    anchor: Optional[str] = None  # label of the stop searched around, None for the origin

    @property
    def matched(self) -> bool:
        return self.poi is not None

    @property
    def position(self) -> Optional[Point]:
        return self.poi.position if self.poi is not None else None


@dataclass(frozen=True)
class StopRequest:
    """One errand to plan: what to look for and what to search around."""

    label: str
    category_filter: CategoryFilter
    anchor: Optional[str] = None


@dataclass
class RoutePlan:
    origin: Point
    selections: list[StopSelection]
    positions: list[Point]
    closed: bool
    path: Optional[LineString] = None
    length_meters: Optional[float] = None
    area: Optional[Polygon] = None
    area_square_meters: Optional[float] = None
    perimeter_meters: Optional[float] = None
    shops_within: list[PointOfInterest] = field(default_factory=list)

    @property
    def matched(self) -> list[StopSelection]:
        return [selection for selection in self.selections if selection.matched]
