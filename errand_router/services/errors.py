# errand_router/services/errors.py


class RouteError(Exception):
    """Base class for every error raised while planning a route."""


class NoMatchError(RouteError):
    """No POI matched the filter within the search radius."""


class InsufficientPointsError(RouteError):
    """A path needs at least two positions."""


class NotClosedError(RouteError):
    """Area and perimeter need a path whose first and last positions are equal."""


class BackendUnavailableError(RouteError):
    """The spatial backend is unreachable or returned malformed geometry."""


class InvalidFilterError(RouteError, ValueError):
    """The filter references an attribute the backend cannot query."""
