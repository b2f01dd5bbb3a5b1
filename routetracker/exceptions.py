class RouteTrackerError(Exception):
    """Base class for route fetching and processing failures."""


class TransportFailure(RouteTrackerError):
    """Network or HTTP-level failure talking to a directions service."""


class InvalidResponse(RouteTrackerError):
    """A directions payload with the wrong status or missing route data."""


class EmptyRoute(RouteTrackerError):
    """Processing produced no usable route points."""


class ConfigurationError(RouteTrackerError):
    """A required credential or endpoint is not configured."""
