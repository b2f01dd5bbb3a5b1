from __future__ import annotations

import json
import logging
import math

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from .directions import fetch_directions
from .exceptions import RouteTrackerError
from .fallback import DEFAULT_END, DEFAULT_START, ROUTE_CATALOG, get_catalog_route
from .services import RouteProvider
from .structures import GeoPoint

logger = logging.getLogger(__name__)


def _coordinate(payload, key):
    """Return a GeoPoint from ``{key: {lat, lng}}`` or None when incomplete or invalid."""
    value = payload.get(key) if isinstance(payload, dict) else None
    if not isinstance(value, dict):
        return None
    lat = value.get("lat")
    lng = value.get("lng")
    if isinstance(lat, bool) or isinstance(lng, bool):
        return None
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return None
    try:
        lat, lng = float(lat), float(lng)
    except OverflowError:
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return GeoPoint(lat, lng)


@method_decorator(csrf_exempt, name='dispatch')
class DirectionsProxyView(View):
    """Forward a start/end pair to the driving-directions provider."""

    http_method_names = ['post']

    def post(self, request, *args, **kwargs):
        try:
            payload = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JsonResponse({'error': 'Invalid JSON'}, status=400)

        start = _coordinate(payload, 'start')
        end = _coordinate(payload, 'end')
        if start is None or end is None:
            return JsonResponse({'error': 'Invalid start/end coordinates'}, status=400)

        try:
            directions = fetch_directions(start, end)
        except RouteTrackerError as e:
            logger.error(f"Directions proxy failed: {e}")
            return JsonResponse(
                {'error': 'Failed to fetch route', 'details': str(e)},
                status=500,
            )

        return JsonResponse(directions)

    def http_method_not_allowed(self, request, *args, **kwargs):
        return JsonResponse({'error': 'Method not allowed'}, status=405)


class RouteProviderMixin:
    # Inject with as_view(provider=...); otherwise built from settings.
    provider = None

    def get_provider(self) -> RouteProvider:
        if self.provider is None:
            return RouteProvider.from_settings()
        return self.provider


class RouteCatalogAPIView(View):
    def get(self, request, *args, **kwargs):
        return JsonResponse({'routes': [route.as_dict() for route in ROUTE_CATALOG]})


class CatalogRoutePointsAPIView(RouteProviderMixin, View):
    def get(self, request, *args, **kwargs):
        catalog_route = get_catalog_route(self.kwargs['route_id'])
        if catalog_route is None:
            return JsonResponse({'error': 'Route not found'}, status=404)
        if not catalog_route.live_tracking_available:
            return JsonResponse({'error': 'Live tracking unavailable for this route'}, status=409)

        points = self.get_provider().fetch_catalog_route(catalog_route.id)
        return JsonResponse(
            {
                'route': catalog_route.as_dict(),
                'points': [point.as_dict() for point in points],
            }
        )


class RoutePointsAPIView(RouteProviderMixin, View):
    def get(self, request, *args, **kwargs):
        try:
            start_lat = float(request.GET.get('start_lat', DEFAULT_START.latitude))
            start_lng = float(request.GET.get('start_lng', DEFAULT_START.longitude))
            end_lat = float(request.GET.get('end_lat', DEFAULT_END.latitude))
            end_lng = float(request.GET.get('end_lng', DEFAULT_END.longitude))
        except ValueError:
            return JsonResponse({'error': 'Coordinates must be numeric'}, status=400)
        if not all(math.isfinite(value) for value in (start_lat, start_lng, end_lat, end_lng)):
            return JsonResponse({'error': 'Coordinates must be finite'}, status=400)

        logger.info(f"Loading route from ({start_lat}, {start_lng}) to ({end_lat}, {end_lng})")

        points = self.get_provider().fetch_route(start_lat, start_lng, end_lat, end_lng)
        return JsonResponse({'points': [point.as_dict() for point in points]})
