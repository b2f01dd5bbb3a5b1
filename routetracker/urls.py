from django.urls import path
from .views import (
    CatalogRoutePointsAPIView, DirectionsProxyView, RouteCatalogAPIView, RoutePointsAPIView
)

app_name = "routetracker"

urlpatterns = [
    path("route", DirectionsProxyView.as_view(), name="directions-proxy"),
    path("api/routes/", RouteCatalogAPIView.as_view(), name="route-catalog"),
    path("api/routes/<str:route_id>/points/", CatalogRoutePointsAPIView.as_view(), name="catalog-route-points"),
    path("api/route/", RoutePointsAPIView.as_view(), name="route-points"),
]
