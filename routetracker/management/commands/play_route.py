"""
Play a route in the terminal: fetch it through the provider and drive the
playback animator on an asyncio frame loop, printing vehicle state and live
metrics as the dashboard would render them.
"""
from __future__ import annotations

import asyncio

from django.core.management.base import BaseCommand, CommandError

from routetracker.animator import PlaybackAnimator
from routetracker.fallback import DEFAULT_END, DEFAULT_START, get_catalog_route
from routetracker.services import RouteProvider


class Command(BaseCommand):
    help = "Fetch a route and animate a vehicle along it, printing its state."

    def add_arguments(self, parser):
        parser.add_argument("--route-id", help="Catalog route to play.")
        parser.add_argument("--start", nargs=2, type=float, metavar=("LAT", "LNG"))
        parser.add_argument("--end", nargs=2, type=float, metavar=("LAT", "LNG"))
        parser.add_argument(
            "--fallback",
            action="store_true",
            help="Skip the directions fetch and play the fallback route.",
        )
        parser.add_argument(
            "--every",
            type=int,
            default=30,
            help="Print every Nth frame (default: 30, about twice a second).",
        )

    def handle(self, *args, **options):
        provider = RouteProvider.from_settings()
        route = self._load_route(provider, options)
        if not route:
            raise CommandError("No route available.")

        self.stdout.write(f"Playing route with {len(route)} points")
        animator = PlaybackAnimator()
        every = max(1, options["every"])
        frames = {"count": 0}

        def on_update(vehicle):
            frames["count"] += 1
            if frames["count"] % every:
                return
            metrics = animator.metrics
            self.stdout.write(
                f"({vehicle.latitude:.6f}, {vehicle.longitude:.6f}) "
                f"heading {vehicle.rotation:5.1f} | {vehicle.speed:4.0f} km/h on {vehicle.street_name} | "
                f"{metrics.remaining_distance:.2f} km left, ETA {metrics.eta} | "
                f"{metrics.current_instruction}"
            )

        def on_complete():
            self.stdout.write(self.style.SUCCESS("Destination reached!"))

        subscription = animator.subscribe(on_update=on_update, on_complete=on_complete)
        animator.load(route)
        try:
            asyncio.run(animator.play())
        except KeyboardInterrupt:
            self.stdout.write("Playback interrupted")
        finally:
            subscription.cancel()
            animator.close()

    def _load_route(self, provider, options):
        if options["fallback"]:
            return provider.fallback_route()

        if options["route_id"]:
            catalog_route = get_catalog_route(options["route_id"])
            if catalog_route is None:
                raise CommandError(f"Unknown route id: {options['route_id']}")
            if not catalog_route.live_tracking_available:
                raise CommandError(f"Live tracking is unavailable for route {catalog_route.id}")
            self.stdout.write(f"{catalog_route.start_location} -> {catalog_route.end_location}")
            return provider.fetch_catalog_route(catalog_route.id)

        start_lat, start_lng = options["start"] or (DEFAULT_START.latitude, DEFAULT_START.longitude)
        end_lat, end_lng = options["end"] or (DEFAULT_END.latitude, DEFAULT_END.longitude)
        return provider.fetch_route(start_lat, start_lng, end_lat, end_lng)
