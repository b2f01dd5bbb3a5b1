import asyncio
import math
from datetime import datetime
from io import StringIO
from unittest import mock

import polyline
import requests
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import Client, RequestFactory, SimpleTestCase, TestCase, override_settings

from . import services
from .animator import PlaybackAnimator, segment_duration_ms
from .exceptions import InvalidResponse
from .fallback import FALLBACK_WAYPOINTS, ROUTE_CATALOG, fallback_waypoints
from .geo import bearing_degrees, distance_km, lerp_angle, lerp_point
from .management.commands import play_route
from .normalizer import RouteNormalizer
from .structures import GeoPoint, PlaybackStatus, RoutePoint
from .views import RoutePointsAPIView

TEST_ROUTE_CONFIG = {
    "endpoint": "http://routes.test/route",
    "timeout_seconds": 2,
    "directions_url": "https://directions.test/json",
    "google_maps_api_key": "test-key",
    "duplicate_threshold_km": 0.00005,
    "step_match_threshold_km": 0.1,
    "max_segment_km": 0.02,
}

# Roughly 1 km due north along a meridian.
ONE_KM_LAT = 1 / (6371 * math.pi / 180)


def _point(lat, lng, speed=30.0, street="Mission St", instruction=None, rotation=None):
    return RoutePoint(
        latitude=lat,
        longitude=lng,
        speed=speed,
        street_name=street,
        instruction=instruction,
        rotation=rotation,
    )


def _directions_payload(overview, steps, status="OK"):
    return {
        "status": status,
        "routes": [
            {
                "overview_polyline": {"points": polyline.encode(overview)},
                "legs": [{"steps": steps}],
            }
        ],
    }


def _step(path, html, distance=200, duration=20):
    step = {"polyline": {"points": polyline.encode(path)}, "html_instructions": html}
    if distance is not None:
        step["distance"] = {"value": distance}
    if duration is not None:
        step["duration"] = {"value": duration}
    return step


def _response(payload=None, ok=True, status_code=200, reason="OK"):
    response = mock.Mock(ok=ok, status_code=status_code, reason=reason)
    response.json.return_value = payload
    return response


class FakeClock:
    def __init__(self, value=0.0, step=0.0):
        self.value = value
        self.step = step

    def __call__(self):
        current = self.value
        self.value += self.step
        return current


class GeoMathTests(SimpleTestCase):
    points = [
        GeoPoint(37.7647, -122.4192),
        GeoPoint(25.1879, 55.2744),
        GeoPoint(-33.8688, 151.2093),
        GeoPoint(0.0, 0.0),
    ]

    def test_distance_is_zero_for_identical_points(self):
        for point in self.points:
            self.assertEqual(distance_km(point, point), 0.0)

    def test_distance_is_symmetric(self):
        for a in self.points:
            for b in self.points:
                self.assertAlmostEqual(distance_km(a, b), distance_km(b, a), places=9)

    def test_distance_between_near_antipodal_points(self):
        half_circumference = 6371 * math.pi
        for i in range(1, 1996):
            lat = i * 0.0451
            there = GeoPoint(lat, 0.0)
            back = GeoPoint(-lat, 180.0)
            self.assertAlmostEqual(distance_km(there, back), half_circumference, places=3)
            self.assertAlmostEqual(distance_km(there, back), distance_km(back, there), places=9)

    def test_distance_of_one_degree_latitude(self):
        self.assertAlmostEqual(
            distance_km(GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0)), 111.195, places=2
        )

    def test_bearing_cardinal_directions(self):
        origin = GeoPoint(0.0, 0.0)
        self.assertAlmostEqual(bearing_degrees(origin, GeoPoint(1.0, 0.0)), 0.0)
        self.assertAlmostEqual(bearing_degrees(origin, GeoPoint(0.0, 1.0)), 90.0)
        self.assertAlmostEqual(bearing_degrees(origin, GeoPoint(-1.0, 0.0)), 180.0)
        self.assertAlmostEqual(bearing_degrees(origin, GeoPoint(0.0, -1.0)), 270.0)

    def test_lerp_angle_takes_the_short_way_round(self):
        self.assertEqual(lerp_angle(350, 10, 0.5), 0)
        self.assertAlmostEqual(lerp_angle(10, 350, 0.5), 0)
        self.assertAlmostEqual(lerp_angle(0, 90, 0.5), 45)

    def test_lerp_angle_endpoints(self):
        for a in (0, 90, 180, 270, 350):
            for b in (10, 200, 359):
                self.assertAlmostEqual(lerp_angle(a, b, 0), a % 360)
                self.assertAlmostEqual(lerp_angle(a, b, 1), b % 360)

    def test_lerp_point_is_linear(self):
        midpoint = lerp_point(GeoPoint(10.0, 20.0), GeoPoint(12.0, 24.0), 0.25)
        self.assertAlmostEqual(midpoint.latitude, 10.5)
        self.assertAlmostEqual(midpoint.longitude, 21.0)


class RouteNormalizerTests(SimpleTestCase):
    def setUp(self):
        self.normalizer = RouteNormalizer()

    def test_fallback_route_segments_stay_short(self):
        route = self.normalizer.normalize(fallback_waypoints())

        self.assertGreater(len(route), len(FALLBACK_WAYPOINTS))
        for start, end in zip(route[:-1], route[1:]):
            self.assertLessEqual(distance_km(start, end), 0.02 + 1e-9)

    def test_cumulative_metrics_start_at_zero_and_never_decrease(self):
        route = self.normalizer.normalize(fallback_waypoints())

        self.assertEqual(route[0].distance_from_start, 0.0)
        self.assertEqual(route[0].estimated_time, 0.0)
        for prev, cur in zip(route[:-1], route[1:]):
            self.assertGreaterEqual(cur.distance_from_start, prev.distance_from_start)
            self.assertGreaterEqual(cur.estimated_time, prev.estimated_time)

    def test_rotation_is_the_outgoing_heading(self):
        route = self.normalizer.normalize(
            [_point(0.0, 0.0), _point(0.0001, 0.0), _point(0.0001, 0.0001)]
        )

        self.assertAlmostEqual(route[0].rotation, 0.0)
        self.assertAlmostEqual(route[1].rotation, 90.0, places=3)
        self.assertEqual(route[-1].rotation, route[-2].rotation)

    def test_interpolated_points_only_repeat_instruction_once(self):
        route = self.normalizer.densify(
            [
                _point(0.0, 0.0, speed=20, street="16th St", instruction="Turn right"),
                _point(0.0005, 0.0, speed=40, street="Market St", instruction="Arrive"),
            ]
        )

        # ~55 m splits into three parts plus the final point.
        self.assertEqual(len(route), 4)
        self.assertEqual(route[0].instruction, "Turn right")
        self.assertEqual([p.instruction for p in route[1:3]], [None, None])
        self.assertTrue(all(p.street_name == "16th St" and p.speed == 20 for p in route[:3]))
        self.assertEqual(route[-1].instruction, "Arrive")
        self.assertEqual(route[-1].street_name, "Market St")

    def test_single_point_route(self):
        route = self.normalizer.normalize([_point(1.0, 2.0, instruction="Here")])

        self.assertEqual(len(route), 1)
        self.assertEqual(route[0].distance_from_start, 0.0)
        self.assertEqual(route[0].estimated_time, 0.0)
        self.assertIsNone(route[0].rotation)

    def test_empty_route(self):
        self.assertEqual(self.normalizer.normalize([]), [])

    def test_zero_speed_uses_default_for_time(self):
        route = self.normalizer.normalize([_point(0.0, 0.0, speed=0), _point(0.0001, 0.0, speed=0)])

        expected_minutes = distance_km(route[0], route[-1]) / 40 * 60
        self.assertAlmostEqual(route[-1].estimated_time, expected_minutes)

    def test_points_are_immutable(self):
        route = self.normalizer.normalize([_point(0.0, 0.0), _point(0.0001, 0.0)])
        with self.assertRaises(AttributeError):
            route[0].rotation = 5.0

    def test_directions_steps_annotate_points(self):
        overview = [(37.70000, -122.40000), (37.70050, -122.40000), (37.71000, -122.40000), (37.71050, -122.40000)]
        steps = [
            _step(overview[:2], "Head <b>north</b> on <b>Mission St</b>", distance=100, duration=10),
            _step(overview[2:], 'Continue on <b>Market St</b><div style="font-size:0.9em">Toll road</div>'),
        ]

        points = self.normalizer.from_directions(_directions_payload(overview, steps))

        self.assertEqual(len(points), 4)
        self.assertEqual(points[0].instruction, "Head north on Mission St")
        self.assertEqual(points[0].street_name, "Mission St")
        self.assertAlmostEqual(points[0].speed, 36.0)
        self.assertEqual(points[2].instruction, "Continue on Market StToll road")
        self.assertEqual(points[3].street_name, "Market StToll road")

    def test_step_cursor_never_moves_backwards(self):
        overview = [(37.70000, -122.40000), (37.71000, -122.40000), (37.70010, -122.40000)]
        steps = [
            _step([overview[0]], "Head north on First St"),
            _step([overview[1]], "Turn left onto Second St"),
        ]

        points = self.normalizer.from_directions(_directions_payload(overview, steps))

        self.assertEqual(
            [p.instruction for p in points],
            ["Head north on First St", "Turn left onto Second St", "Turn left onto Second St"],
        )
        self.assertEqual(points[1].street_name, "Road")

    def test_unmatched_points_clamp_to_last_step(self):
        overview = [(37.70000, -122.40000), (37.80000, -122.40000)]
        steps = [_step([overview[0]], "Head north on First St"), _step([(37.75, -122.4)], "Keep right on Ramp")]

        points = self.normalizer.from_directions(_directions_payload(overview, steps))

        self.assertEqual(points[1].instruction, "Keep right on Ramp")

    def test_duplicate_points_are_dropped(self):
        overview = [(37.70000, -122.40000), (37.70000, -122.40000), (37.70010, -122.40000)]
        steps = [_step(overview, "Head north on First St")]

        points = self.normalizer.from_directions(_directions_payload(overview, steps))

        self.assertEqual(len(points), 2)

    def test_step_speed_clamps_and_defaults(self):
        overview = [(37.70000, -122.40000), (37.71000, -122.40000), (37.72000, -122.40000)]
        steps = [
            _step([overview[0]], "Head north on A St", distance=1000, duration=10),
            _step([overview[1]], "Continue on B St", distance=10, duration=100),
            _step([overview[2]], "Continue on C St", distance=None, duration=None),
        ]

        points = self.normalizer.from_directions(_directions_payload(overview, steps))

        self.assertEqual([p.speed for p in points], [80.0, 10.0, 40.0])

    def test_missing_overview_is_invalid(self):
        payload = {"status": "OK", "routes": [{"legs": [{"steps": []}]}]}
        with self.assertRaises(InvalidResponse):
            self.normalizer.from_directions(payload)


@override_settings(ROUTE_CONFIG=TEST_ROUTE_CONFIG)
class RouteProviderTests(SimpleTestCase):
    def setUp(self):
        self.provider = services.RouteProvider.from_settings()

    def test_unreachable_endpoint_returns_fallback(self):
        with mock.patch.object(
            services.requests, "post", side_effect=requests.exceptions.ConnectionError("refused")
        ), self.assertLogs("routetracker.services", level="WARNING"):
            route = self.provider.fetch_route(37.7647, -122.4192, 37.7757, -122.4194)

        self.assertGreater(len(route), 0)
        self.assertEqual(route, self.provider.fallback_route())

    def test_failure_triggers_all_fall_back(self):
        overview = [(37.70000, -122.40000), (37.70100, -122.40000)]
        no_overview = {"status": "OK", "routes": [{"legs": [{"steps": [_step(overview, "Go")]}]}]}
        responses = [
            _response(ok=False, status_code=502, reason="Bad Gateway"),
            _response({"status": "ZERO_RESULTS", "routes": []}),
            _response({"status": "OK", "routes": [{"legs": []}]}),
            _response(no_overview),
            _response(["not", "a", "dict"]),
        ]
        fallback = self.provider.fallback_route()

        for response in responses:
            with mock.patch.object(services.requests, "post", return_value=response):
                self.assertEqual(self.provider.fetch_route(1.0, 2.0, 3.0, 4.0), fallback)

    def test_invalid_json_falls_back(self):
        response = _response()
        response.json.side_effect = ValueError("Expecting value")
        with mock.patch.object(services.requests, "post", return_value=response):
            route = self.provider.fetch_route(1.0, 2.0, 3.0, 4.0)

        self.assertEqual(route, self.provider.fallback_route())

    def test_posts_start_and_end(self):
        with mock.patch.object(
            services.requests, "post", side_effect=requests.exceptions.Timeout()
        ) as post:
            self.provider.fetch_route(1.5, 2.5, 3.5, 4.5)

        post.assert_called_once_with(
            "http://routes.test/route",
            json={"start": {"lat": 1.5, "lng": 2.5}, "end": {"lat": 3.5, "lng": 4.5}},
            timeout=2,
        )

    def test_single_step_response_is_densified_and_measured(self):
        overview = [(37.76470, -122.41920), (37.76570, -122.41920), (37.76570, -122.42020)]
        payload = _directions_payload(
            overview, [_step(overview, "Head north on Mission St", distance=200, duration=20)]
        )
        decoded = [GeoPoint(lat, lng) for lat, lng in polyline.decode(polyline.encode(overview))]
        segments = [distance_km(a, b) for a, b in zip(decoded[:-1], decoded[1:])]
        expected_count = sum(max(1, math.ceil(d / 0.02)) for d in segments) + 1

        with mock.patch.object(services.requests, "post", return_value=_response(payload)):
            route = self.provider.fetch_route(37.7647, -122.4192, 37.7657, -122.4202)

        self.assertEqual(len(route), expected_count)
        self.assertAlmostEqual(route[-1].distance_from_start, sum(segments), places=6)
        self.assertAlmostEqual(route[-1].estimated_time, sum(segments) / 36 * 60, places=6)
        self.assertEqual(route[0].instruction, "Head north on Mission St")
        self.assertNotEqual(route, self.provider.fallback_route())

    def test_catalog_route_uses_catalog_coordinates(self):
        with mock.patch.object(
            services.requests, "post", side_effect=requests.exceptions.ConnectionError()
        ) as post:
            route = self.provider.fetch_catalog_route("1")

        self.assertTrue(route)
        self.assertEqual(
            post.call_args.kwargs["json"],
            {"start": {"lat": 25.1879, "lng": 55.2744}, "end": {"lat": 25.1972, "lng": 55.2744}},
        )
        self.assertIsNone(self.provider.fetch_catalog_route("missing"))


class PlaybackAnimatorTests(SimpleTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.animator = PlaybackAnimator(clock=self.clock, now=lambda: datetime(2024, 1, 1, 12, 0, 30))
        self.updates = []
        self.completions = []
        self.animator.subscribe(on_update=self.updates.append, on_complete=lambda: self.completions.append(True))

    def _one_km_route(self, speed=30.0):
        return RouteNormalizer().measure(
            [_point(0.0, 0.0, speed=speed, instruction="Head north"), _point(ONE_KM_LAT, 0.0, speed=speed)]
        )

    def test_one_km_segment_is_capped_at_five_seconds(self):
        route = self._one_km_route()
        self.assertEqual(segment_duration_ms(route[0], route[1]), 5000)

        self.animator.load(route)
        self.clock.value = 2.5
        vehicle = self.animator.tick()

        self.assertEqual(self.animator.status, PlaybackStatus.RUNNING)
        self.assertAlmostEqual(self.animator.state.progress, 0.5)
        self.assertAlmostEqual(vehicle.latitude, ONE_KM_LAT / 2)

        self.clock.value = 5.0
        self.animator.tick()

        self.assertEqual(self.animator.status, PlaybackStatus.COMPLETED)
        self.assertEqual(self.animator.state.progress, 1.0)
        self.assertAlmostEqual(self.updates[-1].latitude, ONE_KM_LAT)
        self.assertEqual(self.completions, [True])

        self.clock.value = 10.0
        self.assertIsNone(self.animator.tick())
        self.assertEqual(len(self.updates), 2)
        self.assertEqual(self.completions, [True])

    def test_no_updates_after_teardown(self):
        self.animator.load(self._one_km_route())
        self.clock.value = 2.5
        self.animator.tick()
        self.assertEqual(len(self.updates), 1)

        self.animator.close()
        for value in (3.0, 5.0, 6.0):
            self.clock.value = value
            self.animator.tick()

        self.assertEqual(len(self.updates), 1)
        self.assertEqual(self.completions, [])

    def test_new_route_resets_and_discards_old_route(self):
        first = self._one_km_route()
        second = RouteNormalizer().measure([_point(10.0, 10.0), _point(10.0001, 10.0)])

        self.animator.load(first)
        self.clock.value = 4.0
        self.animator.tick()

        self.animator.load(second)
        self.assertEqual(self.animator.state.current_index, 0)
        self.assertEqual(self.animator.state.progress, 0.0)

        self.clock.value = 4.1
        vehicle = self.animator.tick()
        self.assertAlmostEqual(vehicle.latitude, 10.0, places=3)
        self.assertTrue(all(update.latitude >= 10.0 for update in self.updates[1:]))

    def test_reload_from_listener_stops_stale_notifications(self):
        second = RouteNormalizer().measure([_point(10.0, 10.0), _point(10.0001, 10.0)])
        late = []
        self.animator.subscribe(on_update=lambda vehicle: self.animator.load(second))
        self.animator.subscribe(on_update=late.append)

        self.animator.load(self._one_km_route())
        self.clock.value = 1.0
        self.animator.tick()

        self.assertEqual(late, [])
        self.assertEqual(self.animator.state.progress, 0.0)

    def test_segments_advance_on_continuous_clock(self):
        route = RouteNormalizer().measure(
            [
                _point(0.0, 0.0, instruction="Go"),
                _point(0.0001, 0.0, instruction="Turn"),
                _point(0.0002, 0.0),
            ]
        )
        self.animator.load(route)

        self.clock.value = 0.02
        self.animator.tick()
        self.assertEqual(self.animator.metrics.current_instruction, "Go")

        self.clock.value = 0.52
        self.animator.tick()
        self.assertEqual(self.animator.state.current_index, 1)
        self.assertAlmostEqual(self.animator.state.progress, 0.04)
        self.assertEqual(self.animator.metrics.current_instruction, "Turn")

        self.clock.value = 1.0
        self.animator.tick()
        self.assertEqual(self.animator.status, PlaybackStatus.COMPLETED)

    def test_instruction_only_updates_early_in_segment(self):
        route = RouteNormalizer().measure(
            [_point(0.0, 0.0, instruction="Go"), _point(0.0001, 0.0, instruction="Turn"), _point(0.0002, 0.0)]
        )
        self.animator.load(route)

        self.clock.value = 0.02
        self.animator.tick()
        self.clock.value = 0.75
        self.animator.tick()

        self.assertEqual(self.animator.state.current_index, 1)
        self.assertEqual(self.animator.metrics.current_instruction, "Go")

    def test_rotation_and_speed_interpolation(self):
        route = [
            _point(0.0, 0.0, speed=20, rotation=350),
            _point(0.0001, 0.0, speed=40, rotation=10),
        ]
        self.animator.load(route)
        self.clock.value = 0.25
        vehicle = self.animator.tick()

        self.assertAlmostEqual(vehicle.rotation, 0.0)
        self.assertAlmostEqual(vehicle.speed, 30.0)

    def test_missing_rotation_and_speed_fall_back(self):
        route = [_point(0.0, 0.0, speed=0), _point(0.0, 0.0001, speed=0)]
        self.animator.load(route)
        self.clock.value = 0.25
        vehicle = self.animator.tick()

        self.assertAlmostEqual(vehicle.rotation, 90.0, places=3)
        self.assertEqual(vehicle.speed, 30.0)

    def test_remaining_distance_and_eta(self):
        route = self._one_km_route(speed=30.0)
        self.animator.load(route)
        self.clock.value = 2.5
        self.animator.tick()

        metrics = self.animator.metrics
        self.assertAlmostEqual(metrics.remaining_distance, route[-1].distance_from_start / 2)
        self.assertEqual(metrics.eta, "12:01")
        self.assertEqual(metrics.current_instruction, "")

    def test_cancelled_subscription_is_silent(self):
        extra = []
        subscription = self.animator.subscribe(on_update=extra.append)
        subscription.cancel()

        self.animator.load(self._one_km_route())
        self.clock.value = 1.0
        self.animator.tick()

        self.assertEqual(extra, [])
        self.assertEqual(len(self.updates), 1)

    def test_metrics_listener_receives_each_frame(self):
        received = []
        self.animator.subscribe(on_metrics=received.append)
        route = RouteNormalizer().measure(
            [_point(0.0, 0.0, instruction="Go"), _point(0.0001, 0.0, instruction="Turn"), _point(0.0002, 0.0)]
        )
        self.animator.load(route)

        for value in (0.02, 0.52, 0.75):
            self.clock.value = value
            self.animator.tick()

        self.assertEqual(len(received), 3)
        self.assertEqual([m.current_instruction for m in received], ["Go", "Turn", "Turn"])
        total = route[-1].distance_from_start
        self.assertAlmostEqual(received[0].remaining_distance, total - route[1].distance_from_start * 0.04)
        self.assertGreater(received[0].remaining_distance, received[1].remaining_distance)
        self.assertGreater(received[1].remaining_distance, received[2].remaining_distance)
        self.assertTrue(all(m.eta == "12:00" for m in received))
        self.assertEqual(received[-1], self.animator.metrics)

    def test_close_from_update_listener_skips_stale_metrics(self):
        received = []
        self.animator.subscribe(on_update=lambda vehicle: self.animator.close())
        self.animator.subscribe(on_metrics=received.append)

        self.animator.load(self._one_km_route())
        self.clock.value = 1.0
        self.assertIsNone(self.animator.tick())

        self.assertEqual(received, [])
        self.assertEqual(self.animator.status, PlaybackStatus.IDLE)

    def test_single_point_and_empty_routes(self):
        self.animator.load([_point(0.0, 0.0)])
        self.assertEqual(self.animator.status, PlaybackStatus.COMPLETED)
        self.assertEqual(self.completions, [True])
        self.assertIsNone(self.animator.tick())

        self.animator.load([])
        self.assertEqual(self.animator.status, PlaybackStatus.IDLE)
        self.assertIsNone(self.animator.tick())

    def test_play_runs_until_completed(self):
        self.clock.step = 0.25
        self.animator.load(self._one_km_route())

        asyncio.run(self.animator.play(frame_interval=0))

        self.assertEqual(self.animator.status, PlaybackStatus.COMPLETED)
        self.assertEqual(self.completions, [True])
        self.assertAlmostEqual(self.updates[-1].latitude, ONE_KM_LAT)


@override_settings(ROUTE_CONFIG=TEST_ROUTE_CONFIG)
class DirectionsProxyAPITests(TestCase):
    def setUp(self):
        self.client = Client()
        self.body = {"start": {"lat": 37.7647, "lng": -122.4192}, "end": {"lat": 37.7757, "lng": -122.4194}}

    def test_rejects_other_methods(self):
        response = self.client.get("/route")
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.json(), {"error": "Method not allowed"})

    def test_rejects_missing_coordinates(self):
        response = self.client.post(
            "/route", {"start": {"lat": 1.0}, "end": {"lat": 2.0, "lng": 3.0}}, content_type="application/json"
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.post("/route", "not json", content_type="application/json")
        self.assertEqual(response.status_code, 400)

    def test_rejects_non_finite_and_out_of_range_coordinates(self):
        end = '"end": {"lat": 37.7757, "lng": -122.4194}'
        bodies = [
            '{"start": {"lat": NaN, "lng": -122.4192}, %s}' % end,
            '{"start": {"lat": 37.7647, "lng": Infinity}, %s}' % end,
            '{"start": {"lat": -Infinity, "lng": -122.4192}, %s}' % end,
            '{"start": {"lat": 91, "lng": -122.4192}, %s}' % end,
            '{"start": {"lat": 37.7647, "lng": -180.5}, %s}' % end,
            '{"start": {"lat": 1%s, "lng": -122.4192}, %s}' % ("0" * 400, end),
        ]
        with mock.patch("routetracker.directions.requests.get") as get:
            for body in bodies:
                response = self.client.post("/route", body, content_type="application/json")
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json(), {"error": "Invalid start/end coordinates"})

        get.assert_not_called()

    def test_accepts_zero_coordinates(self):
        body = {"start": {"lat": 0, "lng": 0}, "end": {"lat": 0.001, "lng": 0}}
        with mock.patch(
            "routetracker.directions.requests.get", return_value=_response({"status": "OK", "routes": []})
        ) as get:
            response = self.client.post("/route", body, content_type="application/json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(get.call_args.kwargs["params"]["origin"], "0.000000,0.000000")

    def test_missing_api_key_is_reported(self):
        config = dict(TEST_ROUTE_CONFIG, google_maps_api_key="")
        with override_settings(ROUTE_CONFIG=config), mock.patch("routetracker.directions.requests.get") as get:
            response = self.client.post("/route", self.body, content_type="application/json")

        get.assert_not_called()
        self.assertEqual(response.status_code, 500)
        payload = response.json()
        self.assertEqual(payload["error"], "Failed to fetch route")
        self.assertIn("API key", payload["details"])

    def test_passes_upstream_json_through(self):
        upstream = {"status": "OK", "routes": [{"legs": [{"steps": []}]}]}
        with mock.patch("routetracker.directions.requests.get", return_value=_response(upstream)) as get:
            response = self.client.post("/route", self.body, content_type="application/json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), upstream)
        params = get.call_args.kwargs["params"]
        self.assertEqual(params["origin"], "37.764700,-122.419200")
        self.assertEqual(params["destination"], "37.775700,-122.419400")
        self.assertEqual(params["mode"], "driving")
        self.assertEqual(params["key"], "test-key")

    def test_upstream_failures_become_500(self):
        failures = [
            _response({"status": "REQUEST_DENIED", "error_message": "bad key"}),
            _response({"status": "ZERO_RESULTS"}, ok=False, status_code=503, reason="Unavailable"),
        ]
        for failure in failures:
            with mock.patch("routetracker.directions.requests.get", return_value=failure):
                response = self.client.post("/route", self.body, content_type="application/json")
            self.assertEqual(response.status_code, 500)
            self.assertIn("details", response.json())

        with mock.patch(
            "routetracker.directions.requests.get", side_effect=requests.exceptions.ConnectionError("down")
        ):
            response = self.client.post("/route", self.body, content_type="application/json")
        self.assertEqual(response.status_code, 500)


@override_settings(ROUTE_CONFIG=TEST_ROUTE_CONFIG)
class RouteDataAPITests(TestCase):
    def setUp(self):
        self.client = Client()

    def test_catalog_lists_routes(self):
        response = self.client.get("/api/routes/")
        self.assertEqual(response.status_code, 200)

        routes = response.json()["routes"]
        self.assertEqual(len(routes), len(ROUTE_CATALOG))
        for key in ("id", "startLocation", "endLocation", "startCoords", "endCoords", "liveTrackingAvailable"):
            self.assertIn(key, routes[0])

    def test_catalog_route_points(self):
        with mock.patch.object(services.requests, "post", side_effect=requests.exceptions.ConnectionError()):
            response = self.client.get("/api/routes/1/points/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["route"]["id"], "1")
        self.assertGreater(len(payload["points"]), 0)
        first = payload["points"][0]
        for key in ("latitude", "longitude", "speed", "streetName", "distanceFromStart", "estimatedTime", "rotation"):
            self.assertIn(key, first)

    def test_catalog_route_errors(self):
        self.assertEqual(self.client.get("/api/routes/99/points/").status_code, 404)
        self.assertEqual(self.client.get("/api/routes/2/points/").status_code, 409)

    def test_route_points_rejects_bad_coordinates(self):
        response = self.client.get("/api/route/", {"start_lat": "north"})
        self.assertEqual(response.status_code, 400)

        response = self.client.get("/api/route/", {"end_lng": "nan"})
        self.assertEqual(response.status_code, 400)

    def test_route_points_uses_injected_provider(self):
        provider = mock.Mock()
        provider.fetch_route.return_value = [_point(1.0, 2.0)]
        request = RequestFactory().get("/api/route/", {"start_lat": "1", "start_lng": "2", "end_lat": "3", "end_lng": "4"})

        response = RoutePointsAPIView.as_view(provider=provider)(request)

        self.assertEqual(response.status_code, 200)
        provider.fetch_route.assert_called_once_with(1.0, 2.0, 3.0, 4.0)

    def test_route_points_defaults_to_demo_coordinates(self):
        with mock.patch.object(
            services.requests, "post", side_effect=requests.exceptions.ConnectionError()
        ) as post:
            response = self.client.get("/api/route/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            post.call_args.kwargs["json"],
            {"start": {"lat": 37.7647, "lng": -122.4192}, "end": {"lat": 37.7757, "lng": -122.4194}},
        )


@override_settings(ROUTE_CONFIG=TEST_ROUTE_CONFIG)
class PlayRouteCommandTests(SimpleTestCase):
    def _call(self, *args):
        out = StringIO()
        with mock.patch.object(
            play_route, "PlaybackAnimator", side_effect=lambda: PlaybackAnimator(clock=FakeClock(step=5.0))
        ), mock.patch.object(
            services.requests, "post", side_effect=requests.exceptions.ConnectionError("refused")
        ) as post:
            call_command("play_route", *args, stdout=out)
        return out.getvalue(), post

    def test_plays_fallback_route_to_completion(self):
        output, post = self._call("--fallback", "--every", "1")

        post.assert_not_called()
        self.assertIn("Playing route with", output)
        self.assertIn("km/h on", output)
        self.assertIn("Destination reached!", output)

    def test_plays_catalog_route(self):
        output, post = self._call("--route-id", "1")

        self.assertIn("AWR Office, Business Bay, Dubai -> Burj Khalifa, Downtown Dubai", output)
        self.assertEqual(
            post.call_args.kwargs["json"],
            {"start": {"lat": 25.1879, "lng": 55.2744}, "end": {"lat": 25.1972, "lng": 55.2744}},
        )
        self.assertIn("Destination reached!", output)

    def test_plays_between_given_coordinates(self):
        _, post = self._call("--start", "1.5", "2.5", "--end", "3.5", "4.5")

        self.assertEqual(
            post.call_args.kwargs["json"],
            {"start": {"lat": 1.5, "lng": 2.5}, "end": {"lat": 3.5, "lng": 4.5}},
        )

    def test_rejects_unknown_or_untracked_catalog_routes(self):
        with self.assertRaisesMessage(CommandError, "Unknown route id: 99"):
            self._call("--route-id", "99")
        with self.assertRaisesMessage(CommandError, "Live tracking is unavailable for route 2"):
            self._call("--route-id", "2")
