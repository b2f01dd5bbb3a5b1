"""
Playback of a normalized route as a continuous stream of vehicle states.

The animator advances one segment at a time. Each segment lasts in proportion
to its real-world length, and progress within it is sampled from a continuous
clock whenever ``tick`` runs (once per rendered frame in a client, or from the
``play`` coroutine).
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from .geo import bearing_degrees, distance_km, lerp_angle, lerp_point
from .structures import (
    LiveMetrics,
    PlaybackState,
    PlaybackStatus,
    RoutePoint,
    VehicleState,
)

LOGGER = logging.getLogger(__name__)

SPEED_FACTOR_MS_PER_KM = 8000.0
MIN_SEGMENT_MS = 500.0
MAX_SEGMENT_MS = 5000.0
INSTRUCTION_WINDOW = 0.1
DEFAULT_PLAYBACK_SPEED_KMH = 30.0
ETA_FORMAT = "%H:%M"

UpdateListener = Callable[[VehicleState], None]
MetricsListener = Callable[[LiveMetrics], None]
CompleteListener = Callable[[], None]


def segment_duration_ms(start, end) -> float:
    return max(MIN_SEGMENT_MS, min(MAX_SEGMENT_MS, distance_km(start, end) * SPEED_FACTOR_MS_PER_KM))


class Subscription:
    """Handle returned by ``PlaybackAnimator.subscribe``."""

    def __init__(
        self,
        animator: "PlaybackAnimator",
        on_update: Optional[UpdateListener],
        on_metrics: Optional[MetricsListener],
        on_complete: Optional[CompleteListener],
    ):
        self._animator = animator
        self.on_update = on_update
        self.on_metrics = on_metrics
        self.on_complete = on_complete
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._animator._detach(self)


class _Run:
    """Token for one loaded route; replaced or cancelled runs emit nothing."""

    def __init__(self, route: Sequence[RoutePoint], started_at: float):
        self.route = list(route)
        self.segment_started_at = started_at
        self.segment_duration_s = 0.0
        self.cancelled = False


class PlaybackAnimator:
    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
    ):
        self._clock = clock
        self._now = now
        self._subscriptions: List[Subscription] = []
        self._run: Optional[_Run] = None
        self.status = PlaybackStatus.IDLE
        self.state = PlaybackState()
        self.metrics = LiveMetrics()
        self.vehicle: Optional[VehicleState] = None

    # ----------------
    # Subscription
    # ----------------
    def subscribe(
        self,
        on_update: Optional[UpdateListener] = None,
        on_metrics: Optional[MetricsListener] = None,
        on_complete: Optional[CompleteListener] = None,
    ) -> Subscription:
        subscription = Subscription(self, on_update, on_metrics, on_complete)
        self._subscriptions.append(subscription)
        return subscription

    def _detach(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    # ----------------
    # Lifecycle
    # ----------------
    def load(self, route: Sequence[RoutePoint]) -> None:
        """Replace the active route and restart playback from its origin."""
        self._cancel_run()
        self.state = PlaybackState()
        self.metrics = LiveMetrics()
        self.vehicle = None

        if not route:
            self.status = PlaybackStatus.IDLE
            return

        run = _Run(route, self._clock())
        self._run = run
        if len(run.route) < 2:
            # Nothing to animate; the vehicle is already at its destination.
            self._complete(run)
            return

        self.status = PlaybackStatus.RUNNING
        self._start_segment(run, run.segment_started_at)
        LOGGER.debug("Playback started over %d points", len(run.route))

    def close(self) -> None:
        """Tear down: stop the active run and drop every listener."""
        self._cancel_run()
        for subscription in list(self._subscriptions):
            subscription.active = False
        self._subscriptions.clear()
        self.status = PlaybackStatus.IDLE

    def _cancel_run(self) -> None:
        if self._run is not None:
            self._run.cancelled = True
        self._run = None

    def _start_segment(self, run: _Run, started_at: float) -> None:
        index = self.state.current_index
        run.segment_started_at = started_at
        run.segment_duration_s = segment_duration_ms(run.route[index], run.route[index + 1]) / 1000.0

    # ----------------
    # Clock
    # ----------------
    def tick(self) -> Optional[VehicleState]:
        """
        Sample the clock, advance finished segments and notify listeners.

        Returns the emitted vehicle state, or None when nothing is playing.
        """
        run = self._run
        if run is None or run.cancelled or self.status is not PlaybackStatus.RUNNING:
            return None

        now = self._clock()
        last_index = len(run.route) - 2
        while True:
            elapsed = now - run.segment_started_at
            if elapsed < run.segment_duration_s:
                t = elapsed / run.segment_duration_s
                break
            if self.state.current_index >= last_index:
                t = 1.0
                break
            segment_end = run.segment_started_at + run.segment_duration_s
            self.state.current_index += 1
            self._start_segment(run, segment_end)

        self.state.progress = t
        vehicle = self._emit(run, t)
        if vehicle is not None and t >= 1.0 and self._run is run:
            self._complete(run)
        return vehicle

    async def play(self, frame_interval: float = 1 / 60) -> None:
        """Drive ``tick`` once per frame until the current run ends."""
        run = self._run
        while run is not None and self._run is run and self.status is PlaybackStatus.RUNNING:
            self.tick()
            await asyncio.sleep(frame_interval)

    # ----------------
    # Notification
    # ----------------
    def _emit(self, run: _Run, t: float) -> Optional[VehicleState]:
        index = self.state.current_index
        start = run.route[index]
        end = run.route[index + 1]

        position = lerp_point(start, end, t)
        start_rotation = start.rotation if start.rotation is not None else bearing_degrees(start, end)
        end_rotation = end.rotation if end.rotation is not None else bearing_degrees(start, end)
        start_speed = start.speed or DEFAULT_PLAYBACK_SPEED_KMH
        end_speed = end.speed or DEFAULT_PLAYBACK_SPEED_KMH

        vehicle = VehicleState(
            latitude=position.latitude,
            longitude=position.longitude,
            speed=start_speed + (end_speed - start_speed) * t,
            street_name=start.street_name,
            instruction=start.instruction,
            distance_from_start=start.distance_from_start,
            estimated_time=start.estimated_time,
            rotation=lerp_angle(start_rotation, end_rotation, t),
        )
        self.vehicle = vehicle
        self.metrics = self._project_metrics(run, start, end, t)

        for subscription in list(self._subscriptions):
            # A listener may load a new route or tear down mid-notification.
            if self._run is not run:
                return None
            if subscription.active and subscription.on_update is not None:
                subscription.on_update(vehicle)
        for subscription in list(self._subscriptions):
            if self._run is not run:
                return None
            if subscription.active and subscription.on_metrics is not None:
                subscription.on_metrics(self.metrics)
        return vehicle

    def _project_metrics(
        self, run: _Run, start: RoutePoint, end: RoutePoint, t: float
    ) -> LiveMetrics:
        instruction = self.metrics.current_instruction
        if start.instruction and t < INSTRUCTION_WINDOW:
            instruction = start.instruction

        last = run.route[-1]
        current_distance = (
            start.distance_from_start
            + (end.distance_from_start - start.distance_from_start) * t
        )
        current_time = start.estimated_time + (end.estimated_time - start.estimated_time) * t
        remaining_minutes = last.estimated_time - current_time
        eta = self._now() + timedelta(minutes=remaining_minutes)

        return LiveMetrics(
            current_instruction=instruction,
            remaining_distance=last.distance_from_start - current_distance,
            eta=eta.strftime(ETA_FORMAT),
        )

    def _complete(self, run: _Run) -> None:
        self.status = PlaybackStatus.COMPLETED
        LOGGER.debug("Playback completed at point %d", self.state.current_index + 1)
        for subscription in list(self._subscriptions):
            if self._run is not run:
                return
            if subscription.active and subscription.on_complete is not None:
                subscription.on_complete()
