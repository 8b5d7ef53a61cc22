"""SimulationEngine: single cooperative tick loop driving every entity.

Architecture
------------
The engine owns one SimulationState and the subsystems that mutate it:

  - GroundMotionEngine   vehicles, discrete waypoint hops (600ms steps)
  - AerialMissionEngine  drones, continuous flight + orbit
  - AssignmentArbiter    picks targets for drones leaving the dock
  - PathRequestQueue     async road paths, applied on the next tick

One asyncio task (run()) calls tick() once per frame.  A tick:

  1. applies path results that completed since the last tick
  2. steps ground units, then aerial units (disjoint state, order is
     not significant)
  3. builds a snapshot and publishes it as ``sim_snapshot`` on the bus

Path requests are the only place anything awaits.  Nothing else touches
the state between ticks, so there are no locks.

Context switches
----------------
switch_city() starts a new session: the path queue generation is bumped
(late results are dropped), events are regenerated, vehicles respawn and
replan inside the new view, and drones respawn at the new city's dock.
replace_events() swaps the event list inside the same city; units whose
event disappeared are recalled (drones fly home, vehicles replan).
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import TYPE_CHECKING, Callable, Sequence

from loguru import logger

from cadsim.geo.projection import LngLat, Viewport

from .aerial import AerialMissionEngine
from .arbiter import AssignmentArbiter
from .cameras import camera_fov, generate_cameras
from .cities import DEFAULT_CITY_ID, City, dock_for, get_city
from .dispatch import generate_events
from .ground import GroundMotionEngine
from .models import LAYER_NAMES, DispatchEvent, UnitPools
from .routing import PathProvider, PathRequestQueue, StraightLineProvider
from .snapshot import build_snapshot
from .store import SimulationState

if TYPE_CHECKING:
    from cadsim.comms.event_bus import EventBus

CITY_ZOOM = 13.0


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class SimulationEngine:
    """Drives vehicles and drones and publishes snapshots."""

    def __init__(
        self,
        event_bus: EventBus | None = None,
        provider: PathProvider | None = None,
        city_id: str = DEFAULT_CITY_ID,
        ground_unit_count: int = 10,
        aerial_unit_count: int = 3,
        camera_count: int = 45,
        frame_interval: float = 1 / 60,
        viewport_size: tuple[int, int] = (1280, 800),
        seed: int | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._event_bus = event_bus
        self._rng = random.Random(seed)
        self._clock = clock or _monotonic_ms
        self._frame_interval = frame_interval
        self._camera_count = camera_count
        self._pools = UnitPools.sized(ground_unit_count, aerial_unit_count)

        self.state = SimulationState(
            viewport=Viewport(width=viewport_size[0], height=viewport_size[1]),
        )
        self.paths = PathRequestQueue(provider or StraightLineProvider())
        self.arbiter = AssignmentArbiter(self._rng)
        self.ground = GroundMotionEngine(self.state, self.paths, self._rng)
        self.aerial = AerialMissionEngine(self.state, self.arbiter, self._rng)

        self._running = False
        self._task: asyncio.Task | None = None
        self._last_snapshot: dict | None = None

        city = get_city(city_id)
        if city is None:
            logger.warning(f"Unknown city {city_id!r}; using {DEFAULT_CITY_ID}")
            city = get_city(DEFAULT_CITY_ID)
        self._enter_city(city)

    @property
    def event_bus(self) -> EventBus | None:
        return self._event_bus

    def set_event_bus(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus

    @property
    def running(self) -> bool:
        return self._running

    @property
    def city(self) -> City | None:
        return get_city(self.state.city_id)

    # -- Context ------------------------------------------------------------

    def _enter_city(self, city: City) -> None:
        state = self.state
        self.paths.invalidate()
        state.city_id = city.city_id
        state.viewport = state.viewport.with_center(city.center, zoom=CITY_ZOOM)
        state.events = generate_events(city, self._rng)
        state.selected_event_id = None
        state.dock = dock_for(city)

        if state.layers.vehicles:
            self.ground.spawn(self._pools.ground_ids)
            self.ground.plan_all()
        if state.layers.drones:
            self.aerial.spawn(self._pools.aerial_ids, state.dock)
        state.cameras = (
            generate_cameras(city, self._camera_count, self._rng) if state.layers.cameras else []
        )
        logger.info(f"Simulation context: {city.label} with {len(state.events)} dispatch events")

    def switch_city(self, city_id: str) -> City | None:
        """Start a fresh session in another city.  None if the id is unknown."""
        city = get_city(city_id)
        if city is None:
            return None
        self._enter_city(city)
        self._publish("city_changed", {"city": city.to_dict()})
        return city

    def replace_events(self, events: Sequence[DispatchEvent]) -> None:
        """Swap the event list in place; units on removed events are recalled."""
        state = self.state
        state.events = list(events)
        if state.get_event(state.selected_event_id) is None:
            state.selected_event_id = None
        self.ground.recall_orphans()
        self.aerial.recall_orphans()

    def set_viewport(
        self,
        center: LngLat,
        zoom: float,
        width: int | None = None,
        height: int | None = None,
    ) -> Viewport:
        current = self.state.viewport
        self.state.viewport = Viewport(
            center=center,
            zoom=zoom,
            width=width or current.width,
            height=height or current.height,
            tile_size=current.tile_size,
        )
        return self.state.viewport

    def set_layer(self, name: str, visible: bool) -> bool:
        """Show or hide a layer.  Hiding tears its entities down."""
        if name not in LAYER_NAMES:
            return False
        state = self.state
        if getattr(state.layers, name) == visible:
            return True
        setattr(state.layers, name, visible)

        if name == "vehicles":
            self.paths.invalidate()
            if visible:
                self.ground.spawn(self._pools.ground_ids)
                self.ground.plan_all()
            else:
                state.ground_units.clear()
                state.routes.clear()
                state.assignment_lines.clear()
        elif name == "drones":
            if visible and state.dock is not None:
                self.aerial.spawn(self._pools.aerial_ids, state.dock)
            else:
                self.aerial.clear()
        else:
            city = self.city
            state.cameras = (
                generate_cameras(city, self._camera_count, self._rng) if visible and city else []
            )
        logger.info(f"Layer {name} {'on' if visible else 'off'}")
        return True

    # -- Commands -----------------------------------------------------------

    def select_event(self, event_id: str | None) -> DispatchEvent | None:
        """Select an event for manual assignment; None clears the selection."""
        event = self.state.get_event(event_id)
        self.state.selected_event_id = event.event_id if event is not None else None
        return event

    def assign(self, unit_id: str) -> DispatchEvent | None:
        """Dispatch a vehicle to the selected event.

        Returns the event, or None when nothing is selected or the vehicle
        does not exist.
        """
        event = self.state.selected_event
        if event is None:
            return None
        if not self.ground.assign_unit(unit_id, event):
            return None
        self._publish("unit_assigned", {"unit_id": unit_id, "event_id": event.event_id})
        return event

    def replan_vehicles(self) -> None:
        """Clear assignments and give every vehicle a new random route."""
        self.paths.invalidate()
        self.state.selected_event_id = None
        self.ground.plan_all()
        logger.info("Vehicle routes replanned")

    def camera_fov(self, camera_id: str) -> list[LngLat] | None:
        for camera in self.state.cameras:
            if camera.camera_id == camera_id:
                return camera_fov(self.state.viewport, camera)
        return None

    # -- Tick ---------------------------------------------------------------

    def tick(self, now: float | None = None) -> dict:
        """Run one simulation step and return its snapshot."""
        state = self.state
        now = self._clock() if now is None else now
        state.now = now
        state.tick_count += 1

        for result in self.paths.drain():
            try:
                self.ground.apply_path(result)
            except Exception:
                logger.opt(exception=True).warning(
                    f"Could not apply path for {result.request.unit_id}"
                )

        if state.layers.vehicles:
            self.ground.tick(now)
        if state.layers.drones:
            self.aerial.tick(now)

        snapshot = build_snapshot(state)
        self._last_snapshot = snapshot
        self._publish("sim_snapshot", snapshot)
        return snapshot

    def snapshot(self) -> dict:
        """Most recent snapshot (built on demand before the first tick)."""
        if self._last_snapshot is None:
            return build_snapshot(self.state)
        return self._last_snapshot

    def _publish(self, event_type: str, data: dict) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, data)

    # -- Lifecycle ----------------------------------------------------------

    async def run(self) -> None:
        """Tick until stop() is called."""
        self._running = True
        logger.info(f"Simulation loop started ({1 / self._frame_interval:.0f} Hz)")
        try:
            while self._running:
                self.tick()
                await asyncio.sleep(self._frame_interval)
        finally:
            self._running = False
            self.paths.invalidate()
            logger.info("Simulation loop stopped")

    def start(self) -> asyncio.Task:
        if self._task is not None and not self._task.done():
            return self._task
        self._task = asyncio.get_running_loop().create_task(self.run(), name="sim-tick")
        return self._task

    async def stop(self) -> None:
        self._running = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
