"""Unit tests for the per-tick snapshot builder."""
from __future__ import annotations

import pytest

from cadsim.simulation.models import DOCKED, FLYING, LOITER, TO_DOCK, AerialUnit, GroundUnit, TrafficCamera
from cadsim.simulation.snapshot import arc_height, build_snapshot
from tests.cadsim.simulation.conftest import SEATTLE, make_events

DOCK = (SEATTLE[0] + 0.012, SEATTLE[1] + 0.012)


@pytest.fixture
def populated(state):
    state.events = make_events(2)
    state.selected_event_id = "evt-1"
    state.dock = DOCK
    state.ground_units = {
        "vehicle-1": GroundUnit("vehicle-1", SEATTLE),
        "vehicle-2": GroundUnit("vehicle-2", SEATTLE),
    }
    state.install_route("vehicle-1", [SEATTLE, state.events[0].location], assigned=True, event_id="evt-0")
    state.set_line("vehicle-1", SEATTLE, state.events[0].location)
    state.install_route("vehicle-2", [SEATTLE, (SEATTLE[0], SEATTLE[1] + 0.01)])
    state.aerial_units = {
        "drone-1": AerialUnit(
            "drone-1", SEATTLE, DOCK, status=FLYING, phase=LOITER,
            target_event_location=state.events[1].location, target_event_id="evt-1",
            target_event_index=1,
        ),
        "drone-2": AerialUnit("drone-2", DOCK, DOCK),
    }
    state.cameras = [TrafficCamera("camera-1", SEATTLE, 45.0)]
    return state


@pytest.mark.unit
class TestArcHeight:

    def test_zero_length(self):
        assert arc_height(SEATTLE, SEATTLE) == 0.0

    def test_clamped(self):
        assert arc_height((0.0, 0.0), (0.000001, 0.0)) == pytest.approx(0.05)
        assert arc_height((0.0, 0.0), (0.00001, 0.0)) == pytest.approx(0.1)
        assert arc_height((0.0, 0.0), (1.0, 0.0)) == pytest.approx(0.2)


@pytest.mark.unit
class TestBuildSnapshot:

    def test_top_level_shape(self, populated):
        snap = build_snapshot(populated)
        for key in ("events", "vehicles", "assignment_lines", "drones", "drone_links", "dock", "cameras"):
            assert snap[key]["type"] == "FeatureCollection"
        assert snap["city"] == "seattle"
        assert snap["selected_event_id"] == "evt-1"
        assert set(snap["arcs"]) == {"vehicles", "drones"}

    def test_events(self, populated):
        features = build_snapshot(populated)["events"]["features"]
        assert [f["properties"]["index"] for f in features] == [0, 1]
        assert [f["properties"]["selected"] for f in features] == [False, True]

    def test_vehicles_and_lines(self, populated):
        snap = build_snapshot(populated)
        props = {f["properties"]["id"]: f["properties"] for f in snap["vehicles"]["features"]}
        assert props["vehicle-1"]["assigned"] is True
        assert props["vehicle-2"]["state"] == "traveling"
        (line,) = snap["assignment_lines"]["features"]
        assert line["properties"]["vehicleId"] == "vehicle-1"
        assert len(snap["arcs"]["vehicles"]) == 1

    def test_drones_links_and_dock(self, populated):
        snap = build_snapshot(populated)
        drones = {f["properties"]["id"]: f["properties"] for f in snap["drones"]["features"]}
        assert drones["drone-1"]["phase"] == LOITER
        assert drones["drone-1"]["event_id"] == "evt-1"
        assert drones["drone-2"]["status"] == DOCKED
        assert drones["drone-2"]["event_id"] is None

        (link,) = snap["drone_links"]["features"]
        assert link["geometry"]["coordinates"][1] == list(populated.events[1].location)

        (dock,) = snap["dock"]["features"]
        assert dock["geometry"]["type"] == "Polygon"
        assert len(dock["geometry"]["coordinates"][0]) == 5
        assert dock["properties"]["occupied"] is True

        # Docked drone sits on the dock: zero-length arc is omitted.
        assert len(snap["arcs"]["drones"]) == 1

    def test_returning_drone_has_no_link(self, populated):
        populated.aerial_units["drone-1"].phase = TO_DOCK
        snap = build_snapshot(populated)
        assert snap["drone_links"]["features"] == []

    def test_dock_unoccupied(self, populated):
        del populated.aerial_units["drone-2"]
        (dock,) = build_snapshot(populated)["dock"]["features"]
        assert dock["properties"]["occupied"] is False

    def test_hidden_layers_are_empty(self, populated):
        populated.layers.vehicles = False
        populated.layers.drones = False
        snap = build_snapshot(populated)
        assert snap["vehicles"]["features"] == []
        assert snap["assignment_lines"]["features"] == []
        assert snap["drones"]["features"] == []
        assert snap["dock"]["features"] == []
        assert snap["cameras"]["features"] == []

    def test_cameras_when_enabled(self, populated):
        populated.layers.cameras = True
        (cam,) = build_snapshot(populated)["cameras"]["features"]
        assert cam["properties"] == {"id": "camera-1", "bearing": 45.0}
