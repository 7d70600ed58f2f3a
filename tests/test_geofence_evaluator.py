"""
Geofence evaluator tests

Covers containment transitions, dwell, rule violations, time restrictions,
registry operations and analytics.
"""

from datetime import datetime, timezone

import pytest

from tactrack.errors import AlreadyExistsError, CapacityExceededError, InvalidGeometryError, NotFoundError
from tactrack.models import (
    Bounds, CircleGeometry, Classification, DwellEvent, EntryEvent, EventType, ExitEvent, Geofence,
    GeofenceRules, GeofenceType, PolygonGeometry, Position, Priority, TargetType, TimeRestriction,
    ViolationEvent, ViolationKind
)
from tactrack.modules.geofence_manager.geofence_controller import GeofenceEvaluator


def circle_geofence(geofence_id="zone", radius=100.0, **kwargs):
    return Geofence(
        name=f"Circle {geofence_id}",
        geometry=CircleGeometry(center=(0.0, 0.0), radius_meters=radius),
        geofence_id=geofence_id,
        **kwargs
    )


@pytest.fixture
def evaluator():
    return GeofenceEvaluator()


def run_path(evaluator, make_position, path, target_id="t1", **kwargs):
    """Evaluate (lat, lon, seconds) samples and return the events per sample"""
    return [evaluator.evaluate(target_id, make_position(lat, lon, seconds), **kwargs)
            for lat, lon, seconds in path]


class TestContainmentTransitions:
    """Entry and exit fire once per crossing"""

    def test_circle_entry_scenario(self, evaluator, make_position):
        evaluator.add_geofence(circle_geofence())

        events = run_path(evaluator, make_position, [(0.002, 0, 0), (0.0005, 0, 10), (0, 0, 20)])

        assert events[0] == []
        assert len(events[1]) == 1
        assert isinstance(events[1][0], EntryEvent)
        assert events[1][0].geofence_id == "zone"
        assert events[2] == []

    def test_single_entry_and_exit_per_crossing(self, evaluator, make_position):
        evaluator.add_geofence(circle_geofence())

        path = [(0.002, 0, 0), (0, 0, 10), (0.0001, 0, 20), (0, 0.0001, 30), (0.002, 0, 40)]
        flat = [event for batch in run_path(evaluator, make_position, path) for event in batch]

        assert [event.event_type for event in flat] == [EventType.ENTRY, EventType.EXIT]

    def test_first_evaluation_inside_is_an_entry(self, evaluator, make_position):
        evaluator.add_geofence(circle_geofence())

        events = evaluator.evaluate("t1", make_position(0, 0))
        assert [type(event) for event in events] == [EntryEvent]

    def test_disabled_triggers_emit_nothing(self, evaluator, make_position):
        rules = GeofenceRules(trigger_on_entry=False, trigger_on_exit=False)
        evaluator.add_geofence(circle_geofence(rules=rules))

        events = run_path(evaluator, make_position, [(0, 0, 0), (0.002, 0, 10)])
        assert events == [[], []]
        # State still tracks containment
        assert evaluator.target_states["t1"]["zone"].is_inside is False

    def test_inactive_geofence_is_skipped(self, evaluator, make_position):
        evaluator.add_geofence(circle_geofence(is_active=False))
        assert evaluator.evaluate("t1", make_position(0, 0)) == []

    def test_polygon_geofence(self, evaluator, make_position):
        evaluator.add_geofence(Geofence(
            name="Square",
            geometry=PolygonGeometry(ring=[(0, 0), (0, 0.01), (0.01, 0.01), (0.01, 0)]),
            geofence_id="square"
        ))

        events = run_path(evaluator, make_position, [(0.02, 0.02, 0), (0.005, 0.005, 10), (-0.001, 0.005, 20)])
        assert events[0] == []
        assert isinstance(events[1][0], EntryEvent)
        assert isinstance(events[2][0], ExitEvent)

    def test_events_follow_geofence_order(self, evaluator, make_position):
        evaluator.add_geofence(circle_geofence("inner", radius=100))
        evaluator.add_geofence(circle_geofence("outer", radius=1000))

        events = evaluator.evaluate("t1", make_position(0, 0))
        assert [event.geofence_id for event in events] == ["inner", "outer"]


class TestDwell:
    """Dwell fires at most once per continuous containment"""

    def test_single_dwell_per_interval(self, evaluator, make_position):
        rules = GeofenceRules(trigger_on_dwell=True, dwell_seconds=60)
        evaluator.add_geofence(circle_geofence(rules=rules))

        path = [(0, 0, 0), (0, 0, 30), (0, 0, 61), (0, 0, 90), (0, 0, 120), (0, 0, 500)]
        flat = [event for batch in run_path(evaluator, make_position, path) for event in batch]
        dwells = [event for event in flat if isinstance(event, DwellEvent)]

        assert len(dwells) == 1
        assert dwells[0].duration_seconds == pytest.approx(61)
        assert dwells[0].timestamp == make_position(0, 0, 61).timestamp

    def test_dwell_rearms_after_exit(self, evaluator, make_position):
        rules = GeofenceRules(trigger_on_dwell=True, dwell_seconds=60)
        evaluator.add_geofence(circle_geofence(rules=rules))

        path = [(0, 0, 0), (0, 0, 100), (0.002, 0, 150), (0, 0, 200), (0, 0, 300)]
        flat = [event for batch in run_path(evaluator, make_position, path) for event in batch]

        assert [event.event_type for event in flat] == [
            EventType.ENTRY, EventType.DWELL, EventType.EXIT, EventType.ENTRY, EventType.DWELL
        ]

    def test_dwell_requires_trigger(self):
        with pytest.raises(InvalidGeometryError):
            GeofenceRules(trigger_on_dwell=True)


class TestViolations:
    """Rule violations on entry and exit"""

    def test_target_type_restriction(self, evaluator, make_position):
        rules = GeofenceRules(allowed_target_types=(TargetType.VEHICLE,))
        evaluator.add_geofence(circle_geofence(rules=rules, priority=Priority.HIGH))

        events = evaluator.evaluate("t1", make_position(0, 0), target_type=TargetType.PERSON)

        assert isinstance(events[0], EntryEvent)
        assert isinstance(events[1], ViolationEvent)
        assert events[1].kind == ViolationKind.TARGET_TYPE_RESTRICTION
        assert events[1].severity == Priority.HIGH

    def test_allowed_type_has_no_violation(self, evaluator, make_position):
        rules = GeofenceRules(allowed_target_types=("vehicle",))
        evaluator.add_geofence(circle_geofence(rules=rules))

        events = evaluator.evaluate("t1", make_position(0, 0), target_type="vehicle")
        assert [type(event) for event in events] == [EntryEvent]

    def test_classification_restriction(self, evaluator, make_position):
        rules = GeofenceRules(allowed_classifications=(Classification.FRIENDLY,))
        evaluator.add_geofence(circle_geofence(rules=rules))

        events = evaluator.evaluate("t1", make_position(0, 0), classification=Classification.HOSTILE)
        violations = [event for event in events if isinstance(event, ViolationEvent)]

        assert [v.kind for v in violations] == [ViolationKind.UNAUTHORIZED_ENTRY]

    def test_violation_emitted_without_entry_trigger(self, evaluator, make_position):
        rules = GeofenceRules(trigger_on_entry=False, allowed_target_types=("vehicle",))
        evaluator.add_geofence(circle_geofence(rules=rules))

        events = evaluator.evaluate("t1", make_position(0, 0), target_type="person")
        assert [type(event) for event in events] == [ViolationEvent]

    def test_safe_zone_unauthorized_exit(self, evaluator, make_position):
        rules = GeofenceRules(allowed_classifications=("friendly",))
        evaluator.add_geofence(circle_geofence(geofence_type=GeofenceType.SAFE_ZONE, rules=rules))

        evaluator.evaluate("t1", make_position(0, 0), classification="hostile")
        events = evaluator.evaluate("t1", make_position(0.002, 0, 10), classification="hostile")

        assert isinstance(events[0], ExitEvent)
        assert events[1].kind == ViolationKind.UNAUTHORIZED_EXIT

    def test_safe_zone_authorized_exit(self, evaluator, make_position):
        rules = GeofenceRules(allowed_classifications=("friendly",))
        evaluator.add_geofence(circle_geofence(geofence_type=GeofenceType.SAFE_ZONE, rules=rules))

        evaluator.evaluate("t1", make_position(0, 0), classification="friendly")
        events = evaluator.evaluate("t1", make_position(0.002, 0, 10), classification="friendly")

        assert [type(event) for event in events] == [ExitEvent]


class TestTimeRestrictions:
    """Permitted windows and the time restriction sweep"""

    def test_window_within_day(self):
        restriction = TimeRestriction("08:00", "17:00")

        assert restriction.is_permitted(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
        assert restriction.is_permitted(datetime(2024, 1, 1, 17, 0, tzinfo=timezone.utc))
        assert not restriction.is_permitted(datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc))

    def test_window_across_midnight(self):
        restriction = TimeRestriction("22:00", "06:00")

        assert restriction.is_permitted(datetime(2024, 1, 1, 23, 0))
        assert restriction.is_permitted(datetime(2024, 1, 1, 3, 0))
        assert not restriction.is_permitted(datetime(2024, 1, 1, 12, 0))

    def test_days_of_week_start_on_sunday(self):
        sundays_only = TimeRestriction("00:00", "23:59", days_of_week=(0,))

        assert sundays_only.is_permitted(datetime(2024, 1, 7, 12, 0))
        assert not sundays_only.is_permitted(datetime(2024, 1, 1, 12, 0))

    @pytest.mark.parametrize("start, end", [("8am", "17:00"), ("08:00", "24:00"), ("08:60", "09:00")])
    def test_malformed_window_rejected(self, start, end):
        with pytest.raises(InvalidGeometryError):
            TimeRestriction(start, end)

    def test_entry_outside_window_is_a_violation(self, evaluator):
        rules = GeofenceRules(time_restriction=TimeRestriction("08:00", "17:00"))
        evaluator.add_geofence(circle_geofence(rules=rules))

        evening = Position(0, 0, 5.0, datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc))
        events = evaluator.evaluate("t1", evening)

        assert [type(event) for event in events] == [EntryEvent, ViolationEvent]
        assert events[1].kind == ViolationKind.TIME_RESTRICTION

    def test_sweep_reports_every_call_while_restricted(self, evaluator, make_position):
        rules = GeofenceRules(time_restriction=TimeRestriction("08:00", "17:00"))
        evaluator.add_geofence(circle_geofence(rules=rules))

        # Noon entry is inside the permitted window
        assert [type(e) for e in evaluator.evaluate("t1", make_position(0, 0))] == [EntryEvent]
        evaluator.evaluate("t2", make_position(0.002, 0))

        evening = datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc)
        first = evaluator.check_time_restrictions(evening)
        second = evaluator.check_time_restrictions(evening)

        assert [v.target_id for v in first] == ["t1"]
        assert len(second) == 1
        assert first[0].kind == ViolationKind.TIME_RESTRICTION
        assert first[0].timestamp == evening

        morning = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)
        assert evaluator.check_time_restrictions(morning) == []


class TestRegistry:
    """Add, update and remove geofences"""

    def test_duplicate_id_rejected(self, evaluator):
        evaluator.add_geofence(circle_geofence())
        with pytest.raises(AlreadyExistsError):
            evaluator.add_geofence(circle_geofence())

    def test_capacity_limit(self):
        evaluator = GeofenceEvaluator(max_geofences=1)
        evaluator.add_geofence(circle_geofence("a"))
        with pytest.raises(CapacityExceededError):
            evaluator.add_geofence(circle_geofence("b"))

    def test_remove_unknown_geofence(self, evaluator):
        with pytest.raises(NotFoundError):
            evaluator.remove_geofence("missing")

    def test_remove_drops_containment_state(self, evaluator, make_position):
        evaluator.add_geofence(circle_geofence())
        evaluator.evaluate("t1", make_position(0, 0))

        evaluator.remove_geofence("zone")

        assert "zone" not in evaluator.target_states["t1"]
        with pytest.raises(NotFoundError):
            evaluator.get_geofence("zone")

    def test_update_with_same_geometry_keeps_state(self, evaluator, make_position):
        evaluator.add_geofence(circle_geofence())
        evaluator.evaluate("t1", make_position(0, 0))

        evaluator.update_geofence(circle_geofence(description="renamed"))

        assert evaluator.evaluate("t1", make_position(0, 0, 10)) == []

    def test_update_with_new_geometry_resets_state(self, evaluator, make_position):
        evaluator.add_geofence(circle_geofence(radius=100))
        evaluator.evaluate("t1", make_position(0, 0))

        evaluator.update_geofence(circle_geofence(radius=200))

        events = evaluator.evaluate("t1", make_position(0, 0, 10))
        assert [type(event) for event in events] == [EntryEvent]

    def test_update_unknown_geofence(self, evaluator):
        with pytest.raises(NotFoundError):
            evaluator.update_geofence(circle_geofence("missing"))

    def test_collinear_polygon_rejected(self, evaluator):
        geofence = Geofence(name="Line", geometry=PolygonGeometry(ring=[(0, 0), (0, 1), (0, 2)]))
        with pytest.raises(InvalidGeometryError):
            evaluator.add_geofence(geofence)

    def test_self_intersecting_polygon_warns(self, evaluator):
        geofence = Geofence(name="Bowtie", geometry=PolygonGeometry(ring=[(0, 0), (0, 2), (1, 0), (1, 1)]))
        warnings = []

        evaluator.add_geofence(geofence, warnings)

        assert any("Invalid polygon" in message for message in warnings)

    def test_definition_dictionary(self, evaluator, make_position):
        geofence_id = evaluator.add_geofence_definition({
            "geofence_id": "dict-zone",
            "name": "From dict",
            "shape": "circle",
            "center": [0, 0],
            "radius_meters": 100,
            "priority": "high"
        })

        assert geofence_id == "dict-zone"
        assert evaluator.get_geofence("dict-zone").priority == Priority.HIGH
        assert isinstance(evaluator.evaluate("t1", make_position(0, 0))[0], EntryEvent)


class TestGeometryValidation:
    """Geometry is validated at construction"""

    @pytest.mark.parametrize("radius", [0, -5, float("inf"), float("nan")])
    def test_bad_circle_radius(self, radius):
        with pytest.raises(InvalidGeometryError):
            CircleGeometry(center=(0, 0), radius_meters=radius)

    def test_polygon_needs_three_distinct_vertices(self):
        with pytest.raises(InvalidGeometryError):
            PolygonGeometry(ring=[(0, 0), (1, 1), (0, 0)])

    def test_polygon_closing_vertex_is_dropped(self):
        geometry = PolygonGeometry(ring=[(0, 0), (0, 1), (1, 1), (0, 0)])
        assert len(geometry.ring) == 3

    def test_out_of_range_vertex(self):
        with pytest.raises(InvalidGeometryError):
            PolygonGeometry(ring=[(0, 0), (0, 1), (95, 1)])


class TestQueriesAndAnalytics:
    """Convenience constructors, status and analytics"""

    def test_rectangular_geofence(self, evaluator):
        geofence = evaluator.create_rectangular_geofence(
            "Box", Bounds(north=0.01, south=0.0, east=0.01, west=0.0), geofence_id="box"
        )

        assert geofence.shape == "polygon"
        assert evaluator.get_geofences_containing_point((0.005, 0.005)) == [geofence]
        assert evaluator.get_geofences_containing_point((0.02, 0.005)) == []

    def test_circular_geofence(self, evaluator):
        geofence = evaluator.create_circular_geofence("Circle", (0, 0), 250, priority=Priority.LOW)

        assert evaluator.get_geofence(geofence.geofence_id) is geofence
        assert geofence.priority == Priority.LOW

    def test_target_status(self, evaluator, make_position):
        evaluator.add_geofence(circle_geofence())
        evaluator.evaluate("t1", make_position(0, 0))
        evaluator.evaluate("t1", make_position(0, 0, 45))

        status = evaluator.get_target_geofence_status("t1")

        assert len(status) == 1
        assert status[0]["is_inside"] is True
        assert status[0]["dwell_seconds"] == pytest.approx(45)
        assert evaluator.get_target_geofence_status("unknown") == []

    def test_forget_target(self, evaluator, make_position):
        evaluator.add_geofence(circle_geofence())
        evaluator.evaluate("t1", make_position(0, 0))

        evaluator.forget_target("t1")

        # Containment starts over
        assert [type(e) for e in evaluator.evaluate("t1", make_position(0, 0, 10))] == [EntryEvent]

    def test_analytics_counts(self, evaluator, make_position):
        rules = GeofenceRules(trigger_on_dwell=True, dwell_seconds=60, allowed_target_types=("vehicle",))
        evaluator.add_geofence(circle_geofence(rules=rules))

        for lat, seconds in [(0, 0), (0, 120), (0.002, 180)]:
            evaluator.evaluate("t1", make_position(lat, 0, seconds), target_type="person")

        analytics = evaluator.get_geofence_analytics("zone")

        assert analytics.entry_events == 1
        assert analytics.exit_events == 1
        assert analytics.dwell_events == 1
        assert analytics.violations == 1
        assert analytics.total_events == 4
        assert analytics.average_dwell_time == pytest.approx(120)
        assert analytics.most_active_hours == [12]
        assert analytics.target_activity["t1"]["total_dwell_time"] == pytest.approx(180)
        assert analytics.to_dict()["target_activity"][0]["target_id"] == "t1"
