"""
Alerting tests - proximity rules, threat table and route monitoring
"""

import pytest

from tactrack.errors import InvalidGeometryError, InvalidRuleError, NotFoundError
from tactrack.models import (
    Classification, OffRouteEvent, Priority, ProximityAlertEvent, ThreatDetectedEvent, ThreatLevel
)
from tactrack.modules.alert_manager.alert_controller import AlertDispatcher
from tactrack.modules.alert_manager.route_monitor import RouteMonitor
from tactrack.modules.alert_manager.threat_assessor import ThreatAssessor
from tactrack.utils.config import TrackingConfig


@pytest.fixture
def dispatcher():
    return AlertDispatcher(TrackingConfig())


@pytest.fixture
def route_monitor():
    return RouteMonitor(TrackingConfig())


class TestProximity:
    """Edge-triggered proximity alerts"""

    def _positions(self, make_position, b_lat, seconds=0):
        return {
            "alpha": make_position(0.0, 0.0, seconds),
            "bravo": make_position(b_lat, 0.0, seconds),
        }

    def test_fires_once_on_approach(self, dispatcher, make_position):
        dispatcher.register_proximity_rule("alpha", "bravo", 200)

        # 0.0045 deg ~ 500 m, 0.00135 deg ~ 150 m
        assert dispatcher.check_proximity(self._positions(make_position, 0.0045, 0)) == []

        alerts = dispatcher.check_proximity(self._positions(make_position, 0.00135, 10))
        assert len(alerts) == 1
        alert = alerts[0]
        assert isinstance(alert, ProximityAlertEvent)
        assert alert.target_id == "alpha"
        assert alert.other_id == "bravo"
        assert alert.distance_meters == pytest.approx(150, abs=1)
        assert alert.threshold_meters == 200
        assert alert.timestamp == make_position(0, 0, 10).timestamp

        assert dispatcher.check_proximity(self._positions(make_position, 0.001, 20)) == []

    def test_rearms_after_leaving_range(self, dispatcher, make_position):
        dispatcher.register_proximity_rule("alpha", "bravo", 200)

        assert len(dispatcher.check_proximity(self._positions(make_position, 0.001))) == 1
        assert dispatcher.check_proximity(self._positions(make_position, 0.0045)) == []
        assert len(dispatcher.check_proximity(self._positions(make_position, 0.001))) == 1

    def test_repeat_fires_every_check(self, dispatcher, make_position):
        dispatcher.register_proximity_rule("alpha", "bravo", 200, repeat=True)

        for _ in range(3):
            assert len(dispatcher.check_proximity(self._positions(make_position, 0.001))) == 1

    def test_missing_target_is_skipped(self, dispatcher, make_position):
        dispatcher.register_proximity_rule("alpha", "charlie", 200)
        assert dispatcher.check_proximity(self._positions(make_position, 0.001)) == []

    def test_explicit_timestamp(self, dispatcher, make_position, base_time):
        dispatcher.register_proximity_rule("alpha", "bravo", 200)
        alerts = dispatcher.check_proximity(self._positions(make_position, 0.001, 30), now=base_time)
        assert alerts[0].timestamp == base_time

    @pytest.mark.parametrize("target_b, threshold", [
        ("alpha", 100),
        ("bravo", 0),
        ("bravo", -5),
    ])
    def test_invalid_rules(self, dispatcher, target_b, threshold):
        with pytest.raises(InvalidRuleError):
            dispatcher.register_proximity_rule("alpha", target_b, threshold)

    def test_rule_pair_is_unordered(self, dispatcher):
        dispatcher.register_proximity_rule("alpha", "bravo", 200)
        dispatcher.register_proximity_rule("bravo", "alpha", 300)

        rules = dispatcher.list_proximity_rules()
        assert len(rules) == 1
        assert rules[0].threshold_meters == 300

        dispatcher.remove_proximity_rule("alpha", "bravo")
        assert dispatcher.list_proximity_rules() == []
        with pytest.raises(NotFoundError):
            dispatcher.remove_proximity_rule("alpha", "bravo")

    def test_forget_target_drops_its_rules(self, dispatcher):
        dispatcher.register_proximity_rule("alpha", "bravo", 200)
        dispatcher.register_proximity_rule("charlie", "delta", 200)

        dispatcher.forget_target("alpha")

        assert [rule.key for rule in dispatcher.list_proximity_rules()] == [frozenset(("charlie", "delta"))]


class TestThreatAssessment:
    """Threat rule table"""

    @pytest.mark.parametrize("classification, priority, speed, level, factors", [
        (Classification.UNKNOWN, Priority.MEDIUM, 0.0, ThreatLevel.LOW, []),
        (Classification.HOSTILE, Priority.MEDIUM, 0.0, ThreatLevel.HIGH, ["hostile_classification"]),
        (Classification.NEUTRAL, Priority.MEDIUM, 25.0, ThreatLevel.MEDIUM, ["high_speed"]),
        (Classification.HOSTILE, Priority.MEDIUM, 25.0, ThreatLevel.HIGH,
         ["hostile_classification", "high_speed"]),
        (Classification.FRIENDLY, Priority.HIGH, 0.0, ThreatLevel.HIGH, ["high_priority"]),
        (Classification.UNKNOWN, Priority.CRITICAL, 0.0, ThreatLevel.CRITICAL, ["critical_priority"]),
        (Classification.HOSTILE, Priority.CRITICAL, 25.0, ThreatLevel.CRITICAL,
         ["hostile_classification", "high_speed", "critical_priority"]),
    ])
    def test_rule_table(self, make_target, classification, priority, speed, level, factors):
        target = make_target("alpha", classification=classification, priority=priority)
        target.movement.speed = speed

        assessment = ThreatAssessor(TrackingConfig()).assess(target)

        assert assessment.level == level
        assert assessment.factors == factors

    def test_speed_threshold_is_exclusive(self, make_target):
        target = make_target("alpha")
        target.movement.speed = 20.0

        assert ThreatAssessor(TrackingConfig()).assess(target).level == ThreatLevel.LOW


class TestThreatChanges:
    """Edge-triggered threat events"""

    def test_emits_on_change_only(self, dispatcher, make_target):
        target = make_target("alpha", classification=Classification.HOSTILE)

        events = dispatcher.check_threat(target)
        assert len(events) == 1
        assert isinstance(events[0], ThreatDetectedEvent)
        assert events[0].level == ThreatLevel.HIGH
        assert events[0].previous_level is None

        assert dispatcher.check_threat(target) == []

        target.priority = Priority.CRITICAL
        events = dispatcher.check_threat(target)
        assert events[0].level == ThreatLevel.CRITICAL
        assert events[0].previous_level == ThreatLevel.HIGH

    def test_low_level_is_silent(self, dispatcher, make_target):
        target = make_target("alpha", classification=Classification.HOSTILE)
        dispatcher.check_threat(target)

        target.classification = Classification.FRIENDLY
        assert dispatcher.check_threat(target) == []
        assert dispatcher.threat_levels["alpha"] == ThreatLevel.LOW

    def test_forget_resets_memory(self, dispatcher, make_target):
        target = make_target("alpha", classification=Classification.HOSTILE)
        dispatcher.check_threat(target)
        dispatcher.forget_target("alpha")

        assert len(dispatcher.check_threat(target)) == 1


class TestRouteMonitor:
    """Off-route detection"""

    ROUTE = [(0.0, 0.0), (0.0, 0.01)]

    def test_one_event_per_excursion(self, route_monitor, make_position):
        route_monitor.assign_route("alpha", self.ROUTE, tolerance_meters=50)

        # ~11 m off the line
        assert route_monitor.check("alpha", make_position(0.0001, 0.005, 0)) == []

        # ~111 m off the line
        events = route_monitor.check("alpha", make_position(0.001, 0.005, 10))
        assert len(events) == 1
        assert isinstance(events[0], OffRouteEvent)
        assert events[0].distance_meters == pytest.approx(111.19, abs=0.1)
        assert events[0].tolerance_meters == 50

        assert route_monitor.check("alpha", make_position(0.001, 0.006, 20)) == []
        assert route_monitor.check("alpha", make_position(0.0, 0.007, 30)) == []
        assert len(route_monitor.check("alpha", make_position(0.001, 0.008, 40))) == 1

    def test_route_status(self, route_monitor, make_position):
        route_monitor.assign_route("alpha", self.ROUTE, tolerance_meters=50)
        route_monitor.check("alpha", make_position(0.0001, 0.005, 0))

        status = route_monitor.get_route_status("alpha")

        assert status["is_off_route"] is False
        assert status["progress"] == pytest.approx(0.5, abs=1e-3)
        assert status["length_meters"] == pytest.approx(1111.95, abs=0.5)
        assert status["remaining_meters"] == pytest.approx(556, abs=1)

    def test_default_tolerance_from_config(self, route_monitor):
        state = route_monitor.assign_route("alpha", self.ROUTE)
        assert state.tolerance_meters == 50.0

    def test_target_without_route(self, route_monitor, make_position):
        assert route_monitor.check("ghost", make_position(0, 0)) == []
        with pytest.raises(NotFoundError):
            route_monitor.get_route_status("ghost")
        with pytest.raises(NotFoundError):
            route_monitor.clear_route("ghost")

    @pytest.mark.parametrize("line, tolerance", [
        ([(0.0, 0.0)], 50),
        ([(0.0, 0.0), (95.0, 0.0)], 50),
        ([(0.0, 0.0), (0.0, 0.01)], 0),
    ])
    def test_invalid_routes(self, route_monitor, line, tolerance):
        with pytest.raises(InvalidGeometryError):
            route_monitor.assign_route("alpha", line, tolerance_meters=tolerance)

    def test_clear_route(self, route_monitor, make_position):
        route_monitor.assign_route("alpha", self.ROUTE)
        route_monitor.clear_route("alpha")

        assert route_monitor.check("alpha", make_position(1.0, 1.0)) == []
