"""
Geofence Manager Module - Geofence registry and containment evaluation

This module handles:
- Geofence registration, replacement and removal
- Per (target, geofence) containment state
- Entry, exit, dwell and violation transitions
- Time-restricted geofence sweeps
- Geofence analytics and convenience constructors
"""

from typing import Dict, List, Any, Optional, Sequence

from tactrack.errors import AlreadyExistsError, CapacityExceededError, InvalidGeometryError, NotFoundError
from tactrack.models.events import DwellEvent, EntryEvent, Event, ExitEvent, ViolationEvent
from tactrack.models.geofence import (
    CircleGeometry, PolygonGeometry, Geofence, GeofenceRules, GeofenceType, ContainmentState,
    GeofenceAnalytics, ViolationKind
)
from tactrack.models.tracking import Bounds, Position, Priority
from tactrack.modules.base_module import BaseModule
from tactrack.modules.geofence_manager.spatial_operations import SpatialOperations
from tactrack.modules.geofence_manager.zone_validator import ZoneValidator

def _enum_value(value: Any) -> Optional[str]:
    return getattr(value, "value", value)

class GeofenceEvaluator(BaseModule):
    """Owns active geofences and fires containment transitions"""

    def __init__(self, spatial_ops: Optional[SpatialOperations] = None,
                 zone_validator: Optional[ZoneValidator] = None, max_geofences: int = 500):
        super().__init__("geofence_manager", "ray_casting")
        self.spatial_ops = spatial_ops or SpatialOperations()
        self.zone_validator = zone_validator or ZoneValidator(self.spatial_ops)
        self.max_geofences = max_geofences

        self.geofences: Dict[str, Geofence] = {}
        self.analytics: Dict[str, GeofenceAnalytics] = {}
        # target_id -> geofence_id -> state
        self.target_states: Dict[str, Dict[str, ContainmentState]] = {}
        self._bounds: Dict[str, Bounds] = {}

    # Registry

    def add_geofence(self, geofence: Geofence, warnings: Optional[List[str]] = None) -> str:
        """Register a geofence and return its id"""

        if geofence.geofence_id in self.geofences:
            raise AlreadyExistsError(f"Geofence {geofence.geofence_id} already exists")

        if len(self.geofences) >= self.max_geofences:
            raise CapacityExceededError(f"Geofence limit of {self.max_geofences} reached")

        self._validate(geofence, warnings)

        self.geofences[geofence.geofence_id] = geofence
        self.analytics[geofence.geofence_id] = GeofenceAnalytics(geofence_id=geofence.geofence_id)
        self._index_bounds(geofence)

        self.logger.info(f"Added {geofence.shape} geofence {geofence.geofence_id} ({geofence.name})")
        return geofence.geofence_id

    def add_geofence_definition(self, definition: Dict[str, Any], warnings: Optional[List[str]] = None) -> str:
        """Build a geofence from a definition dictionary and register it"""

        return self.add_geofence(self.zone_validator.build_geofence(definition), warnings)

    def update_geofence(self, geofence: Geofence, warnings: Optional[List[str]] = None) -> str:
        """Replace a geofence as a whole

        Containment state survives only when the geometry is unchanged and the
        geofence stays active.
        """

        existing = self.get_geofence(geofence.geofence_id)
        self._validate(geofence, warnings)

        if existing.geometry != geofence.geometry or not geofence.is_active:
            for states in self.target_states.values():
                states.pop(geofence.geofence_id, None)
            self.logger.debug(f"Reset containment state for geofence {geofence.geofence_id}")

        self.geofences[geofence.geofence_id] = geofence
        self._index_bounds(geofence)

        self.logger.info(f"Updated geofence {geofence.geofence_id}")
        return geofence.geofence_id

    def remove_geofence(self, geofence_id: str) -> None:
        if geofence_id not in self.geofences:
            raise NotFoundError(f"Geofence {geofence_id} not found")

        del self.geofences[geofence_id]
        self.analytics.pop(geofence_id, None)
        self._bounds.pop(geofence_id, None)
        for states in self.target_states.values():
            states.pop(geofence_id, None)

        self.logger.info(f"Removed geofence {geofence_id}")

    def get_geofence(self, geofence_id: str) -> Geofence:
        try:
            return self.geofences[geofence_id]
        except KeyError:
            raise NotFoundError(f"Geofence {geofence_id} not found")

    def list_geofences(self, active_only: bool = False) -> List[Geofence]:
        return [g for g in self.geofences.values() if g.is_active or not active_only]

    def _validate(self, geofence: Geofence, warnings: Optional[List[str]]) -> None:
        validation = self.zone_validator.validate_geofence(geofence)

        if not validation.valid:
            raise InvalidGeometryError(f"Geofence {geofence.geofence_id} rejected: {'; '.join(validation.errors)}")

        for message in validation.warnings:
            self._log_warning(f"Geofence {geofence.geofence_id}: {message}", warnings)

    def _index_bounds(self, geofence: Geofence) -> None:
        if isinstance(geofence.geometry, PolygonGeometry):
            self._bounds[geofence.geofence_id] = self.spatial_ops.bounding_box(geofence.geometry.ring)
        else:
            self._bounds.pop(geofence.geofence_id, None)

    # Containment

    def contains(self, geofence: Geofence, point: Sequence[float]) -> bool:
        """Containment test dispatched on the geometry variant"""

        geometry = geofence.geometry

        if isinstance(geometry, CircleGeometry):
            return self.spatial_ops.point_in_circle(point, geometry.center, geometry.radius_meters)

        bounds = self._bounds.get(geofence.geofence_id)
        if bounds is not None and not bounds.contains(point[0], point[1]):
            return False
        return self.spatial_ops.point_in_polygon(point, geometry.ring)

    def evaluate(self, target_id: str, position: Position, target_type: Any = None,
                 classification: Any = None) -> List[Event]:
        """Test one position against every active geofence and return the transitions"""

        target_type = _enum_value(target_type)
        classification = _enum_value(classification)
        now = position.timestamp
        point = position.coordinate

        states = self.target_states.setdefault(target_id, {})
        events: List[Event] = []

        for geofence in list(self.geofences.values()):
            if not geofence.is_active:
                continue

            state = states.get(geofence.geofence_id)
            if state is None:
                state = ContainmentState()
                states[geofence.geofence_id] = state

            was_inside = state.is_inside
            is_inside = self.contains(geofence, point)
            rules = geofence.rules

            if is_inside and not was_inside:
                state.is_inside = True
                state.entered_at = now
                state.dwell_fired = False

                if rules.trigger_on_entry:
                    events.append(EntryEvent(target_id, position, now, geofence.geofence_id))
                events.extend(self._entry_violations(geofence, target_id, position, target_type, classification))

            elif was_inside and not is_inside:
                if rules.trigger_on_exit:
                    events.append(ExitEvent(target_id, position, now, geofence.geofence_id))

                if (geofence.geofence_type == GeofenceType.SAFE_ZONE
                        and not rules.is_target_allowed(target_type, classification)):
                    events.append(self._violation(geofence, target_id, position, now,
                                                  ViolationKind.UNAUTHORIZED_EXIT))

                self._record_stay(geofence.geofence_id, target_id, state, now)
                state.is_inside = False
                state.entered_at = None
                state.dwell_fired = False

            elif is_inside and was_inside and state.entered_at is not None:
                elapsed = (now - state.entered_at).total_seconds()
                if (rules.trigger_on_dwell and not state.dwell_fired
                        and rules.dwell_seconds is not None and elapsed >= rules.dwell_seconds):
                    state.dwell_fired = True
                    events.append(DwellEvent(target_id, position, now, geofence.geofence_id, elapsed))

            state.last_position = position

        for event in events:
            self._record_event(event)

        return events

    def _entry_violations(self, geofence: Geofence, target_id: str, position: Position,
                          target_type: Optional[str], classification: Optional[str]) -> List[ViolationEvent]:
        rules = geofence.rules
        now = position.timestamp
        violations = []

        if (rules.allowed_target_types is not None and target_type
                and target_type not in rules.allowed_target_types):
            violations.append(self._violation(geofence, target_id, position, now,
                                              ViolationKind.TARGET_TYPE_RESTRICTION))
        elif not rules.is_target_allowed(target_type, classification):
            violations.append(self._violation(geofence, target_id, position, now,
                                              ViolationKind.UNAUTHORIZED_ENTRY))

        if rules.time_restriction is not None and not rules.time_restriction.is_permitted(now):
            violations.append(self._violation(geofence, target_id, position, now,
                                              ViolationKind.TIME_RESTRICTION))

        return violations

    def _violation(self, geofence: Geofence, target_id: str, position: Position, timestamp,
                   kind: ViolationKind) -> ViolationEvent:
        self.logger.warning(f"Violation {kind.value} by {target_id} in geofence {geofence.geofence_id}")
        return ViolationEvent(target_id, position, timestamp, geofence.geofence_id, kind, geofence.priority)

    def check_time_restrictions(self, now) -> List[ViolationEvent]:
        """One violation per target inside each geofence whose window is closed at now"""

        violations = []

        for geofence in list(self.geofences.values()):
            restriction = geofence.rules.time_restriction
            if not geofence.is_active or restriction is None or restriction.is_permitted(now):
                continue

            for target_id, states in list(self.target_states.items()):
                state = states.get(geofence.geofence_id)
                if state is None or not state.is_inside or state.last_position is None:
                    continue
                violations.append(self._violation(geofence, target_id, state.last_position, now,
                                                  ViolationKind.TIME_RESTRICTION))

        for event in violations:
            self._record_event(event)

        return violations

    def forget_target(self, target_id: str) -> None:
        self.target_states.pop(target_id, None)

    # Queries

    def get_geofences_containing_point(self, point: Sequence[float], active_only: bool = True) -> List[Geofence]:
        return [g for g in self.list_geofences(active_only) if self.contains(g, point)]

    def get_target_geofence_status(self, target_id: str) -> List[Dict[str, Any]]:
        """Containment summary for every geofence the target has been evaluated against"""

        status = []
        for geofence_id, state in self.target_states.get(target_id, {}).items():
            geofence = self.geofences.get(geofence_id)
            if geofence is None:
                continue

            dwell_seconds = 0.0
            if state.is_inside and state.entered_at and state.last_position:
                dwell_seconds = max(0.0, (state.last_position.timestamp - state.entered_at).total_seconds())

            status.append({
                "geofence_id": geofence_id,
                "name": geofence.name,
                "is_inside": state.is_inside,
                "entered_at": state.entered_at.isoformat() if state.entered_at else None,
                "dwell_seconds": dwell_seconds,
                "dwell_fired": state.dwell_fired
            })

        return status

    def get_geofence_analytics(self, geofence_id: str) -> GeofenceAnalytics:
        self.get_geofence(geofence_id)
        return self.analytics[geofence_id]

    def _record_event(self, event: Event) -> None:
        analytics = self.analytics.get(event.geofence_id)
        if analytics is None:
            return

        activity = analytics.target_activity.setdefault(
            event.target_id, {"entries": 0, "exits": 0, "total_dwell_time": 0.0}
        )

        if isinstance(event, EntryEvent):
            analytics.entry_events += 1
            activity["entries"] += 1
        elif isinstance(event, ExitEvent):
            analytics.exit_events += 1
            activity["exits"] += 1
        elif isinstance(event, DwellEvent):
            analytics.dwell_events += 1
            analytics.total_dwell_seconds += event.duration_seconds
        elif isinstance(event, ViolationEvent):
            analytics.violations += 1

        analytics.hour_counts[event.timestamp.hour] += 1

    def _record_stay(self, geofence_id: str, target_id: str, state: ContainmentState, now) -> None:
        analytics = self.analytics.get(geofence_id)
        if analytics is None or state.entered_at is None:
            return

        activity = analytics.target_activity.setdefault(
            target_id, {"entries": 0, "exits": 0, "total_dwell_time": 0.0}
        )
        activity["total_dwell_time"] += max(0.0, (now - state.entered_at).total_seconds())

    # Convenience constructors

    def create_circular_geofence(self, name: str, center: Sequence[float], radius_meters: float,
                                 geofence_type: GeofenceType = GeofenceType.ALERT,
                                 rules: Optional[GeofenceRules] = None,
                                 priority: Priority = Priority.MEDIUM,
                                 warnings: Optional[List[str]] = None, **kwargs) -> Geofence:
        """Create and register a circular geofence"""

        geofence = Geofence(
            name=name,
            geometry=CircleGeometry(center=center, radius_meters=radius_meters),
            geofence_type=geofence_type,
            rules=rules or GeofenceRules(),
            priority=priority,
            **kwargs
        )
        self.add_geofence(geofence, warnings)
        return geofence

    def create_rectangular_geofence(self, name: str, bounds: Bounds,
                                    geofence_type: GeofenceType = GeofenceType.ALERT,
                                    rules: Optional[GeofenceRules] = None,
                                    priority: Priority = Priority.MEDIUM,
                                    warnings: Optional[List[str]] = None, **kwargs) -> Geofence:
        """Create and register a rectangular polygon geofence"""

        ring = [
            (bounds.south, bounds.west),
            (bounds.south, bounds.east),
            (bounds.north, bounds.east),
            (bounds.north, bounds.west)
        ]
        geofence = Geofence(
            name=name,
            geometry=PolygonGeometry(ring=ring),
            geofence_type=geofence_type,
            rules=rules or GeofenceRules(),
            priority=priority,
            **kwargs
        )
        self.add_geofence(geofence, warnings)
        return geofence
