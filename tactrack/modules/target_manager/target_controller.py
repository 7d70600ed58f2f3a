"""
Target Manager Module - Target lifecycle and movement state

This module handles:
- Target registration and removal
- Filtered position updates with derived speed and bearing
- Bounded course history
- Active / lost sweeps driven by silence
- Movement prediction, classification and analytics
- Area and proximity queries over current positions
"""

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional, Sequence

from tactrack.errors import (
    AlreadyExistsError, CapacityExceededError, InvalidTimestampError, NotFoundError, TrackingError
)
from tactrack.models.events import Event, TargetLostEvent
from tactrack.models.tracking import (
    Bounds, MovementPattern, Position, PositionSample, PredictedPosition, Target, TargetAnalytics, TargetStatus,
    ensure_utc
)
from tactrack.modules.base_module import BaseModule
from tactrack.modules.geofence_manager.geofence_controller import GeofenceEvaluator
from tactrack.modules.geofence_manager.spatial_operations import SpatialOperations
from tactrack.modules.target_manager.movement_analyzer import MovementAnalyzer
from tactrack.modules.target_manager.position_filter import PositionFilter, create_position_filter
from tactrack.utils.config import TrackingConfig

# Displacements below this keep the previous bearing
MIN_BEARING_DISTANCE_METERS = 0.01

class TargetTracker(BaseModule):
    """Owns targets and turns position samples into movement state and events"""

    def __init__(self, config: Optional[TrackingConfig] = None,
                 geofence_evaluator: Optional[GeofenceEvaluator] = None,
                 spatial_ops: Optional[SpatialOperations] = None):
        super().__init__("target_manager", "course_tracker")
        self.config = config or TrackingConfig()
        self.spatial_ops = spatial_ops or SpatialOperations()
        self.geofence_evaluator = geofence_evaluator
        self.analyzer = MovementAnalyzer(self.config, self.spatial_ops)

        self.targets: Dict[str, Target] = {}
        self.filters: Dict[str, PositionFilter] = {}

    def add_target(self, target: Target, warnings: Optional[List[str]] = None) -> str:
        """Register a target at its initial position and return its id"""

        if target.target_id is not None and target.target_id in self.targets:
            raise AlreadyExistsError(f"Target {target.target_id} already exists")

        if len(self.targets) >= self.config.max_targets:
            raise CapacityExceededError(f"Target limit of {self.config.max_targets} reached")

        target_id = target.target_id or f"target_{uuid.uuid4().hex[:12]}"

        stored = target.copy()
        stored.target_id = target_id
        stored.course = deque(target.course, maxlen=self.config.course_history_size)
        if not stored.course or stored.course[-1] != stored.position:
            stored.course.append(stored.position)
        stored.last_seen = ensure_utc(stored.last_seen) if stored.last_seen else stored.position.timestamp

        position_filter = create_position_filter(self.config)
        position_filter.observe(stored.position)

        self.targets[target_id] = stored
        self.filters[target_id] = position_filter

        self.logger.info(f"Added {stored.target_type.value} target {target_id} ({stored.name})")
        return target_id

    def update_target(self, target_id: str, sample: PositionSample,
                      attributes: Optional[Dict[str, Any]] = None,
                      warnings: Optional[List[str]] = None) -> List[Event]:
        """Apply one position sample and return the resulting geofence events"""

        target = self._get_live_target(target_id)

        # Validation happens here, before any state changes
        raw = sample.to_position()

        filtered = self.filters[target_id].observe(raw)
        previous = target.position

        dt = (filtered.timestamp - previous.timestamp).total_seconds()
        if dt <= 0:
            error = InvalidTimestampError(
                f"Sample for {target_id} at {filtered.timestamp.isoformat()} is not after "
                f"{previous.timestamp.isoformat()}; keeping previous speed and bearing"
            )
            self._log_warning(f"{error.code}: {error}", warnings)
        else:
            distance = self.spatial_ops.haversine_distance_meters(previous.coordinate, filtered.coordinate)
            target.movement.speed = distance / dt
            if distance >= MIN_BEARING_DISTANCE_METERS:
                target.movement.bearing = self.spatial_ops.bearing_degrees(previous.coordinate, filtered.coordinate)

        target.position = filtered
        target.course.append(filtered)
        if target.last_seen is None or filtered.timestamp > target.last_seen:
            target.last_seen = filtered.timestamp

        if attributes:
            target.attributes.update(attributes)

        if target.status == TargetStatus.LOST:
            target.status = TargetStatus.ACTIVE
            self.logger.info(f"Target {target_id} reacquired")

        if self.geofence_evaluator is None:
            return []

        return self.geofence_evaluator.evaluate(
            target_id, filtered, target.target_type, target.classification
        )

    def update_intelligence(self, target_id: str, confidence: Optional[float] = None,
                            source: Optional[str] = None, reliability: Optional[str] = None,
                            now: Optional[datetime] = None) -> Target:
        """Record a new intelligence report for a target"""

        target = self._get_live_target(target_id)
        report = target.intelligence

        if confidence is not None:
            if not 0 <= confidence <= 1:
                raise TrackingError(f"Intelligence confidence must be between 0 and 1, got {confidence}")
            report.confidence = confidence
        if source is not None:
            report.source = source
        if reliability is not None:
            if reliability not in ("A", "B", "C", "D", "E", "F"):
                raise TrackingError(f"Intelligence reliability must be A-F, got {reliability!r}")
            report.reliability = reliability
        report.last_updated = now or datetime.now(timezone.utc)

        return target.copy()

    def remove_target(self, target_id: str) -> None:
        if target_id not in self.targets:
            raise NotFoundError(f"Target {target_id} not found")

        del self.targets[target_id]
        self.filters.pop(target_id, None)
        if self.geofence_evaluator is not None:
            self.geofence_evaluator.forget_target(target_id)

        self.logger.info(f"Removed target {target_id}")

    def set_status(self, target_id: str, status: Any) -> TargetStatus:
        """Explicit status change; returns the previous status

        Destroyed is terminal and lost is only reached through sweep().
        """

        target = self._get_target(target_id)
        try:
            new_status = TargetStatus(getattr(status, "value", status))
        except ValueError:
            raise TrackingError(f"Unknown target status {status!r}")

        previous = target.status
        if new_status == TargetStatus.LOST:
            raise TrackingError(f"Target {target_id} can only become lost through a sweep")
        if previous == TargetStatus.DESTROYED and new_status != TargetStatus.DESTROYED:
            raise TrackingError(f"Target {target_id} is destroyed")

        target.status = new_status

        if new_status == TargetStatus.DESTROYED and self.geofence_evaluator is not None:
            self.geofence_evaluator.forget_target(target_id)

        if previous != new_status:
            self.logger.info(f"Target {target_id} status {previous.value} -> {new_status.value}")
        return previous

    def get_target(self, target_id: str) -> Target:
        return self._get_target(target_id).copy()

    def list_targets(self) -> List[Target]:
        return [target.copy() for target in self.targets.values()]

    def snapshot_positions(self, include_lost: bool = True) -> Dict[str, Position]:
        """Current positions of targets that are still tracked"""

        statuses = {TargetStatus.ACTIVE, TargetStatus.INACTIVE}
        if include_lost:
            statuses.add(TargetStatus.LOST)
        return {tid: t.position for tid, t in self.targets.items() if t.status in statuses}

    def _get_target(self, target_id: str) -> Target:
        try:
            return self.targets[target_id]
        except KeyError:
            raise NotFoundError(f"Target {target_id} not found")

    def _get_live_target(self, target_id: str) -> Target:
        target = self._get_target(target_id)
        if target.status == TargetStatus.DESTROYED:
            raise NotFoundError(f"Target {target_id} is destroyed")
        return target

    # Movement analysis

    def predict_movement(self, target_id: str, horizon_seconds: Optional[float] = None,
                         step_seconds: Optional[float] = None) -> List[PredictedPosition]:
        return self.analyzer.predict(self._get_target(target_id), horizon_seconds, step_seconds)

    def classify_movement(self, target_id: str) -> MovementPattern:
        return self.analyzer.classify(self._get_target(target_id).course)

    def analyze_target(self, target_id: str) -> TargetAnalytics:
        return self.analyzer.analyze(self._get_target(target_id))

    # Sweep

    def sweep(self, now: Optional[datetime] = None,
              lost_timeout_seconds: Optional[float] = None) -> List[TargetLostEvent]:
        """Mark active targets silent for longer than the timeout as lost"""

        now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
        timeout = lost_timeout_seconds if lost_timeout_seconds is not None else self.config.lost_timeout_seconds
        events = []

        for target_id in list(self.targets):
            target = self.targets.get(target_id)
            if target is None or target.status != TargetStatus.ACTIVE or target.last_seen is None:
                continue

            try:
                silence = (now - target.last_seen).total_seconds()
            except Exception as e:
                self.logger.error(f"Sweep skipped target {target_id}: {e}")
                continue

            if silence > timeout:
                target.status = TargetStatus.LOST
                events.append(TargetLostEvent(target_id, target.position, now, silence))
                self.logger.warning(f"Target {target_id} lost after {silence:.0f}s without updates")

        return events

    # Queries

    def get_targets_in_area(self, bounds: Bounds) -> List[Target]:
        return [t.copy() for t in self.targets.values() if bounds.contains(t.position.lat, t.position.lon)]

    def get_targets_near_point(self, center: Sequence[float], radius_meters: float) -> List[Target]:
        """Targets within radius of center, nearest first"""

        matches = []
        for target in self.targets.values():
            distance = self.spatial_ops.haversine_distance_meters(center, target.position.coordinate)
            if distance <= radius_meters:
                matches.append((distance, target))

        matches.sort(key=lambda item: item[0])
        return [target.copy() for _, target in matches]
