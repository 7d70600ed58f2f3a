"""
Session Manager Module - Monitoring context over targets and geofences

This module handles:
- Session lifecycle and the periodic sweep task
- Per-target serialisation of updates
- Event fan-in from tracker, geofences, alerts and routes
- Session bounds, filters and spatial queries

Mutating operations return ModuleResult; tracking errors never escape.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional, Sequence, Union

from tactrack.errors import SessionInactiveError
from tactrack.models.events import Event
from tactrack.models.geofence import Geofence
from tactrack.models.tracking import Bounds, PositionSample, Target, ensure_utc
from tactrack.modules.alert_manager.alert_controller import AlertDispatcher
from tactrack.modules.alert_manager.route_monitor import RouteMonitor
from tactrack.modules.base_module import BaseModule, ModuleResult
from tactrack.modules.geofence_manager.geofence_controller import GeofenceEvaluator
from tactrack.modules.geofence_manager.spatial_operations import SpatialOperations
from tactrack.modules.geofence_manager.zone_validator import ZoneValidator
from tactrack.modules.session_manager.event_stream import EventStream
from tactrack.modules.target_manager.target_controller import TargetTracker
from tactrack.utils.config import TrackingConfig

@dataclass
class SessionFilters:
    """Optional allow-lists applied to session target listings"""
    target_types: Optional[Sequence[str]] = None
    classifications: Optional[Sequence[str]] = None
    priorities: Optional[Sequence[str]] = None
    statuses: Optional[Sequence[str]] = None

    def __post_init__(self):
        for name in ("target_types", "classifications", "priorities", "statuses"):
            values = getattr(self, name)
            if values is not None:
                setattr(self, name, {getattr(v, "value", v) for v in values})

    def matches(self, target: Target) -> bool:
        checks = [
            (self.target_types, target.target_type),
            (self.classifications, target.classification),
            (self.priorities, target.priority),
            (self.statuses, target.status)
        ]
        return all(allowed is None or value.value in allowed for allowed, value in checks)

class TrackingSession(BaseModule):
    """One monitoring context owning its tracker, geofences and alert state"""

    def __init__(self, name: str = "Tracking session", config: Optional[TrackingConfig] = None,
                 bounds: Optional[Bounds] = None, filters: Optional[SessionFilters] = None,
                 session_id: Optional[str] = None):
        super().__init__("session_manager", "asyncio")
        self.config = config or TrackingConfig()

        validation = self.config.validate()
        if not validation["valid"]:
            raise ValueError(f"Invalid tracking configuration: {validation['errors']}")
        for message in validation["warnings"]:
            self.logger.warning(message)

        self.session_id = session_id or f"session_{uuid.uuid4().hex[:12]}"
        self.name = name
        self.bounds = bounds
        self.filters = filters or SessionFilters()
        self.created_at = datetime.now(timezone.utc)

        self.spatial_ops = SpatialOperations()
        self.geofence_evaluator = GeofenceEvaluator(
            self.spatial_ops, ZoneValidator(self.spatial_ops), self.config.max_geofences
        )
        self.tracker = TargetTracker(self.config, self.geofence_evaluator, self.spatial_ops)
        self.alert_dispatcher = AlertDispatcher(self.config, self.spatial_ops)
        self.route_monitor = RouteMonitor(self.config, self.spatial_ops)
        self.events = EventStream(self.config.event_queue_size)

        self.is_active = True
        self.running = False
        self.sweep_task: Optional[asyncio.Task] = None

        self._target_locks: Dict[str, asyncio.Lock] = {}
        self._geofence_lock = asyncio.Lock()

    # Lifecycle

    async def start(self) -> None:
        """Start the periodic sweep"""

        if not self.is_active:
            raise SessionInactiveError(f"Session {self.session_id} has been stopped")
        if self.running:
            return

        self.running = True
        self.sweep_task = asyncio.create_task(self._sweep_loop())
        self.logger.info(f"Started session {self.session_id} ({self.name})")

    async def stop(self) -> None:
        """Cancel the sweep and freeze the session"""

        self.running = False
        self.is_active = False

        if self.sweep_task:
            self.sweep_task.cancel()
            try:
                await self.sweep_task
            except asyncio.CancelledError:
                pass
            self.sweep_task = None

        self.logger.info(f"Stopped session {self.session_id}")

    async def __aenter__(self) -> "TrackingSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _sweep_loop(self) -> None:
        while self.running:
            try:
                await asyncio.sleep(self.config.sweep_interval_seconds)
                result = self.execute("sweep", self._sweep, None)
                if not result.success:
                    self.logger.error(f"Sweep failed: {result.error_message}")
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error(f"Error in sweep loop: {e}")

    def _require_active(self) -> None:
        if not self.is_active:
            raise SessionInactiveError(f"Session {self.session_id} has been stopped")

    def _lock_for(self, target_id: str) -> asyncio.Lock:
        lock = self._target_locks.get(target_id)
        if lock is None:
            lock = asyncio.Lock()
            self._target_locks[target_id] = lock
        return lock

    def _release_unknown(self, target_id: str) -> None:
        """Drop the lock created for an id that names no tracked target"""
        if target_id not in self.tracker.targets:
            self._target_locks.pop(target_id, None)

    # Targets

    async def add_target(self, target: Target) -> ModuleResult:
        key = target.target_id or ""
        async with self._lock_for(key):
            result = self.execute("add_target", self._add_target, target)
        self._release_unknown(key)
        return result

    def _add_target(self, target: Target) -> str:
        self._require_active()
        target_id = self.tracker.add_target(target, self._collected_warnings)
        self._check_bounds(target_id, target.position.lat, target.position.lon)
        return target_id

    async def update_target(self, sample: PositionSample,
                            attributes: Optional[Dict[str, Any]] = None) -> ModuleResult:
        """Apply one sample; data is the list of events it produced"""

        async with self._lock_for(sample.entity_id):
            result = self.execute("update_target", self._update_target, sample, attributes)
        self._release_unknown(sample.entity_id)
        return result

    def _update_target(self, sample: PositionSample, attributes: Optional[Dict[str, Any]]) -> List[Event]:
        self._require_active()
        target_id = sample.entity_id

        events: List[Event] = list(
            self.tracker.update_target(target_id, sample, attributes, self._collected_warnings)
        )
        target = self.tracker.targets[target_id]

        events.extend(self.alert_dispatcher.check_proximity(self.tracker.snapshot_positions(include_lost=False)))
        events.extend(self.alert_dispatcher.check_threat(target))
        events.extend(self.route_monitor.check(target_id, target.position))

        self._check_bounds(target_id, target.position.lat, target.position.lon)
        self.events.publish_all(events)
        return events

    async def remove_target(self, target_id: str) -> ModuleResult:
        async with self._lock_for(target_id):
            result = self.execute("remove_target", self._remove_target, target_id)
        if result.success:
            self._target_locks.pop(target_id, None)
        return result

    def _remove_target(self, target_id: str) -> None:
        self._require_active()
        self.tracker.remove_target(target_id)
        self.alert_dispatcher.forget_target(target_id)
        self.route_monitor.forget_target(target_id)

    async def set_target_status(self, target_id: str, status: Any) -> ModuleResult:
        async with self._lock_for(target_id):
            result = self.execute("set_target_status", self._guarded(self.tracker.set_status), target_id, status)
        self._release_unknown(target_id)
        return result

    async def update_intelligence(self, target_id: str, **report: Any) -> ModuleResult:
        async with self._lock_for(target_id):
            result = self.execute("update_intelligence", self._guarded(self.tracker.update_intelligence),
                                  target_id, **report)
        self._release_unknown(target_id)
        return result

    def _check_bounds(self, target_id: str, lat: float, lon: float) -> None:
        if self.bounds is not None and not self.bounds.contains(lat, lon):
            self._log_warning(f"Target {target_id} at ({lat:.6f}, {lon:.6f}) is outside session bounds")

    def _guarded(self, handler, collect_warnings: bool = False):
        """Wrap a component call with the active check and warning collection"""

        def run(*args, **kwargs):
            self._require_active()
            if collect_warnings:
                kwargs["warnings"] = self._collected_warnings
            return handler(*args, **kwargs)
        return run

    # Geofences

    async def add_geofence(self, geofence: Union[Geofence, Dict[str, Any]]) -> ModuleResult:
        """Register a Geofence or a definition dictionary"""

        async with self._geofence_lock:
            if isinstance(geofence, Geofence):
                handler = self.geofence_evaluator.add_geofence
            else:
                handler = self.geofence_evaluator.add_geofence_definition
            return self.execute("add_geofence", self._guarded(handler, collect_warnings=True), geofence)

    async def update_geofence(self, geofence: Geofence) -> ModuleResult:
        async with self._geofence_lock:
            handler = self._guarded(self.geofence_evaluator.update_geofence, collect_warnings=True)
            return self.execute("update_geofence", handler, geofence)

    async def remove_geofence(self, geofence_id: str) -> ModuleResult:
        async with self._geofence_lock:
            return self.execute("remove_geofence", self._guarded(self.geofence_evaluator.remove_geofence),
                                geofence_id)

    # Alert rules

    async def register_proximity_rule(self, target_a: str, target_b: str, threshold_meters: float,
                                      repeat: bool = False) -> ModuleResult:
        return self.execute("register_proximity_rule",
                            self._guarded(self.alert_dispatcher.register_proximity_rule),
                            target_a, target_b, threshold_meters, repeat)

    async def remove_proximity_rule(self, target_a: str, target_b: str) -> ModuleResult:
        return self.execute("remove_proximity_rule",
                            self._guarded(self.alert_dispatcher.remove_proximity_rule), target_a, target_b)

    async def assign_route(self, target_id: str, line: Sequence[Sequence[float]],
                           tolerance_meters: Optional[float] = None) -> ModuleResult:
        async with self._lock_for(target_id):
            return self.execute("assign_route", self._guarded(self.route_monitor.assign_route),
                                target_id, line, tolerance_meters)

    async def clear_route(self, target_id: str) -> ModuleResult:
        async with self._lock_for(target_id):
            return self.execute("clear_route", self._guarded(self.route_monitor.clear_route), target_id)

    # Sweep

    async def run_sweep(self, now: Optional[datetime] = None) -> ModuleResult:
        """Run one lost-target and time-restriction sweep; data is the event list"""

        return self.execute("sweep", self._sweep, now)

    def _sweep(self, now: Optional[datetime]) -> List[Event]:
        self._require_active()
        now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)

        events: List[Event] = []
        events.extend(self.tracker.sweep(now, self.config.lost_timeout_seconds))
        events.extend(self.geofence_evaluator.check_time_restrictions(now))

        self.events.publish_all(events)
        if events:
            self.logger.info(f"Sweep produced {len(events)} events")
        return events

    # Queries

    def get_target(self, target_id: str) -> ModuleResult:
        return self.execute("get_target", self.tracker.get_target, target_id)

    def get_session_targets(self, apply_filters: bool = True) -> List[Target]:
        targets = self.tracker.list_targets()
        if not apply_filters:
            return targets
        return [target for target in targets if self.filters.matches(target)]

    def get_targets_in_area(self, bounds: Optional[Bounds] = None) -> List[Target]:
        bounds = bounds or self.bounds
        if bounds is None:
            return self.tracker.list_targets()
        return self.tracker.get_targets_in_area(bounds)

    def get_targets_near_point(self, center: Sequence[float], radius_meters: float) -> List[Target]:
        return self.tracker.get_targets_near_point(center, radius_meters)

    def get_target_geofence_status(self, target_id: str) -> ModuleResult:
        def status(tid: str) -> List[Dict[str, Any]]:
            self.tracker.get_target(tid)
            return self.geofence_evaluator.get_target_geofence_status(tid)

        return self.execute("get_target_geofence_status", status, target_id)

    def predict_movement(self, target_id: str, horizon_seconds: Optional[float] = None,
                         step_seconds: Optional[float] = None) -> ModuleResult:
        return self.execute("predict_movement", self.tracker.predict_movement,
                            target_id, horizon_seconds, step_seconds)

    def analyze_target(self, target_id: str) -> ModuleResult:
        return self.execute("analyze_target", self.tracker.analyze_target, target_id)

    def assess_threat(self, target_id: str) -> ModuleResult:
        def assess(tid: str):
            return self.alert_dispatcher.assess_threat(self.tracker.get_target(tid))

        return self.execute("assess_threat", assess, target_id)

    def get_status(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "name": self.name,
            "is_active": self.is_active,
            "running": self.running,
            "created_at": self.created_at.isoformat(),
            "targets": len(self.tracker.targets),
            "geofences": len(self.geofence_evaluator.geofences),
            "proximity_rules": len(self.alert_dispatcher.proximity_rules),
            "routes": len(self.route_monitor.routes),
            "events_published": self.events.published,
            "events_dropped": self.events.dropped,
            "events_queued": self.events.qsize()
        }
