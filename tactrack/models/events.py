"""
Tracking events - Closed set of event variants emitted by the engine

Consumers dispatch on ``event.event_type``; every variant is an immutable
dataclass carrying the target id, position and timestamp.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import ClassVar, Dict, List, Any, Optional

from tactrack.models.geofence import ViolationKind
from tactrack.models.tracking import Position, Priority, ThreatLevel

class EventType(Enum):
    ENTRY = "entry"
    EXIT = "exit"
    DWELL = "dwell"
    VIOLATION = "violation"
    PROXIMITY_ALERT = "proximity_alert"
    THREAT_DETECTED = "threat_detected"
    TARGET_LOST = "target_lost"
    OFF_ROUTE = "off_route"

@dataclass(frozen=True)
class Event:
    """Base event"""
    target_id: str
    position: Position
    timestamp: datetime

    event_type: ClassVar[EventType]

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for key, value in asdict(self).items():
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, datetime):
                value = value.isoformat()
            result[key] = value
        result["position"] = self.position.to_dict()
        result["event_type"] = self.event_type.value
        return result

@dataclass(frozen=True)
class GeofenceEvent(Event):
    """Event tied to one geofence"""
    geofence_id: str

@dataclass(frozen=True)
class EntryEvent(GeofenceEvent):
    event_type: ClassVar[EventType] = EventType.ENTRY

@dataclass(frozen=True)
class ExitEvent(GeofenceEvent):
    event_type: ClassVar[EventType] = EventType.EXIT

@dataclass(frozen=True)
class DwellEvent(GeofenceEvent):
    duration_seconds: float
    event_type: ClassVar[EventType] = EventType.DWELL

@dataclass(frozen=True)
class ViolationEvent(GeofenceEvent):
    kind: ViolationKind
    severity: Priority
    event_type: ClassVar[EventType] = EventType.VIOLATION

@dataclass(frozen=True)
class ProximityAlertEvent(Event):
    other_id: str
    distance_meters: float
    threshold_meters: float
    event_type: ClassVar[EventType] = EventType.PROXIMITY_ALERT

@dataclass(frozen=True)
class ThreatDetectedEvent(Event):
    level: ThreatLevel
    factors: List[str]
    previous_level: Optional[ThreatLevel]
    event_type: ClassVar[EventType] = EventType.THREAT_DETECTED

@dataclass(frozen=True)
class TargetLostEvent(Event):
    silence_seconds: float
    event_type: ClassVar[EventType] = EventType.TARGET_LOST

@dataclass(frozen=True)
class OffRouteEvent(Event):
    distance_meters: float
    tolerance_meters: float
    event_type: ClassVar[EventType] = EventType.OFF_ROUTE
