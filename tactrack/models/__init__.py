"""
Tracking Models Package - Data model shared by all tracking modules
"""

from tactrack.models.tracking import (
    Coordinate, Position, PositionSample, TargetType, Classification, Priority,
    TargetStatus, MovementPattern, ThreatLevel, MovementState, IntelligenceReport,
    Target, PredictedPosition, FrequentArea, TargetAnalytics, ThreatAssessment, Bounds
)
from tactrack.models.geofence import (
    CircleGeometry, PolygonGeometry, Geometry, GeofenceType, ViolationKind,
    TimeRestriction, GeofenceRules, Geofence, ContainmentState, GeofenceAnalytics
)
from tactrack.models.events import (
    EventType, Event, GeofenceEvent, EntryEvent, ExitEvent, DwellEvent, ViolationEvent,
    ProximityAlertEvent, ThreatDetectedEvent, TargetLostEvent, OffRouteEvent
)

__all__ = [
    "Coordinate", "Position", "PositionSample", "TargetType", "Classification", "Priority",
    "TargetStatus", "MovementPattern", "ThreatLevel", "MovementState", "IntelligenceReport",
    "Target", "PredictedPosition", "FrequentArea", "TargetAnalytics", "ThreatAssessment", "Bounds",
    "CircleGeometry", "PolygonGeometry", "Geometry", "GeofenceType", "ViolationKind",
    "TimeRestriction", "GeofenceRules", "Geofence", "ContainmentState", "GeofenceAnalytics",
    "EventType", "Event", "GeofenceEvent", "EntryEvent", "ExitEvent", "DwellEvent", "ViolationEvent",
    "ProximityAlertEvent", "ThreatDetectedEvent", "TargetLostEvent", "OffRouteEvent"
]
