"""
Geofence models - Geometry variants, rules and containment state

Geometry is a closed variant (CircleGeometry | PolygonGeometry) validated once
at construction. Geofences are immutable; an update replaces the whole object.
"""

import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from typing import Dict, List, Any, Optional, Tuple, Union, Sequence

from tactrack.errors import InvalidGeometryError, InvalidPositionError
from tactrack.models.tracking import Coordinate, Position, Priority, validate_coordinate

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

def _to_coordinate(point: Any) -> Coordinate:
    """Accept Coordinate, Position or (lat, lon) pairs"""

    if isinstance(point, Position):
        return point.coordinate
    try:
        lat, lon = float(point[0]), float(point[1])
    except (TypeError, IndexError, ValueError) as e:
        raise InvalidGeometryError(f"Invalid coordinate {point!r}: {e}")
    try:
        validate_coordinate(lat, lon)
    except InvalidPositionError as e:
        raise InvalidGeometryError(str(e))
    return Coordinate(lat, lon)

@dataclass(frozen=True)
class CircleGeometry:
    """Circle defined by center and radius in meters"""
    center: Coordinate
    radius_meters: float

    def __post_init__(self):
        object.__setattr__(self, "center", _to_coordinate(self.center))
        if not isinstance(self.radius_meters, (int, float)) or not math.isfinite(self.radius_meters):
            raise InvalidGeometryError(f"Circle radius must be a finite number, got {self.radius_meters!r}")
        if self.radius_meters <= 0:
            raise InvalidGeometryError(f"Circle radius must be positive, got {self.radius_meters}")

    @property
    def shape(self) -> str:
        return "circle"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shape": self.shape,
            "center": {"latitude": self.center.lat, "longitude": self.center.lon},
            "radius_meters": self.radius_meters
        }

@dataclass(frozen=True)
class PolygonGeometry:
    """Polygon ring of (lat, lon) vertices; closing vertex optional"""
    ring: Tuple[Coordinate, ...]

    def __post_init__(self):
        if isinstance(self.ring, (str, bytes)) or not isinstance(self.ring, Sequence):
            raise InvalidGeometryError("Polygon ring must be a sequence of coordinates")

        ring = tuple(_to_coordinate(point) for point in self.ring)
        if len(ring) > 1 and ring[0] == ring[-1]:
            ring = ring[:-1]

        if len(set(ring)) < 3:
            raise InvalidGeometryError(f"Polygon must have at least 3 distinct vertices, got {len(set(ring))}")

        object.__setattr__(self, "ring", ring)

    @property
    def shape(self) -> str:
        return "polygon"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shape": self.shape,
            "coordinates": [[c.lat, c.lon] for c in self.ring]
        }

Geometry = Union[CircleGeometry, PolygonGeometry]

class GeofenceType(Enum):
    INCLUSION = "inclusion"
    EXCLUSION = "exclusion"
    ALERT = "alert"
    RESTRICTED = "restricted"
    SAFE_ZONE = "safe_zone"

class ViolationKind(Enum):
    UNAUTHORIZED_ENTRY = "unauthorized_entry"
    UNAUTHORIZED_EXIT = "unauthorized_exit"
    TIME_RESTRICTION = "time_restriction"
    TARGET_TYPE_RESTRICTION = "target_type_restriction"

@dataclass(frozen=True)
class TimeRestriction:
    """Permitted time window; presence outside it is a violation"""
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    days_of_week: Tuple[int, ...] = (0, 1, 2, 3, 4, 5, 6)  # 0 = Sunday
    tz_name: Optional[str] = None  # IANA zone for the window, e.g. "Europe/Berlin"

    def __post_init__(self):
        for value in (self.start_time, self.end_time):
            if not isinstance(value, str) or not _HHMM.match(value):
                raise InvalidGeometryError(f"Time restriction bound must be HH:MM, got {value!r}")

        days = tuple(sorted(set(self.days_of_week)))
        if any(not isinstance(day, int) or not 0 <= day <= 6 for day in days):
            raise InvalidGeometryError(f"Days of week must be in 0-6, got {self.days_of_week}")
        object.__setattr__(self, "days_of_week", days)

        if self.tz_name is not None:
            try:
                ZoneInfo(self.tz_name)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise InvalidGeometryError(f"Unknown time zone {self.tz_name!r}: {e}")

    @staticmethod
    def _to_minutes(value: str) -> int:
        hours, minutes = value.split(":")
        return int(hours) * 60 + int(minutes)

    def is_permitted(self, moment: datetime) -> bool:
        """True when moment falls inside the permitted window"""

        if self.tz_name and moment.tzinfo is not None:
            moment = moment.astimezone(ZoneInfo(self.tz_name))

        # Python weekday(): Monday = 0; restriction days use Sunday = 0
        day = (moment.weekday() + 1) % 7
        if day not in self.days_of_week:
            return False

        current = moment.hour * 60 + moment.minute
        start = self._to_minutes(self.start_time)
        end = self._to_minutes(self.end_time)

        if start <= end:
            return start <= current <= end
        # Window crosses midnight
        return current >= start or current <= end

@dataclass(frozen=True)
class GeofenceRules:
    """Rules turning containment changes into events"""
    trigger_on_entry: bool = True
    trigger_on_exit: bool = True
    trigger_on_dwell: bool = False
    dwell_seconds: Optional[float] = None
    allowed_target_types: Optional[Tuple[str, ...]] = None
    allowed_classifications: Optional[Tuple[str, ...]] = None
    time_restriction: Optional[TimeRestriction] = None

    def __post_init__(self):
        if self.trigger_on_dwell and (self.dwell_seconds is None or self.dwell_seconds < 0):
            raise InvalidGeometryError("Dwell trigger requires a non-negative dwell_seconds")
        for name in ("allowed_target_types", "allowed_classifications"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, tuple(getattr(v, "value", v) for v in value))

    def is_target_allowed(self, target_type: Optional[str], classification: Optional[str]) -> bool:
        if self.allowed_target_types is not None and target_type and target_type not in self.allowed_target_types:
            return False
        if (self.allowed_classifications is not None and classification
                and classification not in self.allowed_classifications):
            return False
        return True

@dataclass(frozen=True)
class Geofence:
    """Named region with containment rules"""
    name: str
    geometry: Geometry
    geofence_type: GeofenceType = GeofenceType.ALERT
    rules: GeofenceRules = field(default_factory=GeofenceRules)
    priority: Priority = Priority.MEDIUM
    is_active: bool = True
    geofence_id: str = field(default_factory=lambda: f"geofence_{uuid.uuid4().hex[:12]}")
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), compare=False)

    def __post_init__(self):
        if not isinstance(self.geometry, (CircleGeometry, PolygonGeometry)):
            raise InvalidGeometryError(f"Unsupported geometry {type(self.geometry).__name__}")

    @property
    def shape(self) -> str:
        return self.geometry.shape

    def to_dict(self) -> Dict[str, Any]:
        return {
            "geofence_id": self.geofence_id,
            "name": self.name,
            "description": self.description,
            "geofence_type": self.geofence_type.value,
            "priority": self.priority.value,
            "geometry": self.geometry.to_dict(),
            "is_active": self.is_active,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat()
        }

@dataclass
class ContainmentState:
    """Per (target, geofence) containment tracking"""
    is_inside: bool = False
    entered_at: Optional[datetime] = None
    dwell_fired: bool = False
    last_position: Optional[Position] = None

@dataclass
class GeofenceAnalytics:
    """Running event counters for one geofence"""
    geofence_id: str
    entry_events: int = 0
    exit_events: int = 0
    dwell_events: int = 0
    violations: int = 0
    total_dwell_seconds: float = 0.0
    hour_counts: List[int] = field(default_factory=lambda: [0] * 24)
    target_activity: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def total_events(self) -> int:
        return self.entry_events + self.exit_events + self.dwell_events + self.violations

    @property
    def average_dwell_time(self) -> float:
        return self.total_dwell_seconds / self.dwell_events if self.dwell_events else 0.0

    @property
    def most_active_hours(self) -> List[int]:
        ranked = sorted(range(24), key=lambda hour: self.hour_counts[hour], reverse=True)
        return [hour for hour in ranked[:5] if self.hour_counts[hour] > 0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "geofence_id": self.geofence_id,
            "total_events": self.total_events,
            "entry_events": self.entry_events,
            "exit_events": self.exit_events,
            "dwell_events": self.dwell_events,
            "violations": self.violations,
            "average_dwell_time": self.average_dwell_time,
            "most_active_hours": self.most_active_hours,
            "target_activity": [
                {"target_id": target_id, **activity}
                for target_id, activity in self.target_activity.items()
            ]
        }
