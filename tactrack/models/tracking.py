"""
Tracking models - Positions, targets and derived movement data
"""

import math
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Any, Optional, NamedTuple, Deque

from tactrack.errors import InvalidPositionError

class Coordinate(NamedTuple):
    """Geographic coordinate in decimal degrees"""
    lat: float
    lon: float

def validate_coordinate(lat: float, lon: float) -> None:
    """Raise InvalidPositionError for non-finite or out-of-range coordinates"""

    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidPositionError(f"Coordinates must be finite, got ({lat}, {lon})")
    if not -90 <= lat <= 90:
        raise InvalidPositionError(f"Latitude {lat} outside [-90, 90]")
    if not -180 <= lon <= 180:
        raise InvalidPositionError(f"Longitude {lon} outside [-180, 180]")

def ensure_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC"""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment

@dataclass(frozen=True)
class Position:
    """Timestamped position fix"""
    lat: float
    lon: float
    accuracy: float  # meters
    timestamp: datetime
    altitude: Optional[float] = None

    def __post_init__(self):
        validate_coordinate(self.lat, self.lon)
        if not math.isfinite(self.accuracy) or self.accuracy < 0:
            raise InvalidPositionError(f"Accuracy must be a non-negative number, got {self.accuracy}")
        if not isinstance(self.timestamp, datetime):
            raise InvalidPositionError(f"Timestamp must be a datetime, got {self.timestamp!r}")
        object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lon)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.lat,
            "longitude": self.lon,
            "altitude": self.altitude,
            "accuracy": self.accuracy,
            "timestamp": self.timestamp.isoformat()
        }

@dataclass
class PositionSample:
    """Raw observation pushed by a position source"""
    entity_id: str
    lat: float
    lon: float
    accuracy: float
    timestamp_millis: int
    altitude: Optional[float] = None
    speed: Optional[float] = None  # m/s, as reported by the source
    bearing: Optional[float] = None  # degrees, as reported by the source

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_millis / 1000.0, tz=timezone.utc)

    def to_position(self) -> Position:
        return Position(
            lat=self.lat,
            lon=self.lon,
            accuracy=self.accuracy,
            timestamp=self.timestamp,
            altitude=self.altitude
        )

class TargetType(Enum):
    PERSON = "person"
    VEHICLE = "vehicle"
    AIRCRAFT = "aircraft"
    VESSEL = "vessel"
    EQUIPMENT = "equipment"
    UNKNOWN = "unknown"

class Classification(Enum):
    FRIENDLY = "friendly"
    HOSTILE = "hostile"
    NEUTRAL = "neutral"
    UNKNOWN = "unknown"

class Priority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

class TargetStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    LOST = "lost"
    DESTROYED = "destroyed"

class MovementPattern(Enum):
    STATIONARY = "stationary"
    LINEAR = "linear"
    CIRCULAR = "circular"
    RANDOM = "random"
    PATROL = "patrol"

class ThreatLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return ["low", "medium", "high", "critical"].index(self.value)

@dataclass
class MovementState:
    """Derived speed and bearing"""
    speed: float = 0.0  # m/s
    bearing: float = 0.0  # degrees

@dataclass
class IntelligenceReport:
    """Source confidence for a target"""
    confidence: float = 0.5  # 0-1
    source: str = "unknown"
    reliability: str = "F"  # NATO reliability scale A-F
    last_updated: Optional[datetime] = None

@dataclass
class Target:
    """Tracked entity"""
    name: str
    position: Position
    target_type: TargetType = TargetType.UNKNOWN
    classification: Classification = Classification.UNKNOWN
    priority: Priority = Priority.MEDIUM
    status: TargetStatus = TargetStatus.ACTIVE
    target_id: Optional[str] = None
    movement: MovementState = field(default_factory=MovementState)
    course: Deque[Position] = field(default_factory=deque)
    intelligence: IntelligenceReport = field(default_factory=IntelligenceReport)
    attributes: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    last_seen: Optional[datetime] = None

    def copy(self) -> "Target":
        """Detached copy safe to hand to callers"""
        return replace(
            self,
            movement=replace(self.movement),
            course=deque(self.course, maxlen=self.course.maxlen),
            intelligence=replace(self.intelligence),
            attributes=dict(self.attributes),
            metadata=dict(self.metadata)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "name": self.name,
            "target_type": self.target_type.value,
            "classification": self.classification.value,
            "priority": self.priority.value,
            "status": self.status.value,
            "position": self.position.to_dict(),
            "movement": {"speed": self.movement.speed, "bearing": self.movement.bearing},
            "course_length": len(self.course),
            "intelligence": {
                "confidence": self.intelligence.confidence,
                "source": self.intelligence.source,
                "reliability": self.intelligence.reliability,
                "last_updated": self.intelligence.last_updated.isoformat() if self.intelligence.last_updated else None
            },
            "attributes": self.attributes,
            "metadata": self.metadata,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None
        }

@dataclass(frozen=True)
class PredictedPosition:
    """Point on an extrapolated track"""
    coordinate: Coordinate
    confidence: float
    timestamp: datetime

@dataclass
class FrequentArea:
    """Cluster of course points"""
    center: Coordinate
    radius: float  # meters
    time_spent: float  # seconds
    point_count: int

@dataclass
class TargetAnalytics:
    """Course-derived analytics for one target"""
    target_id: str
    total_distance: float
    average_speed: float
    max_speed: float
    time_active: float  # seconds
    movement_pattern: MovementPattern
    behavior_score: float  # 0-1, higher = more predictable
    frequent_areas: List[FrequentArea] = field(default_factory=list)

@dataclass(frozen=True)
class ThreatAssessment:
    """Rule-table threat result"""
    level: ThreatLevel
    factors: List[str]

@dataclass(frozen=True)
class Bounds:
    """Rectangular area in decimal degrees"""
    north: float
    south: float
    east: float
    west: float

    def __post_init__(self):
        validate_coordinate(self.north, self.east)
        validate_coordinate(self.south, self.west)
        if self.south > self.north:
            raise InvalidPositionError(f"South bound {self.south} above north bound {self.north}")

    def contains(self, lat: float, lon: float) -> bool:
        if not self.south <= lat <= self.north:
            return False
        if self.west <= self.east:
            return self.west <= lon <= self.east
        # Crosses the antimeridian
        return lon >= self.west or lon <= self.east
