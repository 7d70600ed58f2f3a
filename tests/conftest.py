"""
Shared fixtures for the tactrack test suite
"""

from datetime import datetime, timedelta, timezone

import pytest

from tactrack.models import Position, PositionSample, Target, TargetType, Classification, Priority
from tactrack.modules.geofence_manager.spatial_operations import SpatialOperations

# Monday, 12:00 UTC
BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def spatial_ops():
    return SpatialOperations()


@pytest.fixture
def make_position():
    """Factory for positions offset in seconds from the base time"""

    def _make(lat, lon, seconds=0.0, accuracy=5.0):
        return Position(lat=lat, lon=lon, accuracy=accuracy, timestamp=BASE_TIME + timedelta(seconds=seconds))

    return _make


@pytest.fixture
def make_sample():
    """Factory for raw samples offset in seconds from the base time"""

    def _make(entity_id, lat, lon, seconds=0.0, accuracy=5.0):
        timestamp = BASE_TIME + timedelta(seconds=seconds)
        return PositionSample(
            entity_id=entity_id,
            lat=lat,
            lon=lon,
            accuracy=accuracy,
            timestamp_millis=int(timestamp.timestamp() * 1000)
        )

    return _make


@pytest.fixture
def make_target(make_position):
    """Factory for targets at an initial position"""

    def _make(target_id=None, lat=0.0, lon=0.0, seconds=0.0,
              target_type=TargetType.VEHICLE, classification=Classification.UNKNOWN,
              priority=Priority.MEDIUM, name=None):
        return Target(
            name=name or f"Target {target_id}",
            position=make_position(lat, lon, seconds),
            target_type=target_type,
            classification=classification,
            priority=priority,
            target_id=target_id
        )

    return _make
