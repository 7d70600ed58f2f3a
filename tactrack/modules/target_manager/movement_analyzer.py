"""
Movement Analyzer - Course-derived movement analytics

This module provides:
- Movement pattern classification from bearing changes
- Linear movement prediction with decaying confidence
- Target analytics (distance, speeds, behaviour score)
- Frequent area detection by radius clustering
"""

from datetime import timedelta
from typing import List, Optional, Sequence

import numpy as np

from tactrack.models.tracking import (
    Coordinate, FrequentArea, MovementPattern, Position, PredictedPosition, Target, TargetAnalytics
)
from tactrack.modules.geofence_manager.spatial_operations import SpatialOperations
from tactrack.utils.config import TrackingConfig
from tactrack.utils.logger import get_logger

# Segments shorter than this carry no usable bearing
MIN_BEARING_SEGMENT_METERS = 0.01

class MovementAnalyzer:
    """Classify, predict and summarise target movement"""

    def __init__(self, config: Optional[TrackingConfig] = None,
                 spatial_ops: Optional[SpatialOperations] = None):
        self.logger = get_logger(__name__)
        self.config = config or TrackingConfig()
        self.spatial_ops = spatial_ops or SpatialOperations()

        # Classification thresholds (degrees)
        self.linear_bearing_change = 10.0
        self.random_bearing_change = 90.0
        self.circular_tolerance = 45.0

    def segment_speeds(self, course: Sequence[Position]) -> List[float]:
        """Speed of every consecutive course segment with a positive time step"""

        course = list(course)
        speeds = []
        for prev, curr in zip(course, course[1:]):
            dt = (curr.timestamp - prev.timestamp).total_seconds()
            if dt <= 0:
                continue
            speeds.append(self.spatial_ops.haversine_distance_meters(prev.coordinate, curr.coordinate) / dt)
        return speeds

    def bearing_changes(self, course: Sequence[Position]) -> List[float]:
        """Absolute bearing change between consecutive segments, folded to [0, 180]"""

        course = list(course)
        bearings = []
        for prev, curr in zip(course, course[1:]):
            if self.spatial_ops.haversine_distance_meters(prev.coordinate, curr.coordinate) < MIN_BEARING_SEGMENT_METERS:
                continue
            bearings.append(self.spatial_ops.bearing_degrees(prev.coordinate, curr.coordinate))

        changes = []
        for previous, current in zip(bearings, bearings[1:]):
            change = abs(current - previous)
            if change > 180:
                change = 360 - change
            changes.append(change)
        return changes

    def classify(self, course: Sequence[Position]) -> MovementPattern:
        """Classify a course as stationary, linear, circular, random or patrol"""

        course = list(course)
        if len(course) < 3:
            return MovementPattern.STATIONARY

        speeds = self.segment_speeds(course)
        if not speeds or all(speed < self.config.stationary_speed_threshold for speed in speeds):
            return MovementPattern.STATIONARY

        changes = self.bearing_changes(course)
        if not changes:
            return MovementPattern.LINEAR

        mean_change = float(np.mean(changes))
        total_change = float(np.sum(changes))

        if mean_change < self.linear_bearing_change:
            return MovementPattern.LINEAR
        if abs(total_change - 360) < self.circular_tolerance:
            return MovementPattern.CIRCULAR
        if mean_change > self.random_bearing_change:
            return MovementPattern.RANDOM
        return MovementPattern.PATROL

    def predict(self, target: Target, horizon_seconds: Optional[float] = None,
                step_seconds: Optional[float] = None) -> List[PredictedPosition]:
        """Extrapolate along the current speed and bearing

        Confidence decays linearly with the time offset and never drops below
        the configured minimum; timestamps are relative to the last fix.
        """

        horizon = horizon_seconds if horizon_seconds is not None else self.config.prediction_horizon_seconds
        step = step_seconds if step_seconds is not None else self.config.prediction_step_seconds

        if horizon <= 0 or step <= 0:
            return []

        origin = target.position.coordinate
        speed = target.movement.speed
        bearing = target.movement.bearing
        base_time = target.position.timestamp

        predictions = []
        for i in range(1, int(horizon // step) + 1):
            offset = i * step
            destination = self.spatial_ops.destination(origin, bearing, speed * offset)
            confidence = max(self.config.min_prediction_confidence, 1 - offset / horizon)

            predictions.append(PredictedPosition(
                coordinate=destination,
                confidence=confidence,
                timestamp=base_time + timedelta(seconds=offset)
            ))

        return predictions

    def analyze(self, target: Target) -> TargetAnalytics:
        """Summarise a target's course"""

        course = list(target.course)

        total_distance = self.spatial_ops.line_length_meters([p.coordinate for p in course])
        speeds = self.segment_speeds(course)

        if speeds:
            speed_array = np.array(speeds)
            average_speed = float(speed_array.mean())
            max_speed = float(speed_array.max())
            # Higher score = more predictable speed profile
            behavior_score = max(0.0, 1 - min(float(speed_array.var()) / 10, 1))
        else:
            average_speed = 0.0
            max_speed = 0.0
            behavior_score = 1.0

        time_active = 0.0
        if len(course) > 1:
            time_active = max(0.0, (course[-1].timestamp - course[0].timestamp).total_seconds())

        self.logger.debug(f"Analyzed {len(course)} course points for target {target.target_id}")

        return TargetAnalytics(
            target_id=target.target_id,
            total_distance=total_distance,
            average_speed=average_speed,
            max_speed=max_speed,
            time_active=time_active,
            movement_pattern=self.classify(course),
            behavior_score=behavior_score,
            frequent_areas=self.find_frequent_areas(course)
        )

    def find_frequent_areas(self, course: Sequence[Position]) -> List[FrequentArea]:
        """Greedy radius clustering of course points

        Each unassigned point seeds a cluster that absorbs every unassigned
        point within the configured radius; clusters below the minimum point
        count are discarded.
        """

        radius = self.config.frequent_area_radius_meters
        assigned = [False] * len(course)
        areas = []

        for i, seed in enumerate(course):
            if assigned[i]:
                continue

            members = []
            for j in range(i, len(course)):
                if not assigned[j] and self.spatial_ops.haversine_distance_meters(
                        seed.coordinate, course[j].coordinate) <= radius:
                    assigned[j] = True
                    members.append(course[j])

            if len(members) < self.config.frequent_area_min_points:
                continue

            center = self._centroid(members)
            spread = max(self.spatial_ops.haversine_distance_meters(center, m.coordinate) for m in members)
            time_spent = max(0.0, (members[-1].timestamp - members[0].timestamp).total_seconds())

            areas.append(FrequentArea(
                center=center,
                radius=spread,
                time_spent=time_spent,
                point_count=len(members)
            ))

        areas.sort(key=lambda area: area.point_count, reverse=True)
        return areas

    def _centroid(self, positions: Sequence[Position]) -> Coordinate:
        coords = np.array([[p.lat, p.lon] for p in positions])
        lat, lon = coords.mean(axis=0)
        return Coordinate(float(lat), float(lon))
