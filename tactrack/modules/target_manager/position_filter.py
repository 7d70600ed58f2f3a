"""
Position Filters - Per-target smoothing of noisy position fixes

This module provides:
- PositionFilter strategy interface (observe raw fix -> filtered fix)
- Accuracy-weighted velocity-predicting filter (default)
- Constant-velocity Kalman filter over (lat, lon, lat rate, lon rate)
- Factory selecting a strategy by configuration name
"""

import math
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Optional

import numpy as np
from filterpy.common import Q_discrete_white_noise
from filterpy.kalman import KalmanFilter

from tactrack.models.tracking import Position
from tactrack.utils.config import TrackingConfig

METERS_PER_DEGREE_LAT = 111320.0

class PositionFilter(ABC):
    """Strategy interface for position smoothing"""

    @abstractmethod
    def observe(self, raw: Position) -> Position:
        """Feed one raw fix and return the filtered estimate"""

    @abstractmethod
    def reset(self) -> None:
        """Forget all internal state"""

    @property
    @abstractmethod
    def initialized(self) -> bool:
        """True once the first fix has been observed"""

def _clamp_coordinate(lat: float, lon: float):
    lat = min(90.0, max(-90.0, lat))
    lon = ((lon + 180.0) % 360.0) - 180.0 if not -180.0 <= lon <= 180.0 else lon
    return lat, lon

class AccuracyWeightedFilter(PositionFilter):
    """Scalar-gain filter blending a velocity prediction with each fix

    Gain K = P / (P + R) with R derived from reported accuracy, so a smaller
    accuracy value pulls the estimate harder towards the raw reading.
    """

    def __init__(self, min_accuracy: float = 1.0, velocity_decay: float = 0.1,
                 process_noise: float = 0.1, initial_variance: float = 1.0):
        self.min_accuracy = max(min_accuracy, 1e-6)
        self.velocity_decay = velocity_decay
        self.process_noise = process_noise
        self.initial_variance = initial_variance
        self.reset()

    def reset(self) -> None:
        self.last_lat = 0.0
        self.last_lon = 0.0
        self.velocity_lat = 0.0
        self.velocity_lon = 0.0
        self.variance = self.initial_variance
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def observe(self, raw: Position) -> Position:
        if not self._initialized:
            self.last_lat = raw.lat
            self.last_lon = raw.lon
            self._initialized = True
            return raw

        # Measurement noise from GPS accuracy, floored to avoid zero division
        measurement_noise = max(raw.accuracy, self.min_accuracy) / 10.0

        predicted_lat = self.last_lat + self.velocity_lat
        predicted_lon = self.last_lon + self.velocity_lon

        gain = self.variance / (self.variance + measurement_noise)

        # Longitude difference taken the short way round the antimeridian
        delta_lon = ((raw.lon - predicted_lon + 180.0) % 360.0) - 180.0

        filtered_lat = predicted_lat + gain * (raw.lat - predicted_lat)
        unwrapped_lon = predicted_lon + gain * delta_lon
        filtered_lat, filtered_lon = _clamp_coordinate(filtered_lat, unwrapped_lon)

        self.velocity_lat = (filtered_lat - predicted_lat) * self.velocity_decay
        self.velocity_lon = (unwrapped_lon - predicted_lon) * self.velocity_decay

        # Process noise keeps the gain from collapsing to zero
        self.variance = (1.0 - gain) * self.variance + self.process_noise

        self.last_lat = filtered_lat
        self.last_lon = filtered_lon

        return replace(raw, lat=filtered_lat, lon=filtered_lon)

class ConstantVelocityKalmanFilter(PositionFilter):
    """Four-state Kalman filter in a local metric frame

    State is [north, east, v_north, v_east] in meters and m/s relative to the
    first fix; the time step comes from fix timestamps.
    """

    def __init__(self, min_accuracy: float = 1.0, acceleration_noise: float = 0.5,
                 initial_velocity_variance: float = 100.0):
        self.min_accuracy = max(min_accuracy, 1e-6)
        self.acceleration_noise = acceleration_noise
        self.initial_velocity_variance = initial_velocity_variance
        self.reset()

    def reset(self) -> None:
        self.kf = KalmanFilter(dim_x=4, dim_z=2)
        self.kf.H = np.array([[1., 0., 0., 0.],
                              [0., 1., 0., 0.]])
        self.origin_lat = 0.0
        self.origin_lon = 0.0
        self.meters_per_degree_lon = METERS_PER_DEGREE_LAT
        self.last_timestamp = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def x(self) -> np.ndarray:
        """Flat state estimate [north, east, v_north, v_east]"""
        return self.kf.x.flatten()

    def _to_local(self, lat: float, lon: float) -> np.ndarray:
        delta_lon = ((lon - self.origin_lon + 180.0) % 360.0) - 180.0
        return np.array([(lat - self.origin_lat) * METERS_PER_DEGREE_LAT,
                         delta_lon * self.meters_per_degree_lon])

    def _to_geographic(self, north: float, east: float):
        return _clamp_coordinate(self.origin_lat + north / METERS_PER_DEGREE_LAT,
                                 self.origin_lon + east / self.meters_per_degree_lon)

    def observe(self, raw: Position) -> Position:
        accuracy = max(raw.accuracy, self.min_accuracy)

        if not self._initialized:
            self.origin_lat = raw.lat
            self.origin_lon = raw.lon
            self.meters_per_degree_lon = max(METERS_PER_DEGREE_LAT * math.cos(math.radians(raw.lat)), 1.0)
            self.kf.x = np.zeros((4, 1))
            self.kf.P = np.diag([accuracy ** 2, accuracy ** 2,
                                 self.initial_velocity_variance, self.initial_velocity_variance])
            self.last_timestamp = raw.timestamp
            self._initialized = True
            return raw

        dt = (raw.timestamp - self.last_timestamp).total_seconds()
        if dt > 0:
            self.kf.F = np.array([[1., 0., dt, 0.],
                                  [0., 1., 0., dt],
                                  [0., 0., 1., 0.],
                                  [0., 0., 0., 1.]])
            # Discrete white-noise acceleration, state ordered [pos, pos, vel, vel]
            self.kf.Q = Q_discrete_white_noise(dim=2, dt=dt, var=self.acceleration_noise ** 2,
                                               block_size=2, order_by_dim=False)
            self.kf.predict()
            self.last_timestamp = raw.timestamp

        self.kf.R = np.eye(2) * accuracy ** 2
        self.kf.update(self._to_local(raw.lat, raw.lon))

        state = self.x
        lat, lon = self._to_geographic(state[0], state[1])
        return replace(raw, lat=float(lat), lon=float(lon))

def create_position_filter(config: Optional[TrackingConfig] = None) -> PositionFilter:
    """Create the filter strategy named by config.position_filter"""

    config = config or TrackingConfig()

    filter_map = {
        "accuracy_weighted": lambda: AccuracyWeightedFilter(
            min_accuracy=config.filter_min_accuracy,
            velocity_decay=config.filter_velocity_decay,
            process_noise=config.filter_process_noise
        ),
        "kalman": lambda: ConstantVelocityKalmanFilter(
            min_accuracy=config.filter_min_accuracy,
            acceleration_noise=config.kalman_acceleration_noise
        )
    }

    if config.position_filter not in filter_map:
        raise ValueError(f"Unknown position filter: {config.position_filter}")

    return filter_map[config.position_filter]()
