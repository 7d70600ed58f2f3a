"""
Tracking Configuration - Engine parameters and validation

This module provides:
- Default tracking, filtering and alerting parameters
- Loading from dictionaries and JSON files
- Configuration validation
"""

import json
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Dict, Any, Union

from tactrack.utils.logger import get_logger

logger = get_logger(__name__)

POSITION_FILTERS = ["accuracy_weighted", "kalman"]

@dataclass
class TrackingConfig:
    """Tracking engine configuration"""

    # Target lifecycle
    course_history_size: int = 100
    lost_timeout_seconds: float = 300.0   # 5 minutes without updates
    sweep_interval_seconds: float = 30.0

    # Prediction
    prediction_step_seconds: float = 60.0
    prediction_horizon_seconds: float = 3600.0
    min_prediction_confidence: float = 0.1

    # Movement analysis
    stationary_speed_threshold: float = 0.5   # m/s
    frequent_area_radius_meters: float = 50.0
    frequent_area_min_points: int = 3

    # Threat assessment
    high_speed_threshold: float = 20.0   # m/s = 72 km/h

    # Position filtering
    position_filter: str = "accuracy_weighted"
    filter_min_accuracy: float = 1.0   # meters, floor for reported accuracy
    filter_velocity_decay: float = 0.1
    filter_process_noise: float = 0.1
    kalman_acceleration_noise: float = 0.5   # m/s^2

    # Alerting
    off_route_tolerance_meters: float = 50.0

    # Session limits
    event_queue_size: int = 1000
    max_targets: int = 1000
    max_geofences: int = 500

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> "TrackingConfig":
        """Build configuration from a dictionary, ignoring unknown keys"""

        known = {f.name for f in fields(cls)}
        unknown = [key for key in config_data if key not in known]
        if unknown:
            logger.warning(f"Ignoring unknown configuration parameters: {unknown}")

        return cls(**{key: value for key, value in config_data.items() if key in known})

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "TrackingConfig":
        """Load configuration from a JSON file"""

        with open(path, "r") as f:
            config_data = json.load(f)

        logger.info(f"Loaded tracking configuration from {path}")
        return cls.from_dict(config_data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> Dict[str, Any]:
        """Validate parameter ranges"""

        validation_result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        positive_params = [
            "course_history_size", "lost_timeout_seconds", "sweep_interval_seconds",
            "prediction_step_seconds", "prediction_horizon_seconds", "filter_min_accuracy",
            "off_route_tolerance_meters", "event_queue_size", "max_targets", "max_geofences",
            "frequent_area_radius_meters"
        ]

        for name in positive_params:
            if getattr(self, name) <= 0:
                validation_result["valid"] = False
                validation_result["errors"].append(f"{name}: Must be greater than zero")

        if not 0 <= self.min_prediction_confidence <= 1:
            validation_result["valid"] = False
            validation_result["errors"].append("min_prediction_confidence: Must be between 0 and 1")

        if not 0 <= self.filter_velocity_decay <= 1:
            validation_result["valid"] = False
            validation_result["errors"].append("filter_velocity_decay: Must be between 0 and 1")

        if self.position_filter not in POSITION_FILTERS:
            validation_result["valid"] = False
            validation_result["errors"].append(
                f"position_filter: Value {self.position_filter} not in allowed values {POSITION_FILTERS}"
            )

        if self.sweep_interval_seconds > self.lost_timeout_seconds:
            validation_result["warnings"].append(
                "sweep_interval_seconds exceeds lost_timeout_seconds; lost targets will be reported late"
            )

        if self.prediction_step_seconds > self.prediction_horizon_seconds:
            validation_result["warnings"].append("Prediction horizon shorter than one step; predictions will be empty")

        return validation_result
