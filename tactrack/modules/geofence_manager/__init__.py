"""
Geofence Manager Module Package - Geofencing and spatial validation

This package provides:
- Geofence registry and containment evaluation
- Zone validation and definition parsing
- Spatial operations and calculations
"""

from tactrack.modules.geofence_manager.geofence_controller import GeofenceEvaluator
from tactrack.modules.geofence_manager.zone_validator import ZoneValidator, ValidationResult
from tactrack.modules.geofence_manager.spatial_operations import SpatialOperations

__all__ = [
    "GeofenceEvaluator",
    "ZoneValidator",
    "ValidationResult",
    "SpatialOperations"
]
