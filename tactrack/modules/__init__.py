"""
Tracking Modules Package - Core modules of the tracking engine

This package contains:
- geofence_manager: Spatial operations, zone validation and containment evaluation
- target_manager: Position filtering, target lifecycle and movement analysis
- alert_manager: Proximity, threat and off-route alerting
- session_manager: Monitoring sessions and the event stream
- base_module: Base class for all modules
"""

from tactrack.modules.base_module import BaseModule, ModuleResult

__all__ = [
    "BaseModule",
    "ModuleResult"
]
