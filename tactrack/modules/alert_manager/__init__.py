"""
Alert Manager Module Package - Cross-target alerting

This package provides:
- Edge-triggered proximity alerts
- Rule-table threat assessment
- Off-route detection
"""

from tactrack.modules.alert_manager.alert_controller import AlertDispatcher, ProximityRule
from tactrack.modules.alert_manager.threat_assessor import ThreatAssessor
from tactrack.modules.alert_manager.route_monitor import RouteMonitor, RouteState

__all__ = [
    "AlertDispatcher",
    "ProximityRule",
    "ThreatAssessor",
    "RouteMonitor",
    "RouteState"
]
