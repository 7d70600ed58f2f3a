"""
tactrack - Target tracking and geofence evaluation engine

Noisy position samples are filtered into per-target movement state, tested
against active geofences and turned into entry, exit, dwell, violation,
proximity, threat, lost and off-route events.
"""

from tactrack.modules.session_manager.tracking_session import TrackingSession, SessionFilters
from tactrack.utils.config import TrackingConfig

__all__ = [
    "TrackingSession",
    "SessionFilters",
    "TrackingConfig"
]

# Version information
__version__ = "1.0.0"
