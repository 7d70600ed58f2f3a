"""
Session Manager Module Package - Monitoring sessions

This package provides:
- Tracking sessions with periodic sweeps
- Bounded event stream
"""

from tactrack.modules.session_manager.tracking_session import TrackingSession, SessionFilters
from tactrack.modules.session_manager.event_stream import EventStream

__all__ = [
    "TrackingSession",
    "SessionFilters",
    "EventStream"
]
