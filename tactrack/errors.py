"""
Tracking errors - Error taxonomy shared by all tracking modules

Compute modules raise these before touching any state. The session layer turns
them into ModuleResult values (see tactrack.modules.base_module).
"""

class TrackingError(Exception):
    """Base class for tracking engine errors"""
    code = "tracking_error"

class NotFoundError(TrackingError):
    """Unknown target, geofence or rule id"""
    code = "not_found"

class AlreadyExistsError(TrackingError):
    """Duplicate add"""
    code = "already_exists"

class InvalidGeometryError(TrackingError, ValueError):
    """Malformed geofence geometry"""
    code = "invalid_geometry"

class InvalidPositionError(TrackingError, ValueError):
    """Coordinates or accuracy out of range"""
    code = "invalid_position"

class InvalidTimestampError(TrackingError):
    """Non-monotonic update timestamp

    Out-of-order GPS fixes are expected, so the update path only logs this
    condition and skips the speed/bearing recompute.
    """
    code = "invalid_timestamp"

class InvalidRuleError(TrackingError, ValueError):
    """Malformed alert rule"""
    code = "invalid_rule"

class CapacityExceededError(TrackingError):
    """Session target or geofence cap reached"""
    code = "capacity_exceeded"

class SessionInactiveError(TrackingError):
    """Mutation attempted on a stopped session"""
    code = "session_inactive"
