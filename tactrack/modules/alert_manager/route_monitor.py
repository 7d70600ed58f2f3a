"""
Route Monitor - Off-route detection against planned paths
"""

from dataclasses import dataclass
from typing import Dict, List, Any, Optional, Sequence, Tuple

from tactrack.errors import InvalidGeometryError, InvalidPositionError, NotFoundError
from tactrack.models.events import OffRouteEvent
from tactrack.models.tracking import Coordinate, Position, validate_coordinate
from tactrack.modules.geofence_manager.spatial_operations import SpatialOperations
from tactrack.utils.config import TrackingConfig
from tactrack.utils.logger import get_logger

@dataclass
class RouteState:
    """Planned path and last progress along it"""
    line: Tuple[Coordinate, ...]
    tolerance_meters: float
    length_meters: float
    is_off_route: bool = False
    distance_meters: float = 0.0
    fraction_along: float = 0.0

class RouteMonitor:
    """Flag targets that stray from their assigned route"""

    def __init__(self, config: Optional[TrackingConfig] = None,
                 spatial_ops: Optional[SpatialOperations] = None):
        self.logger = get_logger(__name__)
        self.config = config or TrackingConfig()
        self.spatial_ops = spatial_ops or SpatialOperations()
        self.routes: Dict[str, RouteState] = {}

    def assign_route(self, target_id: str, line: Sequence[Sequence[float]],
                     tolerance_meters: Optional[float] = None) -> RouteState:
        tolerance = tolerance_meters if tolerance_meters is not None else self.config.off_route_tolerance_meters
        if tolerance <= 0:
            raise InvalidGeometryError(f"Route tolerance must be positive, got {tolerance}")
        if len(line) < 2:
            raise InvalidGeometryError("Route needs at least two points")

        coordinates = []
        for point in line:
            try:
                validate_coordinate(float(point[0]), float(point[1]))
            except (InvalidPositionError, TypeError, ValueError, IndexError) as e:
                raise InvalidGeometryError(f"Invalid route point {point!r}: {e}")
            coordinates.append(Coordinate(float(point[0]), float(point[1])))

        state = RouteState(
            line=tuple(coordinates),
            tolerance_meters=tolerance,
            length_meters=self.spatial_ops.line_length_meters(coordinates)
        )
        self.routes[target_id] = state

        self.logger.info(f"Assigned {state.length_meters:.0f}m route to {target_id}")
        return state

    def clear_route(self, target_id: str) -> None:
        if self.routes.pop(target_id, None) is None:
            raise NotFoundError(f"No route assigned to {target_id}")

    def forget_target(self, target_id: str) -> None:
        self.routes.pop(target_id, None)

    def check(self, target_id: str, position: Position) -> List[OffRouteEvent]:
        """One event per excursion beyond the route tolerance"""

        state = self.routes.get(target_id)
        if state is None:
            return []

        _, fraction, distance = self.spatial_ops.nearest_point_on_polyline(position.coordinate, state.line)
        state.distance_meters = distance
        state.fraction_along = fraction

        if distance <= state.tolerance_meters:
            if state.is_off_route:
                self.logger.info(f"Target {target_id} back on route")
            state.is_off_route = False
            return []

        if state.is_off_route:
            return []

        state.is_off_route = True
        self.logger.warning(f"Target {target_id} off route by {distance:.1f}m")
        return [OffRouteEvent(target_id, position, position.timestamp, distance, state.tolerance_meters)]

    def get_route_status(self, target_id: str) -> Dict[str, Any]:
        state = self.routes.get(target_id)
        if state is None:
            raise NotFoundError(f"No route assigned to {target_id}")

        return {
            "target_id": target_id,
            "length_meters": state.length_meters,
            "tolerance_meters": state.tolerance_meters,
            "is_off_route": state.is_off_route,
            "distance_from_route": state.distance_meters,
            "progress": state.fraction_along,
            "remaining_meters": state.length_meters * (1 - state.fraction_along)
        }
