"""
Spatial Operations - Geographic and geometric calculations for geofencing

This module provides:
- Great-circle distance, bearing and destination calculations
- Point-in-circle and point-in-polygon containment tests
- Nearest point on a polyline and line length
- Polygon area and bounding boxes

All operations are pure: no state beyond constants, deterministic output.
Points are (lat, lon) pairs in decimal degrees (Coordinate, Position.coordinate
or plain tuples).
"""

import math
from typing import List, Tuple, Sequence

from geopy.distance import great_circle
from shapely.geometry import Point, LineString, Polygon
from shapely.ops import substring
import pyproj

from tactrack.errors import InvalidGeometryError
from tactrack.models.tracking import Coordinate, Bounds

# Mean Earth radius used by the haversine formulation
EARTH_RADIUS_METERS = 6371000.0

class SpatialOperations:
    """Spatial operations for geofencing and tracking"""

    def __init__(self):
        self.earth_radius = EARTH_RADIUS_METERS
        self._earth_radius_km = EARTH_RADIUS_METERS / 1000.0

        # Ellipsoid used for geodesic polygon areas
        self.geod = pyproj.Geod(ellps="WGS84")

    def haversine_distance_meters(self, a: Sequence[float], b: Sequence[float]) -> float:
        """Great-circle distance between two points in meters"""

        if a[0] == b[0] and a[1] == b[1]:
            return 0.0

        return great_circle((a[0], a[1]), (b[0], b[1]), radius=self._earth_radius_km).meters

    def bearing_degrees(self, a: Sequence[float], b: Sequence[float]) -> float:
        """Initial bearing from a to b in [0, 360)"""

        lat1_rad = math.radians(a[0])
        lat2_rad = math.radians(b[0])
        delta_lon_rad = math.radians(b[1] - a[1])

        y = math.sin(delta_lon_rad) * math.cos(lat2_rad)
        x = (math.cos(lat1_rad) * math.sin(lat2_rad) -
             math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(delta_lon_rad))

        bearing_deg = math.degrees(math.atan2(y, x))

        # Normalize; the second modulo folds -0.0 and 360.0 rounding into range
        return (bearing_deg + 360) % 360 % 360

    def destination(self, origin: Sequence[float], bearing_deg: float, distance_meters: float) -> Coordinate:
        """Point reached from origin after travelling distance along bearing"""

        if distance_meters == 0:
            return Coordinate(origin[0], origin[1])

        point = great_circle(meters=distance_meters, radius=self._earth_radius_km).destination(
            (origin[0], origin[1]), bearing_deg
        )
        return Coordinate(point.latitude, point.longitude)

    def point_in_circle(self, point: Sequence[float], center: Sequence[float], radius_meters: float) -> bool:
        """Inclusive circle containment"""

        return self.haversine_distance_meters(point, center) <= radius_meters

    def point_in_polygon(self, point: Sequence[float], ring: Sequence[Sequence[float]]) -> bool:
        """Even-odd ray casting; the ring is closed implicitly

        Self-intersecting rings give undefined results.
        """

        y, x = point[0], point[1]
        n = len(ring)
        if n < 3:
            return False

        inside = False
        j = n - 1
        for i in range(n):
            yi, xi = ring[i][0], ring[i][1]
            yj, xj = ring[j][0], ring[j][1]

            if (yi > y) != (yj > y):
                x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
                if x < x_cross:
                    inside = not inside
            j = i

        return inside

    def _to_local_xy(self, coords: Sequence[Sequence[float]], ref_lat: float) -> List[Tuple[float, float]]:
        """Equirectangular projection around ref_lat (degrees, lon scaled)"""
        scale = math.cos(math.radians(ref_lat))
        return [(c[1] * scale, c[0]) for c in coords]

    def nearest_point_on_polyline(self, point: Sequence[float],
                                  line: Sequence[Sequence[float]]) -> Tuple[Coordinate, float, float]:
        """Nearest point on line, fraction of line length before it, distance to it in meters"""

        if not line:
            raise InvalidGeometryError("Polyline must have at least one vertex")

        if len(line) == 1:
            nearest = Coordinate(line[0][0], line[0][1])
            return nearest, 0.0, self.haversine_distance_meters(point, nearest)

        ref_lat = sum(c[0] for c in line) / len(line)
        scale = math.cos(math.radians(ref_lat))
        projected = LineString(self._to_local_xy(line, ref_lat))
        target = Point(self._to_local_xy([point], ref_lat)[0])

        along = projected.project(target)
        nearest_xy = projected.interpolate(along)
        nearest = Coordinate(nearest_xy.y, nearest_xy.x / scale if scale else line[0][1])

        total_length = self.line_length_meters(line)
        if total_length == 0:
            fraction = 0.0
        else:
            covered = substring(projected, 0, along)
            covered_coords = [(xy[1], xy[0] / scale) for xy in covered.coords] if scale else []
            fraction = min(1.0, self.line_length_meters(covered_coords) / total_length)

        return nearest, fraction, self.haversine_distance_meters(point, nearest)

    def line_length_meters(self, line: Sequence[Sequence[float]]) -> float:
        """Sum of great-circle segment lengths"""

        length = 0.0
        for i in range(len(line) - 1):
            length += self.haversine_distance_meters(line[i], line[i + 1])
        return length

    def calculate_polygon_area(self, ring: Sequence[Sequence[float]]) -> float:
        """Geodesic polygon area in square meters"""

        polygon = Polygon([(c[1], c[0]) for c in ring])
        area, _ = self.geod.geometry_area_perimeter(polygon)
        return abs(area)

    def bounding_box(self, ring: Sequence[Sequence[float]]) -> Bounds:
        """Axis-aligned bounds of a vertex list"""

        if not ring:
            raise InvalidGeometryError("Cannot compute bounds of an empty ring")

        lats = [c[0] for c in ring]
        lons = [c[1] for c in ring]

        return Bounds(north=max(lats), south=min(lats), east=max(lons), west=min(lons))

    def point_in_bounds(self, point: Sequence[float], bounds: Bounds) -> bool:
        return bounds.contains(point[0], point[1])
