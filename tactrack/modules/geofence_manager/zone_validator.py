"""
Zone Validator - Validate geofence definitions and geometry

This module provides:
- Construction of geofences from definition dictionaries
- Polygon validity checks (self-intersection, degenerate area)
- Area sanity warnings for polygons and circles
- Rule consistency checks
"""

import math
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field

from shapely.geometry import Polygon
from shapely.validation import explain_validity

from tactrack.errors import InvalidGeometryError
from tactrack.models.geofence import (
    CircleGeometry, PolygonGeometry, Geometry, Geofence, GeofenceRules, GeofenceType, TimeRestriction
)
from tactrack.models.tracking import Priority
from tactrack.modules.geofence_manager.spatial_operations import SpatialOperations

@dataclass
class ValidationResult:
    """Zone validation result"""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

class ZoneValidator:
    """Validate geofence geometry and rules"""

    def __init__(self, spatial_ops: Optional[SpatialOperations] = None):
        self.spatial_ops = spatial_ops or SpatialOperations()

        # Validation parameters
        self.min_zone_area = 100  # square meters
        self.max_zone_area = 10000000000  # 10,000 square kilometers
        self.max_vertices = 1000

    def build_geometry(self, definition: Dict[str, Any]) -> Geometry:
        """Create a geometry variant from a definition dictionary

        Supported shapes:
        - circle: {"center": [lat, lon], "radius_meters": r}
        - polygon: {"coordinates": [[lat, lon], ...]}
        - rectangle: {"bounds": {"north", "south", "east", "west"}}
        """

        shape = definition.get("shape")

        if shape == "circle":
            center = definition.get("center")
            radius = definition.get("radius_meters", definition.get("radius"))
            if center is None or radius is None:
                raise InvalidGeometryError("Circle requires center and radius_meters")
            return CircleGeometry(center=center, radius_meters=radius)

        if shape == "polygon":
            coordinates = definition.get("coordinates")
            if not coordinates:
                raise InvalidGeometryError("Polygon requires coordinates")
            return PolygonGeometry(ring=coordinates)

        if shape == "rectangle":
            bounds = definition.get("bounds") or {}
            try:
                north, south = bounds["north"], bounds["south"]
                east, west = bounds["east"], bounds["west"]
            except KeyError as e:
                raise InvalidGeometryError(f"Rectangle bounds missing {e}")
            return PolygonGeometry(ring=[(south, west), (south, east), (north, east), (north, west)])

        raise InvalidGeometryError(f"Unknown geofence shape: {shape!r}")

    def build_geofence(self, definition: Dict[str, Any]) -> Geofence:
        """Create a geofence from a definition dictionary"""

        geometry = self.build_geometry(definition)

        rules_data = dict(definition.get("rules", {}))
        restriction = rules_data.pop("time_restriction", None)
        if isinstance(restriction, dict):
            restriction = TimeRestriction(
                start_time=restriction.get("start_time"),
                end_time=restriction.get("end_time"),
                days_of_week=tuple(restriction.get("days_of_week", range(7))),
                tz_name=restriction.get("tz_name")
            )
        for key in ("allowed_target_types", "allowed_classifications"):
            if rules_data.get(key) is not None:
                rules_data[key] = tuple(rules_data[key])

        try:
            rules = GeofenceRules(time_restriction=restriction, **rules_data)
            geofence_type = GeofenceType(definition.get("geofence_type", "alert"))
            priority = Priority(definition.get("priority", "medium"))
        except (TypeError, ValueError) as e:
            raise InvalidGeometryError(f"Invalid geofence definition: {e}")

        kwargs = {}
        if definition.get("geofence_id"):
            kwargs["geofence_id"] = definition["geofence_id"]

        return Geofence(
            name=definition.get("name", "Unnamed geofence"),
            geometry=geometry,
            geofence_type=geofence_type,
            rules=rules,
            priority=priority,
            is_active=definition.get("is_active", True),
            description=definition.get("description", ""),
            metadata=dict(definition.get("metadata", {})),
            **kwargs
        )

    def validate_geofence(self, geofence: Geofence) -> ValidationResult:
        """Check a constructed geofence for questionable geometry or rules

        Construction already rejects malformed geometry, so findings here are
        warnings unless the polygon is degenerate.
        """

        result = ValidationResult(valid=True)

        if isinstance(geofence.geometry, PolygonGeometry):
            self._validate_polygon(geofence.geometry, result)
        else:
            self._validate_circle(geofence.geometry, result)

        self._validate_rules(geofence, result)

        return result

    def _validate_polygon(self, geometry: PolygonGeometry, result: ValidationResult) -> None:
        """Validate polygon geometry using Shapely"""

        ring = geometry.ring

        if len(ring) > self.max_vertices:
            result.warnings.append(f"Polygon has {len(ring)} vertices (recommended maximum: {self.max_vertices})")

        polygon = Polygon([(c.lon, c.lat) for c in ring])

        if polygon.area == 0:
            result.valid = False
            result.errors.append("Polygon has zero area (collinear vertices)")
            return

        if not polygon.is_valid:
            # Ray casting is undefined for self-intersecting rings
            result.warnings.append(f"Invalid polygon: {explain_validity(polygon)}; containment results are undefined")

        area = self.spatial_ops.calculate_polygon_area(ring)
        if area < self.min_zone_area:
            result.warnings.append(f"Zone area ({area:.1f}m²) is very small (minimum recommended: {self.min_zone_area}m²)")
        elif area > self.max_zone_area:
            result.warnings.append(f"Zone area ({area / 1e6:.1f}km²) is very large")

    def _validate_circle(self, geometry: CircleGeometry, result: ValidationResult) -> None:
        area = math.pi * geometry.radius_meters ** 2

        if area < self.min_zone_area:
            result.warnings.append(f"Circle radius {geometry.radius_meters}m is very small")
        elif geometry.radius_meters > self.spatial_ops.earth_radius * math.pi / 2:
            result.warnings.append(f"Circle radius {geometry.radius_meters}m spans more than a hemisphere")

    def _validate_rules(self, geofence: Geofence, result: ValidationResult) -> None:
        rules = geofence.rules

        if not (rules.trigger_on_entry or rules.trigger_on_exit or rules.trigger_on_dwell
                or rules.time_restriction or rules.allowed_target_types or rules.allowed_classifications):
            result.warnings.append("Geofence has no triggers or restrictions and will never emit events")

        if rules.dwell_seconds is not None and not rules.trigger_on_dwell:
            result.warnings.append("dwell_seconds is set but trigger_on_dwell is disabled")

        restriction = rules.time_restriction
        if restriction is not None and not restriction.days_of_week:
            result.warnings.append("Time restriction permits no days; every presence is a violation")

        if geofence.geofence_type == GeofenceType.SAFE_ZONE and not (
                rules.allowed_target_types or rules.allowed_classifications):
            result.warnings.append("Safe zone without allowed types or classifications never reports unauthorized exits")
