"""
Alert Manager Module - Cross-target proximity and threat alerting

This module handles:
- Proximity rules between target pairs
- Edge-triggered proximity alerts over a position snapshot
- Threat assessment and threat level change alerts
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from tactrack.errors import InvalidRuleError, NotFoundError
from tactrack.models.events import ProximityAlertEvent, ThreatDetectedEvent
from tactrack.models.tracking import Position, Target, ThreatAssessment, ThreatLevel
from tactrack.modules.alert_manager.threat_assessor import ThreatAssessor
from tactrack.modules.base_module import BaseModule
from tactrack.modules.geofence_manager.spatial_operations import SpatialOperations
from tactrack.utils.config import TrackingConfig

@dataclass
class ProximityRule:
    """Distance threshold between two targets"""
    target_a: str
    target_b: str
    threshold_meters: float
    repeat: bool = False
    in_range: bool = False

    @property
    def key(self) -> FrozenSet[str]:
        return frozenset((self.target_a, self.target_b))

class AlertDispatcher(BaseModule):
    """Proximity and threat alerting over tracker output"""

    def __init__(self, config: Optional[TrackingConfig] = None,
                 spatial_ops: Optional[SpatialOperations] = None,
                 threat_assessor: Optional[ThreatAssessor] = None):
        super().__init__("alert_manager", "rule_table")
        self.config = config or TrackingConfig()
        self.spatial_ops = spatial_ops or SpatialOperations()
        self.threat_assessor = threat_assessor or ThreatAssessor(self.config)

        self.proximity_rules: Dict[FrozenSet[str], ProximityRule] = {}
        self.threat_levels: Dict[str, ThreatLevel] = {}

    # Proximity

    def register_proximity_rule(self, target_a: str, target_b: str, threshold_meters: float,
                                repeat: bool = False) -> ProximityRule:
        """Register or replace the rule for an unordered target pair"""

        if target_a == target_b:
            raise InvalidRuleError(f"Proximity rule needs two distinct targets, got {target_a} twice")
        if not isinstance(threshold_meters, (int, float)) or not threshold_meters > 0:
            raise InvalidRuleError(f"Proximity threshold must be positive, got {threshold_meters!r}")

        rule = ProximityRule(target_a, target_b, float(threshold_meters), repeat)
        self.proximity_rules[rule.key] = rule

        self.logger.info(f"Proximity rule {target_a} <-> {target_b} at {threshold_meters}m")
        return rule

    def remove_proximity_rule(self, target_a: str, target_b: str) -> None:
        key = frozenset((target_a, target_b))
        if key not in self.proximity_rules:
            raise NotFoundError(f"No proximity rule between {target_a} and {target_b}")
        del self.proximity_rules[key]

    def list_proximity_rules(self) -> List[ProximityRule]:
        return list(self.proximity_rules.values())

    def check_proximity(self, positions: Dict[str, Position],
                        now: Optional[datetime] = None) -> List[ProximityAlertEvent]:
        """Fire one alert per crossing into range for every rule with both targets present"""

        alerts = []

        for rule in list(self.proximity_rules.values()):
            position_a = positions.get(rule.target_a)
            position_b = positions.get(rule.target_b)
            if position_a is None or position_b is None:
                continue

            distance = self.spatial_ops.haversine_distance_meters(position_a.coordinate, position_b.coordinate)
            within = distance <= rule.threshold_meters

            if within and (not rule.in_range or rule.repeat):
                alerts.append(ProximityAlertEvent(
                    target_id=rule.target_a,
                    position=position_a,
                    timestamp=now or max(position_a.timestamp, position_b.timestamp),
                    other_id=rule.target_b,
                    distance_meters=distance,
                    threshold_meters=rule.threshold_meters
                ))
                self.logger.warning(
                    f"Proximity alert: {rule.target_a} and {rule.target_b} {distance:.1f}m apart "
                    f"(threshold {rule.threshold_meters}m)"
                )

            rule.in_range = within

        return alerts

    # Threat

    def assess_threat(self, target: Target) -> ThreatAssessment:
        return self.threat_assessor.assess(target)

    def check_threat(self, target: Target) -> List[ThreatDetectedEvent]:
        """Emit when the assessed level changes to anything above low"""

        assessment = self.assess_threat(target)
        previous = self.threat_levels.get(target.target_id)
        self.threat_levels[target.target_id] = assessment.level

        if assessment.level == previous or assessment.level == ThreatLevel.LOW:
            return []

        self.logger.warning(
            f"Threat level for {target.target_id}: {assessment.level.value} ({', '.join(assessment.factors)})"
        )
        return [ThreatDetectedEvent(
            target_id=target.target_id,
            position=target.position,
            timestamp=target.position.timestamp,
            level=assessment.level,
            factors=list(assessment.factors),
            previous_level=previous
        )]

    def forget_target(self, target_id: str) -> None:
        """Drop threat memory and every proximity rule naming the target"""

        self.threat_levels.pop(target_id, None)
        for key in [key for key in self.proximity_rules if target_id in key]:
            del self.proximity_rules[key]
