"""
Threat Assessor - Rule-table threat levels for tracked targets
"""

from typing import List, Optional

from tactrack.models.tracking import Classification, Priority, Target, ThreatAssessment, ThreatLevel
from tactrack.utils.config import TrackingConfig

class ThreatAssessor:
    """Pure rule table mapping target state to a threat level"""

    def __init__(self, config: Optional[TrackingConfig] = None):
        self.config = config or TrackingConfig()

    def assess(self, target: Target) -> ThreatAssessment:
        factors: List[str] = []
        level = ThreatLevel.LOW

        if target.classification == Classification.HOSTILE:
            factors.append("hostile_classification")
            level = ThreatLevel.HIGH

        if target.movement.speed > self.config.high_speed_threshold:
            factors.append("high_speed")
            if level == ThreatLevel.LOW:
                level = ThreatLevel.MEDIUM

        if target.priority == Priority.CRITICAL:
            factors.append("critical_priority")
            level = ThreatLevel.CRITICAL
        elif target.priority == Priority.HIGH:
            factors.append("high_priority")
            if level != ThreatLevel.CRITICAL:
                level = ThreatLevel.HIGH

        return ThreatAssessment(level=level, factors=factors)
