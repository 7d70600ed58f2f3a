"""
Target Manager Module Package - Target tracking and movement analysis

This package provides:
- Target lifecycle and filtered position updates
- Pluggable position filters
- Movement classification, prediction and analytics
"""

from tactrack.modules.target_manager.target_controller import TargetTracker
from tactrack.modules.target_manager.position_filter import (
    PositionFilter, AccuracyWeightedFilter, ConstantVelocityKalmanFilter, create_position_filter
)
from tactrack.modules.target_manager.movement_analyzer import MovementAnalyzer

__all__ = [
    "TargetTracker",
    "PositionFilter",
    "AccuracyWeightedFilter",
    "ConstantVelocityKalmanFilter",
    "create_position_filter",
    "MovementAnalyzer"
]
