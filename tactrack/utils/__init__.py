"""
Utilities Package - Logging and configuration helpers
"""

from tactrack.utils.logger import get_logger, setup_logging
from tactrack.utils.config import TrackingConfig

__all__ = [
    "get_logger",
    "setup_logging",
    "TrackingConfig"
]
