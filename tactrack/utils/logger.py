"""
Logger utilities - Shared logging setup for tactrack modules
"""

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False

def setup_logging(level: str = "INFO", log_format: str = DEFAULT_FORMAT) -> None:
    """Configure the root tactrack logger once"""

    global _configured

    root = logging.getLogger("tactrack")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(log_format))
        root.addHandler(handler)
        _configured = True

def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger namespaced under tactrack"""

    if not name:
        return logging.getLogger("tactrack")

    if name == "tactrack" or name.startswith("tactrack."):
        return logging.getLogger(name)

    return logging.getLogger(f"tactrack.{name}")
