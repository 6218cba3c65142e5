"""Telemetry helpers.

This package emits structured event logs and tracks model/cache usage.
"""

from .logger import EventLogger, configure_logging
from .usage_tracker import UsageTracker

__all__ = ["EventLogger", "UsageTracker", "configure_logging"]
