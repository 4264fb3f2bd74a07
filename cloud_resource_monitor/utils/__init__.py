"""
Utility modules for the cloud resource monitor.
"""

from .logging import configure_logging, get_logger, should_use_human_readable

__all__ = ["configure_logging", "get_logger", "should_use_human_readable"]
