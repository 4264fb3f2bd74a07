"""
Cloud Resource Monitor

Inventory, utilization metrics and 24 hour usage summaries for AWS EC2 and RDS
instances, backed by CloudWatch.
"""

from .cli import MonitoringApp
from .services.config import ConfigManager
from .services.inventory import InventoryService
from .services.monitoring import MonitoringService
from .services.usage import UsageSummaryBuilder

__version__ = "1.0.0"

__all__ = [
    "MonitoringApp",
    "ConfigManager",
    "InventoryService",
    "MonitoringService",
    "UsageSummaryBuilder",
]
