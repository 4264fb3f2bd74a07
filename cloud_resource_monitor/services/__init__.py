"""
Services package for the cloud resource monitor.
"""

from .aggregator import MetricAggregator
from .aws_clients import (
    AWSClientFactory,
    CloudWatchMetricBackend,
    EC2InventoryBackend,
    RDSInventoryBackend,
)
from .config import AWSConfig, ConfigManager, MetricsConfig
from .fetcher import MetricSeriesFetcher
from .inventory import InventoryService, ResourceInventoryAdapter
from .monitoring import MonitoringService
from .usage import UsageSummaryBuilder

__all__ = [
    "AWSClientFactory",
    "AWSConfig",
    "CloudWatchMetricBackend",
    "ConfigManager",
    "EC2InventoryBackend",
    "InventoryService",
    "MetricAggregator",
    "MetricSeriesFetcher",
    "MetricsConfig",
    "MonitoringService",
    "RDSInventoryBackend",
    "ResourceInventoryAdapter",
    "UsageSummaryBuilder",
]
