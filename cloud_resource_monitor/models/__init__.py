"""
Data models for the cloud resource monitor.

- types: Core enums (families, metric kinds, statistics, error kinds)
- families: Resource family descriptors
- metrics: Time windows, series, usage summaries and fetch errors
- resources: Inventory models
- api_models: API request/response models
"""

from .types import (
    ALL_STATISTICS,
    SUMMARY_METRIC_KINDS,
    ErrorKind,
    MetricKind,
    ResourceFamilyName,
    Statistic,
)
from .families import (
    EC2_FAMILY,
    FAMILIES,
    RDS_FAMILY,
    MetricDefinition,
    ResourceFamily,
    get_family,
)
from .metrics import (
    DataPoint,
    FetchError,
    MetricSeries,
    ResourceUsage,
    ResourceUsageSummary,
    SeriesStatistics,
    TimeWindow,
)
from .resources import DatabaseInstance, Instance, NetworkAttachment, SecurityGroup
from .api_models import (
    APIError,
    BackendHealth,
    HealthResponse,
    MetricBundleResponse,
    MetricSeriesResponse,
    StatusResponse,
)

__all__ = [
    # Types
    "ALL_STATISTICS",
    "SUMMARY_METRIC_KINDS",
    "ErrorKind",
    "MetricKind",
    "ResourceFamilyName",
    "Statistic",
    # Families
    "EC2_FAMILY",
    "FAMILIES",
    "RDS_FAMILY",
    "MetricDefinition",
    "ResourceFamily",
    "get_family",
    # Metrics
    "DataPoint",
    "FetchError",
    "MetricSeries",
    "ResourceUsage",
    "ResourceUsageSummary",
    "SeriesStatistics",
    "TimeWindow",
    # Resources
    "DatabaseInstance",
    "Instance",
    "NetworkAttachment",
    "SecurityGroup",
    # API
    "APIError",
    "BackendHealth",
    "HealthResponse",
    "MetricBundleResponse",
    "MetricSeriesResponse",
    "StatusResponse",
]
