"""
API request/response models for the cloud resource monitor.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .metrics import MetricSeries, SeriesStatistics
from .types import MetricKind, ResourceFamilyName


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class APIError(BaseModel):
    """Standard API error response"""

    error: str
    code: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=utc_now)


class HealthResponse(BaseModel):
    """Health check response"""

    status: str
    timestamp: datetime = Field(default_factory=utc_now)
    version: str = "1.0.0"
    components: Dict[str, str] = Field(default_factory=dict)


class StatusResponse(BaseModel):
    """System status response"""

    config: Dict[str, Any]
    families: List[ResourceFamilyName]
    timestamp: datetime = Field(default_factory=utc_now)


class BackendHealth(BaseModel):
    """Result of probing a family's inventory backend"""

    family: ResourceFamilyName
    status: str
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def is_up(self) -> bool:
        return self.status == "UP"


class MetricSeriesResponse(BaseModel):
    """A metric series with its window statistics"""

    series: MetricSeries
    statistics: SeriesStatistics


class MetricBundleResponse(BaseModel):
    """Several metrics of one resource over the same window"""

    resource_id: str
    family: ResourceFamilyName
    metrics: Dict[MetricKind, MetricSeriesResponse]
