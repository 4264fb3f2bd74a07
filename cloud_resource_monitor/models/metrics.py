"""
Time-series metric models.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .types import ErrorKind, MetricKind, ResourceFamilyName


def to_utc(value: datetime) -> datetime:
    """Read naive datetimes as UTC and convert aware ones to UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TimeWindow(BaseModel):
    """Half-open query window [start, end) in UTC"""

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalize_timezone(cls, v):
        return to_utc(v)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end <= self.start:
            raise ValueError("window end must be after window start")
        return self

    @classmethod
    def trailing(cls, hours: int, end: datetime) -> "TimeWindow":
        """Window covering the `hours` before `end`"""
        end = to_utc(end)
        return cls(start=end - timedelta(hours=hours), end=end)

    @property
    def duration_seconds(self) -> int:
        return int((self.end - self.start).total_seconds())

    def split(self, max_seconds: int) -> List["TimeWindow"]:
        """Split into contiguous sub-windows no longer than max_seconds"""
        if max_seconds <= 0:
            raise ValueError("max_seconds must be positive")

        windows = []
        cursor = self.start
        step = timedelta(seconds=max_seconds)
        while cursor < self.end:
            chunk_end = min(cursor + step, self.end)
            windows.append(TimeWindow(start=cursor, end=chunk_end))
            cursor = chunk_end
        return windows


class DataPoint(BaseModel):
    """One backend bucket. Statistics the backend did not compute stay None."""

    timestamp: datetime
    average: Optional[float] = None
    maximum: Optional[float] = None
    minimum: Optional[float] = None
    sum: Optional[float] = None
    sample_count: Optional[float] = None
    unit: str

    @field_validator("timestamp")
    @classmethod
    def normalize_timezone(cls, v):
        return to_utc(v)


class MetricSeries(BaseModel):
    """Ordered data points of one metric for one resource"""

    resource_id: str
    family: ResourceFamilyName
    metric_kind: MetricKind
    metric_name: str
    namespace: str
    unit: str
    period: int = Field(gt=0)
    window: TimeWindow
    data_points: List[DataPoint] = Field(default_factory=list)

    @field_validator("data_points")
    @classmethod
    def strictly_ascending(cls, v):
        for previous, current in zip(v, v[1:]):
            if current.timestamp <= previous.timestamp:
                raise ValueError(
                    "data points must be strictly ascending by timestamp"
                )
        return v

    @property
    def is_empty(self) -> bool:
        return not self.data_points


class SeriesStatistics(BaseModel):
    """Statistics over a whole series window"""

    average: Optional[float] = None
    maximum: Optional[float] = None
    minimum: Optional[float] = None
    sum: Optional[float] = None
    sample_count: Optional[float] = None
    data_point_count: int = Field(default=0, ge=0)
    latest: Optional[DataPoint] = None


class ResourceUsage(BaseModel):
    """Scalar usage of one metric over a summary window"""

    average: float
    maximum: float
    minimum: float
    unit: str
    data_point_count: int = Field(ge=0)

    @classmethod
    def zero(cls, unit: str) -> "ResourceUsage":
        """Fallback value for a metric with no data or a failed fetch"""
        return cls(average=0.0, maximum=0.0, minimum=0.0, unit=unit, data_point_count=0)


class ResourceUsageSummary(BaseModel):
    """Usage of the five summary metrics over the trailing 24 hours"""

    resource_id: str
    family: ResourceFamilyName
    window: TimeWindow
    cpu_usage: ResourceUsage
    network_in: ResourceUsage
    network_out: ResourceUsage
    disk_read: ResourceUsage
    disk_write: ResourceUsage

    # Metrics whose value is a fallback for a failed fetch
    degraded_metrics: List[MetricKind] = Field(default_factory=list)

    def usage_for(self, kind: MetricKind) -> ResourceUsage:
        field_names = {
            MetricKind.CPU_UTILIZATION: "cpu_usage",
            MetricKind.NETWORK_IN: "network_in",
            MetricKind.NETWORK_OUT: "network_out",
            MetricKind.DISK_READ: "disk_read",
            MetricKind.DISK_WRITE: "disk_write",
        }
        if kind not in field_names:
            raise ValueError(f"{kind.value} is not a summary metric")
        return getattr(self, field_names[kind])


class FetchError(BaseModel):
    """Failed metric fetch, returned in place of a MetricSeries"""

    resource_id: str
    metric_kind: MetricKind
    kind: ErrorKind
    message: str
    cause: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_exception(self):
        """Build the typed exception raised by direct metric queries"""
        from ..exceptions import error_for_kind

        return error_for_kind(
            self.kind,
            f"{self.metric_kind.value} for {self.resource_id}: {self.message}",
            resource_id=self.resource_id,
            metric_kind=self.metric_kind,
        )
