"""
24-hour usage summaries.

A summary is best effort: each of the five metrics is fetched independently
and a metric whose fetch fails is reported as the zero usage, so a summary is
always produced.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from ..exceptions import InvalidParameterError
from ..models.metrics import (
    FetchError,
    MetricSeries,
    ResourceUsage,
    ResourceUsageSummary,
    TimeWindow,
)
from ..models.types import SUMMARY_METRIC_KINDS, MetricKind, Statistic
from ..utils.logging import get_logger
from .aggregator import MetricAggregator
from .fetcher import MetricSeriesFetcher

logger = get_logger(__name__)

SUMMARY_LOOKBACK_HOURS = 24
SUMMARY_PERIOD_SECONDS = 3600
SUMMARY_STATISTICS = (Statistic.AVERAGE, Statistic.MAXIMUM, Statistic.MINIMUM)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UsageSummaryBuilder:
    """Builds ResourceUsageSummary values for one resource family"""

    def __init__(
        self,
        fetcher: MetricSeriesFetcher,
        aggregator: Optional[MetricAggregator] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.fetcher = fetcher
        self.family = fetcher.family
        self.aggregator = aggregator or fetcher.aggregator
        self.clock = clock

    def _usage_from_outcome(self, resource_id: str, kind: MetricKind, outcome) -> Optional[ResourceUsage]:
        """Reduce a fetched series; None marks a failed fetch"""
        if isinstance(outcome, MetricSeries):
            return self.aggregator.reduce(outcome)

        if isinstance(outcome, FetchError):
            logger.warning(
                "Usage metric unavailable, reporting zero",
                resource_id=resource_id,
                metric=kind.value,
                error_kind=outcome.kind.value,
                error=outcome.message,
            )
        else:
            logger.error(
                "Usage metric raised unexpectedly, reporting zero",
                resource_id=resource_id,
                metric=kind.value,
                error=str(outcome),
                error_type=type(outcome).__name__,
            )
        return None

    async def summarize(self, resource_id: str) -> ResourceUsageSummary:
        """Summarize the trailing 24 hours; raises only for a malformed resource id"""
        if not self.family.is_valid_resource_id(resource_id):
            raise InvalidParameterError(
                f"Invalid {self.family.name.value} resource id: {resource_id!r}",
                resource_id=resource_id,
            )

        window = TimeWindow.trailing(SUMMARY_LOOKBACK_HOURS, end=self.clock())
        logger.info(
            "Building usage summary",
            resource_id=resource_id,
            family=self.family.name.value,
            start=window.start.isoformat(),
            end=window.end.isoformat(),
        )

        outcomes = await asyncio.gather(
            *(
                self.fetcher.fetch(
                    resource_id,
                    kind,
                    window,
                    SUMMARY_PERIOD_SECONDS,
                    SUMMARY_STATISTICS,
                )
                for kind in SUMMARY_METRIC_KINDS
            ),
            return_exceptions=True,
        )

        usages: Dict[MetricKind, ResourceUsage] = {}
        degraded = []
        for kind, outcome in zip(SUMMARY_METRIC_KINDS, outcomes):
            usage = self._usage_from_outcome(resource_id, kind, outcome)
            if usage is None:
                usage = ResourceUsage.zero(self.family.definition(kind).unit)
                degraded.append(kind)
            usages[kind] = usage

        summary = ResourceUsageSummary(
            resource_id=resource_id,
            family=self.family.name,
            window=window,
            cpu_usage=usages[MetricKind.CPU_UTILIZATION],
            network_in=usages[MetricKind.NETWORK_IN],
            network_out=usages[MetricKind.NETWORK_OUT],
            disk_read=usages[MetricKind.DISK_READ],
            disk_write=usages[MetricKind.DISK_WRITE],
            degraded_metrics=degraded,
        )

        logger.info(
            "Usage summary built",
            resource_id=resource_id,
            degraded_count=len(degraded),
        )
        return summary
