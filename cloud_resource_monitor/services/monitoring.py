"""
Caller-facing metric queries.

Supplies configured defaults (period, lookback), builds query windows, and
applies the two error policies: direct queries raise a typed MonitoringError
for any failed metric, usage summaries degrade per metric.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional

from ..exceptions import InvalidParameterError
from ..models.api_models import MetricBundleResponse, MetricSeriesResponse
from ..models.families import FAMILIES, ResourceFamily
from ..models.metrics import FetchError, MetricSeries, ResourceUsageSummary, TimeWindow
from ..models.types import ALL_STATISTICS, MetricKind, ResourceFamilyName
from ..utils.logging import get_logger
from .aggregator import MetricAggregator
from .config import MetricsConfig
from .fetcher import MetricSeriesFetcher
from .usage import UsageSummaryBuilder, utc_now

logger = get_logger(__name__)


class MonitoringService:
    """Metric queries and usage summaries across resource families"""

    def __init__(
        self,
        metric_backend,
        metrics_config: Optional[MetricsConfig] = None,
        aggregator: Optional[MetricAggregator] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = metrics_config or MetricsConfig()
        self.aggregator = aggregator or MetricAggregator()
        self.clock = clock

        # Shared by the fetchers of every family
        self.executor = ThreadPoolExecutor(
            max_workers=self.config.fetch_workers, thread_name_prefix="metric-fetch"
        )

        self.fetchers: Dict[ResourceFamilyName, MetricSeriesFetcher] = {}
        self.summary_builders: Dict[ResourceFamilyName, UsageSummaryBuilder] = {}
        for name in self.config.enabled_families:
            fetcher = MetricSeriesFetcher(
                metric_backend,
                FAMILIES[name],
                aggregator=self.aggregator,
                max_datapoints=self.config.max_datapoints,
                timeout_seconds=self.config.fetch_timeout_seconds,
                executor=self.executor,
            )
            self.fetchers[name] = fetcher
            self.summary_builders[name] = UsageSummaryBuilder(
                fetcher, aggregator=self.aggregator, clock=clock
            )

    def close(self) -> None:
        """Release the fetch worker pool"""
        self.executor.shutdown(wait=False, cancel_futures=True)

    @property
    def families(self):
        return list(self.fetchers)

    def _fetcher(self, family) -> MetricSeriesFetcher:
        try:
            return self.fetchers[ResourceFamilyName(family)]
        except (KeyError, ValueError):
            raise InvalidParameterError(f"Resource family not enabled: {family}") from None

    def _check_resource_id(self, family: ResourceFamily, resource_id: str) -> None:
        if not family.is_valid_resource_id(resource_id):
            raise InvalidParameterError(
                f"Invalid {family.name.value} resource id: {resource_id!r}",
                resource_id=resource_id,
            )

    def build_window(self, hours: Optional[int] = None) -> TimeWindow:
        """Trailing window ending now; default lookback when hours is None"""
        if hours is None:
            hours = self.config.default_lookback_hours
        if hours <= 0:
            raise InvalidParameterError(f"hours must be positive, got {hours}")
        return TimeWindow.trailing(hours, end=self.clock())

    def _resolve_period(self, period: Optional[int]) -> int:
        return self.config.default_period if period is None else period

    def _series_response(self, series: MetricSeries) -> MetricSeriesResponse:
        return MetricSeriesResponse(series=series, statistics=self.aggregator.statistics(series))

    async def get_metric(
        self,
        family,
        resource_id: str,
        metric_kind: MetricKind,
        period: Optional[int] = None,
        hours: Optional[int] = None,
    ) -> MetricSeriesResponse:
        """One metric series; raises the typed error when the fetch fails"""
        fetcher = self._fetcher(family)
        self._check_resource_id(fetcher.family, resource_id)
        metric_kind = MetricKind(metric_kind)
        window = self.build_window(hours)
        period = self._resolve_period(period)

        logger.info(
            "Metric query",
            family=fetcher.family.name.value,
            resource_id=resource_id,
            metric=metric_kind.value,
            period=period,
            hours=hours or self.config.default_lookback_hours,
        )

        result = await fetcher.fetch_range(
            resource_id, metric_kind, window, period, ALL_STATISTICS
        )
        if isinstance(result, FetchError):
            raise result.to_exception()
        return self._series_response(result)

    async def get_metrics(
        self,
        family,
        resource_id: str,
        metric_kinds: Iterable[MetricKind],
        period: Optional[int] = None,
        hours: Optional[int] = None,
    ) -> MetricBundleResponse:
        """Several metrics over one window; any failed metric fails the bundle"""
        fetcher = self._fetcher(family)
        self._check_resource_id(fetcher.family, resource_id)
        kinds = [MetricKind(k) for k in metric_kinds]
        if not kinds:
            raise InvalidParameterError("at least one metric is required", resource_id=resource_id)

        window = self.build_window(hours)
        period = self._resolve_period(period)

        results = await fetcher.fetch_many(resource_id, kinds, window, period, ALL_STATISTICS)

        failures = [r for r in results.values() if isinstance(r, FetchError)]
        if failures:
            logger.error(
                "Metric bundle failed",
                resource_id=resource_id,
                failed_metrics=[f.metric_kind.value for f in failures],
            )
            raise failures[0].to_exception()

        return MetricBundleResponse(
            resource_id=resource_id,
            family=fetcher.family.name,
            metrics={kind: self._series_response(series) for kind, series in results.items()},
        )

    async def get_usage_summary(self, family, resource_id: str) -> ResourceUsageSummary:
        """Best-effort 24 hour summary; only a malformed resource id raises"""
        self._fetcher(family)
        return await self.summary_builders[ResourceFamilyName(family)].summarize(resource_id)
