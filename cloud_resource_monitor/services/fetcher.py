"""
Metric series retrieval from the metrics backend.

A fetch never raises for backend trouble: it returns either a MetricSeries or
a FetchError describing the failed metric, and the caller decides whether the
failure is fatal (direct queries) or degrades to a fallback (usage summaries).
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..exceptions import classify_backend_error
from ..models.families import ResourceFamily
from ..models.metrics import DataPoint, FetchError, MetricSeries, TimeWindow
from ..models.types import ErrorKind, MetricKind, Statistic
from ..utils.logging import get_logger
from .aggregator import MetricAggregator

logger = get_logger(__name__)

FetchResult = Union[MetricSeries, FetchError]

_STATISTIC_VALUES = {s.value for s in Statistic}

# Canonical spelling of CloudWatch unit labels
_UNIT_LABELS = {
    label.lower(): label
    for label in (
        "Seconds",
        "Microseconds",
        "Milliseconds",
        "Bytes",
        "Kilobytes",
        "Megabytes",
        "Gigabytes",
        "Terabytes",
        "Bits",
        "Kilobits",
        "Megabits",
        "Gigabits",
        "Terabits",
        "Percent",
        "Count",
        "Bytes/Second",
        "Kilobytes/Second",
        "Megabytes/Second",
        "Gigabytes/Second",
        "Terabytes/Second",
        "Bits/Second",
        "Kilobits/Second",
        "Megabits/Second",
        "Gigabits/Second",
        "Terabits/Second",
        "Count/Second",
    )
}


def normalize_unit(label: Any, default: str) -> str:
    """Canonical unit string for a backend label; default when unreported"""
    if label is None:
        return default
    text = str(getattr(label, "value", label)).strip()
    # CloudWatch reports "None" for unitless samples
    if not text or text.lower() == "none":
        return default
    return _UNIT_LABELS.get(text.lower(), text)


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


class MetricSeriesFetcher:
    """Fetches metric series for one resource family"""

    def __init__(
        self,
        backend,
        family: ResourceFamily,
        aggregator: Optional[MetricAggregator] = None,
        max_datapoints: int = 1440,
        timeout_seconds: Optional[float] = 60.0,
        executor: Optional[ThreadPoolExecutor] = None,
        max_workers: int = 20,
    ):
        self.backend = backend
        self.family = family
        self.aggregator = aggregator or MetricAggregator()
        self.max_datapoints = max_datapoints
        self.timeout_seconds = timeout_seconds
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="metric-fetch"
        )

    def _validate(
        self,
        metric_kind: MetricKind,
        window: TimeWindow,
        period: int,
        statistics: Sequence[Statistic],
        check_point_limit: bool = True,
    ) -> Optional[str]:
        """Return a reason when the query cannot be issued, else None"""
        if not self.family.supports(metric_kind):
            return f"metric {metric_kind.value} is not available for {self.family.name.value}"
        if not isinstance(period, int) or isinstance(period, bool) or period <= 0:
            return f"period must be a positive integer number of seconds, got {period!r}"
        if not statistics:
            return "at least one statistic is required"
        unknown = [s for s in statistics if s not in _STATISTIC_VALUES]
        if unknown:
            return f"unsupported statistics: {', '.join(map(str, unknown))}"
        if window.duration_seconds % period != 0:
            return (
                f"period {period}s does not evenly divide the "
                f"{window.duration_seconds}s window"
            )
        if check_point_limit and window.duration_seconds // period > self.max_datapoints:
            return (
                f"window holds {window.duration_seconds // period} points, "
                f"more than the maximum of {self.max_datapoints}"
            )
        return None

    def _error(
        self,
        resource_id: str,
        metric_kind: MetricKind,
        kind: ErrorKind,
        message: str,
        cause: Optional[BaseException] = None,
    ) -> FetchError:
        return FetchError(
            resource_id=resource_id,
            metric_kind=metric_kind,
            kind=kind,
            message=message,
            cause=type(cause).__name__ if cause is not None else None,
        )

    def _to_data_point(self, raw: Dict[str, Any], default_unit: str) -> DataPoint:
        return DataPoint(
            timestamp=raw["timestamp"],
            average=_optional_float(raw.get("average")),
            maximum=_optional_float(raw.get("maximum")),
            minimum=_optional_float(raw.get("minimum")),
            sum=_optional_float(raw.get("sum")),
            sample_count=_optional_float(raw.get("sample_count")),
            unit=normalize_unit(raw.get("unit"), default_unit),
        )

    async def _query_backend(
        self,
        resource_id: str,
        metric_name: str,
        window: TimeWindow,
        period: int,
        statistics: Sequence[Statistic],
    ) -> List[Dict[str, Any]]:
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        def run_query():
            loop.call_soon_threadsafe(started.set)
            return self.backend.query(
                self.family.namespace,
                metric_name,
                {"key": self.family.dimension_key, "value": resource_id},
                list(statistics),
                period,
                window.start,
                window.end,
            )

        # The backend client blocks; run it on the fetch pool
        call = loop.run_in_executor(self.executor, run_query)
        if self.timeout_seconds is None:
            return await call

        # The timeout covers the backend call, not the wait for a free worker
        waiting = asyncio.ensure_future(started.wait())
        try:
            await asyncio.wait({waiting, call}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            waiting.cancel()
        return await asyncio.wait_for(call, timeout=self.timeout_seconds)

    async def fetch(
        self,
        resource_id: str,
        metric_kind: MetricKind,
        window: TimeWindow,
        period: int,
        statistics: Sequence[Statistic],
    ) -> FetchResult:
        """Issue one backend query and return the series or a FetchError"""
        invalid = self._validate(metric_kind, window, period, statistics)
        if invalid:
            return self._error(resource_id, metric_kind, ErrorKind.INVALID_PARAMETER, invalid)

        definition = self.family.definition(metric_kind)
        logger.debug(
            "Fetching metric",
            resource_id=resource_id,
            namespace=self.family.namespace,
            metric=definition.metric_name,
            period=period,
            start=window.start.isoformat(),
            end=window.end.isoformat(),
        )

        try:
            raw_points = await self._query_backend(
                resource_id, definition.metric_name, window, period, statistics
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                "Metric fetch timed out",
                resource_id=resource_id,
                metric=definition.metric_name,
                timeout=self.timeout_seconds,
            )
            return self._error(
                resource_id,
                metric_kind,
                ErrorKind.BACKEND_UNAVAILABLE,
                f"backend query timed out after {self.timeout_seconds}s",
                e,
            )
        except Exception as e:
            kind = classify_backend_error(e)
            logger.warning(
                "Metric fetch failed",
                resource_id=resource_id,
                metric=definition.metric_name,
                error_kind=kind.value,
                error=str(e),
            )
            return self._error(resource_id, metric_kind, kind, str(e), e)

        try:
            data_points = [self._to_data_point(raw, definition.unit) for raw in raw_points]
        except (KeyError, TypeError, ValueError) as e:
            logger.error(
                "Malformed backend response",
                resource_id=resource_id,
                metric=definition.metric_name,
                error=str(e),
            )
            return self._error(
                resource_id,
                metric_kind,
                ErrorKind.UNKNOWN,
                f"malformed backend response: {e}",
                e,
            )

        return self.aggregator.build_series(
            resource_id, self.family, metric_kind, window, period, data_points
        )

    async def fetch_many(
        self,
        resource_id: str,
        metric_kinds: Iterable[MetricKind],
        window: TimeWindow,
        period: int,
        statistics: Sequence[Statistic],
    ) -> Dict[MetricKind, FetchResult]:
        """Fetch several metrics of one resource concurrently"""
        kinds = list(dict.fromkeys(metric_kinds))
        results = await asyncio.gather(
            *(self.fetch(resource_id, kind, window, period, statistics) for kind in kinds)
        )
        return dict(zip(kinds, results))

    async def fetch_range(
        self,
        resource_id: str,
        metric_kind: MetricKind,
        window: TimeWindow,
        period: int,
        statistics: Sequence[Statistic],
    ) -> FetchResult:
        """
        Fetch a window that may exceed the per-query point limit.

        Long windows are split into sub-windows of at most max_datapoints
        buckets, fetched concurrently and merged into one series. Any failing
        chunk fails the whole range.
        """
        invalid = self._validate(
            metric_kind, window, period, statistics, check_point_limit=False
        )
        if invalid:
            return self._error(resource_id, metric_kind, ErrorKind.INVALID_PARAMETER, invalid)

        if window.duration_seconds // period <= self.max_datapoints:
            return await self.fetch(resource_id, metric_kind, window, period, statistics)

        chunks = window.split(self.max_datapoints * period)
        logger.info(
            "Fetching metric in chunks",
            resource_id=resource_id,
            metric=metric_kind.value,
            chunks=len(chunks),
        )
        results = await asyncio.gather(
            *(self.fetch(resource_id, metric_kind, chunk, period, statistics) for chunk in chunks)
        )

        for result in results:
            if isinstance(result, FetchError):
                return result

        data_points = [point for series in results for point in series.data_points]
        return self.aggregator.build_series(
            resource_id, self.family, metric_kind, window, period, data_points
        )
