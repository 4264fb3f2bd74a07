"""
Series construction and reduction.

Backend buckets arrive pre-aggregated, so every statistic computed here is a
second-order aggregate: the series average is the mean of bucket averages,
not a recomputation from raw samples.
"""

from typing import Iterable, List, Optional

from ..models.families import ResourceFamily
from ..models.metrics import (
    DataPoint,
    MetricSeries,
    ResourceUsage,
    SeriesStatistics,
    TimeWindow,
)
from ..models.types import MetricKind
from ..utils.logging import get_logger

logger = get_logger(__name__)


def _present(points: Iterable[DataPoint], field: str) -> List[float]:
    return [getattr(p, field) for p in points if getattr(p, field) is not None]


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


class MetricAggregator:
    """Builds canonical series and reduces them to summary values"""

    def build_series(
        self,
        resource_id: str,
        family: ResourceFamily,
        metric_kind: MetricKind,
        window: TimeWindow,
        period: int,
        data_points: Iterable[DataPoint],
    ) -> MetricSeries:
        """Sort points by timestamp and drop duplicate timestamps"""
        definition = family.definition(metric_kind)

        ordered: List[DataPoint] = []
        duplicates = 0
        for point in sorted(data_points, key=lambda p: p.timestamp):
            if ordered and point.timestamp == ordered[-1].timestamp:
                duplicates += 1
                continue
            ordered.append(point)

        if duplicates:
            logger.debug(
                "Dropped duplicate data points",
                resource_id=resource_id,
                metric=metric_kind.value,
                duplicates=duplicates,
            )

        return MetricSeries(
            resource_id=resource_id,
            family=family.name,
            metric_kind=metric_kind,
            metric_name=definition.metric_name,
            namespace=family.namespace,
            unit=definition.unit,
            period=period,
            window=window,
            data_points=ordered,
        )

    def statistics(self, series: MetricSeries) -> SeriesStatistics:
        """Statistics over the whole series window; None where no point has a value"""
        points = series.data_points
        if not points:
            return SeriesStatistics()

        maxima = _present(points, "maximum")
        minima = _present(points, "minimum")
        sums = _present(points, "sum")
        counts = _present(points, "sample_count")

        return SeriesStatistics(
            average=_mean(_present(points, "average")),
            maximum=max(maxima) if maxima else None,
            minimum=min(minima) if minima else None,
            sum=sum(sums) if sums else None,
            sample_count=sum(counts) if counts else None,
            data_point_count=len(points),
            latest=points[-1],
        )

    def reduce(self, series: MetricSeries) -> ResourceUsage:
        """
        Reduce a series to one ResourceUsage.

        An empty series gives the zero usage. A point lacking a statistic is
        left out of that statistic's reduction but still counts as a data point.
        """
        if series.is_empty:
            return ResourceUsage.zero(series.unit)

        stats = self.statistics(series)
        return ResourceUsage(
            average=stats.average if stats.average is not None else 0.0,
            maximum=stats.maximum if stats.maximum is not None else 0.0,
            minimum=stats.minimum if stats.minimum is not None else 0.0,
            unit=series.unit,
            data_point_count=stats.data_point_count,
        )
