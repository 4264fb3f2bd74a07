"""
Unit tests for metric series retrieval.
Tests ordering, unit handling, error classification and chunked ranges.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from cloud_resource_monitor.models import (
    EC2_FAMILY,
    RDS_FAMILY,
    ErrorKind,
    FetchError,
    MetricKind,
    MetricSeries,
    Statistic,
    TimeWindow,
)
from cloud_resource_monitor.models.types import ALL_STATISTICS
from cloud_resource_monitor.services.fetcher import MetricSeriesFetcher, normalize_unit

from tests.conftest import (
    EC2_INSTANCE_ID,
    FIXED_NOW,
    RDS_INSTANCE_ID,
    FakeMetricBackend,
    raw_point,
)

STATS = (Statistic.AVERAGE, Statistic.MAXIMUM)


def client_error(code: str, message: str = "error") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, "GetMetricStatistics")


class TestNormalizeUnit:
    """Test backend unit label handling."""

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Percent", "Percent"),
            ("percent", "Percent"),
            ("bytes/second", "Bytes/Second"),
            (" Count ", "Count"),
            ("Furlongs", "Furlongs"),
        ],
    )
    def test_known_labels(self, label, expected):
        assert normalize_unit(label, "Bytes") == expected

    @pytest.mark.parametrize("label", [None, "", "None", "none"])
    def test_unreported_unit_uses_default(self, label):
        assert normalize_unit(label, "Bytes") == "Bytes"


class TestFetch:
    """Test single metric fetches."""

    @pytest.mark.asyncio
    async def test_points_returned_ascending(self, hour_window):
        start = hour_window.start
        backend = FakeMetricBackend(
            points={
                "CPUUtilization": [
                    raw_point(start + timedelta(minutes=10), average=3.0, unit="Percent"),
                    raw_point(start + timedelta(minutes=5), average=2.0, unit="Percent"),
                    raw_point(start, average=1.0, unit="Percent"),
                ]
            }
        )
        fetcher = MetricSeriesFetcher(backend, EC2_FAMILY)

        series = await fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, 300, STATS
        )

        assert isinstance(series, MetricSeries)
        assert [p.average for p in series.data_points] == [1.0, 2.0, 3.0]
        timestamps = [p.timestamp for p in series.data_points]
        assert timestamps == sorted(timestamps)

    @pytest.mark.asyncio
    async def test_query_parameters(self, metric_backend, ec2_fetcher, hour_window):
        await ec2_fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.NETWORK_IN, hour_window, 300, STATS
        )

        assert len(metric_backend.calls) == 1
        call = metric_backend.calls[0]
        assert call["namespace"] == "AWS/EC2"
        assert call["metric_name"] == "NetworkIn"
        assert call["dimension"] == {"key": "InstanceId", "value": EC2_INSTANCE_ID}
        assert call["statistics"] == list(STATS)
        assert call["period"] == 300
        assert call["start"] == hour_window.start
        assert call["end"] == hour_window.end

    @pytest.mark.asyncio
    async def test_rds_dimension_and_metric_name(self, metric_backend, rds_fetcher, hour_window):
        await rds_fetcher.fetch(
            RDS_INSTANCE_ID, MetricKind.DISK_WRITE, hour_window, 300, STATS
        )

        call = metric_backend.calls[0]
        assert call["namespace"] == "AWS/RDS"
        assert call["metric_name"] == "WriteThroughput"
        assert call["dimension"] == {"key": "DBInstanceIdentifier", "value": RDS_INSTANCE_ID}

    @pytest.mark.asyncio
    async def test_missing_unit_uses_metric_default(self, hour_window):
        backend = FakeMetricBackend(
            points={
                "NetworkIn": [
                    raw_point(hour_window.start, average=100.0),
                    raw_point(hour_window.start + timedelta(minutes=5), average=50.0, unit="None"),
                ]
            }
        )
        fetcher = MetricSeriesFetcher(backend, EC2_FAMILY)

        series = await fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.NETWORK_IN, hour_window, 300, STATS
        )

        assert [p.unit for p in series.data_points] == ["Bytes", "Bytes"]
        assert series.unit == "Bytes"

    @pytest.mark.asyncio
    async def test_empty_result_is_empty_series(self, ec2_fetcher, hour_window):
        series = await ec2_fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.DISK_READ, hour_window, 300, STATS
        )

        assert isinstance(series, MetricSeries)
        assert series.is_empty

    @pytest.mark.asyncio
    async def test_duplicate_backend_points_collapsed(self, hour_window):
        backend = FakeMetricBackend(
            points={
                "CPUUtilization": [
                    raw_point(hour_window.start, average=1.0),
                    raw_point(hour_window.start, average=2.0),
                ]
            }
        )
        fetcher = MetricSeriesFetcher(backend, EC2_FAMILY)

        series = await fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, 300, STATS
        )

        assert len(series.data_points) == 1


class TestFetchErrors:
    """Test that backend failures become FetchError values."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,kind",
        [
            (client_error("Throttling", "Rate exceeded"), ErrorKind.BACKEND_UNAVAILABLE),
            (client_error("AccessDenied"), ErrorKind.BACKEND_UNAVAILABLE),
            (client_error("InvalidParameterValue"), ErrorKind.INVALID_PARAMETER),
            (client_error("ResourceNotFound"), ErrorKind.NOT_FOUND),
            (client_error("SomethingNew"), ErrorKind.UNKNOWN),
            (EndpointConnectionError(endpoint_url="https://monitoring.us-east-2.amazonaws.com"), ErrorKind.BACKEND_UNAVAILABLE),
            (RuntimeError("boom"), ErrorKind.UNKNOWN),
        ],
    )
    async def test_backend_errors_classified(self, hour_window, error, kind):
        backend = FakeMetricBackend(failures={"CPUUtilization": error})
        fetcher = MetricSeriesFetcher(backend, EC2_FAMILY)

        result = await fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, 300, STATS
        )

        assert isinstance(result, FetchError)
        assert result.kind == kind
        assert result.resource_id == EC2_INSTANCE_ID
        assert result.metric_kind == MetricKind.CPU_UTILIZATION
        assert result.cause == type(error).__name__

    @pytest.mark.asyncio
    async def test_timeout_is_backend_unavailable(self, hour_window):
        backend = FakeMetricBackend(delays={"CPUUtilization": 0.5})
        fetcher = MetricSeriesFetcher(backend, EC2_FAMILY, timeout_seconds=0.05)

        result = await fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, 300, STATS
        )

        assert isinstance(result, FetchError)
        assert result.kind == ErrorKind.BACKEND_UNAVAILABLE
        assert "timed out" in result.message

    @pytest.mark.asyncio
    async def test_queue_wait_not_counted_against_timeout(self, hour_window):
        backend = FakeMetricBackend(delays={"CPUUtilization": 0.3, "NetworkIn": 0.3})
        fetcher = MetricSeriesFetcher(
            backend, EC2_FAMILY, timeout_seconds=0.55, executor=ThreadPoolExecutor(max_workers=1)
        )

        first, second = await asyncio.gather(
            fetcher.fetch(EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, 300, STATS),
            fetcher.fetch(EC2_INSTANCE_ID, MetricKind.NETWORK_IN, hour_window, 300, STATS),
        )

        assert isinstance(first, MetricSeries)
        assert isinstance(second, MetricSeries)
        assert len(backend.calls) == 2

    @pytest.mark.asyncio
    async def test_malformed_response_is_unknown(self, hour_window):
        backend = FakeMetricBackend(
            points={"CPUUtilization": [raw_point(hour_window.start, average="not-a-number")]}
        )
        fetcher = MetricSeriesFetcher(backend, EC2_FAMILY)

        result = await fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, 300, STATS
        )

        assert isinstance(result, FetchError)
        assert result.kind == ErrorKind.UNKNOWN


class TestFetchValidation:
    """Test parameter checks made before any backend call."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("period", [0, -60, 7])
    async def test_bad_period(self, metric_backend, ec2_fetcher, hour_window, period):
        result = await ec2_fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, period, STATS
        )

        assert isinstance(result, FetchError)
        assert result.kind == ErrorKind.INVALID_PARAMETER
        assert metric_backend.calls == []

    @pytest.mark.asyncio
    async def test_no_statistics(self, metric_backend, ec2_fetcher, hour_window):
        result = await ec2_fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, 300, ()
        )

        assert result.kind == ErrorKind.INVALID_PARAMETER
        assert metric_backend.calls == []

    @pytest.mark.asyncio
    async def test_unknown_statistic(self, metric_backend, ec2_fetcher, hour_window):
        result = await ec2_fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, 300, [Statistic.AVERAGE, "p99"]
        )

        assert isinstance(result, FetchError)
        assert result.kind == ErrorKind.INVALID_PARAMETER
        assert "p99" in result.message
        assert metric_backend.calls == []

    @pytest.mark.asyncio
    async def test_statistic_wire_names_accepted(self, metric_backend, ec2_fetcher, hour_window):
        result = await ec2_fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, 300, ["Average", "Maximum"]
        )

        assert isinstance(result, MetricSeries)
        assert len(metric_backend.calls) == 1

    @pytest.mark.asyncio
    async def test_unsupported_metric(self, metric_backend, ec2_fetcher, hour_window):
        result = await ec2_fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.DATABASE_CONNECTIONS, hour_window, 300, STATS
        )

        assert result.kind == ErrorKind.INVALID_PARAMETER
        assert metric_backend.calls == []

    @pytest.mark.asyncio
    async def test_point_limit(self, metric_backend):
        fetcher = MetricSeriesFetcher(metric_backend, EC2_FAMILY, max_datapoints=10)
        window = TimeWindow.trailing(1, end=FIXED_NOW)

        result = await fetcher.fetch(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, window, 60, STATS
        )

        assert result.kind == ErrorKind.INVALID_PARAMETER
        assert metric_backend.calls == []


class TestFetchMany:
    """Test concurrent multi-metric fetches."""

    @pytest.mark.asyncio
    async def test_results_keyed_by_metric(self, hour_window):
        backend = FakeMetricBackend(
            points={"CPUUtilization": [raw_point(hour_window.start, average=5.0)]},
            failures={"NetworkOut": client_error("Throttling")},
        )
        fetcher = MetricSeriesFetcher(backend, EC2_FAMILY)

        results = await fetcher.fetch_many(
            EC2_INSTANCE_ID,
            [MetricKind.CPU_UTILIZATION, MetricKind.NETWORK_OUT, MetricKind.CPU_UTILIZATION],
            hour_window,
            300,
            STATS,
        )

        assert list(results) == [MetricKind.CPU_UTILIZATION, MetricKind.NETWORK_OUT]
        assert isinstance(results[MetricKind.CPU_UTILIZATION], MetricSeries)
        assert isinstance(results[MetricKind.NETWORK_OUT], FetchError)
        assert sorted(backend.metric_names()) == ["CPUUtilization", "NetworkOut"]


class TestFetchRange:
    """Test windows longer than one backend query."""

    @pytest.mark.asyncio
    async def test_long_window_split_and_merged(self):
        window = TimeWindow.trailing(10, end=FIXED_NOW)
        backend = FakeMetricBackend(
            points={
                "CPUUtilization": [
                    raw_point(window.start + timedelta(hours=h), average=float(h))
                    for h in range(10)
                ]
            }
        )
        fetcher = MetricSeriesFetcher(backend, EC2_FAMILY, max_datapoints=4)

        series = await fetcher.fetch_range(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, window, 3600, ALL_STATISTICS
        )

        assert isinstance(series, MetricSeries)
        assert len(backend.calls) == 3
        assert [p.average for p in series.data_points] == [float(h) for h in range(10)]
        assert series.window == window

    @pytest.mark.asyncio
    async def test_short_window_single_query(self, metric_backend, ec2_fetcher, hour_window):
        result = await ec2_fetcher.fetch_range(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, 300, ALL_STATISTICS
        )

        assert isinstance(result, MetricSeries)
        assert len(metric_backend.calls) == 1

    @pytest.mark.asyncio
    async def test_failed_chunk_fails_range(self):
        backend = FakeMetricBackend(failures={"CPUUtilization": client_error("Throttling")})
        fetcher = MetricSeriesFetcher(backend, EC2_FAMILY, max_datapoints=4)

        result = await fetcher.fetch_range(
            EC2_INSTANCE_ID,
            MetricKind.CPU_UTILIZATION,
            TimeWindow.trailing(10, end=FIXED_NOW),
            3600,
            ALL_STATISTICS,
        )

        assert isinstance(result, FetchError)
        assert result.kind == ErrorKind.BACKEND_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_range_still_validates_period(self, metric_backend, ec2_fetcher, hour_window):
        result = await ec2_fetcher.fetch_range(
            EC2_INSTANCE_ID, MetricKind.CPU_UTILIZATION, hour_window, 7, ALL_STATISTICS
        )

        assert result.kind == ErrorKind.INVALID_PARAMETER
        assert metric_backend.calls == []
