"""
Pytest configuration and shared fixtures for the Cloud Resource Monitor.
"""

import tempfile
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from cloud_resource_monitor.models.families import EC2_FAMILY, RDS_FAMILY
from cloud_resource_monitor.models.metrics import TimeWindow
from cloud_resource_monitor.services.aggregator import MetricAggregator
from cloud_resource_monitor.services.fetcher import MetricSeriesFetcher
from cloud_resource_monitor.services.inventory import InventoryService
from cloud_resource_monitor.services.monitoring import MonitoringService

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
EC2_INSTANCE_ID = "i-0123456789abcdef0"
RDS_INSTANCE_ID = "orders-db"


def raw_point(
    timestamp: datetime,
    average: Optional[float] = None,
    maximum: Optional[float] = None,
    minimum: Optional[float] = None,
    unit: Optional[str] = None,
    **extra,
) -> Dict[str, Any]:
    """Raw sample as returned by a metric backend"""
    point = {"timestamp": timestamp}
    for key, value in (
        ("average", average),
        ("maximum", maximum),
        ("minimum", minimum),
        ("unit", unit),
    ):
        if value is not None:
            point[key] = value
    point.update(extra)
    return point


def hourly_points(metric_value: float, hours: int = 24, unit: str = "Percent") -> List[Dict[str, Any]]:
    """One point per hour over the 24 hours before FIXED_NOW"""
    start = FIXED_NOW - timedelta(hours=hours)
    return [
        raw_point(
            start + timedelta(hours=i),
            average=metric_value,
            maximum=metric_value * 2,
            minimum=metric_value / 2,
            unit=unit,
        )
        for i in range(hours)
    ]


class FakeMetricBackend:
    """In-memory metric backend keyed by backend metric name"""

    def __init__(
        self,
        points: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        failures: Optional[Dict[str, BaseException]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.points = points or {}
        self.failures = failures or {}
        self.delays = delays or {}
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def query(self, namespace, metric_name, dimension, statistics, period_seconds, start, end):
        with self._lock:
            self.calls.append(
                {
                    "namespace": namespace,
                    "metric_name": metric_name,
                    "dimension": dimension,
                    "statistics": list(statistics),
                    "period": period_seconds,
                    "start": start,
                    "end": end,
                }
            )

        if metric_name in self.delays:
            time.sleep(self.delays[metric_name])
        if metric_name in self.failures:
            raise self.failures[metric_name]

        return [
            dict(p)
            for p in self.points.get(metric_name, [])
            if start <= p["timestamp"] < end
        ]

    def metric_names(self) -> List[str]:
        return [c["metric_name"] for c in self.calls]


class FakeEC2Backend:
    """In-memory EC2 describe_instances"""

    def __init__(self, instances: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.instances = instances or []
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def describe_instances(self, instance_ids=None, filters=None, max_results=None):
        self.calls.append(
            {"instance_ids": instance_ids, "filters": filters, "max_results": max_results}
        )
        if self.error:
            raise self.error

        records = self.instances
        if instance_ids:
            records = [r for r in records if r.get("InstanceId") in instance_ids]
        for f in filters or []:
            if f["Name"] == "instance-state-name":
                records = [r for r in records if r.get("State", {}).get("Name") in f["Values"]]
        return records


class FakeRDSBackend:
    """In-memory RDS describe_db_instances"""

    def __init__(self, instances: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.instances = instances or []
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def describe_db_instances(self, identifier=None, max_records=None):
        self.calls.append({"identifier": identifier, "max_records": max_records})
        if self.error:
            raise self.error
        if identifier:
            return [r for r in self.instances if r.get("DBInstanceIdentifier") == identifier]
        return self.instances


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def hour_window():
    return TimeWindow(start=FIXED_NOW - timedelta(hours=1), end=FIXED_NOW)


@pytest.fixture
def aggregator():
    return MetricAggregator()


@pytest.fixture
def metric_backend():
    return FakeMetricBackend()


@pytest.fixture
def ec2_fetcher(metric_backend, aggregator):
    return MetricSeriesFetcher(metric_backend, EC2_FAMILY, aggregator=aggregator)


@pytest.fixture
def rds_fetcher(metric_backend, aggregator):
    return MetricSeriesFetcher(metric_backend, RDS_FAMILY, aggregator=aggregator)


@pytest.fixture
def sample_ec2_records():
    """Raw DescribeInstances records"""
    return [
        {
            "InstanceId": EC2_INSTANCE_ID,
            "InstanceType": "t3.medium",
            "State": {"Code": 16, "Name": "running"},
            "Placement": {"AvailabilityZone": "us-east-2a"},
            "PrivateIpAddress": "10.0.1.12",
            "PublicIpAddress": "3.14.15.92",
            "LaunchTime": datetime(2024, 1, 10, 8, 30, tzinfo=timezone.utc),
            "VpcId": "vpc-0abc",
            "SubnetId": "subnet-0abc",
            "SecurityGroups": [
                {"GroupId": "sg-0aaa", "GroupName": "web"},
                {"GroupId": "sg-0bbb", "GroupName": "ssh"},
            ],
            "NetworkInterfaces": [
                {
                    "NetworkInterfaceId": "eni-0abc",
                    "SubnetId": "subnet-0abc",
                    "PrivateIpAddress": "10.0.1.12",
                    "MacAddress": "0a:1b:2c:3d:4e:5f",
                    "Status": "in-use",
                    "Association": {"PublicIp": "3.14.15.92"},
                }
            ],
            "Tags": [{"Key": "Name", "Value": "web-1"}, {"Key": "env", "Value": "prod"}],
            "Monitoring": {"State": "disabled"},
        },
        {
            "InstanceId": "i-0fedcba9876543210",
            "InstanceType": "m5.large",
            "State": {"Code": 80, "Name": "stopped"},
            "Platform": "windows",
            "Tags": [{"Key": "env", "Value": "staging"}],
        },
    ]


@pytest.fixture
def sample_rds_records():
    """Raw DescribeDBInstances records"""
    return [
        {
            "DBInstanceIdentifier": RDS_INSTANCE_ID,
            "DBInstanceClass": "db.t3.micro",
            "Engine": "postgres",
            "EngineVersion": "15.4",
            "DBInstanceStatus": "available",
            "Endpoint": {"Address": "orders-db.abc.us-east-2.rds.amazonaws.com", "Port": 5432},
            "MasterUsername": "admin",
            "AvailabilityZone": "us-east-2b",
            "MultiAZ": False,
            "PubliclyAccessible": False,
            "StorageType": "gp3",
            "AllocatedStorage": 20,
            "InstanceCreateTime": datetime(2023, 11, 2, tzinfo=timezone.utc),
            "TagList": [{"Key": "team", "Value": "orders"}],
        },
        {
            "DBInstanceIdentifier": "reports-db",
            "DBInstanceClass": "db.r5.large",
            "Engine": "mysql",
            "DBInstanceStatus": "stopped",
        },
    ]


@pytest.fixture
def ec2_backend(sample_ec2_records):
    return FakeEC2Backend(sample_ec2_records)


@pytest.fixture
def rds_backend(sample_rds_records):
    return FakeRDSBackend(sample_rds_records)


@pytest.fixture
def inventory_service(ec2_backend, rds_backend):
    return InventoryService(ec2_backend, rds_backend)


@pytest.fixture
def monitoring_service(metric_backend, fixed_clock):
    return MonitoringService(metric_backend, clock=fixed_clock)
