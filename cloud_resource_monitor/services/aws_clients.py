"""
AWS backend clients for metrics and inventory.

boto3 clients are thread-safe, so one client per service is created at
startup and shared by every request.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.config import Config

from ..models.types import Statistic
from ..utils.logging import get_logger
from .config import AWSConfig

logger = get_logger(__name__)


# CloudWatch datapoint keys -> raw sample keys
_DATAPOINT_FIELDS = {
    "Timestamp": "timestamp",
    "Average": "average",
    "Maximum": "maximum",
    "Minimum": "minimum",
    "Sum": "sum",
    "SampleCount": "sample_count",
    "Unit": "unit",
}


class AWSClientFactory:
    """Builds process-scoped boto3 clients from AWSConfig"""

    def __init__(self, aws_config: AWSConfig):
        self.aws_config = aws_config
        self.session = boto3.session.Session(
            profile_name=aws_config.profile, region_name=aws_config.region
        )
        self.client_config = Config(
            region_name=aws_config.region,
            retries={
                "max_attempts": aws_config.max_attempts,
                "mode": aws_config.retry_mode,
            },
            connect_timeout=aws_config.connect_timeout,
            read_timeout=aws_config.read_timeout,
        )
        self._clients: Dict[str, Any] = {}

    def client(self, service_name: str):
        if service_name not in self._clients:
            self._clients[service_name] = self.session.client(
                service_name, config=self.client_config
            )
            logger.info(
                "AWS client initialized",
                service=service_name,
                region=self.aws_config.region,
                profile=self.aws_config.profile,
            )
        return self._clients[service_name]

    def cloudwatch(self):
        return self.client("cloudwatch")

    def ec2(self):
        return self.client("ec2")

    def rds(self):
        return self.client("rds")


class CloudWatchMetricBackend:
    """Metric backend over CloudWatch GetMetricStatistics"""

    def __init__(self, cloudwatch_client):
        self.client = cloudwatch_client

    def query(
        self,
        namespace: str,
        metric_name: str,
        dimension: Dict[str, str],
        statistics: Sequence[Statistic],
        period_seconds: int,
        start: datetime,
        end: datetime,
    ) -> List[Dict[str, Any]]:
        """Return raw samples as dicts keyed timestamp/average/.../unit"""
        response = self.client.get_metric_statistics(
            Namespace=namespace,
            MetricName=metric_name,
            Dimensions=[{"Name": dimension["key"], "Value": dimension["value"]}],
            StartTime=start,
            EndTime=end,
            Period=period_seconds,
            Statistics=[Statistic(s).value for s in statistics],
        )
        return [
            {
                field: datapoint[key]
                for key, field in _DATAPOINT_FIELDS.items()
                if key in datapoint
            }
            for datapoint in response.get("Datapoints", [])
        ]


class EC2InventoryBackend:
    """Inventory backend over EC2 DescribeInstances (single page)"""

    def __init__(self, ec2_client):
        self.client = ec2_client

    def describe_instances(
        self,
        instance_ids: Optional[List[str]] = None,
        filters: Optional[List[Dict[str, Any]]] = None,
        max_results: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if instance_ids:
            params["InstanceIds"] = instance_ids
        if filters:
            params["Filters"] = filters
        if max_results:
            params["MaxResults"] = max_results

        response = self.client.describe_instances(**params)
        return [
            instance
            for reservation in response.get("Reservations", [])
            for instance in reservation.get("Instances", [])
        ]


class RDSInventoryBackend:
    """Inventory backend over RDS DescribeDBInstances (single page)"""

    def __init__(self, rds_client):
        self.client = rds_client

    def describe_db_instances(
        self, identifier: Optional[str] = None, max_records: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if identifier:
            params["DBInstanceIdentifier"] = identifier
        if max_records:
            params["MaxRecords"] = max_records

        response = self.client.describe_db_instances(**params)
        return response.get("DBInstances", [])
