"""
Resource family descriptors.

A family tells the generic fetcher where a resource's metrics live: the
CloudWatch namespace, the dimension that identifies the resource, and the
backend metric name and unit behind each MetricKind.
"""

import re
from typing import Dict

from pydantic import BaseModel, ConfigDict

from .types import MetricKind, ResourceFamilyName


class MetricDefinition(BaseModel):
    """Backend metric name and unit for a MetricKind"""

    model_config = ConfigDict(frozen=True)

    metric_name: str
    unit: str


class ResourceFamily(BaseModel):
    """Where and how to query metrics for one resource type"""

    model_config = ConfigDict(frozen=True)

    name: ResourceFamilyName
    namespace: str
    dimension_key: str
    resource_id_pattern: str
    metrics: Dict[MetricKind, MetricDefinition]

    def supports(self, kind: MetricKind) -> bool:
        return kind in self.metrics

    def definition(self, kind: MetricKind) -> MetricDefinition:
        if kind not in self.metrics:
            raise KeyError(f"{self.name.value} has no metric {kind.value}")
        return self.metrics[kind]

    def is_valid_resource_id(self, resource_id: str) -> bool:
        return bool(resource_id) and re.fullmatch(self.resource_id_pattern, resource_id) is not None


EC2_FAMILY = ResourceFamily(
    name=ResourceFamilyName.EC2,
    namespace="AWS/EC2",
    dimension_key="InstanceId",
    resource_id_pattern=r"i-[0-9a-f]{8,17}",
    metrics={
        MetricKind.CPU_UTILIZATION: MetricDefinition(metric_name="CPUUtilization", unit="Percent"),
        MetricKind.NETWORK_IN: MetricDefinition(metric_name="NetworkIn", unit="Bytes"),
        MetricKind.NETWORK_OUT: MetricDefinition(metric_name="NetworkOut", unit="Bytes"),
        MetricKind.DISK_READ: MetricDefinition(metric_name="DiskReadBytes", unit="Bytes"),
        MetricKind.DISK_WRITE: MetricDefinition(metric_name="DiskWriteBytes", unit="Bytes"),
    },
)

RDS_FAMILY = ResourceFamily(
    name=ResourceFamilyName.RDS,
    namespace="AWS/RDS",
    dimension_key="DBInstanceIdentifier",
    resource_id_pattern=r"[A-Za-z][A-Za-z0-9-]{0,62}",
    metrics={
        MetricKind.CPU_UTILIZATION: MetricDefinition(metric_name="CPUUtilization", unit="Percent"),
        MetricKind.NETWORK_IN: MetricDefinition(metric_name="NetworkReceiveThroughput", unit="Bytes/Second"),
        MetricKind.NETWORK_OUT: MetricDefinition(metric_name="NetworkTransmitThroughput", unit="Bytes/Second"),
        MetricKind.DISK_READ: MetricDefinition(metric_name="ReadThroughput", unit="Bytes/Second"),
        MetricKind.DISK_WRITE: MetricDefinition(metric_name="WriteThroughput", unit="Bytes/Second"),
        MetricKind.DATABASE_CONNECTIONS: MetricDefinition(metric_name="DatabaseConnections", unit="Count"),
        MetricKind.READ_IOPS: MetricDefinition(metric_name="ReadIOPS", unit="Count/Second"),
        MetricKind.WRITE_IOPS: MetricDefinition(metric_name="WriteIOPS", unit="Count/Second"),
    },
)

FAMILIES: Dict[ResourceFamilyName, ResourceFamily] = {
    ResourceFamilyName.EC2: EC2_FAMILY,
    ResourceFamilyName.RDS: RDS_FAMILY,
}


def get_family(name) -> ResourceFamily:
    """Look up a family by enum or string name"""
    return FAMILIES[ResourceFamilyName(name)]
