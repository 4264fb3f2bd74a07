"""
Core types and enums for the cloud resource monitor.
"""

from enum import Enum


class ResourceFamilyName(str, Enum):
    """Monitored resource families"""

    EC2 = "ec2"
    RDS = "rds"


class MetricKind(str, Enum):
    """Metrics the monitor knows how to query"""

    CPU_UTILIZATION = "cpu_utilization"
    NETWORK_IN = "network_in"
    NETWORK_OUT = "network_out"
    DISK_READ = "disk_read"
    DISK_WRITE = "disk_write"

    # RDS only
    DATABASE_CONNECTIONS = "database_connections"
    READ_IOPS = "read_iops"
    WRITE_IOPS = "write_iops"


# Metrics reported in a usage summary, in summary field order
SUMMARY_METRIC_KINDS = (
    MetricKind.CPU_UTILIZATION,
    MetricKind.NETWORK_IN,
    MetricKind.NETWORK_OUT,
    MetricKind.DISK_READ,
    MetricKind.DISK_WRITE,
)


class Statistic(str, Enum):
    """Backend statistics, valued by their CloudWatch wire names"""

    AVERAGE = "Average"
    MAXIMUM = "Maximum"
    MINIMUM = "Minimum"
    SUM = "Sum"
    SAMPLE_COUNT = "SampleCount"


ALL_STATISTICS = (
    Statistic.AVERAGE,
    Statistic.MAXIMUM,
    Statistic.MINIMUM,
    Statistic.SUM,
    Statistic.SAMPLE_COUNT,
)


class ErrorKind(str, Enum):
    """Classified failure of a backend call"""

    BACKEND_UNAVAILABLE = "backend_unavailable"
    NOT_FOUND = "not_found"
    INVALID_PARAMETER = "invalid_parameter"
    UNKNOWN = "unknown"
