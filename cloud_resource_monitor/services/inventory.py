"""
Resource inventory: normalization of raw describe records and lookups.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..exceptions import (
    InvalidParameterError,
    ResourceNotFoundError,
    wrap_backend_error,
)
from ..models.api_models import BackendHealth
from ..models.families import get_family
from ..models.resources import (
    DatabaseInstance,
    Instance,
    NetworkAttachment,
    SecurityGroup,
)
from ..models.types import ResourceFamilyName
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PLATFORM = "Linux"


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


class ResourceInventoryAdapter:
    """Normalizes raw EC2/RDS records. Never raises; bad fields become defaults."""

    def tags_to_dict(self, raw_tags: Any) -> Dict[str, str]:
        tags = {}
        for tag in _list(raw_tags):
            tag = _dict(tag)
            key = _str(tag.get("Key"))
            if key is None:
                continue
            tags[key] = _str(tag.get("Value")) or ""
        return tags

    def security_groups(self, raw_groups: Any) -> List[SecurityGroup]:
        return [
            SecurityGroup(
                group_id=_str(_dict(group).get("GroupId")),
                group_name=_str(_dict(group).get("GroupName")),
            )
            for group in _list(raw_groups)
            if isinstance(group, dict)
        ]

    def network_attachments(self, raw_interfaces: Any) -> List[NetworkAttachment]:
        attachments = []
        for interface in _list(raw_interfaces):
            if not isinstance(interface, dict):
                continue
            association = _dict(interface.get("Association"))
            attachments.append(
                NetworkAttachment(
                    network_interface_id=_str(interface.get("NetworkInterfaceId")),
                    subnet_id=_str(interface.get("SubnetId")),
                    private_ip_address=_str(interface.get("PrivateIpAddress")),
                    public_ip_address=_str(association.get("PublicIp")),
                    mac_address=_str(interface.get("MacAddress")),
                    status=_str(interface.get("Status")),
                )
            )
        return attachments

    def normalize(self, raw: Any) -> Instance:
        """Raw DescribeInstances record -> Instance"""
        raw = _dict(raw)
        tags = self.tags_to_dict(raw.get("Tags"))

        return Instance(
            instance_id=_str(raw.get("InstanceId")) or "",
            name=tags.get("Name", ""),
            instance_type=_str(raw.get("InstanceType")),
            state=_str(_dict(raw.get("State")).get("Name")),
            availability_zone=_str(_dict(raw.get("Placement")).get("AvailabilityZone")),
            public_ip_address=_str(raw.get("PublicIpAddress")),
            private_ip_address=_str(raw.get("PrivateIpAddress")),
            launch_time=_datetime(raw.get("LaunchTime")),
            platform=_str(raw.get("Platform")) or DEFAULT_PLATFORM,
            vpc_id=_str(raw.get("VpcId")),
            subnet_id=_str(raw.get("SubnetId")),
            security_groups=self.security_groups(raw.get("SecurityGroups")),
            network_interfaces=self.network_attachments(raw.get("NetworkInterfaces")),
            tags=tags,
            monitoring=_str(_dict(raw.get("Monitoring")).get("State")),
        )

    def normalize_db_instance(self, raw: Any) -> DatabaseInstance:
        """Raw DescribeDBInstances record -> DatabaseInstance"""
        raw = _dict(raw)
        endpoint = _dict(raw.get("Endpoint"))

        return DatabaseInstance(
            instance_id=_str(raw.get("DBInstanceIdentifier")) or "",
            instance_class=_str(raw.get("DBInstanceClass")),
            engine=_str(raw.get("Engine")),
            engine_version=_str(raw.get("EngineVersion")),
            status=_str(raw.get("DBInstanceStatus")),
            endpoint=_str(endpoint.get("Address")),
            port=_int(endpoint.get("Port")),
            master_username=_str(raw.get("MasterUsername")),
            availability_zone=_str(raw.get("AvailabilityZone")),
            multi_az=bool(raw.get("MultiAZ", False)),
            publicly_accessible=bool(raw.get("PubliclyAccessible", False)),
            storage_type=_str(raw.get("StorageType")),
            allocated_storage=_int(raw.get("AllocatedStorage")),
            created_at=_datetime(raw.get("InstanceCreateTime")),
            tags=self.tags_to_dict(raw.get("TagList")),
        )


class InventoryService:
    """Instance listing and lookup; backend errors surface as MonitoringError"""

    def __init__(self, ec2_backend, rds_backend, adapter: Optional[ResourceInventoryAdapter] = None):
        self.ec2_backend = ec2_backend
        self.rds_backend = rds_backend
        self.adapter = adapter or ResourceInventoryAdapter()

    async def _describe_ec2(self, **params) -> List[Dict[str, Any]]:
        try:
            return await asyncio.to_thread(self.ec2_backend.describe_instances, **params)
        except Exception as e:
            logger.error("EC2 describe failed", error=str(e), params=params)
            raise wrap_backend_error(e, "EC2 inventory query failed") from e

    async def _describe_rds(self, **params) -> List[Dict[str, Any]]:
        try:
            return await asyncio.to_thread(self.rds_backend.describe_db_instances, **params)
        except Exception as e:
            logger.error("RDS describe failed", error=str(e), params=params)
            raise wrap_backend_error(e, "RDS inventory query failed") from e

    async def list_instances(self, family: ResourceFamilyName = ResourceFamilyName.EC2) -> list:
        family = ResourceFamilyName(family)
        if family == ResourceFamilyName.RDS:
            records = await self._describe_rds()
            instances = [self.adapter.normalize_db_instance(r) for r in records]
        else:
            records = await self._describe_ec2()
            instances = [self.adapter.normalize(r) for r in records]

        logger.info("Instances listed", family=family.value, count=len(instances))
        return instances

    async def list_running_instances(self) -> List[Instance]:
        records = await self._describe_ec2(
            filters=[{"Name": "instance-state-name", "Values": ["running"]}]
        )
        instances = [self.adapter.normalize(r) for r in records]
        logger.info("Running instances listed", count=len(instances))
        return instances

    async def list_available_db_instances(self) -> List[DatabaseInstance]:
        records = await self._describe_rds()
        instances = [
            self.adapter.normalize_db_instance(r)
            for r in records
            if r.get("DBInstanceStatus") == "available"
        ]
        logger.info("Available database instances listed", count=len(instances))
        return instances

    async def get_instance(self, family: ResourceFamilyName, resource_id: str):
        """Look up one instance; ResourceNotFoundError when it does not exist"""
        family = ResourceFamilyName(family)
        if not get_family(family).is_valid_resource_id(resource_id):
            raise InvalidParameterError(
                f"Invalid {family.value} resource id: {resource_id!r}",
                resource_id=resource_id,
            )

        if family == ResourceFamilyName.RDS:
            records = await self._describe_rds(identifier=resource_id)
            normalize = self.adapter.normalize_db_instance
        else:
            records = await self._describe_ec2(instance_ids=[resource_id])
            normalize = self.adapter.normalize

        if not records:
            raise ResourceNotFoundError(
                f"{family.value} instance not found: {resource_id}",
                resource_id=resource_id,
            )
        return normalize(records[0])

    async def check_health(self, family: ResourceFamilyName) -> BackendHealth:
        """Probe the family's inventory backend with a small describe call"""
        family = ResourceFamilyName(family)
        try:
            if family == ResourceFamilyName.RDS:
                await asyncio.to_thread(self.rds_backend.describe_db_instances, max_records=20)
            else:
                await asyncio.to_thread(self.ec2_backend.describe_instances, max_results=5)
        except Exception as e:
            logger.warning("Backend health check failed", family=family.value, error=str(e))
            return BackendHealth(family=family, status="DOWN", error=str(e))
        return BackendHealth(family=family, status="UP")
