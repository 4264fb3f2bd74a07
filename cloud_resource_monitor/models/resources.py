"""
Inventory models for monitored resources.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class SecurityGroup(BaseModel):
    """Security group reference attached to an instance"""

    group_id: Optional[str] = None
    group_name: Optional[str] = None


class NetworkAttachment(BaseModel):
    """Network interface attached to an instance"""

    network_interface_id: Optional[str] = None
    subnet_id: Optional[str] = None
    private_ip_address: Optional[str] = None
    public_ip_address: Optional[str] = None
    mac_address: Optional[str] = None
    status: Optional[str] = None


class Instance(BaseModel):
    """EC2 compute instance"""

    instance_id: str
    name: str = ""
    instance_type: Optional[str] = None
    state: Optional[str] = None
    availability_zone: Optional[str] = None
    public_ip_address: Optional[str] = None
    private_ip_address: Optional[str] = None
    launch_time: Optional[datetime] = None
    platform: str = "Linux"
    vpc_id: Optional[str] = None
    subnet_id: Optional[str] = None
    security_groups: List[SecurityGroup] = Field(default_factory=list)
    network_interfaces: List[NetworkAttachment] = Field(default_factory=list)
    tags: Dict[str, str] = Field(default_factory=dict)
    monitoring: Optional[str] = None


class DatabaseInstance(BaseModel):
    """RDS database instance"""

    instance_id: str
    instance_class: Optional[str] = None
    engine: Optional[str] = None
    engine_version: Optional[str] = None
    status: Optional[str] = None
    endpoint: Optional[str] = None
    port: Optional[int] = None
    master_username: Optional[str] = None
    availability_zone: Optional[str] = None
    multi_az: bool = False
    publicly_accessible: bool = False
    storage_type: Optional[str] = None
    allocated_storage: Optional[int] = None
    created_at: Optional[datetime] = None
    tags: Dict[str, str] = Field(default_factory=dict)
