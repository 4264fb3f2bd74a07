"""
Configuration management for the cloud resource monitor.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from ..models.types import ResourceFamilyName
from ..utils.logging import get_logger

logger = get_logger(__name__)


class AWSConfig(BaseModel):
    """AWS session and client configuration"""

    region: str = "us-east-2"
    profile: Optional[str] = None
    max_attempts: int = Field(default=3, ge=1)
    retry_mode: str = "standard"
    connect_timeout: int = Field(default=10, gt=0)
    read_timeout: int = Field(default=20, gt=0)


class MetricsConfig(BaseModel):
    """Defaults the caller-facing layer supplies to metric queries"""

    default_period: int = Field(default=300, gt=0)
    default_lookback_hours: int = Field(default=1, gt=0)
    max_datapoints: int = Field(default=1440, gt=0)
    fetch_timeout_seconds: float = Field(default=60.0, gt=0)
    # Worker threads shared by all backend queries
    fetch_workers: int = Field(default=20, gt=0)
    enabled_families: List[ResourceFamilyName] = Field(
        default_factory=lambda: [ResourceFamilyName.EC2, ResourceFamilyName.RDS]
    )

    @field_validator("enabled_families")
    @classmethod
    def at_least_one_family(cls, v):
        if not v:
            raise ValueError("at least one resource family must be enabled")
        return v


# Environment variable -> (section, key, converter)
ENV_OVERRIDES = {
    "AWS_REGION": ("aws", "region", str),
    "AWS_PROFILE": ("aws", "profile", str),
    "AWS_MAX_ATTEMPTS": ("aws", "max_attempts", int),
    "MONITOR_DEFAULT_PERIOD": ("metrics", "default_period", int),
    "MONITOR_DEFAULT_LOOKBACK_HOURS": ("metrics", "default_lookback_hours", int),
    "MONITOR_MAX_DATAPOINTS": ("metrics", "max_datapoints", int),
    "MONITOR_FETCH_TIMEOUT": ("metrics", "fetch_timeout_seconds", float),
    "MONITOR_FETCH_WORKERS": ("metrics", "fetch_workers", int),
}


class ConfigManager:
    """Loads monitor configuration from YAML, .env and the environment"""

    CONFIG_FILE = "monitoring.yaml"

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        load_dotenv()

        config_data = self._load_config_file()
        config_data = self._apply_env_overrides(config_data)

        self.aws_config = AWSConfig(**config_data.get("aws", {}))
        self.metrics_config = MetricsConfig(**config_data.get("metrics", {}))

        logger.debug(
            "Configuration loaded",
            config_dir=str(self.config_dir),
            region=self.aws_config.region,
            default_period=self.metrics_config.default_period,
        )

    @property
    def config_file(self) -> Path:
        return self.config_dir / self.CONFIG_FILE

    def _default_config(self) -> Dict[str, Any]:
        return {
            "aws": AWSConfig().model_dump(),
            "metrics": MetricsConfig().model_dump(mode="json"),
        }

    def _load_config_file(self) -> Dict[str, Any]:
        """Read monitoring.yaml, writing the defaults when it does not exist"""
        if not self.config_file.exists():
            default_config = self._default_config()
            with open(self.config_file, "w") as f:
                yaml.dump(default_config, f, default_flow_style=False)
            logger.info("Default configuration written", file=str(self.config_file))
            return default_config

        with open(self.config_file, "r") as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError(f"Invalid configuration file: {self.config_file}")
        return config_data

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        for env_name, (section, key, converter) in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is None or value == "":
                continue
            try:
                config_data.setdefault(section, {})[key] = converter(value)
            except ValueError:
                raise ValueError(f"Invalid value for {env_name}: {value!r}")
        return config_data

    def as_dict(self) -> Dict[str, Any]:
        return {
            "config_dir": str(self.config_dir),
            "aws": self.aws_config.model_dump(),
            "metrics": self.metrics_config.model_dump(mode="json"),
        }
