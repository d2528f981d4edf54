"""Configuration management for the deployment stack.

This module provides a centralized configuration system that loads settings
from environment variables (via .env file) with defaults matching the
production deployment.
"""

import logging
from pathlib import Path
from typing import Optional

from aws_cdk import aws_logs as logs
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Repository root (parent of the infrastructure package)
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Deployment settings loaded from environment variables with defaults."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Target environment
    aws_account_id: Optional[str] = Field(
        default=None,
        description="AWS account the stack is deployed to",
    )
    aws_default_region: Optional[str] = Field(
        default=None,
        description="AWS region the stack is deployed to",
    )
    app_certificate_arn: Optional[str] = Field(
        default=None,
        description="ACM certificate ARN bound to the HTTPS listener",
    )

    # DNS
    domain_name: str = Field(
        default="divicent.com",
        description="Public hosted zone the record is created in",
    )
    record_name: str = Field(
        default="app",
        description="Record name inside the hosted zone",
    )

    # Network
    vpc_cidr: str = Field(default="10.0.0.0/16", description="VPC CIDR block")
    max_azs: int = Field(default=3, description="Maximum availability zones")
    nat_gateways: int = Field(default=0, description="Number of NAT gateways")

    # Compute
    instance_type: str = Field(
        default="t3.nano",
        description="EC2 instance type of the auto-scaling group",
    )
    asg_min_capacity: int = Field(default=0, description="Minimum instance count")
    asg_max_capacity: int = Field(default=3, description="Maximum instance count")
    asg_desired_capacity: int = Field(default=0, description="Initial instance count")
    target_capacity_percent: int = Field(
        default=100,
        description="Target utilization of the capacity provider",
    )

    # Service
    service_desired_count: int = Field(default=1, description="Number of running tasks")
    service_min_healthy_percent: int = Field(
        default=0,
        description="Lower limit of running tasks during a deployment",
    )
    container_port: int = Field(default=3000, description="Container and host port")
    memory_reservation_mib: int = Field(
        default=200,
        description="Soft memory limit of the container",
    )
    node_env: str = Field(default="production", description="NODE_ENV of the container")
    log_stream_prefix: str = Field(default="app", description="awslogs stream prefix")
    log_retention: str = Field(
        default="ONE_WEEK",
        description="CloudWatch log retention (logs.RetentionDays member name)",
    )

    # Load balancer
    http_port: int = Field(default=80, description="Redirecting HTTP listener port")
    https_port: int = Field(default=443, description="HTTPS listener port")
    deregistration_delay_seconds: int = Field(
        default=3,
        description="Time to drain targets before deregistration",
    )

    # Build and tooling
    app_source_dir: Path = Field(
        default=PROJECT_ROOT / "app",
        description="Docker build context of the application image",
    )
    log_level: str = Field(default="INFO", description="Logging level during synthesis")

    @field_validator("container_port", "http_port", "https_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is within valid range."""
        if not (1 <= v <= 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("target_capacity_percent")
    @classmethod
    def validate_target_capacity(cls, v: int) -> int:
        if not (1 <= v <= 100):
            raise ValueError("Target capacity percent must be between 1 and 100")
        return v

    @field_validator("service_min_healthy_percent")
    @classmethod
    def validate_min_healthy(cls, v: int) -> int:
        if not (0 <= v <= 100):
            raise ValueError("Minimum healthy percent must be between 0 and 100")
        return v

    @field_validator("app_certificate_arn")
    @classmethod
    def validate_certificate_arn(cls, v: Optional[str]) -> Optional[str]:
        """Validate that the certificate ARN points at ACM."""
        if not v:
            return None
        parts = v.split(":")
        if len(parts) < 6 or parts[0] != "arn" or parts[2] != "acm":
            raise ValueError(f"Not an ACM certificate ARN: {v}")
        return v

    @field_validator("log_retention")
    @classmethod
    def validate_log_retention(cls, v: str) -> str:
        name = v.upper()
        if name not in logs.RetentionDays.__members__:
            raise ValueError(f"Unknown log retention: {v}")
        return name

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_capacity_bounds(self) -> "Settings":
        """Validate that the desired capacity lies within the scaling bounds."""
        if not (
            0 <= self.asg_min_capacity
            <= self.asg_desired_capacity
            <= self.asg_max_capacity
        ):
            raise ValueError(
                "Capacity must satisfy 0 <= min <= desired <= max "
                f"(got {self.asg_min_capacity}/{self.asg_desired_capacity}/{self.asg_max_capacity})"
            )
        return self

    @property
    def record_fqdn(self) -> str:
        """Fully qualified name of the application record."""
        return f"{self.record_name}.{self.domain_name}"

    @property
    def app_url(self) -> str:
        """Public URL the application is served on."""
        return f"https://{self.record_fqdn}"

    @property
    def log_retention_days(self) -> logs.RetentionDays:
        return logs.RetentionDays[self.log_retention]


# Singleton instance - import this in other modules
settings = Settings()
