"""Configuration schemas."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from cfpaas.domain.application import (
    DEFAULT_DISK_MB,
    DEFAULT_INSTANCES,
    DEFAULT_MEMORY_MB,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_START_TIMEOUT,
)


class LocationConfig(BaseModel):
    """Credentials and target of one Cloud Foundry org/space."""

    endpoint: str = Field(..., description="Cloud Controller API endpoint")
    org: str = Field(..., description="Organization name")
    space: str = Field(..., description="Space name")
    identity: str = Field(..., description="User name for the password grant")
    credential: str = Field(..., description="Password for the password grant", repr=False)
    verify_ssl: bool = Field(True, description="Verify TLS certificates")

    @field_validator("endpoint", "org", "space", "identity", "credential", mode="before")
    @classmethod
    def validate_required(cls, v: Any, info) -> str:
        if v is None or not str(v).strip():
            raise ValueError(f"{info.field_name} must not be null")
        return str(v).strip()

    @field_validator("endpoint")
    @classmethod
    def normalize_endpoint(cls, v: str) -> str:
        if "://" not in v:
            v = f"https://{v}"
        return v.rstrip("/")

    @property
    def cache_key(self) -> tuple[str, str, str, str]:
        return (self.endpoint, self.org, self.space, self.identity)


class ApplicationDefaults(BaseModel):
    """Defaults applied to application descriptors built from settings."""

    memory: int = Field(DEFAULT_MEMORY_MB, description="Memory per instance (MB)")
    disk: int = Field(DEFAULT_DISK_MB, description="Disk quota per instance (MB)")
    instances: int = Field(DEFAULT_INSTANCES, description="Number of instances")
    start_timeout: float = Field(DEFAULT_START_TIMEOUT, description="Readiness timeout in seconds")
    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, description="Readiness poll interval")
