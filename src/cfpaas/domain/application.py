"""Application descriptor and the observed remote application state."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from cfpaas.domain.base_enum import BaseEnumModel

DEFAULT_MEMORY_MB = 512
DEFAULT_DISK_MB = 1024
DEFAULT_INSTANCES = 1
DEFAULT_START_TIMEOUT = 120.0
DEFAULT_POLL_INTERVAL = 2.0


def stringify_env(env) -> dict[str, str]:
    """Environment values as strings; the platform stores arbitrary JSON values."""
    if not env:
        return {}
    return {str(k): str(v) for k, v in dict(env).items()}


class AppStatus(BaseEnumModel):
    """Coarse application status derived from the platform's app record."""

    RUNNING = "running"
    STAGING = "staging"
    STOPPED = "stopped"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def from_platform(cls, state: Optional[str], package_state: Optional[str] = None) -> "AppStatus":
        """
        Map a Cloud Foundry ``state``/``package_state`` pair to a status.

        Args:
            state: App state as reported by the platform (STARTED, STOPPED)
            package_state: Staging state (PENDING, STAGED, FAILED)

        Returns:
            AppStatus
        """
        state = (state or "").upper()
        package_state = (package_state or "").upper()
        if package_state == "FAILED":
            return cls.FAILED
        if state == "STOPPED":
            return cls.STOPPED
        if state == "STARTED":
            if package_state in ("", "STAGED"):
                return cls.RUNNING
            return cls.STAGING
        return cls.UNKNOWN


class ResourceProfile(BaseModel):
    """Memory/disk/instances/env values compared during reconciliation."""

    memory: int = DEFAULT_MEMORY_MB
    disk: int = DEFAULT_DISK_MB
    instances: int = DEFAULT_INSTANCES
    env: dict[str, str] = Field(default_factory=dict)


class ApplicationDescriptor(BaseModel):
    """Desired configuration of one application."""

    name: str = Field(..., description="Application name, unique within the space")
    artifact: str = Field(..., description="URL or local path of the deployable artifact")
    buildpack: Optional[str] = Field(None, description="Buildpack used to stage the artifact")
    domain: Optional[str] = Field(None, description="Route domain; platform default when unset")
    host: Optional[str] = Field(None, description="Route host; application name when unset")
    memory: int = Field(DEFAULT_MEMORY_MB, description="Memory per instance (MB)")
    disk: int = Field(DEFAULT_DISK_MB, description="Disk quota per instance (MB)")
    instances: int = Field(DEFAULT_INSTANCES, description="Number of instances")
    env: dict[str, str] = Field(default_factory=dict, description="Environment variables")
    services: list[str] = Field(
        default_factory=list, description="Service instances bound before the first start"
    )
    start_timeout: float = Field(DEFAULT_START_TIMEOUT, description="Readiness timeout in seconds")
    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, description="Readiness poll interval in seconds")

    @field_validator("name", "artifact")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("memory", "disk", "instances")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("start_timeout", "poll_interval")
    @classmethod
    def validate_duration(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("env", mode="before")
    @classmethod
    def coerce_env(cls, v):
        return stringify_env(v)

    @property
    def route_host(self) -> str:
        return self.host or self.name

    def profile(self) -> ResourceProfile:
        return ResourceProfile(
            memory=self.memory, disk=self.disk, instances=self.instances, env=dict(self.env)
        )


class RemoteApplicationState(BaseModel):
    """Attributes mirrored from the platform after each operation."""

    name: str
    guid: Optional[str] = None
    url: Optional[str] = None
    status: AppStatus = AppStatus.UNKNOWN
    memory: Optional[int] = None
    disk: Optional[int] = None
    instances: Optional[int] = None
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("env", mode="before")
    @classmethod
    def coerce_env(cls, v):
        return stringify_env(v)

    @property
    def running(self) -> bool:
        return self.status == AppStatus.RUNNING

    def profile(self) -> ResourceProfile:
        """Observed values as a profile; unknown numbers become zero so they never match."""
        return ResourceProfile(
            memory=self.memory or 0,
            disk=self.disk or 0,
            instances=self.instances or 0,
            env=dict(self.env),
        )
