"""Error kinds raised across the Cloud Foundry adapter.

Every failure that leaves this package is one of the classes below. Vendor
and transport exceptions are collapsed into them at the client boundary so
callers never depend on the vendor's exception hierarchy.
"""

from typing import Any, Optional


class CloudFoundryError(Exception):
    """Base class for all adapter errors."""

    default_code = "CLOUDFOUNDRY_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details: dict[str, Any] = details or {}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to a dictionary for logging and CLI output."""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class ConfigurationError(CloudFoundryError):
    """Missing location, credentials or invalid configuration."""

    default_code = "CONFIGURATION_ERROR"


class DeploymentError(CloudFoundryError):
    """Artifact unreachable or deployment target invalid (e.g. unknown domain)."""

    default_code = "DEPLOYMENT_ERROR"


class PlatformError(CloudFoundryError):
    """Failure reported by the platform: not found, conflict, auth failure."""

    default_code = "PLATFORM_ERROR"

    @property
    def not_found(self) -> bool:
        return self.error_code == "NOT_FOUND"


class DuplicateServiceError(PlatformError):
    """A service instance with the requested name already exists in the space."""

    default_code = "DUPLICATE_SERVICE"

    def __init__(self, instance_name: str, space: Optional[str] = None) -> None:
        super().__init__(
            f"Service instance '{instance_name}' already exists",
            details={"instance_name": instance_name, "space": space},
        )
        self.instance_name = instance_name


class ReadinessTimeoutError(CloudFoundryError):
    """The application did not reach RUNNING within the start timeout."""

    default_code = "START_TIMEOUT"

    def __init__(self, application: str, timeout: float, last_status: Any = None) -> None:
        super().__init__(
            f"Application '{application}' not running after {timeout:g}s",
            details={"application": application, "timeout": timeout, "last_status": str(last_status)},
        )


class LifecycleError(CloudFoundryError):
    """Operation not permitted in the driver's current state."""

    default_code = "ILLEGAL_STATE"
