"""Collapse vendor and transport failures into the adapter's error kinds."""

from functools import wraps
from typing import Any, Callable, Optional, TypeVar

import requests

from cfpaas.domain.exceptions import CloudFoundryError, PlatformError
from cfpaas.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Cloud Controller error codes that mean "the thing you asked for is not there"
NOT_FOUND_CODES = frozenset(
    {
        "CF-AppNotFound",
        "CF-NotFound",
        "CF-ServiceInstanceNotFound",
        "CF-ServiceBindingNotFound",
        "CF-RouteNotFound",
        "CF-DomainNotFound",
    }
)
AUTH_CODES = frozenset({"CF-InvalidAuthToken", "CF-NotAuthenticated", "CF-NotAuthorized"})


def platform_error_from_response(response: Any, operation: str) -> PlatformError:
    """
    Build a PlatformError from a Cloud Controller error response.

    Args:
        response: Vendor response object with ``error_code``/``error_message``
        operation: Operation name for the message

    Returns:
        PlatformError
    """
    cf_code = getattr(response, "error_code", None)
    cf_message = getattr(response, "error_message", None) or "unknown error"
    http = getattr(response, "response", None)
    status = getattr(http, "status_code", None)

    if cf_code in NOT_FOUND_CODES or status == 404:
        error_code = "NOT_FOUND"
    elif cf_code in AUTH_CODES or status in (401, 403):
        error_code = "AUTHENTICATION_FAILED"
    elif status == 409:
        error_code = "CONFLICT"
    else:
        error_code = "PLATFORM_ERROR"

    return PlatformError(
        f"{operation} failed: {cf_message}",
        error_code=error_code,
        details={"operation": operation, "cf_error_code": cf_code, "status_code": status},
    )


def check_response(response: Any, operation: str) -> Any:
    """Return ``response`` unchanged, or raise when it carries a platform error."""
    if getattr(response, "has_error", False):
        raise platform_error_from_response(response, operation)
    return response


def translate_vendor_errors(operation: Optional[str] = None) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator that re-raises anything but our own errors as PlatformError.

    The original exception is kept as ``cause`` so callers can still inspect
    it, but never have to catch vendor types.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        op_name = operation or func.__name__

        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except CloudFoundryError:
                raise
            except requests.exceptions.RequestException as e:
                logger.error("Transport error during %s: %s", op_name, e)
                raise PlatformError(
                    f"{op_name} failed: {e}",
                    error_code="NETWORK_ERROR",
                    details={"operation": op_name},
                    cause=e,
                ) from e
            except Exception as e:
                logger.error("Vendor error during %s: %s", op_name, e)
                raise PlatformError(
                    f"{op_name} failed: {e}",
                    details={"operation": op_name, "error_type": type(e).__name__},
                    cause=e,
                ) from e

        return wrapper

    return decorator
