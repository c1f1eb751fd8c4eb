"""Cache of Cloud Foundry clients keyed by (endpoint, org, space, identity).

The cache is an ordinary object owned by the caller; nothing here is
process-global. Sessions handed out with reuse enabled are shared by every
caller using the same key, so callers sharing one must serialize around it.
"""

import threading
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from cfpaas.config.schemas import LocationConfig
from cfpaas.domain.exceptions import ConfigurationError
from cfpaas.infrastructure.cloudfoundry.paas_client import CloudFoundryPaasClient
from cfpaas.infrastructure.cloudfoundry.session import CloudFoundrySession, create_session
from cfpaas.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[LocationConfig], CloudFoundrySession]


def to_location(location: Union[LocationConfig, dict[str, Any], None]) -> LocationConfig:
    """Validate a location mapping, turning schema errors into ConfigurationError."""
    if location is None:
        raise ConfigurationError("No Cloud Foundry location supplied")
    if isinstance(location, LocationConfig):
        return location
    try:
        return LocationConfig(**location)
    except ValidationError as e:
        fields = [" -> ".join(str(x) for x in error["loc"]) for error in e.errors()]
        raise ConfigurationError(
            f"Invalid Cloud Foundry location: {', '.join(fields)}",
            details={"errors": [error["msg"] for error in e.errors()]},
            cause=e,
        ) from e


class ClientCache:
    """Hands out one client per credentials tuple when reuse is allowed."""

    def __init__(self, session_factory: Optional[SessionFactory] = None) -> None:
        self._session_factory = session_factory or create_session
        self._clients: dict[tuple[str, str, str, str], CloudFoundryPaasClient] = {}
        self._lock = threading.RLock()

    def get_client(
        self,
        location: Union[LocationConfig, dict[str, Any]],
        allow_reuse: bool = True,
    ) -> CloudFoundryPaasClient:
        """
        Return a client for ``location``.

        Args:
            location: Location config (or a mapping validated into one)
            allow_reuse: Return the cached client for the same key if present

        Returns:
            CloudFoundryPaasClient
        """
        location = to_location(location)
        key = location.cache_key

        with self._lock:
            if allow_reuse and key in self._clients:
                logger.debug("Reusing Cloud Foundry client for %s/%s", location.org, location.space)
                return self._clients[key]

        session = self._session_factory(location)
        client = CloudFoundryPaasClient(session)

        if allow_reuse:
            with self._lock:
                # another caller may have won the race; keep the first one
                client = self._clients.setdefault(key, client)
        return client

    def evict(self, location: Union[LocationConfig, dict[str, Any]]) -> bool:
        key = to_location(location).cache_key
        with self._lock:
            return self._clients.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._clients.clear()

    def __contains__(self, location: Union[LocationConfig, dict[str, Any]]) -> bool:
        key = to_location(location).cache_key
        with self._lock:
            return key in self._clients

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)
