"""Lifecycle driver for one Cloud Foundry application."""

import time
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from cfpaas.application.reconciler import ResourceProfileReconciler
from cfpaas.config.schemas import LocationConfig
from cfpaas.domain.application import AppStatus, ApplicationDescriptor, RemoteApplicationState
from cfpaas.domain.exceptions import (
    ConfigurationError,
    DeploymentError,
    LifecycleError,
    PlatformError,
    ReadinessTimeoutError,
)
from cfpaas.domain.lifecycle import (
    APPLICATION_TRANSITIONS,
    RUNNING_ATTRIBUTES,
    ApplicationState,
    Attribute,
    Lifecycle,
)
from cfpaas.domain.ports import AttributeStore, StateListener
from cfpaas.infrastructure.cloudfoundry.client_registry import ClientCache
from cfpaas.infrastructure.cloudfoundry.paas_client import CloudFoundryPaasClient
from cfpaas.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)

# states in which an application record exists on the platform
DEPLOYED_STATES = frozenset({ApplicationState.RUNNING, ApplicationState.STOPPED})


class ApplicationDriver:
    """
    Deploys, runs and resizes a single application.

    The driver is invoked sequentially by its owner. Every state change is
    reported through the listener; the running attributes (URL, main URI,
    service up, process running) are published together or not at all.
    """

    def __init__(
        self,
        descriptor: ApplicationDescriptor,
        listener: Optional[StateListener] = None,
        client: Optional[CloudFoundryPaasClient] = None,
        client_cache: Optional[ClientCache] = None,
    ) -> None:
        self._descriptor = descriptor
        self._attributes = AttributeStore(listener)
        self._client = client
        self._client_cache = client_cache or ClientCache()
        self._state = ApplicationState.NOT_DEPLOYED
        self._observed: Optional[RemoteApplicationState] = None
        self._url: Optional[str] = None
        self._attributes.set(Attribute.SERVICE_STATE_ACTUAL, Lifecycle.CREATED)

    @property
    def descriptor(self) -> ApplicationDescriptor:
        return self._descriptor

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def state(self) -> ApplicationState:
        return self._state

    @property
    def attributes(self) -> AttributeStore:
        return self._attributes

    @property
    def observed(self) -> Optional[RemoteApplicationState]:
        return self._observed

    @property
    def url(self) -> Optional[str]:
        return self._url

    def is_running(self) -> bool:
        return self._state == ApplicationState.RUNNING

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, locations: Optional[Iterable[Any]] = None) -> None:
        """
        Deploy the application and wait until it runs.

        Args:
            locations: Candidate locations; the first client, LocationConfig or
                location mapping found is used, else the client given at construction

        Raises:
            ConfigurationError: If no location is available
            DeploymentError: If the artifact or domain is invalid, or staging fails
            ReadinessTimeoutError: If the app is not running within ``start_timeout``
            PlatformError: If the platform rejects an operation
        """
        if self._state == ApplicationState.RUNNING:
            logger.debug("Application %s already running", self.name)
            return

        client = self._resolve_client(locations)
        deployed = self._state in DEPLOYED_STATES
        self._transition(ApplicationState.DEPLOYING)
        self._attributes.set(Attribute.SERVICE_STATE_ACTUAL, Lifecycle.STARTING)

        try:
            url = client.deploy(self._descriptor)
            deployed = True

            observed = client.get_state(self.name)
            ResourceProfileReconciler(client).reconcile(
                self.name, self._descriptor.profile(), observed.profile()
            )
            for instance in self._descriptor.services:
                client.bind_service(instance, self.name)

            client.start(self.name)
            self._wait_for_running(client)
            observed = client.get_state(self.name)
        except Exception:
            logger.error("Failed to start application %s", self.name)
            self._state = ApplicationState.STOPPED if deployed else ApplicationState.NOT_DEPLOYED
            self._publish_not_running(Lifecycle.ON_FIRE)
            raise

        self._url = url
        self._transition(ApplicationState.RUNNING)
        self._publish_running(observed)
        logger.info("Application %s running at %s", self.name, url)

    def stop(self) -> None:
        """Stop the application; a no-op when nothing is running."""
        if self._state in (
            ApplicationState.NOT_DEPLOYED,
            ApplicationState.STOPPED,
            ApplicationState.DESTROYED,
        ):
            logger.debug("Application %s not running, nothing to stop", self.name)
            return

        client = self._require_client()
        self._transition(ApplicationState.STOPPING)
        self._attributes.set(Attribute.SERVICE_STATE_ACTUAL, Lifecycle.STOPPING)
        try:
            client.stop(self.name)
        except Exception:
            self._state = ApplicationState.STOPPED
            self._publish_not_running(Lifecycle.ON_FIRE)
            raise

        self._transition(ApplicationState.STOPPED)
        self._publish_not_running(Lifecycle.STOPPED)
        logger.info("Application %s stopped", self.name)

    def restart(self) -> None:
        """Restart the application without reconciling its profile."""
        if self._state not in DEPLOYED_STATES:
            raise LifecycleError(
                f"Cannot restart application {self.name} in state {self._state}",
                details={"application": self.name, "state": str(self._state)},
            )

        client = self._require_client()
        self._transition(ApplicationState.RESTARTING)
        self._publish_not_running(Lifecycle.STARTING)
        try:
            client.restart(self.name)
            self._wait_for_running(client)
            observed = client.get_state(self.name)
        except Exception:
            self._state = ApplicationState.STOPPED
            self._publish_not_running(Lifecycle.ON_FIRE)
            raise

        self._url = self._url or observed.url
        self._transition(ApplicationState.RUNNING)
        self._publish_running(observed)
        logger.info("Application %s restarted", self.name)

    def delete(self) -> None:
        """
        Stop (best effort) and delete the application.

        An application that is not deployed is not an error.
        """
        if self._state == ApplicationState.DESTROYED:
            return

        client = self._client
        if client is not None:
            try:
                if client.is_deployed(self.name):
                    try:
                        client.stop(self.name)
                    except PlatformError as e:
                        logger.warning("Could not stop %s before delete: %s", self.name, e)
                    client.delete(self.name)
                else:
                    logger.info("Application %s not deployed, nothing to delete", self.name)
            except PlatformError as e:
                if not e.not_found:
                    self._publish_not_running(Lifecycle.ON_FIRE)
                    raise
                logger.info("Application %s already gone", self.name)

        self._state = ApplicationState.DESTROYED
        self._observed = None
        self._url = None
        self._publish_not_running(Lifecycle.DESTROYED)
        self._attributes.clear(
            Attribute.ALLOCATED_MEMORY, Attribute.ALLOCATED_DISK, Attribute.INSTANCES, Attribute.ENV
        )

    # ------------------------------------------------------------------
    # Effectors
    # ------------------------------------------------------------------

    def set_memory(self, memory: int) -> None:
        self._update_descriptor(memory=memory)
        self._apply(lambda client: client.set_memory(self.name, memory))

    def set_disk(self, disk: int) -> None:
        self._update_descriptor(disk=disk)
        self._apply(lambda client: client.set_disk(self.name, disk))

    def set_instances(self, instances: int) -> None:
        self._update_descriptor(instances=instances)
        self._apply(lambda client: client.set_instances(self.name, instances))

    def set_env(self, env: Optional[dict[str, Any]]) -> None:
        """Merge ``env`` into the current environment; empty or None does nothing."""
        if not env:
            return
        current = self._observed.env if self._observed is not None else self._descriptor.env
        merged = {**current, **{str(k): str(v) for k, v in env.items()}}
        self._update_descriptor(env=merged)
        self._apply(lambda client: client.set_env(self.name, merged))

    def clear_env(self) -> None:
        """Remove every environment variable from the application."""
        self._update_descriptor(env={})
        self._apply(lambda client: client.set_env(self.name, {}))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve_client(self, locations: Optional[Iterable[Any]]) -> CloudFoundryPaasClient:
        for location in locations or ():
            if isinstance(location, CloudFoundryPaasClient):
                self._client = location
                return location
            if isinstance(location, (LocationConfig, dict)):
                self._client = self._client_cache.get_client(location)
                return self._client
        if self._client is not None:
            return self._client
        raise ConfigurationError(
            f"No Cloud Foundry location supplied for application {self.name}",
            details={"application": self.name},
        )

    def _require_client(self) -> CloudFoundryPaasClient:
        if self._client is None:
            raise LifecycleError(
                f"Application {self.name} has no Cloud Foundry client; call start() first",
                details={"application": self.name},
            )
        return self._client

    def _transition(self, target: ApplicationState) -> None:
        if target not in APPLICATION_TRANSITIONS[self._state]:
            raise LifecycleError(
                f"Illegal transition {self._state} -> {target} for application {self.name}",
                details={"application": self.name, "from": str(self._state), "to": str(target)},
            )
        logger.debug("Application %s: %s -> %s", self.name, self._state, target)
        self._state = target

    def _wait_for_running(self, client: CloudFoundryPaasClient) -> None:
        timeout = self._descriptor.start_timeout
        deadline = time.monotonic() + timeout
        while True:
            status = client.get_status(self.name)
            if status == AppStatus.RUNNING:
                return
            if status == AppStatus.FAILED:
                raise DeploymentError(
                    f"Application {self.name} failed to stage",
                    error_code="STAGING_FAILED",
                    details={"application": self.name},
                )
            if time.monotonic() >= deadline:
                raise ReadinessTimeoutError(self.name, timeout, last_status=status)
            logger.debug("Waiting for %s (status: %s)", self.name, status)
            time.sleep(self._descriptor.poll_interval)

    def _update_descriptor(self, **changes: Any) -> None:
        data = self._descriptor.model_dump()
        data.update(changes)
        try:
            self._descriptor = ApplicationDescriptor(**data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid value for application {self.name}: {e.errors()[0]['msg']}",
                details={"changes": {k: str(v) for k, v in changes.items()}},
                cause=e,
            ) from e

    def _apply(self, operation) -> None:
        """Run a setter against the platform when the app is deployed, then refresh."""
        if self._state not in DEPLOYED_STATES:
            logger.debug("Application %s not deployed; change applies on next start", self.name)
            return
        client = self._require_client()
        try:
            operation(client)
            self._refresh(client)
        except Exception:
            self._attributes.set(Attribute.SERVICE_STATE_ACTUAL, Lifecycle.ON_FIRE)
            raise

    def _refresh(self, client: CloudFoundryPaasClient) -> None:
        observed = client.get_state(self.name)
        self._observed = observed
        self._attributes.update(self._profile_attributes(observed))

    @staticmethod
    def _profile_attributes(observed: RemoteApplicationState) -> dict[Attribute, Any]:
        return {
            Attribute.ALLOCATED_MEMORY: observed.memory,
            Attribute.ALLOCATED_DISK: observed.disk,
            Attribute.INSTANCES: observed.instances,
            Attribute.ENV: dict(observed.env),
        }

    def _publish_running(self, observed: RemoteApplicationState) -> None:
        self._observed = observed
        values = self._running_attributes(self._url, True)
        values.update(self._profile_attributes(observed))
        values[Attribute.SERVICE_STATE_ACTUAL] = Lifecycle.RUNNING
        self._attributes.update(values)

    def _publish_not_running(self, lifecycle: Lifecycle) -> None:
        values = self._running_attributes(None, False)
        values[Attribute.SERVICE_STATE_ACTUAL] = lifecycle
        self._attributes.update(values)

    @staticmethod
    def _running_attributes(url: Optional[str], up: bool) -> dict[Attribute, Any]:
        """Values for RUNNING_ATTRIBUTES: URLs for the two URI attributes, ``up`` for the flags."""
        uris = (Attribute.ROOT_URL, Attribute.MAIN_URI)
        return {attribute: url if attribute in uris else up for attribute in RUNNING_ATTRIBUTES}
