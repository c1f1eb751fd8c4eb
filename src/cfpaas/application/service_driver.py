"""Lifecycle driver for one marketplace service instance."""

from typing import Any, Optional

from cfpaas.domain.exceptions import DuplicateServiceError, PlatformError
from cfpaas.domain.lifecycle import Attribute, Lifecycle
from cfpaas.domain.ports import AttributeStore, StateListener
from cfpaas.domain.service import ServiceDescriptor
from cfpaas.infrastructure.cloudfoundry.paas_client import CloudFoundryPaasClient
from cfpaas.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)


class ServiceDriver:
    """
    Creates, binds and releases a service instance.

    Credentials returned by the platform on binding are kept per application
    as an opaque mapping and published without interpretation. Subclasses for
    operational services override :meth:`after_binding` to act on them.
    """

    def __init__(
        self,
        descriptor: ServiceDescriptor,
        client: CloudFoundryPaasClient,
        listener: Optional[StateListener] = None,
    ) -> None:
        self._descriptor = descriptor
        self._client = client
        self._attributes = AttributeStore(listener)
        self._credentials: dict[str, dict[str, Any]] = {}
        self._instance_name = descriptor.resolve_instance_name()
        self._attributes.set(Attribute.SERVICE_STATE_ACTUAL, Lifecycle.CREATED)

    @property
    def descriptor(self) -> ServiceDescriptor:
        return self._descriptor

    @property
    def instance_name(self) -> str:
        return self._instance_name

    @property
    def attributes(self) -> AttributeStore:
        return self._attributes

    def credentials(self, app_name: str) -> Optional[dict[str, Any]]:
        return self._credentials.get(app_name)

    def exists(self) -> bool:
        return self._client.service_instance_exists(self._instance_name)

    def create(self) -> None:
        """
        Provision the instance.

        Raises:
            DuplicateServiceError: If an instance with the same name already exists
            PlatformError: If the offering or plan is unknown or the platform fails
        """
        if self._client.service_instance_exists(self._instance_name):
            self._attributes.set(Attribute.SERVICE_STATE_ACTUAL, Lifecycle.ON_FIRE)
            raise DuplicateServiceError(self._instance_name, space=self._client.session.space)

        self._attributes.set(Attribute.SERVICE_STATE_ACTUAL, Lifecycle.STARTING)
        try:
            self._client.create_service_instance(
                self._descriptor.service, self._descriptor.plan, self._instance_name
            )
        except PlatformError:
            self._attributes.set(Attribute.SERVICE_STATE_ACTUAL, Lifecycle.ON_FIRE)
            raise

        self._attributes.update(
            {
                Attribute.SERVICE_INSTANCE_NAME: self._instance_name,
                Attribute.SERVICE_UP: True,
                Attribute.SERVICE_PROCESS_IS_RUNNING: True,
                Attribute.SERVICE_STATE_ACTUAL: Lifecycle.RUNNING,
            }
        )
        logger.info(
            "Service instance %s (%s/%s) created",
            self._instance_name,
            self._descriptor.service,
            self._descriptor.plan,
        )

    def bind(self, app_name: str) -> dict[str, Any]:
        """Bind the instance to ``app_name`` and return the binding credentials."""
        credentials = self._client.bind_service(self._instance_name, app_name)
        self._credentials[app_name] = credentials
        self._attributes.set(Attribute.SERVICE_CREDENTIALS, dict(self._credentials))
        self.after_binding(app_name)
        return credentials

    def after_binding(self, app_name: str) -> None:
        """Hook run after a successful bind; does nothing by default."""

    def unbind(self, app_name: str) -> None:
        self._client.unbind_service(self._instance_name, app_name)
        self._credentials.pop(app_name, None)
        self._attributes.set(Attribute.SERVICE_CREDENTIALS, dict(self._credentials))
        logger.info("Service instance %s unbound from %s", self._instance_name, app_name)

    def delete(self) -> None:
        """Delete the instance; an instance that does not exist is not an error."""
        self._attributes.set(Attribute.SERVICE_STATE_ACTUAL, Lifecycle.STOPPING)
        try:
            self._client.delete_service_instance(self._instance_name)
        except PlatformError as e:
            if not e.not_found:
                self._attributes.set(Attribute.SERVICE_STATE_ACTUAL, Lifecycle.ON_FIRE)
                raise
            logger.info("Service instance %s already gone", self._instance_name)

        self._credentials.clear()
        self._attributes.update(
            {
                Attribute.SERVICE_UP: False,
                Attribute.SERVICE_PROCESS_IS_RUNNING: False,
                Attribute.SERVICE_CREDENTIALS: None,
                Attribute.SERVICE_STATE_ACTUAL: Lifecycle.DESTROYED,
            }
        )

    def stop(self) -> None:
        """Stopping a service releases it."""
        self.delete()
