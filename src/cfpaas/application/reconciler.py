"""Bring a deployed application's resource profile in line with its descriptor."""

from cfpaas.domain.application import ResourceProfile
from cfpaas.infrastructure.cloudfoundry.paas_client import CloudFoundryPaasClient
from cfpaas.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)


class ResourceProfileReconciler:
    """
    Issues exactly the setter calls needed to move ``observed`` to ``desired``.

    Every profile change may restage the application on the platform, so
    fields that already match are skipped. The environment is replaced as a
    whole; an empty desired environment makes no call.
    """

    def __init__(self, client: CloudFoundryPaasClient) -> None:
        self._client = client

    def reconcile(self, name: str, desired: ResourceProfile, observed: ResourceProfile) -> list[str]:
        """
        Reconcile one application.

        Args:
            name: Application name
            desired: Values from the descriptor
            observed: Values last read from the platform

        Returns:
            Names of the fields that were updated
        """
        updated = []

        if desired.memory != observed.memory:
            self._client.set_memory(name, desired.memory)
            updated.append("memory")

        if desired.disk != observed.disk:
            self._client.set_disk(name, desired.disk)
            updated.append("disk")

        if desired.instances != observed.instances:
            self._client.set_instances(name, desired.instances)
            updated.append("instances")

        if desired.env and desired.env != observed.env:
            self._client.set_env(name, dict(desired.env))
            updated.append("env")

        if updated:
            logger.info("Reconciled %s: updated %s", name, ", ".join(updated))
        else:
            logger.debug("Profile of %s already up to date", name)
        return updated
