"""Lifecycle states and the attribute names published to the orchestrator."""

from cfpaas.domain.base_enum import BaseEnumModel


class ApplicationState(BaseEnumModel):
    """Driver-side state of one deployed application."""

    NOT_DEPLOYED = "not_deployed"
    DEPLOYING = "deploying"
    RUNNING = "running"
    RESTARTING = "restarting"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DESTROYED = "destroyed"


# Legal transitions; start() is also allowed again from STOPPED/DESTROYED.
APPLICATION_TRANSITIONS: dict[ApplicationState, frozenset] = {
    ApplicationState.NOT_DEPLOYED: frozenset({ApplicationState.DEPLOYING, ApplicationState.DESTROYED}),
    ApplicationState.DEPLOYING: frozenset(
        {ApplicationState.RUNNING, ApplicationState.STOPPED, ApplicationState.NOT_DEPLOYED}
    ),
    ApplicationState.RUNNING: frozenset(
        {ApplicationState.RESTARTING, ApplicationState.STOPPING, ApplicationState.DESTROYED}
    ),
    ApplicationState.RESTARTING: frozenset({ApplicationState.RUNNING, ApplicationState.STOPPED}),
    ApplicationState.STOPPING: frozenset({ApplicationState.STOPPED}),
    ApplicationState.STOPPED: frozenset(
        {
            ApplicationState.DEPLOYING,
            ApplicationState.RESTARTING,
            ApplicationState.DESTROYED,
        }
    ),
    ApplicationState.DESTROYED: frozenset({ApplicationState.DEPLOYING}),
}


class Lifecycle(BaseEnumModel):
    """Aggregate service state reported to the orchestrator."""

    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DESTROYED = "destroyed"
    ON_FIRE = "on-fire"


class Attribute(BaseEnumModel):
    """Names of the observable attributes written back to the orchestrator."""

    ROOT_URL = "webapp.url"
    MAIN_URI = "main.uri"
    SERVICE_UP = "service.isUp"
    SERVICE_PROCESS_IS_RUNNING = "service.process.isRunning"
    SERVICE_STATE_ACTUAL = "service.state"
    ALLOCATED_MEMORY = "cloudfoundry.application.memory"
    ALLOCATED_DISK = "cloudfoundry.application.disk"
    INSTANCES = "cloudfoundry.application.instances"
    ENV = "cloudfoundry.application.env"
    SERVICE_INSTANCE_NAME = "cloudfoundry.service.instance.name"
    SERVICE_CREDENTIALS = "cloudfoundry.service.credentials"


# Attributes that are only meaningful while the application runs.
RUNNING_ATTRIBUTES = (
    Attribute.ROOT_URL,
    Attribute.MAIN_URI,
    Attribute.SERVICE_UP,
    Attribute.SERVICE_PROCESS_IS_RUNNING,
)
