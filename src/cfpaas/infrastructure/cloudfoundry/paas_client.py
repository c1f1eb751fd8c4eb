"""Cloud Foundry client wrapper used by the application and service drivers."""

import tempfile
from pathlib import Path
from typing import Any, Optional

from cf_api.deploy_manifest import Deploy

from cfpaas.domain.application import (
    AppStatus,
    ApplicationDescriptor,
    RemoteApplicationState,
    stringify_env,
)
from cfpaas.domain.exceptions import DeploymentError, PlatformError
from cfpaas.infrastructure.cloudfoundry.artifacts import build_manifest, fetch_artifact, write_manifest
from cfpaas.infrastructure.cloudfoundry.errors import check_response, translate_vendor_errors
from cfpaas.infrastructure.cloudfoundry.session import CloudFoundrySession
from cfpaas.infrastructure.logging.logger import get_logger

STARTED = "STARTED"
STOPPED = "STOPPED"


def resource_guid(resource: Any) -> Optional[str]:
    guid = getattr(resource, "guid", None)
    if guid is None and isinstance(resource, dict):
        guid = resource.get("metadata", {}).get("guid")
    return guid


def resource_field(resource: Any, key: str, default: Any = None) -> Any:
    """Read an entity field from a vendor resource."""
    if isinstance(resource, dict):
        entity = resource.get("entity")
        if isinstance(entity, dict) and key in entity:
            value = entity[key]
            return default if value is None else value
    value = getattr(resource, key, None)
    return default if value is None else value


class CloudFoundryPaasClient:
    """
    Operations against one Cloud Foundry org/space.

    All public methods raise only adapter errors: vendor and transport
    exceptions are translated at this boundary. Setters are idempotent and
    skip the remote write when the platform already holds the value.
    """

    def __init__(self, session: CloudFoundrySession) -> None:
        self._session = session
        self._cc = session.controller
        self._logger = get_logger(__name__)

    @property
    def session(self) -> CloudFoundrySession:
        return self._session

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    @translate_vendor_errors("deploy")
    def deploy(self, descriptor: ApplicationDescriptor) -> str:
        """
        Push an application and return its externally reachable URL.

        Args:
            descriptor: Desired application configuration

        Returns:
            URL of the form https://<host>.<domain>

        Raises:
            DeploymentError: If the artifact cannot be fetched or the domain is unknown
            PlatformError: If the platform rejects the push
        """
        domain = self._resolve_domain(descriptor.domain)

        with tempfile.TemporaryDirectory(prefix="cfpaas-") as tmp:
            work_dir = Path(tmp)
            path = fetch_artifact(descriptor.artifact, work_dir)
            manifest_path = write_manifest(build_manifest(descriptor, path, domain), work_dir)
            self._logger.info(
                "Pushing %s (memory=%dM, disk=%dM, instances=%d, domain=%s)",
                descriptor.name,
                descriptor.memory,
                descriptor.disk,
                descriptor.instances,
                domain,
            )
            self._push(manifest_path)

        return f"https://{descriptor.route_host}.{domain}"

    @translate_vendor_errors("push artifact")
    def push_artifact(self, name: str, artifact: str) -> None:
        """Upload new bits for an existing application."""
        self._require_app(name)
        with tempfile.TemporaryDirectory(prefix="cfpaas-") as tmp:
            work_dir = Path(tmp)
            path = fetch_artifact(artifact, work_dir)
            manifest = {"applications": [{"name": name, "path": str(path)}]}
            self._push(write_manifest(manifest, work_dir))
        self._logger.info("Pushed new artifact for %s", name)

    @translate_vendor_errors("start application")
    def start(self, name: str) -> None:
        app = self._require_app(name)
        self._update_app(resource_guid(app), "start application", state=STARTED)
        self._logger.info("Started application %s", name)

    @translate_vendor_errors("stop application")
    def stop(self, name: str) -> None:
        app = self._require_app(name)
        self._update_app(resource_guid(app), "stop application", state=STOPPED)
        self._logger.info("Stopped application %s", name)

    @translate_vendor_errors("restart application")
    def restart(self, name: str) -> None:
        app = self._require_app(name)
        guid = resource_guid(app)
        self._update_app(guid, "restart application", state=STOPPED)
        self._update_app(guid, "restart application", state=STARTED)
        self._logger.info("Restarted application %s", name)

    @translate_vendor_errors("delete application")
    def delete(self, name: str) -> None:
        app = self._require_app(name)
        check_response(self._request("apps", resource_guid(app)).delete(), "delete application")
        self._logger.info("Deleted application %s", name)

    @translate_vendor_errors("find application")
    def is_deployed(self, name: str) -> bool:
        return self._find_app(name) is not None

    @translate_vendor_errors("get application status")
    def get_status(self, name: str) -> AppStatus:
        app = self._require_app(name)
        return AppStatus.from_platform(
            resource_field(app, "state"), resource_field(app, "package_state")
        )

    @translate_vendor_errors("get application state")
    def get_state(self, name: str) -> RemoteApplicationState:
        """Read every tracked attribute of the application in one pass."""
        app = self._require_app(name)
        guid = resource_guid(app)
        return RemoteApplicationState(
            name=name,
            guid=guid,
            url=self._app_url(guid),
            status=AppStatus.from_platform(
                resource_field(app, "state"), resource_field(app, "package_state")
            ),
            memory=resource_field(app, "memory"),
            disk=resource_field(app, "disk_quota"),
            instances=resource_field(app, "instances"),
            env=resource_field(app, "environment_json", {}),
        )

    @translate_vendor_errors("get memory")
    def get_memory(self, name: str) -> int:
        return resource_field(self._require_app(name), "memory")

    @translate_vendor_errors("get disk quota")
    def get_disk(self, name: str) -> int:
        return resource_field(self._require_app(name), "disk_quota")

    @translate_vendor_errors("get instances")
    def get_instances(self, name: str) -> int:
        return resource_field(self._require_app(name), "instances")

    @translate_vendor_errors("get environment")
    def get_env(self, name: str) -> dict[str, str]:
        return stringify_env(resource_field(self._require_app(name), "environment_json", {}))

    @translate_vendor_errors("set memory")
    def set_memory(self, name: str, memory: int) -> None:
        app = self._require_app(name)
        if resource_field(app, "memory") == memory:
            return
        self._update_app(resource_guid(app), "set memory", memory=memory)
        self._restart_if_started(app)
        self._logger.info("Set memory of %s to %dM", name, memory)

    @translate_vendor_errors("set disk quota")
    def set_disk(self, name: str, disk: int) -> None:
        app = self._require_app(name)
        if resource_field(app, "disk_quota") == disk:
            return
        self._update_app(resource_guid(app), "set disk quota", disk_quota=disk)
        self._restart_if_started(app)
        self._logger.info("Set disk quota of %s to %dM", name, disk)

    @translate_vendor_errors("set instances")
    def set_instances(self, name: str, instances: int) -> None:
        app = self._require_app(name)
        if resource_field(app, "instances") == instances:
            return
        self._update_app(resource_guid(app), "set instances", instances=instances)
        self._logger.info("Scaled %s to %d instances", name, instances)

    @translate_vendor_errors("set environment")
    def set_env(self, name: str, env: dict[str, str]) -> None:
        """Replace the whole environment of the application."""
        app = self._require_app(name)
        env = stringify_env(env)
        if stringify_env(resource_field(app, "environment_json", {})) == env:
            return
        self._update_app(resource_guid(app), "set environment", environment_json=env)
        if resource_field(app, "state") == STARTED:
            check_response(
                self._request("apps", resource_guid(app), "restage").post(), "restage application"
            )
        self._logger.info("Set %d environment variables on %s", len(env), name)

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    @translate_vendor_errors("find service instance")
    def service_instance_exists(self, name: str) -> bool:
        return self._find_service_instance(name) is not None

    @translate_vendor_errors("create service instance")
    def create_service_instance(self, service: str, plan: str, name: str) -> str:
        """
        Provision a marketplace service instance.

        Args:
            service: Offering label
            plan: Plan name
            name: Instance name

        Returns:
            GUID of the new instance

        Raises:
            PlatformError: If the offering or plan does not exist, or the platform rejects it
        """
        res = check_response(
            self._request("services", query="label:" + service).get(), "find service"
        )
        offering = res.resource
        if offering is None:
            raise PlatformError(
                f"Service {service} does not exist", error_code="NOT_FOUND", details={"service": service}
            )

        res = check_response(
            self._request("services", resource_guid(offering), "service_plans", query="name:" + plan).get(),
            "find service plan",
        )
        service_plan = res.resource
        if service_plan is None:
            raise PlatformError(
                f"Plan {plan} does not exist for service {service}",
                error_code="NOT_FOUND",
                details={"service": service, "plan": plan},
            )

        res = check_response(
            self._request(
                "service_instances",
                params={
                    "name": name,
                    "space_guid": self._session.space_guid,
                    "service_plan_guid": resource_guid(service_plan),
                },
            ).post(),
            "create service instance",
        )
        self._logger.info("Created service instance %s (%s/%s)", name, service, plan)
        return resource_guid(res.resource)

    @translate_vendor_errors("delete service instance")
    def delete_service_instance(self, name: str) -> None:
        instance = self._find_service_instance(name)
        if instance is None:
            raise PlatformError(
                f"Service instance {name} not found", error_code="NOT_FOUND", details={"instance": name}
            )
        check_response(
            self._request("service_instances", resource_guid(instance)).delete(),
            "delete service instance",
        )
        self._logger.info("Deleted service instance %s", name)

    @translate_vendor_errors("bind service")
    def bind_service(self, instance_name: str, app_name: str) -> dict[str, Any]:
        """Bind a service instance to an application and return the binding credentials."""
        instance = self._require_service_instance(instance_name)
        app = self._require_app(app_name)
        res = check_response(
            self._request(
                "service_bindings",
                params={
                    "service_instance_guid": resource_guid(instance),
                    "app_guid": resource_guid(app),
                },
            ).post(),
            "bind service",
        )
        self._logger.info("Bound service instance %s to %s", instance_name, app_name)
        return dict(resource_field(res.resource, "credentials", {}))

    @translate_vendor_errors("unbind service")
    def unbind_service(self, instance_name: str, app_name: str) -> None:
        instance = self._require_service_instance(instance_name)
        app = self._require_app(app_name)
        res = check_response(
            self._request(
                "apps",
                resource_guid(app),
                "service_bindings",
                query="service_instance_guid:" + resource_guid(instance),
            ).get(),
            "find service binding",
        )
        binding = res.resource
        if binding is None:
            raise PlatformError(
                f"Service instance {instance_name} is not bound to {app_name}",
                error_code="NOT_FOUND",
                details={"instance": instance_name, "application": app_name},
            )
        check_response(
            self._request("service_bindings", resource_guid(binding)).delete(), "unbind service"
        )
        self._logger.info("Unbound service instance %s from %s", instance_name, app_name)

    # ------------------------------------------------------------------
    # Vendor plumbing
    # ------------------------------------------------------------------

    def _request(self, *path: str, query: Optional[str] = None, params: Optional[dict[str, Any]] = None):
        req = self._cc.request(*path)
        if query is not None:
            req.set_query(q=query)
        if params is not None:
            req.set_params(**params)
        return req

    def _push(self, manifest_path: Path) -> None:
        for app_entry in Deploy.parse_manifest(str(manifest_path), self._cc):
            app_entry.set_org_and_space(self._session.org, self._session.space)
            app_entry.push()

    def _find_app(self, name: str) -> Any:
        res = check_response(
            self._request("spaces", self._session.space_guid, "apps", query="name:" + name).get(),
            "find application",
        )
        return res.resource

    def _require_app(self, name: str) -> Any:
        app = self._find_app(name)
        if app is None:
            raise PlatformError(
                f"Application {name} not found",
                error_code="NOT_FOUND",
                details={"application": name, "space": self._session.space},
            )
        return app

    def _find_service_instance(self, name: str) -> Any:
        res = check_response(
            self._request(
                "spaces", self._session.space_guid, "service_instances", query="name:" + name
            ).get(),
            "find service instance",
        )
        return res.resource

    def _require_service_instance(self, name: str) -> Any:
        instance = self._find_service_instance(name)
        if instance is None:
            raise PlatformError(
                f"Service instance {name} not found", error_code="NOT_FOUND", details={"instance": name}
            )
        return instance

    def _update_app(self, guid: str, operation: str, **fields: Any) -> None:
        check_response(self._request("apps", guid, params=fields).put(), operation)

    def _restart_if_started(self, app: Any) -> None:
        if resource_field(app, "state") != STARTED:
            return
        guid = resource_guid(app)
        self._update_app(guid, "restart application", state=STOPPED)
        self._update_app(guid, "restart application", state=STARTED)

    def _app_url(self, guid: str) -> Optional[str]:
        res = check_response(self._request("apps", guid, "routes").get(), "find routes")
        route = res.resource
        if route is None:
            return None
        res = check_response(
            self._request("domains", resource_field(route, "domain_guid")).get(), "find domain"
        )
        domain = resource_field(res.resource, "name")
        host = resource_field(route, "host")
        return f"https://{host}.{domain}" if host else f"https://{domain}"

    def _resolve_domain(self, domain: Optional[str]) -> str:
        if domain:
            if self._domain_exists(domain):
                return domain
            raise DeploymentError(
                f"Domain '{domain}' does not exist in organization '{self._session.org}'",
                error_code="DOMAIN_NOT_FOUND",
                details={"domain": domain, "org": self._session.org},
            )

        res = check_response(self._request("shared_domains").get(), "find default domain")
        default = res.resource
        if default is None:
            raise DeploymentError("No shared domain available", error_code="DOMAIN_NOT_FOUND")
        return resource_field(default, "name")

    def _domain_exists(self, domain: str) -> bool:
        res = check_response(
            self._request("shared_domains", query="name:" + domain).get(), "find shared domain"
        )
        if res.resource is not None:
            return True
        res = check_response(
            self._request(
                "organizations", self._session.org_guid, "private_domains", query="name:" + domain
            ).get(),
            "find private domain",
        )
        return res.resource is not None
