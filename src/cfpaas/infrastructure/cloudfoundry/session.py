"""Authenticated Cloud Controller session bound to one org/space."""

from dataclasses import dataclass
from typing import Any

import cf_api

from cfpaas.config.schemas import LocationConfig
from cfpaas.domain.exceptions import ConfigurationError
from cfpaas.infrastructure.cloudfoundry.errors import check_response, translate_vendor_errors
from cfpaas.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)

# client id used by the cf command line for password grants
CF_CLIENT_ID = "cf"
CF_CLIENT_SECRET = ""


@dataclass
class CloudFoundrySession:
    """A vendor Cloud Controller plus the resolved org and space."""

    location: LocationConfig
    controller: Any
    org_guid: str
    space_guid: str

    @property
    def org(self) -> str:
        return self.location.org

    @property
    def space(self) -> str:
        return self.location.space


@translate_vendor_errors("authenticate")
def create_session(location: LocationConfig) -> CloudFoundrySession:
    """
    Authenticate against the UAA and resolve the target org and space.

    :param location: Validated location configuration.
    :return: A ready-to-use session.
    :raises ConfigurationError: If the org or space does not exist.
    :raises PlatformError: If authentication or the API calls fail.
    """
    logger.info(
        "Authenticating with %s as %s (org: %s, space: %s)",
        location.endpoint,
        location.identity,
        location.org,
        location.space,
    )
    controller = cf_api.new_cloud_controller(
        location.endpoint,
        username=location.identity,
        password=location.credential,
        client_id=CF_CLIENT_ID,
        client_secret=CF_CLIENT_SECRET,
        verify_ssl=location.verify_ssl,
    )

    res = check_response(
        controller.request("organizations").set_query(q="name:" + location.org).get(),
        "find organization",
    )
    org = res.resource
    if org is None:
        raise ConfigurationError(
            f"Organization '{location.org}' not found", details={"endpoint": location.endpoint}
        )

    res = check_response(
        controller.request("organizations", org.guid, "spaces")
        .set_query(q="name:" + location.space)
        .get(),
        "find space",
    )
    space = res.resource
    if space is None:
        raise ConfigurationError(
            f"Space '{location.space}' not found in organization '{location.org}'",
            details={"endpoint": location.endpoint},
        )

    logger.debug("Resolved org %s and space %s", org.guid, space.guid)
    return CloudFoundrySession(
        location=location, controller=controller, org_guid=org.guid, space_guid=space.guid
    )
