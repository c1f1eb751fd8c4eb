"""Global test configuration and fixtures."""

import os
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

# keep test runs from writing log files or reading a developer's settings
os.environ.setdefault("CFPAAS_LOG_DESTINATION", "stdout")
os.environ.setdefault("CFPAAS_CONFIG_DIR", str(Path(__file__).parent / "config"))

from fixtures.fake_cloud_controller import FakeCloudController, FakeDeploy  # noqa: E402

from cfpaas.config.schemas import LocationConfig  # noqa: E402
from cfpaas.config.settings import reset_settings  # noqa: E402
from cfpaas.domain.application import ApplicationDescriptor  # noqa: E402
from cfpaas.infrastructure.cloudfoundry.paas_client import CloudFoundryPaasClient  # noqa: E402
from cfpaas.infrastructure.cloudfoundry.session import CloudFoundrySession  # noqa: E402


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


@pytest.fixture(autouse=True)
def clean_settings():
    """Drop cached settings between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def location_data() -> dict:
    return {
        "endpoint": "https://api.run.example.com",
        "org": "my-org",
        "space": "dev",
        "identity": "deployer@example.com",
        "credential": "s3cret",
    }


@pytest.fixture
def location(location_data) -> LocationConfig:
    return LocationConfig(**location_data)


@pytest.fixture
def cc() -> FakeCloudController:
    """Fake Cloud Controller with example.com and a cleardb offering."""
    controller = FakeCloudController()
    controller.add_domain("example.com")
    controller.add_service("cleardb", "spark", "boost")
    return controller


@pytest.fixture
def session(cc, location) -> CloudFoundrySession:
    return CloudFoundrySession(
        location=location, controller=cc, org_guid=cc.org.guid, space_guid=cc.space.guid
    )


@pytest.fixture
def fake_deploy():
    """Route manifest pushes to the fake controller."""
    FakeDeploy.manifests = []
    with patch("cfpaas.infrastructure.cloudfoundry.paas_client.Deploy", FakeDeploy):
        yield FakeDeploy


@pytest.fixture
def client(session, fake_deploy) -> CloudFoundryPaasClient:
    return CloudFoundryPaasClient(session)


@pytest.fixture
def artifact(tmp_path) -> str:
    path = tmp_path / "app-1.2.3.war"
    path.write_bytes(b"PK\x03\x04 fake war")
    return str(path)


@pytest.fixture
def descriptor(artifact) -> ApplicationDescriptor:
    return ApplicationDescriptor(
        name="my-app", artifact=artifact, domain="example.com", poll_interval=0, start_timeout=1
    )


@pytest.fixture
def listener() -> Mock:
    return Mock(spec=["on_state_changed"])


@pytest.fixture
def no_sleep():
    with patch("cfpaas.application.app_driver.time.sleep") as sleep:
        yield sleep
