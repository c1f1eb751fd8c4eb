"""Unit tests for ApplicationDriver."""

from unittest.mock import MagicMock, Mock, call, patch

import pytest

from cfpaas.application.app_driver import ApplicationDriver
from cfpaas.domain.application import AppStatus, ApplicationDescriptor, RemoteApplicationState
from cfpaas.domain.exceptions import (
    ConfigurationError,
    DeploymentError,
    LifecycleError,
    PlatformError,
    ReadinessTimeoutError,
)
from cfpaas.domain.lifecycle import RUNNING_ATTRIBUTES, ApplicationState, Attribute, Lifecycle
from cfpaas.infrastructure.cloudfoundry.client_registry import ClientCache
from cfpaas.infrastructure.cloudfoundry.paas_client import CloudFoundryPaasClient


def _observed(**overrides) -> RemoteApplicationState:
    values = {
        "name": "my-app",
        "guid": "app-guid",
        "url": "https://my-app.example.com",
        "status": AppStatus.RUNNING,
        "memory": 512,
        "disk": 1024,
        "instances": 1,
        "env": {},
    }
    values.update(overrides)
    return RemoteApplicationState(**values)


@pytest.fixture
def mock_client():
    paas = Mock(spec=CloudFoundryPaasClient)
    paas.deploy.return_value = "https://my-app.example.com"
    paas.get_state.return_value = _observed()
    paas.get_status.return_value = AppStatus.RUNNING
    paas.is_deployed.return_value = True
    return paas


@pytest.fixture
def driver(descriptor, listener):
    return ApplicationDriver(descriptor, listener=listener)


@pytest.fixture
def running(driver, client, no_sleep):
    driver.start([client])
    return driver


def _pushes(cc):
    return [c for c in cc.calls if c[0] == "PUSH"]


@pytest.mark.unit
class TestStart:
    """Test ApplicationDriver.start."""

    def test_no_location(self, driver):
        with pytest.raises(ConfigurationError, match="No Cloud Foundry location"):
            driver.start([])

        assert driver.state == ApplicationState.NOT_DEPLOYED
        assert not driver.is_running()

    def test_ignores_unrelated_locations(self, driver):
        with pytest.raises(ConfigurationError):
            driver.start(["localhost", object()])

    def test_start_publishes_running_attributes(self, driver, client, no_sleep):
        driver.start([client])

        assert driver.is_running()
        assert driver.state == ApplicationState.RUNNING
        assert driver.url == "https://my-app.example.com"
        attributes = driver.attributes
        assert attributes.get(Attribute.ROOT_URL) == "https://my-app.example.com"
        assert attributes.get(Attribute.MAIN_URI) == "https://my-app.example.com"
        assert attributes.get(Attribute.SERVICE_UP) is True
        assert attributes.get(Attribute.SERVICE_PROCESS_IS_RUNNING) is True
        assert attributes.get(Attribute.SERVICE_STATE_ACTUAL) == Lifecycle.RUNNING

    def test_running_attribute_set_is_published_and_withdrawn_whole(self, driver, client, no_sleep):
        driver.start([client])
        assert all(driver.attributes.get(attribute) for attribute in RUNNING_ATTRIBUTES)

        driver.stop()
        snapshot = driver.attributes.snapshot()
        for attribute in RUNNING_ATTRIBUTES:
            assert attribute in snapshot
            assert not snapshot[attribute]

    def test_default_profile_is_observed(self, driver, client, no_sleep):
        driver.start([client])

        assert driver.attributes.get(Attribute.ALLOCATED_MEMORY) == 512
        assert driver.attributes.get(Attribute.ALLOCATED_DISK) == 1024
        assert driver.attributes.get(Attribute.INSTANCES) == 1
        assert driver.attributes.get(Attribute.ENV) == {}

    def test_remote_artifact_scenario(self, client, fake_deploy, listener, no_sleep):
        descriptor = ApplicationDescriptor(
            name="my-app",
            artifact="https://host/build/app-1.2.3.war?sig=abc",
            buildpack="x",
            domain="example.com",
            poll_interval=0,
        )
        response = MagicMock()
        response.__enter__.return_value = response
        response.iter_content.return_value = [b"PK"]
        driver = ApplicationDriver(descriptor, listener=listener)

        with patch("cfpaas.infrastructure.cloudfoundry.artifacts.requests.get", return_value=response):
            driver.start([client])

        app = fake_deploy.manifests[-1]["applications"][0]
        assert app["path"].endswith("/app-1.2.3.war")
        assert app["buildpack"] == "x"
        assert driver.url == "https://my-app.example.com"
        assert driver.is_running()

    def test_running_attributes_published_together(self, descriptor, client, no_sleep):
        snapshots = []
        holder = {}

        class Recorder:
            def on_state_changed(self, attribute, value):
                if "driver" in holder:
                    snapshots.append(holder["driver"].attributes.snapshot())

        driver = ApplicationDriver(descriptor, listener=Recorder())
        holder["driver"] = driver
        driver.start([client])

        for snapshot in snapshots:
            values = {snapshot.get(a) for a in (Attribute.SERVICE_UP, Attribute.SERVICE_PROCESS_IS_RUNNING)}
            if True in values:
                assert values == {True}
                assert snapshot[Attribute.ROOT_URL] == "https://my-app.example.com"

    def test_equal_profile_makes_no_setter_calls(self, driver, client, cc, no_sleep):
        driver.start([client])

        assert cc.app_updates() == [{"state": "STARTED"}]

    def test_profile_reconciled_after_deploy(self, driver, mock_client, no_sleep):
        mock_client.get_state.side_effect = [_observed(memory=256, env={}), _observed()]

        driver.start([mock_client])

        mock_client.set_memory.assert_called_once_with("my-app", 512)
        mock_client.set_disk.assert_not_called()
        assert mock_client.method_calls[0] == call.deploy(driver.descriptor)

    def test_services_bound_before_start(self, client, cc, artifact, no_sleep):
        cc.add_service_instance("my-db")
        descriptor = ApplicationDescriptor(
            name="my-app", artifact=artifact, domain="example.com", services=["my-db"], poll_interval=0
        )

        ApplicationDriver(descriptor).start([client])

        assert len(cc.bindings) == 1

    def test_start_while_running_is_noop(self, running, cc):
        pushes = len(_pushes(cc))

        running.start()

        assert len(_pushes(cc)) == pushes

    def test_injected_client(self, descriptor, client, no_sleep):
        driver = ApplicationDriver(descriptor, client=client)

        driver.start()

        assert driver.is_running()

    def test_location_mapping_uses_cache(self, descriptor, client, location_data, no_sleep):
        cache = Mock(spec=ClientCache)
        cache.get_client.return_value = client
        driver = ApplicationDriver(descriptor, client_cache=cache)

        driver.start([location_data])

        cache.get_client.assert_called_once_with(location_data)
        assert driver.is_running()

    def test_polls_until_running(self, driver, mock_client, no_sleep):
        mock_client.get_status.side_effect = [AppStatus.STAGING, AppStatus.STAGING, AppStatus.RUNNING]

        driver.start([mock_client])

        assert driver.is_running()
        assert no_sleep.call_count == 2
        no_sleep.assert_called_with(0)

    def test_readiness_timeout(self, artifact, client, cc, listener, no_sleep):
        cc.stage_result = "PENDING"
        descriptor = ApplicationDescriptor(
            name="my-app", artifact=artifact, domain="example.com", start_timeout=0
        )
        driver = ApplicationDriver(descriptor, listener=listener)

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            driver.start([client])

        assert exc_info.value.details["last_status"] == "staging"
        assert driver.state == ApplicationState.STOPPED
        assert not driver.is_running()
        assert driver.attributes.get(Attribute.SERVICE_STATE_ACTUAL) == Lifecycle.ON_FIRE
        assert driver.attributes.get(Attribute.SERVICE_UP) is False
        assert driver.attributes.get(Attribute.ROOT_URL) is None
        assert call(Attribute.SERVICE_UP, True) not in listener.on_state_changed.call_args_list

    def test_staging_failure(self, driver, client, cc, no_sleep):
        cc.stage_result = "FAILED"

        with pytest.raises(DeploymentError) as exc_info:
            driver.start([client])

        assert exc_info.value.error_code == "STAGING_FAILED"
        assert driver.state == ApplicationState.STOPPED

    def test_deploy_failure(self, driver, mock_client, listener):
        mock_client.deploy.side_effect = DeploymentError("bad artifact", error_code="ARTIFACT_NOT_FOUND")

        with pytest.raises(DeploymentError):
            driver.start([mock_client])

        assert driver.state == ApplicationState.NOT_DEPLOYED
        assert driver.attributes.get(Attribute.SERVICE_STATE_ACTUAL) == Lifecycle.ON_FIRE
        for attribute in RUNNING_ATTRIBUTES:
            assert driver.attributes.get(attribute) in (None, False)
        mock_client.start.assert_not_called()

    def test_failed_redeploy_of_stopped_app_stays_stopped(self, running, cc):
        running.stop()
        cc.fail("GET", "shared_domains")

        with pytest.raises(PlatformError):
            running.start()

        assert running.state == ApplicationState.STOPPED
        assert "my-app" in cc.apps
        assert running.attributes.get(Attribute.SERVICE_STATE_ACTUAL) == Lifecycle.ON_FIRE

        running.restart()
        assert running.is_running()

    def test_can_start_again_after_failure(self, driver, mock_client, no_sleep):
        mock_client.deploy.side_effect = [PlatformError("flaky"), "https://my-app.example.com"]

        with pytest.raises(PlatformError):
            driver.start([mock_client])
        driver.start([mock_client])

        assert driver.is_running()


@pytest.mark.unit
class TestStopRestartDelete:
    """Test the remaining lifecycle operations."""

    def test_stop(self, running, client):
        running.stop()

        assert running.state == ApplicationState.STOPPED
        assert not running.is_running()
        assert client.get_status("my-app") == AppStatus.STOPPED
        for attribute in (Attribute.ROOT_URL, Attribute.MAIN_URI):
            assert running.attributes.get(attribute) is None
        assert running.attributes.get(Attribute.SERVICE_UP) is False
        assert running.attributes.get(Attribute.SERVICE_STATE_ACTUAL) == Lifecycle.STOPPED

    def test_stop_when_not_deployed(self, driver):
        driver.stop()
        assert driver.state == ApplicationState.NOT_DEPLOYED

    def test_stop_failure(self, driver, mock_client, no_sleep):
        driver.start([mock_client])
        mock_client.stop.side_effect = PlatformError("boom")

        with pytest.raises(PlatformError):
            driver.stop()

        assert driver.state == ApplicationState.STOPPED
        assert driver.attributes.get(Attribute.SERVICE_STATE_ACTUAL) == Lifecycle.ON_FIRE

    def test_restart(self, running, cc):
        updates_before = len(cc.app_updates())

        running.restart()

        assert running.is_running()
        assert cc.app_updates()[updates_before:] == [{"state": "STOPPED"}, {"state": "STARTED"}]
        assert running.attributes.get(Attribute.ROOT_URL) == "https://my-app.example.com"

    def test_restart_does_not_reconcile(self, driver, mock_client, no_sleep):
        driver.start([mock_client])
        mock_client.get_state.return_value = _observed(memory=128)

        driver.restart()

        mock_client.restart.assert_called_once_with("my-app")
        mock_client.set_memory.assert_not_called()

    def test_restart_from_stopped(self, running):
        running.stop()
        running.restart()
        assert running.is_running()

    def test_restart_before_start(self, driver):
        with pytest.raises(LifecycleError):
            driver.restart()

    def test_restart_failure(self, driver, mock_client, no_sleep):
        driver.start([mock_client])
        mock_client.restart.side_effect = PlatformError("boom")

        with pytest.raises(PlatformError):
            driver.restart()

        assert driver.state == ApplicationState.STOPPED
        assert driver.attributes.get(Attribute.SERVICE_STATE_ACTUAL) == Lifecycle.ON_FIRE

    def test_delete_not_deployed_is_noop(self, driver):
        driver.delete()

        assert driver.state == ApplicationState.DESTROYED
        assert not driver.is_running()
        assert driver.attributes.get(Attribute.SERVICE_UP) is False

    def test_delete_absent_remote_app(self, descriptor, client):
        driver = ApplicationDriver(descriptor, client=client)

        driver.delete()

        assert driver.state == ApplicationState.DESTROYED
        assert not driver.is_running()

    def test_delete_running(self, running, cc):
        running.delete()

        assert "my-app" not in cc.apps
        assert running.state == ApplicationState.DESTROYED
        assert running.attributes.get(Attribute.ROOT_URL) is None
        assert running.attributes.get(Attribute.ALLOCATED_MEMORY) is None
        assert running.attributes.get(Attribute.SERVICE_STATE_ACTUAL) == Lifecycle.DESTROYED

    def test_delete_is_idempotent(self, running, cc):
        running.delete()
        running.delete()
        assert running.state == ApplicationState.DESTROYED

    def test_delete_tolerates_app_vanishing(self, driver, mock_client, no_sleep):
        driver.start([mock_client])
        mock_client.delete.side_effect = PlatformError("gone", error_code="NOT_FOUND")

        driver.delete()

        assert driver.state == ApplicationState.DESTROYED

    def test_delete_stop_failure_is_best_effort(self, driver, mock_client, no_sleep):
        driver.start([mock_client])
        mock_client.stop.side_effect = PlatformError("cannot stop")

        driver.delete()

        mock_client.delete.assert_called_once_with("my-app")
        assert driver.state == ApplicationState.DESTROYED

    def test_delete_failure_propagates(self, driver, mock_client, no_sleep):
        driver.start([mock_client])
        mock_client.delete.side_effect = PlatformError("forbidden", error_code="AUTHENTICATION_FAILED")

        with pytest.raises(PlatformError):
            driver.delete()

        assert driver.attributes.get(Attribute.SERVICE_STATE_ACTUAL) == Lifecycle.ON_FIRE

    def test_start_after_delete(self, running):
        running.delete()
        running.start()
        assert running.is_running()


@pytest.mark.unit
class TestEffectors:
    """Test setter effectors."""

    def test_set_memory_on_running_app(self, running, client):
        running.set_memory(1024)

        assert client.get_memory("my-app") == 1024
        assert running.descriptor.memory == 1024
        assert running.attributes.get(Attribute.ALLOCATED_MEMORY) == 1024

    def test_set_disk_and_instances(self, running):
        running.set_disk(2048)
        running.set_instances(3)

        assert running.attributes.get(Attribute.ALLOCATED_DISK) == 2048
        assert running.attributes.get(Attribute.INSTANCES) == 3

    def test_setter_before_start_updates_descriptor_only(self, driver, mock_client):
        driver.set_memory(2048)

        assert driver.descriptor.memory == 2048
        mock_client.set_memory.assert_not_called()

    def test_setter_before_start_applies_on_deploy(self, driver, client, fake_deploy, no_sleep):
        driver.set_instances(2)
        driver.start([client])

        assert fake_deploy.manifests[-1]["applications"][0]["instances"] == 2
        assert driver.attributes.get(Attribute.INSTANCES) == 2

    def test_invalid_value(self, running):
        with pytest.raises(ConfigurationError):
            running.set_memory(0)
        assert running.descriptor.memory == 512

    def test_set_env_merges(self, running, client):
        running.set_env({"A": "1"})
        running.set_env({"B": 2})

        assert client.get_env("my-app") == {"A": "1", "B": "2"}
        assert running.attributes.get(Attribute.ENV) == {"A": "1", "B": "2"}

    def test_empty_env_is_noop(self, running, cc):
        running.set_env({"A": "1"})
        running.set_env({})
        running.set_env(None)

        env_updates = [u for u in cc.app_updates() if "environment_json" in u]
        assert env_updates == [{"environment_json": {"A": "1"}}]

    def test_clear_env(self, running, client):
        running.set_env({"A": "1"})

        running.clear_env()

        assert client.get_env("my-app") == {}
        assert running.descriptor.env == {}

    def test_setter_failure_reports_on_fire(self, driver, mock_client, no_sleep):
        driver.start([mock_client])
        mock_client.set_instances.side_effect = PlatformError("quota")

        with pytest.raises(PlatformError):
            driver.set_instances(10)

        assert driver.attributes.get(Attribute.SERVICE_STATE_ACTUAL) == Lifecycle.ON_FIRE
