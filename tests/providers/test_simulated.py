"""Tests for the simulated provider."""

import pytest
from converge.config import ProviderConfig
from converge.providers import ReadyStatus, SimulatedCloud, SimulatedProvider, build_provider
from converge.providers.aws import AwsProvider
from converge.utils.errors import ConfigError, ProviderError


@pytest.fixture
def provider():
    return SimulatedProvider()


class TestSimulatedAdapter:
    """CRUD behaviour driven by kind schemas."""

    def test_create_read_delete(self, provider):
        adapter = provider.adapter("network")
        identifier, observed = adapter.create({"cidr_block": "10.0.0.0/16"}, address="network.net1")

        assert identifier.startswith("vpc-")
        assert observed["id"] == identifier
        assert adapter.read(identifier)["cidr_block"] == "10.0.0.0/16"

        adapter.delete(identifier)
        assert adapter.read(identifier) is None

    def test_delete_absent_resource_succeeds(self, provider):
        provider.adapter("subnet").delete("subnet-missing")

    def test_update_unknown_identifier_fails(self, provider):
        with pytest.raises(ProviderError):
            provider.adapter("subnet").update("subnet-missing", {"cidr_block": "x"})

    def test_outputs_follow_schema(self, provider):
        _, observed = provider.adapter("managed_database").create(
            {"identifier": "db", "port": 3306}, address="managed_database.db",
        )
        assert set(["id", "arn", "address", "endpoint", "port"]) <= set(observed)
        assert observed["endpoint"].endswith(":3306")

    def test_secret_value_never_returned(self, provider):
        adapter = provider.adapter("secret")
        identifier, observed = adapter.create({"name": "/app/password", "length": 12}, address="secret.pw")

        assert observed["handle"] == "/app/password"
        assert len(provider.cloud.resources[identifier]["secret_value"]) == 12
        assert "secret_value" not in adapter.read(identifier)

    def test_calls_are_recorded(self, provider):
        adapter = provider.adapter("network")
        identifier, _ = adapter.create({"cidr_block": "10.0.0.0/16"}, address="network.net1")
        adapter.read(identifier)

        assert provider.cloud.calls == [("create", "network.net1"), ("read", "network.net1")]


class TestFaultInjection:
    """Injected failures per address."""

    def test_permanent_failure(self, provider):
        provider.cloud.inject_fault("network.bad", fail=True)
        with pytest.raises(ProviderError) as exc_info:
            provider.adapter("network").create({"cidr_block": "10.0.0.0/16"}, address="network.bad")
        assert exc_info.value.transient is False

    def test_transient_failures_then_success(self, provider):
        provider.cloud.inject_fault("network.flaky", transient=2)
        adapter = provider.adapter("network")
        for _ in range(2):
            with pytest.raises(ProviderError) as exc_info:
                adapter.create({"cidr_block": "10.0.0.0/16"}, address="network.flaky")
            assert exc_info.value.transient is True
        identifier, _ = adapter.create({"cidr_block": "10.0.0.0/16"}, address="network.flaky")
        assert identifier

    def test_not_ready_cycles(self, provider):
        provider.cloud.inject_fault("managed_database.db", not_ready_cycles=1)
        adapter = provider.adapter("managed_database")
        identifier, _ = adapter.create({"identifier": "db"}, address="managed_database.db")

        assert adapter.wait_until_ready(identifier, 1) is ReadyStatus.TIMED_OUT
        assert adapter.wait_until_ready(identifier, 1) is ReadyStatus.READY


class TestPersistence:
    """Cloud contents survive between runs through the JSON file."""

    def test_resources_reloaded(self, tmp_path):
        path = str(tmp_path / "cloud.json")
        first = SimulatedProvider(SimulatedCloud(path))
        identifier, _ = first.adapter("network").create({"cidr_block": "10.0.0.0/16"}, address="network.n")

        second = SimulatedProvider(SimulatedCloud(path))
        assert second.adapter("network").read(identifier)["cidr_block"] == "10.0.0.0/16"
        assert second.cloud.find("network.n") == identifier


class TestBuildProvider:
    """Provider selection from configuration."""

    def test_local(self, tmp_path):
        provider = build_provider(ProviderConfig(name="local", local_path=str(tmp_path / "c.json")))
        assert isinstance(provider, SimulatedProvider)
        assert provider.kinds() == sorted(provider.kinds())
        assert provider.supports("compute_instance")

    def test_aws(self):
        provider = build_provider(ProviderConfig(name="aws", region="eu-west-1"))
        assert isinstance(provider, AwsProvider)
        assert provider.supports("managed_database")

    def test_unknown(self):
        with pytest.raises(ConfigError):
            build_provider(ProviderConfig(name="gcp"))

    def test_missing_adapter(self, provider):
        with pytest.raises(ConfigError):
            provider.adapter("load_balancer")
