"""End-to-end engine scenarios on the simulated provider."""

import pytest
from converge.config import EngineConfig
from converge.engine import Engine
from converge.executor import RunStatus
from converge.model.loader import parse_desired_state
from converge.plan import Operation
from converge.providers import SimulatedProvider
from converge.utils.errors import CyclicDependencyError, LockHeldError, PartialApplyError

SCENARIO = {
    "resources": [
        {"kind": "network", "name": "net1", "attributes": {"cidr_block": "10.0.0.0/16"}},
        {"kind": "subnet", "name": "sub1",
         "attributes": {"vpc_id": "${network.net1.id}", "cidr_block": "10.0.1.0/24"}},
        {"kind": "compute_instance", "name": "app1",
         "attributes": {"instance_type": "t3.micro", "image_id": "ami-1", "subnet_id": "${subnet.sub1.id}"}},
    ],
}


@pytest.fixture
def provider():
    return SimulatedProvider()


@pytest.fixture
def engine(tmp_path, provider):
    config = EngineConfig(**{
        "state": {"path": str(tmp_path / "state.json")},
        "provider": {"name": "local"},
        "executor": {"backoff_base": 0, "wait_timeout": 1},
    })
    return Engine(config, provider=provider, sleep=lambda seconds: None)


def _creates(provider):
    return [address for op, address in provider.cloud.calls if op == "create"]


class TestScenario:
    """network -> subnet -> instance."""

    def test_apply_creates_in_order_and_records_identifiers(self, engine, provider):
        report = engine.apply(parse_desired_state(SCENARIO))

        assert report.status is RunStatus.SUCCEEDED
        assert _creates(provider) == ["network.net1", "subnet.sub1", "compute_instance.app1"]
        net = engine.store.get("network", "net1")
        sub = engine.store.get("subnet", "sub1")
        app = engine.store.get("compute_instance", "app1")
        assert sub.attributes["vpc_id"] == net.identifier
        assert app.attributes["subnet_id"] == sub.identifier
        assert app.outputs["public_ip"]

    def test_reapply_is_all_no_op(self, engine, provider):
        desired = parse_desired_state(SCENARIO)
        engine.apply(desired)
        engine.apply(desired)
        calls_before = len(_creates(provider))

        plan = engine.plan(desired)
        report = engine.apply(desired)

        assert {a.operation for a in plan.actions} == {Operation.NO_OP}
        assert report.status is RunStatus.SUCCEEDED
        assert len(_creates(provider)) == calls_before

    def test_destroy_deletes_dependents_first(self, engine, provider):
        engine.apply(parse_desired_state(SCENARIO))
        provider.cloud.calls.clear()

        report = engine.destroy()

        deletes = [address for op, address in provider.cloud.calls if op == "delete"]
        assert deletes == ["compute_instance.app1", "subnet.sub1", "network.net1"]
        assert report.status is RunStatus.SUCCEEDED
        assert engine.store.records() == []
        assert provider.cloud.resources == {}

    def test_replace_order(self, engine, provider):
        engine.apply(parse_desired_state(SCENARIO))
        provider.cloud.calls.clear()
        changed = parse_desired_state(SCENARIO)
        changed.get("subnet.sub1").attributes["cidr_block"] = "10.0.2.0/24"

        engine.apply(changed)

        mutations = [(op, address) for op, address in provider.cloud.calls if op in ("create", "delete")]
        assert mutations == [
            ("delete", "compute_instance.app1"),
            ("delete", "subnet.sub1"),
            ("create", "subnet.sub1"),
            ("create", "compute_instance.app1"),
        ]
        assert engine.store.get("subnet", "sub1").attributes["cidr_block"] == "10.0.2.0/24"

    def test_refresh_recreates_resource_deleted_out_of_band(self, engine, provider):
        engine.apply(parse_desired_state(SCENARIO))
        provider.cloud.delete_out_of_band(engine.store.get("compute_instance", "app1").identifier)

        plan = engine.plan(parse_desired_state(SCENARIO))
        assert plan.get("create:compute_instance.app1") is not None

        engine.apply(parse_desired_state(SCENARIO))
        assert provider.cloud.find("compute_instance.app1") == engine.store.get("compute_instance", "app1").identifier


class TestFailureModes:
    """Errors surfaced by the engine."""

    def test_cycle_aborts_before_provider_calls(self, engine, provider):
        cyclic = parse_desired_state({"resources": [
            {"kind": "parameter", "name": "a", "attributes": {"name": "a", "value": "${parameter.b.version}"}},
            {"kind": "parameter", "name": "b", "attributes": {"name": "b", "value": "${parameter.a.version}"}},
        ]})
        with pytest.raises(CyclicDependencyError):
            engine.apply(cyclic)
        assert provider.cloud.calls == []
        assert not engine.store.path.exists()

    def test_partial_failure(self, engine, provider):
        provider.cloud.inject_fault("subnet.sub1", fail=True)
        desired = parse_desired_state({"resources": SCENARIO["resources"] + [
            {"kind": "parameter", "name": "other", "attributes": {"name": "/other", "value": "x"}},
        ]})

        with pytest.raises(PartialApplyError) as exc_info:
            engine.apply(desired)

        report = exc_info.value.report
        assert report.failed == ["subnet.sub1"]
        assert report.skipped == ["compute_instance.app1"]
        assert set(report.succeeded) == {"network.net1", "parameter.other"}
        assert engine.store.get("parameter", "other") is not None
        assert not engine.store.lock_path.exists()

    def test_lock_held(self, engine):
        with engine.store.lock("other-run"):
            with pytest.raises(LockHeldError):
                engine.apply(parse_desired_state(SCENARIO))

    def test_confirm_declined_changes_nothing(self, engine, provider):
        result = engine.apply(parse_desired_state(SCENARIO), confirm=lambda plan: False)

        assert result is None
        assert provider.cloud.calls == []
