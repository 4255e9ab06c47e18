"""Tests for the planner."""

import pytest
from converge.model.models import DesiredState, Resource
from converge.plan import Operation, Planner, RefreshResult, build_graph, plan_changes
from converge.state.models import RecordStatus, StateRecord
from converge.utils.errors import CyclicDependencyError, ValidationError


def _desired(*resources):
    return DesiredState(resources=list(resources))


def _net(cidr="10.0.0.0/16"):
    return Resource(kind="network", name="net1", attributes={"cidr_block": cidr})


def _sub(cidr="10.0.1.0/24", public=False):
    attributes = {"vpc_id": "${network.net1.id}", "cidr_block": cidr}
    if public:
        attributes["map_public_ip_on_launch"] = True
    return Resource(kind="subnet", name="sub1", attributes=attributes)


def _app():
    return Resource(kind="compute_instance", name="app1", attributes={
        "instance_type": "t3.micro", "image_id": "ami-1", "subnet_id": "${subnet.sub1.id}",
    })


def _records(status=RecordStatus.READY):
    """State after net1/sub1/app1 were applied."""
    return [
        StateRecord(kind="network", name="net1", identifier="vpc-1",
                    attributes={"cidr_block": "10.0.0.0/16"}, outputs={"id": "vpc-1"}),
        StateRecord(kind="subnet", name="sub1", identifier="subnet-1",
                    attributes={"vpc_id": "vpc-1", "cidr_block": "10.0.1.0/24"}, outputs={"id": "subnet-1"},
                    dependencies=["network.net1"], status=status),
        StateRecord(kind="compute_instance", name="app1", identifier="i-1",
                    attributes={"instance_type": "t3.micro", "image_id": "ami-1", "subnet_id": "subnet-1"},
                    outputs={"id": "i-1", "public_ip": "54.0.0.1"}, dependencies=["subnet.sub1"]),
    ]


def _ops(plan):
    return [(a.operation.value, a.address) for a in plan.actions]


def _index(plan, action_id):
    return [a.id for a in plan.actions].index(action_id)


class TestCreatePlans:
    """Empty state."""

    def test_everything_created_in_dependency_order(self):
        plan = plan_changes(_desired(_app(), _sub(), _net()), [])

        assert _ops(plan) == [
            ("create", "network.net1"),
            ("create", "subnet.sub1"),
            ("create", "compute_instance.app1"),
        ]
        assert plan.get("create:subnet.sub1").requires == ["create:network.net1"]
        assert plan.get("create:compute_instance.app1").requires == ["create:subnet.sub1"]

    def test_references_shown_as_known_after_apply(self):
        plan = plan_changes(_desired(_net(), _sub()), [])
        diffs = {d.attribute: d.after for d in plan.get("create:subnet.sub1").diffs}
        assert diffs["vpc_id"] == "(known after apply)"
        assert diffs["cidr_block"] == "10.0.1.0/24"

    def test_summary_counts(self):
        summary = plan_changes(_desired(_net(), _sub(), _app()), []).summary()
        assert (summary.create, summary.update, summary.delete, summary.replace) == (3, 0, 0, 0)


class TestIdempotence:
    """Applied state matching desired state plans nothing."""

    def test_all_no_op(self):
        plan = plan_changes(_desired(_net(), _sub(), _app()), _records())

        assert {a.operation for a in plan.actions} == {Operation.NO_OP}
        assert not plan.has_changes()

    def test_list_order_is_irrelevant(self):
        group = Resource(kind="db_subnet_group", name="g", attributes={"name": "g", "subnet_ids": ["b", "a"]})
        record = StateRecord(kind="db_subnet_group", name="g", identifier="g",
                             attributes={"name": "g", "subnet_ids": ["a", "b"]})
        plan = plan_changes(_desired(group), [record])
        assert plan.actions[0].operation is Operation.NO_OP


class TestUpdatesAndReplacements:
    """Diffs on existing records."""

    def test_mutable_change_is_update(self):
        plan = plan_changes(_desired(_net(), _sub(public=True), _app()), _records())

        action = plan.get("update:subnet.sub1")
        assert action is not None
        assert [d.attribute for d in action.diffs] == ["map_public_ip_on_launch"]
        assert plan.get("no-op:compute_instance.app1") is not None

    def test_immutable_change_replaces_and_cascades(self):
        plan = plan_changes(_desired(_net(), _sub(cidr="10.0.9.0/24"), _app()), _records())

        assert plan.get("delete:subnet.sub1").replace is True
        assert plan.get("create:subnet.sub1").replace is True
        assert plan.get("create:compute_instance.app1").replace is True
        assert "subnet.sub1" in plan.get("create:compute_instance.app1").reason

        # dependent delete, then resource delete, then re-create in forward order
        assert _index(plan, "delete:compute_instance.app1") < _index(plan, "delete:subnet.sub1")
        assert _index(plan, "delete:subnet.sub1") < _index(plan, "create:subnet.sub1")
        assert _index(plan, "create:subnet.sub1") < _index(plan, "create:compute_instance.app1")
        assert plan.summary().replace == 2

    def test_forcing_diff_marked(self):
        plan = plan_changes(_desired(_net(), _sub(cidr="10.0.9.0/24"), _app()), _records())
        diff = [d for d in plan.get("create:subnet.sub1").diffs if d.attribute == "cidr_block"][0]
        assert diff.forces_replacement is True
        assert diff.before == "10.0.1.0/24"

    def test_tainted_record_replaced(self):
        plan = plan_changes(_desired(_net(), _sub(), _app()), _records(status=RecordStatus.TAINTED))

        assert plan.get("delete:subnet.sub1").reason == "record is tainted"
        assert plan.get("create:subnet.sub1") is not None

    def test_sensitive_values_redacted(self):
        secret = Resource(kind="secret", name="pw", attributes={"name": "/pw"})
        db = Resource(kind="managed_database", name="db", attributes={
            "identifier": "db", "engine": "mysql", "instance_class": "db.t3.micro", "allocated_storage": 20,
            "master_username": "admin", "master_password_handle": "${secret.pw.handle}",
        })
        plan = plan_changes(_desired(secret, db), [])
        diff = [d for d in plan.get("create:managed_database.db").diffs if d.attribute == "master_password_handle"][0]
        assert diff.sensitive is True
        assert diff.after == "(known after apply)"

        records = [StateRecord(kind="secret", name="pw", identifier="/pw", attributes={"name": "/pw"},
                               outputs={"id": "/pw", "handle": "/pw"})]
        plan = plan_changes(_desired(secret, db), records)
        diff = [d for d in plan.get("create:managed_database.db").diffs if d.attribute == "master_password_handle"][0]
        assert diff.after == "(sensitive)"


class TestDeletes:
    """Records absent from the desired state."""

    def test_dependents_deleted_first(self):
        plan = plan_changes(_desired(_net()), _records())

        assert _index(plan, "delete:compute_instance.app1") < _index(plan, "delete:subnet.sub1")
        assert plan.get("delete:subnet.sub1").requires == ["delete:compute_instance.app1"]
        assert plan.get("no-op:network.net1") is not None

    def test_destroy_deletes_every_record_in_reverse_order(self):
        plan = plan_changes(DesiredState(), _records(), destroy=True)

        assert _ops(plan) == [
            ("delete", "compute_instance.app1"),
            ("delete", "subnet.sub1"),
            ("delete", "network.net1"),
        ]
        assert plan.destroy is True

    def test_surviving_dependent_updated_before_dependency_deleted(self):
        old = StateRecord(kind="parameter", name="old", identifier="/old",
                          attributes={"name": "/old", "value": "x"}, outputs={"id": "/old", "version": 1})
        user = StateRecord(kind="parameter", name="user", identifier="/user",
                           attributes={"name": "/user", "value": "1"}, outputs={"id": "/user", "version": 1},
                           dependencies=["parameter.old"])
        desired = _desired(Resource(kind="parameter", name="user", attributes={"name": "/user", "value": "2"}))

        plan = plan_changes(desired, [old, user])
        assert plan.get("delete:parameter.old").requires == ["update:parameter.user"]


class TestRefresh:
    """Plans against observed provider state."""

    def test_vanished_resource_recreated_without_delete(self):
        refresh = RefreshResult(vanished=["compute_instance.app1"])
        plan = plan_changes(_desired(_net(), _sub(), _app()), _records(), refresh=refresh)

        action = plan.get("create:compute_instance.app1")
        assert action.replace is False
        assert "no longer exists" in action.reason
        assert plan.get("delete:compute_instance.app1") is None

    def test_drift_planned_as_update(self):
        refresh = RefreshResult(
            observed={"subnet.sub1": {"map_public_ip_on_launch": True}},
            drift={"subnet.sub1": ["map_public_ip_on_launch"]},
        )
        records = _records()
        records[1].attributes["map_public_ip_on_launch"] = False
        sub = _sub()
        sub.attributes["map_public_ip_on_launch"] = False

        plan = plan_changes(_desired(_net(), sub, _app()), records, refresh=refresh)
        assert plan.get("update:subnet.sub1") is not None
        assert plan.drift == {"subnet.sub1": ["map_public_ip_on_launch"]}


class TestPlanErrors:
    """Invalid graphs never reach planning."""

    def test_cycle(self):
        a = Resource(kind="parameter", name="a", attributes={"name": "a", "value": "${parameter.b.version}"})
        b = Resource(kind="parameter", name="b", attributes={"name": "b", "value": "${parameter.a.version}"})
        with pytest.raises(CyclicDependencyError):
            build_graph(_desired(a, b))

    def test_validation(self):
        with pytest.raises(ValidationError):
            plan_changes(_desired(Resource(kind="network", name="n")), [])

    def test_planner_accepts_prebuilt_graph(self):
        graph = build_graph(_desired(_net()))
        plan = Planner(graph, []).plan(source="doc.yaml", serial=7)
        assert plan.source == "doc.yaml"
        assert plan.state_serial == 7
