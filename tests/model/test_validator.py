"""Tests for desired-state validation."""

import pytest
from converge.model.models import DesiredState, Resource
from converge.model.validator import collect_violations, validate_desired_state
from converge.utils.errors import ValidationError


def _state(*resources):
    return DesiredState(resources=list(resources))


class TestValidateDesiredState:
    """Schema and reference checks."""

    def test_valid_state_passes(self):
        state = _state(
            Resource(kind="network", name="net1", attributes={"cidr_block": "10.0.0.0/16"}),
            Resource(kind="subnet", name="sub1",
                     attributes={"vpc_id": "${network.net1.id}", "cidr_block": "10.0.1.0/24"}),
        )
        validate_desired_state(state)

    def test_unknown_kind(self):
        violations = collect_violations(_state(Resource(kind="load_balancer", name="lb")))
        assert len(violations) == 1
        assert "unknown kind 'load_balancer'" in violations[0]

    def test_missing_required_and_unknown_attribute(self):
        violations = collect_violations(_state(
            Resource(kind="subnet", name="s", attributes={"vpc": "x"}),
        ))
        assert "subnet.s: missing required attribute 'vpc_id'" in violations
        assert "subnet.s: missing required attribute 'cidr_block'" in violations
        assert "subnet.s: unknown attribute 'vpc' for kind 'subnet'" in violations

    def test_duplicate_address(self):
        net = Resource(kind="network", name="n", attributes={"cidr_block": "10.0.0.0/16"})
        violations = collect_violations(_state(net, net))
        assert any("declared 2 times" in v for v in violations)

    def test_dangling_reference(self):
        violations = collect_violations(_state(
            Resource(kind="subnet", name="s", attributes={"vpc_id": "${network.ghost.id}", "cidr_block": "10.0.1.0/24"}),
        ))
        assert any("undeclared resource 'network.ghost'" in v for v in violations)

    def test_reference_to_unexposed_attribute(self):
        violations = collect_violations(_state(
            Resource(kind="network", name="n", attributes={"cidr_block": "10.0.0.0/16"}),
            Resource(kind="subnet", name="s", attributes={"vpc_id": "${network.n.arn}", "cidr_block": "10.0.1.0/24"}),
        ))
        assert any("neither declares nor outputs" in v for v in violations)

    def test_sensitive_literal_rejected(self):
        violations = collect_violations(_state(
            Resource(kind="managed_database", name="db", attributes={
                "identifier": "db", "engine": "mysql", "instance_class": "db.t3.micro",
                "allocated_storage": 20, "master_username": "admin",
                "master_password_handle": "hunter2",
            }),
        ))
        assert any("sensitive attribute 'master_password_handle'" in v for v in violations)

    def test_image_one_of(self):
        violations = collect_violations(_state(
            Resource(kind="compute_instance", name="vm", attributes={"instance_type": "t3.micro", "subnet_id": "s"}),
        ))
        assert any("exactly one of image_id, image" in v for v in violations)

    def test_dangling_depends_on(self):
        violations = collect_violations(_state(
            Resource(kind="parameter", name="p", attributes={"name": "p", "value": "v"}, depends_on=["network.x"]),
        ))
        assert any("depends_on 'network.x'" in v for v in violations)

    def test_all_violations_reported_at_once(self):
        state = _state(
            Resource(kind="load_balancer", name="lb"),
            Resource(kind="subnet", name="s", attributes={}),
        )
        with pytest.raises(ValidationError) as exc_info:
            validate_desired_state(state)
        assert len(exc_info.value.violations) == 3
