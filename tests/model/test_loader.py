"""Tests for desired-state loading."""

import tempfile
from pathlib import Path
import pytest
from converge.model.loader import load_desired_state, parse_desired_state
from converge.model.references import UNKNOWN, Reference, find_references, resolve_value
from converge.utils.errors import DesiredStateLoadError, ValidationError

DOCUMENT = """
version: 1
variables:
  prefix: petclinic
  cidr: 10.0.0.0/16
default_tags:
  Project: "${var.prefix}"
resources:
  - kind: network
    name: vpc
    attributes:
      cidr_block: "${var.cidr}"
    tags:
      Name: "${var.prefix}-vpc"
  - kind: subnet
    name: public
    attributes:
      vpc_id: "${network.vpc.id}"
      cidr_block: 10.0.1.0/24
"""


def _write(content: str) -> str:
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        f.write(content)
        return f.name


class TestLoadDesiredState:
    """Test YAML document loading."""

    def test_load_valid_document(self):
        path = _write(DOCUMENT)
        try:
            state = load_desired_state(path)
        finally:
            Path(path).unlink()

        assert state.addresses() == ["network.vpc", "subnet.public"]
        assert state.source == str(Path(path))
        vpc = state.get("network.vpc")
        assert vpc.attributes["cidr_block"] == "10.0.0.0/16"
        assert vpc.tags == {"Project": "petclinic", "Name": "petclinic-vpc"}
        assert state.get("subnet.public").tags == {"Project": "petclinic"}

    def test_cli_variables_override_defaults(self):
        path = _write(DOCUMENT)
        try:
            state = load_desired_state(path, {"prefix": "shop"})
        finally:
            Path(path).unlink()

        assert state.get("network.vpc").tags["Name"] == "shop-vpc"

    def test_load_missing_file(self):
        with pytest.raises(DesiredStateLoadError, match="not found"):
            load_desired_state("nonexistent.yaml")

    def test_load_invalid_yaml(self):
        path = _write("resources: [unclosed")
        try:
            with pytest.raises(DesiredStateLoadError, match="Invalid YAML"):
                load_desired_state(path)
        finally:
            Path(path).unlink()


class TestParseDesiredState:
    """Structural checks on parsed data."""

    def test_empty_document_has_no_resources(self):
        assert parse_desired_state(None).resources == []

    def test_non_mapping_rejected(self):
        with pytest.raises(DesiredStateLoadError):
            parse_desired_state(["not", "a", "mapping"])

    def test_unsupported_version_rejected(self):
        with pytest.raises(DesiredStateLoadError, match="Unsupported"):
            parse_desired_state({"version": 7, "resources": []})

    def test_undefined_variable_reported(self):
        data = {"resources": [{"kind": "network", "name": "n", "attributes": {"cidr_block": "${var.nope}"}}]}
        with pytest.raises(ValidationError) as exc_info:
            parse_desired_state(data)
        assert any("nope" in v for v in exc_info.value.violations)

    def test_malformed_entries_collected_together(self):
        data = {"resources": [{"name": "missing-kind"}, "not-a-mapping"]}
        with pytest.raises(ValidationError) as exc_info:
            parse_desired_state(data)
        assert len(exc_info.value.violations) == 2

    def test_non_mapping_tags_reported(self):
        data = {"resources": [
            {"kind": "network", "name": "n", "attributes": {"cidr_block": "10.0.0.0/16"}, "tags": ["a", "b"]},
            {"kind": "network", "name": "m", "attributes": {"cidr_block": "10.1.0.0/16"}, "tags": "team"},
        ]}
        with pytest.raises(ValidationError) as exc_info:
            parse_desired_state(data)
        violations = exc_info.value.violations
        assert len(violations) == 2
        assert all("tags" in v for v in violations)

    @pytest.mark.parametrize("name", ["has.dot", "has space", ""])
    def test_unreferenceable_names_rejected(self, name):
        data = {"resources": [{"kind": "network", "name": name, "attributes": {"cidr_block": "10.0.0.0/16"}}]}
        with pytest.raises(ValidationError) as exc_info:
            parse_desired_state(data)
        assert any("name" in v for v in exc_info.value.violations)


class TestReferences:
    """Reference extraction and resolution."""

    def test_find_references_in_nested_values(self):
        value = {"routes": [{"gateway_id": "${internet_gateway.igw.id}"}], "vpc": "${network.vpc.id}"}
        assert sorted(find_references(value)) == [
            Reference("internet_gateway", "igw", "id"),
            Reference("network", "vpc", "id"),
        ]

    def test_whole_value_reference_keeps_type(self):
        assert resolve_value("${managed_database.db.port}", lambda ref: 3306) == 3306

    def test_embedded_reference_is_interpolated(self):
        resolved = resolve_value("jdbc://${managed_database.db.address}/app", lambda ref: "db.internal")
        assert resolved == "jdbc://db.internal/app"

    def test_unknown_propagates_to_container(self):
        assert resolve_value(["${subnet.a.id}", "subnet-2"], lambda ref: UNKNOWN) is UNKNOWN
