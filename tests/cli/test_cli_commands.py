"""Tests for the converge CLI commands on the local provider."""

import json
from pathlib import Path
import pytest
import yaml
from click.testing import CliRunner
from converge import __version__
from converge.cli.main import cli
from converge.state import StateStore

DOCUMENT = """
version: 1
variables:
  prefix: demo
resources:
  - kind: network
    name: net1
    attributes:
      cidr_block: 10.0.0.0/16
  - kind: subnet
    name: sub1
    attributes:
      vpc_id: "${network.net1.id}"
      cidr_block: 10.0.1.0/24
  - kind: parameter
    name: endpoint
    attributes:
      name: "/${var.prefix}/subnet"
      value: "${subnet.sub1.id}"
"""

CYCLIC = """
resources:
  - kind: parameter
    name: a
    attributes: {name: a, value: "${parameter.b.version}"}
  - kind: parameter
    name: b
    attributes: {name: b, value: "${parameter.a.version}"}
"""


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Isolated cwd and home with a local-provider config file."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for var in ("CONVERGE_PROVIDER", "CONVERGE_STATE_PATH", "CONVERGE_MAX_WORKERS", "CONVERGE_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)

    (tmp_path / "converge.yaml").write_text(DOCUMENT)
    return tmp_path


def _config(workspace: Path, **extra) -> str:
    settings = {
        "provider": {"name": "local", "local_path": str(workspace / "cloud.json")},
        "state": {"path": str(workspace / "state.json")},
        "executor": {"backoff_base": 0, "max_attempts": 2},
        "logging": {"level": "WARNING"},
    }
    settings.update(extra)
    path = workspace / "config.yaml"
    path.write_text(yaml.safe_dump(settings))
    return str(path)


def _invoke(workspace, *args, config=None):
    runner = CliRunner()
    return runner.invoke(cli, ["--config", config or _config(workspace), *args])


class TestValidateCommand:
    """Test validate."""

    def test_valid_document_lists_order(self, workspace):
        result = _invoke(workspace, "validate")

        assert result.exit_code == 0
        assert "Valid: 3 resource(s)." in result.output
        assert result.output.index("network.net1") < result.output.index("subnet.sub1")

    def test_invalid_document_exits_2(self, workspace):
        (workspace / "bad.yaml").write_text("resources:\n  - kind: subnet\n    name: s\n    attributes: {}\n")
        result = _invoke(workspace, "validate", "bad.yaml")

        assert result.exit_code == 2
        assert "Error:" in result.output

    def test_cycle_exits_2(self, workspace):
        (workspace / "cycle.yaml").write_text(CYCLIC)
        result = _invoke(workspace, "validate", "cycle.yaml")

        assert result.exit_code == 2
        assert "parameter.a" in result.output

    def test_missing_file_exits_2(self, workspace):
        result = _invoke(workspace, "validate", "nope.yaml")
        assert result.exit_code == 2


class TestPlanCommand:
    """Test plan."""

    def test_plan_shows_creates(self, workspace):
        result = _invoke(workspace, "plan")

        assert result.exit_code == 0
        assert "+ network.net1" in result.output
        assert "Plan: 3 to create, 0 to update, 0 to replace, 0 to delete." in result.output
        assert not (workspace / "state.json").exists()

    def test_plan_json(self, workspace):
        result = _invoke(workspace, "plan", "--json")

        assert result.exit_code == 0
        data = json.loads(result.output[result.output.index("{"):])
        assert [a["id"] for a in data["actions"]] == [
            "create:network.net1", "create:subnet.sub1", "create:parameter.endpoint",
        ]

    def test_plan_out_writes_artifacts(self, workspace):
        result = _invoke(workspace, "plan", "--out", "artifacts")

        assert result.exit_code == 0
        summary = json.loads((workspace / "artifacts" / "summary.json").read_text())
        assert summary["create"] == 3
        metadata = json.loads((workspace / "artifacts" / "metadata.json").read_text())
        assert metadata["converge_version"] == __version__

    def test_var_override(self, workspace):
        result = _invoke(workspace, "plan", "--var", "prefix=prod")

        assert result.exit_code == 0
        assert "/prod/subnet" in result.output


class TestApplyCommand:
    """Test apply, destroy and their exit codes."""

    def test_apply_then_noop(self, workspace):
        config = _config(workspace)
        first = _invoke(workspace, "apply", "--auto-approve", config=config)
        assert first.exit_code == 0
        assert "APPLY SUCCEEDED" in first.output

        second = _invoke(workspace, "apply", "--auto-approve", config=config)
        assert second.exit_code == 0
        assert "No changes." in second.output
        assert "APPLY" not in second.output

    def test_declined_prompt_changes_nothing(self, workspace):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", _config(workspace), "apply"], input="n\n")

        assert result.exit_code == 0
        assert not (workspace / "cloud.json").exists()

    def test_partial_failure_exits_1(self, workspace):
        config = _config(workspace, provider={
            "name": "local",
            "local_path": str(workspace / "cloud.json"),
            "faults": {"subnet.sub1": {"fail": True}},
        })
        result = _invoke(workspace, "apply", "--auto-approve", config=config)

        assert result.exit_code == 1
        assert "[FAILED] create:subnet.sub1" in result.output
        assert "[skipped] create:parameter.endpoint" in result.output
        records = StateStore(str(workspace / "state.json")).load().records()
        assert [r.address for r in records] == ["network.net1"]

    def test_lock_held_exits_3(self, workspace):
        lock = StateStore(str(workspace / "state.json")).lock("someone-else")
        lock.acquire()
        try:
            result = _invoke(workspace, "apply", "--auto-approve")
        finally:
            lock.release()

        assert result.exit_code == 3
        assert "someone-else" in result.output

    def test_destroy(self, workspace):
        config = _config(workspace)
        _invoke(workspace, "apply", "--auto-approve", config=config)
        result = _invoke(workspace, "destroy", "--auto-approve", config=config)

        assert result.exit_code == 0
        assert "delete:network.net1" in result.output
        assert StateStore(str(workspace / "state.json")).load().records() == []


class TestStateCommands:
    """Test state list/show and force-unlock."""

    def test_state_list_and_show(self, workspace):
        config = _config(workspace)
        _invoke(workspace, "apply", "--auto-approve", config=config)

        listed = _invoke(workspace, "state", "list", config=config)
        assert listed.exit_code == 0
        assert "subnet.sub1" in listed.output

        shown = _invoke(workspace, "state", "show", "parameter.endpoint", config=config)
        assert shown.exit_code == 0
        assert "# parameter.endpoint" in shown.output
        assert "version = 1" in shown.output

    def test_state_list_json(self, workspace):
        config = _config(workspace)
        _invoke(workspace, "apply", "--auto-approve", config=config)

        result = _invoke(workspace, "state", "list", "--json", config=config)
        records = json.loads(result.output[result.output.index("["):])
        assert {r["kind"] for r in records} == {"network", "subnet", "parameter"}

    def test_state_show_missing(self, workspace):
        result = _invoke(workspace, "state", "show", "network.nope")
        assert result.exit_code == 1

    def test_force_unlock(self, workspace):
        config = _config(workspace)
        StateStore(str(workspace / "state.json")).lock("stale-run").acquire()

        result = _invoke(workspace, "force-unlock", "--yes", config=config)

        assert result.exit_code == 0
        assert "stale-run" in result.output
        assert "Lock removed." in result.output
        assert not (workspace / "state.json.lock").exists()

    def test_force_unlock_when_not_locked(self, workspace):
        result = _invoke(workspace, "force-unlock", "--yes")
        assert "State is not locked." in result.output


class TestVersionCommand:
    def test_version(self, workspace):
        result = CliRunner().invoke(cli, ["version"])
        assert result.exit_code == 0
        assert f"converge version {__version__}" in result.output

    def test_unknown_provider_in_config_exits_2(self, workspace):
        config = _config(workspace, provider={"name": "gcp"})
        result = _invoke(workspace, "plan", config=config)
        assert result.exit_code == 2
