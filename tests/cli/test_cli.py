"""Tests for the converge CLI."""

import json
import pytest
from click.testing import CliRunner
from converge import __version__
from converge.cli.main import cli
from converge.state.lock import StateLock

CONFIG = """
variables:
  greeting: hello
resources:
  - type: local_file
    name: greeting
    attributes:
      filename: "{filename}"
      content: "${{var.greeting}}"
  - type: null_resource
    name: after
    attributes:
      file_hash: "${{local_file.greeting.sha256}}"
"""


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setattr("converge.config.manager.get_user_config_path", lambda: tmp_path / "home" / "config.yaml")
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def workspace(tmp_path):
    """Resource config writing greeting.txt, plus the state path to use."""
    target = tmp_path / "greeting.txt"
    config = tmp_path / "resources.yaml"
    config.write_text(CONFIG.format(filename=target.as_posix()), encoding="utf-8")
    return {"config": str(config), "state": str(tmp_path / "state.json"), "target": target}


@pytest.fixture
def runner():
    return CliRunner()


def _invoke(runner, *args, input=None):
    return runner.invoke(cli, list(args), input=input, env={"CONVERGE_ASCII": "1"})


class TestPlanCommand:
    """Test plan."""

    def test_plan_shows_creates(self, runner, workspace):
        result = _invoke(runner, 'plan', workspace["config"], '--state', workspace["state"])

        assert result.exit_code == 2, result.output
        assert "+ local_file.greeting will be created" in result.output
        assert "(known after apply: local_file.greeting.sha256)" in result.output
        assert "Plan: 2 to add, 0 to change, 0 to replace, 0 to destroy." in result.output
        assert not workspace["target"].exists()

    def test_json_output(self, runner, workspace):
        result = _invoke(runner, 'plan', workspace["config"], '--state', workspace["state"], '--json')

        assert result.exit_code == 2
        data = json.loads(result.stdout)
        assert data["summary"]["CREATE"] == 2
        assert [a["node_id"] for a in data["actions"]] == ["local_file.greeting", "null_resource.after"]

    def test_missing_config_file(self, runner, tmp_path):
        result = _invoke(runner, 'plan', str(tmp_path / "nope.yaml"))

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_invalid_var(self, runner, workspace):
        result = _invoke(runner, 'plan', workspace["config"], '--var', 'novalue')

        assert result.exit_code == 2

    def test_locked_state(self, runner, workspace):
        lock = StateLock(workspace["state"])
        lock.acquire("apply")
        try:
            result = _invoke(runner, 'plan', workspace["config"], '--state', workspace["state"])
        finally:
            lock.release()

        assert result.exit_code == 1
        assert "locked" in result.output


class TestApplyCommand:
    """Test apply, including saved plans and approval."""

    def test_auto_approve_then_no_changes(self, runner, workspace):
        result = _invoke(runner, 'apply', workspace["config"], '--state', workspace["state"], '--auto-approve')

        assert result.exit_code == 0, result.output
        assert workspace["target"].read_text(encoding="utf-8") == "hello"
        assert "Apply complete: 2 succeeded, 0 failed, 0 skipped." in result.output

        again = _invoke(runner, 'plan', workspace["config"], '--state', workspace["state"])
        assert again.exit_code == 0
        assert "No changes" in again.output

    def test_var_changes_content_in_place(self, runner, workspace):
        _invoke(runner, 'apply', workspace["config"], '--state', workspace["state"], '--auto-approve')
        result = _invoke(runner, 'apply', workspace["config"], '--state', workspace["state"],
                         '--var', 'greeting=goodbye', '--auto-approve')

        assert result.exit_code == 0, result.output
        assert workspace["target"].read_text(encoding="utf-8") == "goodbye"
        assert "~ local_file.greeting will be updated in-place" in result.output

    def test_declined_approval(self, runner, workspace):
        result = _invoke(runner, 'apply', workspace["config"], '--state', workspace["state"], input="n\n")

        assert result.exit_code == 1
        assert "Apply cancelled." in result.output
        assert not workspace["target"].exists()

    def test_confirmed_approval(self, runner, workspace):
        result = _invoke(runner, 'apply', workspace["config"], '--state', workspace["state"], input="y\n")

        assert result.exit_code == 0, result.output
        assert workspace["target"].exists()

    def test_saved_plan(self, runner, workspace, tmp_path):
        plan_file = str(tmp_path / "plan.json")
        planned = _invoke(runner, 'plan', workspace["config"], '--state', workspace["state"], '--out', plan_file)
        assert planned.exit_code == 2, planned.output

        result = _invoke(runner, 'apply', '--plan', plan_file, '--state', workspace["state"])
        assert result.exit_code == 0, result.output
        assert workspace["target"].exists()

    def test_stale_saved_plan_rejected(self, runner, workspace, tmp_path):
        plan_file = str(tmp_path / "plan.json")
        _invoke(runner, 'plan', workspace["config"], '--state', workspace["state"], '--out', plan_file)
        _invoke(runner, 'apply', workspace["config"], '--state', workspace["state"], '--auto-approve')

        result = _invoke(runner, 'apply', '--plan', plan_file, '--state', workspace["state"])
        assert result.exit_code == 1
        assert "Run plan again" in result.output

    def test_requires_config_or_plan(self, runner):
        result = _invoke(runner, 'apply')

        assert result.exit_code == 1
        assert "CONFIG_FILE or --plan" in result.output


class TestStateCommands:
    """Test state inspection, destroy and force-unlock."""

    def test_state_list_and_show(self, runner, workspace):
        _invoke(runner, 'apply', workspace["config"], '--state', workspace["state"], '--auto-approve')

        listed = _invoke(runner, 'state', 'list', '--state', workspace["state"])
        assert listed.exit_code == 0
        assert listed.stdout.split() == ["local_file.greeting", "null_resource.after"]

        shown = _invoke(runner, 'state', 'show', 'local_file.greeting', '--state', workspace["state"])
        assert shown.exit_code == 0
        assert "type                 = local_file" in shown.output
        assert "content" in shown.output

        as_json = _invoke(runner, 'state', 'show', 'local_file.greeting', '--state', workspace["state"], '--json')
        assert json.loads(as_json.stdout)["attributes"]["content"] == "hello"

    def test_state_show_unknown(self, runner, workspace):
        result = _invoke(runner, 'state', 'show', 'local_file.nope', '--state', workspace["state"])

        assert result.exit_code == 1
        assert "No resource" in result.output

    def test_destroy(self, runner, workspace):
        _invoke(runner, 'apply', workspace["config"], '--state', workspace["state"], '--auto-approve')
        result = _invoke(runner, 'destroy', workspace["config"], '--state', workspace["state"], '--auto-approve')

        assert result.exit_code == 0, result.output
        assert not workspace["target"].exists()
        assert "DESTROY PLAN" in result.output

        listed = _invoke(runner, 'state', 'list', '--state', workspace["state"])
        assert "No resources recorded" in listed.output

    def test_force_unlock(self, runner, workspace):
        lock = StateLock(workspace["state"])
        lock_id = lock.acquire("apply")

        wrong = _invoke(runner, 'force-unlock', 'bogus', '--state', workspace["state"], '--force')
        assert wrong.exit_code == 1
        assert lock.path.exists()

        result = _invoke(runner, 'force-unlock', lock_id, '--state', workspace["state"], '--force')
        assert result.exit_code == 0, result.output
        assert not lock.path.exists()


class TestVersion:
    """Test version reporting."""

    def test_version_command(self, runner):
        result = _invoke(runner, 'version')

        assert result.exit_code == 0
        assert f"converge version {__version__}" in result.output

    def test_version_option(self, runner):
        result = _invoke(runner, '--version')

        assert result.exit_code == 0
        assert __version__ in result.output
