"""Tests for layered engine configuration."""

import pytest
from converge.config import load_engine_config
from converge.utils.errors import ConfigError


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's home and working directory configs out of the tests."""
    monkeypatch.setattr("converge.config.manager.get_user_config_path", lambda: tmp_path / "home" / "config.yaml")
    monkeypatch.chdir(tmp_path)


class TestEngineConfig:
    """Test defaults, layering and validation."""

    def test_defaults(self):
        config = load_engine_config()

        assert config.state.path == "converge.state.json"
        assert config.execution.parallelism == 10
        assert config.execution.retry.max_attempts == 5
        assert config.execution.retry.max_delay == 30.0
        assert config.planning.refresh is False

    def test_explicit_file_overrides_defaults(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("execution:\n  parallelism: 2\n  retry:\n    max_attempts: 3\n", encoding="utf-8")
        config = load_engine_config(str(path))

        assert config.execution.parallelism == 2
        assert config.execution.retry.max_attempts == 3
        assert config.execution.retry.base_delay == 1.0

    def test_project_config_is_layered(self, tmp_path):
        project = tmp_path / ".converge"
        project.mkdir()
        (project / "config.yaml").write_text("planning:\n  refresh: true\n", encoding="utf-8")

        assert load_engine_config().planning.refresh is True

    def test_overrides_win(self):
        config = load_engine_config(overrides={"state": {"path": "other.json"}})

        assert config.state.path == "other.json"

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("execution:\n  parallelism: 0\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_engine_config(str(path))

    def test_unknown_section_rejected(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("telemetry:\n  enabled: true\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_engine_config(str(path))

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_engine_config(str(tmp_path / "missing.yaml"))

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="dictionary"):
            load_engine_config(str(path))
