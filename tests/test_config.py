"""Tests for configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from cadence.core.config import (
    Config,
    LoggingConfig,
    check_unexpanded_vars,
    expand_env_vars,
    expand_env_vars_recursive,
    load_config,
)


def write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(content)
    return path


class TestEnvExpansion:
    """Test ${VAR} expansion helpers."""

    def test_expands_known_variable(self, monkeypatch):
        """Test a set variable is substituted."""
        monkeypatch.setenv("CADENCE_TEST_KEY", "secret123")
        assert expand_env_vars("Token: ${CADENCE_TEST_KEY}") == "Token: secret123"

    def test_leaves_unknown_variable(self, monkeypatch):
        """Test an unset variable is left as-is."""
        monkeypatch.delenv("CADENCE_MISSING", raising=False)
        assert expand_env_vars("${CADENCE_MISSING}") == "${CADENCE_MISSING}"

    def test_default_used_when_unset(self, monkeypatch):
        """Test ${VAR:-default} falls back only when the variable is unset."""
        monkeypatch.delenv("CADENCE_PORT", raising=False)
        assert expand_env_vars("${CADENCE_PORT:-8080}") == "8080"

        monkeypatch.setenv("CADENCE_PORT", "9000")
        assert expand_env_vars("${CADENCE_PORT:-8080}") == "9000"

    def test_recursive_expansion(self, monkeypatch):
        """Test nested dicts and lists are expanded, other types untouched."""
        monkeypatch.setenv("CADENCE_HOST", "example.com")
        data = {"a": ["${CADENCE_HOST}", 3], "b": {"c": "x-${CADENCE_HOST}"}, "d": True}

        assert expand_env_vars_recursive(data) == {
            "a": ["example.com", 3],
            "b": {"c": "x-example.com"},
            "d": True,
        }

    def test_check_unexpanded_vars_reports_names(self):
        """Test unresolved references are listed in the error."""
        with pytest.raises(ValueError, match=r"\$\{CADENCE_A\}, \$\{CADENCE_B\}"):
            check_unexpanded_vars({"x": ["${CADENCE_B}"], "y": "${CADENCE_A}"}, source="config.yaml")

    def test_check_unexpanded_vars_passes_clean_data(self):
        """Test fully expanded data passes."""
        check_unexpanded_vars({"x": "plain", "y": [1, 2]}, source="config.yaml")


class TestLoadConfig:
    """Test load_config."""

    def test_missing_file_raises(self, tmp_path):
        """Test a missing config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file_gives_defaults(self, tmp_path):
        """Test an empty file yields the default configuration."""
        config = load_config(write_config(tmp_path, ""))

        assert config.agent.max_rounds == 10
        assert config.channels.poll_interval_seconds == 2.0
        assert config.channels.telegram.enabled is False
        assert config.runner.base_url is None
        assert config.scheduler.timezone == "UTC"
        assert config.webhooks.secrets == {}

    def test_sections_and_env_expansion(self, tmp_path, monkeypatch):
        """Test values are read from YAML with env expansion."""
        monkeypatch.setenv("CADENCE_RUNNER_KEY", "runner-key")
        path = write_config(
            tmp_path,
            """
runner:
  base_url: http://runner:8787
  api_key: ${CADENCE_RUNNER_KEY}
channels:
  bot_name: helper
  telegram:
    enabled: true
    token: abc
webhooks:
  secrets:
    tracker: s3cret
""",
        )

        config = load_config(path)

        assert config.runner.base_url == "http://runner:8787"
        assert config.runner.api_key == "runner-key"
        assert config.channels.bot_name == "helper"
        assert config.channels.telegram.token == "abc"
        assert config.webhooks.secrets == {"tracker": "s3cret"}

    def test_unresolved_variable_raises(self, tmp_path, monkeypatch):
        """Test an unset ${VAR} in the file is an error."""
        monkeypatch.delenv("CADENCE_NOT_SET", raising=False)
        path = write_config(tmp_path, "agent:\n  api_key: ${CADENCE_NOT_SET}\n")

        with pytest.raises(ValueError, match="CADENCE_NOT_SET"):
            load_config(path)

    def test_extra_agent_keys_allowed(self, tmp_path):
        """Test provider-specific agent keys pass through."""
        config = load_config(write_config(tmp_path, "agent:\n  max_tokens: 2048\n"))
        assert config.agent.model_extra == {"max_tokens": 2048}


class TestModels:
    """Test config model validation."""

    def test_logging_level_normalized(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_logging_level_rejected(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")

    def test_max_rounds_must_be_positive(self):
        with pytest.raises(ValidationError):
            Config(agent={"max_rounds": 0})
