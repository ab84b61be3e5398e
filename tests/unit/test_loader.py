"""Unit tests for the YAML config loader and env var resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from bus_provisioning.config.loader import (
    load_provisioning_config,
    load_yaml,
    resolve_env_vars,
)


class TestResolveEnvVars:
    def test_plain_string_unchanged(self):
        assert resolve_env_vars("hello") == "hello"

    def test_substitutes_env_var(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("MGMT_HOST", "mgmt.prod")
        assert resolve_env_vars("${MGMT_HOST}") == "mgmt.prod"

    def test_default_when_var_missing(self):
        assert resolve_env_vars("${MISSING_VAR:-fallback}") == "fallback"

    def test_env_var_overrides_default(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("MGMT_PORT", "9999")
        assert resolve_env_vars("${MGMT_PORT:-8090}") == "9999"

    def test_empty_default(self):
        assert resolve_env_vars("${MISSING_VAR:-}") == ""

    def test_missing_var_no_default_raises(self):
        with pytest.raises(ValueError, match="UNDEFINED_VAR"):
            resolve_env_vars("${UNDEFINED_VAR}")

    def test_multiple_vars_in_one_string(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("HOST", "localhost")
        monkeypatch.setenv("PORT", "8090")
        assert resolve_env_vars("http://${HOST}:${PORT}") == "http://localhost:8090"

    def test_recursive_structures(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOKEN", "abc")
        data = {"auth": {"token": "${TOKEN}"}, "paths": ["${TOKEN}", "plain"]}
        assert resolve_env_vars(data) == {
            "auth": {"token": "abc"},
            "paths": ["abc", "plain"],
        }

    def test_non_string_values_unchanged(self):
        data = {"timeout": 30, "enabled": True, "ratio": 0.5, "nothing": None}
        assert resolve_env_vars(data) == data

    def test_default_with_colons(self):
        result = resolve_env_vars("${MISSING:-http://localhost:8090}")
        assert result == "http://localhost:8090"


class TestLoadYaml:
    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError, match="not found"):
            load_yaml(tmp_path / "nope.yaml")

    def test_empty_file_is_empty_mapping(self, tmp_path: Path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        assert load_yaml(config_file) == {}

    def test_parse_error_reports_position(self, tmp_path: Path):
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("management:\n  endpoint_url: [unclosed\n")
        with pytest.raises(ValueError, match="line"):
            load_yaml(config_file)

    def test_top_level_list_rejected(self, tmp_path: Path):
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n")
        with pytest.raises(TypeError, match="mapping"):
            load_yaml(config_file)


class TestLoadProvisioningConfig:
    def test_defaults_when_no_path(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("BUSPROV_ENDPOINT_URL", raising=False)
        monkeypatch.delenv("BUSPROV_LOG_LEVEL", raising=False)
        cfg = load_provisioning_config()
        assert cfg.management.endpoint_url == "http://localhost:8090"
        assert cfg.management.timeout_seconds == 30
        assert cfg.client.prefetch_count == 0
        assert cfg.logging.level == "info"

    def test_env_override_of_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("BUSPROV_ENDPOINT_URL", "https://mgmt.example.com/")
        monkeypatch.setenv("BUSPROV_LOG_LEVEL", "debug")
        cfg = load_provisioning_config()
        assert cfg.management.endpoint_url == "https://mgmt.example.com"
        assert cfg.logging.level == "debug"

    def test_loads_from_yaml(self, tmp_path: Path):
        config_file = tmp_path / "provisioning.yaml"
        config_file.write_text(
            "management:\n  timeout_seconds: 5\nclient:\n  prefetch_count: 50\n"
        )
        cfg = load_provisioning_config(config_file)
        assert cfg.management.timeout_seconds == 5
        assert cfg.client.prefetch_count == 50
        # non-overridden defaults preserved
        assert cfg.management.ready_max_attempts == 10

    def test_user_file_env_vars_resolved(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setenv("MGMT_TOKEN", "s3cret")
        config_file = tmp_path / "provisioning.yaml"
        config_file.write_text("management:\n  auth_token: ${MGMT_TOKEN}\n")
        cfg = load_provisioning_config(config_file)
        assert cfg.management.auth_token is not None
        assert cfg.management.auth_token.get_secret_value() == "s3cret"

    def test_invalid_config_raises_value_error(self, tmp_path: Path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("client:\n  prefetch_count: -3\n")
        with pytest.raises(ValueError, match="Invalid provisioning config"):
            load_provisioning_config(config_file)

    def test_unknown_section_rejected(self, tmp_path: Path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("kafka:\n  bootstrap_servers: x\n")
        with pytest.raises(ValueError, match="kafka"):
            load_provisioning_config(config_file)
