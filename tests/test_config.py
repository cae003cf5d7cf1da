"""Tests for tms_sync.config -- env-var config loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models). This tests the connection
bootstrap path: validate_config() and load_config().
"""

import logging

import pytest

from tms_sync.config import Config, load_config, validate_config

ENV_VARS = (
    "TMS_URL",
    "TMS_USERNAME",
    "TMS_PASSWORD",
    "TMS_PROJECT_ID",
    "TMS_SOURCE",
    "TMS_INSECURE",
    "TMS_DEBUG",
    "TMS_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def base_env(monkeypatch):
    monkeypatch.setenv("TMS_URL", "https://tms.example.com")
    monkeypatch.setenv("TMS_USERNAME", "user")
    monkeypatch.setenv("TMS_PASSWORD", "pass")
    monkeypatch.setenv("TMS_PROJECT_ID", "7")


def _config(**overrides) -> Config:
    values = dict(
        tms_url="https://tms.example.com",
        username="user",
        password="pass",
        project_id="7",
    )
    values.update(overrides)
    return Config(**values)


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config() -- URL format, source and credential checks."""

    def test_valid_config(self):
        validate_config(_config())  # should not raise

    def test_http_url_valid(self):
        validate_config(_config(tms_url="http://localhost:8080"))

    def test_invalid_url_no_scheme(self):
        with pytest.raises(ValueError, match="must start with http:// or https://"):
            validate_config(_config(tms_url="example.com"))

    def test_empty_host_url(self):
        with pytest.raises(ValueError, match="must include a hostname"):
            validate_config(_config(tms_url="https://"))

    def test_trailing_slash_and_whitespace_stripped(self):
        config = _config(tms_url="  https://tms.example.com/  ")
        validate_config(config)
        assert config.tms_url == "https://tms.example.com"

    def test_source_normalised(self):
        config = _config(source=" Jira ")
        validate_config(config)
        assert config.source == "jira"

    def test_unknown_source(self):
        with pytest.raises(ValueError, match="Unsupported TMS source 'qtest'"):
            validate_config(_config(source="qtest"))

    def test_empty_username(self):
        with pytest.raises(ValueError, match="username cannot be empty"):
            validate_config(_config(username="  "))

    def test_azure_allows_empty_username(self):
        validate_config(_config(username="", source="azure"))

    def test_empty_password(self):
        with pytest.raises(ValueError, match="password cannot be empty"):
            validate_config(_config(password="   "))

    def test_empty_project_id(self):
        with pytest.raises(ValueError, match="project id cannot be empty"):
            validate_config(_config(project_id=""))

    def test_non_positive_timeout(self):
        with pytest.raises(ValueError, match="Invalid timeout"):
            validate_config(_config(timeout=0))

    def test_insecure_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tms_sync.config"):
            validate_config(_config(insecure=True))
        assert "SSL verification disabled" in caplog.text

    def test_secure_no_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tms_sync.config"):
            validate_config(_config())
        assert "SSL verification disabled" not in caplog.text


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() -- env var loading, CLI overrides, fallbacks."""

    def test_load_from_env_vars(self, base_env):
        config = load_config()
        assert config.tms_url == "https://tms.example.com"
        assert config.username == "user"
        assert config.password == "pass"
        assert config.project_id == "7"
        assert config.source == "testrail"
        assert config.timeout == 60.0

    def test_cli_args_override_env(self, base_env):
        config = load_config(
            url="https://cli.example.com",
            username="cli-user",
            password="cli-pass",
            project_id="9",
            source="jira",
        )
        assert config.tms_url == "https://cli.example.com"
        assert config.username == "cli-user"
        assert config.project_id == "9"
        assert config.source == "jira"

    def test_yaml_fallbacks_used_when_env_unset(self):
        config = load_config(
            yaml_fallbacks={
                "url": "https://yaml.example.com",
                "username": "yaml-user",
                "password": "yaml-pass",
                "project_id": "3",
                "source": "azure",
                "timeout": 30,
                "suite_issue_type": "Epic",
                "case_issue_type": "Task",
            }
        )
        assert config.tms_url == "https://yaml.example.com"
        assert config.source == "azure"
        assert config.timeout == 30.0
        assert config.suite_issue_type == "Epic"
        assert config.case_issue_type == "Task"

    def test_env_beats_yaml(self, base_env):
        config = load_config(yaml_fallbacks={"url": "https://yaml.example.com"})
        assert config.tms_url == "https://tms.example.com"

    def test_missing_url_raises(self):
        with pytest.raises(ValueError, match="TMS URL not found"):
            load_config()

    def test_missing_password_raises(self, monkeypatch):
        monkeypatch.setenv("TMS_URL", "https://tms.example.com")
        with pytest.raises(ValueError, match="TMS password not found"):
            load_config()

    def test_missing_project_id_raises(self, monkeypatch):
        monkeypatch.setenv("TMS_URL", "https://tms.example.com")
        monkeypatch.setenv("TMS_PASSWORD", "pass")
        with pytest.raises(ValueError, match="TMS project id not found"):
            load_config()

    @pytest.mark.parametrize("value", ["true", "1", "yes", "on", "TRUE"])
    def test_insecure_truthy_values(self, base_env, monkeypatch, value):
        monkeypatch.setenv("TMS_INSECURE", value)
        assert load_config().insecure is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "off", "random"])
    def test_insecure_falsy_values(self, base_env, monkeypatch, value):
        monkeypatch.setenv("TMS_INSECURE", value)
        assert load_config().insecure is False

    def test_insecure_env_beats_yaml(self, base_env, monkeypatch):
        monkeypatch.setenv("TMS_INSECURE", "false")
        assert load_config(yaml_fallbacks={"insecure": True}).insecure is False

    def test_debug_from_env(self, base_env, monkeypatch):
        monkeypatch.setenv("TMS_DEBUG", "true")
        assert load_config().debug is True

    def test_timeout_from_env(self, base_env, monkeypatch):
        monkeypatch.setenv("TMS_TIMEOUT", "15.5")
        assert load_config().timeout == 15.5

    def test_timeout_non_numeric(self, base_env, monkeypatch):
        monkeypatch.setenv("TMS_TIMEOUT", "abc")
        with pytest.raises(ValueError, match="Invalid TMS_TIMEOUT 'abc'"):
            load_config()
