"""Tests for configuration loading."""

import logging
from pathlib import Path

import pytest

from bom_engine.utils.config import (
    ENV_VAR_DATABASE_URL,
    ENV_VAR_ECHO_SQL,
    ENV_VAR_ENVIRONMENT,
    ENV_VAR_MAX_DEPTH,
    Config,
    get_config,
)
from bom_engine.utils.constants import DEFAULT_CYCLE_CHECK_MAX_DEPTH


@pytest.fixture
def bare_env(monkeypatch, clean_config):
    for name in (ENV_VAR_DATABASE_URL, ENV_VAR_ECHO_SQL, ENV_VAR_ENVIRONMENT, ENV_VAR_MAX_DEPTH):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfig:
    """Tests for the Config object."""

    def test_unknown_environment_rejected(self, bare_env):
        with pytest.raises(ValueError, match="staging"):
            Config("staging")

    def test_test_environment_defaults_to_memory(self, bare_env):
        config = Config("test")

        assert config.database_url == "sqlite:///:memory:"
        assert not config.is_production

    def test_production_uses_home_directory_file(self, bare_env):
        config = Config("production")

        assert config.is_production
        assert config.database_url.startswith("sqlite:///")
        assert config.database_url.endswith(config.database_path.name)
        assert ".bom_engine" in config.database_url

    def test_development_data_directory_is_at_repo_root(self, bare_env):
        repo_root = Path(__file__).resolve().parents[1]

        assert Config("development").database_path.parent == repo_root / "data"

    def test_database_url_override(self, bare_env):
        bare_env.setenv(ENV_VAR_DATABASE_URL, "sqlite:////tmp/boms.db")

        assert Config("development").database_url == "sqlite:////tmp/boms.db"

    def test_cycle_depth_default(self, bare_env):
        assert Config("test").cycle_check_max_depth == DEFAULT_CYCLE_CHECK_MAX_DEPTH == 50

    def test_cycle_depth_override(self, bare_env):
        bare_env.setenv(ENV_VAR_MAX_DEPTH, "12")

        assert Config("test").cycle_check_max_depth == 12

    @pytest.mark.parametrize("raw", ["deep", "0", "-3"])
    def test_invalid_cycle_depth_falls_back(self, bare_env, caplog, raw):
        bare_env.setenv(ENV_VAR_MAX_DEPTH, raw)

        with caplog.at_level(logging.WARNING, logger="bom_engine.utils.config"):
            assert Config("test").cycle_check_max_depth == DEFAULT_CYCLE_CHECK_MAX_DEPTH

        assert ENV_VAR_MAX_DEPTH in caplog.text

    def test_echo_sql(self, bare_env):
        assert not Config("test").echo_sql

        bare_env.setenv(ENV_VAR_ECHO_SQL, "true")

        assert Config("test").echo_sql


class TestGetConfig:
    """Tests for the configuration singleton."""

    def test_environment_from_variable(self, bare_env):
        bare_env.setenv(ENV_VAR_ENVIRONMENT, "test")

        assert get_config().environment == "test"

    def test_singleton_keeps_first_environment(self, bare_env, caplog):
        first = get_config("test")

        with caplog.at_level(logging.WARNING, logger="bom_engine.utils.config"):
            second = get_config("production")

        assert second is first
        assert second.environment == "test"
        assert "singleton already exists" in caplog.text
