"""Tests for Config precedence and validation."""

import pytest

import clustermgr.settings as default_settings
from clustermgr.config import Config, NotifyOptions
from clustermgr.errors import ConfigurationError


@pytest.mark.unit
class TestConfig:
    """Test defaults, overrides and validation."""

    def test_defaults_come_from_settings(self, monkeypatch):
        monkeypatch.setattr(default_settings, "WORKERS", 4)
        monkeypatch.setattr(default_settings, "WAIT_BEFORE_SHUTDOWN", 1234)
        config = Config()
        assert config.workers == 4
        assert config.wait_before_shutdown == 1234

    def test_explicit_overrides_win(self, exec_file):
        config = Config(exec=str(exec_file), workers=7, args=["--port", "0"])
        assert config.exec == exec_file
        assert config.workers == 7
        assert config.args == ["--port", "0"]
        assert config.exec_exists()

    def test_none_overrides_are_skipped(self, monkeypatch):
        monkeypatch.setattr(default_settings, "WORKERS", 3)
        assert Config(workers=None).workers == 3

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError):
            Config(threads=4)

    @pytest.mark.parametrize("overrides", [
        {"workers": 0},
        {"workers": "many"},
        {"wait_before_shutdown": -1},
        {"wait_before_force_quit": -5},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigurationError):
            Config(**overrides)

    def test_force_exit_timeout_defaults_from_force_quit(self):
        config = Config(wait_before_force_quit=2000, force_exit_timeout=0)
        assert config.force_exit_timeout == 2000 + default_settings.FORCE_EXIT_MARGIN

    def test_explicit_force_exit_timeout(self):
        assert Config(force_exit_timeout=750).force_exit_timeout == 750

    def test_missing_exec(self, tmp_path):
        assert not Config(exec=tmp_path / "absent.py").exec_exists()

    def test_notify_from_settings(self, monkeypatch):
        monkeypatch.setattr(default_settings, "NOTIFY_FROM", "ops@example.com")
        monkeypatch.setattr(default_settings, "NOTIFY_TO", "oncall@example.com")
        config = Config()
        assert config.notify.sender == "ops@example.com"
        assert config.notify.recipient == "oncall@example.com"

    def test_explicit_notify(self):
        options = NotifyOptions("a@example.com", "b@example.com", "web")
        assert Config(notify=options).notify is options

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            Config().no_such_option


@pytest.mark.unit
class TestEnvironmentDefaults:
    """Test numeric defaults read from the environment."""

    @pytest.fixture
    def reload_settings(self, monkeypatch):
        import importlib

        def _reload(**env):
            for name, value in env.items():
                monkeypatch.setenv(name, value)
            return importlib.reload(default_settings)

        yield _reload
        monkeypatch.undo()
        importlib.reload(default_settings)

    def test_string_defaults_are_converted(self, reload_settings):
        reload_settings(CLUSTER_WORKERS="4", CLUSTER_WAIT_BEFORE_SHUTDOWN="250")
        config = Config()
        assert config.workers == 4
        assert config.wait_before_shutdown == 250

    def test_bad_environment_value_fails_in_config_not_on_import(self, reload_settings):
        settings = reload_settings(CLUSTER_WORKERS="lots")
        assert settings.WORKERS == "lots"

        with pytest.raises(ConfigurationError, match="workers"):
            Config()

    def test_bad_environment_value_does_not_break_help(self, reload_settings, capsys):
        from clustermgr.console import execute_command

        reload_settings(CLUSTER_WAIT_BEFORE_FORCE_QUIT="ten seconds")
        assert execute_command("help", []) == 0
        assert "Available Commands" in capsys.readouterr().out
