"""Settings and logging configuration tests."""

import logging

import pytest

from MPD_MCP.config import DEFAULT_HOST, DEFAULT_PORT, Settings, configure_logging


class TestSettingsFromEnv:

    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.host == DEFAULT_HOST
        assert settings.port == DEFAULT_PORT
        assert settings.timeout is None
        assert settings.log_level == "INFO"

    def test_overrides(self):
        settings = Settings.from_env({
            "MPD_HOST": "music.local",
            "MPD_PORT": "6601",
            "MPD_TIMEOUT": "2.5",
            "LOG_LEVEL": "DEBUG",
        })
        assert settings == Settings(host="music.local", port=6601, timeout=2.5, log_level="DEBUG")

    def test_empty_host_uses_default(self):
        assert Settings.from_env({"MPD_HOST": ""}).host == DEFAULT_HOST

    def test_blank_timeout_means_none(self):
        assert Settings.from_env({"MPD_TIMEOUT": "  "}).timeout is None

    @pytest.mark.parametrize("env,variable", [
        ({"MPD_PORT": "six"}, "MPD_PORT"),
        ({"MPD_TIMEOUT": "soon"}, "MPD_TIMEOUT"),
    ])
    def test_invalid_number(self, env, variable):
        with pytest.raises(ValueError, match=variable):
            Settings.from_env(env)

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("MPD_PORT", "7700")
        assert Settings.from_env().port == 7700


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest set it up."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:

    def test_known_level(self, restore_root_logger):
        assert configure_logging("debug") == logging.DEBUG
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back(self, restore_root_logger):
        records = []
        handler = logging.Handler()
        handler.emit = records.append
        config_logger = logging.getLogger("MPD_MCP.config")
        config_logger.addHandler(handler)
        try:
            assert configure_logging("LOUD") == logging.INFO
        finally:
            config_logger.removeHandler(handler)
        assert [r.getMessage() for r in records] == ["Invalid log level 'LOUD'; using INFO"]
