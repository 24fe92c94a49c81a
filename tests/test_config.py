"""Tests for AutoWebkit configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from autowebkit.config import AutoWebkitConfig, AutoWebkitConfigError


class TestAutoWebkitConfig:
    def test_defaults(self):
        config = AutoWebkitConfig()
        assert config.browser == "chromium"
        assert config.headless is True
        assert config.viewport == (1280, 720)
        assert config.timeout == 120
        assert config.pump_interval_ms == 50
        assert config.environment == {}

    def test_from_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "browser: WebKit\n"
            "headless: false\n"
            "timeout: 30\n"
            "pump_interval_ms: 20\n"
            "viewport: {width: 800, height: 600}\n"
            "environment:\n"
            "  user: alice\n"
            "  pin: 1234\n"
        )
        config = AutoWebkitConfig.from_file(path)
        assert config.browser == "webkit"
        assert config.headless is False
        assert config.timeout == 30.0
        assert config.pump_interval_ms == 20
        assert config.viewport == (800, 600)
        assert config.environment == {"user": "alice", "pin": "1234"}
        assert config.project_dir == tmp_path
        assert config.scripts_dir == tmp_path / "scripts"

    def test_custom_scripts_dir(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("scripts_dir: flows\n")
        assert AutoWebkitConfig.from_file(path).scripts_dir == tmp_path / "flows"

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert AutoWebkitConfig.from_file(path).browser == "chromium"

    def test_missing_file(self, tmp_path):
        with pytest.raises(AutoWebkitConfigError, match="Config file not found"):
            AutoWebkitConfig.from_file(tmp_path / "missing.yaml")

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- chromium\n")
        with pytest.raises(AutoWebkitConfigError, match="must be a YAML mapping"):
            AutoWebkitConfig.from_file(path)

    def test_bad_environment(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("environment: [a, b]\n")
        with pytest.raises(AutoWebkitConfigError, match="'environment' must be a mapping"):
            AutoWebkitConfig.from_file(path)


class TestValidate:
    def test_unsupported_browser(self):
        with pytest.raises(AutoWebkitConfigError, match="Unsupported browser: netscape"):
            AutoWebkitConfig(browser="netscape").validate()

    @pytest.mark.parametrize("timeout", [0, -5])
    def test_timeout_must_be_positive(self, timeout):
        with pytest.raises(AutoWebkitConfigError, match="timeout must be positive"):
            AutoWebkitConfig(timeout=timeout).validate()

    def test_pump_interval_must_be_positive(self):
        with pytest.raises(AutoWebkitConfigError, match="pump_interval_ms"):
            AutoWebkitConfig(pump_interval_ms=0).validate()

    def test_valid_config_passes(self):
        AutoWebkitConfig(browser="firefox", project_dir=Path("x")).validate()
