"""
LUNES AUTOLOGIN - Unit Tests for Platform Detection & Chrome Launch Arguments

Tests for:
- platform_settings(): Cross-platform OS detection, paths, headless mode
- chrome_launch_args(): Chrome remote-debugging command line
"""

import os
import pytest
from unittest.mock import patch


# ---------------------------------------------------------------------------
# platform_settings() Tests
# ---------------------------------------------------------------------------

class TestPlatformSettings:
    """Tests for platform_settings() - cross-platform OS detection."""

    def test_returns_required_keys(self):
        """Return dict must contain all required keys."""
        from lunes.platform_config import platform_settings
        settings = platform_settings()

        required = {"system", "headless", "chrome_path", "debug_port",
                    "profile_dir", "debug_dir", "display_required"}
        assert required == set(settings.keys()), (
            f"Missing keys: {required - set(settings.keys())}"
        )

    def test_default_port(self):
        from lunes.platform_config import platform_settings, DEFAULT_DEBUG_PORT

        assert platform_settings()["debug_port"] == DEFAULT_DEBUG_PORT == 9222

    # --- Linux ---

    @patch("lunes.platform_config.platform.system", return_value="Linux")
    def test_linux_defaults(self, mock_system, monkeypatch):
        """Linux: google-chrome binary, /tmp profile, display needed."""
        monkeypatch.delenv("PROFILE_DIR", raising=False)
        monkeypatch.delenv("DEBUG_DIR", raising=False)

        with patch("lunes.platform_config.os.makedirs"):
            from lunes.platform_config import platform_settings
            settings = platform_settings()

        assert settings["chrome_path"] == "/usr/bin/google-chrome"
        assert settings["profile_dir"] == "/tmp/chrome_user_data"
        assert "lunes-autologin/debug" in settings["debug_dir"]
        assert settings["display_required"] is True
        assert settings["headless"] is False

    @patch("lunes.platform_config.platform.system", return_value="Linux")
    def test_linux_headless_no_display(self, mock_system, monkeypatch):
        """HEADLESS=true on Linux must drop the display requirement."""
        monkeypatch.setenv("HEADLESS", "true")

        from lunes.platform_config import platform_settings
        settings = platform_settings()

        assert settings["headless"] is True
        assert settings["display_required"] is False

    # --- macOS (Darwin) ---

    @patch("lunes.platform_config.platform.system", return_value="Darwin")
    def test_macos_defaults(self, mock_system, monkeypatch):
        monkeypatch.delenv("PROFILE_DIR", raising=False)

        with patch("lunes.platform_config.os.makedirs"):
            from lunes.platform_config import platform_settings
            settings = platform_settings()

        assert settings["chrome_path"].endswith("Google Chrome.app/Contents/MacOS/Google Chrome")
        assert "Library/Application Support/lunes-autologin" in settings["profile_dir"]
        assert settings["display_required"] is False

    # --- Windows ---

    @patch("lunes.platform_config.platform.system", return_value="Windows")
    def test_windows_appdata_profile(self, mock_system, tmp_path, monkeypatch):
        """Windows uses APPDATA-based profile directory."""
        monkeypatch.delenv("PROFILE_DIR", raising=False)
        monkeypatch.setenv("APPDATA", str(tmp_path / "AppData" / "Roaming"))

        with patch("lunes.platform_config.os.makedirs"):
            from lunes.platform_config import platform_settings
            settings = platform_settings()

        assert settings["chrome_path"].endswith("chrome.exe")
        assert "lunes-autologin" in settings["profile_dir"]
        assert settings["profile_dir"].startswith(str(tmp_path))

    # --- .env Overrides ---

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CHROME_PATH", "/opt/chrome/chrome")
        monkeypatch.setenv("CHROME_DEBUG_PORT", "9333")
        monkeypatch.setenv("PROFILE_DIR", str(tmp_path / "custom-profile"))

        from lunes.platform_config import platform_settings
        settings = platform_settings()

        assert settings["chrome_path"] == "/opt/chrome/chrome"
        assert settings["debug_port"] == 9333
        assert settings["profile_dir"] == str(tmp_path / "custom-profile")

    def test_invalid_port_raises(self, monkeypatch):
        monkeypatch.setenv("CHROME_DEBUG_PORT", "ninety")

        from lunes.platform_config import platform_settings
        with pytest.raises(ValueError, match="CHROME_DEBUG_PORT"):
            platform_settings()

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("YES", True), ("1", True),
        ("false", False), ("no", False), ("0", False),
        ("maybe", False),
    ])
    def test_headless_values(self, monkeypatch, value, expected):
        monkeypatch.setenv("HEADLESS", value)

        from lunes.platform_config import platform_settings
        assert platform_settings()["headless"] is expected

    def test_directories_created(self, tmp_path, monkeypatch):
        """platform_settings() must create profile and debug directories."""
        profile = str(tmp_path / "new-profile")
        debug = str(tmp_path / "new-debug")
        monkeypatch.setenv("PROFILE_DIR", profile)
        monkeypatch.setenv("DEBUG_DIR", debug)

        from lunes.platform_config import platform_settings
        platform_settings()

        assert os.path.isdir(profile), "profile_dir must be created"
        assert os.path.isdir(debug), "debug_dir must be created"


# ---------------------------------------------------------------------------
# chrome_launch_args() Tests
# ---------------------------------------------------------------------------

class TestChromeLaunchArgs:
    """Tests for chrome_launch_args() - remote-debugging command line."""

    def _settings(self, tmp_path, **overrides):
        settings = {
            "chrome_path": "/usr/bin/google-chrome",
            "debug_port": 9222,
            "profile_dir": str(tmp_path / "profile"),
            "headless": False,
        }
        settings.update(overrides)
        return settings

    def test_executable_first(self, tmp_path):
        from lunes.platform_config import chrome_launch_args

        args = chrome_launch_args(self._settings(tmp_path))
        assert args[0] == "/usr/bin/google-chrome"

    def test_debugging_and_profile_flags(self, tmp_path):
        from lunes.platform_config import chrome_launch_args

        args = chrome_launch_args(self._settings(tmp_path, debug_port=9333))

        assert "--remote-debugging-port=9333" in args
        assert f"--user-data-dir={tmp_path / 'profile'}" in args
        assert "--window-size=1280,720" in args
        assert "--headless=new" not in args

    def test_headless_flag(self, tmp_path):
        from lunes.platform_config import chrome_launch_args

        args = chrome_launch_args(self._settings(tmp_path, headless=True))
        assert "--headless=new" in args

    def test_proxy_server_without_credentials(self, tmp_path):
        from lunes.platform_config import chrome_launch_args

        proxy = {"server": "http://10.0.0.1:3128", "username": "u", "password": "p"}
        args = chrome_launch_args(self._settings(tmp_path), proxy)

        assert "--proxy-server=http://10.0.0.1:3128" in args
        assert "--proxy-bypass-list=<-loopback>" in args
        assert not any("u:p" in a for a in args)
