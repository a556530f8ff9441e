"""Tests for emu_launcher.utils module."""

from __future__ import annotations

import re
import subprocess
from unittest.mock import patch

import pytest

from emu_launcher import constants
from emu_launcher.utils import (
    deterministic_mac,
    format_command,
    get_env,
    get_env_bool,
    log,
    parse_size_to_bytes,
    run,
    sanitize_name,
    set_verbose,
    short_digest,
    wait_for_path,
)


class TestLog:
    def test_info_level(self, capsys):
        log("INFO", "test message")
        captured = capsys.readouterr()
        assert "[INFO]" in captured.out
        assert "test message" in captured.out

    def test_debug_suppressed_by_default(self, capsys):
        log("DEBUG", "should not appear")
        captured = capsys.readouterr()
        assert captured.out == ""

    def test_debug_shown_when_verbose(self, capsys):
        set_verbose(True)
        log("DEBUG", "visible")
        assert "visible" in capsys.readouterr().out
        assert constants._LOG_VERBOSE is True


class TestGetEnv:
    def test_returns_value(self, monkeypatch):
        monkeypatch.setenv("TEST_VAR", "hello")
        assert get_env("TEST_VAR") == "hello"

    def test_returns_default(self, monkeypatch):
        monkeypatch.delenv("TEST_VAR", raising=False)
        assert get_env("TEST_VAR", "fallback") == "fallback"

    def test_bool(self, monkeypatch):
        monkeypatch.setenv("TEST_FLAG", "Yes")
        assert get_env_bool("TEST_FLAG") is True
        monkeypatch.setenv("TEST_FLAG", "0")
        assert get_env_bool("TEST_FLAG", True) is False


class TestParseSizeToBytes:
    @pytest.mark.parametrize(
        "raw, expected",
        [("4096", 4096), ("200M", 200 * 2**20), ("2G", 2 * 2**30), ("1t", 2**40), ("64k", 64 * 1024)],
    )
    def test_valid(self, raw, expected):
        assert parse_size_to_bytes(raw) == expected

    @pytest.mark.parametrize("raw", ["", "2GB", "-1G", "1.5G", "big"])
    def test_invalid(self, raw):
        with pytest.raises(ValueError, match="invalid size"):
            parse_size_to_bytes(raw)


class TestWaitForPath:
    def test_existing_path(self, tmp_path):
        assert wait_for_path(tmp_path, timeout=0.1) is True

    def test_times_out(self, tmp_path):
        assert wait_for_path(tmp_path / "never", timeout=0.2, interval=0.05) is False


class TestNaming:
    def test_deterministic_mac_format(self):
        mac = deterministic_mac("sys753-q800")
        assert re.match(r"^52:54:00:[0-9a-f]{2}:[0-9a-f]{2}:[0-9a-f]{2}$", mac)
        assert mac == deterministic_mac("sys753-q800")
        assert mac != deterministic_mac("osx-mac99")

    def test_sanitize_name(self):
        assert sanitize_name("Mac OS 9 (G4)!") == "MacOS9G4"
        assert sanitize_name("sys7.5.3_q800-a") == "sys7.5.3_q800-a"

    def test_short_digest(self):
        assert len(short_digest("abc")) == 4
        assert short_digest("abc") == short_digest("abc")

    def test_format_command_quotes(self):
        assert format_command(["qemu", "-drive", "file=/a b.img"]) == "qemu -drive 'file=/a b.img'"


class TestRun:
    def test_logs_and_runs(self):
        with patch("emu_launcher.utils.subprocess.run") as mock_run, patch("emu_launcher.utils.log") as mock_log:
            mock_run.return_value = subprocess.CompletedProcess(["ip"], 0)
            run(["ip", "link", "show"], check=False, capture_output=True)
        mock_run.assert_called_once_with(["ip", "link", "show"], check=False, text=True, capture_output=True)
        mock_log.assert_called_once_with("DEBUG", "Running: ip link show")
