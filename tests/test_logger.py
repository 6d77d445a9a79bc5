"""
Test suite for the logging layer.
"""

import logging

import pytest

from adaptive_cpamm import constants
from adaptive_cpamm.logger import LogManager, TerminalSafeFormatter, get_logger


class TestTerminalSafeFormatter:

    def test_strips_ansi(self):
        assert TerminalSafeFormatter.sanitize("\x1b[31mtoken0\x1b[0m") == "token0"

    def test_strips_control_chars(self):
        assert TerminalSafeFormatter.sanitize("al\x07ice\rbob\x00") == "alicebob"

    def test_keeps_tab_and_newline(self):
        assert TerminalSafeFormatter.sanitize("a\tb\nc") == "a\tb\nc"

    def test_format_sanitizes_record(self):
        fmt = TerminalSafeFormatter(fmt="%(message)s")
        record = logging.LogRecord(
            name="t", level=logging.INFO, pathname="", lineno=0,
            msg="swap by %s", args=("\x1b[2Jmallory",), exc_info=None,
        )
        assert fmt.format(record) == "swap by mallory"


class TestLogManager:

    def test_singleton(self):
        assert LogManager() is LogManager()

    def test_invalid_formats_fall_back(self):
        assert LogManager.validate_log_format("%(nope)s") != "%(nope)s"
        assert LogManager.validate_date_format("not a date") != "not a date"

    def test_valid_formats_kept(self):
        assert LogManager.validate_log_format("%(levelname)s %(message)s") == "%(levelname)s %(message)s"
        assert LogManager.validate_date_format("%Y-%m-%d") == "%Y-%m-%d"

    def test_get_logger_configures(self):
        log = get_logger("adaptive_cpamm.tests")
        assert log.name == "adaptive_cpamm.tests"
        assert LogManager().is_configured


class TestEnvFlags:

    @pytest.mark.parametrize("raw,expected", [
        (" TRUE ", True),
        ("false", False),
        ("yes", True),
        (None, True),
    ])
    def test_flag_parsing(self, monkeypatch, raw, expected):
        monkeypatch.setattr(constants, "_config", {"LOG_CONSOLE_HIGHLIGHTING": raw})
        assert constants._env_flag("LOG_CONSOLE_HIGHLIGHTING", True) is expected

    def test_unset_flag_keeps_default(self, monkeypatch):
        monkeypatch.setattr(constants, "_config", {})
        assert constants._env_flag("LOG_FILE_OUTPUT", False) is False
