"""
Adaptive CPAMM Logging System
=============================

A unified, thread-safe logging utility. This module integrates with the
standard Python `logging` library and the `rich` library to provide
structured, safe, and visually distinct logging outputs for pool activity.

Usage:
    >>> from adaptive_cpamm.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Pool opened")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    DEFAULT_LOG_DATE_FORMAT,
    DEFAULT_LOG_FORMAT,
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "adaptive_cpamm.log"


class LogManager:
    """
    Manages logging configuration via the Singleton pattern.

    Ensures the logging subsystem is initialized exactly once. It handles
    the setup of the 'Rich' console handler and an optional rotating file
    handler.

    Attributes:
        _instance (LogManager): The singleton instance.
        _lock (threading.Lock): Thread lock for atomic initialization.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        """Creates or returns the existing singleton instance."""
        # Double-checked locking for thread-safe singleton initialization
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._configured = False
        self._initialized = True

    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """
        Validates the syntax of a logging format string.

        Formats a dummy record to catch runtime errors.

        Args:
            log_format (str): The logging format string (e.g., "%(asctime)s - %(message)s").

        Returns:
            str: The validated format string, or the default format if validation fails.
        """
        if not log_format:
            return DEFAULT_LOG_FORMAT
        log_format = str(log_format)
        try:
            formatter = logging.Formatter(fmt=log_format)
            record = logging.LogRecord(
                name="test", level=logging.INFO, pathname="", lineno=0,
                msg="test", args=(), exc_info=None,
            )
            formatter.format(record)
        except (ValueError, KeyError, TypeError) as e:
            print(
                f"{time.strftime(DEFAULT_LOG_DATE_FORMAT)} - adaptive_cpamm.logger - "
                f"Validation Error: {e}. Using default.",
                file=sys.stderr,
            )
            return DEFAULT_LOG_FORMAT
        return log_format

    @staticmethod
    def validate_date_format(date_format: str) -> str:
        """
        Validates a date format string against standard strftime directives.

        Args:
            date_format (str): The date format string (e.g., "%Y-%m-%d").

        Returns:
            str: The validated date format string, or default if validation fails.
        """
        if not date_format:
            return DEFAULT_LOG_DATE_FORMAT

        date_format = str(date_format)
        date_format_pattern = re.compile(
            r"^(?:%%|%[A-Za-z]|[0-9 \t:\-\/\.,TZ+])+$"
        )
        if not date_format_pattern.match(date_format) or "%" not in date_format:
            print(
                f"{time.strftime(DEFAULT_LOG_DATE_FORMAT)} - adaptive_cpamm.logger - "
                f"Invalid date format. Using default.",
                file=sys.stderr,
            )
            return DEFAULT_LOG_DATE_FORMAT

        return date_format

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Configures the root logger with console and file handlers.

        Args:
            log_level (Optional[str]): Logging level (DEBUG, INFO, etc.). Defaults to env var.
            log_file (Optional[Path]): Path to log file. Defaults to `logs/adaptive_cpamm.log`.
            console_output (bool): Enable console logging. Defaults to True.
            file_output (Optional[bool]): Enable rotating file logging. Defaults to env var.
        """
        with self._lock:
            if self._configured:
                return

            level_str = log_level or LOG_LEVEL
            numeric_level = getattr(logging, level_str.upper(), logging.INFO)

            root_logger = logging.getLogger()
            root_logger.setLevel(numeric_level)
            root_logger.handlers.clear()

            log_format = self.validate_log_format(LOG_FORMAT)
            date_format = self.validate_date_format(LOG_DATE_FORMAT)

            # UTC for consistency across hosts
            formatter = TerminalSafeFormatter(fmt=log_format, datefmt=date_format + " UTC")
            formatter.converter = time.gmtime

            if console_output:
                if LOG_CONSOLE_HIGHLIGHTING:
                    amm_theme = Theme(
                        {
                            "amm.level_critical": "bold red reverse",
                            "amm.level_debug":    "bold dim",
                            "amm.level_error":    "bold red",
                            "amm.level_info":     "bold green",
                            "amm.level_warning":  "bold yellow",
                            "amm.logger_name":    "magenta",
                            "amm.breaker":        "bold red",
                            "amm.rollback":       "bold yellow",
                            "amm.bps":            "bold cyan",
                            "amm.token":          "cyan",
                            "amm.tag":            "bold magenta",
                            "amm.timestamp":      "bold cyan",
                        }
                    )
                    console = Console(theme=amm_theme, highlight=False, stderr=True)
                    rich_handler = RichHandler(
                        console=console,
                        highlighter=PoolLogHighlighter(),
                        keywords=[],
                        rich_tracebacks=True,
                        omit_repeated_times=False,
                        show_path=False,
                        show_time=False,
                        show_level=False,
                        markup=False,
                    )
                    rich_handler.setLevel(numeric_level)
                    rich_handler.setFormatter(formatter)
                    root_logger.addHandler(rich_handler)
                else:
                    console_handler = logging.StreamHandler(sys.stderr)
                    console_handler.setLevel(numeric_level)
                    console_handler.setFormatter(formatter)
                    root_logger.addHandler(console_handler)

            if file_output is None:
                file_output = LOG_FILE_OUTPUT
            if file_output:
                log_file_path = log_file or LOG_FILE_PATH
                log_file_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.handlers.RotatingFileHandler(
                    filename=str(log_file_path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                file_handler.setLevel(numeric_level)
                file_handler.setFormatter(formatter)
                root_logger.addHandler(file_handler)

            self._configured = True

    def get_logger(self, name: str) -> logging.Logger:
        """
        Retrieves a configured logger instance for a specific module.

        Args:
            name (str): The name of the logger (typically `__name__`).

        Returns:
            logging.Logger: A configured standard Python logger.
        """
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    @property
    def is_configured(self) -> bool:
        """Returns True if the logging system has been configured."""
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    A formatter that strips ANSI escape sequences and non-printable
    control characters, so token symbols or owner ids supplied by callers
    cannot manipulate the terminal (CWE-117).
    """

    _ansi_escape_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"
        r"|\x1b[@-Z\\-_]"
    )
    # Control chars excluding Tab and Newline
    _control_chars_re = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
    _carriage_return_re = re.compile(r"\r")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        text = cls._ansi_escape_re.sub("", text)
        text = cls._carriage_return_re.sub("", text)
        text = cls._control_chars_re.sub("", text)
        return text

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class PoolLogHighlighter(RegexHighlighter):
    """Rich highlighter for pool activity logs."""

    base_style = "amm."
    highlights = [
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<breaker>(?i:circuit breaker)\s+\w+)",
        r"(?P<rollback>(?i:rollback|refund)\w*)",
        r"(?P<bps>\b\d+\s?bps\b)",
        r"(?P<token>\btoken[01]\b)",
        r"(?P<tag>\[.*?\])",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


_manager = LogManager()

def get_logger(name: str) -> logging.Logger:
    """
    Public accessor of the logging system.
    Delegates to the Singleton LogManager, ensuring configuration is applied.
    """
    return _manager.get_logger(name)


def configure_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    file_output: Optional[bool] = None,
) -> None:
    """Explicit configuration entry point for front ends (CLI, notebooks)."""
    _manager.configure(log_level=log_level, log_file=log_file, file_output=file_output)
