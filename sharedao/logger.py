"""
ShareDAO logging.

Every module obtains its logger through ``get_logger(__name__)``. The first
call wires the root logger once: a rich console handler (or a plain stream
handler when highlighting is off) and, optionally, a size-rotated log file.
``configure_logging`` replaces that wiring after config.toml has been read.

    >>> from sharedao.logger import get_logger
    >>> get_logger(__name__).info("Deposit: 0x... +100 shares")
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
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


DEFAULT_LOG_FILE = Path(__file__).parent.parent / "logs" / "sharedao.log"

# One strftime directive, a literal %%, or a separator character
_DATE_TOKEN_RE = re.compile(r"%%|%[EO]?[-_0^#]*[A-Za-z]|[0-9 \t:/.,TZ+-]")

_GOVERNANCE_THEME = {
    "sharedao.address":          "cyan",
    "sharedao.amount":           "bold white",
    "sharedao.arrow":            "bold yellow",
    "sharedao.key":              "magenta",
    "sharedao.level_critical":   "bold red reverse",
    "sharedao.level_debug":      "bold dim",
    "sharedao.level_error":      "bold red",
    "sharedao.level_info":       "bold green",
    "sharedao.level_warning":    "bold yellow",
    "sharedao.logger_name":      "magenta",
    "sharedao.status_approved":  "bold green",
    "sharedao.status_rejected":  "bold red",
    "sharedao.status_undecided": "bold dim",
    "sharedao.tag":              "bold magenta",
    "sharedao.timestamp":        "bold cyan",
}


def _fallback(kind: str, value: object, reason: object, default: str) -> str:
    # Logging is not wired yet when formats are checked, so report on stderr
    print(
        f"sharedao.logger: ignoring {kind} {value!r} ({reason}); using {default!r}",
        file=sys.stderr,
    )
    return default


class LogManager:
    """
    Process-wide owner of the root logger's handlers.

    LogManager() always returns the same instance; creation and
    (re)configuration are serialised on a class-level lock so that handlers
    are never attached twice.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> "LogManager":
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

    # ── Format checks ─────────────────────────────────────────────────

    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """
        Return *log_format* if it renders a sample record, else the default.

        Unknown record attributes such as ``%(nope)s`` fail here rather than
        on the first real log call.
        """
        default = str(LOG_FORMAT.default())
        if not log_format:
            return default
        log_format = str(log_format)
        sample = logging.LogRecord(
            name="sharedao", level=logging.INFO, pathname="", lineno=0,
            msg="sample", args=(), exc_info=None,
        )
        try:
            logging.Formatter(fmt=log_format, validate=True).format(sample)
        except (ValueError, KeyError, TypeError) as e:
            return _fallback("log format", log_format, e, default)
        return log_format

    @staticmethod
    def validate_date_format(date_format: str) -> str:
        """Accept strftime directives and plain separators only."""
        default = str(LOG_DATE_FORMAT.default())
        if not date_format:
            return default
        date_format = str(date_format)
        tokens = _DATE_TOKEN_RE.findall(date_format)
        has_directive = any(t.startswith("%") and t != "%%" for t in tokens)
        if "".join(tokens) != date_format or not has_directive:
            return _fallback("date format", date_format, "unsupported characters", default)
        return date_format

    # ── Handlers ──────────────────────────────────────────────────────

    @staticmethod
    def _console_handler(level: int, formatter: logging.Formatter) -> logging.Handler:
        if LOG_CONSOLE_HIGHLIGHTING:
            handler: logging.Handler = RichHandler(
                console=Console(theme=Theme(_GOVERNANCE_THEME), highlight=False),
                highlighter=ShareDAOLogHighlighter(),
                keywords=[],
                rich_tracebacks=True,
                omit_repeated_times=False,
                show_path=False,
                show_time=False,
                show_level=False,
                markup=False,
            )
        else:
            handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        return handler

    @staticmethod
    def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        return handler

    # ── Configuration ─────────────────────────────────────────────────

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Attach handlers to the root logger. A no-op once configured.

        Args:
            log_level: Level name; falls back to LOG_LEVEL from the environment.
            log_file: Rotating log path; defaults to ``logs/sharedao.log``.
            console_output: Log to the terminal.
            file_output: Log to *log_file*; None defers to LOG_FILE_OUTPUT.
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            root = logging.getLogger()
            root.setLevel(level)
            root.handlers.clear()

            # Timestamps are rendered in UTC
            formatter = TerminalSafeFormatter(
                fmt=self.validate_log_format(LOG_FORMAT),
                datefmt=self.validate_date_format(LOG_DATE_FORMAT) + " UTC",
            )
            formatter.converter = time.gmtime

            if console_output:
                root.addHandler(self._console_handler(level, formatter))

            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)
            if file_output:
                root.addHandler(self._file_handler(log_file or DEFAULT_LOG_FILE, level, formatter))

            self._configured = True

    def reconfigure(self, **kwargs) -> None:
        """Forget the current wiring and configure again with *kwargs*."""
        with self._lock:
            self._configured = False
        self.configure(**kwargs)

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    @property
    def is_configured(self) -> bool:
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that strips escape sequences and control characters.

    Principals and proposal keys come from callers, so a crafted value could
    otherwise recolour the terminal or forge extra log lines (CWE-117).
    """

    # CSI sequences such as colours and cursor moves, then lone two-byte escapes
    _ansi_re = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    # C0 controls and DEL, keeping tab and newline
    _control_re = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._control_re.sub("", cls._ansi_re.sub("", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class ShareDAOLogHighlighter(RegexHighlighter):
    """Colours principals, keys, share amounts and proposal outcomes."""

    base_style = "sharedao."
    highlights = [
        r"(?P<arrow>(\-\->)|(<\-\-)|(→))",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<key>\bkey=[0-9a-f]{8,}\b)",
        r"(?P<amount>\b\d+ shares\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<status_approved>\bAPPROVED\b)",
        r"(?P<status_rejected>\bREJECTED\b)",
        r"(?P<status_undecided>\bUNDECIDED\b)",
        r"(?P<tag>\[.*?\])",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, wiring the root logger on first use."""
    return _manager.get_logger(name)


def configure_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    file_output: Optional[bool] = None,
) -> None:
    """Rewire logging from loaded settings, e.g. the [logging] section."""
    _manager.reconfigure(
        log_level=log_level,
        log_file=log_file,
        file_output=file_output,
    )


_manager.configure()
