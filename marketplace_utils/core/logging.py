"""Session-scoped structured logging for hook scripts.

Every hook invocation of a session appends to one shared log file.  Lines
look like::

    [2025-01-15T10:30:00Z] [nextjs-16] [WARN] [PostToolUse] Middleware file detected

Features:
    - Level filtering before any I/O (``CLAUDE_DEBUG_LEVEL``, default WARN)
    - Sensitive data masking (API keys, passwords)
    - Appends serialized across processes through the advisory lock
    - A closed or vanished log target ends the write attempt quietly
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import IO

from marketplace_utils.core.errors import LockTimeoutError
from marketplace_utils.core.locking import LockProvider, NullLockProvider
from marketplace_utils.core.utils import utc_timestamp

logger = logging.getLogger(__name__)

# Patterns to mask in logs
SENSITIVE_PATTERNS = [
    (re.compile(r'api[_-]?key["\']?\s*[:=]\s*["\']?[\w-]+', re.I), "api_key=***MASKED***"),
    (re.compile(r"sk-[a-zA-Z0-9]{20,}"), "***API_KEY***"),
    (re.compile(r'password["\']?\s*[:=]\s*["\']?[^\s"\']+', re.I), "password=***MASKED***"),
]


class HookLevel(IntEnum):
    """Log severities, mapped onto :mod:`logging` numeric levels."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARN = logging.WARNING
    ERROR = logging.ERROR
    FATAL = logging.CRITICAL


_LEVEL_ALIASES: dict[str, HookLevel] = {
    "WARNING": HookLevel.WARN,
    "CRITICAL": HookLevel.FATAL,
}


def parse_level(name: str | int | HookLevel) -> HookLevel:
    """Resolve a level name to a :class:`HookLevel`.

    Unknown names never raise: they resolve to DEBUG (lowest severity) and a
    diagnostic is written to stderr.
    """
    if isinstance(name, HookLevel):
        return name
    if isinstance(name, int):
        try:
            return HookLevel(name)
        except ValueError:
            pass
    else:
        key = str(name).strip().upper()
        if key in HookLevel.__members__:
            return HookLevel[key]
        if key in _LEVEL_ALIASES:
            return _LEVEL_ALIASES[key]
    logger.warning("Unknown log level %r, falling back to DEBUG", name)
    return HookLevel.DEBUG


def level_name(levelno: int) -> str:
    """Return the hook level name for a :mod:`logging` level number."""
    for level in reversed(HookLevel):
        if levelno >= level:
            return level.name
    return HookLevel.DEBUG.name


def mask_sensitive(text: str) -> str:
    for pattern, replacement in SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class HookLogFormatter(logging.Formatter):
    """Formatter producing one masked, single-line entry per record."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as ``[ts] [plugin] [LEVEL] [component] message``.

        Args:
            record: The log record to format.  ``plugin`` and ``component``
                are read from record attributes set via ``extra``.

        Returns:
            The formatted line, without a trailing newline.
        """
        timestamp = utc_timestamp(datetime.fromtimestamp(record.created, tz=timezone.utc))
        plugin = getattr(record, "plugin", "unknown")
        component = getattr(record, "component", "unknown")
        message = record.getMessage()
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            message = f"{message} ({type(exc).__name__}: {exc})"

        # One entry per line, whatever the message contains
        message = message.replace("\r", "\\r").replace("\n", "\\n")

        line = f"[{timestamp}] [{plugin}] [{level_name(record.levelno)}] [{component}] {message}"
        return mask_sensitive(line)


class LockedFileHandler(logging.FileHandler):
    """Append-only file handler whose writes go through the advisory lock.

    The file is opened lazily (``delay=True``), so a process whose records
    are all filtered out never touches the log target.
    """

    def __init__(
        self,
        filename: str | Path,
        lock_provider: LockProvider | None = None,
        encoding: str = "utf-8",
    ) -> None:
        super().__init__(str(filename), mode="a", encoding=encoding, delay=True)
        self.resource = Path(filename)
        self.lock_provider = lock_provider or NullLockProvider()

    def _open(self) -> IO[str]:
        self.resource.parent.mkdir(parents=True, exist_ok=True)
        return super()._open()

    def _append(self, line: str) -> None:
        if self.stream is None:
            self.stream = self._open()
        self.stream.write(line)
        self.stream.flush()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record) + self.terminator
        except Exception:
            self.handleError(record)
            return

        try:
            try:
                with self.lock_provider.lock(self.resource):
                    self._append(line)
            except LockTimeoutError:
                # Losing the line is worse than an unsynchronized append.
                self._append(line)
        except OSError:
            # Broken pipe, vanished directory, full disk: drop this line and
            # reopen on the next record.
            self._drop_stream()

    def _drop_stream(self) -> None:
        stream, self.stream = self.stream, None
        if stream is not None:
            try:
                stream.close()
            except OSError:
                pass


class SessionLogger:
    """Level-filtered logger writing to the session log.

    Wraps a dedicated :class:`logging.Logger` (no propagation) so records
    only ever reach the session log file.

    Example:
        log = SessionLogger("nextjs-16", "PostToolUse", Path("/tmp/s.log"), level="INFO")
        log.info("Showing recommendation: nextjs_skills")
        log.warn("Middleware file detected", component="middleware")
    """

    def __init__(
        self,
        plugin: str,
        hook: str,
        log_file: str | Path,
        level: str | int | HookLevel = HookLevel.WARN,
        lock_provider: LockProvider | None = None,
    ) -> None:
        """Initialize the session logger.

        Args:
            plugin: Plugin name written on every line.
            hook: Hook/event name, the default component.
            log_file: Shared session log path.
            level: Minimum level; records below it are dropped before I/O.
            lock_provider: Provider serializing appends across processes.
        """
        self.plugin = plugin
        self.hook = hook
        self.log_file = Path(log_file)
        self.level = parse_level(level)

        self._logger = logging.getLogger(f"marketplace_utils.session.{plugin}.{hook}")
        self._logger.propagate = False
        self._logger.setLevel(int(self.level))
        for old in self._logger.handlers[:]:
            self._logger.removeHandler(old)
            old.close()

        self.handler = LockedFileHandler(self.log_file, lock_provider=lock_provider)
        self.handler.setFormatter(HookLogFormatter())
        self._logger.addHandler(self.handler)

    def is_enabled_for(self, level: str | int | HookLevel) -> bool:
        return parse_level(level) >= self.level

    def log(
        self,
        level: str | int | HookLevel,
        message: str,
        component: str | None = None,
        exc_info: BaseException | None = None,
    ) -> None:
        """Append one entry if *level* passes the configured minimum."""
        resolved = parse_level(level)
        if resolved < self.level:
            return
        self._logger.log(
            int(resolved),
            "%s",
            message,
            exc_info=exc_info,
            extra={"plugin": self.plugin, "component": component or self.hook},
        )

    def debug(self, message: str, component: str | None = None) -> None:
        self.log(HookLevel.DEBUG, message, component)

    def info(self, message: str, component: str | None = None) -> None:
        self.log(HookLevel.INFO, message, component)

    def warn(self, message: str, component: str | None = None) -> None:
        self.log(HookLevel.WARN, message, component)

    def error(self, message: str, component: str | None = None) -> None:
        self.log(HookLevel.ERROR, message, component)

    def fatal(self, message: str, component: str | None = None) -> None:
        self.log(HookLevel.FATAL, message, component)

    def close(self) -> None:
        self._logger.removeHandler(self.handler)
        self.handler.close()
