"""Append-only error journal (JSONL) for post-mortem analysis.

The journal is separate from the human-readable session log and is never
level-filtered: a failure is recorded even when the log is set to FATAL.
One compact JSON object per line::

    {"timestamp": "...", "plugin": "nextjs-16", "hook": "PostToolUse",
     "level": "ERROR", "code": "HOOK_FAILED", "message": "...",
     "context": {...}, "stack": [...]}
"""

from __future__ import annotations

import json
import logging
import traceback
from pathlib import Path
from typing import Any

from marketplace_utils.core.errors import LockTimeoutError
from marketplace_utils.core.locking import LockProvider, NullLockProvider
from marketplace_utils.core.logging import HookLevel, SessionLogger, parse_level
from marketplace_utils.core.utils import utc_timestamp

logger = logging.getLogger(__name__)

MAX_STACK_FRAMES = 20


def _stack_frames(exc: BaseException | None) -> list[str]:
    """Summarize a traceback as ``file:line in function`` strings."""
    if exc is not None and exc.__traceback__ is not None:
        frames = traceback.extract_tb(exc.__traceback__)
    else:
        # Caller's stack, minus the journal's own frames
        frames = traceback.extract_stack()[:-3]
    summary = [f"{Path(f.filename).name}:{f.lineno} in {f.name}" for f in frames]
    return summary[-MAX_STACK_FRAMES:]


def _json_safe(value: Any) -> Any:
    """Round-trip through JSON, stringifying anything unserializable."""
    try:
        return json.loads(json.dumps(value, default=str))
    except (TypeError, ValueError):
        return {"repr": repr(value)}


class ErrorJournal:
    """Structured failure record shared by all hooks of a session.

    Writes share the logger's locking discipline but target their own file.
    Journal I/O failures are swallowed: recording a failure must never turn
    into a second one on the response path.
    """

    def __init__(
        self,
        path: str | Path,
        plugin: str = "",
        hook: str = "",
        lock_provider: LockProvider | None = None,
        session_logger: SessionLogger | None = None,
    ) -> None:
        """Initialize the journal.

        Args:
            path: Journal file (JSONL).
            plugin: Plugin name stamped on every record.
            hook: Hook/event name stamped on every record.
            lock_provider: Provider serializing appends across processes.
            session_logger: If given, each record is mirrored to the log.
        """
        self.path = Path(path)
        self.plugin = plugin
        self.hook = hook
        self.lock_provider = lock_provider or NullLockProvider()
        self.session_logger = session_logger

    def record(
        self,
        context: dict[str, Any] | None,
        error_kind: str,
        detail: str,
        level: str | HookLevel = HookLevel.ERROR,
        exc: BaseException | None = None,
    ) -> dict[str, Any]:
        """Append one self-contained failure record.

        Args:
            context: Structured data about the failure (file path, tool...).
            error_kind: Machine-readable code, e.g. ``HOOK_FAILED``.
            detail: Human-readable description.
            level: Severity label stored in the record.
            exc: Exception whose traceback becomes the ``stack`` field.

        Returns:
            The record as written.
        """
        resolved = parse_level(level)
        entry: dict[str, Any] = {
            "timestamp": utc_timestamp(),
            "plugin": self.plugin,
            "hook": self.hook,
            "level": resolved.name,
            "code": error_kind,
            "message": detail,
            "context": _json_safe(context or {}),
            "stack": _stack_frames(exc),
        }
        line = json.dumps(entry, ensure_ascii=False, separators=(",", ":")) + "\n"

        try:
            try:
                with self.lock_provider.lock(self.path):
                    self._append(line)
            except LockTimeoutError:
                self._append(line)
        except OSError as e:
            logger.debug(f"Error journal write failed for {self.path}: {e}")

        if self.session_logger is not None:
            self.session_logger.log(resolved, f"[{error_kind}] {detail}")
        return entry

    def _append(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)

    def report_error(self, code: str, message: str, context: dict[str, Any] | None = None) -> None:
        self.record(context, code, message, level=HookLevel.ERROR)

    def report_warning(self, code: str, message: str, context: dict[str, Any] | None = None) -> None:
        self.record(context, code, message, level=HookLevel.WARN)

    def report_fatal(self, code: str, message: str, context: dict[str, Any] | None = None) -> None:
        self.record(context, code, message, level=HookLevel.FATAL)

    def report_exception(
        self,
        exc: BaseException,
        code: str = "HOOK_FAILED",
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Record an exception with its traceback."""
        detail = f"{type(exc).__name__}: {exc}"
        return self.record(context, code, detail, level=HookLevel.ERROR, exc=exc)

    def read_entries(self) -> list[dict[str, Any]]:
        """Return all parseable records (skips torn or corrupt lines)."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError:
            return []
        entries = []
        for line in raw.splitlines():
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(entry, dict):
                entries.append(entry)
        return entries
