"""Configuration system for marketplace hook scripts.

Every hook invocation is a fresh process, so settings are read from the
environment the host passes down.  Variable names are the ones the plugin
scripts have always exported (``LOG_FILE``, ``CLAUDE_DEBUG_LEVEL``, ...),
hence the explicit aliases instead of a common prefix.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_SESSION_KEY_RE = re.compile(r"^[a-zA-Z0-9_-]{1,128}$")
"""Safe characters for session keys used as filename components."""


class Settings(BaseSettings):
    """Hook runtime configuration."""

    # Session identity
    session_pid: str | None = Field(
        default=None,
        validation_alias="CLAUDE_SESSION_PID",
        description="Session key override (defaults to the host's process id)",
    )
    session_file: Path | None = Field(
        default=None,
        validation_alias="CLAUDE_SESSION_FILE",
        description="Explicit path of the session state file",
    )
    temp_dir: Path | None = Field(
        default=None,
        validation_alias="CLAUDE_HOOKS_TMPDIR",
        description="Directory for session artifacts (defaults to the system temp dir)",
    )

    # Logging
    log_file: Path | None = Field(
        default=None,
        validation_alias="LOG_FILE",
        description="Explicit path of the session log",
    )
    error_journal: Path | None = Field(
        default=None,
        validation_alias="ERROR_JOURNAL",
        description="Explicit path of the error journal (JSONL)",
    )
    log_level: str = Field(
        default="WARN",
        validation_alias="CLAUDE_DEBUG_LEVEL",
        description="Minimum log level (DEBUG, INFO, WARN, ERROR, FATAL)",
    )
    retain_logs: bool = Field(
        default=False,
        validation_alias="CLAUDE_RETAIN_LOGS",
        description="Keep log and journal files after the session ends",
    )

    # Identity of the running hook
    plugin_name: str = Field(
        default="unknown",
        validation_alias="PLUGIN_NAME",
        description="Plugin name used when none is given explicitly",
    )
    hook_name: str = Field(
        default="unknown",
        validation_alias="HOOK_NAME",
        description="Hook/event name used when none is given explicitly",
    )

    # Locking
    lock_timeout: float = Field(
        default=10.0,
        ge=0.0,
        validation_alias="CLAUDE_LOCK_TIMEOUT",
        description="Seconds to wait for an advisory lock before giving up",
    )
    locking_disabled: bool = Field(
        default=False,
        validation_alias="CLAUDE_DISABLE_LOCKING",
        description="Force unsynchronized writes (degraded mode)",
    )

    # Environment
    remote: bool = Field(
        default=False,
        validation_alias="CLAUDE_CODE_REMOTE",
        description="Set by the host when running in a remote/web environment",
    )

    model_config = SettingsConfigDict(
        populate_by_name=True,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    def session_key(self) -> str:
        """Return the key that scopes all per-session artifacts.

        ``CLAUDE_SESSION_PID`` wins when it is a safe filename component;
        otherwise the parent process id (the host) is used.
        """
        if self.session_pid and _SESSION_KEY_RE.match(self.session_pid):
            return self.session_pid
        return str(os.getppid())

    def artifact_dir(self) -> Path:
        return self.temp_dir if self.temp_dir is not None else Path(tempfile.gettempdir())

    def session_file_path(self) -> Path:
        if self.session_file is not None:
            return self.session_file
        return self.artifact_dir() / f"claude-session-{self.session_key()}.json"

    def log_file_path(self) -> Path:
        if self.log_file is not None:
            return self.log_file
        return self.artifact_dir() / f"claude-session-{self.session_key()}.log"

    def journal_path(self) -> Path:
        if self.error_journal is not None:
            return self.error_journal
        return self.artifact_dir() / f"claude-errors-{self.session_key()}.jsonl"


# Settings singleton with dependency injection support
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the settings instance (lazy-loaded singleton).

    Returns:
        The Settings instance.

    Example:
        from marketplace_utils.config import get_settings
        settings = get_settings()
        print(settings.session_file_path())
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def override_settings(new_settings: Settings) -> None:
    """Override the settings instance (for testing).

    Args:
        new_settings: The new Settings instance to use.
    """
    global _settings
    _settings = new_settings


def reset_settings() -> None:
    """Reset settings to None (forces reload on next get_settings call)."""
    global _settings
    _settings = None

