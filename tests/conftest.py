"""Pytest fixtures for marketplace hook utility tests."""

from __future__ import annotations

import io
import json
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from marketplace_utils.config import Settings, override_settings, reset_settings
from marketplace_utils.core import locking
from marketplace_utils.core.journal import ErrorJournal
from marketplace_utils.core.locking import FileLockProvider
from marketplace_utils.core.logging import SessionLogger
from marketplace_utils.core.session import FileSessionBackend, SessionStore
from marketplace_utils.hooks.protocol import HookProtocol

# Environment variables read by Settings; cleared so the host running the
# tests cannot leak into them.
HOOK_ENV_VARS = (
    "CLAUDE_SESSION_PID",
    "CLAUDE_SESSION_FILE",
    "CLAUDE_HOOKS_TMPDIR",
    "LOG_FILE",
    "ERROR_JOURNAL",
    "CLAUDE_DEBUG_LEVEL",
    "CLAUDE_RETAIN_LOGS",
    "PLUGIN_NAME",
    "HOOK_NAME",
    "CLAUDE_LOCK_TIMEOUT",
    "CLAUDE_DISABLE_LOCKING",
    "CLAUDE_CODE_REMOTE",
)

# ---------------------------------------------------------------------------
# Basic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_hook_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate every test from the host's hook environment."""
    for name in HOOK_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(locking, "_degraded_notified", False)


@pytest.fixture
def temp_storage() -> Generator[Path, None, None]:
    """Provide temporary storage directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings(temp_storage: Path) -> Generator[Settings, None, None]:
    """Provide settings whose artifacts all live in temp storage."""
    settings = Settings(
        session_pid="test-session",
        temp_dir=temp_storage,
        log_level="DEBUG",
        lock_timeout=5.0,
    )
    override_settings(settings)
    yield settings
    reset_settings()


@pytest.fixture
def lock_provider() -> FileLockProvider:
    return FileLockProvider(timeout=5.0, poll_interval=0.01)


@pytest.fixture
def session_store(test_settings: Settings, lock_provider: FileLockProvider) -> SessionStore:
    """Provide a file-backed store for the test session."""
    return SessionStore(
        FileSessionBackend(test_settings.session_file_path()),
        lock_provider,
        session_key=test_settings.session_key(),
    )


@pytest.fixture
def session_logger(test_settings: Settings, lock_provider: FileLockProvider) -> Generator[SessionLogger, None, None]:
    log = SessionLogger(
        "test-plugin",
        "PostToolUse",
        test_settings.log_file_path(),
        level="DEBUG",
        lock_provider=lock_provider,
    )
    yield log
    log.close()


@pytest.fixture
def journal(test_settings: Settings, lock_provider: FileLockProvider) -> ErrorJournal:
    return ErrorJournal(
        test_settings.journal_path(),
        plugin="test-plugin",
        hook="PostToolUse",
        lock_provider=lock_provider,
    )


# ---------------------------------------------------------------------------
# Protocol helpers
# ---------------------------------------------------------------------------


def make_protocol(payload: Any = None, raw: bytes | None = None) -> HookProtocol:
    """Build a protocol over in-memory streams.

    Args:
        payload: Request document, serialized to JSON.
        raw: Exact stdin bytes (overrides *payload*).
    """
    if raw is None:
        raw = b"" if payload is None else json.dumps(payload).encode("utf-8")
    return HookProtocol(
        stdin=io.BytesIO(raw),
        stdout=io.StringIO(),
        stderr=io.StringIO(),
    )


@pytest.fixture
def protocol_factory() -> Callable[..., HookProtocol]:
    return make_protocol


def stdout_json(protocol: HookProtocol) -> dict[str, Any]:
    """Parse the single JSON document written to the protocol's stdout."""
    text = protocol.stdout.getvalue()  # type: ignore[attr-defined]
    lines = [line for line in text.splitlines() if line.strip()]
    assert len(lines) == 1, f"Expected one response line, got {lines!r}"
    return json.loads(lines[0])


@pytest.fixture
def read_response() -> Callable[[HookProtocol], dict[str, Any]]:
    return stdout_json
